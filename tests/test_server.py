import pytest

from minesweeper import server
from minesweeper.config import Settings
from minesweeper.session import apply_move
from minesweeper.types import MoveAction, MoveRecord, MoveRequest
from tests.utils import corner_board, row_board


@pytest.fixture
def client(db_path, monkeypatch):
    monkeypatch.setitem(server.app.config, "SETTINGS", Settings(db_path=db_path))
    monkeypatch.setattr(server, "temporal_client", None)
    server.app.config["TESTING"] = True
    return server.app.test_client()


def test_health(client):
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.get_json()['status'] == 'OK'


def test_list_games(client, repository):
    first = repository.create_game("Ann", row_board())
    won = corner_board()
    won.open(2, 2)
    second = repository.create_game("Bob", won)

    games = client.get('/api/games').get_json()['games']
    assert [game['id'] for game in games] == [second, first]
    assert games[0]['status'] == 'WON'
    assert games[1]['playerName'] == 'Ann'

    active = client.get('/api/games?active=1').get_json()['games']
    assert [game['id'] for game in active] == [first]


def test_get_game(client, repository):
    board = row_board()
    board.open(0, 0)
    game_id = repository.create_game("Ann", board)

    body = client.get(f'/api/games/{game_id}').get_json()

    assert body['game']['openedCells'] == 2
    assert body['view']['display'] == [[' ', '1', '.', '.', '.']]
    assert body['view']['trueValues'] == [[0, 1, 'mine', 1, 0]]
    assert body['view']['visibleStates'][0][0] == 'revealed'


def test_get_missing_game(client):
    response = client.get('/api/games/12')

    assert response.status_code == 404
    assert 'not found' in response.get_json()['error']


def test_replay_game(client, repository):
    board = row_board()
    game_id = repository.create_game("Ann", board)
    for number, request in enumerate([MoveRequest(0, 0, MoveAction.OPEN),
                                      MoveRequest(0, 2, MoveAction.OPEN)], start=1):
        outcome = apply_move(board, request)
        repository.record_move(game_id, request.row, request.col, request.action, outcome.result, board)

    body = client.get(f'/api/games/{game_id}/replay').get_json()

    assert [move['result'] for move in body['moves']] == ['safe', 'exploded']
    assert body['game']['status'] == 'LOST'
    assert len(body['frames']) == 3
    assert body['frames'][-1] == body['view']


def test_delete_game(client, repository):
    game_id = repository.create_game("Ann", row_board())
    repository.append_move(MoveRecord(game_id, 1, 0, 0, MoveAction.OPEN, "safe"))

    response = client.delete(f'/api/games/{game_id}')

    assert response.status_code == 200
    assert client.get(f'/api/games/{game_id}').status_code == 404
    assert repository.list_moves(game_id) == []


@pytest.mark.parametrize("payload", [
    {},
    {'config': {'rows': 9, 'cols': 9}},
    {'config': {'rows': '9', 'cols': 9, 'mines': 10}},
])
def test_create_game_requires_config(client, payload):
    response = client.post('/api/games', json=payload)

    assert response.status_code == 400
    assert response.get_json()['error'] == 'Invalid game configuration'


def test_create_game_validates_input(client):
    response = client.post('/api/games', json={'playerName': 'R2D2',
                                               'config': {'rows': 9, 'cols': 9, 'mines': 10}})
    assert response.status_code == 400

    response = client.post('/api/games', json={'playerName': 'Ann',
                                               'config': {'rows': 2, 'cols': 2, 'mines': 4}})
    assert response.status_code == 400
    assert client.get('/api/games').get_json()['games'] == []


def test_continue_finished_game_is_refused(client, repository):
    lost = row_board()
    lost.open(0, 2)
    game_id = repository.create_game("Ann", lost)

    response = client.post(f'/api/games/{game_id}/continue')

    assert response.status_code == 409
    assert client.post('/api/games/99/continue').status_code == 404


@pytest.mark.parametrize("payload", [
    {'row': 0, 'col': 0, 'action': 'chord'},
    {'row': '0', 'col': 0, 'action': 'open'},
    {'col': 0, 'action': 'flag'},
    {'row': True, 'col': 0, 'action': 'open'},
    {'row': 0, 'col': False, 'action': 'flag'},
])
def test_make_move_validates_request(client, payload):
    response = client.post('/api/games/1/moves', json=payload)

    assert response.status_code == 400


def test_storage_failure_is_reported(client, tmp_path, monkeypatch):
    monkeypatch.setitem(server.app.config, "SETTINGS",
                        Settings(db_path=str(tmp_path / "missing" / "games.db")))

    response = client.get('/api/games')

    assert response.status_code == 500
    assert 'Database connection failed' in response.get_json()['error']


def test_create_game_without_temporal_keeps_the_game(client):
    response = client.post('/api/games', json={'playerName': 'Ann',
                                               'config': {'rows': 9, 'cols': 9, 'mines': 10}})

    assert response.status_code == 503
    assert 'session could not be started' in response.get_json()['error']
    games = client.get('/api/games').get_json()['games']
    assert [(game['playerName'], game['mines']) for game in games] == [('Ann', 10)]


def test_session_endpoints_without_temporal(client, repository):
    game_id = repository.create_game("Ann", row_board())

    responses = [
        client.post(f'/api/games/{game_id}/continue'),
        client.post(f'/api/games/{game_id}/moves', json={'row': 0, 'col': 0, 'action': 'open'}),
        client.post(f'/api/games/{game_id}/save'),
    ]

    for response in responses:
        assert response.status_code == 503
        assert 'not connected to Temporal' in response.get_json()['error']
