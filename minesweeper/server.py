"""Flask server for Minesweeper game."""
import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from flask import Flask, request, jsonify
from flask_cors import CORS
from temporalio.client import Client, WorkflowHandle, WorkflowUpdateFailedError
from temporalio.exceptions import WorkflowAlreadyStartedError
from temporalio.service import RPCError, RPCStatusCode

from minesweeper.client_provider import get_temporal_client
from minesweeper.codec import CodecError, decode
from minesweeper.config import Settings
from minesweeper.database import Database, StorageError
from minesweeper.repository import GameRepository
from minesweeper.session import InvalidGameError, build_view, new_board, replay_moves, validate_new_game
from minesweeper.types import (GameConfig, GameRecord, GameSessionState, GameView, MoveAction,
                               MoveRecord, MoveRequest, MoveResult, StartGameInput)
from minesweeper.workflows import MinesweeperWorkflow, game_workflow_id

logger = logging.getLogger(__name__)

app = Flask(__name__)
app.config["SETTINGS"] = Settings.from_env()
CORS(app)

# Global client reference
temporal_client: Optional[Client] = None


def settings() -> Settings:
    return app.config["SETTINGS"]


@contextmanager
def open_repository() -> Iterator[GameRepository]:
    with Database(settings().db_path) as db:
        yield GameRepository(db)


def serialize_view(view: Optional[GameView]):
    if view is None:
        return None
    return {
        'rows': view.rows,
        'cols': view.cols,
        'mines': view.mines,
        'openedCells': view.opened_cells,
        'gameOver': view.game_over,
        'gameWon': view.game_won,
        'status': view.status.value,
        'display': view.display,
        'trueValues': [['mine' if value is None else value for value in row] for row in view.true_values],
        'visibleStates': [[state.value for state in row] for row in view.visible_states],
    }


def serialize_record(record: GameRecord):
    return {
        'id': record.id,
        'playerName': record.player_name,
        'rows': record.snapshot.rows,
        'cols': record.snapshot.cols,
        'mines': record.mines,
        'openedCells': record.opened_cells,
        'status': record.status.value,
        'createdAt': record.created_at,
        'updatedAt': record.updated_at,
    }


def serialize_move(move: MoveRecord):
    return {
        'moveNumber': move.move_number,
        'row': move.row,
        'col': move.col,
        'action': move.action.value,
        'result': move.result,
        'createdAt': move.created_at,
    }


def serialize_session(state: GameSessionState):
    return {
        'gameId': state.game_id,
        'playerName': state.player_name,
        'view': serialize_view(state.view),
        'message': state.last_message,
    }


def serialize_move_result(result: MoveResult):
    return {
        'applied': result.applied,
        'status': result.status.value,
        'result': result.result,
        'moveNumber': result.move_number,
        'message': result.message,
        'view': serialize_view(result.view),
    }


def error(message: str, status: int):
    return jsonify({'error': message}), status


def sessions_unavailable():
    return error('Game sessions are unavailable: not connected to Temporal', 503)


async def query_with_retry(handle: WorkflowHandle, max_retries=5) -> GameSessionState:
    """Query with retry logic for workflow initialization."""
    for i in range(max_retries):
        state = await handle.query(MinesweeperWorkflow.get_game_state_query)
        if state.view is not None or i == max_retries - 1:
            return state
        logger.info(f"Session not ready yet, retrying in {(i + 1) * 100}ms...")
        await asyncio.sleep((i + 1) * 0.1)
    return state


async def start_session(game_id: int, player_name: str) -> GameSessionState:
    """Start the session workflow of a stored game, reusing a running one."""
    workflow_id = game_workflow_id(game_id)
    try:
        handle = await temporal_client.start_workflow(
            MinesweeperWorkflow.run,
            StartGameInput(game_id=game_id, player_name=player_name),
            id=workflow_id,
            task_queue=settings().task_queue,
        )
    except WorkflowAlreadyStartedError:
        logger.info(f"Session for game {game_id} already running")
        handle = temporal_client.get_workflow_handle(workflow_id)
    return await query_with_retry(handle)


def parse_config(data) -> Optional[GameConfig]:
    config_data = data.get('config') or {}
    values = [config_data.get(key) for key in ('rows', 'cols', 'mines')]
    if not all(isinstance(value, int) and not isinstance(value, bool) for value in values):
        return None
    return GameConfig(rows=values[0], cols=values[1], mines=values[2])


@app.errorhandler(StorageError)
def handle_storage_error(exc: StorageError):
    logger.error(f"Storage error: {exc}")
    return error(str(exc), 500)


@app.route('/api/games', methods=['POST'])
def create_game():
    """Create and store a new game, then start its session."""
    data = request.get_json(silent=True) or {}
    config = parse_config(data)
    if config is None:
        return error('Invalid game configuration', 400)

    try:
        player_name, config = validate_new_game(data.get('playerName'), config)
    except InvalidGameError as exc:
        return error(str(exc), 400)

    board = new_board(config)
    with open_repository() as repository:
        game_id = repository.create_game(player_name, board)

    if temporal_client is None:
        logger.error(f"Game {game_id} saved without a session: Temporal client not connected")
        return error(f'Game {game_id} was saved but its session could not be started', 503)

    try:
        state = asyncio.run(start_session(game_id, player_name))
    except RPCError as exc:
        logger.error(f"Error starting session for game {game_id}: {exc}")
        return error(f'Game {game_id} was saved but its session could not be started', 500)

    return jsonify({'gameId': game_id, 'session': serialize_session(state),
                    'message': f'Game created with ID: {game_id}'})


@app.route('/api/games', methods=['GET'])
def list_games():
    """List stored games, newest first. ``?active=1`` lists unfinished games only."""
    with open_repository() as repository:
        if request.args.get('active') in ('1', 'true'):
            games = repository.list_active_games()
        else:
            games = repository.list_games()
    return jsonify({'games': [serialize_record(record) for record in games]})


@app.route('/api/games/<int:game_id>', methods=['GET'])
def get_game(game_id):
    """Get the stored state of a game."""
    with open_repository() as repository:
        record = repository.read_game(game_id)
    if record is None:
        return error(f'Game with ID {game_id} not found', 404)

    try:
        view = build_view(decode(record.snapshot))
    except CodecError as exc:
        logger.error(f"Game {game_id} is corrupted: {exc}")
        return error(f'Game {game_id} is corrupted', 500)
    return jsonify({'game': serialize_record(record), 'view': serialize_view(view)})


@app.route('/api/games/<int:game_id>/continue', methods=['POST'])
def continue_game(game_id):
    """Resume an unfinished game."""
    with open_repository() as repository:
        record = repository.read_game(game_id)
    if record is None:
        return error(f'Game with ID {game_id} not found', 404)
    if record.snapshot.game_over or record.snapshot.game_won:
        return error('This game is already finished. Use replay to view it.', 409)
    if temporal_client is None:
        return sessions_unavailable()

    try:
        state = asyncio.run(start_session(game_id, record.player_name))
    except RPCError as exc:
        logger.error(f"Error resuming game {game_id}: {exc}")
        return error('Failed to resume game', 500)
    return jsonify({'session': serialize_session(state), 'message': f'Game #{game_id} loaded'})


@app.route('/api/games/<int:game_id>/moves', methods=['POST'])
def make_move(game_id):
    """Make a move."""
    data = request.get_json(silent=True) or {}

    # Validate move request
    if not all(isinstance(data.get(key), int) and not isinstance(data.get(key), bool) for key in ('row', 'col')) or \
       data.get('action') not in [action.value for action in MoveAction]:
        return error('Invalid move request', 400)

    if temporal_client is None:
        return sessions_unavailable()

    move_request = MoveRequest(row=data['row'], col=data['col'], action=MoveAction(data['action']))

    async def execute_move():
        handle = temporal_client.get_workflow_handle(game_workflow_id(game_id))
        return await handle.execute_update(MinesweeperWorkflow.make_move_update, move_request)

    try:
        result = asyncio.run(execute_move())
    except WorkflowUpdateFailedError as exc:
        logger.error(f"Move rejected in game {game_id}: {exc.cause}")
        return error('Game session is not ready', 409)
    except RPCError as exc:
        logger.error(f"Error making move in game {game_id}: {exc}")
        if exc.status == RPCStatusCode.NOT_FOUND:
            return error(f'No active session for game {game_id}', 404)
        return error('Failed to make move', 500)
    return jsonify(serialize_move_result(result))


@app.route('/api/games/<int:game_id>/save', methods=['POST'])
def save_game(game_id):
    """Persist the board of a running session."""
    if temporal_client is None:
        return sessions_unavailable()

    async def execute_save():
        handle = temporal_client.get_workflow_handle(game_workflow_id(game_id))
        return await handle.execute_update(MinesweeperWorkflow.save_game_update)

    try:
        result = asyncio.run(execute_save())
    except WorkflowUpdateFailedError as exc:
        logger.error(f"Save rejected in game {game_id}: {exc.cause}")
        return error('Game session is not ready', 409)
    except RPCError as exc:
        logger.error(f"Error saving game {game_id}: {exc}")
        if exc.status == RPCStatusCode.NOT_FOUND:
            return error('No active game to save', 404)
        return error('Failed to save game', 500)
    return jsonify(serialize_move_result(result))


@app.route('/api/games/<int:game_id>/replay', methods=['GET'])
def replay_game(game_id):
    """Return a game with its move log and the board after every move."""
    with open_repository() as repository:
        record = repository.read_game(game_id)
        if record is None:
            return error(f'Game with ID {game_id} not found', 404)
        moves = repository.list_moves(game_id)

    try:
        final_view = build_view(decode(record.snapshot))
        frames = replay_moves(record.snapshot, moves)
    except CodecError as exc:
        logger.error(f"Game {game_id} is corrupted: {exc}")
        return error(f'Game {game_id} is corrupted', 500)

    return jsonify({
        'game': serialize_record(record),
        'moves': [serialize_move(move) for move in moves],
        'view': serialize_view(final_view),
        'frames': [serialize_view(frame) for frame in frames],
    })


async def close_session(game_id: int) -> None:
    handle = temporal_client.get_workflow_handle(game_workflow_id(game_id))
    try:
        await handle.signal(MinesweeperWorkflow.close_game_signal)
    except RPCError as exc:
        if exc.status != RPCStatusCode.NOT_FOUND:
            raise
        logger.info(f"No running session for game {game_id}")


@app.route('/api/games/<int:game_id>', methods=['DELETE'])
def delete_game(game_id):
    """Delete a game and its moves, closing its session first."""
    if temporal_client is not None:
        try:
            asyncio.run(close_session(game_id))
        except RPCError as exc:
            logger.error(f"Error closing session for game {game_id}: {exc}")
            return error('Failed to close game session', 500)

    with open_repository() as repository:
        repository.delete_game(game_id)
    return jsonify({'deleted': game_id, 'message': f'Game #{game_id} deleted'})


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.now().isoformat()
    })


async def initialize_client():
    """Initialize Temporal client."""
    global temporal_client
    temporal_client = await get_temporal_client(settings())
    logger.info("Connected to Temporal server")


def main():
    """Start the Flask server."""
    logging.basicConfig(level=settings().log_level)
    try:
        asyncio.run(initialize_client())
    except RuntimeError as exc:
        logger.error(f"Failed to connect to Temporal: {exc}")
        raise SystemExit(1)

    port = settings().port
    logger.info(f"Minesweeper server running on http://localhost:{port}")
    logger.info("Make sure to start the Temporal worker in another terminal: python -m minesweeper.worker")

    app.run(host='0.0.0.0', port=port, debug=False)


if __name__ == "__main__":
    main()
