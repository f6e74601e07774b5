import random

import pytest

from minesweeper.board import Board
from minesweeper.types import CellState, GameStatus
from tests.utils import brute_force_count, corner_board, revealed_safe_cells, row_board


@pytest.mark.parametrize("rows,cols,mines", [(1, 1, 0), (1, 2, 1), (3, 3, 8), (9, 9, 10), (16, 30, 99), (5, 7, 0)])
def test_new_board_has_exact_mines_and_adjacency(rows, cols, mines):
    board = Board(rows, cols, mines, rng=random.Random(rows * 100 + mines))

    assert sum(cell.is_mine for row in board.cells for cell in row) == mines
    for r in range(rows):
        for c in range(cols):
            cell = board.cells[r][c]
            assert cell.state == CellState.UNOPENED
            if cell.is_mine:
                assert board.true_value(r, c) is None
            else:
                assert cell.neighbor_mines == brute_force_count(board, r, c)
    assert board.opened_cells_count() == 0
    assert board.status() == GameStatus.IN_PROGRESS


@pytest.mark.parametrize("rows,cols,mines", [(0, 3, 1), (3, 0, 1), (2, 2, 4), (2, 2, 5), (3, 3, -1)])
def test_invalid_board_configuration_raises(rows, cols, mines):
    with pytest.raises(ValueError):
        Board(rows, cols, mines)


def test_from_layout_rejects_positions_outside_board():
    with pytest.raises(ValueError):
        Board.from_layout([(3, 0)], rows=3, cols=3)


def test_single_cell_without_mines_is_won_on_first_open():
    board = Board(1, 1, 0)

    assert board.open(0, 0) is True
    assert board.is_won()
    assert not board.is_over()
    assert board.opened_cells_count() == 1


def test_open_zero_cell_cascades_and_stops_at_numbers():
    board = row_board()

    assert board.open(0, 0) is True
    assert board.visible_state(0, 0) == CellState.REVEALED
    assert board.visible_state(0, 1) == CellState.REVEALED
    assert board.visible_state(0, 2) == CellState.UNOPENED
    assert board.visible_state(0, 3) == CellState.UNOPENED
    assert board.opened_cells_count() == 2
    assert not board.is_finished()


def test_cascade_reveals_whole_region_and_wins():
    board = corner_board()

    assert board.open(2, 2) is True
    assert board.opened_cells_count() == 8
    assert board.visible_state(0, 0) == CellState.UNOPENED
    assert board.is_won()
    assert board.status() == GameStatus.WON


def test_cascade_does_not_reveal_flagged_cells():
    board = corner_board()
    board.flag(0, 2)

    board.open(2, 2)

    assert board.visible_state(0, 2) == CellState.FLAGGED
    assert board.opened_cells_count() == 7
    assert not board.is_won()


def test_opening_zero_cell_on_standard_board_reveals_its_neighbors():
    board = Board(9, 9, 10, rng=random.Random(7))
    zero_cells = [(r, c) for r in range(9) for c in range(9)
                  if not board.is_mine(r, c) and board.true_value(r, c) == 0]
    assert zero_cells

    row, col = zero_cells[0]
    assert board.open(row, col) is True
    for r in range(max(0, row - 1), min(9, row + 2)):
        for c in range(max(0, col - 1), min(9, col + 2)):
            assert board.visible_state(r, c) == CellState.REVEALED
            assert not board.is_mine(r, c)
    assert board.opened_cells_count() == revealed_safe_cells(board)


def test_cascade_on_large_board_does_not_recurse():
    board = Board(200, 200, 0)

    assert board.open(100, 100) is True
    assert board.opened_cells_count() == 200 * 200
    assert board.is_won()


def test_opening_mine_loses_and_reveals_unflagged_mines():
    board = Board.from_layout([(0, 2), (0, 4)], rows=1, cols=5)
    board.open(0, 0)
    board.flag(0, 4)
    opened_before = board.opened_cells_count()

    assert board.open(0, 2) is False
    assert board.is_over()
    assert not board.is_won()
    assert board.status() == GameStatus.LOST
    assert board.visible_state(0, 2) == CellState.REVEALED
    assert board.visible_state(0, 4) == CellState.FLAGGED
    assert board.opened_cells_count() == opened_before
    assert board.board_display() == [[' ', '1', '*', '.', 'M']]


def test_loss_reveals_mines_that_were_never_touched():
    board = Board.from_layout([(0, 0), (2, 2)], rows=3, cols=3)

    board.open(0, 0)

    assert board.visible_state(2, 2) == CellState.REVEALED
    assert board.cell_display(2, 2) == '*'
    assert board.visible_state(1, 1) == CellState.UNOPENED


def test_finished_board_rejects_every_move():
    board = corner_board()
    board.open(2, 2)
    grid = board.visible_state_grid()

    assert board.open(0, 0) is False
    assert board.flag(0, 0) is False
    assert board.visible_state_grid() == grid
    assert board.opened_cells_count() == 8

    lost = row_board()
    lost.open(0, 2)
    assert lost.open(0, 0) is False
    assert lost.flag(0, 4) is False
    assert lost.opened_cells_count() == 0


def test_flag_toggles_and_blocks_open():
    board = row_board()

    assert board.flag(0, 4) is True
    assert board.visible_state(0, 4) == CellState.FLAGGED
    assert board.open(0, 4) is False
    assert board.visible_state(0, 4) == CellState.FLAGGED

    assert board.flag(0, 4) is True
    assert board.visible_state(0, 4) == CellState.UNOPENED
    assert board.opened_cells_count() == 0


def test_flag_on_revealed_cell_is_rejected():
    board = row_board()
    board.open(0, 1)

    assert board.flag(0, 1) is False
    assert board.visible_state(0, 1) == CellState.REVEALED


def test_open_revealed_cell_is_rejected():
    board = row_board()
    board.open(0, 1)

    assert board.open(0, 1) is False
    assert board.opened_cells_count() == 1


@pytest.mark.parametrize("row,col", [(-1, 0), (0, -1), (1, 0), (0, 5)])
def test_out_of_bounds_moves_are_noops(row, col):
    board = row_board()

    assert board.open(row, col) is False
    assert board.flag(row, col) is False
    assert board.cell_display(row, col) == '?'
    assert board.opened_cells_count() == 0


def test_display_projection():
    board = row_board()
    assert board.board_display() == [['.', '.', '.', '.', '.']]

    board.open(0, 0)
    board.flag(0, 2)
    board.open(0, 3)

    assert board.board_display() == [[' ', '1', 'M', '1', '.']]


def test_opened_cells_matches_revealed_safe_cells_after_random_play():
    rng = random.Random(42)
    board = Board(12, 12, 20, rng=rng)
    for _ in range(200):
        if board.is_finished():
            break
        row, col = rng.randrange(12), rng.randrange(12)
        if rng.random() < 0.3:
            board.flag(row, col)
        elif not board.is_mine(row, col):
            board.open(row, col)
        assert board.opened_cells_count() == revealed_safe_cells(board)

    if board.is_won():
        assert board.opened_cells_count() == 12 * 12 - 20


def test_raw_grids_are_detached():
    board = row_board()
    values = board.true_value_grid()
    states = board.visible_state_grid()

    values[0][0] = 8
    states[0][0] = CellState.REVEALED

    assert board.true_value(0, 0) == 0
    assert board.visible_state(0, 0) == CellState.UNOPENED
    assert board.dimensions() == (1, 5)
    assert board.mines_count() == 1
