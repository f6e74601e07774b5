from minesweeper.board import Board, neighbors
from minesweeper.types import CellState


def row_board():
    """1x5 board with a single mine in the middle: ``0 1 * 1 0``."""
    return Board.from_layout([(0, 2)], rows=1, cols=5)


def corner_board():
    """3x3 board with a mine in the top-left corner."""
    return Board.from_layout([(0, 0)], rows=3, cols=3)


def revealed_safe_cells(board):
    return sum(
        1
        for row in board.cells
        for cell in row
        if cell.state == CellState.REVEALED and not cell.is_mine
    )


def brute_force_count(board, row, col):
    return sum(1 for r, c in neighbors(board.rows, board.cols, row, col) if board.cells[r][c].is_mine)
