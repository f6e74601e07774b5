"""Convert boards to and from their persistable snapshot form."""
import json
from typing import Any, List, Optional, Tuple

from minesweeper.board import Board
from minesweeper.types import BoardSnapshot, CellState

MINE_TOKEN = 'mine'


class CodecError(ValueError):
    """Raised when a snapshot cannot be turned back into a board."""


def encode(board: Board) -> BoardSnapshot:
    """Take a detached snapshot of a board."""
    board_state = [[MINE_TOKEN if value is None else value for value in row]
                   for row in board.true_value_grid()]
    visible_state = [[state.value for state in row] for row in board.visible_state_grid()]
    return BoardSnapshot(
        rows=board.rows,
        cols=board.cols,
        mines=board.mines,
        board_state=json.dumps(board_state),
        visible_state=json.dumps(visible_state),
        game_over=board.game_over,
        game_won=board.game_won,
        opened_cells=board.opened_cells,
    )


def _load_grid(text: str, name: str, rows: int, cols: int) -> List[List[Any]]:
    try:
        grid = json.loads(text)
    except (TypeError, json.JSONDecodeError) as exc:
        raise CodecError(f"{name} is not valid JSON: {exc}") from exc

    if not isinstance(grid, list) or len(grid) != rows:
        raise CodecError(f"{name} must have {rows} rows")
    for row in grid:
        if not isinstance(row, list) or len(row) != cols:
            raise CodecError(f"{name} must have {cols} columns in every row")
    return grid


def _mine_positions(snapshot: BoardSnapshot) -> Tuple[List[Tuple[int, int]], List[List[Optional[int]]]]:
    grid = _load_grid(snapshot.board_state, 'board_state', snapshot.rows, snapshot.cols)
    positions = []
    values: List[List[Optional[int]]] = []
    for row_index, row in enumerate(grid):
        values.append([])
        for col_index, value in enumerate(row):
            if value == MINE_TOKEN:
                positions.append((row_index, col_index))
                values[row_index].append(None)
            elif isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 8:
                values[row_index].append(value)
            else:
                raise CodecError(f"Unknown cell value {value!r} at ({row_index}, {col_index})")

    if len(positions) != snapshot.mines:
        raise CodecError(f"Snapshot declares {snapshot.mines} mines but the grid holds {len(positions)}")
    return positions, values


def decode_layout(snapshot: BoardSnapshot) -> Board:
    """Rebuild the board's mine layout with every cell unopened."""
    positions, values = _mine_positions(snapshot)
    try:
        board = Board.from_layout(positions, snapshot.rows, snapshot.cols)
    except ValueError as exc:
        raise CodecError(str(exc)) from exc

    if board.true_value_grid() != values:
        raise CodecError("Adjacency numbers do not match the mine layout")
    return board


def decode(snapshot: BoardSnapshot) -> Board:
    """Rebuild a board exactly as it was when encoded."""
    board = decode_layout(snapshot)
    visible = _load_grid(snapshot.visible_state, 'visible_state', snapshot.rows, snapshot.cols)

    opened = 0
    exploded = False
    for row_index, row in enumerate(visible):
        for col_index, value in enumerate(row):
            try:
                state = CellState(value)
            except ValueError as exc:
                raise CodecError(f"Unknown visible state {value!r} at ({row_index}, {col_index})") from exc
            cell = board.cells[row_index][col_index]
            cell.state = state
            if state == CellState.REVEALED:
                if cell.is_mine:
                    exploded = True
                else:
                    opened += 1

    if opened != snapshot.opened_cells:
        raise CodecError(f"Snapshot declares {snapshot.opened_cells} opened cells but the grid holds {opened}")

    # Mines are only revealed by a loss, and a loss ends the game before it can be won
    if bool(snapshot.game_over) != exploded:
        raise CodecError(f"Snapshot declares game_over={snapshot.game_over} but the grid disagrees")
    if snapshot.game_over and snapshot.game_won:
        raise CodecError("Snapshot cannot be both lost and won")
    all_safe_opened = opened == snapshot.rows * snapshot.cols - snapshot.mines
    if not snapshot.game_over and bool(snapshot.game_won) != all_safe_opened:
        raise CodecError(f"Snapshot declares game_won={snapshot.game_won} with {opened} of "
                         f"{snapshot.rows * snapshot.cols - snapshot.mines} safe cells opened")

    board.game_over = bool(snapshot.game_over)
    board.game_won = bool(snapshot.game_won)
    board.opened_cells = snapshot.opened_cells
    return board
