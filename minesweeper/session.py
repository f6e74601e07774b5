"""Game session rules shared by the workflow and the HTTP server."""
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from minesweeper.board import Board
from minesweeper.codec import decode_layout
from minesweeper.types import BoardSnapshot, CellState, GameConfig, GameView, MoveAction, MoveRecord, MoveRequest

DEFAULT_PLAYER_NAME = 'Player'
PLAYER_NAME_PATTERN = re.compile(r'^[a-zA-Z\s]+$')

RESULT_EXPLODED = 'exploded'
RESULT_WON = 'won'
RESULT_SAFE = 'safe'
RESULT_FLAGGED = 'flagged'
RESULT_UNFLAGGED = 'unflagged'


class InvalidGameError(ValueError):
    """New-game input the player has to correct."""


@dataclass
class MoveOutcome:
    """What a move did to the board."""
    applied: bool
    result: str
    should_record: bool


def validate_new_game(player_name: Optional[str], config: GameConfig) -> Tuple[str, GameConfig]:
    """Check new-game input and return the normalised player name and config."""
    name = (player_name or '').strip() or DEFAULT_PLAYER_NAME
    if not PLAYER_NAME_PATTERN.match(name):
        raise InvalidGameError("Player name may only contain English letters and spaces")

    rows, cols, mines = config.rows, config.cols, config.mines
    if rows < 1 or cols < 1 or mines < 1 or mines >= rows * cols:
        raise InvalidGameError("Invalid game parameters")
    return name, config


def new_board(config: GameConfig) -> Board:
    return Board(config.rows, config.cols, config.mines)


def apply_move(board: Board, request: MoveRequest) -> MoveOutcome:
    """Apply a player's move and describe the result for the move log.

    A move is worth recording when it changed the board or ended the game.
    """
    if board.is_finished():
        return MoveOutcome(applied=False, result='', should_record=False)

    action = MoveAction(request.action)
    if action == MoveAction.FLAG:
        applied = board.flag(request.row, request.col)
        flagged = applied and board.visible_state(request.row, request.col) == CellState.FLAGGED
        result = RESULT_FLAGGED if flagged else RESULT_UNFLAGGED
    else:
        applied = board.open(request.row, request.col)
        if board.is_over():
            result = RESULT_EXPLODED
        elif board.is_won():
            result = RESULT_WON
        else:
            result = RESULT_SAFE

    should_record = applied or board.is_finished()
    return MoveOutcome(
        applied=applied,
        result=result if should_record else '',
        should_record=should_record,
    )


def build_view(board: Board) -> GameView:
    rows, cols = board.dimensions()
    return GameView(
        rows=rows,
        cols=cols,
        mines=board.mines_count(),
        opened_cells=board.opened_cells_count(),
        game_over=board.is_over(),
        game_won=board.is_won(),
        display=board.board_display(),
        true_values=board.true_value_grid(),
        visible_states=board.visible_state_grid(),
    )


def replay_moves(snapshot: BoardSnapshot, moves: Sequence[MoveRecord]) -> List[GameView]:
    """Rebuild the board after each move, starting from an unopened layout.

    The first view is the untouched board.
    """
    board = decode_layout(snapshot)
    frames = [build_view(board)]
    for move in moves:
        apply_move(board, MoveRequest(row=move.row, col=move.col, action=move.action))
        frames.append(build_view(board))
    return frames
