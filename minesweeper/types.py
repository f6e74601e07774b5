"""Type definitions for Minesweeper."""
from dataclasses import dataclass
from typing import List, Optional
from enum import Enum


class CellState(str, Enum):
    """What the player can see of a cell."""
    UNOPENED = 'unopened'
    FLAGGED = 'flagged'
    REVEALED = 'revealed'


@dataclass
class Cell:
    """Represents a single cell on the minesweeper board."""
    is_mine: bool
    neighbor_mines: int
    row: int
    col: int
    state: CellState = CellState.UNOPENED


class MoveAction(str, Enum):
    """Actions a player can take on a cell."""
    OPEN = 'open'
    FLAG = 'flag'


class GameStatus(str, Enum):
    """Possible game states."""
    IN_PROGRESS = 'IN_PROGRESS'
    WON = 'WON'
    LOST = 'LOST'


@dataclass
class GameConfig:
    """Configuration for creating a new game."""
    rows: int
    cols: int
    mines: int


@dataclass
class BoardSnapshot:
    """Detached, persistable copy of a board.

    ``board_state`` and ``visible_state`` hold JSON text of the two grids.
    """
    rows: int
    cols: int
    mines: int
    board_state: str
    visible_state: str
    game_over: bool = False
    game_won: bool = False
    opened_cells: int = 0

    @property
    def status(self) -> GameStatus:
        if self.game_over:
            return GameStatus.LOST
        if self.game_won:
            return GameStatus.WON
        return GameStatus.IN_PROGRESS


@dataclass
class GameRecord:
    """A stored game session."""
    id: int
    player_name: str
    snapshot: BoardSnapshot
    created_at: str
    updated_at: str

    @property
    def status(self) -> GameStatus:
        return self.snapshot.status

    @property
    def opened_cells(self) -> int:
        return self.snapshot.opened_cells

    @property
    def mines(self) -> int:
        return self.snapshot.mines


@dataclass
class MoveRecord:
    """One entry of a game's append-only move log."""
    game_id: int
    move_number: int
    row: int
    col: int
    action: MoveAction
    result: str
    created_at: Optional[str] = None


@dataclass
class MoveRequest:
    """Request to make a move."""
    row: int
    col: int
    action: MoveAction


@dataclass
class GameView:
    """Everything the presentation layer needs to draw a board."""
    rows: int
    cols: int
    mines: int
    opened_cells: int
    game_over: bool
    game_won: bool
    display: List[List[str]]
    true_values: List[List[Optional[int]]]
    visible_states: List[List[CellState]]

    @property
    def status(self) -> GameStatus:
        if self.game_over:
            return GameStatus.LOST
        if self.game_won:
            return GameStatus.WON
        return GameStatus.IN_PROGRESS


@dataclass
class StartGameInput:
    """Input for the session workflow of a stored game."""
    game_id: int
    player_name: str


@dataclass
class RecordMoveInput:
    """A move to append to the log together with the resulting board."""
    game_id: int
    row: int
    col: int
    action: MoveAction
    result: str
    snapshot: BoardSnapshot


@dataclass
class SaveGameInput:
    """Request to overwrite a stored game's board."""
    game_id: int
    snapshot: BoardSnapshot


@dataclass
class MoveResult:
    """Outcome of a move, returned to the caller."""
    applied: bool
    status: GameStatus
    result: Optional[str] = None
    move_number: Optional[int] = None
    message: Optional[str] = None
    view: Optional[GameView] = None


@dataclass
class GameSessionState:
    """Current state of an active game session."""
    game_id: int
    player_name: str
    view: Optional[GameView] = None
    last_message: Optional[str] = None
