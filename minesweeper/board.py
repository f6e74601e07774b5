"""Board engine: mine layout, reveal/flag state and win/loss detection."""
import random
from collections import deque
from typing import Iterable, Iterator, List, Optional, Tuple

from minesweeper.types import Cell, CellState, GameStatus

UNOPENED_MARK = '.'
FLAG_MARK = 'M'
MINE_MARK = '*'
BLANK_MARK = ' '
INVALID_MARK = '?'


def neighbors(rows: int, cols: int, row: int, col: int) -> Iterator[Tuple[int, int]]:
    """Yield the coordinates of the (up to 8) cells around ``(row, col)``."""
    for dr in [-1, 0, 1]:
        for dc in [-1, 0, 1]:
            if dr == 0 and dc == 0:
                continue
            new_row = row + dr
            new_col = col + dc
            if 0 <= new_row < rows and 0 <= new_col < cols:
                yield new_row, new_col


def count_neighbor_mines(cells: List[List[Cell]], row: int, col: int, rows: int, cols: int) -> int:
    """Count the number of mines in neighboring cells."""
    count = 0
    for new_row, new_col in neighbors(rows, cols, row, col):
        if cells[new_row][new_col].is_mine:
            count += 1
    return count


class Board:
    """A single game of Minesweeper.

    Invalid moves (out of bounds, finished game, wrong cell state) are
    no-ops reported by a ``False`` return value.
    """

    def __init__(self, rows: int = 9, cols: int = 9, mines: int = 10,
                 rng: Optional[random.Random] = None):
        if rows < 1 or cols < 1:
            raise ValueError(f"Board must have at least one row and column, got {rows}x{cols}")
        if mines < 0 or mines >= rows * cols:
            raise ValueError(f"Mine count must be between 0 and {rows * cols - 1}, got {mines}")

        self.rows = rows
        self.cols = cols
        self.mines = mines
        self.game_over = False
        self.game_won = False
        self.opened_cells = 0

        rng = rng or random.Random()
        positions = [(row, col) for row in range(rows) for col in range(cols)]
        self.cells = self._build_cells(rng.sample(positions, mines))

    @classmethod
    def from_layout(cls, mine_positions: Iterable[Tuple[int, int]], rows: int, cols: int) -> 'Board':
        """Create a fresh board with mines at the given coordinates."""
        positions = set(mine_positions)
        board = cls(rows, cols, 0)
        if len(positions) >= rows * cols:
            raise ValueError(f"Invalid layout: {len(positions)} mines on a {rows}x{cols} board")
        for row, col in positions:
            if not board.is_valid_cell(row, col):
                raise ValueError(f"Mine position ({row}, {col}) is outside the board")
        board.mines = len(positions)
        board.cells = board._build_cells(positions)
        return board

    def _build_cells(self, mine_positions: Iterable[Tuple[int, int]]) -> List[List[Cell]]:
        cells = [
            [Cell(is_mine=False, neighbor_mines=0, row=row, col=col) for col in range(self.cols)]
            for row in range(self.rows)
        ]
        for row, col in mine_positions:
            cells[row][col].is_mine = True

        # Adjacency numbers never change after this point
        for row in range(self.rows):
            for col in range(self.cols):
                if not cells[row][col].is_mine:
                    cells[row][col].neighbor_mines = count_neighbor_mines(
                        cells, row, col, self.rows, self.cols)
        return cells

    def is_valid_cell(self, row: int, col: int) -> bool:
        return 0 <= row < self.rows and 0 <= col < self.cols

    def open(self, row: int, col: int) -> bool:
        """Open a cell.

        Returns ``True`` when the cell was revealed safely. Hitting a mine
        applies the move but returns ``False``; check :meth:`is_over` to tell
        a loss apart from a rejected move.
        """
        if not self.is_valid_cell(row, col) or self.is_finished():
            return False

        cell = self.cells[row][col]
        if cell.state != CellState.UNOPENED:
            return False

        cell.state = CellState.REVEALED

        if cell.is_mine:
            self.game_over = True
            self._reveal_all_mines()
            return False

        self.opened_cells += 1
        if cell.neighbor_mines == 0:
            self._cascade_from(row, col)

        self._check_win_condition()
        return True

    def _cascade_from(self, row: int, col: int) -> None:
        """Reveal the zero region around ``(row, col)`` and its numbered border."""
        queue = deque([(row, col)])
        while queue:
            current_row, current_col = queue.popleft()
            for new_row, new_col in neighbors(self.rows, self.cols, current_row, current_col):
                neighbor = self.cells[new_row][new_col]
                if neighbor.state != CellState.UNOPENED or neighbor.is_mine:
                    continue
                neighbor.state = CellState.REVEALED
                self.opened_cells += 1
                if neighbor.neighbor_mines == 0:
                    queue.append((new_row, new_col))

    def flag(self, row: int, col: int) -> bool:
        """Toggle a flag on an unopened cell."""
        if not self.is_valid_cell(row, col) or self.is_finished():
            return False

        cell = self.cells[row][col]
        if cell.state == CellState.UNOPENED:
            cell.state = CellState.FLAGGED
            return True
        if cell.state == CellState.FLAGGED:
            cell.state = CellState.UNOPENED
            return True
        return False

    def _reveal_all_mines(self) -> None:
        # Correctly flagged mines keep their flag
        for row in self.cells:
            for cell in row:
                if cell.is_mine and cell.state != CellState.FLAGGED:
                    cell.state = CellState.REVEALED

    def _check_win_condition(self) -> None:
        if self.opened_cells == self.rows * self.cols - self.mines:
            self.game_won = True

    def is_over(self) -> bool:
        """True once a mine has been opened."""
        return self.game_over

    def is_won(self) -> bool:
        return self.game_won

    def is_finished(self) -> bool:
        return self.game_over or self.game_won

    def status(self) -> GameStatus:
        if self.game_over:
            return GameStatus.LOST
        if self.game_won:
            return GameStatus.WON
        return GameStatus.IN_PROGRESS

    def dimensions(self) -> Tuple[int, int]:
        return self.rows, self.cols

    def mines_count(self) -> int:
        return self.mines

    def opened_cells_count(self) -> int:
        return self.opened_cells

    def is_mine(self, row: int, col: int) -> bool:
        return self.cells[row][col].is_mine

    def true_value(self, row: int, col: int) -> Optional[int]:
        """Adjacency number of a cell, or ``None`` for a mine."""
        cell = self.cells[row][col]
        return None if cell.is_mine else cell.neighbor_mines

    def visible_state(self, row: int, col: int) -> CellState:
        return self.cells[row][col].state

    def true_value_grid(self) -> List[List[Optional[int]]]:
        return [[self.true_value(row, col) for col in range(self.cols)] for row in range(self.rows)]

    def visible_state_grid(self) -> List[List[CellState]]:
        return [[cell.state for cell in row] for row in self.cells]

    def cell_display(self, row: int, col: int) -> str:
        """Single-character display of a cell."""
        if not self.is_valid_cell(row, col):
            return INVALID_MARK

        cell = self.cells[row][col]
        if cell.state == CellState.UNOPENED:
            return UNOPENED_MARK
        if cell.state == CellState.FLAGGED:
            return FLAG_MARK
        if cell.is_mine:
            return MINE_MARK
        if cell.neighbor_mines == 0:
            return BLANK_MARK
        return str(cell.neighbor_mines)

    def board_display(self) -> List[List[str]]:
        return [[self.cell_display(row, col) for col in range(self.cols)] for row in range(self.rows)]

    def __repr__(self) -> str:
        return (f"Board(rows={self.rows}, cols={self.cols}, mines={self.mines}, "
                f"opened_cells={self.opened_cells}, status={self.status().value})")
