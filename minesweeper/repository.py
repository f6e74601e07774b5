"""Record store for game snapshots and move logs."""
import logging
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional, Union

from minesweeper.board import Board
from minesweeper.codec import encode, decode
from minesweeper.database import Database, StorageError
from minesweeper.types import BoardSnapshot, GameRecord, MoveAction, MoveRecord

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_snapshot(game: Union[Board, BoardSnapshot]) -> BoardSnapshot:
    if isinstance(game, Board):
        return encode(game)
    return game


def _row_to_record(row: sqlite3.Row) -> GameRecord:
    return GameRecord(
        id=row["id"],
        player_name=row["player_name"],
        snapshot=BoardSnapshot(
            rows=row["rows"],
            cols=row["cols"],
            mines=row["mines"],
            board_state=row["board_state"],
            visible_state=row["visible_state"],
            game_over=bool(row["game_over"]),
            game_won=bool(row["game_won"]),
            opened_cells=row["opened_cells"],
        ),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_move(row: sqlite3.Row) -> MoveRecord:
    return MoveRecord(
        game_id=row["game_id"],
        move_number=row["move_number"],
        row=row["row"],
        col=row["col"],
        action=MoveAction(row["action"]),
        result=row["result"],
        created_at=row["created_at"],
    )


class GameRepository:
    """Stores games and their moves in a connected :class:`Database`."""

    def __init__(self, database: Database):
        self.database = database

    def _fail(self, label: str, exc: Exception) -> StorageError:
        logger.error(f"{label}: {exc}")
        return StorageError(f"{label}: {exc}")

    def create_game(self, player_name: str, game: Union[Board, BoardSnapshot]) -> int:
        """Store a new game and return its id."""
        snapshot = _as_snapshot(game)
        timestamp = _now()
        try:
            with self.database.connection as conn:
                cursor = conn.execute(
                    "INSERT INTO games (player_name, rows, cols, mines, board_state, visible_state,"
                    " game_over, game_won, opened_cells, created_at, updated_at)"
                    " VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (player_name, snapshot.rows, snapshot.cols, snapshot.mines,
                     snapshot.board_state, snapshot.visible_state,
                     int(snapshot.game_over), int(snapshot.game_won), snapshot.opened_cells,
                     timestamp, timestamp),
                )
        except sqlite3.Error as exc:
            raise self._fail("Failed to save game", exc) from exc
        logger.info(f"Created game {cursor.lastrowid} for {player_name}")
        return cursor.lastrowid

    def read_game(self, game_id: int) -> Optional[GameRecord]:
        try:
            row = self.database.connection.execute(
                "SELECT * FROM games WHERE id = ?", (game_id,)).fetchone()
        except sqlite3.Error as exc:
            raise self._fail("Failed to load game", exc) from exc
        return _row_to_record(row) if row else None

    def load_game(self, game_id: int) -> Optional[Board]:
        """Load a stored game as a live board, or ``None`` if it doesn't exist."""
        record = self.read_game(game_id)
        if record is None:
            return None
        return decode(record.snapshot)

    def _update(self, conn: sqlite3.Connection, game_id: int, snapshot: BoardSnapshot) -> bool:
        cursor = conn.execute(
            "UPDATE games SET board_state = ?, visible_state = ?, game_over = ?, game_won = ?,"
            " opened_cells = ?, updated_at = ? WHERE id = ?",
            (snapshot.board_state, snapshot.visible_state, int(snapshot.game_over),
             int(snapshot.game_won), snapshot.opened_cells, _now(), game_id),
        )
        return cursor.rowcount > 0

    def update_game(self, game_id: int, game: Union[Board, BoardSnapshot]) -> bool:
        """Overwrite a game's board. Returns ``False`` if the game doesn't exist."""
        snapshot = _as_snapshot(game)
        try:
            with self.database.connection as conn:
                return self._update(conn, game_id, snapshot)
        except sqlite3.Error as exc:
            raise self._fail("Failed to update game", exc) from exc

    def delete_game(self, game_id: int) -> bool:
        """Delete a game together with its moves."""
        try:
            with self.database.connection as conn:
                conn.execute("DELETE FROM moves WHERE game_id = ?", (game_id,))
                conn.execute("DELETE FROM games WHERE id = ?", (game_id,))
        except sqlite3.Error as exc:
            raise self._fail("Failed to delete game", exc) from exc
        logger.info(f"Deleted game {game_id}")
        return True

    def list_games(self) -> List[GameRecord]:
        """All games, newest first."""
        try:
            rows = self.database.connection.execute(
                "SELECT * FROM games ORDER BY created_at DESC, id DESC").fetchall()
        except sqlite3.Error as exc:
            raise self._fail("Failed to list games", exc) from exc
        return [_row_to_record(row) for row in rows]

    def list_active_games(self) -> List[GameRecord]:
        """Unfinished games, most recently played first."""
        try:
            rows = self.database.connection.execute(
                "SELECT * FROM games WHERE game_over = 0 AND game_won = 0"
                " ORDER BY updated_at DESC, id DESC").fetchall()
        except sqlite3.Error as exc:
            raise self._fail("Failed to list active games", exc) from exc
        return [_row_to_record(row) for row in rows]

    def _next_move_number(self, conn: sqlite3.Connection, game_id: int) -> int:
        row = conn.execute(
            "SELECT MAX(move_number) FROM moves WHERE game_id = ?", (game_id,)).fetchone()
        return (row[0] or 0) + 1

    def next_move_number(self, game_id: int) -> int:
        try:
            return self._next_move_number(self.database.connection, game_id)
        except sqlite3.Error as exc:
            raise self._fail("Failed to read move numbers", exc) from exc

    def _insert_move(self, conn: sqlite3.Connection, move: MoveRecord) -> None:
        conn.execute(
            "INSERT INTO moves (game_id, move_number, row, col, action, result, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?, ?)",
            (move.game_id, move.move_number, move.row, move.col,
             MoveAction(move.action).value, move.result, move.created_at or _now()),
        )

    def append_move(self, move: MoveRecord) -> None:
        try:
            with self.database.connection as conn:
                self._insert_move(conn, move)
        except sqlite3.Error as exc:
            raise self._fail("Failed to save move", exc) from exc

    def record_move(self, game_id: int, row: int, col: int, action: MoveAction, result: str,
                    game: Union[Board, BoardSnapshot]) -> int:
        """Append a move and store the board it produced in one transaction.

        Returns the move number assigned to the move.
        """
        snapshot = _as_snapshot(game)
        try:
            with self.database.connection as conn:
                move_number = self._next_move_number(conn, game_id)
                self._insert_move(conn, MoveRecord(
                    game_id=game_id, move_number=move_number, row=row, col=col,
                    action=action, result=result))
                if not self._update(conn, game_id, snapshot):
                    raise StorageError(f"Failed to save move: game {game_id} not found")
        except sqlite3.Error as exc:
            raise self._fail("Failed to save move", exc) from exc
        return move_number

    def list_moves(self, game_id: int) -> List[MoveRecord]:
        """Moves of a game in the order they were played."""
        try:
            rows = self.database.connection.execute(
                "SELECT * FROM moves WHERE game_id = ? ORDER BY move_number ASC, id ASC",
                (game_id,)).fetchall()
        except sqlite3.Error as exc:
            raise self._fail("Failed to load moves", exc) from exc
        return [_row_to_move(row) for row in rows]
