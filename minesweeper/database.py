"""SQLite storage handle for games and their move logs."""
import logging
import sqlite3
from typing import Optional

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS games (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    player_name TEXT NOT NULL,
    rows INTEGER NOT NULL,
    cols INTEGER NOT NULL,
    mines INTEGER NOT NULL,
    board_state TEXT NOT NULL,
    visible_state TEXT NOT NULL,
    game_over INTEGER NOT NULL DEFAULT 0,
    game_won INTEGER NOT NULL DEFAULT 0,
    opened_cells INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS games_created_at ON games (created_at);
CREATE INDEX IF NOT EXISTS games_player_name ON games (player_name);

CREATE TABLE IF NOT EXISTS moves (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL,
    move_number INTEGER NOT NULL,
    row INTEGER NOT NULL,
    col INTEGER NOT NULL,
    action TEXT NOT NULL,
    result TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS moves_game_move ON moves (game_id, move_number);
"""


class StorageError(Exception):
    """A persistence operation failed; the message says which one and why."""


class Database:
    """Scoped connection to the game database.

    Use as a context manager so the connection is always released::

        with Database(path) as db:
            GameRepository(db).list_games()
    """

    def __init__(self, path: str = "minesweeper.db"):
        self.path = path
        self._connection: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        if self._connection is not None:
            return self._connection
        try:
            connection = sqlite3.connect(self.path)
            connection.row_factory = sqlite3.Row
            connection.executescript(SCHEMA)
        except sqlite3.Error as exc:
            logger.error(f"Could not open database {self.path}: {exc}")
            raise StorageError(f"Database connection failed: {exc}") from exc
        self._connection = connection
        logger.debug(f"Connected to database {self.path}")
        return connection

    def close(self) -> None:
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        logger.debug(f"Closed database {self.path}")

    @property
    def connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise StorageError("Database is not connected")
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
