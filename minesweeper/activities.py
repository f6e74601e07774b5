"""Temporal activities for game persistence."""
from typing import Optional

from temporalio import activity
from temporalio.exceptions import ApplicationError

from minesweeper.codec import CodecError, decode
from minesweeper.database import Database, StorageError
from minesweeper.repository import GameRepository
from minesweeper.types import GameRecord, MoveAction, RecordMoveInput, SaveGameInput


class GameActivities:
    """Activities that read and write the game database.

    Every call opens its own connection and closes it before returning.
    The activities block on SQLite, so the worker runs them on a thread pool.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    @activity.defn
    def load_game(self, game_id: int) -> Optional[GameRecord]:
        """Load a stored game, checking that its snapshot can be decoded."""
        try:
            with Database(self.db_path) as db:
                record = GameRepository(db).read_game(game_id)
            if record is not None:
                decode(record.snapshot)
        except StorageError as error:
            raise ApplicationError(str(error), type="StorageError", non_retryable=True) from error
        except CodecError as error:
            raise ApplicationError(f"Game {game_id} is corrupted: {error}",
                                   type="CodecError", non_retryable=True) from error

        if record is None:
            activity.logger.info(f"Game {game_id} not found")
        return record

    @activity.defn
    def record_move(self, move: RecordMoveInput) -> int:
        """Append a move to the log and store the resulting board."""
        try:
            with Database(self.db_path) as db:
                move_number = GameRepository(db).record_move(
                    move.game_id, move.row, move.col, move.action, move.result, move.snapshot)
        except StorageError as error:
            raise ApplicationError(str(error), type="StorageError", non_retryable=True) from error

        activity.logger.info(
            f"Game {move.game_id} move {move_number}: {MoveAction(move.action).value} ({move.row}, {move.col}) {move.result}")
        return move_number

    @activity.defn
    def save_game(self, request: SaveGameInput) -> bool:
        """Overwrite the stored board of a game."""
        try:
            with Database(self.db_path) as db:
                return GameRepository(db).update_game(request.game_id, request.snapshot)
        except StorageError as error:
            raise ApplicationError(str(error), type="StorageError", non_retryable=True) from error
