"""Temporal workflow for an active Minesweeper game session."""
import asyncio
from datetime import timedelta
from typing import Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from minesweeper.activities import GameActivities
    from minesweeper.board import Board
    from minesweeper.codec import decode, encode
    from minesweeper.session import apply_move, build_view
    from minesweeper.types import (GameSessionState, GameStatus, MoveRequest, MoveResult,
                                   RecordMoveInput, SaveGameInput, StartGameInput)

PERSIST_RETRY_POLICY = RetryPolicy(maximum_attempts=3)


def game_workflow_id(game_id: int) -> str:
    return f"minesweeper-game-{game_id}"


def _failure_cause(error: ActivityError) -> str:
    return str(error.cause) if error.cause else str(error)


@workflow.defn
class MinesweeperWorkflow:
    """Workflow that owns the board of a single stored game."""

    def __init__(self):
        self.game_id: int = 0
        self.player_name: str = ""
        self.board: Optional[Board] = None
        self.last_message: Optional[str] = None
        self.last_activity_time: float = 0
        self.should_close: bool = False
        # Moves must not interleave while a persistence activity is in flight
        self.lock = asyncio.Lock()

    @workflow.run
    async def run(self, start: StartGameInput) -> None:
        """Main workflow entry point."""
        # Store game_id immediately so queries can access it during initialization
        self.game_id = start.game_id
        self.player_name = start.player_name
        self.last_activity_time = workflow.time()

        record = await workflow.execute_activity_method(
            GameActivities.load_game,
            start.game_id,
            start_to_close_timeout=timedelta(seconds=30),
            retry_policy=PERSIST_RETRY_POLICY,
        )
        if record is None:
            workflow.logger.warning(f"Game {start.game_id} not found, closing session")
            return

        self.board = decode(record.snapshot)
        self.player_name = record.player_name

        # Auto-close workflow after 24 hours of inactivity
        inactivity_timeout = timedelta(hours=24)
        check_interval = timedelta(minutes=1)

        while not self.should_close:
            try:
                await workflow.wait_condition(
                    lambda: self.should_close or
                            (workflow.time() - self.last_activity_time) >= inactivity_timeout.total_seconds(),
                    timeout=check_interval,
                )
            except asyncio.TimeoutError:
                pass

            if (workflow.time() - self.last_activity_time) >= inactivity_timeout.total_seconds():
                workflow.logger.info(f"Game {self.game_id} session closing after 24 hours of inactivity")
                break

        async with self.lock:
            await self._save()

        workflow.logger.info(f"Minesweeper session for game {self.game_id} completed")

    async def _save(self) -> Optional[str]:
        """Persist the current board. Returns an error message on failure."""
        try:
            await workflow.execute_activity_method(
                GameActivities.save_game,
                SaveGameInput(game_id=self.game_id, snapshot=encode(self.board)),
                start_to_close_timeout=timedelta(seconds=30),
                retry_policy=PERSIST_RETRY_POLICY,
            )
        except ActivityError as error:
            message = f"Failed to save game: {_failure_cause(error)}"
            workflow.logger.error(message)
            return message
        return None

    @workflow.update
    async def make_move_update(self, request: MoveRequest) -> MoveResult:
        """Apply a move, record it and return the updated board."""
        async with self.lock:
            self.last_activity_time = workflow.time()

            outcome = apply_move(self.board, request)
            result = MoveResult(
                applied=outcome.applied,
                status=self.board.status(),
                result=outcome.result or None,
            )

            if outcome.should_record:
                # The board keeps the move even if it can't be persisted
                try:
                    result.move_number = await workflow.execute_activity_method(
                        GameActivities.record_move,
                        RecordMoveInput(
                            game_id=self.game_id,
                            row=request.row,
                            col=request.col,
                            action=request.action,
                            result=outcome.result,
                            snapshot=encode(self.board),
                        ),
                        start_to_close_timeout=timedelta(seconds=30),
                        retry_policy=PERSIST_RETRY_POLICY,
                    )
                except ActivityError as error:
                    result.message = f"Failed to save move: {_failure_cause(error)}"
                    workflow.logger.error(f"Game {self.game_id}: {result.message}")

            if result.message is None and self.board.status() == GameStatus.LOST:
                result.message = "Game over! You lost!"
            elif result.message is None and self.board.status() == GameStatus.WON:
                result.message = "Congratulations! You won!"

            self.last_message = result.message
            result.view = build_view(self.board)
            return result

    @make_move_update.validator
    def validate_move(self, request: MoveRequest) -> None:
        if self.board is None:
            raise ValueError("Game state not initialized")

    @workflow.update
    async def save_game_update(self) -> MoveResult:
        """Persist the current board on demand."""
        async with self.lock:
            self.last_activity_time = workflow.time()
            message = await self._save() or "Game saved"
            self.last_message = message
            return MoveResult(applied=True, status=self.board.status(), message=message,
                              view=build_view(self.board))

    @save_game_update.validator
    def validate_save(self) -> None:
        if self.board is None:
            raise ValueError("Game state not initialized")

    @workflow.signal
    def close_game_signal(self) -> None:
        """Signal to close the session."""
        self.should_close = True

    @workflow.query
    def get_game_state_query(self) -> GameSessionState:
        """Query to get the current session state."""
        return GameSessionState(
            game_id=self.game_id,
            player_name=self.player_name,
            view=build_view(self.board) if self.board else None,
            last_message=self.last_message,
        )
