"""Temporal worker for Minesweeper game sessions."""
import asyncio
import logging
from concurrent.futures import Executor, ThreadPoolExecutor

from temporalio.worker import Worker

from minesweeper.activities import GameActivities
from minesweeper.client_provider import get_temporal_client
from minesweeper.config import Settings
from minesweeper.workflows import MinesweeperWorkflow

logger = logging.getLogger(__name__)

ACTIVITY_THREADS = 8


def build_worker(client, settings: Settings, activity_executor: Executor) -> Worker:
    game_activities = GameActivities(settings.db_path)
    return Worker(
        client,
        task_queue=settings.task_queue,
        workflows=[MinesweeperWorkflow],
        activities=[
            game_activities.load_game,
            game_activities.record_move,
            game_activities.save_game,
        ],
        activity_executor=activity_executor,
        max_concurrent_activities=ACTIVITY_THREADS,
    )


async def main():
    """Start the Temporal worker."""
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    client = await get_temporal_client(settings)

    # Database activities are synchronous and run on their own threads
    with ThreadPoolExecutor(max_workers=ACTIVITY_THREADS) as executor:
        worker = build_worker(client, settings, executor)

        logger.info("Worker started, connected to Temporal")
        logger.info(f"Listening on task queue: {settings.task_queue}, database: {settings.db_path}")

        await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
