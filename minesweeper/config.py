"""Runtime configuration read from environment variables."""
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_TASK_QUEUE = "minesweeper-task-queue"


@dataclass(frozen=True)
class Settings:
    db_path: str = "minesweeper.db"
    temporal_address: str = "localhost:7233"
    temporal_namespace: str = "default"
    temporal_profile: Optional[str] = None
    task_queue: str = DEFAULT_TASK_QUEUE
    port: int = 3000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=os.getenv("MINESWEEPER_DB_PATH", "minesweeper.db"),
            temporal_address=os.getenv("TEMPORAL_ADDRESS", "localhost:7233"),
            temporal_namespace=os.getenv("TEMPORAL_NAMESPACE", "default"),
            temporal_profile=os.getenv("TEMPORAL_PROFILE") or None,
            task_queue=os.getenv("MINESWEEPER_TASK_QUEUE", DEFAULT_TASK_QUEUE),
            port=int(os.getenv("PORT", 3000)),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
