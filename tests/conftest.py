import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from minesweeper.database import Database
from minesweeper.repository import GameRepository


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "games.db")


@pytest.fixture
def repository(db_path):
    with Database(db_path) as db:
        yield GameRepository(db)
