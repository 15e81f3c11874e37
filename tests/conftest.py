import sys
from pathlib import Path

import pytest


def _add_src_to_path() -> None:
    root = Path(__file__).resolve().parents[1]
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


_add_src_to_path()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "pq.sqlite"


@pytest.fixture
def store(db_path: Path):
    from pqmap.database import SQLiteHierarchyStore

    return SQLiteHierarchyStore(db_path)
