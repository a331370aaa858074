# meditrack/db/db_config.py

import os
import sqlite3
from pathlib import Path

from meditrack.core.env import load_env

load_env()

# Base package directory (meditrack_service/meditrack/)
BASE_DIR = Path(__file__).resolve().parents[1]

# Default checkpoint file (meditrack/db/checkpoints.db)
DEFAULT_DB_PATH = BASE_DIR / "db" / "checkpoints.db"


def checkpoint_db_path() -> str:
    return os.getenv("MEDITRACK_CHECKPOINT_DB", str(DEFAULT_DB_PATH))


def get_sqlite_connection() -> sqlite3.Connection:
    """
    Create and configure SQLite connection with recommended PRAGMA settings.
    """
    path = checkpoint_db_path()
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=False)

    # Performance & concurrency settings
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")

    return conn
