"""
Tests for the alembic migration chain against a throwaway SQLite database.
"""

import sqlite3
from pathlib import Path

from alembic import command
from alembic.config import Config

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


def _config(db_path):
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", f"sqlite+aiosqlite:///{db_path}")
    return config


def _tables(db_path):
    with sqlite3.connect(db_path) as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row[0] for row in rows}


def test_upgrade_and_downgrade(tmp_path):
    db_path = tmp_path / "migrations.db"
    config = _config(db_path)

    command.upgrade(config, "head")
    assert {
        "players",
        "courts",
        "training_sessions",
        "check_ins",
        "matches",
        "match_players",
        "match_results",
        "statistics_snapshots",
    } <= _tables(db_path)

    command.downgrade(config, "base")
    assert _tables(db_path) <= {"alembic_version"}
