from __future__ import annotations

import os
from pathlib import Path

from alembic import command
from alembic.config import Config

ROOT = Path(__file__).resolve().parents[2]
ALEMBIC_INI = os.getenv("ALEMBIC_CONFIG", str(ROOT / "alembic.ini"))
MIGRATIONS_DIR = ROOT / "infra" / "migrations"


def build_config(database_url: str | None = None) -> Config:
    config = Config(ALEMBIC_INI) if Path(ALEMBIC_INI).exists() else Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    if database_url:
        config.set_main_option("sqlalchemy.url", database_url)
    return config


def run_upgrade(revision: str = "head", database_url: str | None = None) -> None:
    command.upgrade(build_config(database_url), revision)


def run_downgrade(revision: str, database_url: str | None = None) -> None:
    command.downgrade(build_config(database_url), revision)


if __name__ == "__main__":
    run_upgrade()
