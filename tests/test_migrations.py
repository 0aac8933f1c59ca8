from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, inspect
from sqlmodel import SQLModel

from backoffice.domain import models  # noqa: F401
from backoffice.infra.migrate import run_downgrade, run_upgrade

ACCESS_TABLES = {"audit_logs", "users", "pages", "role_permissions", "user_menu_permissions"}


def test_upgrade_creates_model_tables_and_downgrade_drops_them(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'migrations.db'}"

    run_upgrade(database_url=url)
    engine = create_engine(url)
    inspector = inspect(engine)
    assert ACCESS_TABLES <= set(inspector.get_table_names())
    for name in ACCESS_TABLES:
        migrated = {column["name"] for column in inspector.get_columns(name)}
        declared = {column.name for column in SQLModel.metadata.tables[name].columns}
        assert migrated == declared, name

    unique_sets = {
        tuple(constraint["column_names"])
        for constraint in inspector.get_unique_constraints("role_permissions")
    }
    assert ("role", "page_id") in unique_sets
    engine.dispose()

    run_downgrade("base", database_url=url)
    engine = create_engine(url)
    assert ACCESS_TABLES.isdisjoint(inspect(engine).get_table_names())
    engine.dispose()
