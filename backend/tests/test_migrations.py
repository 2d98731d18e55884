from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect


def _make_alembic_config(db_url: str) -> Config:
    backend_dir = Path(__file__).resolve().parents[1]
    alembic_ini = backend_dir / "alembic.ini"
    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(backend_dir / "alembic"))
    config.set_main_option("sqlalchemy.url", db_url)
    config.set_main_option("prepend_sys_path", str(backend_dir))
    return config


def _table_names(db_url: str) -> set[str]:
    engine = create_engine(db_url, future=True)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())
    engine.dispose()
    return tables


def test_migration_upgrade_downgrade_cycle(tmp_path, monkeypatch):
    db_url = f"sqlite:///{tmp_path / 'migration_test.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("SECRET_KEY", "secret")

    config = _make_alembic_config(db_url)

    command.upgrade(config, "head")
    tables = _table_names(db_url)
    assert {"user_data", "api_keys", "sdk_health_logs", "csv_uploads"} <= tables

    engine = create_engine(db_url, future=True)
    inspector = inspect(engine)
    unique = inspector.get_unique_constraints("user_data")
    engine.dispose()
    assert any(set(c["column_names"]) == {"owner_id", "user_id"} for c in unique)

    command.downgrade(config, "base")
    tables = _table_names(db_url)
    assert not ({"user_data", "api_keys", "sdk_health_logs", "csv_uploads"} & tables)
