from __future__ import annotations

from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from alembic import command
from checklist.core.config import get_settings
from checklist.core.logging import get_logger
from checklist.db.engine import create_engine_from_url, ensure_database_parent_dir

PROJECT_ROOT = Path(__file__).resolve().parents[2]
ALEMBIC_INI_PATH = PROJECT_ROOT / "alembic.ini"
ALEMBIC_SCRIPT_LOCATION = PROJECT_ROOT / "alembic"

logger = get_logger("checklist.db.migrations")


def build_alembic_config(database_url: str | None = None) -> Config:
    config = Config(str(ALEMBIC_INI_PATH))
    config.set_main_option("script_location", str(ALEMBIC_SCRIPT_LOCATION))
    config.set_main_option("sqlalchemy.url", database_url or get_settings().database_url)
    return config


def head_revision() -> str | None:
    return ScriptDirectory.from_config(build_alembic_config()).get_current_head()


def current_revision(database_url: str) -> str | None:
    engine = create_engine_from_url(database_url)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()


def upgrade_to_head(database_url: str | None = None) -> str | None:
    """Apply pending migrations and return the resulting revision."""
    target_url = database_url or get_settings().database_url
    ensure_database_parent_dir(target_url)
    before = current_revision(target_url)
    command.upgrade(build_alembic_config(target_url), "head")
    after = current_revision(target_url)
    if after != before:
        logger.info("db.migrated", from_revision=before, to_revision=after)
    return after
