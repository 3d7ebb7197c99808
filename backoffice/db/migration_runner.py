"""
Migration Runner - Runs Alembic migrations at application startup.

Pending migrations are applied before the app starts serving requests.
"""

from pathlib import Path

from sqlalchemy import Engine, create_engine
from structlog import get_logger

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from backoffice.config import settings

logger = get_logger(__name__)

# Path to alembic.ini relative to project root
ALEMBIC_INI_PATH = Path(__file__).parent.parent.parent / "alembic.ini"


def sync_database_url(url: str) -> str:
    """Alembic runs synchronously: swap the asyncpg driver for psycopg2."""
    return url.replace("+asyncpg", "+psycopg2")


def _get_current_revision(engine: Engine) -> str | None:
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        return context.get_current_revision()


def _get_head_revision(alembic_cfg: Config) -> str | None:
    script = ScriptDirectory.from_config(alembic_cfg)
    return script.get_current_head()


def _alembic_config(sync_url: str) -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI_PATH))
    alembic_cfg.set_main_option("sqlalchemy.url", sync_url.replace("%", "%%"))
    alembic_cfg.attributes["skip_logging_config"] = True
    return alembic_cfg


def run_migrations() -> None:
    """
    Run pending Alembic migrations.

    Raises:
        RuntimeError: A migration failed
    """
    if not ALEMBIC_INI_PATH.exists():
        logger.warning("alembic_config_missing", path=str(ALEMBIC_INI_PATH))
        return

    sync_url = sync_database_url(settings.database_url)
    alembic_cfg = _alembic_config(sync_url)
    engine = create_engine(sync_url)

    try:
        current = _get_current_revision(engine)
        head = _get_head_revision(alembic_cfg)

        if current == head:
            logger.info("database_schema_up_to_date", revision=current)
            return

        logger.info("database_migrations_starting", current=current, head=head)
        command.upgrade(alembic_cfg, "head")
        logger.info("database_migrations_complete", revision=_get_current_revision(engine))

    except Exception as e:
        logger.error("database_migration_failed", error=str(e))
        raise RuntimeError(f"Database migration failed: {e}") from e

    finally:
        engine.dispose()
