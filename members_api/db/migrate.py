"""
Database migration runner for Alembic migrations.
"""
import logging
from pathlib import Path
from alembic.config import Config
from alembic import command
from sqlalchemy import create_engine, text

logger = logging.getLogger(__name__)

MIGRATION_LOCK_ID = 774_100_223

ALEMBIC_INI_PATH = Path(__file__).resolve().parent.parent.parent / "alembic.ini"


def run_migrations(database_url: str = None):
    """
    Run Alembic migrations to head revision.
    Uses a PostgreSQL advisory lock so concurrent deploys do not race.
    """
    from members_api.core import config as app_config

    database_url = database_url or app_config.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL is not set")

    logger.info("RUN_MIGRATIONS=1 -> running alembic upgrade head")

    alembic_cfg = Config(str(ALEMBIC_INI_PATH))
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_INI_PATH.parent / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)

    engine = create_engine(database_url, pool_pre_ping=True)
    lock_conn = None
    is_postgres = database_url.startswith("postgresql")

    try:
        if is_postgres:
            # Keep the connection open for as long as the lock must be held
            lock_conn = engine.connect()
            try:
                lock_conn.execute(text(f"SELECT pg_advisory_lock({MIGRATION_LOCK_ID})"))
                lock_conn.commit()
                logger.info("Migration lock acquired")
            except Exception as lock_error:
                logger.warning(f"Could not acquire advisory lock: {lock_error}")
                lock_conn.close()
                lock_conn = None

        command.upgrade(alembic_cfg, "head")
        logger.info("Migrations complete")

    except Exception:
        logger.exception("Migration failed")
        raise
    finally:
        if lock_conn:
            try:
                lock_conn.execute(text(f"SELECT pg_advisory_unlock({MIGRATION_LOCK_ID})"))
                lock_conn.commit()
                lock_conn.close()
            except Exception as unlock_error:
                logger.warning(f"Could not release advisory lock: {unlock_error}")
        engine.dispose()
