import logging

from members_api.db.base import Base
from members_api.db import models  # noqa: F401 - registers every table on Base.metadata

logger = logging.getLogger(__name__)


def init_db(engine=None) -> None:
    """Create any missing tables (existing ones are left untouched)."""
    if engine is None:
        from members_api.db.session import engine
    Base.metadata.create_all(bind=engine, checkfirst=True)
    logger.info("Database tables ensured")
