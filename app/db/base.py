import logging
import time

from sqlalchemy import text
from sqlalchemy.orm import declarative_base

logger = logging.getLogger(__name__)

Base = declarative_base()


def init_db(bind=None, max_retries: int = 30, retry_delay: int = 2):
    """
    Wait for the database, then create any missing tables.

    Existing tables are left alone; schema changes on PostgreSQL go through
    migrations/ (see apply_migration.py).
    """
    if bind is None:
        # The module engine is built from settings at import time
        from app.db.session import engine as bind

    # Registers every table on Base.metadata
    import app.models  # noqa: F401

    for attempt in range(1, max_retries + 1):
        try:
            with bind.begin() as conn:
                conn.execute(text("SELECT 1"))
            Base.metadata.create_all(bind=bind)
            logger.info(f"Database ready; tables: {', '.join(sorted(Base.metadata.tables))}")
            return
        except Exception as e:
            if attempt == max_retries:
                logger.error(f"Failed to connect to database after {max_retries} attempts: {e}")
                raise
            logger.warning(f"Database not ready, retrying in {retry_delay}s... (attempt {attempt}/{max_retries})")
            time.sleep(retry_delay)
