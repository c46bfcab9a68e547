# allotment_admin/db.py

import logging
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .config import config

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_db_engine() -> Engine:
    """Create (once) the shared SQLAlchemy engine for the remote store"""
    url = config.get_database_url()

    engine_kwargs = {"pool_pre_ping": True}
    if not url.startswith("sqlite"):
        engine_kwargs["pool_size"] = config.get_app_setting('DB_POOL_SIZE', 5)
        engine_kwargs["pool_recycle"] = config.get_app_setting('DB_POOL_RECYCLE', 3600)

    engine = create_engine(url, **engine_kwargs)
    logger.info(f"Database engine created ({engine.dialect.name})")
    return engine
