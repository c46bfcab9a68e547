# allotment_admin/config.py

import os
import logging
from dotenv import load_dotenv
from typing import Any

# Initialize logger
logger = logging.getLogger(__name__)


def is_running_on_streamlit_cloud() -> bool:
    """Detect if running on Streamlit Cloud"""
    try:
        import streamlit as st
        return hasattr(st, 'secrets') and "DB_CONFIG" in st.secrets
    except Exception:
        return False


class Config:
    """Centralized configuration management for the Allotment Admin Console"""

    def __init__(self):
        self.is_cloud = is_running_on_streamlit_cloud()
        self._load_config()

    def _load_config(self):
        """Load configuration based on environment"""
        if self.is_cloud:
            self._load_cloud_config()
        else:
            self._load_local_config()

        # Common configuration
        self._load_app_config()
        self._log_config_status()

    def _load_cloud_config(self):
        """Load configuration from Streamlit Cloud secrets"""
        import streamlit as st

        db_secrets = dict(st.secrets["DB_CONFIG"])
        self.db_config = {
            "url": db_secrets.get("url") or db_secrets.get("DATABASE_URL"),
            "driver": db_secrets.get("driver", "postgresql+psycopg2"),
            "host": db_secrets.get("host"),
            "port": int(db_secrets.get("port", 5432)),
            "user": db_secrets.get("user"),
            "password": db_secrets.get("password"),
            "database": db_secrets.get("database"),
        }

        logger.info("☁️  Running in STREAMLIT CLOUD")

    def _load_local_config(self):
        """Load configuration from local environment"""
        # Load .env file
        load_dotenv()

        self.db_config = {
            "url": os.getenv("DATABASE_URL"),
            "driver": os.getenv("DB_DRIVER", "postgresql+psycopg2"),
            "host": os.getenv("DB_HOST"),
            "port": int(os.getenv("DB_PORT", "5432")),
            "user": os.getenv("DB_USER"),
            "password": os.getenv("DB_PASSWORD"),
            "database": os.getenv("DB_NAME", os.getenv("DB_DATABASE", "postgres")),
        }

        logger.info("💻 Running in LOCAL environment")

    def _load_app_config(self):
        """Load application-specific configuration"""
        self.app_config = {
            # Session management
            "SESSION_TIMEOUT_HOURS": int(os.getenv("SESSION_TIMEOUT_HOURS", "8")),

            # Performance
            "DB_POOL_SIZE": int(os.getenv("DB_POOL_SIZE", "5")),
            "DB_POOL_RECYCLE": int(os.getenv("DB_POOL_RECYCLE", "3600")),
            "REMOTE_TIMEOUT_SECONDS": float(os.getenv("REMOTE_TIMEOUT_SECONDS", "15")),

            # Business rules
            "ALLOTMENT_YEARS_AHEAD": int(os.getenv("ALLOTMENT_YEARS_AHEAD", "1")),
            "MIN_ALLOTMENT_YEAR": int(os.getenv("MIN_ALLOTMENT_YEAR", "2000")),
            "MAX_ALLOTMENT_YEAR": int(os.getenv("MAX_ALLOTMENT_YEAR", "2100")),
            "MAX_ALLOTMENT_VALUE": int(os.getenv("MAX_ALLOTMENT_VALUE", "1000")),

            # Logging
            "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
        }

    def _log_config_status(self):
        """Log configuration status without failing the import"""
        logger.info("─" * 55)
        logger.info("📊 DATABASE CONFIGURATION")

        if self.db_config.get('url'):
            logger.info("   ✅ Database URL: configured")
        else:
            missing = self._missing_db_parts()
            if missing:
                logger.warning(f"   ⚠️  Missing: {', '.join(missing)} (engine will not start)")
            else:
                logger.info(f"   ✅ Host: {self.db_config['host']}:{self.db_config['port']}")
                logger.info(f"   ✅ Database: {self.db_config['database']}")
                logger.info(f"   ✅ User: {self.db_config['user']}")
                logger.info(f"   ✅ Password: {'*' * 8} (configured)")

        logger.info("─" * 55)
        logger.info("⚙️  APP SETTINGS")
        logger.info(f"   Remote timeout: {self.app_config['REMOTE_TIMEOUT_SECONDS']}s")
        logger.info(f"   Years loaded ahead: {self.app_config['ALLOTMENT_YEARS_AHEAD']}")
        logger.info("─" * 55)

    def _missing_db_parts(self):
        missing = []
        if not self.db_config.get('host'): missing.append('host')
        if not self.db_config.get('user'): missing.append('user')
        if not self.db_config.get('password'): missing.append('password')
        if not self.db_config.get('database'): missing.append('database')
        return missing

    def get_database_url(self) -> str:
        """
        Build the SQLAlchemy URL for the remote store.

        Raises:
            ValueError: when neither DATABASE_URL nor the host/user/password
                parts are configured
        """
        if self.db_config.get('url'):
            return self.db_config['url']

        missing = self._missing_db_parts()
        if missing:
            raise ValueError(
                f"Missing required database configuration ({', '.join(missing)}). "
                f"Please check .env file."
            )

        c = self.db_config
        return f"{c['driver']}://{c['user']}:{c['password']}@{c['host']}:{c['port']}/{c['database']}"

    def get_app_setting(self, key: str, default: Any = None) -> Any:
        """Get application setting"""
        return self.app_config.get(key, default)


# Create singleton instance
config = Config()

APP_CONFIG = config.app_config


# Export all
__all__ = [
    'config',
    'Config',
    'APP_CONFIG',
    'is_running_on_streamlit_cloud',
]
