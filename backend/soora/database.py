# backend/soora/database.py

import logging
import mysql.connector
from typing import Dict, Any

from soora.core.config import get_settings

logger = logging.getLogger(__name__)

def get_db_config() -> Dict[str, Any]:
    """Connection arguments for mysql-connector, taken from Settings"""
    settings = get_settings()
    return {
        "host": settings.mysql_host,
        "port": int(settings.mysql_port),
        "user": settings.mysql_user,
        "password": settings.mysql_password,
        "database": settings.mysql_database,
        "charset": "utf8mb4",
        "collation": "utf8mb4_unicode_ci",
        # Repositories open explicit transactions for multi-statement writes
        "autocommit": True,
    }

def get_db_connection():
    """Open a new connection; callers close it in a finally block"""
    try:
        return mysql.connector.connect(**get_db_config())
    except mysql.connector.Error as err:
        logger.error("Database connection to %s failed: %s", get_settings().mysql_host, err)
        raise
