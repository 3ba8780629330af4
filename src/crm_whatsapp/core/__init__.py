"""
Core infrastructure: settings, database, logging and Redis.
"""

from crm_whatsapp.core.db import get_db, get_engine, get_sessionmaker
from crm_whatsapp.core.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "get_db",
    "get_engine",
    "get_sessionmaker",
]
