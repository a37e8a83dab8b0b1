# Job board core module
from .config import Settings, get_settings, settings
from .database import (
    Database,
    DocumentCollection,
    DocumentQuery,
    check_db_connection,
    create_database,
    get_db,
)
from .logging import setup_logging

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "setup_logging",
    "Database",
    "DocumentCollection",
    "DocumentQuery",
    "create_database",
    "get_db",
    "check_db_connection",
]
