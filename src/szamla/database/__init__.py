"""Database layer for szamla application."""

from szamla.database.base import Database
from szamla.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
