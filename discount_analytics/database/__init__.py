"""
Database Module
"""
from .connection import (
    build_session_factory,
    close_database,
    get_session_factory,
    init_database,
)
from .models import Base, COMMERCE_TABLES, DISCOUNT_TABLES

__all__ = [
    "init_database",
    "close_database",
    "get_session_factory",
    "build_session_factory",
    "Base",
    "COMMERCE_TABLES",
    "DISCOUNT_TABLES",
]
