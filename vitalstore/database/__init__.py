"""
Database package for the store.
"""

from .base import Base
from .connection import HealthStore, get_store

__all__ = [
    "Base",
    "HealthStore",
    "get_store",
]
