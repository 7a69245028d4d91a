"""
Storage layer: content-addressed blobs and the metadata database.
"""

from .database import Database
from .objects import ObjectStore

__all__ = [
    "Database",
    "ObjectStore",
]
