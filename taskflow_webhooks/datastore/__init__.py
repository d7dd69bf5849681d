"""
Datastore Adapters

The engine talks to storage only through `Datastore`.
"""

from .base import Datastore, Filters, Row
from .memory import MemoryDatastore
from .postgrest import PostgrestDatastore

__all__ = ["Datastore", "Filters", "Row", "MemoryDatastore", "PostgrestDatastore"]
