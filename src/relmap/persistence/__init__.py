"""
Persistence layer components: session, identity map, data mapper, backend
and the persistence manager.
"""

from .backend import PersistenceBackend
from .identity_map import IdentityMap
from .manager import PersistenceManager
from .mapper import DataMapper
from .session import Session
from .unit_of_work import UnitOfWork

__all__ = [
    "DataMapper",
    "IdentityMap",
    "PersistenceBackend",
    "PersistenceManager",
    "Session",
    "UnitOfWork",
]
