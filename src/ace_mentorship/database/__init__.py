"""
Storage layer: the document store (`DatabaseManager`), the relational store
(`RelationalDatabase`) and the relational repositories.
"""

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.database.relational import RelationalDatabase
from ace_mentorship.database.repositories import PairingRepository, UserRepository

__all__ = ["DatabaseManager", "RelationalDatabase", "PairingRepository", "UserRepository"]
