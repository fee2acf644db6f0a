"""Database package for geogate."""

from geogate.db.base import Base
from geogate.db.manager import DatabaseManager
from geogate.db.models import CredentialRecord

__all__ = [
    "Base",
    "DatabaseManager",
    "CredentialRecord",
]
