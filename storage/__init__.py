"""
Storage Package.

All integration data persistence.

Modules:
- database: async engine, sessions, transaction scope
- models/: ORM models
- repositories/: data access layer
"""

from storage.database import Database

__all__ = ["Database"]
