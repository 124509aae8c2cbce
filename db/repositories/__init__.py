"""
Repository layer exports.
"""

from db.repositories.errors import CompanyNotFoundError, DocumentStoreError

__all__ = [
    "CompanyNotFoundError",
    "DocumentStoreError",
]
