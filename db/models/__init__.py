"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.company import Company
from db.models.company_credential import CompanyCredential
from db.models.document import Document

__all__ = [
    "Company",
    "CompanyCredential",
    "Document",
]
