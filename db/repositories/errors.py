"""
Repository-layer exceptions for the company/document store.
"""

from __future__ import annotations


class DocumentStoreError(Exception):
    """Raised when a store query or insert fails at the database layer."""


class CompanyNotFoundError(DocumentStoreError):
    """Raised when a referenced company does not exist or is inactive."""

    def __init__(self, company_id: object) -> None:
        super().__init__(f"Company {company_id} not found or inactive.")
        self.company_id = company_id
