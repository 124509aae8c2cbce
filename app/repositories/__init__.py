"""
app/repositories package marker.
"""

from app.repositories.document_repository import DocumentPage, DocumentRepository
from app.repositories.nfse_document_store import NFSeDocumentStore

__all__ = [
    "DocumentPage",
    "DocumentRepository",
    "NFSeDocumentStore",
]
