"""
app/repositories/document_repository.py

Read-only queries backing the document listing endpoints.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.document import Document


@dataclass(frozen=True)
class DocumentPage:
    documents: list[Document]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 1
        return (self.total + self.limit - 1) // self.limit


class DocumentRepository:
    """
    Repository for paginated document reads.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def list_documents(
        self,
        *,
        page: int = 1,
        limit: int = 0,
        document_type: str | None = None,
        status: str | None = None,
        company_id: uuid.UUID | None = None,
    ) -> DocumentPage:
        """
        List documents newest-ingested first. limit=0 returns every match as a
        single page.
        """

        filters = []
        if document_type:
            filters.append(Document.type == document_type)
        if status:
            filters.append(Document.status == status)
        if company_id is not None:
            filters.append(Document.company_id == company_id)

        total = self._session.scalar(select(func.count(Document.id)).where(*filters)) or 0

        stmt = select(Document).where(*filters).order_by(Document.created_at.desc(), Document.id)
        if limit > 0:
            page = max(1, page)
            stmt = stmt.limit(limit).offset((page - 1) * limit)
        else:
            page = 1

        documents = list(self._session.scalars(stmt).all())
        return DocumentPage(documents=documents, page=page, limit=max(0, limit), total=int(total))

    def get_document(self, document_id: uuid.UUID) -> Document | None:
        return self._session.get(Document, document_id)
