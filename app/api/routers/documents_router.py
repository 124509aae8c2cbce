"""
app/api/routers/documents_router.py

Read-only document listing endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.repositories.document_repository import DocumentRepository
from app.schemas.nfse import DocumentListResponse, DocumentResponse, PaginationResponse
from db.session import get_db

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=DocumentListResponse)
def list_documents(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=0, ge=0, description="Page size; 0 returns every document"),
    document_type: str | None = Query(default=None, alias="type"),
    document_status: str | None = Query(default=None, alias="status"),
    company_id: UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> DocumentListResponse:
    result = DocumentRepository(db).list_documents(
        page=page,
        limit=limit,
        document_type=document_type,
        status=document_status,
        company_id=company_id,
    )
    return DocumentListResponse(
        documents=[DocumentResponse.model_validate(document) for document in result.documents],
        pagination=PaginationResponse(
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        ),
    )


@router.get("/{document_id}", response_model=DocumentResponse)
def get_document(
    document_id: UUID,
    db: Session = Depends(get_db),
) -> DocumentResponse:
    document = DocumentRepository(db).get_document(document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    return DocumentResponse.model_validate(document)
