"""
app/connectors/nfse_connector.py

Municipal NFS-e API connector.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import requests

from app.config import ExternalHTTPSettings, NFSeAPISettings
from app.connectors.base import BaseConnector
from app.domain.nfse import CredentialRef, NFSeDocumentInput, NFSePageResult

logger = logging.getLogger(__name__)

# Maximum documents the API returns per page; a shorter page is the last one.
NFSE_PAGE_SIZE = 100


class NFSeConnector(BaseConnector):
    """
    Fetches issued NFS-e documents for one credential, one page at a time.
    """

    page_size = NFSE_PAGE_SIZE

    def __init__(
        self,
        *,
        settings: NFSeAPISettings,
        http_settings: ExternalHTTPSettings,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="nfse", http_settings=http_settings, session=session)
        self._settings = settings

    def fetch_page(
        self,
        *,
        credential: CredentialRef,
        start_date: datetime,
        end_date: datetime,
        page: int,
    ) -> NFSePageResult:
        if not credential.token:
            logger.error(
                "NFS-e credential has no token credential_id=%s company_id=%s",
                credential.id,
                credential.company_id,
            )
            return NFSePageResult(
                success=False,
                documents=[],
                page=page,
                message="credential has no token",
            )

        payload = self._get_json(
            f"{self._settings.base_url}{self._settings.documents_path}",
            params={
                "data_inicial": start_date.strftime("%Y-%m-%d"),
                "data_final": end_date.strftime("%Y-%m-%d"),
                "pagina": page,
                "tamanho_pagina": self.page_size,
            },
            headers={
                "Authorization": f"Bearer {credential.token}",
                "Accept": "application/json",
            },
        )

        if not isinstance(payload, dict):
            return NFSePageResult(
                success=False,
                documents=[],
                page=page,
                message="unexpected response shape",
            )

        message = payload.get("message")
        if payload.get("success") is not True:
            return NFSePageResult(success=False, documents=[], page=page, message=message)

        raw_documents = payload.get("documents")
        if raw_documents is None:
            raw_documents = []
        if not isinstance(raw_documents, list):
            logger.warning(
                "NFS-e response has malformed documents page=%s documents_type=%s",
                page,
                type(raw_documents).__name__,
            )
            return NFSePageResult(
                success=False,
                documents=[],
                page=page,
                message="malformed documents",
            )

        documents: list[NFSeDocumentInput] = []
        failed_records = 0
        for index, raw in enumerate(raw_documents):
            try:
                parsed = self._normalize_document(raw)
            except (ValueError, TypeError, InvalidOperation) as exc:
                parsed = None
                logger.warning(
                    "Failed to normalize NFS-e record page=%s index=%s error=%s",
                    page,
                    index,
                    exc,
                )
            if parsed is None:
                failed_records += 1
                continue
            documents.append(parsed)

        return NFSePageResult(
            success=True,
            documents=documents,
            page=page,
            message=message,
            failed_records=failed_records,
        )

    def _normalize_document(self, raw: Any) -> NFSeDocumentInput | None:
        if not isinstance(raw, dict):
            return None

        number = str(raw.get("number") or "").strip()
        issue_raw = str(raw.get("issue_date") or "").strip()
        if not number or not issue_raw:
            return None

        return NFSeDocumentInput(
            number=number,
            issue_date=self.parse_iso_datetime(issue_raw),
            series=_optional_str(raw.get("series")),
            verification_code=_optional_str(raw.get("verification_code")),
            competence=_optional_str(raw.get("competence")),
            rps_issue_date=self._optional_datetime(raw.get("rps_issue_date")),
            processing_date=self._optional_datetime(raw.get("processing_date")),
            amount=_optional_decimal(raw.get("amount")),
            service_value=_optional_decimal(raw.get("service_value")),
            service_code=_optional_str(raw.get("service_code")),
            provider_cnpj=_optional_str(raw.get("provider_cnpj")),
            provider_name=_optional_str(raw.get("provider_name")),
            provider_trade_name=_optional_str(raw.get("provider_trade_name")),
            taker_cnpj=_optional_str(raw.get("taker_cnpj")),
            taker_name=_optional_str(raw.get("taker_name")),
            municipal_registration=_optional_str(raw.get("municipal_registration")),
            document_hash=_payload_hash(raw),
            is_cancelled=bool(raw.get("is_cancelled", False)),
            is_substituted=bool(raw.get("is_substituted", False)),
            metadata_json=raw,
        )

    def _optional_datetime(self, value: Any) -> datetime | None:
        text = _optional_str(value)
        if text is None:
            return None
        return self.parse_iso_datetime(text)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def _payload_hash(raw: dict[str, Any]) -> str:
    canonical = json.dumps(raw, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
