"""
app/scheduler/window.py

Incremental fetch window calculation.

The next fetch for a company starts one day before its newest known document
(late-arriving same-day documents are picked up again) but never earlier than
the configured lookback, and never after the window end.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta

from app.domain.nfse import NFSE_DOCUMENT_TYPE, DocumentStore
from db.repositories.errors import DocumentStoreError

logger = logging.getLogger(__name__)

SAFETY_BUFFER = timedelta(days=1)


class WindowCalculator:
    def __init__(
        self,
        store: DocumentStore,
        *,
        fetch_days_back: int,
        document_type: str = NFSE_DOCUMENT_TYPE,
    ) -> None:
        self._store = store
        self._fetch_days_back = fetch_days_back
        self._document_type = document_type

    def compute_start_date(self, company_id: uuid.UUID, end_date: datetime) -> datetime:
        """
        Return the start of the next fetch window ending at end_date.

        The result always lies in [end_date - fetch_days_back, end_date].
        """

        default_start = end_date - timedelta(days=self._fetch_days_back)

        try:
            latest = self._store.most_recent_document(
                company_id, self._document_type, order_by="issue_date"
            )
        except DocumentStoreError as exc:
            logger.error(
                "Latest document lookup failed, using default range company_id=%s error=%s",
                company_id,
                exc,
            )
            return default_start

        if latest is None:
            logger.info(
                "No existing documents, using default range company_id=%s start_date=%s",
                company_id,
                default_start.date().isoformat(),
            )
            return default_start

        start = latest.issue_date - SAFETY_BUFFER
        if start < default_start:
            start = default_start
        if start > end_date:
            start = end_date

        logger.info(
            "Calculated start date company_id=%s latest_doc_date=%s latest_doc_number=%s "
            "optimized_start=%s default_start=%s days_saved=%s",
            company_id,
            latest.issue_date.date().isoformat(),
            latest.number,
            start.date().isoformat(),
            default_start.date().isoformat(),
            (start - default_start).days,
        )
        return start
