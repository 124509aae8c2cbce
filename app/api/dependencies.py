"""
app/api/dependencies.py

Shared FastAPI dependencies.
"""

from __future__ import annotations

from app.scheduler.nfse_scheduler import NFSeScheduler, get_nfse_scheduler


def get_scheduler() -> NFSeScheduler:
    """
    Return the process-wide NFS-e scheduler (the one started by the app
    lifespan).
    """

    return get_nfse_scheduler()
