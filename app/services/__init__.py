"""
app/services package marker.
"""

from app.services.nfse_fetch_service import NFSeFetchService

__all__ = [
    "NFSeFetchService",
]
