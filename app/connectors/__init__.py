"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorRequestError
from app.connectors.nfse_connector import NFSE_PAGE_SIZE, NFSeConnector

__all__ = [
    "BaseConnector",
    "ConnectorRequestError",
    "NFSE_PAGE_SIZE",
    "NFSeConnector",
]
