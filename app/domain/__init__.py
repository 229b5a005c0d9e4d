"""
app/domain package marker.
"""

from app.domain.discovery import (
    CatalogCandidate,
    CatalogCategory,
    DatasetRecord,
    DiscoveryResult,
    ReconcileSummary,
    TerminationPolicy,
)

__all__ = [
    "CatalogCandidate",
    "CatalogCategory",
    "DatasetRecord",
    "DiscoveryResult",
    "ReconcileSummary",
    "TerminationPolicy",
]
