"""
app/services package marker.
"""

from app.services.dataset_sync_service import DatasetSyncService
from app.services.discovery_service import DiscoveryService, get_discovery_service
from app.services.reconciliation_service import ReconciliationService

__all__ = [
    "DatasetSyncService",
    "DiscoveryService",
    "ReconciliationService",
    "get_discovery_service",
]
