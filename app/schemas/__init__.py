"""
app/schemas package marker.
"""

from app.schemas.discovery import (
    AddDatasetsRequest,
    AddDatasetsResponse,
    CategoryDiscoveryResponse,
    CategoryListResponse,
    DiscoverAndSyncRequest,
    DiscoverAndSyncResponse,
    DiscoverCategoryRequest,
    DiscoveryJobAcceptedResponse,
    DiscoveryJobListResponse,
    DiscoveryJobRequest,
    DiscoveryJobStatusResponse,
    DiscoveryResultResponse,
    DiscoveryStatsResponse,
    SyncResultResponse,
    SyncSummaryResponse,
)

__all__ = [
    "AddDatasetsRequest",
    "AddDatasetsResponse",
    "CategoryDiscoveryResponse",
    "CategoryListResponse",
    "DiscoverAndSyncRequest",
    "DiscoverAndSyncResponse",
    "DiscoverCategoryRequest",
    "DiscoveryJobAcceptedResponse",
    "DiscoveryJobListResponse",
    "DiscoveryJobRequest",
    "DiscoveryJobStatusResponse",
    "DiscoveryResultResponse",
    "DiscoveryStatsResponse",
    "SyncResultResponse",
    "SyncSummaryResponse",
]
