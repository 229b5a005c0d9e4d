"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.dataset import Dataset, DatasetSyncStatus
from db.models.discovery_job import DiscoveryJob, DiscoveryJobStatus, DiscoveryJobType

__all__ = [
    "Dataset",
    "DatasetSyncStatus",
    "DiscoveryJob",
    "DiscoveryJobStatus",
    "DiscoveryJobType",
]
