"""
Repository layer exports.
"""

from db.repositories.dataset_repository import DatasetRepository
from db.repositories.discovery_job_repository import DiscoveryJobRepository
from db.repositories.errors import (
    DatasetNotFoundError,
    DatasetRepositoryError,
    DuplicateExternalIdError,
)
from db.repositories.types import DatasetCreate, DatasetMetadataUpdate

__all__ = [
    "DatasetRepository",
    "DiscoveryJobRepository",
    "DatasetCreate",
    "DatasetMetadataUpdate",
    "DatasetRepositoryError",
    "DatasetNotFoundError",
    "DuplicateExternalIdError",
]
