"""
Repository-layer exceptions for dataset persistence.
"""

from __future__ import annotations


class DatasetRepositoryError(Exception):
    """Base exception for dataset repository failures."""


class DatasetNotFoundError(DatasetRepositoryError):
    """Raised when a referenced dataset does not exist."""


class DuplicateExternalIdError(DatasetRepositoryError):
    """Raised when an insert collides with an existing external_id."""
