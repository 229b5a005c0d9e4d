"""
Typed DTOs used by dataset repository write flows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from db.models.dataset import DEFAULT_CATEGORY, DEFAULT_SOURCE, DatasetSyncStatus


@dataclass(frozen=True)
class DatasetCreate:
    """
    Field set for inserting one dataset row.
    """

    external_id: str
    name: str
    name_ar: str
    category: str = DEFAULT_CATEGORY
    description: str | None = None
    description_ar: str | None = None
    source: str = DEFAULT_SOURCE
    source_url: str | None = None
    sync_status: str = DatasetSyncStatus.PENDING
    is_active: bool = True
    columns: list[Any] = field(default_factory=list)
    resources: list[Any] = field(default_factory=list)
    data_preview: list[Any] = field(default_factory=list)


@dataclass(frozen=True)
class DatasetMetadataUpdate:
    """
    Catalog metadata applied by a successful sync pass.
    """

    name: str | None = None
    name_ar: str | None = None
    description: str | None = None
    description_ar: str | None = None
    resources: list[Any] | None = None
    metadata_json: dict[str, Any] | None = None
    record_count: int | None = None
