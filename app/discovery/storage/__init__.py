"""
Dataset store exports.
"""

from app.discovery.storage.base import DatasetStore
from app.discovery.storage.sqlalchemy_storage import SQLAlchemyDatasetStore

__all__ = ["DatasetStore", "SQLAlchemyDatasetStore"]
