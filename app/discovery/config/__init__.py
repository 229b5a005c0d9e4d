"""
Config helpers for catalog discovery.
"""

from app.discovery.config.loader import get_discovery_settings, load_categories
from app.discovery.config.models import BrowserMode, BrowserSettings, DiscoverySettings

__all__ = [
    "BrowserMode",
    "BrowserSettings",
    "DiscoverySettings",
    "get_discovery_settings",
    "load_categories",
]
