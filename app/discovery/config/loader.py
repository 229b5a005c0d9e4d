"""
Environment + JSON config loader for catalog discovery.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from app.config import (
    _get_csv_env,
    _get_float_env,
    _get_int_env,
    _get_optional_str_env,
    _get_str_env,
)
from app.discovery.config.models import BrowserMode, BrowserSettings, DiscoverySettings
from app.domain.discovery import CatalogCategory, TerminationPolicy

_VALID_BROWSER_MODES = {BrowserMode.NONE, BrowserMode.LOCAL, BrowserMode.REMOTE}


def _project_root() -> Path:
    return Path(__file__).resolve().parents[3]


def _resolve_config_path(raw_path: str) -> Path:
    candidate = Path(raw_path)
    if candidate.is_absolute():
        return candidate
    return (_project_root() / candidate).resolve()


def _browser_settings() -> BrowserSettings:
    mode = _get_str_env("DISCOVERY_BROWSER_MODE", BrowserMode.NONE).lower()
    if mode not in _VALID_BROWSER_MODES:
        mode = BrowserMode.NONE
    return BrowserSettings(
        mode=mode,
        remote_url=_get_str_env(
            "DISCOVERY_BROWSER_REMOTE_URL",
            "https://chrome.browserless.io/webdriver",
        ),
        token=_get_optional_str_env("BROWSERLESS_TOKEN"),
        page_load_timeout_seconds=max(
            5.0,
            _get_float_env("DISCOVERY_BROWSER_PAGE_LOAD_TIMEOUT_SECONDS", 60.0),
        ),
        settle_seconds=max(0.0, _get_float_env("DISCOVERY_BROWSER_SETTLE_SECONDS", 2.0)),
        screenshot_dir=_get_optional_str_env("DISCOVERY_SCREENSHOT_DIR"),
    )


@lru_cache(maxsize=1)
def get_discovery_settings() -> DiscoverySettings:
    """
    Return cached discovery settings from environment variables.
    """

    portal_url = _get_str_env("SAUDI_DATA_PORTAL_URL", "https://open.data.gov.sa")
    return DiscoverySettings(
        portal_url=portal_url.rstrip("/"),
        api_base_url=_get_str_env("SAUDI_DATA_API", f"{portal_url.rstrip('/')}/data/api"),
        datasets_path=_get_str_env("DISCOVERY_DATASETS_PATH", "/ar/datasets"),
        user_agent=_get_str_env(
            "DISCOVERY_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
        ),
        timeout_seconds=max(1.0, _get_float_env("DISCOVERY_TIMEOUT_SECONDS", 30.0)),
        rate_limit_per_second=max(0.1, _get_float_env("DISCOVERY_RATE_LIMIT_PER_SECOND", 1.0)),
        page_size=max(1, _get_int_env("DISCOVERY_PAGE_SIZE", 50)),
        api_rows=max(1, _get_int_env("DISCOVERY_API_ROWS", 1000)),
        categories_path=str(
            _resolve_config_path(
                _get_str_env(
                    "DISCOVERY_CATEGORIES_PATH",
                    "app/discovery/config/categories.json",
                )
            )
        ),
        pagination_policy=TerminationPolicy(
            max_steps=max(1, _get_int_env("DISCOVERY_MAX_PAGES", 50)),
            no_new_result_streak=max(1, _get_int_env("DISCOVERY_NO_NEW_PAGE_STREAK", 3)),
        ),
        scroll_policy=TerminationPolicy(
            max_steps=max(1, _get_int_env("DISCOVERY_MAX_SCROLL_STEPS", 30)),
            no_new_result_streak=max(1, _get_int_env("DISCOVERY_NO_NEW_SCROLL_STREAK", 3)),
        ),
        search_terms=_get_csv_env("DISCOVERY_SEARCH_TERMS", ("ا", "م", "ب", "ع", "ت")),
        browser=_browser_settings(),
    )


def load_categories(*, config_path: str) -> list[CatalogCategory]:
    """
    Load the known catalog categories from a JSON file.
    """

    path = _resolve_config_path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Category config file not found: {path}")

    raw_data = json.loads(path.read_text(encoding="utf-8"))
    entries = raw_data.get("categories", [])
    if not isinstance(entries, list):
        raise ValueError("Invalid category config: 'categories' must be a list.")

    parsed: list[CatalogCategory] = []
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        label = str(entry.get("label", "")).strip()
        slug = str(entry.get("slug", "")).strip().lower()
        if not label or not slug or label in seen:
            continue
        seen.add(label)
        parsed.append(
            CatalogCategory(
                label=label,
                slug=slug,
                label_en=str(entry.get("label_en", "")).strip(),
            )
        )
    return parsed
