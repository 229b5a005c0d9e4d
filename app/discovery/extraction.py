"""
Dataset identifier extraction from catalog HTML, text, and JSON payloads.

Every function here is pure and never raises on malformed input: a page or
payload that cannot be understood simply yields no identifiers.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from typing import Any

from bs4 import BeautifulSoup

from app.domain.discovery import CatalogCandidate

UUID_PATTERN = r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}"
VIEW_PATH_REGEX = re.compile(rf"/datasets/view/({UUID_PATTERN})", flags=re.IGNORECASE)
UUID_REGEX = re.compile(UUID_PATTERN, flags=re.IGNORECASE)
_UUID_FULL_REGEX = re.compile(rf"^{UUID_PATTERN}$")

SENTINEL_MARKER = "0000-0000"
SENTINEL_PREFIX = "00000000"
CONTAINER_KEYS = ("result", "results", "data", "datasets", "items", "packages")
ID_KEYS = ("id", "uuid", "package_id", "name")
TITLE_KEYS = ("title", "name")
TITLE_AR_KEYS = ("title_ar", "titleAr")
DESCRIPTION_KEYS = ("notes", "description")
_MAX_DEPTH = 4


def normalize_dataset_id(value: Any) -> str | None:
    """
    Return the lower-cased id when value is a usable dataset UUID.
    """

    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    if not _UUID_FULL_REGEX.match(candidate):
        return None
    if SENTINEL_MARKER in candidate or candidate.startswith(SENTINEL_PREFIX):
        return None
    return candidate


def _ordered_unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def extract_dataset_ids(text: Any) -> list[str]:
    """
    Collect dataset ids from dataset-view links first, then bare UUID tokens.
    """

    if not isinstance(text, str) or not text:
        return []

    found: list[str] = []
    for match in VIEW_PATH_REGEX.finditer(text):
        normalized = normalize_dataset_id(match.group(1))
        if normalized:
            found.append(normalized)
    for match in UUID_REGEX.finditer(text):
        normalized = normalize_dataset_id(match.group(0))
        if normalized:
            found.append(normalized)
    return _ordered_unique(found)


def extract_link_candidates(html: Any) -> list[CatalogCandidate]:
    """
    Read dataset cards from rendered listing HTML; the anchor text becomes the title.
    """

    if not isinstance(html, str) or not html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    candidates: dict[str, CatalogCandidate] = {}
    for anchor in soup.find_all("a", href=True):
        match = VIEW_PATH_REGEX.search(str(anchor.get("href", "")))
        if not match:
            continue
        external_id = normalize_dataset_id(match.group(1))
        if not external_id:
            continue
        title = " ".join(anchor.get_text(" ", strip=True).split()) or None
        candidate = CatalogCandidate(external_id=external_id, title_ar=title)
        existing = candidates.get(external_id)
        candidates[external_id] = existing.enrich(candidate) if existing else candidate
    return list(candidates.values())


def extract_page_candidates(html: Any) -> list[CatalogCandidate]:
    """
    Link candidates first, then any remaining UUID tokens found in the raw text.
    """

    by_id = {candidate.external_id: candidate for candidate in extract_link_candidates(html)}
    for external_id in extract_dataset_ids(html):
        by_id.setdefault(external_id, CatalogCandidate(external_id=external_id))
    return list(by_id.values())


def localized_text(value: Any, *, preferred_language: str = "ar") -> str | None:
    """
    Strip a catalog text field; multilingual dicts resolve to preferred_language first.
    """

    if isinstance(value, dict):
        value = value.get(preferred_language) or value.get("en") or value.get("ar")
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _first_text(item: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = localized_text(item.get(key))
        if value:
            return value
    return None


def _candidate_from_item(item: dict[str, Any]) -> CatalogCandidate | None:
    external_id = None
    for key in ID_KEYS:
        external_id = normalize_dataset_id(item.get(key))
        if external_id:
            break
    if external_id is None:
        return None

    title = _first_text(item, TITLE_KEYS)
    if title and normalize_dataset_id(title):
        title = None
    return CatalogCandidate(
        external_id=external_id,
        title=title,
        title_ar=_first_text(item, TITLE_AR_KEYS),
        description=_first_text(item, DESCRIPTION_KEYS),
    )


def _walk(node: Any, depth: int, out: list[CatalogCandidate]) -> None:
    if depth > _MAX_DEPTH:
        return
    if isinstance(node, list):
        for item in node:
            if isinstance(item, dict):
                candidate = _candidate_from_item(item)
                if candidate is not None:
                    out.append(candidate)
                    continue
            _walk(item, depth + 1, out)
        return
    if isinstance(node, dict):
        for key in CONTAINER_KEYS:
            if key in node:
                _walk(node[key], depth + 1, out)


def extract_candidates(payload: Any) -> list[CatalogCandidate]:
    """
    Recover dataset candidates from a decoded catalog JSON payload.

    Only the known container keys are followed (`result.results`, `results`,
    `data`, `datasets`, `items`, `packages`); duplicates are merged in order.
    """

    found: list[CatalogCandidate] = []
    _walk(payload, 0, found)

    merged: dict[str, CatalogCandidate] = {}
    for candidate in found:
        existing = merged.get(candidate.external_id)
        merged[candidate.external_id] = existing.enrich(candidate) if existing else candidate
    return list(merged.values())


def extract_candidates_from_text(text: Any) -> list[CatalogCandidate]:
    if not isinstance(text, str) or not text.strip():
        return []
    try:
        payload = json.loads(text)
    except ValueError:
        return []
    return extract_candidates(payload)
