"""
Discovery configuration models.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from app.domain.discovery import TerminationPolicy


class BrowserMode:
    NONE = "none"
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True)
class BrowserSettings:
    """
    Headless browser used for client-rendered catalog pages.

    mode=remote connects to a hosted WebDriver endpoint (browserless-style)
    and requires a token.
    """

    mode: str = BrowserMode.NONE
    remote_url: str = "https://chrome.browserless.io/webdriver"
    token: str | None = None
    page_load_timeout_seconds: float = 60.0
    settle_seconds: float = 2.0
    screenshot_dir: str | None = None


@dataclass(frozen=True)
class DiscoverySettings:
    """
    Runtime settings for catalog discovery and metadata sync.
    """

    portal_url: str
    api_base_url: str
    datasets_path: str
    user_agent: str
    timeout_seconds: float
    rate_limit_per_second: float
    page_size: int
    api_rows: int
    categories_path: str
    pagination_policy: TerminationPolicy = field(default_factory=TerminationPolicy)
    scroll_policy: TerminationPolicy = field(
        default_factory=lambda: TerminationPolicy(max_steps=30, no_new_result_streak=3)
    )
    search_terms: tuple[str, ...] = ("ا", "م", "ب", "ع", "ت")
    browser: BrowserSettings = field(default_factory=BrowserSettings)

    @property
    def datasets_url(self) -> str:
        return f"{self.portal_url.rstrip('/')}/{self.datasets_path.strip('/')}"

    def dataset_view_url(self, external_id: str) -> str:
        return f"{self.datasets_url}/view/{external_id}"

    def action_url(self, action: str) -> str:
        return f"{self.api_base_url.rstrip('/')}/3/action/{action}"
