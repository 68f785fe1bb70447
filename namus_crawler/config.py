"""Crawler configuration.

Values come from, in order of precedence:

- explicit keyword overrides (the CLI flags)
- process environment variables
- a .env file in the working directory (only for keys not already set)
- built-in defaults

Environment variables:

- NAMUS_BASE_URL (default: https://www.namus.gov/api)
- NAMUS_CATEGORY (missing | unidentified | unclaimed, default: missing)
- NAMUS_MAX_IN_FLIGHT (default: 5)
- NAMUS_TIMEOUT seconds per request, > 0 (default: 30; "none" disables)
- NAMUS_PAGE_SIZE (default: 10000)
- NAMUS_USER_AGENT
"""

from __future__ import annotations

import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError

from namus_crawler.crawl.base import Category
from namus_crawler.crawl.client import DEFAULT_BASE_URL, DEFAULT_PAGE_SIZE
from namus_crawler.crawl.limiter import DEFAULT_MAX_IN_FLIGHT

_ENV_KEYS = {
    "base_url": "NAMUS_BASE_URL",
    "category": "NAMUS_CATEGORY",
    "max_in_flight": "NAMUS_MAX_IN_FLIGHT",
    "timeout": "NAMUS_TIMEOUT",
    "page_size": "NAMUS_PAGE_SIZE",
    "user_agent": "NAMUS_USER_AGENT",
}


class CrawlerSettings(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    category: Category = Category.MISSING
    max_in_flight: int = Field(DEFAULT_MAX_IN_FLIGHT, ge=1, description="Max concurrent requests")
    timeout: Optional[float] = Field(30.0, gt=0, description="Per-request timeout in seconds")
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1, description="Search page size (take)")
    user_agent: str = "namus-crawler/0.1"

    def headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent, "Accept": "application/json"}


def _load_env_from_file(env_path: Optional[str] = None) -> None:
    """Load environment variables from a .env file if present.

    Only sets variables that aren't already present in the process environment.
    """
    env_path = env_path or os.path.join(os.getcwd(), ".env")
    if not os.path.isfile(env_path):
        return
    with open(env_path, "r", encoding="utf-8") as f:
        for line in f:
            s = line.strip()
            if not s or s.startswith("#") or "=" not in s:
                continue
            key, val = s.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")
            if key and not os.environ.get(key):
                os.environ[key] = val


def _coerce(field: str, raw: str) -> Any:
    if field == "category":
        return Category.parse(raw)
    if field == "timeout" and raw.strip().lower() in ("", "none"):
        return None
    return raw


def load_settings(env_file: Optional[str] = None, **overrides: Any) -> CrawlerSettings:
    """Build settings from the environment, then apply non-None overrides.

    Raises ValueError naming the offending variable when a value is invalid.
    """
    _load_env_from_file(env_file)

    values: Dict[str, Any] = {}
    for field, env_key in _ENV_KEYS.items():
        raw = os.getenv(env_key)
        if raw is None:
            continue
        try:
            values[field] = _coerce(field, raw)
        except ValueError as exc:
            raise ValueError(f"{env_key}: {exc}") from exc
        try:
            CrawlerSettings.model_validate({field: values[field]})
        except ValidationError as exc:
            raise ValueError(f"{env_key}: invalid value {raw!r}") from exc

    for field, value in overrides.items():
        if field not in _ENV_KEYS:
            raise TypeError(f"Unknown setting: {field}")
        if value is not None:
            values[field] = value

    try:
        return CrawlerSettings(**values)
    except ValidationError as exc:
        raise ValueError(f"Invalid crawler settings: {exc}") from exc
