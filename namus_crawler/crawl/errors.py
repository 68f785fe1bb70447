from __future__ import annotations

from typing import Optional


class FetchError(Exception):
    """A single remote fetch failed.

    Subclasses set ``kind`` so failures can be grouped without isinstance checks.
    """

    kind: str = "fetch"

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.url = url

    def __str__(self) -> str:
        if self.url:
            return f"{self.message} ({self.url})"
        return self.message


class TransportError(FetchError):
    """Network-level failure: connection refused, DNS, timeout."""

    kind = "transport"


class BadResponseError(FetchError):
    """The payload could not be decoded or did not have the expected shape."""

    kind = "bad_response"


class StatusError(FetchError):
    """The remote answered with a non-success status code."""

    kind = "status"

    def __init__(self, status_code: int, *, url: Optional[str] = None, body: str = "") -> None:
        super().__init__(f"HTTP {status_code}", url=url)
        self.status_code = status_code
        self.body = body

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class DiscoveryError(RuntimeError):
    """Partition discovery failed, so the run cannot proceed."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"Partition discovery failed: {cause}")
        self.cause = cause


def error_kind(exc: BaseException) -> str:
    return getattr(exc, "kind", "unexpected")
