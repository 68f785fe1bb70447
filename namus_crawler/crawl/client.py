from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from namus_crawler.models import Predicate, SearchRequest, SearchResponse, StateEntry

from .base import Category, Partition, RecordBody, RecordIdentifier
from .errors import BadResponseError, StatusError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.namus.gov/api"
DEFAULT_PAGE_SIZE = 10000

_STATES_ADAPTER = TypeAdapter(List[StateEntry])


class NamUsClient:
    """Single-request operations against the NamUs case-set API.

    Each method issues exactly one HTTP call and either returns the parsed
    result or raises a FetchError subclass. No retries happen here.

    The underlying httpx.AsyncClient is shared by all calls of a run; use the
    client as an async context manager (or call aclose()) to release it.
    """

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: Optional[float] = 30.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = int(page_size)
        self.headers = headers or {"User-Agent": "namus-crawler/0.1"}
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers=self.headers,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self) -> "NamUsClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def states_url(self) -> str:
        return f"{self.base_url}/CaseSets/NamUs/States"

    def search_url(self, category: Category) -> str:
        return f"{self.base_url}/CaseSets/NamUs/{category.value}/Search"

    def case_url(self, case_id: RecordIdentifier, category: Category) -> str:
        return f"{self.base_url}/CaseSets/NamUs/{category.value}/Cases/{case_id}"

    async def list_partitions(self) -> List[Partition]:
        """Return the state names offered by the discovery endpoint."""
        url = self.states_url()
        payload = await self._request_json("GET", url)
        try:
            states = _STATES_ADAPTER.validate_python(payload)
        except ValidationError as exc:
            logger.debug("Unexpected states payload: %r", payload)
            raise BadResponseError(f"Missing or invalid state name: {exc.error_count()} error(s)", url=url) from exc
        return [s.name for s in states]

    async def search_partition(self, partition: Partition, category: Category) -> List[RecordIdentifier]:
        """Return the case numbers filed under one state.

        Only the first page of `page_size` hits is requested. When the remote
        reports more matches than were returned, a warning is logged and the
        first page is still returned.
        """
        url = self.search_url(category)
        body = SearchRequest(
            take=self.page_size,
            predicates=[Predicate(field=category.state_field, values=[partition])],
        )
        payload = await self._request_json("POST", url, json=body.model_dump())
        try:
            parsed = SearchResponse.model_validate(payload)
        except ValidationError as exc:
            logger.debug("Unexpected search payload for %s: %r", partition, payload)
            raise BadResponseError(f"Missing or invalid search results: {exc.error_count()} error(s)", url=url) from exc

        ids = [hit.namus2Number for hit in parsed.results]
        if parsed.count is not None and parsed.count > len(ids):
            logger.warning(
                "Search for %s in %s matched %d cases but only %d were returned (page size %d)",
                partition,
                category.display_name,
                parsed.count,
                len(ids),
                self.page_size,
            )
        return ids

    async def get_record(self, case_id: RecordIdentifier, category: Category) -> RecordBody:
        """Return the raw response bytes of one case, undecoded."""
        resp = await self._send("GET", self.case_url(case_id, category))
        return resp.content

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        resp = await self._send(method, url, **kwargs)
        try:
            return resp.json()
        except ValueError as exc:
            raise BadResponseError("Response is not valid JSON", url=url) from exc

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TransportError as exc:
            raise TransportError(f"{type(exc).__name__}: {exc}", url=url) from exc
        except httpx.RequestError as exc:
            # decoding errors, redirect loops
            raise BadResponseError(f"{type(exc).__name__}: {exc}", url=url) from exc
        if not resp.is_success:
            raise StatusError(resp.status_code, url=url, body=resp.text)
        return resp
