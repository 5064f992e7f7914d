"""
inFlow Inventory API Client

Handles authenticated calls to the inFlow Cloud API. Every endpoint lives
under ``<base_url>/<company_id>``; the API key is sent verbatim in the
``Authorization`` header.

Collections are paged with a cursor: ``count`` sets the page size and
``after`` names the last ``entityId`` of the previous page.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from core.config import DEFAULT_INFLOW_BASE_URL, Settings

logger = structlog.get_logger()

PAGE_SIZE = 50


class InFlowAPIError(RuntimeError):
    """Raised when an inFlow request fails (HTTP error or network failure)."""

    def __init__(self, message: str, *, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class MalformedResponseError(InFlowAPIError):
    """Raised when a response body does not have the expected shape."""


def _is_transient(exc: BaseException) -> bool:
    if not isinstance(exc, InFlowAPIError) or isinstance(exc, MalformedResponseError):
        return False
    return exc.status_code is None or exc.status_code == 429 or exc.status_code >= 500


def _error_from_response(response: httpx.Response) -> InFlowAPIError:
    message = response.reason_phrase or f"HTTP {response.status_code}"
    code = "UNKNOWN_ERROR"
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        message = payload["error"].get("message") or message
        code = payload["error"].get("code") or code
    return InFlowAPIError(
        f"inFlow API Error [{code}]: {message}",
        status_code=response.status_code,
        code=code,
    )


class InFlowClient:
    """Client for inFlow Inventory API interactions."""

    def __init__(
        self,
        company_id: str,
        api_key: str,
        *,
        base_url: str = DEFAULT_INFLOW_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.company_id = company_id
        self.base_url = f"{base_url.rstrip('/')}/{company_id}"
        self.timeout = timeout
        self.headers = {
            "Authorization": api_key,
            "Content-Type": "application/json",
        }
        self._transport = transport
        self.logger = logger.bind(company_id=company_id)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "InFlowClient":
        return cls(
            settings.inflow_company_id,
            settings.inflow_api_key,
            base_url=settings.inflow_base_url,
            timeout=settings.inflow_timeout_seconds,
            **kwargs,
        )

    async def request(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
    ) -> Any:
        """Issue one API call and return the decoded JSON body (``None`` when empty).

        Raises:
            InFlowAPIError: On any non-2xx answer or transport failure.
        """
        url = f"{self.base_url}{endpoint}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method,
                    url,
                    headers=self.headers,
                    json=body or None,
                    params=query or None,
                )
        except httpx.HTTPError as exc:
            self.logger.warning("inflow.request.failed", method=method, endpoint=endpoint, error=str(exc))
            raise InFlowAPIError(f"inFlow API Request Failed: {exc}") from exc

        if response.is_error:
            error = _error_from_response(response)
            self.logger.warning(
                "inflow.request.failed",
                method=method,
                endpoint=endpoint,
                status_code=response.status_code,
                error=str(error),
            )
            raise error

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"inFlow API returned a non-JSON body for {endpoint}",
                status_code=response.status_code,
            ) from exc

    async def fetch_page(self, collection_path: str, query: dict[str, Any]) -> list[dict[str, Any]]:
        """Fetch a single page of a collection.

        Returns at most ``query["count"]`` records. No retry: callers on a
        timer treat the next tick as the retry.
        """
        data = await self.request("GET", collection_path, query=query)
        if not isinstance(data, list):
            raise MalformedResponseError(
                f"Expected a list from {collection_path}, got {type(data).__name__}"
            )
        return data

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        reraise=True,
    )
    async def _list_page(self, endpoint: str, query: dict[str, Any]) -> list[dict[str, Any]]:
        return await self.fetch_page(endpoint, query)

    async def list_all(
        self,
        endpoint: str,
        query: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Walk every page of a collection, following the ``after`` cursor."""
        params = dict(query or {})
        params["count"] = PAGE_SIZE
        records: list[dict[str, Any]] = []

        while True:
            page = await self._list_page(endpoint, dict(params))
            if not page:
                break
            records.extend(page)
            if limit and len(records) >= limit:
                return records[:limit]
            if len(page) < PAGE_SIZE:
                break
            params["after"] = page[-1].get("entityId")

        return records
