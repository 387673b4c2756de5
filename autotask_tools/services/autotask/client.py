"""
Autotask PSA REST API client — async httpx.

Reads the entity endpoints the agent tools and the name/field caches need.
Credentials are passed in (no global state); the tenant's REST base URL is
auto-detected from the zone-information endpoint when not configured.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from autotask_tools.config import ZONE_INFORMATION_URL

logger = logging.getLogger(__name__)

API_VERSION = "v1.0"
REQUEST_TIMEOUT = 30.0  # seconds
MAX_QUERY_RECORDS = 500  # hard cap enforced by the query endpoint

RETRYABLE_STATUS = (429, 500, 502, 503, 504)

# Used when a query has no caller filters: the endpoint rejects empty filters
MATCH_ALL_FILTER: Dict[str, Any] = {"op": "gte", "field": "id", "value": 0}


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class APIError(Exception):
    """Custom exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None,
        retryable: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response
        if retryable is None:
            retryable = status_code in RETRYABLE_STATUS
        self.retryable = retryable

    @property
    def is_method_not_allowed(self) -> bool:
        return self.status_code == 405


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, APIError) and exc.retryable


def normalize_api_url(url: str) -> str:
    """``https://webservices5.autotask.net/ATServicesRest/`` → ``.../ATServicesRest/v1.0``"""
    url = url.rstrip("/")
    if not url.lower().endswith(f"/{API_VERSION}"):
        url = f"{url}/{API_VERSION}"
    return url


# ---------------------------------------------------------------------------
# BaseAPIClient — async httpx
# ---------------------------------------------------------------------------

class BaseAPIClient:
    """Base API client with authentication, zone detection and retries (async)."""

    def __init__(
        self,
        username: str,
        secret: str,
        integration_code: str,
        api_url: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = 3,
    ):
        self.username = username
        self.secret = secret
        self.integration_code = integration_code
        self.api_url = normalize_api_url(api_url) if api_url else None
        self.max_retries = max(0, max_retries)
        self._wait = wait_exponential(multiplier=1, min=1, max=10)

        # Shared async client (caller must close via ``aclose()``)
        self._http = httpx.AsyncClient(
            timeout=timeout,
            headers=self._default_headers(),
        )

    # -- helpers --

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "ApiIntegrationCode": self.integration_code,
            "UserName": self.username,
            "Secret": self.secret,
        }

    @staticmethod
    def _check_api_response(data: Any, status_code: int) -> None:
        """Raise ``APIError`` if the JSON body carries an ``errors`` list."""
        if not isinstance(data, dict):
            return
        errors = data.get("errors")
        if errors:
            if isinstance(errors, list):
                detail = "; ".join(str(e) for e in errors)
            else:
                detail = str(errors)
            raise APIError(
                f"API returned errors: {detail}",
                status_code=status_code,
                response=data,
            )

    async def detect_api_url(self) -> str:
        """Resolve (and remember) the tenant's REST base URL."""
        if self.api_url:
            return self.api_url

        logger.info(f"Detecting Autotask zone for {self.username}")
        try:
            resp = await self._http.get(
                ZONE_INFORMATION_URL, params={"user": self.username}
            )
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPStatusError as exc:
            raise APIError(
                f"Zone detection failed: HTTP {exc.response.status_code}",
                status_code=exc.response.status_code,
                response=exc.response.text,
            ) from exc
        except httpx.RequestError as exc:
            raise APIError(f"Zone detection failed: {exc}") from exc
        except ValueError as exc:
            raise APIError("Zone detection returned a non-JSON body") from exc

        zone_url = data.get("url") if isinstance(data, dict) else None
        if not zone_url:
            raise APIError("Zone detection response has no 'url'", response=data)

        self.api_url = normalize_api_url(zone_url)
        logger.info(f"Autotask zone {data.get('zoneName', '?')} → {self.api_url}")
        return self.api_url

    # -- core request methods --

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            resp = await self._http.request(
                method, url, params=params, json=json, headers=self._auth_headers()
            )
            resp.raise_for_status()
            try:
                data = resp.json()
            except ValueError:
                return {"text": resp.text}
            self._check_api_response(data, resp.status_code)
            return data
        except httpx.HTTPStatusError as exc:
            raise APIError(
                f"HTTP {exc.response.status_code}: {exc.response.text[:500]}",
                status_code=exc.response.status_code,
                response=exc.response.text,
            ) from exc
        except httpx.RequestError as exc:
            raise APIError(f"Request failed: {exc}", retryable=True) from exc

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if path.startswith("http"):
            url = path
        else:
            url = f"{await self.detect_api_url()}{path}"

        async for attempt in AsyncRetrying(
            retry=retry_if_exception(_is_retryable),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        f"Retrying {method} {url} "
                        f"(attempt {attempt.retry_state.attempt_number})"
                    )
                return await self._send(method, url, params=params, json=json)
        raise APIError(f"{method} {url} was not attempted")

    async def _get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._request("GET", path, params=params)

    async def _post(
        self,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self._request("POST", path, params=params, json=json)

    async def aclose(self) -> None:
        await self._http.aclose()

    # context-manager support
    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()


# ---------------------------------------------------------------------------
# EntityAPI — one per Autotask entity type
# ---------------------------------------------------------------------------

class EntityAPI:
    """get / query / paging / field metadata for one entity type."""

    def __init__(self, client: BaseAPIClient, entity: str):
        self.client = client
        self.entity = entity

    async def get(self, entity_id: int) -> Optional[Dict[str, Any]]:
        data = await self.client._get(f"/{self.entity}/{entity_id}")
        return data.get("item") or None

    async def query(
        self,
        filters: Optional[List[Dict[str, Any]]] = None,
        max_records: Optional[int] = None,
        include_fields: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"filter": filters or [MATCH_ALL_FILTER]}
        if max_records is not None:
            body["MaxRecords"] = min(max_records, MAX_QUERY_RECORDS)
        if include_fields:
            body["IncludeFields"] = include_fields
        return await self.client._post(f"/{self.entity}/query", json=body)

    async def query_page(
        self,
        filters: Optional[List[Dict[str, Any]]] = None,
        page: int = 1,
        page_size: int = 25,
    ) -> List[Dict[str, Any]]:
        """Return page ``page`` (1-based) by walking ``nextPageUrl`` links."""
        data = await self.query(filters, max_records=page_size)
        for _ in range(max(page, 1) - 1):
            next_url = (data.get("pageDetails") or {}).get("nextPageUrl")
            if not next_url:
                return []
            data = await self.client._get(next_url)
        return list(data.get("items") or [])

    async def query_all(
        self,
        filters: Optional[List[Dict[str, Any]]] = None,
        page_size: int = MAX_QUERY_RECORDS,
        max_pages: int = 20,
        include_fields: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Follow ``nextPageUrl`` until exhausted or ``max_pages`` is reached."""
        data = await self.query(
            filters, max_records=page_size, include_fields=include_fields
        )
        items: List[Dict[str, Any]] = list(data.get("items") or [])
        pages = 1
        next_url = (data.get("pageDetails") or {}).get("nextPageUrl")
        while next_url and pages < max_pages:
            data = await self.client._get(next_url)
            items.extend(data.get("items") or [])
            pages += 1
            next_url = (data.get("pageDetails") or {}).get("nextPageUrl")

        if next_url:
            logger.warning(
                f"{self.entity}: stopped after {pages} pages "
                f"({len(items)} records); more are available"
            )
        return items

    async def field_info(self) -> List[Dict[str, Any]]:
        data = await self.client._get(f"/{self.entity}/entityInformation/fields")
        return list(data.get("fields") or data.get("items") or [])


# ---------------------------------------------------------------------------
# AutotaskAPIClient — aggregator
# ---------------------------------------------------------------------------

class AutotaskAPIClient(BaseAPIClient):
    """Main Autotask API client — one EntityAPI per entity the tools read."""

    def __init__(
        self,
        username: str,
        secret: str,
        integration_code: str,
        api_url: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = 3,
    ):
        super().__init__(
            username, secret, integration_code, api_url, timeout, max_retries
        )

        # Sub-clients
        self.companies = EntityAPI(self, "Companies")
        self.tickets = EntityAPI(self, "Tickets")
        self.projects = EntityAPI(self, "Projects")
        self.resources = EntityAPI(self, "Resources")

    def entity(self, entity_type: str) -> EntityAPI:
        """EntityAPI for an arbitrary entity type name (e.g. ``"Tickets"``)."""
        return EntityAPI(self, entity_type)

    async def test_connection(self) -> bool:
        try:
            await self.companies.query(max_records=1, include_fields=["id"])
            return True
        except APIError as e:
            logger.error(f"Autotask connection test failed: {e.message}")
            return False
