# shelf/utils/http.py

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import requests

from shelf.errors import ApiError
from shelf.models import CatalogEntry, ContextKind, entries_from_payload, parse_context_key

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8080"


class ShelfClient:
    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30
    ):
        """Client for the library backend's REST API

        Args:
            api_url: Backend base URL. Falls back to the SHELF_API_URL environment variable
            token: Optional bearer token. Falls back to SHELF_API_TOKEN
            session: requests session to reuse, mainly for tests
            timeout: Per-request timeout in seconds
        """
        self.api_url = (api_url or os.getenv("SHELF_API_URL", DEFAULT_API_URL)).rstrip("/")
        self.base_url = f"{self.api_url}/api/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        token = token or os.getenv("SHELF_API_TOKEN")
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise ApiError(None, str(e)) from e

        if response.status_code >= 400:
            # The backend answers errors with {"error": "..."}
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                message = payload.get("error") or payload.get("message") or ""
            else:
                message = response.text or response.reason or ""
            logger.debug(f"{method} {url} returned {response.status_code}: {message}")
            raise ApiError(response.status_code, message)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # Catalog
    def get_author_books(self, author_id: str) -> List[CatalogEntry]:
        data = self._request("GET", f"/hardcover/author/{author_id}")
        return entries_from_payload((data or {}).get("books") or [])

    def get_series_books(self, series_id: str) -> List[CatalogEntry]:
        data = self._request("GET", f"/hardcover/series/{series_id}")
        return entries_from_payload((data or {}).get("books") or [])

    def search_books(self, query: str) -> List[CatalogEntry]:
        data = self._request("GET", "/search/hardcover", params={"q": query, "type": "book"})
        if isinstance(data, dict):
            data = data.get("books") or data.get("results") or []
        return entries_from_payload(data or [])

    def fetch_context(self, key: str) -> List[CatalogEntry]:
        """Fetch the entries behind a context key such as ``author:42``."""
        kind, ident = parse_context_key(key)
        if kind == ContextKind.AUTHOR:
            return self.get_author_books(ident)
        if kind == ContextKind.SERIES:
            return self.get_series_books(ident)
        return self.search_books(ident)

    # Library mutations
    def add_book(self, external_id: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        data = self._request("POST", f"/hardcover/book/{external_id}", json=options or {"monitored": True})
        if not isinstance(data, dict) or "bookId" not in data:
            raise ApiError(None, f"Unexpected response adding {external_id}")
        return data

    def delete_book(self, local_id: int) -> None:
        self._request("DELETE", f"/books/{local_id}")

    def update_book(self, local_id: int, monitored: Optional[bool] = None) -> Optional[Dict[str, Any]]:
        updates = {}
        if monitored is not None:
            updates["monitored"] = monitored
        return self._request("PUT", f"/books/{local_id}", json=updates)


class LibraryGateway:
    """Awaitable wrapper that runs the blocking client off the event loop."""

    def __init__(self, client: ShelfClient):
        self.client = client

    async def fetch(self, key: str) -> List[CatalogEntry]:
        return await asyncio.to_thread(self.client.fetch_context, key)

    async def add_book(self, external_id: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await asyncio.to_thread(self.client.add_book, external_id, options)

    async def delete_book(self, local_id: int) -> None:
        await asyncio.to_thread(self.client.delete_book, local_id)

    async def update_book(self, local_id: int, monitored: Optional[bool] = None):
        return await asyncio.to_thread(self.client.update_book, local_id, monitored)
