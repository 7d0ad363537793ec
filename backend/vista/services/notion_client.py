"""
Async Notion API client.

Covers the handful of endpoints the sync engine needs:
- query a database (paginated, newest first)
- retrieve a page
- list block children (paginated)
- fetch a whole block tree with children merged under ``children``

Every non-2xx answer, and every transport failure, becomes a SourceApiError
carrying Notion's error ``code`` (e.g. ``object_not_found``) when present.
"""

import logging
from typing import Any, AsyncIterator, Optional

import httpx

from vista.core.config import settings
from vista.core.exceptions import SourceApiError

logger = logging.getLogger(__name__)

# Block types whose children are separate pages/databases, not page content
SKIP_CHILDREN_TYPES = frozenset({"child_page", "child_database"})


class NotionClient:
    """
    Thin async wrapper over the Notion REST API for one integration secret.

    Example:
        >>> async with NotionClient(profile.notion_api_key) as notion:
        ...     async for page in notion.iter_database_pages(profile.notion_database_id):
        ...         blocks = await notion.fetch_block_tree(page["id"])
    """

    def __init__(
        self,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        page_size: Optional[int] = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.NOTION_API_BASE_URL).rstrip("/")
        self.api_version = api_version or settings.NOTION_API_VERSION
        self.page_size = page_size or settings.NOTION_PAGE_SIZE
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.NOTION_REQUEST_TIMEOUT)

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Notion-Version": self.api_version,
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = await self._client.request(method, url, headers=self.headers, json=json, params=params)
        except httpx.HTTPError as e:
            raise SourceApiError(f"Notion request {method} {path} failed: {e}") from e

        if response.status_code >= 400:
            code = None
            message = response.text
            try:
                body = response.json()
                code = body.get("code")
                message = body.get("message") or message
            except ValueError:
                pass
            raise SourceApiError(
                f"Notion API error on {method} {path}: {message}",
                status_code=response.status_code,
                code=code,
            )

        return response.json()

    # ========================================
    # Databases
    # ========================================

    async def query_database(self, database_id: str, start_cursor: Optional[str] = None) -> dict[str, Any]:
        """One page of database results, newest created first."""
        body: dict[str, Any] = {
            "page_size": self.page_size,
            "sorts": [{"timestamp": "created_time", "direction": "descending"}],
        }
        if start_cursor:
            body["start_cursor"] = start_cursor
        return await self._request("POST", f"databases/{database_id}/query", json=body)

    async def iter_database_pages(self, database_id: str) -> AsyncIterator[dict[str, Any]]:
        """Yield every page of a database, following ``next_cursor``."""
        cursor: Optional[str] = None
        while True:
            result = await self.query_database(database_id, start_cursor=cursor)
            for page in result.get("results") or []:
                yield page
            if not result.get("has_more") or not result.get("next_cursor"):
                break
            cursor = result["next_cursor"]

    # ========================================
    # Pages & Blocks
    # ========================================

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("GET", f"pages/{page_id}")

    async def list_block_children(self, block_id: str) -> list[dict[str, Any]]:
        """All direct children of a block (or page), across result pages."""
        children: list[dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            params: dict[str, Any] = {"page_size": self.page_size}
            if cursor:
                params["start_cursor"] = cursor
            result = await self._request("GET", f"blocks/{block_id}/children", params=params)
            children.extend(result.get("results") or [])
            if not result.get("has_more") or not result.get("next_cursor"):
                break
            cursor = result["next_cursor"]
        return children

    async def fetch_block_tree(self, block_id: str) -> list[dict[str, Any]]:
        """
        Fetch a block's children recursively.

        Nested children are merged into each block under ``children``. A
        failure fetching one nested level is logged and leaves that block
        with ``children: []``; a failure at the top level raises.

        Raises:
            SourceApiError: If the top-level children cannot be listed
        """
        blocks = await self.list_block_children(block_id)
        tree = []
        for block in blocks:
            if block.get("has_children") and block.get("type") not in SKIP_CHILDREN_TYPES:
                try:
                    children = await self.fetch_block_tree(block["id"])
                except SourceApiError as e:
                    logger.warning(f"Could not fetch children of block {block.get('id')}: {e}")
                    children = []
                block = {**block, "children": children}
            tree.append(block)
        return tree
