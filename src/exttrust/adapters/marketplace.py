"""VS Code Marketplace adapter."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timezone
from typing import Any

import httpx

from exttrust.adapters.base import BaseAdapter
from exttrust.analyzers.normalizer import coerce_float, parse_timestamp
from exttrust.analyzers.resolver import RepoLinkResolver
from exttrust.models.schemas import ExtensionRecord

logger = logging.getLogger(__name__)

# Gallery query filter/flag values
FILTER_EXTENSION_NAME = 7
QUERY_FLAGS = 258  # IncludeVersions | IncludeStatistics (+ version properties)


def _statistic(extension: Mapping[str, Any], name: str) -> float | None:
    stats = extension.get("statistics")
    if not isinstance(stats, list):
        return None
    for stat in stats:
        if isinstance(stat, Mapping) and stat.get("statisticName") == name:
            return coerce_float(stat.get("value"))
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class MarketplaceAdapter(BaseAdapter):
    """Adapter for the Visual Studio Marketplace extension gallery.

    Data sources:
    - Extension query: POST {GALLERY_URL}/extensionquery
    - Manifest (package.json): version asset URI, fetched by the resolver
    """

    GALLERY_URL = "https://marketplace.visualstudio.com/_apis/public/gallery"
    API_VERSION = "3.0-preview.1"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        resolver: RepoLinkResolver | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            client: Optional httpx client for making requests.
            resolver: Repository link resolver. Defaults to one sharing the client.
        """
        self._client = client
        self.resolver = resolver or RepoLinkResolver(client=client)

    @property
    def registry(self) -> str:
        return "vscode-marketplace"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0)

    def _query_body(self, extension_id: str) -> dict:
        return {
            "filters": [
                {
                    "criteria": [{"filterType": FILTER_EXTENSION_NAME, "value": extension_id}],
                    "pageSize": 1,
                    "pageNumber": 1,
                }
            ],
            "flags": QUERY_FLAGS,
        }

    async def _query(self, extension_id: str) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.post(
                f"{self.GALLERY_URL}/extensionquery",
                params={"api-version": self.API_VERSION},
                json=self._query_body(extension_id),
                headers={
                    "Accept": f"application/json;api-version={self.API_VERSION}",
                    "Content-Type": "application/json",
                },
            )
        finally:
            if self._client is None:
                await client.aclose()

    async def fetch_extension(self, extension_id: str) -> ExtensionRecord:
        """Fetch details for a Marketplace extension.

        Args:
            extension_id: Identifier in ``publisher.extension`` form.

        Returns:
            ExtensionRecord with repository link resolved, or an error record.
        """
        try:
            response = await self._query(extension_id)
        except httpx.HTTPError as e:
            logger.warning(f"Marketplace query failed for {extension_id}: {e}")
            return ExtensionRecord.failed(extension_id, f"Request failed: {e}")

        if not response.is_success:
            return ExtensionRecord.failed(extension_id, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            return ExtensionRecord.failed(extension_id, "Invalid response")

        results = data.get("results") if isinstance(data, Mapping) else None
        first = results[0] if isinstance(results, list) and results else None
        extensions = first.get("extensions") if isinstance(first, Mapping) else None
        if not isinstance(extensions, list) or not extensions or not isinstance(extensions[0], Mapping):
            return ExtensionRecord.failed(extension_id, "Not found")

        return await self._to_record(extension_id, extensions[0])

    async def _to_record(self, extension_id: str, ext: Mapping[str, Any]) -> ExtensionRecord:
        """Convert a gallery extension entry into an ExtensionRecord."""
        versions = ext.get("versions")
        latest = versions[0] if isinstance(versions, list) and versions else None
        if not isinstance(latest, Mapping):
            latest = None
        current_version = _text((latest or {}).get("version"))

        # Calendar day of the last update, in UTC
        updated = parse_timestamp((latest or {}).get("lastUpdated") or ext.get("lastUpdated"))
        last_update_date = updated.astimezone(timezone.utc).date().isoformat() if updated else ""

        rating = _statistic(ext, "averagerating")
        rating_count = _statistic(ext, "ratingcount")
        installs = _statistic(ext, "install")

        publisher = ext.get("publisher")
        if not isinstance(publisher, Mapping):
            publisher = {}
        flags = publisher.get("flags")
        publisher_verified = isinstance(flags, str) and "verified" in flags
        extension_name = ext.get("extensionName")

        link = await self.resolver.resolve(latest, ext)

        return ExtensionRecord(
            extension_id=extension_id,
            publisher=_text(publisher.get("publisherName")),
            extension_name=_text(extension_name),
            current_version=current_version,
            last_version=current_version,
            last_version_update_date=last_update_date,
            rating=f"{rating:.2f}" if rating is not None else "",
            rating_count=str(round(rating_count)) if rating_count is not None else "",
            install_count=str(round(installs)) if installs is not None else "",
            publisher_verified=publisher_verified,
            has_public_repo=link.has_public_repo,
            repo_url=link.repo_url,
        )
