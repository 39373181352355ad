"""Resolve and classify an extension's declared source repository.

A repository counts as public only when its URL points at an allow-listed
hosting provider with an owner/name path and, for GitHub, the repository
actually exists.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote, urlparse

import httpx

from exttrust.analyzers.github import GitHubFetcher
from exttrust.models.schemas import RepoLink, RepoRef

logger = logging.getLogger(__name__)

ASSET_TYPE_REPOSITORY = "Microsoft.VisualStudio.Services.Links.Source"
ASSET_TYPE_MANIFEST = "Microsoft.VisualStudio.Code.Manifest"

# Known public hosts; overridable via rules.supplyChain.publicRepoHosts
DEFAULT_PUBLIC_REPO_HOSTS = (
    "github.com",
    "gitlab.com",
    "bitbucket.org",
    "sourceforge.net",
    "codeberg.org",
)

# npm-style "host:owner/repo" shorthands
SHORTHAND_HOSTS = {
    "github": "https://github.com",
    "gitlab": "https://gitlab.com",
    "bitbucket": "https://bitbucket.org",
}

# user@host:owner/repo (scp-like SSH form, no scheme)
_SSH_PATTERN = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[\w.-]+):(?P<path>[^/].*)$")


def public_repo_hosts(policy_rules: Mapping[str, Any] | None) -> tuple[str, ...]:
    """Return the host allow-list from supplyChain rules, or the default list."""
    if not policy_rules:
        return DEFAULT_PUBLIC_REPO_HOSTS
    hosts = policy_rules.get("publicRepoHosts")
    if not isinstance(hosts, list):
        return DEFAULT_PUBLIC_REPO_HOSTS
    cleaned = tuple(h.strip().lower() for h in hosts if isinstance(h, str) and h.strip())
    return cleaned or DEFAULT_PUBLIC_REPO_HOSTS


def _to_parseable(url: str) -> str:
    """Rewrite an scp-like SSH address to an https URL."""
    match = _SSH_PATTERN.match(url)
    if match and "://" not in url:
        return f"https://{match['user']}@{match['host']}/{match['path']}"
    return url


def _split_url(url: str | None) -> tuple[str, list[str]] | None:
    """Return (normalized host, path segments) for a URL, or None if invalid."""
    if not url or not isinstance(url, str):
        return None
    try:
        parsed = urlparse(_to_parseable(url.strip()))
        host = parsed.hostname
    except ValueError:
        return None
    if not parsed.scheme or not host:
        return None
    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    segments = [s for s in parsed.path.split("/") if s]
    return host, segments


def is_public_repo_url(url: str | None, hosts: Iterable[str] = DEFAULT_PUBLIC_REPO_HOSTS) -> bool:
    """Check that a URL points at an owner/repo path on an allow-listed host.

    Hosts match exactly or as a subdomain. Existence is not checked here.
    """
    split = _split_url(url)
    if split is None:
        return False
    host, segments = split
    if not any(host == h or host.endswith("." + h) for h in hosts):
        return False
    return len(segments) >= 2


def parse_github_repo_url(url: str | None) -> RepoRef | None:
    """Parse a GitHub repository URL into a RepoRef.

    Supports https URLs (with or without ``www.``, trailing slash, ``.git``),
    scheme-less ``github.com/owner/repo`` and ``git@github.com:owner/repo.git``.
    """
    if isinstance(url, str):
        url = url.strip()
        if url and "://" not in url and not _SSH_PATTERN.match(url):
            url = f"https://{url}"
    split = _split_url(url)
    if split is None:
        return None
    host, segments = split
    if host != "github.com" or len(segments) < 2:
        return None
    repo = segments[1]
    if repo.endswith(".git"):
        repo = repo[:-4]
    if not repo:
        return None
    return RepoRef(owner=segments[0], repo=repo)


def repository_url_from_version(version: Any) -> str | None:
    """Read the source-link property of a gallery version entry."""
    if not isinstance(version, Mapping):
        return None
    properties = version.get("properties")
    if not isinstance(properties, list):
        return None
    for prop in properties:
        if not isinstance(prop, Mapping) or prop.get("key") != ASSET_TYPE_REPOSITORY:
            continue
        value = prop.get("value")
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def repository_url_from_manifest(manifest: Any) -> str | None:
    """Extract a repository URL from an extension manifest (package.json).

    Handles:
    - "repository": "https://github.com/owner/repo"
    - "repository": {"type": "git", "url": "..."}
    - "repository": "github:owner/repo"
    """
    if not isinstance(manifest, Mapping):
        return None
    repo = manifest.get("repository")
    if isinstance(repo, str):
        value = repo.strip()
        prefix, sep, rest = value.partition(":")
        if sep and prefix.lower() in SHORTHAND_HOSTS:
            rest = rest.strip().strip("/")
            return f"{SHORTHAND_HOSTS[prefix.lower()]}/{rest}" if rest else None
        return value or None
    if isinstance(repo, Mapping) and isinstance(repo.get("url"), str):
        return repo["url"].strip() or None
    return None


def manifest_url(version: Any, extension: Any) -> str | None:
    """Build the manifest asset URL for a gallery version.

    Returns None when the gallery entries lack the pieces, or have the wrong shape.
    """
    if not isinstance(version, Mapping):
        return None
    base = version.get("fallbackAssetUri") or version.get("assetUri")
    if isinstance(base, str) and base:
        return f"{base.rstrip('/')}/{ASSET_TYPE_MANIFEST}"

    if not isinstance(extension, Mapping):
        return None
    publisher = extension.get("publisher")
    publisher_name = publisher.get("publisherName") if isinstance(publisher, Mapping) else None
    extension_name = extension.get("extensionName")
    ver = version.get("version")
    if not all(isinstance(v, str) and v for v in (publisher_name, extension_name, ver)):
        return None
    publisher_name = publisher_name.lower()
    return (
        f"https://{publisher_name}.gallery.vsassets.io/_apis/public/gallery/publisher/"
        f"{quote(publisher_name, safe='')}/extension/{quote(extension_name.lower(), safe='')}/"
        f"{quote(ver, safe='')}/assetbyname/{ASSET_TYPE_MANIFEST}"
    )


class RepoLinkResolver:
    """Decides whether an extension has a genuine public source repository.

    Never raises: any fetch or parse failure resolves to "no public repo".
    """

    def __init__(
        self,
        github: GitHubFetcher | None = None,
        client: httpx.AsyncClient | None = None,
        hosts: Iterable[str] = DEFAULT_PUBLIC_REPO_HOSTS,
    ) -> None:
        """Initialize the resolver.

        Args:
            github: Fetcher used for the GitHub existence check.
            client: Optional httpx client used to fetch manifests.
            hosts: Allow-listed hosting providers.
        """
        self._github = github or GitHubFetcher(client=client)
        self._client = client
        self.hosts = tuple(hosts)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=30.0)

    async def fetch_manifest_repository(
        self,
        version: Mapping[str, Any] | None,
        extension: Mapping[str, Any] | None,
    ) -> str | None:
        """Fetch the extension manifest and return its repository URL."""
        url = manifest_url(version, extension)
        if not url:
            return None

        client = await self._get_client()
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
            if response.status_code != 200:
                logger.debug(f"Manifest fetch returned {response.status_code}: {url}")
                return None
            return repository_url_from_manifest(response.json())
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.debug(f"Manifest fetch failed for {url}: {e}")
            return None
        finally:
            if self._client is None:
                await client.aclose()

    async def resolve(
        self,
        version: Mapping[str, Any] | None,
        extension: Mapping[str, Any] | None = None,
    ) -> RepoLink:
        """Resolve the repository link for the latest version of an extension.

        Args:
            version: Latest gallery version entry.
            extension: Gallery extension entry, used to build the manifest URL.

        Returns:
            RepoLink with the URL found (if any) and the public classification.
        """
        repo_url = repository_url_from_version(version)
        if not repo_url and version:
            repo_url = await self.fetch_manifest_repository(version, extension)

        has_public_repo = is_public_repo_url(repo_url, self.hosts)
        if has_public_repo:
            github_ref = parse_github_repo_url(repo_url)
            if github_ref is not None and not await self._github.repo_exists(github_ref.owner, github_ref.repo):
                logger.info(f"Repository link {repo_url} does not resolve, treating as not public")
                has_public_repo = False

        return RepoLink(repo_url=repo_url or None, has_public_repo=has_public_repo)
