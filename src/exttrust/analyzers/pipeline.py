"""End-to-end trust pipeline for extensions and repositories."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

import httpx

from exttrust.adapters.base import BaseAdapter
from exttrust.adapters.marketplace import MarketplaceAdapter
from exttrust.analyzers.github import GitHubFetcher
from exttrust.analyzers.normalizer import normalize_extension, normalize_repo
from exttrust.analyzers.resolver import RepoLinkResolver, parse_github_repo_url, public_repo_hosts
from exttrust.analyzers.scorer import TrustScorer
from exttrust.config import DEFAULT_BATCH_SIZE, DEFAULT_MAX_EXTENSIONS
from exttrust.models.schemas import (
    BatchResult,
    ExtensionRecord,
    Policy,
    RepoErrorKind,
    RepoFetchError,
    RepoTrustReport,
)

logger = logging.getLogger(__name__)


def validate_extension_ids(
    extension_ids: Any,
    max_extensions: int = DEFAULT_MAX_EXTENSIONS,
) -> tuple[list[str], str | None]:
    """Clean and validate a batch of extension identifiers.

    Identifiers are stringified and trimmed; blanks are dropped.

    Returns:
        (cleaned ids, None) when valid, otherwise ([], error message).
    """
    if isinstance(extension_ids, (str, bytes)) or not isinstance(extension_ids, Sequence) or not extension_ids:
        return [], "Missing or empty extensions list"

    cleaned = [str(i).strip() for i in extension_ids if i is not None]
    cleaned = [i for i in cleaned if i]
    if not cleaned:
        return [], "No extension IDs provided"

    if len(cleaned) > max_extensions:
        return [], (
            f"Too many extensions (max {max_extensions} per request). "
            "Split the list into smaller batches and check each batch separately."
        )
    return cleaned, None


class TrustPipeline:
    """Orchestrates registry lookups, repository resolution and scoring.

    Pipeline stages per extension:
    1. Fetch registry metadata (adapter)
    2. Resolve and verify the source repository link (resolver)
    3. Normalize into evaluation metadata
    4. Score against the extension policy, when one is loaded
    """

    def __init__(
        self,
        extension_policy: Policy | None = None,
        repo_policy: Policy | None = None,
        adapter: BaseAdapter | None = None,
        github: GitHubFetcher | None = None,
        client: httpx.AsyncClient | None = None,
        github_token: str | None = None,
        max_extensions: int = DEFAULT_MAX_EXTENSIONS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize the pipeline.

        Args:
            extension_policy: Extension policy; None disables extension scoring.
            repo_policy: Repository policy; None disables repository scoring.
            adapter: Extension registry adapter. Defaults to the Marketplace.
            github: GitHub fetcher shared by the resolver and repo analysis.
            client: Optional shared httpx client.
            github_token: GitHub token used when no fetcher is given.
            max_extensions: Maximum identifiers accepted per batch.
            batch_size: Maximum lookups in flight at once.
        """
        self.extension_policy = extension_policy
        self.repo_policy = repo_policy
        self.github = github or GitHubFetcher(token=github_token, client=client)

        if adapter is None:
            hosts = public_repo_hosts(extension_policy.rule_section("supplyChain") if extension_policy else None)
            resolver = RepoLinkResolver(github=self.github, client=client, hosts=hosts)
            adapter = MarketplaceAdapter(client=client, resolver=resolver)
        self.adapter = adapter

        self.scorer = TrustScorer()
        self.max_extensions = max_extensions
        self.batch_size = max(1, batch_size)

    async def _fetch_one(self, extension_id: str, semaphore: asyncio.Semaphore) -> ExtensionRecord:
        async with semaphore:
            try:
                return await self.adapter.fetch_extension(extension_id)
            except Exception as e:
                # One bad lookup must not sink the batch
                logger.exception(f"Unexpected failure fetching {extension_id}")
                return ExtensionRecord.failed(extension_id, str(e) or type(e).__name__)

    def attach_trust(self, record: ExtensionRecord, now: datetime | None = None) -> ExtensionRecord:
        """Return a copy of the record with trust fields, if it can be scored."""
        if self.extension_policy is None or not record.ok:
            return record

        metadata = normalize_extension(record, now)
        result = self.scorer.evaluate_extension(metadata, self.extension_policy)
        return record.model_copy(
            update={
                "risk_score": result.score,
                "risk_decision": result.decision,
                "triggered_rules": result.triggered_rules,
                "risk_breakdown": result.triggered_with_points,
            }
        )

    async def fetch_extensions(self, extension_ids: Any) -> BatchResult:
        """Fetch and score a batch of extensions.

        Invalid requests are rejected before any network access. Results are
        returned in input order regardless of completion order.

        Args:
            extension_ids: Ordered list of ``publisher.extension`` identifiers.

        Returns:
            BatchResult with one record per identifier, or a validation error.
        """
        ids, error = validate_extension_ids(extension_ids, self.max_extensions)
        if error:
            logger.info(f"Rejected batch request: {error}")
            return BatchResult(error=error)

        semaphore = asyncio.Semaphore(self.batch_size)
        records = await asyncio.gather(*(self._fetch_one(i, semaphore) for i in ids))

        failed = sum(1 for r in records if not r.ok)
        if failed:
            logger.info(f"{failed} of {len(records)} extension lookups failed")

        now = datetime.now().astimezone()
        return BatchResult(results=[self.attach_trust(r, now) for r in records])

    async def analyze_repo(self, repo_url: str) -> RepoTrustReport | RepoFetchError:
        """Fetch a GitHub repository and evaluate its trustworthiness.

        Args:
            repo_url: GitHub repository URL (https or ``git@`` form).

        Returns:
            RepoTrustReport (repo_trust None without a policy), or a RepoFetchError.
        """
        ref = parse_github_repo_url((repo_url or "").strip())
        if ref is None:
            return RepoFetchError(kind=RepoErrorKind.INVALID_URL, message="Invalid or non-GitHub repo URL")

        repo = await self.github.fetch_repo(ref.owner, ref.repo)
        if isinstance(repo, RepoFetchError):
            logger.warning(f"Repository lookup for {ref.owner}/{ref.repo} failed: {repo.message}")
            return repo

        repo_trust = None
        if self.repo_policy is not None:
            repo_trust = self.scorer.evaluate_repo(normalize_repo(repo), self.repo_policy)
        return RepoTrustReport(repo=repo, repo_trust=repo_trust)
