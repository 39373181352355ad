"""Analyzers for fetching, normalizing and scoring trust data."""

from exttrust.analyzers.github import GitHubFetcher
from exttrust.analyzers.resolver import RepoLinkResolver
from exttrust.analyzers.scorer import TrustScorer, evaluate

__all__ = ["GitHubFetcher", "RepoLinkResolver", "TrustScorer", "evaluate"]
