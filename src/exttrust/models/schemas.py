"""Pydantic models for extension and repository trust data."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class Decision(str, Enum):
    """Trust decision derived from an evaluation score."""

    ALLOW = "ALLOW"
    REVIEW = "REVIEW"
    BLOCK = "BLOCK"


class _CamelModel(BaseModel):
    """Base for records exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RepoRef(BaseModel):
    """Reference to a GitHub repository."""

    owner: str
    repo: str

    @property
    def url(self) -> str:
        """Get the full repository URL."""
        return f"https://github.com/{self.owner}/{self.repo}"


# --- Canonical evaluation records ---


class ExtensionMetadata(_CamelModel):
    """Normalized extension metadata consumed by the rule engine.

    Every optional field is independent; ``None`` means unknown and never
    satisfies a rule predicate.
    """

    publisher_verified: bool = False
    publisher_changed_days_ago: int | None = None
    dormant_months: int | None = None
    last_updated_days_ago: int | None = None
    major_version_jump_after_dormancy: bool | None = None
    installs: int | None = None
    rating: float | None = Field(default=None, ge=0.0, le=5.0)
    # Supplied by an external code analyzer
    is_obfuscated: bool | None = None
    uses_child_process: bool | None = None
    uses_eval: bool | None = None
    has_hardcoded_ip: bool | None = Field(default=None, alias="hasHardcodedIP")
    downloads_remote_code: bool | None = None
    # Tri-state: True / False / None (unknown)
    has_public_repo: bool | None = None
    repo_transferred_days_ago: int | None = None
    new_maintainer_days_ago: int | None = None


class RepoMetadata(_CamelModel):
    """Normalized repository metadata consumed by the repo rule engine."""

    stars: int | None = None
    forks: int | None = None
    open_issues: int | None = None
    age_days: int | None = None
    days_since_push: int | None = None
    contributor_count: int | None = None


# --- Policy ---


class Policy(BaseModel):
    """Declarative scoring policy: category weights, rule tunables, cut points.

    Entries are loose mappings; the scorer resolves each value with a
    documented fallback so a partial or malformed entry never fails scoring.
    """

    model_config = ConfigDict(frozen=True)

    weights: dict[str, Any]
    rules: dict[str, Any]
    thresholds: dict[str, Any]

    @classmethod
    def from_document(cls, document: Any) -> Policy | None:
        """Build a policy from a parsed JSON document.

        Returns None when the document is not a mapping or lacks any of
        ``weights``, ``rules`` or ``thresholds`` as a mapping.
        """
        if not isinstance(document, Mapping):
            return None
        sections = {}
        for key in ("weights", "rules", "thresholds"):
            value = document.get(key)
            if not isinstance(value, Mapping):
                return None
            sections[key] = dict(value)
        return cls(**sections)

    def rule_section(self, category: str) -> Mapping[str, Any]:
        """Return the rule tunables for a category, empty if absent or malformed."""
        section = self.rules.get(category)
        return section if isinstance(section, Mapping) else {}


# --- Evaluation output ---


class TriggeredRule(BaseModel):
    """A rule that fired together with the points it contributed."""

    rule: str
    points: float
    category: str


class EvaluationResult(BaseModel):
    """Score, decision and itemized rationale for one evaluation."""

    score: float = 0
    decision: Decision = Decision.ALLOW
    triggered_with_points: list[TriggeredRule] = Field(default_factory=list)

    @computed_field
    @property
    def triggered_rules(self) -> list[str]:
        """Names of triggered rules in evaluation order."""
        return [item.rule for item in self.triggered_with_points]

    def to_dict(self) -> dict[str, Any]:
        """Serialize in the camelCase shape used by JSON consumers."""
        return {
            "score": self.score,
            "decision": self.decision.value,
            "triggeredRules": self.triggered_rules,
            "triggeredWithPoints": [
                {"rule": item.rule, "points": item.points} for item in self.triggered_with_points
            ],
        }


# --- Upstream records ---


class ExtensionRecord(_CamelModel):
    """Extension details as reported by the extension registry.

    Display fields are kept as the registry formats them (``rating`` as
    ``"4.50"``, counts as digit strings). A failed lookup is a record with
    ``error`` set and every other field empty.
    """

    extension_id: str
    error: str = ""
    publisher: str = ""
    extension_name: str = ""
    current_version: str = ""
    last_version: str = ""
    last_version_update_date: str = ""
    rating: str = ""
    rating_count: str = ""
    install_count: str = ""
    publisher_verified: bool = False
    has_public_repo: bool = False
    repo_url: str | None = None

    # Trust fields, attached only when a policy is available
    risk_score: float | None = None
    risk_decision: Decision | None = None
    triggered_rules: list[str] | None = None
    risk_breakdown: list[TriggeredRule] | None = None

    @classmethod
    def failed(cls, extension_id: str, error: str) -> ExtensionRecord:
        """Create an error placeholder for an extension that could not be fetched."""
        return cls(extension_id=extension_id, error=error)

    @property
    def ok(self) -> bool:
        return not self.error


class RepoRecord(_CamelModel):
    """Repository data fetched from the GitHub API."""

    owner: str
    repo: str
    url: str
    stars: int | None = None
    forks: int | None = None
    open_issues: int | None = None
    open_pull_requests: int | None = None
    default_branch: str = "main"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    pushed_at: datetime | None = None
    age_days: int | None = None
    days_since_push: int | None = None
    contributor_count: int | None = None
    has_issues_enabled: bool = False
    has_wiki: bool = False
    language: str | None = None
    description: str | None = None


class RepoErrorKind(str, Enum):
    """Typed failure of a repository metadata lookup."""

    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    INVALID_URL = "invalid_url"
    OTHER = "other"


class RepoFetchError(BaseModel):
    """Repository lookup failure returned instead of raising."""

    kind: RepoErrorKind
    message: str


class RepoLink(BaseModel):
    """Resolved source repository link for one extension."""

    repo_url: str | None = None
    has_public_repo: bool = False


# --- Pipeline results ---


class BatchResult(BaseModel):
    """Outcome of a batch extension lookup.

    ``error`` is set, and ``results`` empty, when the request was rejected
    before any network access.
    """

    results: list[ExtensionRecord] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RepoTrustReport(BaseModel):
    """Repository data plus its trust evaluation (None without a policy)."""

    repo: RepoRecord
    repo_trust: EvaluationResult | None = None
