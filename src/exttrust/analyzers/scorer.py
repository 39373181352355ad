"""Rule evaluation engine for extension and repository trust.

Shared by the CLI and the pipeline; rule names, fractions and default
weights live only here.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

from exttrust.models.schemas import (
    Decision,
    EvaluationResult,
    ExtensionMetadata,
    Policy,
    RepoMetadata,
    TriggeredRule,
)

logger = logging.getLogger(__name__)

# Fallback category weights when the policy omits or mangles one
DEFAULT_EXTENSION_WEIGHTS = {
    "publisher": 20,
    "update": 15,
    "reputation": 20,
    "behaviour": 30,
    "supplyChain": 25,
}
DEFAULT_REPO_WEIGHTS = {
    "engagement": 25,
    "health": 25,
    "freshness": 25,
    "maintainers": 25,
}

DEFAULT_EXTENSION_THRESHOLDS = {"block": 61, "review": 31}
DEFAULT_REPO_THRESHOLDS = {"block": 45, "review": 20}


def _number(value: Any, default: float) -> float:
    """Return value if it is a usable number, otherwise default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value) or math.isinf(value):
        return default
    return value


def _enabled(value: Any, default: bool) -> bool:
    """Resolve a feature flag; anything but a real bool keeps the default."""
    return value if isinstance(value, bool) else default


def decide(score: float, block: float, review: float) -> Decision:
    """Map a score onto a decision using the two cut points."""
    if score >= block:
        return Decision.BLOCK
    if score >= review:
        return Decision.REVIEW
    return Decision.ALLOW


class _Tally:
    """Accumulates triggered rules in evaluation order."""

    def __init__(self) -> None:
        self.score: float = 0
        self.triggered: list[TriggeredRule] = []

    def add(self, points: float, rule: str, category: str) -> None:
        self.score += points
        self.triggered.append(TriggeredRule(rule=rule, points=points, category=category))


class TrustScorer:
    """Turns normalized metadata plus a policy into a score and decision.

    Extension categories (evaluated in this order):
    - publisher: ownership changes and long dormancy
    - update: update cadence, both too fresh and too stale
    - reputation: installs and rating
    - behaviour: analyzer-supplied code behaviour flags
    - supplyChain: public repository, transfers, new maintainers

    Repository categories: engagement, health, freshness, maintainers.

    The scorer holds no state; a single instance is safe to share.
    """

    def evaluate_extension(self, metadata: ExtensionMetadata, policy: Policy) -> EvaluationResult:
        """Score an extension.

        Args:
            metadata: Normalized extension metadata.
            policy: Extension safety policy.

        Returns:
            EvaluationResult with the itemized rules that fired.
        """
        tally = _Tally()

        self._publisher_rules(metadata, policy, tally)
        self._update_rules(metadata, policy, tally)
        self._reputation_rules(metadata, policy, tally)
        self._behaviour_rules(metadata, policy, tally)
        self._supply_chain_rules(metadata, policy, tally)

        thresholds = self._thresholds(policy, DEFAULT_EXTENSION_THRESHOLDS)
        decision = decide(tally.score, *thresholds)

        # Missing public repo, when required, is a veto the score cannot express
        if self._public_repo_missing(metadata, policy):
            decision = Decision.BLOCK

        return EvaluationResult(
            score=tally.score,
            decision=decision,
            triggered_with_points=tally.triggered,
        )

    def evaluate_repo(self, metadata: RepoMetadata, policy: Policy) -> EvaluationResult:
        """Score a source repository.

        Args:
            metadata: Normalized repository metadata.
            policy: Repository safety policy.

        Returns:
            EvaluationResult with the itemized rules that fired.
        """
        tally = _Tally()

        self._engagement_rules(metadata, policy, tally)
        self._health_rules(metadata, policy, tally)
        self._freshness_rules(metadata, policy, tally)
        self._maintainer_rules(metadata, policy, tally)

        thresholds = self._thresholds(policy, DEFAULT_REPO_THRESHOLDS)
        return EvaluationResult(
            score=tally.score,
            decision=decide(tally.score, *thresholds),
            triggered_with_points=tally.triggered,
        )

    # --- Policy lookups ---

    def _weight(self, policy: Policy, category: str, defaults: Mapping[str, float]) -> float:
        return _number(policy.weights.get(category), defaults.get(category, 0))

    def _thresholds(self, policy: Policy, defaults: Mapping[str, float]) -> tuple[float, float]:
        block = _number(policy.thresholds.get("block"), defaults["block"])
        review = _number(policy.thresholds.get("review"), defaults["review"])
        return block, review

    def _public_repo_missing(self, metadata: ExtensionMetadata, policy: Policy) -> bool:
        required = _enabled(policy.rule_section("supplyChain").get("requirePublicRepo"), False)
        # Only an explicit False counts; unknown is never penalized
        return required and metadata.has_public_repo is False

    # --- Extension categories ---

    def _publisher_rules(self, metadata: ExtensionMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("publisher")
        weight = self._weight(policy, "publisher", DEFAULT_EXTENSION_WEIGHTS)

        changed_days = _number(rules.get("blockIfPublisherChangedDays"), 90)
        if metadata.publisher_changed_days_ago is not None and metadata.publisher_changed_days_ago < changed_days:
            tally.add(weight, "Publisher changed recently", "publisher")

        dormant_months = _number(rules.get("blockIfDormantMonths"), 24)
        if metadata.dormant_months is not None and metadata.dormant_months > dormant_months:
            tally.add(weight, "Long dormancy detected", "publisher")

    def _update_rules(self, metadata: ExtensionMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("update")
        weight = self._weight(policy, "update", DEFAULT_EXTENSION_WEIGHTS)

        # Fresh releases and stale ones are scored independently
        recent_days = _number(rules.get("highRiskRecentUpdateDays"), 7)
        if metadata.last_updated_days_ago is not None and metadata.last_updated_days_ago < recent_days:
            tally.add(weight / 2, "Recent update risk window", "update")

        dormant_months = _number(rules.get("flagIfDormantMonths"), 12)
        if metadata.dormant_months is not None and metadata.dormant_months >= dormant_months:
            tally.add(weight, "No update in 12+ months", "update")

        if metadata.major_version_jump_after_dormancy is True:
            tally.add(weight, "Major jump after dormancy", "update")

    def _reputation_rules(self, metadata: ExtensionMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("reputation")
        weight = self._weight(policy, "reputation", DEFAULT_EXTENSION_WEIGHTS)

        min_installs = _number(rules.get("minInstalls"), 1000)
        if metadata.installs is not None and metadata.installs < min_installs:
            tally.add(weight / 2, "Low install count", "reputation")

        min_rating = _number(rules.get("minRating"), 3)
        if metadata.rating is not None and metadata.rating < min_rating:
            tally.add(weight / 2, "Low rating", "reputation")

    def _behaviour_rules(self, metadata: ExtensionMetadata, policy: Policy, tally: _Tally) -> None:
        weight = self._weight(policy, "behaviour", DEFAULT_EXTENSION_WEIGHTS)

        if metadata.is_obfuscated is True:
            tally.add(weight, "Obfuscated code", "behaviour")
        if metadata.uses_child_process is True:
            tally.add(weight / 3, "Uses child_process", "behaviour")
        if metadata.uses_eval is True:
            tally.add(weight / 3, "Uses eval", "behaviour")
        if metadata.has_hardcoded_ip is True:
            tally.add(weight / 3, "Hard coded IP", "behaviour")
        if metadata.downloads_remote_code is True:
            tally.add(weight, "Downloads remote code", "behaviour")

    def _supply_chain_rules(self, metadata: ExtensionMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("supplyChain")
        weight = self._weight(policy, "supplyChain", DEFAULT_EXTENSION_WEIGHTS)

        if self._public_repo_missing(metadata, policy):
            tally.add(weight, "No public repository", "supplyChain")

        transferred_days = _number(rules.get("flagIfRepoTransferredRecentlyDays"), 90)
        if metadata.repo_transferred_days_ago is not None and metadata.repo_transferred_days_ago < transferred_days:
            tally.add(weight / 2, "Recent repo transfer", "supplyChain")

        maintainer_days = _number(rules.get("flagIfNewMaintainerDays"), 60)
        if metadata.new_maintainer_days_ago is not None and metadata.new_maintainer_days_ago < maintainer_days:
            tally.add(weight / 2, "New maintainer recently added", "supplyChain")

    # --- Repository categories ---

    def _engagement_rules(self, metadata: RepoMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("engagement")
        weight = self._weight(policy, "engagement", DEFAULT_REPO_WEIGHTS)

        min_stars = _number(rules.get("minStars"), 10)
        if _enabled(rules.get("flagIfVeryLowStars"), True) and metadata.stars is not None and metadata.stars < min_stars:
            tally.add(weight / 2, "Low star count", "engagement")

        min_forks = _number(rules.get("minForks"), 1)
        if _enabled(rules.get("flagIfZeroForks"), True) and metadata.forks is not None and metadata.forks < min_forks:
            tally.add(weight / 2, "No or very few forks", "engagement")

    def _health_rules(self, metadata: RepoMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("health")
        weight = self._weight(policy, "health", DEFAULT_REPO_WEIGHTS)

        max_open = _number(rules.get("maxOpenIssues"), 50)
        if metadata.open_issues is not None and metadata.open_issues > max_open:
            tally.add(weight / 2, "High open issue count", "health")

        if (
            _enabled(rules.get("flagIfHighOpenIssuesRatio"), True)
            and metadata.stars is not None
            and metadata.open_issues is not None
            and metadata.stars > 0
        ):
            max_ratio = _number(rules.get("openIssuesToStarsRatio"), 2)
            if metadata.open_issues / metadata.stars > max_ratio:
                tally.add(weight / 2, "High open-issues-to-stars ratio", "health")

    def _freshness_rules(self, metadata: RepoMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("freshness")
        weight = self._weight(policy, "freshness", DEFAULT_REPO_WEIGHTS)

        min_age = _number(rules.get("minRepoAgeDays"), 90)
        if _enabled(rules.get("flagIfVeryNewRepo"), True) and metadata.age_days is not None and metadata.age_days < min_age:
            tally.add(weight / 2, "Repo very new", "freshness")

        max_push = _number(rules.get("maxDaysSincePush"), 365)
        if (
            _enabled(rules.get("flagIfDormant"), True)
            and metadata.days_since_push is not None
            and metadata.days_since_push > max_push
        ):
            tally.add(weight / 2, "Repo dormant (no recent push)", "freshness")

    def _maintainer_rules(self, metadata: RepoMetadata, policy: Policy, tally: _Tally) -> None:
        rules = policy.rule_section("maintainers")
        weight = self._weight(policy, "maintainers", DEFAULT_REPO_WEIGHTS)

        contributors = metadata.contributor_count
        if contributors is None:
            return

        min_contributors = _number(rules.get("minContributors"), 1)
        if contributors < min_contributors:
            tally.add(weight, "No contributors listed", "maintainers")
        elif _enabled(rules.get("flagIfSoloMaintainer"), True) and contributors == 1:
            tally.add(weight / 2, "Solo maintainer", "maintainers")


_scorer = TrustScorer()


def evaluate_extension(metadata: ExtensionMetadata, policy: Policy) -> EvaluationResult:
    return _scorer.evaluate_extension(metadata, policy)


def evaluate_repo(metadata: RepoMetadata, policy: Policy) -> EvaluationResult:
    return _scorer.evaluate_repo(metadata, policy)


def evaluate(
    metadata: ExtensionMetadata | RepoMetadata,
    policy: Policy | Mapping[str, Any] | None,
) -> EvaluationResult | None:
    """Score extension or repository metadata against a policy.

    A raw policy document is accepted; one that is missing ``weights``,
    ``rules`` or ``thresholds`` is not a policy, and scoring is skipped
    (None is returned).

    Raises:
        TypeError: If metadata is neither extension nor repository metadata.
    """
    if not isinstance(policy, Policy):
        policy = Policy.from_document(policy)
        if policy is None:
            logger.debug("No usable policy supplied, skipping trust evaluation")
            return None

    if isinstance(metadata, ExtensionMetadata):
        return _scorer.evaluate_extension(metadata, policy)
    if isinstance(metadata, RepoMetadata):
        return _scorer.evaluate_repo(metadata, policy)
    raise TypeError(f"Cannot evaluate metadata of type {type(metadata).__name__}")
