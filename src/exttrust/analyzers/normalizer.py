"""Normalize upstream registry and repository data into evaluation records.

Relative-time fields are derived at evaluation time. Anything missing or
unparsable becomes ``None`` (unknown) rather than zero, so an absent value
can never trip a threshold rule.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

from exttrust.models.schemas import ExtensionMetadata, ExtensionRecord, RepoMetadata, RepoRecord

MS_PER_DAY = 24 * 60 * 60 * 1000
DAYS_PER_MONTH = 30.44


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp, date, or datetime into an aware datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def days_since(value: Any, now: datetime | None = None) -> int | None:
    """Whole days elapsed between a timestamp and now, or None if unknown."""
    timestamp = parse_timestamp(value)
    if timestamp is None:
        return None
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed_ms = (now - timestamp).total_seconds() * 1000
    return math.floor(elapsed_ms / MS_PER_DAY)


def dormant_months_from_days(days: int | None) -> int | None:
    if days is None:
        return None
    return math.floor(days / DAYS_PER_MONTH)


def coerce_float(value: Any) -> float | None:
    """Return a finite float for numbers and numeric strings, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def coerce_int(value: Any) -> int | None:
    """Return an int for integral numbers and numeric strings, else None.

    Fractional values are truncated toward zero, matching how the registry
    reports rounded statistics.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = coerce_float(value)
    return int(number) if number is not None else None


def _derived_days(timestamp: Any, stored: Any, now: datetime | None) -> int | None:
    days = days_since(timestamp, now)
    return days if days is not None else coerce_int(stored)


def normalize_extension(record: ExtensionRecord, now: datetime | None = None) -> ExtensionMetadata:
    """Build engine-ready extension metadata from a registry record.

    Code-behaviour fields are left unknown; they come from an external
    analyzer, not from the registry.

    Args:
        record: Extension record as returned by the registry adapter.
        now: Evaluation time. Defaults to the current UTC time.

    Returns:
        ExtensionMetadata with relative-time fields derived.
    """
    last_updated_days = days_since(record.last_version_update_date, now)

    rating = coerce_float(record.rating)
    if rating is not None and not 0.0 <= rating <= 5.0:
        rating = None

    return ExtensionMetadata(
        publisher_verified=record.publisher_verified is True,
        last_updated_days_ago=last_updated_days,
        dormant_months=dormant_months_from_days(last_updated_days),
        installs=coerce_int(record.install_count),
        rating=rating,
        has_public_repo=record.has_public_repo,
    )


def normalize_repo(
    data: RepoRecord | Mapping[str, Any],
    now: datetime | None = None,
    contributor_count: Any = None,
) -> RepoMetadata:
    """Build engine-ready repository metadata.

    Args:
        data: A fetched RepoRecord, or raw GitHub ``/repos/{owner}/{repo}`` JSON.
        now: Evaluation time. Defaults to the current UTC time.
        contributor_count: Contributor total when passing raw API JSON.

    Returns:
        RepoMetadata with age and push recency derived from timestamps.
    """
    if isinstance(data, RepoRecord):
        return RepoMetadata(
            stars=coerce_int(data.stars),
            forks=coerce_int(data.forks),
            open_issues=coerce_int(data.open_issues),
            age_days=_derived_days(data.created_at, data.age_days, now),
            days_since_push=_derived_days(data.pushed_at, data.days_since_push, now),
            contributor_count=coerce_int(data.contributor_count),
        )

    return RepoMetadata(
        stars=coerce_int(data.get("stargazers_count")),
        forks=coerce_int(data.get("forks_count")),
        open_issues=coerce_int(data.get("open_issues_count")),
        age_days=days_since(data.get("created_at"), now),
        days_since_push=days_since(data.get("pushed_at"), now),
        contributor_count=coerce_int(contributor_count),
    )
