"""
Tests for metadata normalization.
"""

from datetime import date, datetime, timezone

from exttrust.analyzers.normalizer import (
    coerce_float,
    coerce_int,
    days_since,
    dormant_months_from_days,
    normalize_extension,
    normalize_repo,
    parse_timestamp,
)
from exttrust.models.schemas import ExtensionRecord, RepoRecord

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestTimestamps:
    """Timestamp parsing and day arithmetic."""

    def test_parse_zulu_timestamp(self):
        parsed = parse_timestamp("2024-01-15T10:30:00Z")
        assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_parse_naive_is_utc(self):
        assert parse_timestamp("2024-01-15").tzinfo == timezone.utc
        assert parse_timestamp(datetime(2024, 1, 15)).tzinfo == timezone.utc
        assert parse_timestamp(date(2024, 1, 15)) == datetime(2024, 1, 15, tzinfo=timezone.utc)

    def test_parse_garbage(self):
        assert parse_timestamp("not a date") is None
        assert parse_timestamp("") is None
        assert parse_timestamp(None) is None
        assert parse_timestamp(12345) is None

    def test_days_since_floors(self):
        assert days_since("2025-05-31T13:00:00Z", NOW) == 0
        assert days_since("2025-05-31T12:00:00Z", NOW) == 1
        assert days_since("2025-05-01T12:00:00Z", NOW) == 31

    def test_days_since_unknown(self):
        assert days_since(None, NOW) is None
        assert days_since("yesterday", NOW) is None

    def test_dormant_months(self):
        assert dormant_months_from_days(None) is None
        assert dormant_months_from_days(30) == 0
        assert dormant_months_from_days(31) == 1
        assert dormant_months_from_days(400) == 13


class TestCoercion:
    """Numeric coercion of registry values."""

    def test_coerce_float(self):
        assert coerce_float("4.50") == 4.5
        assert coerce_float(3) == 3.0
        assert coerce_float(" 2 ") == 2.0
        assert coerce_float("abc") is None
        assert coerce_float("") is None
        assert coerce_float(True) is None
        assert coerce_float(float("nan")) is None
        assert coerce_float(float("inf")) is None

    def test_coerce_int_truncates(self):
        assert coerce_int("1500") == 1500
        assert coerce_int(12.9) == 12
        assert coerce_int("7.6") == 7
        assert coerce_int(False) is None
        assert coerce_int(None) is None


class TestNormalizeExtension:
    """Registry record to evaluation metadata."""

    def test_full_record(self):
        record = ExtensionRecord(
            extension_id="acme.tool",
            last_version_update_date="2024-04-01",
            rating="4.25",
            install_count="15000",
            publisher_verified=True,
            has_public_repo=True,
        )
        metadata = normalize_extension(record, NOW)

        assert metadata.publisher_verified is True
        assert metadata.last_updated_days_ago == 426
        assert metadata.dormant_months == 13
        assert metadata.installs == 15000
        assert metadata.rating == 4.25
        assert metadata.has_public_repo is True

    def test_behaviour_fields_stay_unknown(self):
        metadata = normalize_extension(ExtensionRecord(extension_id="acme.tool"), NOW)
        assert metadata.is_obfuscated is None
        assert metadata.uses_eval is None
        assert metadata.downloads_remote_code is None
        assert metadata.publisher_changed_days_ago is None

    def test_empty_display_fields_are_unknown(self):
        metadata = normalize_extension(ExtensionRecord(extension_id="acme.tool"), NOW)
        assert metadata.installs is None
        assert metadata.rating is None
        assert metadata.last_updated_days_ago is None
        assert metadata.dormant_months is None

    def test_out_of_range_rating_dropped(self):
        metadata = normalize_extension(ExtensionRecord(extension_id="acme.tool", rating="7.5"), NOW)
        assert metadata.rating is None

    def test_missing_repo_is_explicit_false(self):
        metadata = normalize_extension(ExtensionRecord(extension_id="acme.tool", has_public_repo=False), NOW)
        assert metadata.has_public_repo is False


class TestNormalizeRepo:
    """Repository data to evaluation metadata."""

    def test_from_record_derives_days(self):
        record = RepoRecord(
            owner="acme",
            repo="tool",
            url="https://github.com/acme/tool",
            stars=42,
            forks=3,
            open_issues=7,
            created_at=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
            pushed_at=datetime(2025, 5, 22, 12, 0, tzinfo=timezone.utc),
            age_days=1,
            days_since_push=1,
            contributor_count=4,
        )
        metadata = normalize_repo(record, NOW)

        assert metadata.stars == 42
        assert metadata.forks == 3
        assert metadata.open_issues == 7
        assert metadata.age_days == 365
        assert metadata.days_since_push == 10
        assert metadata.contributor_count == 4

    def test_from_record_falls_back_to_stored_days(self):
        record = RepoRecord(owner="acme", repo="tool", url="u", age_days=200, days_since_push=15)
        metadata = normalize_repo(record, NOW)
        assert metadata.age_days == 200
        assert metadata.days_since_push == 15
        assert metadata.stars is None

    def test_from_raw_api_json(self):
        data = {
            "stargazers_count": 5,
            "forks_count": 0,
            "open_issues_count": 2,
            "created_at": "2025-05-01T12:00:00Z",
            "pushed_at": "2025-05-30T12:00:00Z",
        }
        metadata = normalize_repo(data, NOW, contributor_count="1")

        assert metadata.stars == 5
        assert metadata.forks == 0
        assert metadata.open_issues == 2
        assert metadata.age_days == 31
        assert metadata.days_since_push == 2
        assert metadata.contributor_count == 1

    def test_raw_missing_fields_unknown(self):
        metadata = normalize_repo({}, NOW)
        assert metadata.model_dump() == {
            "stars": None,
            "forks": None,
            "open_issues": None,
            "age_days": None,
            "days_since_push": None,
            "contributor_count": None,
        }
