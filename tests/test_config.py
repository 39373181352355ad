"""
Tests for environment configuration.
"""

from pathlib import Path

import pytest

from exttrust import config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GITHUB_TOKEN",
        "EXTTRUST_EXTENSION_POLICY",
        "EXTTRUST_REPO_POLICY",
        "EXTTRUST_MAX_EXTENSIONS",
        "EXTTRUST_BATCH_SIZE",
        "EXTTRUST_HTTP_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Values when nothing is configured."""

    def test_defaults(self):
        assert config.get_github_token() is None
        assert config.get_extension_policy_path() == config.DEFAULT_EXTENSION_POLICY
        assert config.get_repo_policy_path() == config.DEFAULT_REPO_POLICY
        assert config.get_max_extensions() == 16
        assert config.get_batch_size() == 10
        assert config.get_http_timeout() == 30.0

    def test_bundled_policies_exist(self):
        assert config.DEFAULT_EXTENSION_POLICY.is_file()
        assert config.DEFAULT_REPO_POLICY.is_file()


class TestOverrides:
    """Environment overrides."""

    def test_token(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "abc")
        assert config.get_github_token() == "abc"

    def test_empty_token_is_none(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "")
        assert config.get_github_token() is None

    def test_policy_paths(self, monkeypatch):
        monkeypatch.setenv("EXTTRUST_EXTENSION_POLICY", "/etc/exttrust/ext.json")
        monkeypatch.setenv("EXTTRUST_REPO_POLICY", "~/repo.json")
        assert config.get_extension_policy_path() == Path("/etc/exttrust/ext.json")
        assert config.get_repo_policy_path() == Path("~/repo.json").expanduser()

    def test_numeric_settings(self, monkeypatch):
        monkeypatch.setenv("EXTTRUST_MAX_EXTENSIONS", "4")
        monkeypatch.setenv("EXTTRUST_BATCH_SIZE", "2")
        monkeypatch.setenv("EXTTRUST_HTTP_TIMEOUT", "5.5")
        assert config.get_max_extensions() == 4
        assert config.get_batch_size() == 2
        assert config.get_http_timeout() == 5.5

    @pytest.mark.parametrize("raw", ["zero", "0", "-3", "1.5"])
    def test_bad_integers_fall_back(self, monkeypatch, raw):
        monkeypatch.setenv("EXTTRUST_BATCH_SIZE", raw)
        assert config.get_batch_size() == config.DEFAULT_BATCH_SIZE

    @pytest.mark.parametrize("raw", ["soon", "0", "-1"])
    def test_bad_timeout_falls_back(self, monkeypatch, raw):
        monkeypatch.setenv("EXTTRUST_HTTP_TIMEOUT", raw)
        assert config.get_http_timeout() == config.DEFAULT_HTTP_TIMEOUT
