"""
Tests for policy loading.
"""

import json

from exttrust.models.schemas import Policy
from exttrust.policy import load_extension_policy, load_policy, load_repo_policy


class TestLoadPolicy:
    """Reading policy documents from disk."""

    def test_bundled_policies(self):
        extension = load_extension_policy()
        repo = load_repo_policy()

        assert extension.weights == {
            "publisher": 20,
            "update": 15,
            "reputation": 20,
            "behaviour": 30,
            "supplyChain": 25,
        }
        assert extension.thresholds == {"block": 61, "review": 31}
        assert extension.rule_section("supplyChain")["requirePublicRepo"] is True
        assert repo.thresholds == {"block": 45, "review": 20}
        assert set(repo.weights) == {"engagement", "health", "freshness", "maintainers"}

    def test_custom_file(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"weights": {"publisher": 5}, "rules": {}, "thresholds": {"block": 10}}))

        policy = load_policy(path)

        assert isinstance(policy, Policy)
        assert policy.weights == {"publisher": 5}

    def test_missing_file(self, tmp_path, caplog):
        assert load_policy(tmp_path / "nope.json") is None
        assert "Could not load policy" in caplog.text

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text("{not json")
        assert load_policy(path) is None

    def test_incomplete_document(self, tmp_path, caplog):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"weights": {}, "rules": {}}))
        assert load_policy(path) is None
        assert "expected weights, rules and thresholds" in caplog.text

    def test_section_not_an_object(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"weights": [], "rules": {}, "thresholds": {}}))
        assert load_policy(path) is None

    def test_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "repo.json"
        path.write_text(json.dumps({"weights": {}, "rules": {}, "thresholds": {"block": 1}}))
        monkeypatch.setenv("EXTTRUST_REPO_POLICY", str(path))

        assert load_repo_policy().thresholds == {"block": 1}


class TestPolicyModel:
    """Policy document validation."""

    def test_from_document_rejects_non_mapping(self):
        assert Policy.from_document(None) is None
        assert Policy.from_document([]) is None
        assert Policy.from_document("policy") is None

    def test_rule_section_tolerates_garbage(self):
        policy = Policy(weights={}, rules={"publisher": 3}, thresholds={})
        assert policy.rule_section("publisher") == {}
        assert policy.rule_section("absent") == {}
