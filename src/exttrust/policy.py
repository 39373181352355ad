"""Loading of declarative scoring policies."""

import json
import logging
from pathlib import Path

from exttrust.config import get_extension_policy_path, get_repo_policy_path
from exttrust.models.schemas import Policy

logger = logging.getLogger(__name__)


def load_policy(path: Path) -> Policy | None:
    """Load a policy JSON document.

    A missing file, unreadable JSON, or a document without ``weights``,
    ``rules`` and ``thresholds`` disables scoring: None is returned and the
    reason is logged, nothing is raised.

    Args:
        path: Path to the policy JSON file.

    Returns:
        Policy, or None if the document is not a usable policy.
    """
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not load policy {path}: {e}")
        return None

    policy = Policy.from_document(document)
    if policy is None:
        logger.warning(f"Ignoring policy {path}: expected weights, rules and thresholds objects")
    return policy


def load_extension_policy(path: Path | None = None) -> Policy | None:
    """Load the extension safety policy (configured path by default)."""
    return load_policy(path or get_extension_policy_path())


def load_repo_policy(path: Path | None = None) -> Policy | None:
    """Load the repository safety policy (configured path by default)."""
    return load_policy(path or get_repo_policy_path())
