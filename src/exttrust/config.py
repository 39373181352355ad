"""
Configuration management for exttrust.

Settings are read from the environment (a ``.env`` file is loaded by the
CLI at startup):

- GITHUB_TOKEN: optional GitHub token for higher API rate limits
- EXTTRUST_EXTENSION_POLICY: path to the extension safety policy JSON
- EXTTRUST_REPO_POLICY: path to the repository safety policy JSON
- EXTTRUST_MAX_EXTENSIONS: maximum extensions per batch request
- EXTTRUST_BATCH_SIZE: maximum extension lookups in flight at once
- EXTTRUST_HTTP_TIMEOUT: HTTP timeout in seconds
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Bundled policies live next to this module
POLICY_DIR = Path(__file__).resolve().parent / "policies"
DEFAULT_EXTENSION_POLICY = POLICY_DIR / "extension-safety-policy.json"
DEFAULT_REPO_POLICY = POLICY_DIR / "github-repo-safety-policy.json"

# Per batch request: identifiers accepted, and lookups in flight
DEFAULT_MAX_EXTENSIONS = 16
DEFAULT_BATCH_SIZE = 10
DEFAULT_HTTP_TIMEOUT = 30.0


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}")
        return default
    if value < 1:
        logger.warning(f"Ignoring non-positive {name}={raw!r}")
        return default
    return value


def get_github_token() -> str | None:
    """
    Get the GitHub token, if any.

    Its absence is not an error; requests are simply unauthenticated.
    """
    return os.environ.get("GITHUB_TOKEN") or None


def get_extension_policy_path() -> Path:
    """Get the extension safety policy path."""
    raw = os.environ.get("EXTTRUST_EXTENSION_POLICY")
    return Path(raw).expanduser() if raw else DEFAULT_EXTENSION_POLICY


def get_repo_policy_path() -> Path:
    """Get the repository safety policy path."""
    raw = os.environ.get("EXTTRUST_REPO_POLICY")
    return Path(raw).expanduser() if raw else DEFAULT_REPO_POLICY


def get_max_extensions() -> int:
    return _positive_int("EXTTRUST_MAX_EXTENSIONS", DEFAULT_MAX_EXTENSIONS)


def get_batch_size() -> int:
    return _positive_int("EXTTRUST_BATCH_SIZE", DEFAULT_BATCH_SIZE)


def get_http_timeout() -> float:
    raw = os.environ.get("EXTTRUST_HTTP_TIMEOUT")
    if not raw:
        return DEFAULT_HTTP_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric EXTTRUST_HTTP_TIMEOUT={raw!r}")
        return DEFAULT_HTTP_TIMEOUT
    return value if value > 0 else DEFAULT_HTTP_TIMEOUT
