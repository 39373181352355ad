"""Shared fixtures for exttrust tests."""

import json
from collections.abc import Callable

import httpx
import pytest

from exttrust.config import DEFAULT_EXTENSION_POLICY, DEFAULT_REPO_POLICY
from exttrust.models.schemas import Policy


@pytest.fixture
def extension_policy() -> Policy:
    """The bundled extension safety policy."""
    return Policy.from_document(json.loads(DEFAULT_EXTENSION_POLICY.read_text()))


@pytest.fixture
def repo_policy() -> Policy:
    """The bundled GitHub repository safety policy."""
    return Policy.from_document(json.loads(DEFAULT_REPO_POLICY.read_text()))


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """Build an AsyncClient whose requests are answered by a handler."""

    def build(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return build
