from __future__ import annotations

from typing import Callable

import httpx
import pytest


@pytest.fixture
def mock_client() -> Callable[..., httpx.AsyncClient]:
    """Factory for an AsyncClient whose requests are answered by ``handler``."""

    def factory(handler) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
