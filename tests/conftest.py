"""Pytest configuration shared across the suite."""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    """Route tests run through httpx's ASGI transport on asyncio only."""
    return "asyncio"
