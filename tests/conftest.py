"""
Pytest configuration for the drafthelper test suite.

Async tests use the anyio plugin (``@pytest.mark.anyio``) on asyncio only.
"""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
