"""Pytest configuration for machine_plane tests."""
import sys
from pathlib import Path

# Add src/ (src-layout imports) and tests/ (stubs) to path
_TESTS = Path(__file__).parent
_SRC = _TESTS.parent / 'src'
for _path in (_SRC, _TESTS):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

import httpx
import pytest
import pytest_asyncio

from machine_plane.inmemory import InMemoryMachineRecordStore
from stubs.fly_api import StubFlyAPI


@pytest.fixture
def record_store():
    """Empty in-memory machine record store."""
    return InMemoryMachineRecordStore()


@pytest.fixture
def fly_api():
    """Stub Machines API for the ``test-app`` app."""
    return StubFlyAPI()


@pytest_asyncio.fixture
async def fly_http(fly_api):
    async with httpx.AsyncClient(transport=fly_api.transport()) as http:
        yield http


@pytest.fixture
def fly_client(fly_api, fly_http):
    return fly_api.client(fly_http)
