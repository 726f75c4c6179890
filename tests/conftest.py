"""
Pytest configuration and shared fixtures for trip store tests

APPROACH: Use StorageService directly (no wrapper layer)
- Each test gets a fresh store directory under tmp_path
- Complete test isolation (no shared state)
- Tests use the same StorageService the CLI uses
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from toki_store.config import StoreConfig
from toki_store.services.storage_service import StorageService
from tests.test_fixtures import SampleDataFactory


def pytest_configure(config):
    """
    Pytest hook called before test collection.
    """
    os.environ['APP_ENV'] = 'test'


@pytest.fixture
def store_config(tmp_path):
    """StoreConfig rooted at a fresh per-test directory"""
    return StoreConfig.for_directory(tmp_path / "store")


@pytest.fixture
def storage(store_config):
    """
    StorageService over an empty store.

    Reopen with StorageService.open(store_config) to check what reached disk.
    """
    return StorageService.open(store_config)


@pytest.fixture
def sample_data(storage):
    return SampleDataFactory(storage)
