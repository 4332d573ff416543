# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Shared pytest fixtures and configuration for query engine tests.

This module provides common test fixtures, mock objects, and configuration
that can be used across all test modules.
"""

import pytest

from dataverse_query.core.config import QueryConfig
from dataverse_query.data._metadata import MetadataResolver

from fixtures.test_data import StubMetadataSource


@pytest.fixture
def test_config():
    """Test configuration with safe defaults."""
    return QueryConfig(
        language_code=1033,
        http_retries=None,
        http_backoff=0.1,
        http_timeout=5,
    )


@pytest.fixture
def metadata_source():
    """In-memory metadata source that counts lookups."""
    return StubMetadataSource()


@pytest.fixture
def resolver(metadata_source):
    """Metadata resolver over the in-memory source."""
    return MetadataResolver(metadata_source)


@pytest.fixture
def sample_base_url():
    """Standard test base URL."""
    return "https://org.example.com"
