# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Core infrastructure components for the query engine.

This module contains the foundational components including authentication,
configuration, HTTP client, and error handling.
"""

from .config import QueryConfig
from .errors import (
    DataverseError,
    HttpError,
    MetadataError,
    MetadataNotFoundError,
    QueryCancelledError,
    QueryExecutionError,
    ValidationError,
    ViewImportError,
)

__all__ = [
    "QueryConfig",
    "DataverseError",
    "HttpError",
    "MetadataError",
    "MetadataNotFoundError",
    "QueryCancelledError",
    "QueryExecutionError",
    "ValidationError",
    "ViewImportError",
]
