# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Data access layer: Web API client, metadata resolution, FetchXML import,
query compilation and pagination.
"""

__all__ = []
