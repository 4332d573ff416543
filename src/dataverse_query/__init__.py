# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Saved-view query model and OData translation engine for Microsoft Dataverse.

Imports FetchXML views into a normalized query graph and filter tree, compiles
them into Web API query strings, and retrieves every page of results for export.
"""

from .client import QueryClient

__version__ = "0.1.0"

__all__ = ["QueryClient", "__version__"]
