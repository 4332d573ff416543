# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Operation namespace classes for the query client.

This module contains the operation namespace classes that organize
related operations under intuitive namespaces:
- ViewOperations: saved view discovery and FetchXML import
- QueryOperations: query compilation, execution and exhaustive retrieval
"""

__all__ = []
