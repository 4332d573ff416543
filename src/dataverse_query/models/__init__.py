# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Data models and type definitions for the query engine.

- :mod:`~dataverse_query.models.metadata`: entity, attribute and relationship descriptors.
- :mod:`~dataverse_query.models.query_graph`: query nodes, the query graph and selected columns.
- :mod:`~dataverse_query.models.filters`: the filter tree.
- :mod:`~dataverse_query.models.operators`: the filter operator table.
- :mod:`~dataverse_query.models.view`: saved views and import results.

Note:
    This ``__init__.py`` does NOT import/export models. Import directly from
    the specific module files.
"""

__all__ = []
