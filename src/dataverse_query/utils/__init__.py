# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Export helpers for query results.
"""

from .export import column_headers, export_rows, export_value, export_values, to_csv, to_dataframe, to_spreadsheet_xml

__all__ = [
    "export_value",
    "export_values",
    "export_rows",
    "column_headers",
    "to_dataframe",
    "to_csv",
    "to_spreadsheet_xml",
]
