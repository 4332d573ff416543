# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

# HTTP statuses reported as transient
TRANSIENT_STATUS = {429, 502, 503, 504}

# Validation subcodes
VALIDATION_NAME_EMPTY = "validation_name_empty"
VALIDATION_UNKNOWN_OPERATOR = "validation_unknown_operator"
VALIDATION_UNKNOWN_NODE = "validation_unknown_node"
VALIDATION_ROOT_NODE = "validation_root_node"
VALIDATION_ALIAS_CONFLICT = "validation_alias_conflict"

# Metadata subcodes
METADATA_ENTITY_NOT_FOUND = "metadata_entity_not_found"
METADATA_ATTRIBUTE_NOT_FOUND = "metadata_attribute_not_found"

# View import subcodes
VIEW_IMPORT_MALFORMED_XML = "view_import_malformed_xml"
VIEW_IMPORT_ROOT_MISSING = "view_import_root_missing"

# Query execution subcodes
QUERY_CANCELLED = "query_cancelled"
QUERY_PAGE_LIMIT = "query_page_limit"


def http_subcode(status: int) -> str:
    return f"http_{status}"
