# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Result types for query execution.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass(frozen=True)
class QueryPage:
    """
    One page of query results.

    :param records: Record dictionaries from the response ``value`` array.
    :type records: list[dict]
    :param next_link: Fully qualified continuation URL, or None on the last page.
    :type next_link: str or None

    Example::

        page = client.query.execute("contacts?$select=fullname")
        for record in page:
            print(record["fullname"])
        if page.has_more:
            page = client.query.execute(page.next_link)
    """

    records: List[Dict[str, Any]] = field(default_factory=list)
    next_link: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_link)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @classmethod
    def from_api_response(cls, body: Any) -> "QueryPage":
        if not isinstance(body, dict):
            return cls()
        items = body.get("value")
        records = [x for x in items if isinstance(x, dict)] if isinstance(items, list) else []
        next_link = body.get("@odata.nextLink") or body.get("odata.nextLink")
        return cls(records=records, next_link=next_link or None)
