# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Internal pandas helpers"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd


def strip_odata_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    """Remove OData annotation keys (keys containing '@') from a record dict."""
    return {k: v for k, v in record.items() if "@" not in k}


def rows_to_dataframe(rows: Iterable[Any], columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Build a DataFrame from rows, keeping ``columns`` order (and header) even when there are no rows.

    :param rows: Flat row dictionaries, or value lists laid out in ``columns`` order.
    :param columns: Column labels in output order; may repeat. Defaults to the keys of the rows.
    """
    data: List[Any] = list(rows)
    if columns is None:
        return pd.DataFrame.from_records(data)
    return pd.DataFrame(data, columns=list(columns))
