"""Page decoding and aggregation for the supported output formats.

``array`` turns Athena-style ``ResultSet.Rows`` into ``{column: value}``
records; ``raw`` passes the page payload through untouched.
"""

import copy
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from athena_stream.errors import FormatError
from athena_stream.gateway import ResultPage


class OutputFormat(str, Enum):
    """Supported decoded chunk shapes."""

    ARRAY = "array"
    RAW = "raw"

    @classmethod
    def parse(cls, value: Any) -> "OutputFormat":
        """Return the matching format or raise FormatError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise FormatError(value) from None


def _cell_values(row: Mapping[str, Any]) -> List[Optional[str]]:
    return [datum.get("VarCharValue") for datum in row.get("Data") or []]


class PageDecoder:
    """Decode the pages of a single query, in fetch order.

    Only the first page carries the header row. Column names come from
    ``ResultSetMetadata.ColumnInfo`` when present, otherwise from that header.
    """

    def __init__(self, output_format: Any) -> None:
        self._output_format = output_format
        self._columns: Optional[List[Optional[str]]] = None
        self._pages_decoded = 0

    @property
    def pages_decoded(self) -> int:
        """Return how many pages this decoder has handled."""
        return self._pages_decoded

    def decode(self, page: ResultPage) -> Any:
        """Decode one page into the configured chunk shape."""
        output_format = OutputFormat.parse(self._output_format)
        first_page = self._pages_decoded == 0
        self._pages_decoded += 1
        if output_format is OutputFormat.RAW:
            return page.payload
        return self._records(page.payload, first_page)

    def _records(self, payload: Mapping[str, Any], first_page: bool) -> List[Dict[str, Any]]:
        result_set = payload.get("ResultSet") or {}
        rows = list(result_set.get("Rows") or [])
        if self._columns is None:
            metadata = (result_set.get("ResultSetMetadata") or {}).get("ColumnInfo") or []
            if metadata:
                self._columns = [col.get("Name") for col in metadata]
            elif first_page and rows:
                self._columns = _cell_values(rows[0])
        if first_page and rows:
            rows = rows[1:]
        columns = self._columns or []
        return [dict(zip(columns, _cell_values(row))) for row in rows]


class ResultAggregator:
    """Merge decoded chunks into one in-memory result."""

    def __init__(self, output_format: Any) -> None:
        self._output_format = OutputFormat.parse(output_format)
        self._records: List[Dict[str, Any]] = []
        self._raw: Optional[Dict[str, Any]] = None

    def add(self, chunk: Any) -> None:
        """Fold one chunk into the result."""
        if self._output_format is OutputFormat.ARRAY:
            self._records.extend(chunk)
            return
        if self._raw is None:
            self._raw = copy.deepcopy(dict(chunk))
            self._raw.pop("NextToken", None)
            return
        rows = self._raw.setdefault("ResultSet", {}).setdefault("Rows", [])
        rows.extend(copy.deepcopy((chunk.get("ResultSet") or {}).get("Rows") or []))

    def result(self) -> Any:
        """Return the aggregated records (array) or envelope (raw)."""
        if self._output_format is OutputFormat.ARRAY:
            return self._records
        return self._raw
