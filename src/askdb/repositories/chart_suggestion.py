"""
Chart Suggestion Repository.

Derives default visualization hints from the shape of a result set when
the generator supplied none. Only the first row's keys and values are
inspected.
"""

import math
from typing import Any, List

from askdb.domain.base_enums import ChartType
from askdb.domain.plan import ChartSuggestion
from askdb.domain.types import ResultRow


def is_numeric_like(value: Any) -> bool:
    """Numbers (booleans excluded) and strings that fully parse as a finite number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        text = value.strip()
        # float() accepts digit separators ("1_000"); a plain numeric string does not
        if not text or "_" in text:
            return False
        try:
            return math.isfinite(float(text))
        except ValueError:
            return False
    return False


def is_string_like(value: Any) -> bool:
    return isinstance(value, str) and not is_numeric_like(value)


class ChartSuggestionRepository:
    """Heuristic chart suggestions for result rows."""

    def suggest(self, rows: List[ResultRow]) -> List[ChartSuggestion]:
        """
        Suggest charts for rows, always starting with a table.

        Order: table, bar (category x numeric), line (numeric x numeric),
        pie (category counts). Empty rows yield a single "No data available" table.
        """
        if not rows:
            return [ChartSuggestion(type=ChartType.TABLE.value, title="No data available")]

        suggestions = [ChartSuggestion(type=ChartType.TABLE.value, title="Tabular Results")]

        first_row = rows[0]
        numeric_keys = [key for key, value in first_row.items() if is_numeric_like(value)]
        string_keys = [key for key, value in first_row.items() if is_string_like(value)]

        if string_keys and numeric_keys:
            suggestions.append(ChartSuggestion(
                type=ChartType.BAR.value,
                title=f"{numeric_keys[0]} by {string_keys[0]}",
                x=string_keys[0],
                y=numeric_keys[0],
            ))

        if len(numeric_keys) >= 2:
            suggestions.append(ChartSuggestion(
                type=ChartType.LINE.value,
                title=f"{numeric_keys[0]} vs {numeric_keys[1]}",
                x=numeric_keys[1],
                y=numeric_keys[0],
            ))

        if string_keys:
            suggestions.append(ChartSuggestion(
                type=ChartType.PIE.value,
                title=f"Distribution by {string_keys[0]}",
                x=string_keys[0],
                y="count",
            ))

        return suggestions
