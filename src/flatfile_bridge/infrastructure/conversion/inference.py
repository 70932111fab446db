"""
Column type inference from sampled text values.

Candidates are eliminated narrow-to-wide: every non-blank sample is tried
against each still-plausible type and the first survivor wins. String is the
catch-all and is returned when no sample carries a value.
"""

from typing import Dict, Iterable, List, Optional, Sequence

from .store_types import StoreType, is_blank

DETECTION_ORDER: List[StoreType] = list(StoreType)


def detect_type(values: Iterable[Optional[str]]) -> StoreType:
    """
    Guess the narrowest store type that parses every non-blank value.

    Examples:
        >>> detect_type(["123", "456"])
        <StoreType.INT32: 'Int32'>
        >>> detect_type([None, "", "2023-01-15"])
        <StoreType.DATE: 'Date'>
    """
    plausible = [t for t in DETECTION_ORDER if t is not StoreType.STRING]
    saw_value = False

    for value in values:
        if is_blank(value):
            continue
        saw_value = True
        plausible = [t for t in plausible if t.accepts(value)]
        if not plausible:
            break

    if not saw_value or not plausible:
        return StoreType.STRING
    return plausible[0]


def suggest_column_types(
    headers: Sequence[str], sample_rows: Sequence[Sequence[Optional[str]]]
) -> Dict[str, str]:
    """
    Suggest a store type name for every header from sampled rows.

    Missing cells in short rows count as blank. With no sample rows every
    column is String.

    Returns:
        Mapping header -> type name, in header order
    """
    if not sample_rows:
        return {header: StoreType.STRING.value for header in headers}

    suggestions: Dict[str, str] = {}
    for index, header in enumerate(headers):
        column = (row[index] if index < len(row) else None for row in sample_rows)
        suggestions[header] = detect_type(column).value
    return suggestions
