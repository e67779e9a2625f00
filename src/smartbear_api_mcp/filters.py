"""Query encoding for structured filters.

A filter maps a field name to a list of alternative comparisons, for example::

    {
        "event.since": [{"type": "eq", "value": "7d"}],
        "error.status": [{"type": "eq", "value": "open"}, {"type": "eq", "value": "for_review"}],
    }

and is sent as repeated, index-free bracketed keys:
``filters[error.status][][type]=eq&filters[error.status][][value]=open&...``
"""
from typing import Dict, List, Literal, Tuple, Union

from pydantic import BaseModel

FilterType = Literal["eq", "ne", "empty"]


class FilterValue(BaseModel):
    type: FilterType
    value: Union[bool, int, float, str]


Filters = Dict[str, List[FilterValue]]


def _render(value: Union[bool, int, float, str]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def encode_filters(filters: Dict[str, list]) -> List[Tuple[str, str]]:
    """Accepts FilterValue instances or plain dicts, as tools receive them from the host."""
    params: List[Tuple[str, str]] = []
    for field, comparisons in filters.items():
        for comparison in comparisons:
            if not isinstance(comparison, FilterValue):
                comparison = FilterValue.model_validate(comparison)
            params.append((f"filters[{field}][][type]", comparison.type))
            params.append((f"filters[{field}][][value]", _render(comparison.value)))
    return params
