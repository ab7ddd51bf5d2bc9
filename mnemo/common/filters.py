"""
Metadata filter evaluation

Shared by the hybrid index (symbolic layer) and the storage backends so that
`query_units` and `structured_search` agree on what a filter matches.
"""

from typing import List, Optional

from .schemas import MemoryUnit, QueryFilter
from .temporal import is_within_range


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in haystack.lower()


def _any_match(wanted: List[str], values: List[str]) -> bool:
    return any(_contains(value, w) for w in wanted for value in values)


def matches_filter(unit: MemoryUnit, filter: Optional[QueryFilter]) -> bool:
    """
    Check whether a unit satisfies every predicate set on the filter.

    Missing unit metadata is a non-match for the predicate that needs it,
    never an error. A None or empty filter matches every unit.

    Args:
        unit: Unit to test
        filter: Conjunctive metadata predicate

    Returns:
        True if all set predicates hold
    """
    if filter is None:
        return True

    if filter.persons and not _any_match(filter.persons, unit.persons):
        return False

    if filter.entities and not _any_match(filter.entities, unit.entities):
        return False

    time_range = filter.timestamp_range
    if time_range is not None and time_range.is_bounded:
        if not unit.timestamp:
            return False
        if not is_within_range(unit.timestamp, time_range.start, time_range.end):
            return False

    if filter.location:
        if not unit.location or not _contains(unit.location, filter.location):
            return False

    if filter.topic:
        if not unit.topic or not _contains(unit.topic, filter.topic):
            return False

    return True
