"""
Event filter engine for the security log console.

apply_filter() is a pure function: it never mutates its input and always
returns a new list that keeps the input order.

Matching per event:
  level:  "all" matches everything, otherwise exact (case-normalised) level;
  search: empty matches everything; otherwise the pattern is compiled as a
           case-insensitive regular expression and searched in the message
           and the timestamp. A pattern that does not compile falls back to a
           case-insensitive literal substring match on the message only.
"""
from __future__ import annotations

import dataclasses
import logging
import re
from functools import lru_cache
from typing import Iterable

from .const import LEVEL_ALL
from .models import EventLog

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class FilterPredicate:
    level: str = LEVEL_ALL
    search: str = ""

    def __post_init__(self) -> None:
        level = (self.level or LEVEL_ALL).strip()
        object.__setattr__(self, "level", LEVEL_ALL if level.lower() == LEVEL_ALL else level.upper())
        object.__setattr__(self, "search", self.search or "")

    @property
    def is_empty(self) -> bool:
        return self.level == LEVEL_ALL and not self.search


@lru_cache(maxsize=64)
def _compile(pattern: str) -> re.Pattern | None:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        _LOGGER.debug("Search %r is not a valid regular expression (%s), using literal match", pattern, exc)
        return None


def _matches_search(event: EventLog, search: str) -> bool:
    regex = _compile(search)
    if regex is None:
        return search.lower() in event.message.lower()
    return regex.search(event.message) is not None or regex.search(event.timestamp) is not None


def matches(event: EventLog, predicate: FilterPredicate) -> bool:
    if predicate.level != LEVEL_ALL and event.level != predicate.level:
        return False
    if predicate.search:
        return _matches_search(event, predicate.search)
    return True


def apply_filter(events: Iterable[EventLog], predicate: FilterPredicate) -> list[EventLog]:
    """Visible subset of events, in input order."""
    return [event for event in events if matches(event, predicate)]
