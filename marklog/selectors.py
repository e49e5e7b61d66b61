"""
Bookmark selectors: which rows an update or delete targets.

A selector is one of SingleId, IdRange or AllRows. Only SingleId is strict:
resolving it against a missing row raises NoSuchId. Ranges and AllRows
resolve to whatever subset currently exists.
"""
from dataclasses import dataclass
from typing import List, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from marklog.errors import NoSuchId
from marklog.models import Bookmark

ALL_MARKER = "*"


@dataclass(frozen=True)
class SingleId:
    id: int

    def __post_init__(self):
        if self.id < 1:
            raise ValueError(f"Bookmark ids are positive, got {self.id}")


@dataclass(frozen=True)
class IdRange:
    """Inclusive id range; bounds may be given in either order."""
    start: int
    end: int

    @property
    def low(self) -> int:
        return min(self.start, self.end)

    @property
    def high(self) -> int:
        return max(self.start, self.end)


@dataclass(frozen=True)
class AllRows:
    pass


Selector = Union[SingleId, IdRange, AllRows]


def parse_selector(text: str) -> Selector:
    """
    Parse the textual selector forms.

    Supports:
        "*"     all bookmarks
        "5"     a single id
        "3-9"   an inclusive range

    Raises:
        ValueError: if ``text`` is none of the above
    """
    value = text.strip()
    if value == ALL_MARKER:
        return AllRows()

    if "-" in value:
        parts = value.split("-")
        if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
            return IdRange(int(parts[0]), int(parts[1]))
        raise ValueError(f"Invalid range format: {text}")

    if value.isdigit():
        return SingleId(int(value))
    raise ValueError(f"Invalid ID: {text}")


def resolve(session: Session, selector: Selector) -> List[int]:
    """
    Resolve a selector to the ascending list of existing ids.

    Raises:
        NoSuchId: a SingleId selector names a missing bookmark
    """
    if isinstance(selector, SingleId):
        if session.get(Bookmark, selector.id) is None:
            raise NoSuchId(selector.id)
        return [selector.id]

    query = select(Bookmark.id).order_by(Bookmark.id)
    if isinstance(selector, IdRange):
        query = query.where(Bookmark.id.between(selector.low, selector.high))
    elif not isinstance(selector, AllRows):
        raise TypeError(f"Unknown selector: {selector!r}")

    return list(session.execute(query).scalars())
