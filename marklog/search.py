"""
Search query construction.

build() turns keywords and mode flags into a QueryPlan: a pure value that
says what to match and how to combine it. QueryPlan.to_clause() compiles the
plan into a SQLAlchemy filter over the bookmarks table; the store decides
ordering, visibility and execution.

Modes:
    NORMAL  whole-word match in title, url, tags, description (FTS5 when
            available, otherwise a word-boundary regex)
    DEEP    case-insensitive substring match in the same fields
    REGEX   each keyword is a case-insensitive regular expression
    TAGS    exact tag equality against the canonical tag column
"""
import enum
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from sqlalchemy import and_, or_, false, true

from marklog import fts
from marklog.errors import InvalidSearchPattern
from marklog.models import Bookmark
from marklog.tags import DELIMITER, split_tags

# Tokens that mark a keyword as already being an FTS5 query expression
FTS_OPERATORS = ('"', ' AND ', ' OR ', ' NOT ')


class SearchMode(enum.Enum):
    NORMAL = "normal"
    DEEP = "deep"
    REGEX = "regex"
    TAGS = "tags"


@dataclass(frozen=True)
class QueryPlan:
    """
    Mode, combination rule and prepared match terms for one search.

    ``fts_query`` is set when the plan runs against the full-text index; in
    passthrough mode it is the caller's keyword object itself.
    """
    mode: SearchMode
    match_all: bool
    keywords: Tuple[str, ...]
    terms: Tuple[str, ...] = ()
    fts_query: Optional[str] = None
    passthrough: bool = False

    @property
    def matches_everything(self) -> bool:
        return self.fts_query is None and not self.keywords

    def to_clause(self):
        """Compile the plan into a SQLAlchemy boolean clause."""
        if self.fts_query is not None:
            return Bookmark.id.in_(fts.match_ids(self.fts_query))
        if not self.terms:
            # keywords that reduced to nothing (e.g. a bare delimiter) match no row
            return false() if self.keywords else true()

        combine = and_ if self.match_all else or_
        return combine(*(_term_clause(self.mode, term) for term in self.terms))


SEARCH_FIELDS = (Bookmark.title, Bookmark.url, Bookmark.tags, Bookmark.description)


def _term_clause(mode: SearchMode, term: str):
    if mode is SearchMode.NORMAL or mode is SearchMode.REGEX:
        return or_(*(column.regexp_match(term) for column in SEARCH_FIELDS))
    if mode is SearchMode.DEEP:
        return or_(*(column.icontains(term, autoescape=True) for column in SEARCH_FIELDS))
    if mode is SearchMode.TAGS:
        return Bookmark.tags.contains(term, autoescape=True)
    raise ValueError(f"Unknown search mode: {mode!r}")


def is_fts_expression(keyword: str) -> bool:
    """True if ``keyword`` already uses FTS5 query syntax."""
    return any(op in keyword for op in FTS_OPERATORS)


def quote_fts(keyword: str) -> str:
    """Quote a keyword as an FTS5 phrase so it is matched literally."""
    return '"' + keyword.replace('"', '""') + '"'


def whole_word_pattern(keyword: str) -> str:
    """Case-insensitive regex matching ``keyword`` as a whole word."""
    return r"(?i)(?<!\w)" + re.escape(keyword) + r"(?!\w)"


def build(
    keywords: Iterable[str],
    mode: SearchMode = SearchMode.NORMAL,
    match_all: bool = False,
    fts_enabled: bool = True,
) -> QueryPlan:
    """
    Build a query plan. Never touches the store.

    Args:
        keywords: Ordered search keywords; blank ones are ignored
        mode: How each keyword is matched
        match_all: AND the keywords together instead of OR
        fts_enabled: Whether the full-text index can serve NORMAL searches

    Raises:
        InvalidSearchPattern: a REGEX keyword does not compile
    """
    words = tuple(k for k in keywords if k and not k.isspace())
    plan = dict(mode=mode, match_all=match_all, keywords=words)

    if not words:
        return QueryPlan(**plan)

    if mode is SearchMode.NORMAL:
        if not fts_enabled:
            return QueryPlan(terms=tuple(whole_word_pattern(k) for k in words), **plan)
        if len(words) == 1 and is_fts_expression(words[0]):
            return QueryPlan(fts_query=words[0], passthrough=True, **plan)
        joiner = " AND " if match_all else " OR "
        return QueryPlan(fts_query=joiner.join(quote_fts(k) for k in words), **plan)

    if mode is SearchMode.DEEP:
        return QueryPlan(terms=words, **plan)

    if mode is SearchMode.REGEX:
        for keyword in words:
            try:
                re.compile(keyword)
            except re.error as e:
                raise InvalidSearchPattern(keyword, str(e)) from e
        return QueryPlan(terms=tuple("(?i)" + k for k in words), **plan)

    if mode is SearchMode.TAGS:
        names = [name for k in words for name in split_tags(k)]
        tokens = tuple(dict.fromkeys(DELIMITER + name + DELIMITER for name in names))
        return QueryPlan(terms=tokens, **plan)

    raise ValueError(f"Unknown search mode: {mode!r}")
