"""
marklog - transactional bookmark catalogue

A bookmark store built on SQLAlchemy where every add, update and delete is
logged with its full pre-state, so any recent change can be undone.

Design Principles:
- One transaction per command covering rows, undo log and search index
- Tag edits expressed as a small algebra (+add, -remove, ~old:new)
- Search planning kept pure and separate from execution

Example Usage:
    >>> from marklog import BookmarkStore
    >>> store = BookmarkStore(path="bookmarks.db")
    >>> store.add("https://www.rust-lang.org", title="Rust", tags=["lang"])
    >>> store.update(1, tag_expr="+systems,-lang")
    >>> store.search("rust")
    >>> store.undo()
"""

__version__ = "0.1.0"

# Core store API
from marklog.db import (
    BookmarkStore,
    BookmarkDraft,
    FieldChanges,
    UpdateRequest,
    UpdateReport,
    DeleteReport,
    get_store,
)

# Configuration
from marklog.config import MarklogConfig, configure_logging, get_config, init_config

# Models
from marklog.models import Bookmark, Flag, UndoEntry, UndoOperation

# Errors
from marklog.errors import (
    MarklogError,
    DuplicateUrl,
    NoSuchId,
    MalformedTagExpression,
    EmptyLog,
    StoreUnavailable,
    InvalidSearchPattern,
    MutationVetoed,
)

# Building blocks
from marklog.search import SearchMode, QueryPlan
from marklog.selectors import SingleId, IdRange, AllRows, parse_selector
from marklog.undo import UndoReport

__all__ = [
    "BookmarkStore",
    "BookmarkDraft",
    "FieldChanges",
    "UpdateRequest",
    "UpdateReport",
    "DeleteReport",
    "get_store",
    "MarklogConfig",
    "configure_logging",
    "get_config",
    "init_config",
    "Bookmark",
    "Flag",
    "UndoEntry",
    "UndoOperation",
    "MarklogError",
    "DuplicateUrl",
    "NoSuchId",
    "MalformedTagExpression",
    "EmptyLog",
    "StoreUnavailable",
    "InvalidSearchPattern",
    "MutationVetoed",
    "SearchMode",
    "QueryPlan",
    "SingleId",
    "IdRange",
    "AllRows",
    "parse_selector",
    "UndoReport",
]
