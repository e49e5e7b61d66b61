"""
Full-Text Search index for marklog.

Maintains an SQLite FTS5 shadow table over the searchable bookmark columns.
Triggers keep it in step with ``bookmarks`` inside the same transaction as
every insert, update and delete, so the index can never drift from a
committed mutation. FTS5 gives whole-token matching plus the native query
syntax (phrases, AND/OR/NOT, prefix*).

When FTS5 is not compiled into the SQLite library, or the store is not
SQLite, install() reports False and searches fall back to regex scans.
"""
import logging

from sqlalchemy import column, select, table, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

logger = logging.getLogger(__name__)

FTS_TABLE = 'bookmarks_fts'

_CREATE_TABLE = f"""
    CREATE VIRTUAL TABLE IF NOT EXISTS {FTS_TABLE} USING fts5(
        url,
        title,
        tags,
        description,
        tokenize='unicode61'
    )
"""

_TRIGGERS = (
    f"""
    CREATE TRIGGER IF NOT EXISTS bookmarks_fts_ai AFTER INSERT ON bookmarks BEGIN
        INSERT INTO {FTS_TABLE}(rowid, url, title, tags, description)
        VALUES (new.id, new.url, new.title, new.tags, new.description);
    END
    """,
    # Delete + insert rather than UPDATE so an id change moves the rowid too
    f"""
    CREATE TRIGGER IF NOT EXISTS bookmarks_fts_au AFTER UPDATE ON bookmarks BEGIN
        DELETE FROM {FTS_TABLE} WHERE rowid = old.id;
        INSERT INTO {FTS_TABLE}(rowid, url, title, tags, description)
        VALUES (new.id, new.url, new.title, new.tags, new.description);
    END
    """,
    f"""
    CREATE TRIGGER IF NOT EXISTS bookmarks_fts_ad AFTER DELETE ON bookmarks BEGIN
        DELETE FROM {FTS_TABLE} WHERE rowid = old.id;
    END
    """,
)

_BACKFILL = f"""
    INSERT INTO {FTS_TABLE}(rowid, url, title, tags, description)
    SELECT id, url, title, tags, description FROM bookmarks
"""


def install(engine: Engine) -> bool:
    """
    Create the FTS5 table and its triggers if they don't exist.

    Backfills the index when it is empty but bookmarks exist (databases
    created before the index, or by a build without FTS5).

    Returns:
        True if the index is available
    """
    if engine.dialect.name != 'sqlite':
        logger.debug(f"FTS5 not available for dialect {engine.dialect.name}")
        return False

    try:
        with engine.begin() as conn:
            conn.execute(text(_CREATE_TABLE))
            for trigger in _TRIGGERS:
                conn.execute(text(trigger))

            indexed = conn.execute(text(f"SELECT COUNT(*) FROM {FTS_TABLE}")).scalar()
            total = conn.execute(text("SELECT COUNT(*) FROM bookmarks")).scalar()
            if indexed == 0 and total > 0:
                conn.execute(text(_BACKFILL))
                logger.info(f"Indexed {total} existing bookmarks for full-text search")
    except OperationalError as e:
        logger.warning(f"Full-text search unavailable, using regex fallback: {e.orig}")
        return False

    return True


def rebuild(engine: Engine) -> int:
    """
    Rebuild the index from the bookmarks table.

    Returns:
        Number of documents indexed
    """
    with engine.begin() as conn:
        conn.execute(text(f"DELETE FROM {FTS_TABLE}"))
        conn.execute(text(_BACKFILL))
        return conn.execute(text(f"SELECT COUNT(*) FROM {FTS_TABLE}")).scalar()


_fts_table = table(FTS_TABLE, column("rowid"))


def match_ids(fts_query: str):
    """Select of bookmark ids whose indexed columns match ``fts_query``."""
    return select(_fts_table.c.rowid).where(
        text(f"{FTS_TABLE} MATCH :fts_query").bindparams(fts_query=fts_query)
    )
