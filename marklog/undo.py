"""
Undo log management.

Every mutation writes an UndoEntry holding the row's full pre-state in the
same transaction as the mutation itself. Entries sharing a batch_id form one
logical unit; an entry without a batch_id is a unit on its own. undo(n)
consumes the n most recent units in strict reverse sequence order, applying
each reversal and deleting the consumed entries in the caller's transaction.
There is no redo.
"""
import enum
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from marklog.errors import DuplicateUrl, EmptyLog
from marklog.models import Bookmark, Snapshot, UndoEntry, UndoOperation

logger = logging.getLogger(__name__)


class BatchPolicy(enum.Enum):
    """How the rows of one multi-row command are grouped for undo."""
    SHARED = "shared"    # one batch for the whole command
    PER_ROW = "per_row"  # a fresh batch for every row


def new_batch_id() -> str:
    return uuid.uuid4().hex


def ensure_url_free(session: Session, url: str, own_id: Optional[int]) -> None:
    """Raise DuplicateUrl if another row than ``own_id`` holds ``url``."""
    existing = session.execute(
        select(Bookmark.id).where(Bookmark.url == url)
    ).scalar_one_or_none()
    if existing is not None and existing != own_id:
        raise DuplicateUrl(url, existing)


@dataclass
class UndoUnitReport:
    """What undoing one logical unit did."""
    batch_id: Optional[str]
    operations: List[UndoOperation] = field(default_factory=list)
    affected: int = 0
    remapped: Dict[int, int] = field(default_factory=dict)

    @property
    def operation(self) -> str:
        """The undone operation name, or MIXED for a batch of several kinds."""
        kinds = {op.value for op in self.operations}
        return kinds.pop() if len(kinds) == 1 else "MIXED"

    def describe(self) -> str:
        text = f"Undid {self.operation} on {self.affected} bookmark(s)"
        for old, new in sorted(self.remapped.items()):
            text += f"; bookmark {old} restored as {new}"
        return text


@dataclass
class UndoReport:
    requested: int
    units: List[UndoUnitReport] = field(default_factory=list)

    @property
    def undone(self) -> int:
        return len(self.units)

    @property
    def shortfall(self) -> int:
        return self.requested - self.undone

    @property
    def affected(self) -> int:
        return sum(unit.affected for unit in self.units)

    @property
    def remapped(self) -> Dict[int, int]:
        merged: Dict[int, int] = {}
        for unit in self.units:
            merged.update(unit.remapped)
        return merged


class UndoLog:
    """
    Undo log bound to one open session.

    Never commits: the caller's transaction owns both the mutation and its
    log entries, so they land or roll back together.
    """

    def __init__(self, session: Session):
        self.session = session
        self._batch_id: Optional[str] = None

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    @property
    def current_batch(self) -> Optional[str]:
        return self._batch_id

    def begin_batch(self) -> str:
        """Open a batch; record() calls for this command should pass its id."""
        if self._batch_id is not None:
            raise RuntimeError(f"Batch {self._batch_id} is already open")
        self._batch_id = new_batch_id()
        return self._batch_id

    def end_batch(self) -> None:
        self._batch_id = None

    @contextmanager
    def batch(self) -> Iterator[str]:
        batch_id = self.begin_batch()
        try:
            yield batch_id
        finally:
            self.end_batch()

    def batch_id_for(self, policy: BatchPolicy) -> Optional[str]:
        """
        Batch id to record the next row under.

        SHARED returns the open batch; PER_ROW returns a fresh id each call.
        """
        if policy is BatchPolicy.PER_ROW:
            return new_batch_id()
        if policy is BatchPolicy.SHARED:
            if self._batch_id is None:
                raise RuntimeError("SHARED batch policy needs an open batch")
            return self._batch_id
        raise ValueError(f"Unknown batch policy: {policy!r}")

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(
        self,
        operation: UndoOperation,
        bookmark_id: int,
        pre_state: Optional[Snapshot] = None,
        batch_id: Optional[str] = None,
    ) -> int:
        """
        Append an entry inside the active transaction.

        Args:
            operation: The mutation being logged
            bookmark_id: Row the mutation touches
            pre_state: Row state before the mutation (ignored for ADD,
                required otherwise)
            batch_id: Grouping key, or None for a standalone unit

        Returns:
            The entry's sequence number
        """
        entry = UndoEntry(operation=operation, bookmark_id=bookmark_id, batch_id=batch_id)

        if operation is UndoOperation.ADD:
            pass
        elif operation is UndoOperation.UPDATE or operation is UndoOperation.DELETE:
            if pre_state is None:
                raise ValueError(f"{operation.value} entries need a pre-state snapshot")
            entry.url = pre_state.url
            entry.title = pre_state.title
            entry.tags = pre_state.tags
            entry.description = pre_state.description
            entry.flags = pre_state.flags
        else:
            raise ValueError(f"Unknown undo operation: {operation!r}")

        self.session.add(entry)
        self.session.flush()
        return entry.sequence

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def pending_units(self) -> int:
        """Number of logical units available to undo."""
        batches = self.session.execute(
            select(func.count(func.distinct(UndoEntry.batch_id)))
        ).scalar()
        singles = self.session.execute(
            select(func.count()).select_from(UndoEntry).where(UndoEntry.batch_id.is_(None))
        ).scalar()
        return (batches or 0) + (singles or 0)

    def history(self, limit: Optional[int] = 20) -> List[UndoEntry]:
        """Most recent entries first."""
        query = select(UndoEntry).order_by(UndoEntry.sequence.desc())
        if limit:
            query = query.limit(limit)
        return list(self.session.execute(query).scalars())

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        result = self.session.execute(delete(UndoEntry))
        logger.info(f"Cleared {result.rowcount} undo log entries")
        return result.rowcount

    # ------------------------------------------------------------------
    # Undo
    # ------------------------------------------------------------------

    def undo(self, n: int = 1) -> UndoReport:
        """
        Undo the ``n`` most recent logical units.

        Raises:
            ValueError: n is not positive
            EmptyLog: nothing at all could be undone
        """
        if n < 1:
            raise ValueError(f"Undo count must be positive, got {n}")

        report = UndoReport(requested=n)
        remapped: Dict[int, int] = {}

        for _ in range(n):
            entries = self._latest_unit()
            if not entries:
                break
            report.units.append(self._reverse_unit(entries, remapped))

        if not report.units:
            raise EmptyLog(n)
        if report.shortfall:
            logger.warning(
                f"Requested {n} undo step(s) but only {report.undone} were available"
            )
        return report

    def _latest_unit(self) -> List[UndoEntry]:
        """Entries of the most recent unit, newest first."""
        latest = self.session.execute(
            select(UndoEntry).order_by(UndoEntry.sequence.desc()).limit(1)
        ).scalar_one_or_none()
        if latest is None:
            return []
        if latest.batch_id is None:
            return [latest]

        return list(self.session.execute(
            select(UndoEntry)
            .where(UndoEntry.batch_id == latest.batch_id)
            .order_by(UndoEntry.sequence.desc())
        ).scalars())

    def _reverse_unit(self, entries: List[UndoEntry], remapped: Dict[int, int]) -> UndoUnitReport:
        unit = UndoUnitReport(batch_id=entries[0].batch_id)

        for entry in entries:
            unit.operations.append(entry.operation)
            unit.affected += self._reverse(entry, unit, remapped)
            self.session.delete(entry)
            self.session.flush()

        logger.info(unit.describe())
        return unit

    def _reverse(self, entry: UndoEntry, unit: UndoUnitReport, remapped: Dict[int, int]) -> int:
        """Apply one reversal. Returns the number of bookmark rows touched."""
        bookmark_id = remapped.get(entry.bookmark_id, entry.bookmark_id)
        operation = entry.operation

        if operation is UndoOperation.ADD:
            bookmark = self.session.get(Bookmark, bookmark_id)
            if bookmark is None:
                logger.warning(f"Undo ADD: bookmark {bookmark_id} is already gone")
                return 0
            self.session.delete(bookmark)
            self.session.flush()
            return 1

        if operation is UndoOperation.UPDATE:
            bookmark = self.session.get(Bookmark, bookmark_id)
            if bookmark is None:
                logger.warning(f"Undo UPDATE: bookmark {bookmark_id} no longer exists")
                return 0
            snapshot = entry.snapshot()
            ensure_url_free(self.session, snapshot.url, bookmark_id)
            bookmark.restore(snapshot)
            self.session.flush()
            return 1

        if operation is UndoOperation.DELETE:
            snapshot = entry.snapshot()
            ensure_url_free(self.session, snapshot.url, None)
            restored = Bookmark(**snapshot.as_dict())
            if self.session.get(Bookmark, bookmark_id) is None:
                restored.id = bookmark_id
            self.session.add(restored)
            self.session.flush()
            if restored.id != bookmark_id:
                logger.info(f"Bookmark {bookmark_id} id is taken, restored as {restored.id}")
                unit.remapped[entry.bookmark_id] = restored.id
                remapped[entry.bookmark_id] = restored.id
            return 1

        raise ValueError(f"Unknown undo operation: {operation!r}")
