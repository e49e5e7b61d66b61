"""
SQLAlchemy models for marklog.

Two tables: ``bookmarks`` holds the catalogue, ``undo_log`` holds the
pre-mutation snapshots needed to reverse each add/update/delete.
"""
import enum
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import Integer, String, Text, DateTime, Index, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from marklog.tags import EMPTY_TAGS, split_tags


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class Flag(enum.IntFlag):
    """Bookmark flag bits."""
    NONE = 0
    IMMUTABLE = 1  # blocks automatic metadata refresh
    PRIVATE = 2    # hidden from default search


class UndoOperation(str, enum.Enum):
    """Kind of mutation an undo entry reverses."""
    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Snapshot:
    """Full mutable state of a bookmark, captured before a mutation."""
    url: str
    title: str
    tags: str
    description: str
    flags: int

    @classmethod
    def of(cls, bookmark: "Bookmark") -> "Snapshot":
        return cls(
            url=bookmark.url,
            title=bookmark.title or "",
            tags=bookmark.tags or EMPTY_TAGS,
            description=bookmark.description or "",
            flags=int(bookmark.flags or 0),
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Bookmark(Base):
    """
    Bookmark model representing a saved URL with metadata.

    Attributes:
        id: Primary key, assigned on insert
        url: The bookmark URL (unique across active bookmarks)
        title: Bookmark title, possibly empty
        tags: Canonical tag string, e.g. ``,python,web,``
        description: Free text
        flags: Bit set of Flag values
    """
    __tablename__ = 'bookmarks'

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default='')
    tags: Mapped[str] = mapped_column(Text, nullable=False, default=EMPTY_TAGS)
    description: Mapped[str] = mapped_column(Text, nullable=False, default='')
    flags: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('url', name='uq_bookmarks_url'),
    )

    @property
    def tag_list(self) -> List[str]:
        """Tags as a sorted list of names."""
        return split_tags(self.tags)

    @property
    def is_immutable(self) -> bool:
        return bool(self.flags & Flag.IMMUTABLE)

    @property
    def is_private(self) -> bool:
        return bool(self.flags & Flag.PRIVATE)

    def snapshot(self) -> Snapshot:
        return Snapshot.of(self)

    def restore(self, snapshot: Snapshot) -> None:
        """Overwrite every mutable field from a snapshot."""
        self.url = snapshot.url
        self.title = snapshot.title
        self.tags = snapshot.tags
        self.description = snapshot.description
        self.flags = snapshot.flags

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'url': self.url,
            'title': self.title,
            'tags': self.tag_list,
            'description': self.description,
            'flags': int(self.flags or 0),
        }

    def __repr__(self):
        title = (self.title or '')[:50]
        return f"<Bookmark(id={self.id}, title='{title}', url='{self.url[:50]}')>"


class UndoEntry(Base):
    """
    One reversible mutation.

    Snapshot columns hold the row as it was *before* the operation; they are
    NULL for ADD entries since reversing an add only needs the id.
    ``sequence`` uses AUTOINCREMENT on SQLite so numbers are never reused
    after entries are consumed.
    """
    __tablename__ = 'undo_log'

    sequence: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    operation: Mapped[UndoOperation] = mapped_column(
        SAEnum(UndoOperation, name='undo_operation', native_enum=False, length=16),
        nullable=False
    )
    bookmark_id: Mapped[int] = mapped_column(Integer, nullable=False)
    batch_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    flags: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index('ix_undo_log_batch_id', 'batch_id'),
        {'sqlite_autoincrement': True},
    )

    def snapshot(self) -> Optional[Snapshot]:
        """The stored pre-state, or None for ADD entries."""
        if self.operation is UndoOperation.ADD:
            return None
        return Snapshot(
            url=self.url,
            title=self.title or '',
            tags=self.tags or EMPTY_TAGS,
            description=self.description or '',
            flags=int(self.flags or 0),
        )

    def __repr__(self):
        return (
            f"<UndoEntry(sequence={self.sequence}, op={self.operation.value}, "
            f"bookmark_id={self.bookmark_id}, batch={self.batch_id})>"
        )
