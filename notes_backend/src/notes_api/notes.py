"""
Note store: owner-scoped persistence and query contract for notes.

Every read and write is filtered by the owning user's id. A note that exists
but belongs to someone else is reported exactly like a missing note.
"""

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Callable, ClassVar, Iterable, List, Optional

import structlog
from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from notes_api.errors import InvalidInputError, NotFoundError
from notes_api.models import DEFAULT_NOTE_COLOR, Note, NoteLabel, utcnow

logger = structlog.get_logger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
DEFAULT_FLAT_LIMIT = 100
MAX_FLAT_LIMIT = 500


class _Unset:
    """Marker for a partial-update field the client did not send."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


@dataclass(frozen=True)
class NotePatch:
    """Partial update: each field is either UNSET (leave alone) or the new value."""

    FIELDS: ClassVar[tuple] = ("title", "content", "labels", "color", "pinned", "archived")

    title: "str | _Unset" = UNSET
    content: "str | _Unset" = UNSET
    labels: "List[str] | _Unset" = UNSET
    color: "str | _Unset" = UNSET
    pinned: "bool | _Unset" = UNSET
    archived: "bool | _Unset" = UNSET

    def changes(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}


@dataclass(frozen=True)
class NoteFilter:
    """Optional listing filters, combined with AND."""

    query: Optional[str] = None
    label: Optional[str] = None
    pinned: Optional[bool] = None
    archived: Optional[bool] = None


@dataclass
class NotePage:
    notes: List[Note]
    total: int
    page: int
    limit: int


def clean_labels(values: Iterable[str]) -> List[str]:
    """Drop repeated labels, keeping the first occurrence and the given order."""
    seen = set()
    result = []
    for value in values:
        value = str(value)
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def escape_like(text: str, escape: str = "\\") -> str:
    return (
        text.replace(escape, escape * 2)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


class NoteStore:
    """Owner-scoped CRUD over notes, bound to one ORM session."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self._clock = clock

    def _owned(self, owner_id: str) -> Query:
        return self.db.query(Note).filter(Note.owner_id == owner_id)

    def _filtered(self, owner_id: str, note_filter: NoteFilter) -> Query:
        query = self._owned(owner_id)
        if note_filter.query:
            like = f"%{escape_like(note_filter.query)}%"
            query = query.filter(
                or_(
                    Note.title.ilike(like, escape="\\"),
                    Note.content.ilike(like, escape="\\"),
                )
            )
        if note_filter.label:
            query = query.filter(Note.label_rows.any(NoteLabel.value == note_filter.label))
        if note_filter.pinned is not None:
            query = query.filter(Note.pinned == note_filter.pinned)
        if note_filter.archived is not None:
            query = query.filter(Note.archived == note_filter.archived)
        return query

    @staticmethod
    def _sorted(query: Query) -> Query:
        # Pinned first, most recently touched next, id keeps ties stable
        return query.order_by(Note.pinned.desc(), Note.updated_at.desc(), Note.id.asc())

    # PUBLIC_INTERFACE
    def create(
        self,
        owner_id: str,
        title: str = "",
        content: str = "",
        labels: Optional[Iterable[str]] = None,
        color: Optional[str] = None,
        pinned: bool = False,
        archived: bool = False,
    ) -> Note:
        """
        Create a note for ``owner_id``.

        Raises:
            InvalidInputError if both title and content are blank.
        """
        title = (title or "").strip()
        content = (content or "").strip()
        if not title and not content:
            raise InvalidInputError("Title or content is required")

        now = self._clock()
        note = Note(
            owner_id=owner_id,
            title=title,
            content=content,
            color=color if color else DEFAULT_NOTE_COLOR,
            pinned=bool(pinned),
            archived=bool(archived),
            created_at=now,
            updated_at=now,
        )
        note.labels = clean_labels(labels or [])
        self.db.add(note)
        self.db.commit()
        logger.info("Note created", note_id=note.id, owner_id=owner_id)
        return note

    # PUBLIC_INTERFACE
    def get(self, owner_id: str, note_id: str) -> Note:
        """Return the caller's note, or raise NotFoundError."""
        note = self._owned(owner_id).filter(Note.id == note_id).first()
        if note is None:
            raise NotFoundError("Note not found")
        return note

    # PUBLIC_INTERFACE
    def list(
        self,
        owner_id: str,
        note_filter: Optional[NoteFilter] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> NotePage:
        """Filtered, sorted, 1-indexed page of the caller's notes plus the total match count."""
        if page < 1:
            raise InvalidInputError("page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")

        query = self._filtered(owner_id, note_filter or NoteFilter())
        total = query.count()
        notes = self._sorted(query).offset((page - 1) * limit).limit(limit).all()
        return NotePage(notes=notes, total=total, page=page, limit=limit)

    # PUBLIC_INTERFACE
    def list_flat(
        self,
        owner_id: str,
        note_filter: Optional[NoteFilter] = None,
        limit: int = DEFAULT_FLAT_LIMIT,
    ) -> List[Note]:
        """Filtered, sorted notes of the caller, capped at ``limit``, without paging."""
        if not 1 <= limit <= MAX_FLAT_LIMIT:
            raise InvalidInputError(f"limit must be between 1 and {MAX_FLAT_LIMIT}")
        query = self._filtered(owner_id, note_filter or NoteFilter())
        return self._sorted(query).limit(limit).all()

    # PUBLIC_INTERFACE
    def update(self, owner_id: str, note_id: str, patch: NotePatch) -> Note:
        """
        Apply a partial update. Fields left UNSET keep their value; updated_at
        is always re-stamped.
        """
        note = self.get(owner_id, note_id)
        changes = patch.changes()
        for name, value in changes.items():
            if name in ("title", "content"):
                value = value.strip()
            elif name == "labels":
                value = clean_labels(value)
            setattr(note, name, value)
        note.updated_at = self._clock()
        self.db.commit()
        logger.info("Note updated", note_id=note.id, owner_id=owner_id, fields=sorted(changes))
        return note

    # PUBLIC_INTERFACE
    def delete(self, owner_id: str, note_id: str) -> None:
        """Delete the caller's note, or raise NotFoundError."""
        note = self.get(owner_id, note_id)
        self.db.delete(note)
        self.db.commit()
        logger.info("Note deleted", note_id=note_id, owner_id=owner_id)
