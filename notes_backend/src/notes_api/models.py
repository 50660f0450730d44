import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

DEFAULT_NOTE_COLOR = "default"


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class User(Base):
    """
    User entity keyed by normalized email, with a bcrypt password hash.
    """
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(320), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    notes = relationship("Note", back_populates="owner", cascade="all, delete-orphan")


class Note(Base):
    """
    Note entity owned by exactly one user.

    Timestamps are stamped by the note store, not by column defaults, so every
    mutation bumps ``updated_at`` even when no column value changed.
    """
    __tablename__ = "notes"

    id = Column(String(32), primary_key=True, default=new_id)
    owner_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(1024), nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    color = Column(String(64), nullable=False, default=DEFAULT_NOTE_COLOR)
    pinned = Column(Boolean, nullable=False, default=False)
    archived = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    owner = relationship("User", back_populates="notes")
    label_rows = relationship(
        "NoteLabel",
        order_by="NoteLabel.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_notes_owner_listing", "owner_id", "pinned", "updated_at"),
    )

    @property
    def labels(self) -> list[str]:
        return [row.value for row in self.label_rows]

    @labels.setter
    def labels(self, values: list[str]) -> None:
        self.label_rows = [NoteLabel(position=i, value=value) for i, value in enumerate(values)]


class NoteLabel(Base):
    """One label of a note; ``position`` keeps the order the client gave."""
    __tablename__ = "note_labels"

    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(String(32), ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    value = Column(String(255), nullable=False, index=True)
