from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from notes_api.models import Note
from notes_api.notes import UNSET, NotePatch


# Users / Auth

class CredentialsRequest(BaseModel):
    """Email and password, as posted to register and login"""
    email: str = Field(..., description="User email")
    password: str = Field(..., description="Plaintext password")


class UserResponse(BaseModel):
    """Public view of a user"""
    id: str
    email: str


class AuthResponse(BaseModel):
    """Body returned by register, login and me"""
    user: UserResponse


# Notes

class NoteCreateRequest(BaseModel):
    """Create note request; at least one of title/content must be non-blank"""
    title: str = Field("", description="Note title")
    content: str = Field("", description="Note content")
    labels: List[str] = Field(default_factory=list, description="Labels, order preserved")
    color: Optional[str] = Field(None, description="Free-form color")
    pinned: bool = False
    archived: bool = False


class NoteUpdateRequest(BaseModel):
    """Update note request (partial): only the fields sent are changed"""
    title: Optional[str] = None
    content: Optional[str] = None
    labels: Optional[List[str]] = None
    color: Optional[str] = None
    pinned: Optional[bool] = None
    archived: Optional[bool] = None

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self

    def to_patch(self) -> NotePatch:
        sent = self.model_fields_set
        return NotePatch(**{
            name: getattr(self, name) if name in sent else UNSET
            for name in NotePatch.FIELDS
        })


class NoteResponse(BaseModel):
    """Wire shape of a note: camelCase keys, string ids, ISO-8601 timestamps"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    title: str
    content: str
    labels: List[str]
    color: str
    pinned: bool
    archived: bool
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def as_utc(cls, value: datetime) -> datetime:
        # Some backends (SQLite) hand timezone-aware columns back naive
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def from_note(cls, note: Note) -> "NoteResponse":
        return cls(
            id=str(note.id),
            user_id=str(note.owner_id),
            title=note.title,
            content=note.content,
            labels=list(note.labels),
            color=note.color,
            pinned=note.pinned,
            archived=note.archived,
            created_at=note.created_at,
            updated_at=note.updated_at,
        )


class PaginatedNotesResponse(BaseModel):
    """Paginated response for notes listing"""
    notes: List[NoteResponse]
    total: int
    page: int
    limit: int


class OkResponse(BaseModel):
    ok: bool = True
