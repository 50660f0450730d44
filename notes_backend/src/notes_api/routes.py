from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from notes_api.auth import AuthService, SessionClaims, clear_session_cookie, set_session_cookie
from notes_api.config import Settings
from notes_api.deps import get_app_settings, get_auth_service, get_current_session, get_note_store
from notes_api.notes import (
    DEFAULT_FLAT_LIMIT,
    DEFAULT_PAGE_LIMIT,
    MAX_FLAT_LIMIT,
    MAX_PAGE_LIMIT,
    NoteFilter,
    NoteStore,
)
from notes_api.schemas import (
    AuthResponse,
    CredentialsRequest,
    NoteCreateRequest,
    NoteResponse,
    NoteUpdateRequest,
    OkResponse,
    PaginatedNotesResponse,
    UserResponse,
)

auth_router = APIRouter(prefix="/auth", tags=["Auth"])
notes_router = APIRouter(prefix="/notes", tags=["Notes"])


# -------- Auth Routes --------

# PUBLIC_INTERFACE
@auth_router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
def register_user(
    payload: CredentialsRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Register a new user and start a session.

    Body:
        email: address of the shape local@domain.tld (case and surrounding
            whitespace ignored)
        password: plaintext password, at least 8 characters

    Returns:
        The public user view; the session token is set as the ``session`` cookie.

    Raises:
        400 on invalid input, 409 if the email is already registered.
    """
    result = auth.register(payload.email, payload.password)
    set_session_cookie(response, result.token, settings)
    return AuthResponse(user=UserResponse(id=result.user.id, email=result.user.email))


# PUBLIC_INTERFACE
@auth_router.post("/login", response_model=AuthResponse, summary="Log in and start a session")
def login(
    payload: CredentialsRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
):
    """
    Log in with email and password.

    Raises:
        400 on missing fields, 401 on invalid credentials (same message whether
        the email is unknown or the password is wrong).
    """
    result = auth.login(payload.email, payload.password)
    set_session_cookie(response, result.token, settings)
    return AuthResponse(user=UserResponse(id=result.user.id, email=result.user.email))


# PUBLIC_INTERFACE
@auth_router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Clear the session cookie",
)
def logout(settings: Settings = Depends(get_app_settings)):
    """
    Expire the session cookie. The token itself stays valid until its expiry
    if replayed directly.
    """
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    clear_session_cookie(response, settings)
    return response


# PUBLIC_INTERFACE
@auth_router.get("/me", response_model=AuthResponse, summary="Current session user")
def me(session: SessionClaims = Depends(get_current_session)):
    """Return the user the session cookie belongs to."""
    return AuthResponse(user=UserResponse(id=session.subject, email=session.email))


# -------- Notes Routes --------

def note_filter(
    query: Optional[str] = Query(None, description="Case-insensitive text to match in title or content"),
    label: Optional[str] = Query(None, description="Only notes carrying this label"),
    pinned: Optional[bool] = Query(None, description="Filter on pinned state"),
    archived: Optional[bool] = Query(None, description="Filter on archived state"),
) -> NoteFilter:
    return NoteFilter(query=query or None, label=label or None, pinned=pinned, archived=archived)


# PUBLIC_INTERFACE
@notes_router.get(
    "",
    response_model=PaginatedNotesResponse,
    summary="List notes with filters and pagination",
)
def list_notes(
    filters: NoteFilter = Depends(note_filter),
    page: int = Query(1, ge=1, description="Page number starting at 1"),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT, description="Items per page"),
    session: SessionClaims = Depends(get_current_session),
    store: NoteStore = Depends(get_note_store),
):
    """
    List the caller's notes, pinned first then most recently updated.

    Query params:
        query, label, pinned, archived: optional filters, combined with AND
        page: page number, >= 1
        limit: page size, 1..100

    Returns:
        PaginatedNotesResponse with the page of notes and the total match count.
    """
    result = store.list(session.subject, filters, page=page, limit=limit)
    return PaginatedNotesResponse(
        notes=[NoteResponse.from_note(n) for n in result.notes],
        total=result.total,
        page=result.page,
        limit=result.limit,
    )


# PUBLIC_INTERFACE
@notes_router.get(
    "/flat",
    response_model=List[NoteResponse],
    summary="List notes as a flat array",
)
def list_notes_flat(
    filters: NoteFilter = Depends(note_filter),
    limit: int = Query(DEFAULT_FLAT_LIMIT, ge=1, le=MAX_FLAT_LIMIT, description="Maximum notes returned"),
    session: SessionClaims = Depends(get_current_session),
    store: NoteStore = Depends(get_note_store),
):
    """Same filters and order as ``GET /notes``, but a bare array capped at ``limit``."""
    return [NoteResponse.from_note(n) for n in store.list_flat(session.subject, filters, limit=limit)]


# PUBLIC_INTERFACE
@notes_router.post(
    "",
    response_model=NoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new note",
)
def create_note(
    payload: NoteCreateRequest,
    session: SessionClaims = Depends(get_current_session),
    store: NoteStore = Depends(get_note_store),
):
    """
    Create a note owned by the caller.

    Body:
        title, content: at least one must be non-blank
        labels, color, pinned, archived: optional
    """
    note = store.create(
        session.subject,
        title=payload.title,
        content=payload.content,
        labels=payload.labels,
        color=payload.color,
        pinned=payload.pinned,
        archived=payload.archived,
    )
    return NoteResponse.from_note(note)


# PUBLIC_INTERFACE
@notes_router.get("/{note_id}", response_model=NoteResponse, summary="Get a note by ID")
def get_note(
    note_id: str,
    session: SessionClaims = Depends(get_current_session),
    store: NoteStore = Depends(get_note_store),
):
    """
    Retrieve a single note by ID. Only the owner can access it; anyone else
    gets 404.
    """
    return NoteResponse.from_note(store.get(session.subject, note_id))


# PUBLIC_INTERFACE
@notes_router.patch("/{note_id}", response_model=NoteResponse, summary="Update a note by ID")
def update_note(
    note_id: str,
    payload: NoteUpdateRequest,
    session: SessionClaims = Depends(get_current_session),
    store: NoteStore = Depends(get_note_store),
):
    """
    Partially update a note. Only the fields present in the body change.
    """
    note = store.update(session.subject, note_id, payload.to_patch())
    return NoteResponse.from_note(note)


# PUBLIC_INTERFACE
@notes_router.delete("/{note_id}", response_model=OkResponse, summary="Delete a note by ID")
def delete_note(
    note_id: str,
    session: SessionClaims = Depends(get_current_session),
    store: NoteStore = Depends(get_note_store),
):
    """
    Delete a note. Only the owner can delete it.
    """
    store.delete(session.subject, note_id)
    return OkResponse(ok=True)
