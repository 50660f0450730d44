"""FastAPI dependencies: settings, services and the cookie session."""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from notes_api.auth import AuthService, SessionClaims, TokenIssuer
from notes_api.config import Settings
from notes_api.database import get_db
from notes_api.errors import UnauthorizedError
from notes_api.notes import NoteStore


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.token_issuer


def get_auth_service(request: Request, db: Session = Depends(get_db)) -> AuthService:
    settings = request.app.state.settings
    return AuthService(
        db,
        hasher=request.app.state.password_hasher,
        issuer=request.app.state.token_issuer,
        password_min_length=settings.PASSWORD_MIN_LENGTH,
    )


def get_note_store(request: Request, db: Session = Depends(get_db)) -> NoteStore:
    return NoteStore(db, clock=request.app.state.clock)


# PUBLIC_INTERFACE
def get_current_session(
    request: Request,
    issuer: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_app_settings),
) -> SessionClaims:
    """
    Resolve the caller's session from the session cookie.

    Raises:
        401 if the cookie is absent or the token does not verify.
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    claims = issuer.verify(token) if token else None
    if claims is None:
        raise UnauthorizedError()
    return claims
