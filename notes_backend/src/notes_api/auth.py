import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog
from fastapi import Response
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notes_api.config import Settings
from notes_api.errors import ConflictError, InvalidInputError, UnauthorizedError
from notes_api.models import User, utcnow

logger = structlog.get_logger(__name__)

# local@domain.tld shape only, checked after normalization; EmailStr would reject addresses this contract accepts
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
INVALID_CREDENTIALS = "Invalid credentials"
DEFAULT_SESSION_TTL = timedelta(days=7)


def normalize_email(email: str) -> str:
    """Trimmed, lowercased email: the uniqueness key for users."""
    return str(email).strip().lower()


class PasswordHasher:
    """Salted one-way password hashing (bcrypt via passlib)."""

    def __init__(self, rounds: int = 12):
        self.context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
        self._dummy_hash: Optional[str] = None

    def hash(self, password: str) -> str:
        """Hash a plaintext password."""
        return self.context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a plaintext password against its hash."""
        return self.context.verify(plain_password, hashed_password)

    def burn(self, plain_password: str) -> None:
        """Spend the cost of one verification; used when there is no user to check against."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("not-a-real-password")
        self.context.verify(plain_password, self._dummy_hash)


@dataclass(frozen=True)
class SessionClaims:
    subject: str
    email: str
    issued_at: datetime
    expires_at: datetime


class TokenIssuer:
    """
    Issues and verifies the signed, self-contained session tokens (JWT).

    A token is valid while its signature checks out against the server secret
    and ``issued_at <= now < expires_at``.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not secret:
            raise ValueError("JWT secret is not configured")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl
        self._clock = clock

    # PUBLIC_INTERFACE
    def issue(self, subject: str, email: str, ttl: Optional[timedelta] = None) -> str:
        """Create a signed token carrying ``sub``, ``email``, ``iat`` and ``exp`` claims."""
        issued_at = self._clock()
        expires_at = issued_at + (ttl if ttl is not None else self.ttl)
        claims = {
            "sub": str(subject),
            "email": email,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    # PUBLIC_INTERFACE
    def verify(self, token: str) -> Optional[SessionClaims]:
        """
        Return the token's claims, or None if it is malformed, badly signed,
        expired, not yet valid or missing claims. Never raises.
        """
        try:
            # Expiry is checked below against our own clock
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except (JWTError, ValueError):
            return None

        subject = payload.get("sub")
        email = payload.get("email")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        if not subject or not isinstance(email, str):
            return None
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            return None

        now = self._clock().timestamp()
        if not issued_at <= now < expires_at:
            return None
        return SessionClaims(
            subject=subject,
            email=email,
            issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
            expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        )


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str


class AuthService:
    """Registration and login against the credential store."""

    def __init__(
        self,
        db: Session,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        password_min_length: int = 8,
    ):
        self.db = db
        self.hasher = hasher
        self.issuer = issuer
        self.password_min_length = password_min_length

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == normalize_email(email)).first()

    # PUBLIC_INTERFACE
    def register(self, email: str, password: str) -> AuthResult:
        """
        Create an account and issue its first session token.

        Raises:
            InvalidInputError on missing fields, a malformed email or a short password.
            ConflictError if the normalized email is already registered.
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")
        normalized = normalize_email(email)
        if not EMAIL_PATTERN.match(normalized):
            raise InvalidInputError("Invalid email")
        if len(password) < self.password_min_length:
            raise InvalidInputError(f"Password must be at least {self.password_min_length} characters")

        if self.get_user_by_email(normalized) is not None:
            raise ConflictError("Email already registered")

        now = utcnow()
        user = User(
            email=normalized,
            password_hash=self.hasher.hash(password),
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            self.db.rollback()
            raise ConflictError("Email already registered")

        logger.info("User registered", user_id=user.id, email=normalized)
        return AuthResult(user=user, token=self.issuer.issue(user.id, user.email))

    # PUBLIC_INTERFACE
    def login(self, email: str, password: str) -> AuthResult:
        """
        Check credentials and issue a session token.

        Raises:
            InvalidInputError on missing fields.
            UnauthorizedError("Invalid credentials") for an unknown email or a
            wrong password alike.
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")
        user = self.get_user_by_email(email)
        if user is None:
            self.hasher.burn(password)
            logger.info("Login failed", email=normalize_email(email))
            raise UnauthorizedError(INVALID_CREDENTIALS)
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login failed", email=user.email)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        logger.info("User logged in", user_id=user.id)
        return AuthResult(user=user, token=self.issuer.issue(user.id, user.email))


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=int(timedelta(days=settings.SESSION_TTL_DAYS).total_seconds()),
        path="/",
        secure=settings.COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings: Settings) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        secure=settings.COOKIE_SECURE,
        httponly=True,
        samesite="lax",
    )


def seed_demo_user(db: Session, hasher: PasswordHasher) -> None:
    """Create a demo user if none exist (dev only)."""
    if db.query(User).first() is not None:
        return
    email = "demo@example.com"
    now = utcnow()
    db.add(User(email=email, password_hash=hasher.hash("password123"), created_at=now, updated_at=now))
    db.commit()
    logger.info("Seeded demo user", email=email)
