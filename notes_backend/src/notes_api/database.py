import threading
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from notes_api.errors import RequestTimeoutError
from notes_api.models import Base

# SQLSTATE query_canceled, raised by Postgres when statement_timeout fires
PG_QUERY_CANCELED = "57014"


def is_timeout_error(exc: Exception) -> bool:
    """True when a store error means a statement, lock wait or pool checkout ran out of time."""
    if isinstance(exc, PoolTimeoutError):
        return True
    if not isinstance(exc, OperationalError):
        return False
    orig = exc.orig
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code == PG_QUERY_CANCELED:
        return True
    return "database is locked" in str(orig)


class Database:
    """
    Process-wide handle on the note and credential store.

    The engine (and its connection pool) is created on first use, exactly once:
    concurrent first callers block on the lock and then share the same engine.
    ``timeout_seconds`` bounds every statement (Postgres ``statement_timeout``),
    lock wait (SQLite busy timeout) and pool checkout.
    """

    def __init__(self, url: str, timeout_seconds: Optional[float] = None, echo: bool = False):
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._lock = threading.Lock()

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def _connect_args(self) -> dict:
        if self.is_sqlite:
            # SQLite needs check_same_thread=False for FastAPI's threadpool
            args = {"check_same_thread": False}
            if self.timeout_seconds is not None:
                args["timeout"] = self.timeout_seconds
            return args
        if self.url.startswith("postgresql") and self.timeout_seconds is not None:
            return {"options": f"-c statement_timeout={int(self.timeout_seconds * 1000)}"}
        return {}

    def _engine_kwargs(self) -> dict:
        kwargs = {"connect_args": self._connect_args(), "echo": self.echo}
        if self.url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty DB
            kwargs["poolclass"] = StaticPool
        elif not self.is_sqlite and self.timeout_seconds is not None:
            kwargs["pool_timeout"] = self.timeout_seconds
        return kwargs

    def _initialize(self) -> sessionmaker:
        if self._session_factory is None:
            with self._lock:
                if self._session_factory is None:
                    self._engine = create_engine(self.url, **self._engine_kwargs())
                    self._session_factory = sessionmaker(
                        autocommit=False, autoflush=False, expire_on_commit=False, bind=self._engine
                    )
        return self._session_factory

    @property
    def engine(self) -> Engine:
        self._initialize()
        return self._engine

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        return self._initialize()()

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None


# PUBLIC_INTERFACE
def get_db(request: Request) -> Iterator[Session]:
    """
    Dependency that provides a database session and ensures proper cleanup.

    Raises:
        503 if the store timed out; the transaction is rolled back.
    """
    db = request.app.state.database.session()
    try:
        yield db
    except (OperationalError, PoolTimeoutError) as exc:
        if not is_timeout_error(exc):
            raise
        db.rollback()
        raise RequestTimeoutError() from exc
    finally:
        db.close()
