import pytest

from notes_api.auth import AuthService, PasswordHasher, TokenIssuer, normalize_email
from notes_api.errors import ConflictError, InvalidInputError, UnauthorizedError
from notes_api.models import User

from conftest import PASSWORD


@pytest.fixture
def issuer(clock) -> TokenIssuer:
    return TokenIssuer("test-secret", clock=clock)


@pytest.fixture
def auth(db_session, issuer) -> AuthService:
    return AuthService(db_session, hasher=PasswordHasher(rounds=4), issuer=issuer)


def test_normalize_email():
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"


def test_register_then_login_yields_same_subject(auth, issuer):
    registered = auth.register("alice@example.com", PASSWORD)
    logged_in = auth.login("alice@example.com", PASSWORD)

    assert logged_in.user.id == registered.user.id
    assert issuer.verify(registered.token).subject == registered.user.id
    assert issuer.verify(logged_in.token).subject == registered.user.id
    assert issuer.verify(logged_in.token).email == "alice@example.com"


def test_register_stores_normalized_email_and_hash(auth, db_session):
    result = auth.register("  Alice@Example.com ", PASSWORD)
    user = db_session.query(User).filter(User.id == result.user.id).one()
    assert user.email == "alice@example.com"
    assert user.password_hash != PASSWORD
    assert auth.hasher.verify(PASSWORD, user.password_hash)


@pytest.mark.parametrize("second", ["alice@example.com", "ALICE@example.com", "  alice@EXAMPLE.com  "])
def test_duplicate_email_conflicts(auth, second):
    auth.register("alice@example.com", PASSWORD)
    with pytest.raises(ConflictError):
        auth.register(second, "another password")


@pytest.mark.parametrize("email", ["", "alice", "alice@example", "al ice@example.com", "@example.com"])
def test_register_rejects_malformed_email(auth, email):
    with pytest.raises(InvalidInputError):
        auth.register(email, PASSWORD)


def test_register_rejects_short_password(auth):
    with pytest.raises(InvalidInputError, match="at least 8"):
        auth.register("alice@example.com", "1234567")


def test_eight_character_password_is_enough(auth):
    assert auth.register("alice@example.com", "12345678").user.email == "alice@example.com"


def test_login_is_case_and_whitespace_insensitive(auth):
    registered = auth.register("alice@example.com", PASSWORD)
    assert auth.login(" ALICE@example.com", PASSWORD).user.id == registered.user.id


def test_wrong_password_and_unknown_email_fail_identically(auth):
    auth.register("alice@example.com", PASSWORD)

    with pytest.raises(UnauthorizedError) as wrong_password:
        auth.login("alice@example.com", "not the password")
    with pytest.raises(UnauthorizedError) as unknown_email:
        auth.login("nobody@example.com", PASSWORD)

    assert wrong_password.value.message == unknown_email.value.message == "Invalid credentials"


def test_login_requires_both_fields(auth):
    with pytest.raises(InvalidInputError):
        auth.login("alice@example.com", "")
    with pytest.raises(InvalidInputError):
        auth.login("", PASSWORD)
