import pytest

from patra.errors import InvalidCredential, NetworkFailure
from patra.security.roles import HEAD, SP
from patra.security.session_authority import (
    LAST_ACTIVITY_KEY,
    SESSION_ACTIVE_KEY,
    TOKEN_KEY,
    SessionAuthority,
    VerificationResult,
)
from patra.storage.session_store import FileSessionStore


def test_init_stores_credential_and_marks_session_alive(authority, session_store, clock, make_token):
    token = make_token("sp")
    identity = authority.init(token)

    assert identity.role == SP
    assert session_store[TOKEN_KEY] == token
    assert session_store[SESSION_ACTIVE_KEY] is True
    assert session_store[LAST_ACTIVITY_KEY] == clock.now
    assert authority.is_alive()


def test_malformed_credential_never_reaches_the_store(authority, session_store):
    with pytest.raises(InvalidCredential):
        authority.init("garbage")
    assert TOKEN_KEY not in session_store


def test_sign_in_adopts_login_credential(authority, identity_client, make_token):
    identity_client.login_token = make_token("hod")
    assert authority.sign_in("head@example.gov.in", "secret").role == HEAD


def test_sign_in_without_credential_is_rejected(authority, identity_client):
    identity_client.login_token = None
    with pytest.raises(InvalidCredential):
        authority.sign_in("head@example.gov.in", "secret")


def test_inactivity_ceiling_clears_session(authority, session_store, clock, make_token):
    authority.init(make_token())
    clock.advance(24 * 60 * 60 + 1)

    assert not authority.is_alive()
    assert dict(session_store) == {}


def test_refresh_activity_extends_liveness(authority, clock, make_token):
    authority.init(make_token())
    clock.advance(20 * 60 * 60)
    authority.refresh_activity()
    clock.advance(20 * 60 * 60)

    assert authority.is_alive()


def test_missing_liveness_flag_is_not_alive(authority, session_store, make_token):
    authority.init(make_token())
    session_store[SESSION_ACTIVE_KEY] = False
    assert not authority.is_alive()


def test_current_identity_clears_corrupt_credential(authority, session_store):
    session_store[TOKEN_KEY] = "corrupt"
    assert authority.current_identity() is None
    assert TOKEN_KEY not in session_store


def test_needs_reauth_within_buffer(authority, make_token):
    authority.init(make_token(exp_in=120))
    assert authority.needs_reauth()


def test_verify_remote_valid(authority, identity_client, make_token):
    authority.init(make_token("sp"))
    identity_client.response = {"valid": True, "identity": {"roleName": "Superintendent"}}

    assert authority.verify_remote() is VerificationResult.VALID
    assert authority.credential is not None


def test_verify_remote_role_change_is_rejected(authority, identity_client, session_store, make_token):
    authority.init(make_token("sp"))
    identity_client.response = {"valid": True, "identity": {"roleName": "head"}}

    assert authority.verify_remote() is VerificationResult.REJECTED
    assert dict(session_store) == {}


@pytest.mark.parametrize(
    "code, expected",
    [
        ("TOKEN_EXPIRED", VerificationResult.EXPIRED),
        ("INVALID_TOKEN", VerificationResult.REJECTED),
        ("USER_NOT_FOUND", VerificationResult.REJECTED),
        ("ROLE_MISMATCH", VerificationResult.REJECTED),
    ],
)
def test_verify_remote_invalid_clears_store(authority, identity_client, session_store, make_token, code, expected):
    authority.init(make_token())
    identity_client.response = {"valid": False, "code": code}

    assert authority.verify_remote() is expected
    assert dict(session_store) == {}


def test_verify_remote_unreachable_keeps_credential(authority, identity_client, make_token):
    token = make_token()
    authority.init(token)
    identity_client.error = NetworkFailure("connection refused")

    assert authority.verify_remote() is VerificationResult.UNREACHABLE
    assert authority.credential == token


def test_verify_remote_without_credential(authority, identity_client):
    assert authority.verify_remote() is VerificationResult.REJECTED
    assert identity_client.verify_calls == 0


def test_clear_is_idempotent(authority, session_store, make_token):
    authority.init(make_token())
    authority.clear()
    authority.clear()
    assert dict(session_store) == {}


def test_file_store_survives_new_instance(tmp_path, identity_client, clock, make_token):
    path = str(tmp_path / "state" / "session.json")
    token = make_token("inward")
    SessionAuthority(identity_client, FileSessionStore(path), clock=clock).init(token)

    reopened = SessionAuthority(identity_client, FileSessionStore(path), clock=clock)
    assert reopened.credential == token
    assert reopened.is_alive()

    reopened.clear()
    assert dict(FileSessionStore(path)) == {}
