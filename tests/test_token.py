import base64
import json
import time

import pytest

from patra.errors import InvalidCredential
from patra.security.roles import HEAD
from patra.security.token import decode_claims, derive_identity


def _segment(data):
    raw = json.dumps(data).encode() if not isinstance(data, bytes) else data
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _hand_built(payload):
    return ".".join([_segment({"alg": "HS256", "typ": "JWT"}), _segment(payload), "c2ln"])


def test_identity_carries_normalized_role_and_expiry(make_token):
    now = time.time()
    identity = derive_identity(make_token("HOD", now=now, roleId=3))

    assert identity.role == HEAD
    assert identity.subject_id == "7"
    assert identity.email == "desk@example.gov.in"
    assert identity.station_name == "Nashik Road"
    assert identity.role_id == 3
    assert int(identity.expires_at.timestamp()) == int(now + 3600)
    assert not identity.is_expired()


def test_missing_role_claim_becomes_default_role(make_token):
    assert derive_identity(make_token(None)).role == "user"


def test_expired_credential_still_decodes(make_token):
    identity = derive_identity(make_token(exp_in=-60))
    assert identity.is_expired()


def test_needs_reauth_inside_buffer(make_token):
    assert derive_identity(make_token(exp_in=120)).needs_reauth(buffer_seconds=300)
    assert not derive_identity(make_token(exp_in=3600)).needs_reauth(buffer_seconds=300)


@pytest.mark.parametrize(
    "credential",
    ["", "not-a-token", "a.b", "a.b.c.d", "aaa.%%%.ccc"],
)
def test_malformed_credentials_are_rejected(credential):
    with pytest.raises(InvalidCredential):
        decode_claims(credential)


def test_payload_must_be_json_object():
    with pytest.raises(InvalidCredential):
        decode_claims(".".join([_segment({"alg": "HS256"}), _segment(b"[1, 2]"), "c2ln"]))


@pytest.mark.parametrize("exp", [None, "1700000000", True])
def test_exp_must_be_numeric(exp):
    payload = {"id": 1, "roleName": "sp"}
    if exp is not None:
        payload["exp"] = exp
    with pytest.raises(InvalidCredential):
        decode_claims(_hand_built(payload))


def test_subject_is_required():
    with pytest.raises(InvalidCredential):
        derive_identity(_hand_built({"roleName": "sp", "exp": time.time() + 60}))
