import time

import pytest
from jose import jwt

from patra.core.letter import (
    CoveringLetter,
    FileAttachment,
    Letter,
    LetterStatus,
    normalize_status,
    utc_now,
)
from patra.security.roles import HEAD
from patra.security.session_authority import SessionAuthority
from patra.storage.session_store import MemorySessionStore

SIGNING_KEY = "test-signing-key"


class ManualClock:
    def __init__(self, start):
        self.now = float(start)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeIdentityClient:
    """Stands in for the identity endpoints of the API client."""

    def __init__(self):
        self.response = {"valid": True, "identity": {}}
        self.error = None
        self.login_token = None
        self.verify_calls = 0

    def verify_identity(self, credential):
        self.verify_calls += 1
        if self.error is not None:
            raise self.error
        return self.response

    def login(self, email, password):
        return {"token": self.login_token}


class FakeLetterStore:
    """In-memory authoritative store: applies changes without guards."""

    def __init__(self):
        self.letters = {}
        self.fail_next = None
        self.calls = []

    def _call(self, name):
        self.calls.append(name)
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    def _put(self, letter):
        self.letters[letter.id] = letter
        return letter

    def list_letters(self, filters=None):
        self._call("list_letters")
        return list(self.letters.values())

    def get_letter(self, letter_id):
        self.calls.append("get_letter")
        return self.letters[letter_id]

    def forward_letter(self, letter_id, target_role):
        self._call("forward_letter")
        return self._put(self.letters[letter_id].evolve(forward_to=target_role))

    def send_to_head(self, letter_id):
        self._call("send_to_head")
        return self._put(
            self.letters[letter_id].evolve(letter_status=LetterStatus.SENT_TO_HEAD, forward_to=HEAD)
        )

    def set_letter_status(self, letter_id, status):
        self._call("set_letter_status")
        return self._put(self.letters[letter_id].evolve(letter_status=normalize_status(status)))

    def attach_covering_letter(self, letter_id, upload, metadata=None):
        self._call("attach_covering_letter")
        letter = self.letters[letter_id]
        covering = CoveringLetter(
            id=f"CL-{letter_id}",
            reference_number=letter.reference_number,
            document_urls={"pdf": f"https://files.example.gov.in/{upload.name}"},
        )
        self._put(letter.evolve(covering_letter=covering))
        return covering

    def delete_covering_letter(self, covering_letter_id):
        self._call("delete_covering_letter")
        for letter in list(self.letters.values()):
            if letter.covering_letter and letter.covering_letter.id == covering_letter_id:
                self._put(letter.evolve(covering_letter=None))
        return {"message": "deleted"}

    def sign_covering_letter(self, covering_letter_id):
        self._call("sign_covering_letter")
        for letter in list(self.letters.values()):
            covering = letter.covering_letter
            if covering and covering.id == covering_letter_id:
                signed = CoveringLetter(
                    id=covering.id,
                    reference_number=covering.reference_number,
                    document_urls=covering.document_urls,
                    is_signed=True,
                    signed_at=utc_now(),
                )
                self._put(letter.evolve(covering_letter=signed))
        return {"success": True}

    def upload_report(self, letter_id, uploads):
        self._call("upload_report")
        letter = self.letters[letter_id]
        stored = tuple(
            FileAttachment(
                original_name=upload.name,
                size=upload.size,
                mime_type=upload.mime_type,
                storage_url=f"https://files.example.gov.in/reports/{upload.name}",
                uploaded_at=utc_now(),
            )
            for upload in uploads
        )
        return self._put(letter.evolve(report_files=letter.report_files + stored))

    def close_case(self, letter_id):
        self._call("close_case")
        return self._put(
            self.letters[letter_id].evolve(
                letter_status=LetterStatus.CASE_CLOSED, inward_patra_close=True
            )
        )

    def download_merged(self, letter_id):
        self.calls.append("download_merged")
        return iter([b"%PDF-1.7", b"merged"])


@pytest.fixture
def make_token():
    def _make(role="inward_user", *, exp_in=3600, now=None, **claims):
        issued = time.time() if now is None else now
        payload = {
            "id": 7,
            "email": "desk@example.gov.in",
            "roleName": role,
            "stationName": "Nashik Road",
            "iat": int(issued),
            "exp": int(issued + exp_in),
        }
        payload.update(claims)
        return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def clock():
    return ManualClock(time.time())


@pytest.fixture
def identity_client():
    return FakeIdentityClient()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def authority(identity_client, session_store, clock):
    return SessionAuthority(identity_client, session_store, clock=clock)


@pytest.fixture
def letter_store():
    return FakeLetterStore()


@pytest.fixture
def make_letter():
    def _make(**overrides):
        fields = {
            "id": "L1",
            "reference_number": "IN/2024/001",
            "letter_status": LetterStatus.PENDING,
            "subject": "Passport verification",
        }
        fields.update(overrides)
        return Letter(**fields)

    return _make


@pytest.fixture
def pdf_report():
    def _make(name="report.pdf", size=2 * 1024 * 1024):
        return FileAttachment(original_name=name, size=size, mime_type="application/pdf")

    return _make
