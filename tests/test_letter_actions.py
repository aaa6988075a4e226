import threading
import time

import pytest

from patra.async_engine.scheduler import TaskScheduler
from patra.core.attachments import PendingUpload
from patra.core.letter import LetterStatus
from patra.core.letter_actions import (
    LETTERS_TASK,
    VERIFY_TASK,
    LetterActions,
    start_session_verification,
)
from patra.core.reconciliation import Reconciler
from patra.errors import NetworkFailure, SessionExpired
from patra.security.roles import HEAD, SP


@pytest.fixture
def reconciler(tmp_path):
    reconciler = Reconciler(audit_path=str(tmp_path / "audit.jsonl"))
    yield reconciler
    reconciler.shutdown()


@pytest.fixture
def actions(authority, reconciler, letter_store, make_letter):
    letter_store.letters["L1"] = make_letter()
    actions = LetterActions(authority, reconciler, letter_store)
    actions.load()
    return actions


def _pdf(name="report.pdf", size=2 * 1024 * 1024):
    return PendingUpload(name, b"x" * size, "application/pdf")


def test_full_route_from_intake_to_closure(actions, authority, reconciler, letter_store, make_token):
    authority.init(make_token("inward"))
    assert actions.forward("L1", "Superintendent").ok

    authority.init(make_token("sp"))
    assert actions.send_to_head("L1").ok

    authority.init(make_token("hod"))
    assert actions.attach_covering_letter("L1", PendingUpload("cl.pdf", b"%PDF", "application/pdf")).ok
    assert reconciler.get("L1").covering_letter.id == "CL-L1"
    assert actions.sign("L1").ok
    assert reconciler.get("L1").covering_letter.is_signed

    assert actions.upload_report("L1", [_pdf()]).ok
    assert len(reconciler.get("L1").report_files) == 1

    assert actions.close_case("L1").ok
    letter = reconciler.get("L1")
    assert letter.is_closed
    assert letter == letter_store.letters["L1"]

    intents = [event["intent"] for event in actions.history("L1")]
    assert intents == [
        "forward",
        "send_to_head",
        "attach_covering_letter",
        "sign",
        "upload_report",
        "close_case",
    ]


def test_actor_role_comes_from_session(actions, authority, letter_store, make_token):
    authority.init(make_token("sp"))
    outcome = actions.send_to_head("L1")

    assert outcome.error_code == "PERMISSION_DENIED"
    assert "send_to_head" not in letter_store.calls


def test_no_session_is_a_session_error(actions):
    with pytest.raises(SessionExpired):
        actions.forward("L1", SP)


def test_network_failure_reverts(actions, authority, reconciler, letter_store, make_token):
    authority.init(make_token("inward"))
    before = reconciler.get("L1")
    letter_store.fail_next = NetworkFailure("connection reset")

    outcome = actions.forward("L1", SP)

    assert not outcome.ok
    assert reconciler.get("L1") == before
    assert letter_store.letters["L1"].forward_to is None


def test_oversized_report_is_rejected_locally(actions, authority, reconciler, letter_store, make_token):
    signed_letter_flow(actions, authority, make_token)
    outcome = actions.upload_report("L1", [_pdf(size=10 * 1024 * 1024 + 1)])

    assert outcome.error_code == "TOO_LARGE"
    assert "upload_report" not in letter_store.calls
    assert reconciler.get("L1").report_files == ()


def test_remove_unsigned_covering_letter(actions, authority, reconciler, make_token):
    authority.init(make_token("inward"))
    actions.attach_covering_letter("L1", PendingUpload("cl.doc", b"doc", "application/msword"))

    assert actions.remove_covering_letter("L1").ok
    assert reconciler.get("L1").covering_letter is None


def test_covering_letter_must_be_document(actions, authority, make_token):
    authority.init(make_token("inward"))
    outcome = actions.attach_covering_letter("L1", PendingUpload("cl.png", b"png", "image/png"))
    assert outcome.error_code == "UNSUPPORTED_TYPE"


def test_closed_letter_reports_case_closed_before_file_type(actions, authority, letter_store, make_letter, make_token):
    letter_store.letters["L3"] = make_letter(
        id="L3",
        reference_number="IN/2024/003",
        letter_status=LetterStatus.CASE_CLOSED,
        inward_patra_close=True,
    )
    actions.load()
    authority.init(make_token("inward"))

    outcome = actions.attach_covering_letter("L3", PendingUpload("photo.png", b"png", "image/png"))

    assert outcome.error_code == "CASE_CLOSED"
    assert "attach_covering_letter" not in letter_store.calls


def test_approve_and_reject(actions, authority, reconciler, letter_store, make_letter, make_token):
    letter_store.letters["L2"] = make_letter(id="L2", reference_number="IN/2024/002")
    actions.load()
    authority.init(make_token("inward"))

    assert actions.approve("L1").ok
    assert actions.reject("L2").ok
    assert reconciler.get("L1").letter_status is LetterStatus.APPROVED
    assert reconciler.get("L2").letter_status is LetterStatus.REJECTED


def test_load_one_and_download(actions, letter_store):
    assert actions.load_one("L1").id == "L1"
    assert b"".join(actions.download_merged("L1")).startswith(b"%PDF")


def test_start_polling_refreshes_letters(actions, letter_store):
    scheduler = TaskScheduler()
    polled = threading.Event()
    original = letter_store.list_letters

    def list_letters(filters=None):
        polled.set()
        return original(filters)

    letter_store.list_letters = list_letters
    try:
        actions.start_polling(scheduler, "inward", interval=0.01)
        assert scheduler.is_scheduled("inward", LETTERS_TASK)
        assert polled.wait(2)
    finally:
        scheduler.cancel_all()


def test_session_verification_stops_after_rejection(authority, identity_client, make_token):
    scheduler = TaskScheduler()
    authority.init(make_token("inward"))
    identity_client.response = {"valid": False, "code": "INVALID_TOKEN"}

    task = start_session_verification(authority, scheduler, "session", interval=0.01)
    try:
        for _ in range(200):
            if task.cancelled:
                break
            time.sleep(0.01)
        assert task.cancelled
        assert not scheduler.is_scheduled("session", VERIFY_TASK)
        assert authority.credential is None
    finally:
        scheduler.cancel_all()


def signed_letter_flow(actions, authority, make_token):
    authority.init(make_token("inward"))
    actions.send_to_head("L1")
    authority.init(make_token(HEAD))
    actions.attach_covering_letter("L1", PendingUpload("cl.pdf", b"%PDF", "application/pdf"))
    actions.sign("L1")


def test_session_error_during_mutation_signs_out(actions, authority, reconciler, letter_store, make_token):
    authority.init(make_token("inward"))
    before = reconciler.get("L1")
    letter_store.fail_next = SessionExpired("token expired")

    with pytest.raises(SessionExpired):
        actions.forward("L1", SP)

    assert authority.credential is None
    assert reconciler.get("L1") == before


def test_history_is_empty_without_audit_trail(authority, letter_store, make_letter):
    letter_store.letters["L1"] = make_letter()
    reconciler = Reconciler()
    actions = LetterActions(authority, reconciler, letter_store)

    assert actions.history("L1") == []
