"""
LIFECYCLE & FORWARDING ENGINE

created → forwarded(role) → sent_to_head → signed → reported → case_closed
approved / rejected branch off created/forwarded and stay out of signing.

Every function here:
- Rejects closed letters with CaseClosed first
- Checks the phase table (lifecycle.py), then role authority (role_guard.py)
- Returns a new Letter; never touches storage or the network
"""

from dataclasses import replace
from typing import Iterable

from patra.config import MAX_REPORT_BYTES
from patra.core.attachments import add_reports
from patra.core.letter import FileAttachment, Letter, LetterStatus, utc_now
from patra.core.lifecycle import LetterAction, derive_phase, validate_transition
from patra.core.role_guard import validate_role_authority
from patra.errors import CaseClosed, InvalidTransition, PermissionDenied
from patra.security.roles import HEAD, is_canonical_role, normalize_role


def _guard(letter: Letter, role: str, action: LetterAction) -> None:
    if letter.is_closed:
        raise CaseClosed(f"Letter {letter.reference_number} is closed")
    validate_transition(derive_phase(letter), action)
    validate_role_authority(role, letter, action)


def forward_to_role(letter: Letter, role: str, target_role: str) -> Letter:
    """Hand the letter to another role; ownership moves with forward_to."""
    _guard(letter, role, LetterAction.FORWARD)

    target = normalize_role(target_role)
    if not is_canonical_role(target):
        raise InvalidTransition(f"Unknown forwarding target '{target_role}'")
    if role == target:
        raise PermissionDenied(f"Role '{role}' cannot forward a letter to itself")

    return letter.evolve(forward_to=target)


def send_to_head(letter: Letter, role: str) -> Letter:
    _guard(letter, role, LetterAction.SEND_TO_HEAD)
    return letter.evolve(letter_status=LetterStatus.SENT_TO_HEAD, forward_to=HEAD)


def sign(letter: Letter, role: str) -> Letter:
    _guard(letter, role, LetterAction.SIGN)

    if letter.covering_letter is None:
        raise InvalidTransition(
            f"Letter {letter.reference_number} has no covering letter to sign"
        )

    signed = replace(letter.covering_letter, is_signed=True, signed_at=utc_now())
    return letter.evolve(covering_letter=signed)


def upload_report(
    letter: Letter,
    role: str,
    files: Iterable[FileAttachment],
    max_bytes: int = MAX_REPORT_BYTES,
) -> Letter:
    files = list(files)
    _guard(letter, role, LetterAction.UPLOAD_REPORT)

    if not files:
        raise InvalidTransition("At least one report file is required")

    return add_reports(letter, files, max_bytes)


def close_case(letter: Letter, role: str) -> Letter:
    _guard(letter, role, LetterAction.CLOSE_CASE)

    # Reports on the authoritative letter are the only precondition
    if not letter.report_files:
        raise InvalidTransition(
            f"Letter {letter.reference_number} cannot be closed without a report"
        )

    return letter.evolve(
        letter_status=LetterStatus.CASE_CLOSED,
        inward_patra_close=True,
    )


def approve(letter: Letter, role: str) -> Letter:
    _guard(letter, role, LetterAction.APPROVE)
    return letter.evolve(letter_status=LetterStatus.APPROVED)


def reject(letter: Letter, role: str) -> Letter:
    _guard(letter, role, LetterAction.REJECT)
    return letter.evolve(letter_status=LetterStatus.REJECTED)
