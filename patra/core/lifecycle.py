# patra/core/lifecycle.py

from enum import Enum

from patra.core.letter import Letter, LetterStatus
from patra.errors import InvalidTransition


class LetterPhase(str, Enum):
    CREATED = "CREATED"
    FORWARDED = "FORWARDED"
    SENT_TO_HEAD = "SENT_TO_HEAD"
    SIGNED = "SIGNED"
    REPORTED = "REPORTED"
    CASE_CLOSED = "CASE_CLOSED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class LetterAction(str, Enum):
    FORWARD = "forward"
    SEND_TO_HEAD = "send_to_head"
    SIGN = "sign"
    UPLOAD_REPORT = "upload_report"
    CLOSE_CASE = "close_case"
    APPROVE = "approve"
    REJECT = "reject"


# Single source of truth for which action may run in which phase
LIFECYCLE_TRANSITIONS = {
    LetterPhase.CREATED: {
        LetterAction.FORWARD,
        LetterAction.SEND_TO_HEAD,
        LetterAction.APPROVE,
        LetterAction.REJECT,
    },
    LetterPhase.FORWARDED: {
        LetterAction.FORWARD,
        LetterAction.SEND_TO_HEAD,
        LetterAction.APPROVE,
        LetterAction.REJECT,
    },
    LetterPhase.SENT_TO_HEAD: {LetterAction.SIGN},
    LetterPhase.SIGNED: {LetterAction.UPLOAD_REPORT},
    LetterPhase.REPORTED: {LetterAction.UPLOAD_REPORT, LetterAction.CLOSE_CASE},
    LetterPhase.APPROVED: set(),  # alternate branch, outside signing
    LetterPhase.REJECTED: set(),
    LetterPhase.CASE_CLOSED: set(),  # Terminal state
}


def derive_phase(letter: Letter) -> LetterPhase:
    """
    Project the stored fields onto the lifecycle.

    Order matters: closure beats reports, reports beat the signature,
    the signature beats the status string.
    """
    if letter.is_closed:
        return LetterPhase.CASE_CLOSED
    if letter.report_files:
        return LetterPhase.REPORTED
    if letter.covering_letter is not None and letter.covering_letter.is_signed:
        return LetterPhase.SIGNED
    if letter.letter_status is LetterStatus.SENT_TO_HEAD:
        return LetterPhase.SENT_TO_HEAD
    if letter.letter_status is LetterStatus.APPROVED:
        return LetterPhase.APPROVED
    if letter.letter_status is LetterStatus.REJECTED:
        return LetterPhase.REJECTED
    if letter.forward_to is not None:
        return LetterPhase.FORWARDED
    return LetterPhase.CREATED


def allowed_actions(letter: Letter) -> set:
    return set(LIFECYCLE_TRANSITIONS[derive_phase(letter)])


def validate_transition(current_phase: LetterPhase, action: LetterAction) -> None:
    """
    Validate whether an action is allowed in the current phase.

    Raises InvalidTransition if not.
    """
    if current_phase not in LIFECYCLE_TRANSITIONS:
        raise InvalidTransition(f"Unknown lifecycle phase: {current_phase}")

    if action not in LIFECYCLE_TRANSITIONS[current_phase]:
        raise InvalidTransition(
            f"Invalid transition: {action.value} not allowed in {current_phase.value}"
        )
