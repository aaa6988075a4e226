"""
NOTICE TEMPLATES

Purpose:
- One message per mutation intent, for success and for rollback
- Severity classification for the view layer
"""

from enum import Enum
from typing import Dict


class NoticeSeverity(str, Enum):
    """Notice severity levels."""
    SUCCESS = "SUCCESS"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class NoticeTemplate:
    """Success/revert message pair for one intent."""

    def __init__(self, success: str, reverted: str):
        self.success = success
        self.reverted = reverted

    def format_success(self, **kwargs) -> str:
        return self.success.format(**kwargs)

    def format_reverted(self, **kwargs) -> str:
        return self.reverted.format(**kwargs)


INTENT_TEMPLATES: Dict[str, NoticeTemplate] = {
    "forward": NoticeTemplate(
        success="Letter {reference_number} forwarded to {target}.",
        reverted="Forwarding letter {reference_number} failed: {reason}",
    ),
    "send_to_head": NoticeTemplate(
        success="Letter {reference_number} sent to Head for signature.",
        reverted="Sending letter {reference_number} to Head failed: {reason}",
    ),
    "sign": NoticeTemplate(
        success="Covering letter for {reference_number} signed.",
        reverted="Signing covering letter for {reference_number} failed: {reason}",
    ),
    "attach_covering_letter": NoticeTemplate(
        success="Covering letter attached to {reference_number}.",
        reverted="Attaching covering letter to {reference_number} failed: {reason}",
    ),
    "remove_covering_letter": NoticeTemplate(
        success="Covering letter removed from {reference_number}.",
        reverted="Removing covering letter from {reference_number} failed: {reason}",
    ),
    "upload_report": NoticeTemplate(
        success="Report uploaded for {reference_number}.",
        reverted="Report upload for {reference_number} failed: {reason}",
    ),
    "close_case": NoticeTemplate(
        success="Case {reference_number} closed.",
        reverted="Closing case {reference_number} failed: {reason}",
    ),
    "approve": NoticeTemplate(
        success="Letter {reference_number} approved.",
        reverted="Approving letter {reference_number} failed: {reason}",
    ),
    "reject": NoticeTemplate(
        success="Letter {reference_number} rejected.",
        reverted="Rejecting letter {reference_number} failed: {reason}",
    ),
}

DEFAULT_TEMPLATE = NoticeTemplate(
    success="Letter {reference_number} updated.",
    reverted="Updating letter {reference_number} failed: {reason}",
)

READ_FAILURE_MESSAGE = "Could not refresh letters ({reason}). Showing last known data."


def get_template(intent: str) -> NoticeTemplate:
    return INTENT_TEMPLATES.get(intent, DEFAULT_TEMPLATE)
