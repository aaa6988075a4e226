"""
LETTER ACTIONS

Entry point the views call. Each intent pairs a pure local transition
with the matching call on the authoritative store and hands both to the
reconciler. The acting role always comes from the session authority,
never from the caller.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from patra.config import LETTER_POLL_INTERVAL, MAX_REPORT_BYTES, VERIFY_POLL_INTERVAL
from patra.async_engine.scheduler import PeriodicTask, TaskScheduler
from patra.core import attachments, transitions
from patra.core.attachments import PendingUpload
from patra.core.letter import CoveringLetter, Letter
from patra.core.reconciliation import MutationOutcome, Reconciler
from patra.errors import SessionExpired
from patra.integrations.patra_api import PatraApiClient
from patra.security.roles import normalize_role
from patra.security.session_authority import SessionAuthority, VerificationResult
from patra.storage.event_store import load_letter_history

logger = logging.getLogger(__name__)

LETTERS_TASK = "letters"
VERIFY_TASK = "verify-session"


class LetterActions:
    def __init__(
        self,
        authority: SessionAuthority,
        reconciler: Reconciler,
        client: PatraApiClient,
        *,
        max_report_bytes: int = MAX_REPORT_BYTES,
    ):
        self.authority = authority
        self.reconciler = reconciler
        self.client = client
        self.max_report_bytes = max_report_bytes

        # Session errors during a mutation or read force sign-out
        if reconciler.on_session_error is None:
            reconciler.on_session_error = lambda error: authority.clear()

    def _actor_role(self) -> str:
        identity = self.authority.current_identity()
        if identity is None or identity.is_expired(self.authority.now()):
            raise SessionExpired("Sign in again to continue")
        return identity.role

    def _submit(self, letter_id: str, intent: str, apply, remote, **context: Any) -> MutationOutcome:
        role = self._actor_role()
        return self.reconciler.submit(
            letter_id,
            intent,
            role,
            lambda letter: apply(letter, role),
            remote,
            refetch=lambda: self.client.get_letter(letter_id),
            context=context,
        )

    def _require(self, letter_id: str) -> Letter:
        letter = self.reconciler.get(letter_id)
        if letter is None:
            raise KeyError(f"Letter {letter_id} is not loaded")
        return letter

    # ==================================================
    # READS
    # ==================================================
    def load(self, filters: Optional[Dict[str, Any]] = None) -> List[Letter]:
        return self.reconciler.refresh(lambda: self.client.list_letters(filters))

    def load_one(self, letter_id: str) -> Optional[Letter]:
        self.reconciler.refresh(lambda: [self.client.get_letter(letter_id)])
        return self.reconciler.get(letter_id)

    def download_merged(self, letter_id: str) -> Iterator[bytes]:
        return self.client.download_merged(letter_id)

    def history(self, letter_id: str) -> List[Dict[str, Any]]:
        """Committed transitions for one letter, oldest first."""
        if self.reconciler.audit_path is None:
            return []
        return load_letter_history(letter_id, self.reconciler.audit_path)

    # ==================================================
    # LIFECYCLE
    # ==================================================
    def forward(self, letter_id: str, target_role: str) -> MutationOutcome:
        target = normalize_role(target_role)
        return self._submit(
            letter_id,
            "forward",
            lambda letter, role: transitions.forward_to_role(letter, role, target),
            lambda: self.client.forward_letter(letter_id, target),
            target=target,
        )

    def send_to_head(self, letter_id: str) -> MutationOutcome:
        return self._submit(
            letter_id,
            "send_to_head",
            transitions.send_to_head,
            lambda: self.client.send_to_head(letter_id),
        )

    def sign(self, letter_id: str) -> MutationOutcome:
        letter = self._require(letter_id)

        def remote() -> Letter:
            self.client.sign_covering_letter(letter.covering_letter.id)
            return self.client.get_letter(letter_id)

        return self._submit(letter_id, "sign", transitions.sign, remote)

    def close_case(self, letter_id: str) -> MutationOutcome:
        return self._submit(
            letter_id,
            "close_case",
            transitions.close_case,
            lambda: self.client.close_case(letter_id),
        )

    def approve(self, letter_id: str) -> MutationOutcome:
        return self._submit(
            letter_id,
            "approve",
            transitions.approve,
            lambda: self.client.set_letter_status(letter_id, "approved"),
        )

    def reject(self, letter_id: str) -> MutationOutcome:
        return self._submit(
            letter_id,
            "reject",
            transitions.reject,
            lambda: self.client.set_letter_status(letter_id, "rejected"),
        )

    # ==================================================
    # ATTACHMENTS
    # ==================================================
    def attach_covering_letter(
        self,
        letter_id: str,
        upload: PendingUpload,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MutationOutcome:
        def apply(letter: Letter, role: str) -> Letter:
            placeholder = CoveringLetter(id="", reference_number=letter.reference_number)
            attached = attachments.attach_covering_letter(letter, placeholder)
            attachments.validate_covering_letter_file(upload.as_attachment(), self.max_report_bytes)
            return attached

        def remote() -> Letter:
            self.client.attach_covering_letter(letter_id, upload, metadata)
            return self.client.get_letter(letter_id)

        return self._submit(letter_id, "attach_covering_letter", apply, remote)

    def remove_covering_letter(self, letter_id: str) -> MutationOutcome:
        letter = self._require(letter_id)

        def remote() -> Letter:
            self.client.delete_covering_letter(letter.covering_letter.id)
            return self.client.get_letter(letter_id)

        return self._submit(
            letter_id,
            "remove_covering_letter",
            lambda current, role: attachments.remove_covering_letter(current),
            remote,
        )

    def upload_report(self, letter_id: str, uploads: List[PendingUpload]) -> MutationOutcome:
        uploads = list(uploads)
        return self._submit(
            letter_id,
            "upload_report",
            lambda letter, role: transitions.upload_report(
                letter, role, [u.as_attachment() for u in uploads], self.max_report_bytes
            ),
            lambda: self.client.upload_report(letter_id, uploads),
        )

    # ==================================================
    # POLLING
    # ==================================================
    def start_polling(
        self,
        scheduler: TaskScheduler,
        owner: str,
        filters: Optional[Dict[str, Any]] = None,
        interval: float = LETTER_POLL_INTERVAL,
    ) -> PeriodicTask:
        return scheduler.schedule(owner, LETTERS_TASK, interval, lambda: self.load(filters))


def start_session_verification(
    authority: SessionAuthority,
    scheduler: TaskScheduler,
    owner: str,
    interval: float = VERIFY_POLL_INTERVAL,
) -> PeriodicTask:
    """Re-check the credential on a timer; a lost session stops the task."""

    def verify() -> None:
        result = authority.verify_remote()
        if result in (VerificationResult.EXPIRED, VerificationResult.REJECTED):
            logger.info(f"Session verification returned {result.value}, stopping poll")
            scheduler.cancel(owner, VERIFY_TASK)

    return scheduler.schedule(owner, VERIFY_TASK, interval, verify)
