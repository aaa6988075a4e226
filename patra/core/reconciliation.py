"""
RECONCILIATION LAYER

Sole holder of the authoritative local copy of every letter.

Mutation protocol (keyed by letter id):
1. Apply the pure transition to the current copy (local guard)
2. Publish the optimistic copy, remember the pre-mutation copy
3. Submit to the authoritative store
4. Success → the server's letter replaces the local copy on ALL fields
   Failure → the pre-mutation copy is restored and the error surfaced

Poll protocol:
- A server read replaces local copies, except for ids with a mutation
  still in flight; those are left alone until the mutation reconciles
- "Last write wins" means the most recent server read, never the most
  recent local click
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from patra.core.letter import Letter
from patra.errors import (
    SESSION_ERRORS,
    InvalidTransition,
    NetworkFailure,
    PatraError,
    ServerRejected,
)
from patra.notifications.notifier import Notifier
from patra.storage.event_store import append_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationOutcome:
    letter_id: str
    intent: str
    ok: bool
    letter: Optional[Letter]
    error: Optional[PatraError] = None

    @property
    def error_code(self) -> Optional[str]:
        return self.error.code if self.error else None


class Reconciler:
    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        *,
        audit_path: Optional[str] = None,
        on_session_error: Optional[Callable[[PatraError], None]] = None,
        max_background_workers: int = 4,
    ):
        self.notifier = notifier or Notifier()
        self.audit_path = audit_path
        self.on_session_error = on_session_error
        self.last_read_error: Optional[PatraError] = None

        self._lock = threading.RLock()
        self._letters: Dict[str, Letter] = {}
        self._pending: Dict[str, Letter] = {}
        self.max_background_workers = max_background_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    # ==================================================
    # READS
    # ==================================================
    def get(self, letter_id: str) -> Optional[Letter]:
        with self._lock:
            return self._letters.get(letter_id)

    def letters(self, predicate: Optional[Callable[[Letter], bool]] = None) -> List[Letter]:
        with self._lock:
            letters = list(self._letters.values())
        if predicate is None:
            return letters
        return [letter for letter in letters if predicate(letter)]

    def is_pending(self, letter_id: str) -> bool:
        with self._lock:
            return letter_id in self._pending

    def apply_server_read(self, letters: Iterable[Letter]) -> List[str]:
        """Adopt server copies; ids with an in-flight mutation are skipped."""
        updated = []
        with self._lock:
            for letter in letters:
                if letter.id in self._pending:
                    logger.debug(f"Poll overwrite suppressed for in-flight letter {letter.id}")
                    continue
                self._letters[letter.id] = letter
                updated.append(letter.id)
        return updated

    def refresh(self, fetch: Callable[[], List[Letter]]) -> List[Letter]:
        """
        Run a read against the store.

        A failed read keeps prior data and raises a banner notice instead of
        clearing the view.
        """
        try:
            letters = fetch()
        except SESSION_ERRORS as e:
            self._session_error(e)
            raise
        except (NetworkFailure, ServerRejected) as e:
            logger.warning(f"Letter refresh failed: {e.code} {e}")
            self.last_read_error = e
            self.notifier.read_failed(e.code, str(e))
            return self.letters()

        self.last_read_error = None
        self.apply_server_read(letters)
        return self.letters()

    # ==================================================
    # MUTATIONS
    # ==================================================
    def submit(
        self,
        letter_id: str,
        intent: str,
        role: str,
        apply: Callable[[Letter], Letter],
        remote: Callable[[], Letter],
        *,
        refetch: Optional[Callable[[], Letter]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> MutationOutcome:
        context = dict(context or {})

        with self._lock:
            current = self._letters.get(letter_id)
            if current is None:
                raise KeyError(f"Letter {letter_id} is not loaded")
            context.setdefault("reference_number", current.reference_number)

            try:
                if letter_id in self._pending:
                    raise InvalidTransition(
                        f"Another change to letter {current.reference_number} is still in flight"
                    )
                optimistic = apply(current)
            except PatraError as e:
                return self._rejected(letter_id, intent, current, e, context)

            self._letters[letter_id] = optimistic
            self._pending[letter_id] = current

        try:
            confirmed = remote()
        except SESSION_ERRORS as e:
            self._rollback(letter_id, current)
            self._session_error(e)
            raise
        except PatraError as e:
            self._rollback(letter_id, current)
            if isinstance(e, ServerRejected) and refetch is not None:
                self._refetch_after_rejection(letter_id, refetch)
            return self._rejected(letter_id, intent, self.get(letter_id), e, context)
        except Exception:
            self._rollback(letter_id, current)
            raise

        with self._lock:
            self._letters[letter_id] = confirmed
            self._pending.pop(letter_id, None)

        logger.info(f"Committed {intent} on letter {letter_id} as {role}")
        self._audit(intent, role, current, confirmed)
        self.notifier.mutation_succeeded(intent, letter_id, **context)
        return MutationOutcome(letter_id, intent, True, confirmed)

    def submit_async(self, *args: Any, **kwargs: Any) -> "Future[MutationOutcome]":
        """
        Fire-and-forget variant: the mutation completes and reconciles even if
        the view that started it is gone.
        """
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_background_workers,
                    thread_name_prefix="patra-mutation",
                )
            executor = self._executor
        return executor.submit(self.submit, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        """Stop background workers; a later submit_async starts a fresh pool."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    # ==================================================
    # INTERNAL HELPERS
    # ==================================================
    def _rollback(self, letter_id: str, previous: Letter) -> None:
        with self._lock:
            self._letters[letter_id] = previous
            self._pending.pop(letter_id, None)

    def _refetch_after_rejection(self, letter_id: str, refetch: Callable[[], Letter]) -> None:
        try:
            self.apply_server_read([refetch()])
        except SESSION_ERRORS as e:
            self._session_error(e)
            raise
        except PatraError as e:
            logger.warning(f"Refetch of letter {letter_id} after rejection failed: {e.code}")

    def _rejected(
        self,
        letter_id: str,
        intent: str,
        letter: Optional[Letter],
        error: PatraError,
        context: Dict[str, Any],
    ) -> MutationOutcome:
        logger.warning(f"Reverted {intent} on letter {letter_id}: {error.code} {error}")
        self.notifier.mutation_reverted(
            intent, letter_id, error.code, reason=str(error), **context
        )
        return MutationOutcome(letter_id, intent, False, letter, error)

    def _session_error(self, error: PatraError) -> None:
        logger.warning(f"Session error during reconciliation: {error.code}")
        if self.on_session_error is not None:
            self.on_session_error(error)

    def _audit(self, intent: str, role: str, before: Letter, after: Letter) -> None:
        if self.audit_path is None:
            return
        append_event(
            {
                "letter_id": after.id,
                "reference_number": after.reference_number,
                "intent": intent,
                "role": role,
                "previous_status": before.letter_status.value,
                "new_status": after.letter_status.value,
                "forward_to": after.forward_to,
            },
            path=self.audit_path,
        )
