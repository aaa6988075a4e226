"""
NOTICE FEED

Purpose:
- Collect user-visible outcomes of mutations and reads
- Views drain the feed on render; nothing is ever dropped silently

Rules:
- Exactly one notice per mutation outcome
- Thread-safe: poll threads and request threads both emit
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from patra.notifications.templates import (
    READ_FAILURE_MESSAGE,
    NoticeSeverity,
    get_template,
)


@dataclass(frozen=True)
class Notice:
    notice_id: str
    timestamp: float
    severity: NoticeSeverity
    message: str
    letter_id: Optional[str] = None
    intent: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class Notifier:
    def __init__(self):
        self._lock = threading.Lock()
        self._notices: List[Notice] = []

    def emit(
        self,
        severity: NoticeSeverity,
        message: str,
        *,
        letter_id: Optional[str] = None,
        intent: Optional[str] = None,
        error_code: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Notice:
        notice = Notice(
            notice_id=uuid.uuid4().hex,
            timestamp=time.time(),
            severity=severity,
            message=message,
            letter_id=letter_id,
            intent=intent,
            error_code=error_code,
            metadata=metadata or {},
        )
        with self._lock:
            self._notices.append(notice)
        return notice

    def mutation_succeeded(self, intent: str, letter_id: str, **context: Any) -> Notice:
        message = get_template(intent).format_success(**context)
        return self.emit(NoticeSeverity.SUCCESS, message, letter_id=letter_id, intent=intent)

    def mutation_reverted(
        self, intent: str, letter_id: str, error_code: str, **context: Any
    ) -> Notice:
        message = get_template(intent).format_reverted(**context)
        return self.emit(
            NoticeSeverity.ERROR,
            message,
            letter_id=letter_id,
            intent=intent,
            error_code=error_code,
        )

    def read_failed(self, error_code: str, reason: str) -> Notice:
        return self.emit(
            NoticeSeverity.WARNING,
            READ_FAILURE_MESSAGE.format(reason=reason),
            error_code=error_code,
        )

    def pending(self) -> List[Notice]:
        with self._lock:
            return list(self._notices)

    def drain(self) -> List[Notice]:
        with self._lock:
            notices, self._notices = self._notices, []
        return notices
