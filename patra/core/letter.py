"""
LETTER ENTITY MODEL

Canonical, immutable representation of a patra and its attachments.

Rules:
- Every mutation produces a new Letter (dataclasses.replace); nothing
  edits a Letter in place
- letter_status is always one of LetterStatus; free-form or localized
  strings are normalized on the way in and never emitted on the way out
- forward_to is a normalized RoleId or None
"""

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from patra.security.roles import HEAD, INWARD_USER, normalize_role


class LetterStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SENT_TO_HEAD = "sent_to_head"
    CASE_CLOSED = "case_closed"


# Checked in order; first keyword hit wins. Marathi strings are what the
# authoritative store writes when the UI language is "mr".
STATUS_KEYWORDS: List[Tuple[LetterStatus, Tuple[str, ...]]] = [
    (LetterStatus.PENDING, ("pending", "प्रलंबित")),
    (LetterStatus.APPROVED, ("approv", "processed", "मंजूर")),
    (LetterStatus.REJECTED, ("rejected", "नाकारले")),
    (LetterStatus.SENT_TO_HEAD, ("sent to head", "sent_to_head", "प्रमुखांकडे पाठवले")),
    (LetterStatus.CASE_CLOSED, ("case close", "case_closed", "केस बंद", "closed")),
]


def normalize_status(raw: Optional[Any]) -> LetterStatus:
    """Keyword-match any status string into the canonical set (default: pending)."""
    if isinstance(raw, LetterStatus):
        return raw
    if raw is None:
        return LetterStatus.PENDING

    text = str(raw).strip().lower()
    for status in LetterStatus:
        if text == status.value:
            return status

    for status, keywords in STATUS_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return status

    return LetterStatus.PENDING


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ==================================================
# ATTACHMENTS
# ==================================================
@dataclass(frozen=True)
class FileAttachment:
    """A stored file: the original submission or a post-signature report."""

    original_name: str
    size: int
    mime_type: str
    storage_url: Optional[str] = None
    uploaded_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalName": self.original_name,
            "size": self.size,
            "mimeType": self.mime_type,
            "fileUrl": self.storage_url,
            "uploadedAt": _format_datetime(self.uploaded_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileAttachment":
        return cls(
            original_name=data.get("originalName") or data.get("fileName") or "document",
            size=int(data.get("size") or data.get("fileSize") or 0),
            mime_type=data.get("mimeType") or data.get("mimetype") or data.get("fileType") or "",
            storage_url=data.get("fileUrl") or data.get("storageUrl") or data.get("url"),
            uploaded_at=_parse_datetime(data.get("uploadedAt") or data.get("createdAt")),
        )


@dataclass(frozen=True)
class CoveringLetter:
    id: str
    reference_number: Optional[str]
    document_urls: Dict[str, str] = field(default_factory=dict)
    is_signed: bool = False
    letter_type: Optional[str] = None
    status: Optional[str] = None
    signed_at: Optional[datetime] = None

    def preferred_url(self) -> Optional[str]:
        """Word over PDF over HTML."""
        for kind in ("word", "pdf", "html"):
            if self.document_urls.get(kind):
                return self.document_urls[kind]
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "referenceNumber": self.reference_number,
            "documentUrls": dict(self.document_urls),
            "isSigned": self.is_signed,
            "letterType": self.letter_type,
            "status": self.status,
            "signedAt": _format_datetime(self.signed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoveringLetter":
        urls: Dict[str, str] = {}
        for kind, url in (data.get("documentUrls") or {}).items():
            if url:
                urls[kind] = url
        for kind, key in (("word", "wordUrl"), ("pdf", "pdfUrl"), ("html", "htmlUrl")):
            if data.get(key) and kind not in urls:
                urls[kind] = data[key]

        return cls(
            id=str(data.get("id") or data.get("_id") or ""),
            reference_number=data.get("referenceNumber") or data.get("letterNumber"),
            document_urls=urls,
            is_signed=data.get("isSigned") is True,
            letter_type=data.get("letterType"),
            status=data.get("status"),
            signed_at=_parse_datetime(data.get("signedAt")),
        )


def _parse_report_files(raw: Any) -> Tuple[FileAttachment, ...]:
    # The store sometimes hands the list over JSON-encoded ("[]", "null")
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = json.loads(raw) if raw.strip() else None
        if raw is None:
            return ()
    return tuple(FileAttachment.from_dict(item) for item in raw)


# ==================================================
# LETTER
# ==================================================
@dataclass(frozen=True)
class Letter:
    id: str
    reference_number: str
    letter_status: LetterStatus = LetterStatus.PENDING
    forward_to: Optional[str] = None
    created_at: Optional[datetime] = None
    covering_letter: Optional[CoveringLetter] = None
    uploaded_file: Optional[FileAttachment] = None
    report_files: Tuple[FileAttachment, ...] = ()
    inward_patra_close: bool = False
    subject: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.inward_patra_close or self.letter_status is LetterStatus.CASE_CLOSED

    @property
    def owner(self) -> str:
        """Role currently holding the letter; unforwarded letters stay with intake."""
        return self.forward_to or INWARD_USER

    def evolve(self, **changes: Any) -> "Letter":
        if "reference_number" in changes and changes["reference_number"] != self.reference_number:
            raise ValueError("reference_number is immutable once assigned")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "referenceNumber": self.reference_number,
            "letterStatus": self.letter_status.value,
            "forwardTo": self.forward_to,
            "createdAt": _format_datetime(self.created_at),
            "coveringLetter": self.covering_letter.to_dict() if self.covering_letter else None,
            "uploadedFile": self.uploaded_file.to_dict() if self.uploaded_file else None,
            "reportFiles": [f.to_dict() for f in self.report_files],
            "inwardPatraClose": self.inward_patra_close,
            "subject": self.subject,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Letter":
        forward_to = data.get("forwardTo")
        covering = data.get("coveringLetter") or data.get("directCoveringLetter")
        uploaded = data.get("uploadedFile") or data.get("upload")

        return cls(
            id=str(data.get("id") or data.get("_id") or ""),
            reference_number=str(data.get("referenceNumber") or ""),
            letter_status=normalize_status(data.get("letterStatus")),
            forward_to=normalize_role(forward_to) if forward_to else None,
            created_at=_parse_datetime(data.get("createdAt")),
            covering_letter=CoveringLetter.from_dict(covering) if covering else None,
            uploaded_file=FileAttachment.from_dict(uploaded) if uploaded else None,
            report_files=_parse_report_files(data.get("reportFiles")),
            inward_patra_close=data.get("inwardPatraClose") is True,
            subject=data.get("subject"),
        )


# ==================================================
# READ HELPERS
# ==================================================
def sign_status(letter: Letter) -> Optional[str]:
    """'completed' / 'pending' once the letter went to the head, else None."""
    if letter.forward_to == HEAD or letter.letter_status is LetterStatus.SENT_TO_HEAD:
        if letter.covering_letter and letter.covering_letter.is_signed:
            return "completed"
        return "pending"
    return None


def status_counts(letters: Iterable[Letter]) -> Dict[str, int]:
    counts = {status.value: 0 for status in LetterStatus}
    counts["signed"] = 0
    for letter in letters:
        counts[letter.letter_status.value] += 1
        if letter.covering_letter and letter.covering_letter.is_signed:
            counts["signed"] += 1
    return counts
