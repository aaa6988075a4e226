"""
ATTACHMENT MANAGER

Purpose:
- Covering letter: at most one per letter, never silently overwritten
- Signed covering letters cannot be removed
- Reports: append-only, insertion order, frozen once the case is closed

Rules:
- Pure functions: Letter in, new Letter out
- Closed letters fail with CaseClosed before any other check
"""

import mimetypes
from typing import Iterable, Tuple

from patra.config import MAX_REPORT_BYTES
from patra.core.letter import CoveringLetter, FileAttachment, Letter, utc_now
from patra.errors import (
    AlreadyExists,
    CaseClosed,
    InvalidTransition,
    SignedImmutable,
    TooLarge,
    UnsupportedType,
)

# Document family accepted for reports (images are accepted as a family)
DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.oasis.opendocument.text",
    "application/rtf",
    "text/plain",
}


def _ensure_open(letter: Letter) -> None:
    if letter.is_closed:
        raise CaseClosed(f"Letter {letter.reference_number} is closed")


def resolve_mime_type(file: FileAttachment) -> str:
    if file.mime_type:
        return file.mime_type.split(";")[0].strip().lower()
    guessed, _ = mimetypes.guess_type(file.original_name)
    return (guessed or "").lower()


def validate_report_file(file: FileAttachment, max_bytes: int = MAX_REPORT_BYTES) -> None:
    mime_type = resolve_mime_type(file)
    if mime_type not in DOCUMENT_MIME_TYPES and not mime_type.startswith("image/"):
        raise UnsupportedType(
            f"'{file.original_name}' ({mime_type or 'unknown type'}) is not a document or image"
        )
    if file.size > max_bytes:
        raise TooLarge(
            f"'{file.original_name}' is {file.size} bytes; limit is {max_bytes}"
        )


COVERING_LETTER_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


def validate_covering_letter_file(file: FileAttachment, max_bytes: int = MAX_REPORT_BYTES) -> None:
    mime_type = resolve_mime_type(file)
    if mime_type not in COVERING_LETTER_MIME_TYPES:
        raise UnsupportedType(
            f"'{file.original_name}' must be a PDF or Word document"
        )
    if file.size > max_bytes:
        raise TooLarge(
            f"'{file.original_name}' is {file.size} bytes; limit is {max_bytes}"
        )


# ==================================================
# COVERING LETTER
# ==================================================
def attach_covering_letter(letter: Letter, doc: CoveringLetter) -> Letter:
    _ensure_open(letter)
    if letter.covering_letter is not None:
        raise AlreadyExists(
            f"Covering letter already exists for {letter.reference_number}; remove it first"
        )
    return letter.evolve(covering_letter=doc)


def remove_covering_letter(letter: Letter) -> Letter:
    _ensure_open(letter)
    if letter.covering_letter is None:
        raise InvalidTransition(f"No covering letter attached to {letter.reference_number}")
    if letter.covering_letter.is_signed:
        raise SignedImmutable(
            f"Covering letter for {letter.reference_number} is signed and cannot be removed"
        )
    return letter.evolve(covering_letter=None)


# ==================================================
# REPORTS
# ==================================================
def add_report(
    letter: Letter,
    file: FileAttachment,
    max_bytes: int = MAX_REPORT_BYTES,
) -> Letter:
    _ensure_open(letter)
    validate_report_file(file, max_bytes)
    if file.uploaded_at is None:
        file = FileAttachment(
            original_name=file.original_name,
            size=file.size,
            mime_type=resolve_mime_type(file),
            storage_url=file.storage_url,
            uploaded_at=utc_now(),
        )
    return letter.evolve(report_files=letter.report_files + (file,))


def add_reports(
    letter: Letter,
    files: Iterable[FileAttachment],
    max_bytes: int = MAX_REPORT_BYTES,
) -> Letter:
    for file in files:
        letter = add_report(letter, file, max_bytes)
    return letter


def list_reports(letter: Letter) -> Tuple[FileAttachment, ...]:
    return letter.report_files


class PendingUpload:
    """File bytes waiting to be sent to the store, plus its metadata."""

    def __init__(self, name: str, content: bytes, mime_type: str = ""):
        self.name = name
        self.content = content
        self.mime_type = mime_type or mimetypes.guess_type(name)[0] or "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    def as_attachment(self) -> FileAttachment:
        return FileAttachment(
            original_name=self.name,
            size=self.size,
            mime_type=self.mime_type,
        )
