import json

import pytest

from patra.core.letter import (
    CoveringLetter,
    FileAttachment,
    Letter,
    LetterStatus,
    normalize_status,
    sign_status,
    status_counts,
)
from patra.security.roles import HEAD, INWARD_USER, SP


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("pending", LetterStatus.PENDING),
        ("sent_to_head", LetterStatus.SENT_TO_HEAD),
        ("Sent to Head", LetterStatus.SENT_TO_HEAD),
        ("प्रमुखांकडे पाठवले", LetterStatus.SENT_TO_HEAD),
        ("मंजूर", LetterStatus.APPROVED),
        ("processed", LetterStatus.APPROVED),
        ("Processed", LetterStatus.APPROVED),
        ("Approval granted", LetterStatus.APPROVED),
        ("नाकारले", LetterStatus.REJECTED),
        ("Case Closed", LetterStatus.CASE_CLOSED),
        ("केस बंद", LetterStatus.CASE_CLOSED),
        ("प्रलंबित", LetterStatus.PENDING),
        ("something else entirely", LetterStatus.PENDING),
        (None, LetterStatus.PENDING),
    ],
)
def test_status_normalization(raw, expected):
    assert normalize_status(raw) is expected


def test_from_dict_normalizes_wire_payload():
    letter = Letter.from_dict({
        "_id": "64f0",
        "referenceNumber": "IN/2024/017",
        "letterStatus": "प्रमुखांकडे पाठवले",
        "forwardTo": "HOD",
        "createdAt": "2024-03-01T10:15:00Z",
        "coveringLetter": {
            "id": 9,
            "letterNumber": "CL/17",
            "pdfUrl": "https://files.example.gov.in/cl17.pdf",
            "wordUrl": "https://files.example.gov.in/cl17.docx",
            "isSigned": True,
        },
        "reportFiles": json.dumps([
            {"originalName": "report.pdf", "size": 1024, "mimeType": "application/pdf"},
        ]),
        "inwardPatraClose": False,
    })

    assert letter.id == "64f0"
    assert letter.letter_status is LetterStatus.SENT_TO_HEAD
    assert letter.forward_to == HEAD
    assert letter.created_at.year == 2024
    assert letter.covering_letter.id == "9"
    assert letter.covering_letter.is_signed
    assert letter.covering_letter.preferred_url().endswith(".docx")
    assert [r.original_name for r in letter.report_files] == ["report.pdf"]
    assert not letter.is_closed


@pytest.mark.parametrize("raw", [None, "", "null", "[]"])
def test_empty_report_files_in_any_encoding(raw):
    letter = Letter.from_dict({"id": "1", "referenceNumber": "R", "reportFiles": raw})
    assert letter.report_files == ()


def test_signed_flag_must_be_literal_true():
    covering = CoveringLetter.from_dict({"id": "1", "isSigned": "true"})
    assert not covering.is_signed


def test_preferred_url_order():
    covering = CoveringLetter(
        id="1",
        reference_number=None,
        document_urls={"html": "h", "pdf": "p"},
    )
    assert covering.preferred_url() == "p"
    assert CoveringLetter(id="2", reference_number=None).preferred_url() is None


def test_to_dict_emits_canonical_status(make_letter):
    data = make_letter(letter_status=LetterStatus.SENT_TO_HEAD, forward_to=HEAD).to_dict()

    assert data["letterStatus"] == "sent_to_head"
    assert data["forwardTo"] == "head"
    assert Letter.from_dict(data).letter_status is LetterStatus.SENT_TO_HEAD


def test_reference_number_is_immutable(make_letter):
    letter = make_letter()
    with pytest.raises(ValueError):
        letter.evolve(reference_number="IN/2024/999")
    assert letter.evolve(subject="Updated").reference_number == letter.reference_number


def test_unforwarded_letter_is_owned_by_intake(make_letter):
    assert make_letter().owner == INWARD_USER
    assert make_letter(forward_to=SP).owner == SP


def test_closed_by_flag_or_status(make_letter):
    assert make_letter(inward_patra_close=True).is_closed
    assert make_letter(letter_status=LetterStatus.CASE_CLOSED).is_closed
    assert not make_letter().is_closed


def test_sign_status(make_letter):
    unsigned = CoveringLetter(id="1", reference_number=None)
    signed = CoveringLetter(id="1", reference_number=None, is_signed=True)

    assert sign_status(make_letter()) is None
    assert sign_status(make_letter(forward_to=HEAD, covering_letter=unsigned)) == "pending"
    assert sign_status(make_letter(forward_to=HEAD, covering_letter=signed)) == "completed"


def test_status_counts(make_letter):
    signed = CoveringLetter(id="1", reference_number=None, is_signed=True)
    letters = [
        make_letter(id="1"),
        make_letter(id="2", letter_status=LetterStatus.SENT_TO_HEAD, covering_letter=signed),
        make_letter(id="3", letter_status=LetterStatus.CASE_CLOSED),
    ]
    counts = status_counts(letters)

    assert counts["pending"] == 1
    assert counts["sent_to_head"] == 1
    assert counts["case_closed"] == 1
    assert counts["approved"] == 0
    assert counts["signed"] == 1


def test_file_attachment_from_dict_aliases():
    attachment = FileAttachment.from_dict({
        "fileName": "scan.png",
        "fileSize": "2048",
        "mimetype": "image/png",
        "url": "https://files.example.gov.in/scan.png",
    })

    assert attachment.original_name == "scan.png"
    assert attachment.size == 2048
    assert attachment.mime_type == "image/png"
    assert attachment.storage_url.endswith("scan.png")
