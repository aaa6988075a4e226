"""
PATRA API CLIENT

Purpose:
- Talk to the authoritative letter store over HTTP
- Map every transport or HTTP failure onto the domain error taxonomy
- Return Letter values, never raw payloads, for letter operations

Requirements:
• Base URL from PATRA_API_URL (never hardcoded at call sites)
• Timeout protection on every request (PATRA_API_TIMEOUT)
• Bearer credential read from a provider at call time
• No retries here: a failed mutation is rolled back by reconciliation
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from patra.config import API_TIMEOUT, PATRA_API_URL
from patra.core.attachments import PendingUpload
from patra.core.letter import CoveringLetter, Letter
from patra.errors import (
    AlreadyExists,
    InvalidCredential,
    NetworkFailure,
    PermissionDenied,
    RoleMismatch,
    ServerRejected,
    SessionExpired,
)

# Configure logging
logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def _error_body(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {"error": response.text[:200]}
    return body if isinstance(body, dict) else {}


def _raise_for_status(response: requests.Response) -> None:
    """Translate a non-2xx answer into a PatraError."""
    if 200 <= response.status_code < 300:
        return

    body = _error_body(response)
    code = body.get("code")
    message = body.get("error") or body.get("message") or f"HTTP {response.status_code}"

    if response.status_code == 401:
        if code == "TOKEN_EXPIRED":
            raise SessionExpired(message)
        if code == "ROLE_MISMATCH":
            raise RoleMismatch(message)
        raise InvalidCredential(message)

    if response.status_code == 403:
        raise PermissionDenied(message)

    if response.status_code == 409 or "already exists" in str(message).lower():
        raise AlreadyExists(message)

    raise ServerRejected(message)


def _letter_payload(body: Any) -> Dict[str, Any]:
    if isinstance(body, dict):
        for key in ("patra", "updatedPatra", "letter", "data"):
            if isinstance(body.get(key), dict):
                return body[key]
    return body


def _letters_payload(body: Any) -> List[Dict[str, Any]]:
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("patras", "letters", "data"):
            if isinstance(body.get(key), list):
                return body[key]
    return []


class PatraApiClient:
    """
    HTTP implementation of the operations the lifecycle engine consumes.
    """

    def __init__(
        self,
        base_url: str = PATRA_API_URL,
        *,
        credential_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = API_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.credential_provider = credential_provider or (lambda: None)
        self.timeout = timeout
        self.session = session or requests.Session()

    # --------------------------------------------------
    # Transport
    # --------------------------------------------------
    def _headers(self, credential: Optional[str] = None) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        credential = credential or self.credential_provider()
        if credential:
            headers["Authorization"] = f"Bearer {credential}"
        return headers

    def _send(
        self,
        method: str,
        path: str,
        *,
        credential: Optional[str] = None,
        **kwargs: Any,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self.session.request(
                method,
                url,
                headers=self._headers(credential),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"{method} {path} timed out after {self.timeout}s")
            raise NetworkFailure(f"{method} {path} timed out") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {path} failed: {str(e)}")
            raise NetworkFailure(str(e)) from e

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self._send(method, path, **kwargs)
        _raise_for_status(response)
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ServerRejected(f"{method} {path} returned a non-JSON body") from e

    # --------------------------------------------------
    # Identity
    # --------------------------------------------------
    def login(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/login", json={"email": email, "password": password})

    def forgot_password(self, email: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/forgot-password", json={"email": email})

    def verify_otp(self, email: str, code: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/verify-otp", json={"email": email, "otp": code})

    def reset_password(self, email: str, code: str, new_password: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/auth/reset-password",
            json={"email": email, "otp": code, "newPassword": new_password},
        )

    def verify_identity(self, credential: str) -> Dict[str, Any]:
        """
        Ask the server whether a credential is still good.

        Returns {"valid": True, "identity": {...}} or {"valid": False, "code": ...}.
        Raises NetworkFailure only when the server could not be reached.
        """
        response = self._send("GET", "/api/auth/verify-token", credential=credential)
        body = _error_body(response)

        if 200 <= response.status_code < 300:
            return {"valid": True, "identity": body.get("user") or body.get("identity") or {}}

        logger.warning(
            f"Identity verification failed: HTTP {response.status_code} ({body.get('code')})"
        )
        return {"valid": False, "code": body.get("code") or f"HTTP_{response.status_code}"}

    # --------------------------------------------------
    # Letters (reads)
    # --------------------------------------------------
    def list_letters(self, filters: Optional[Dict[str, Any]] = None) -> List[Letter]:
        body = self._request("GET", "/api/patras", params=filters or {})
        return [Letter.from_dict(item) for item in _letters_payload(body)]

    def get_letter(self, letter_id: str) -> Letter:
        body = self._request("GET", f"/api/patras/{letter_id}")
        return Letter.from_dict(_letter_payload(body))

    def download_merged(self, letter_id: str) -> Iterator[bytes]:
        response = self._send("GET", f"/api/patras/{letter_id}/download-merged", stream=True)
        _raise_for_status(response)
        return response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE)

    # --------------------------------------------------
    # Letters (mutations)
    # --------------------------------------------------
    def forward_letter(self, letter_id: str, target_role: str) -> Letter:
        body = self._request("PUT", f"/api/patras/{letter_id}/forward", json={"forwardTo": target_role})
        return Letter.from_dict(_letter_payload(body))

    def send_to_head(self, letter_id: str) -> Letter:
        body = self._request(
            "PUT",
            f"/api/patras/{letter_id}/send-to-hod",
            json={"letterStatus": "sent_to_head", "forwardTo": "head"},
        )
        return Letter.from_dict(_letter_payload(body))

    def set_letter_status(self, letter_id: str, status: str) -> Letter:
        body = self._request("PUT", f"/api/patras/{letter_id}/status", json={"letterStatus": status})
        return Letter.from_dict(_letter_payload(body))

    def attach_covering_letter(
        self,
        letter_id: str,
        upload: PendingUpload,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CoveringLetter:
        data = {"patraId": letter_id, "status": "DRAFT", **(metadata or {})}
        files = {"coveringLetterFile": (upload.name, upload.content, upload.mime_type)}
        body = self._request("POST", "/api/letters/upload", data=data, files=files)
        return CoveringLetter.from_dict(body.get("coveringLetter") or body)

    def delete_covering_letter(self, covering_letter_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/letters/{covering_letter_id}")

    def sign_covering_letter(self, covering_letter_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/api/heads/upload-signature/{covering_letter_id}")

    def upload_report(self, letter_id: str, uploads: List[PendingUpload]) -> Letter:
        files = [
            ("reportFiles", (upload.name, upload.content, upload.mime_type))
            for upload in uploads
        ]
        body = self._request("POST", f"/api/patras/{letter_id}/reports", files=files)
        return Letter.from_dict(_letter_payload(body))

    def close_case(self, letter_id: str) -> Letter:
        body = self._request(
            "PUT",
            f"/api/patras/{letter_id}/close-case",
            json={"inwardPatraClose": True, "letterStatus": "case_closed"},
        )
        return Letter.from_dict(_letter_payload(body))
