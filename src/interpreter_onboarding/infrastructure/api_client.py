"""HTTP client for the profile backend.

Every response uses the envelope ``{success, data, message, errors}``.
Transport failures, rate limiting and server errors raise
:class:`BackendError`; any other refusal raises :class:`SubmissionRejected`
carrying the backend's own message.
"""

from __future__ import annotations

import logging
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field

from interpreter_onboarding.config.models import ApiConfig
from interpreter_onboarding.errors import BackendError, SubmissionRejected

logger = logging.getLogger(__name__)

TOO_MANY_REQUESTS = "Too many requests. Please try again later."
SERVER_ERROR = "Server error. Please try again later."
UNEXPECTED_ERROR = "An unexpected error occurred"

MultipartFiles = list[tuple[str, tuple[str, bytes, str]]]


class ApiEnvelope(BaseModel):
    """Response envelope shared by every backend endpoint."""

    model_config = ConfigDict(frozen=True, extra="allow")

    success: bool = True
    data: Any = None
    message: str | None = None
    errors: list[dict[str, Any]] = Field(default_factory=list)


def format_errors(errors: list[dict[str, Any]]) -> str:
    """Render backend field errors as one message.

    Examples:
        >>> format_errors([{"path": "email", "msg": "taken"}])
        'Validation errors: email: taken'
    """
    parts = [f"{e.get('path', '')}: {e.get('msg', '')}" for e in errors]
    return f"Validation errors: {', '.join(parts)}"


class ProfileApiClient:
    """Thin wrapper over :class:`requests.Session` for the profile backend.

    Parameters:
        config: ``[api]`` settings (base URL, timeout, bearer token).
        session: Injected session; a new one is created when omitted.
    """

    def __init__(self, config: ApiConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if config.token:
            self._session.headers["Authorization"] = f"Bearer {config.token}"

    @property
    def base_url(self) -> str:
        return self._config.base_url.rstrip("/")

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
        files: MultipartFiles | None = None,
    ) -> ApiEnvelope:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                json=json_body,
                data=data,
                files=files,
                timeout=self._config.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.warning("Request to %s failed: %s", url, exc)
            raise BackendError(str(exc) or UNEXPECTED_ERROR, detail={"url": url}) from exc

        body = _json_body(response)
        status = response.status_code

        if status == 429:
            raise BackendError(TOO_MANY_REQUESTS, detail={"status": status})
        if status >= 500:
            raise BackendError(SERVER_ERROR, detail={"status": status})

        envelope = ApiEnvelope.model_validate(body) if isinstance(body, dict) else ApiEnvelope(data=body)
        if status >= 400 or not envelope.success:
            if envelope.errors:
                message = format_errors(envelope.errors)
            else:
                message = envelope.message or f"Request failed with status {status}"
            raise SubmissionRejected(message, detail={"status": status, "errors": envelope.errors})
        return envelope

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_reference_data(self) -> dict[str, Any]:
        return self._request("GET", "/parametric/all").data or {}

    def create_profile(self, data: dict[str, str], files: MultipartFiles) -> ApiEnvelope:
        return self._request("POST", "/interpreters", data=data, files=files)

    def get_profile(self) -> dict[str, Any]:
        return self._request("GET", "/interpreters/profile").data or {}

    def update_profile(self, data: dict[str, str], files: MultipartFiles) -> ApiEnvelope:
        return self._request("POST", "/interpreters/profile/update", data=data, files=files)

    def get_pending_update(self) -> dict[str, Any] | None:
        return self._request("GET", "/interpreters/profile/pending-update").data

    def cancel_pending_update(self) -> ApiEnvelope:
        return self._request("DELETE", "/interpreters/profile/pending-update")

    def get_rejection(self, token: str) -> dict[str, Any]:
        return self._request("GET", f"/interpreters/rejection/{token}").data or {}

    def validate_completion_token(self, token: str) -> dict[str, Any]:
        return self._request("GET", f"/profile-completion/validate-token/{token}").data or {}

    def submit_completion(self, token: str, payload: dict[str, Any]) -> ApiEnvelope:
        return self._request("POST", f"/profile-completion/submit/{token}", json_body=payload)


def _json_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
