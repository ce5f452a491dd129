"""HR backend client for required templates, form submissions and signing links.

The backend owns all durable state; this module only maps its REST
endpoints to typed calls. Every failure (transport, non-2xx, unexpected
payload shape) is raised as FormsApiError carrying the server's message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from hrsign.config import Settings, get_settings
from hrsign.models import EmployeeContact, FormSubmission, RequiredTemplate, SigningLink

logger = logging.getLogger("hrsign.api")

_templates = TypeAdapter(list[RequiredTemplate])
_submissions = TypeAdapter(list[FormSubmission])


class FormsApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class SubmissionScope:
    """Whose submissions we are looking at. Onboarding wins over employee."""

    onboarding_id: int | None = None
    employee_id: int | None = None

    def __post_init__(self):
        if self.onboarding_id is None and self.employee_id is None:
            raise ValueError("an onboarding id or an employee id is required")

    @property
    def base_path(self) -> str:
        if self.onboarding_id is not None:
            return f"/api/onboarding/{self.onboarding_id}"
        return f"/api/employees/{self.employee_id}"

    @property
    def submissions_path(self) -> str:
        return f"{self.base_path}/form-submissions"

    @property
    def send_path(self) -> str:
        return f"{self.base_path}/send-form"

    @property
    def label(self) -> str:
        if self.onboarding_id is not None:
            return f"onboarding {self.onboarding_id}"
        return f"employee {self.employee_id}"

    @classmethod
    def from_settings(cls, settings: Settings) -> SubmissionScope:
        return cls(onboarding_id=settings.onboarding_id, employee_id=settings.employee_id)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if body.get(key):
                return str(body[key])
    text = resp.text.strip()
    return f"{resp.status_code}: {text[:200]}" if text else f"{resp.status_code} {resp.reason_phrase}"


class FormsApiClient:
    def __init__(self, client: httpx.Client):
        self._http = client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> FormsApiClient:
        settings = settings or get_settings()
        headers = {"Accept": "application/json"}
        if settings.has_api_key():
            headers["Authorization"] = f"Bearer {settings.hr_api_key}"
        return cls(httpx.Client(
            base_url=settings.hr_api_base_url,
            headers=headers,
            timeout=settings.hr_api_timeout,
        ))

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> FormsApiClient:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -- plumbing ------------------------------------------------------------

    def _request(self, method: str, path: str, *, json: dict | None = None,
                 params: dict | None = None) -> Any:
        logger.debug("%s %s", method, path)
        try:
            resp = self._http.request(method, path, json=json, params=params)
        except httpx.HTTPError as e:
            raise FormsApiError(f"{method} {path} failed: {e}") from e
        if resp.is_error:
            message = _error_message(resp)
            logger.info("%s %s -> %d %s", method, path, resp.status_code, message)
            raise FormsApiError(message, resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise FormsApiError(f"{method} {path}: response is not JSON", resp.status_code) from e

    @staticmethod
    def _parse(adapter: TypeAdapter | type[BaseModel], data: Any, what: str):
        try:
            if isinstance(adapter, TypeAdapter):
                return adapter.validate_python(data)
            return adapter.model_validate(data)
        except ValidationError as e:
            raise FormsApiError(f"unexpected {what} payload: {e.error_count()} error(s)") from e

    # -- endpoints -----------------------------------------------------------

    def list_required_forms(self) -> list[RequiredTemplate]:
        data = self._request("GET", "/api/onboarding/required-forms")
        return self._parse(_templates, data or [], "required forms")

    def list_submissions(self, scope: SubmissionScope) -> list[FormSubmission]:
        data = self._request("GET", scope.submissions_path)
        return self._parse(_submissions, data or [], "form submissions")

    def send_form(self, scope: SubmissionScope, template_id: str, signer_email: str) -> FormSubmission:
        data = self._request("POST", scope.send_path, json={
            "templateId": template_id,
            "signerEmail": signer_email,
            "employeeId": scope.employee_id,
        })
        return self._parse(FormSubmission, data, "send-form")

    def get_signing_url(self, local_id: int | str, signer_email: str) -> SigningLink:
        data = self._request("GET", f"/api/forms/submissions/{local_id}/sign",
                             params={"signer": signer_email})
        return self._parse(SigningLink, data or {}, "signing link")

    def send_reminder(self, local_id: int | str, signer_email: str) -> None:
        self._request("POST", f"/api/forms/submissions/{local_id}/remind",
                      json={"signerEmail": signer_email})

    def update_status(self, local_id: int | str) -> None:
        """Ask the backend to recompute a submission's status from DocuSeal."""
        self._request("POST", f"/api/forms/submission/{local_id}/update-status")

    def get_employee(self, employee_id: int) -> EmployeeContact:
        data = self._request("GET", f"/api/employees/{employee_id}")
        return self._parse(EmployeeContact, data, "employee")
