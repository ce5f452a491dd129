"""Shared test data and a fake HR backend served through httpx.MockTransport."""
import json
from datetime import datetime, timezone

import httpx

from hrsign.config import Settings
from hrsign.integrations.forms_api import FormsApiClient, SubmissionScope
from hrsign.models import EmployeeContact, FormSubmission, RequiredTemplate

BASE = "http://hr.test"

T0 = "2024-01-01T09:00:00Z"
T1 = "2024-01-02T09:00:00Z"
T2 = "2024-01-03T09:00:00Z"


def template(id=1, template_id="tpl-1", name="W-4", signers=None, is_required=True) -> RequiredTemplate:
    return RequiredTemplate.model_validate({
        "id": id,
        "templateId": template_id,
        "name": name,
        "isRequired": is_required,
        "signers": signers or [],
    })


def submission(id, template_id="tpl-1", status="sent", created_at=T0, **extra) -> FormSubmission:
    data = {"id": id, "templateId": template_id, "submissionId": f"ds-{id}",
            "status": status, "createdAt": created_at}
    data.update(extra)
    return FormSubmission.model_validate(data)


def make_settings(**overrides) -> Settings:
    values = dict(
        hr_api_base_url=BASE,
        status_poll_interval=0.01,
        status_poll_max_ticks=12,
        submissions_refresh_interval=0.05,
        pushover_user_key="",
        pushover_api_token="",
        ntfy_topic="",
    )
    values.update(overrides)
    return Settings(**values)


EMPLOYEE = EmployeeContact(id=22, first_name="Dana", last_name="Reyes", work_email="dana@clinic.example")


class FakeBackend:
    """In-memory stand-in for the HR backend's forms endpoints."""

    def __init__(self, templates=None, submissions=None, employee=None):
        self.templates = templates or []
        self.submissions = submissions or []
        self.employee = employee
        self.requests: list[httpx.Request] = []
        self.fail: dict[str, tuple[int, dict]] = {}
        self.next_id = 100

    def calls(self, method: str, fragment: str = "") -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and fragment in r.url.path]

    def client(self) -> FormsApiClient:
        return FormsApiClient(httpx.Client(base_url=BASE, transport=httpx.MockTransport(self.handler)))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method, path = request.method, request.url.path
        for key, (status, body) in self.fail.items():
            if key in f"{method} {path}":
                return httpx.Response(status, json=body)

        if path == "/api/onboarding/required-forms":
            return httpx.Response(200, json=self.templates)
        if path.endswith("/form-submissions"):
            return httpx.Response(200, json=self.submissions)
        if path.endswith("/send-form"):
            return httpx.Response(200, json=self._send(json.loads(request.content)))
        if path.endswith("/sign"):
            local_id = path.split("/")[-2]
            return httpx.Response(200, json={
                "signingUrl": f"https://sign.example.com/s/{local_id}",
                "submissionId": local_id,
                "signerEmail": request.url.params.get("signer"),
            })
        if path.endswith("/remind"):
            return httpx.Response(200, json={"success": True})
        if path.endswith("/update-status"):
            return httpx.Response(200, json={"ok": True})
        if path.startswith("/api/employees/") and self.employee is not None:
            return httpx.Response(200, json=self.employee)
        return httpx.Response(404, json={"error": "Not found"})

    def _send(self, body: dict) -> dict:
        now = datetime.now(timezone.utc).isoformat()
        self.next_id += 1
        row = {
            "id": self.next_id,
            "templateId": body["templateId"],
            "submissionId": f"ds-{self.next_id}",
            "status": "sent",
            "signerEmail": body["signerEmail"],
            "employeeId": body.get("employeeId"),
            "sentAt": now,
            "createdAt": now,
            "signers": [],
        }
        existing = next((i for i, r in enumerate(self.submissions)
                         if r["templateId"] == row["templateId"]), None)
        if existing is None:
            self.submissions.append(row)
        else:
            row["id"] = self.submissions[existing]["id"]
            self.submissions[existing] = row
        return row


EMPLOYEE_SCOPE = SubmissionScope(employee_id=22)
ONBOARDING_SCOPE = SubmissionScope(onboarding_id=7, employee_id=22)
