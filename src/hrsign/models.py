"""Core data models for required templates, submissions, and signers."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for payloads exchanged with the HR backend (camelCase JSON)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class SubmissionStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    OPENED = "opened"
    COMPLETED = "completed"
    EXPIRED = "expired"      # reported by the signing provider
    DECLINED = "declined"    # reported by the signing provider


class DisplayStatus(str, Enum):
    NOT_SENT = "not_sent"
    PENDING = "pending"
    SENT = "sent"
    OPENED = "opened"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------
# Template catalog
# ---------------------------------------------------------------------------

class TemplateSigner(ApiModel):
    id: str
    name: str = ""
    role: str = ""
    required: bool = True


DEFAULT_SIGNER = TemplateSigner(id="default", name="Employee", role="employee", required=True)


class RequiredTemplate(ApiModel):
    id: int
    template_id: str  # DocuSeal template id
    name: str
    description: str | None = None
    is_required: bool = True
    signers: list[TemplateSigner] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

class SubmissionSigner(ApiModel):
    id: str | None = None
    email: str = ""
    name: str = ""
    role: str = ""
    status: SubmissionStatus = SubmissionStatus.PENDING
    sent_at: datetime | None = None
    opened_at: datetime | None = None
    completed_at: datetime | None = None


class FormSubmission(ApiModel):
    id: int  # local row id
    template_id: str
    template_name: str | None = None
    submission_id: str = ""  # DocuSeal submission id
    status: SubmissionStatus = SubmissionStatus.PENDING
    signer_email: str | None = None
    recipient_email: str | None = None
    employee_id: int | None = None
    sent_at: datetime | None = None
    opened_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    signers: list[SubmissionSigner] = Field(default_factory=list)


class SigningLink(ApiModel):
    signing_url: str | None = None
    submission_id: str | None = None
    signer_email: str | None = None


# ---------------------------------------------------------------------------
# Employee (only the contact fields this client reads)
# ---------------------------------------------------------------------------

class EmployeeContact(ApiModel):
    id: int | None = None
    first_name: str = ""
    last_name: str = ""
    work_email: str | None = None
    email: str | None = None

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or (f"Employee {self.id}" if self.id is not None else "Employee")

    @property
    def preferred_email(self) -> str:
        return (self.work_email or self.email or "").strip()


# ---------------------------------------------------------------------------
# Forms step payload
# ---------------------------------------------------------------------------

class SubmissionSummary(ApiModel):
    template_id: str
    submission_id: str
    status: SubmissionStatus


class FormsStepData(ApiModel):
    submissions: list[SubmissionSummary] = Field(default_factory=list)
    completed_forms: int = 0
    total_required_forms: int = 0
    all_forms_completed: bool = False
    required_templates: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Notification
# ---------------------------------------------------------------------------

class Notification(BaseModel):
    title: str
    body: str
    variant: str = "default"  # default, destructive
    priority: str = "normal"  # low, normal, high, urgent
    url: str = ""
    template_id: str = ""

    @property
    def is_error(self) -> bool:
        return self.variant == "destructive"
