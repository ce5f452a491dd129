"""Display status derivation and forms step progress."""

from __future__ import annotations

from typing import Iterable

from hrsign.engine.matching import pick_latest_submission
from hrsign.models import (
    DisplayStatus,
    FormsStepData,
    FormSubmission,
    RequiredTemplate,
    SubmissionSigner,
    SubmissionStatus,
    SubmissionSummary,
)

_PASS_THROUGH = {
    SubmissionStatus.COMPLETED: DisplayStatus.COMPLETED,
    SubmissionStatus.OPENED: DisplayStatus.OPENED,
    SubmissionStatus.SENT: DisplayStatus.SENT,
}


def get_display_status(row: FormSubmission | SubmissionSigner | None) -> DisplayStatus:
    """Map a submission (or signer) to what the user should see.

    A ``pending`` row only counts as pending once a send was attempted
    (``sent_at`` set); otherwise it is a placeholder and shows as not sent.
    """
    if row is None:
        return DisplayStatus.NOT_SENT
    if row.status in _PASS_THROUGH:
        return _PASS_THROUGH[row.status]
    if row.status == SubmissionStatus.PENDING:
        return DisplayStatus.PENDING if row.sent_at else DisplayStatus.NOT_SENT
    return DisplayStatus.NOT_SENT


def signer_display_status(signer: SubmissionSigner | None, base: DisplayStatus) -> DisplayStatus:
    if signer is None:
        return base
    return get_display_status(signer)


def can_sign(status: DisplayStatus) -> bool:
    return status in (DisplayStatus.SENT, DisplayStatus.OPENED)


def count_completed(submissions: Iterable[FormSubmission]) -> int:
    return sum(1 for s in submissions if s.status == SubmissionStatus.COMPLETED)


def completed_templates(templates: list[RequiredTemplate],
                        submissions: list[FormSubmission]) -> list[RequiredTemplate]:
    return [t for t in templates
            if get_display_status(pick_latest_submission(t, submissions)) == DisplayStatus.COMPLETED]


def build_step_data(templates: list[RequiredTemplate],
                    submissions: list[FormSubmission]) -> FormsStepData:
    """Summary the forms step hands back to the onboarding wizard."""
    completed = count_completed(submissions)
    total = len(templates)
    return FormsStepData(
        submissions=[
            SubmissionSummary(template_id=s.template_id, submission_id=s.submission_id, status=s.status)
            for s in submissions
        ],
        completed_forms=completed,
        total_required_forms=total,
        all_forms_completed=total > 0 and completed == total,
        required_templates=[t.template_id for t in templates],
    )
