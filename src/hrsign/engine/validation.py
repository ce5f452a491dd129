"""Onboarding forms completion checks.

The forms step is valid once every required template has a completed
submission. Checks:

    FORM-001  required template has been sent
    FORM-002  required template completed
    FORM-003  required signer completed (when the provider reports signers)
"""

from __future__ import annotations

from dataclasses import dataclass, field

from hrsign.engine.matching import MatchedSigner, pick_latest_submission, reconcile_signers
from hrsign.engine.status import get_display_status, signer_display_status
from hrsign.models import DisplayStatus, FormSubmission, RequiredTemplate


@dataclass
class ValidationResult:
    check_id: str
    name: str
    passed: bool
    severity: str  # critical, high, info
    details: str = ""
    template_id: str = ""


@dataclass
class FormsValidationReport:
    employee_label: str = ""
    all_passed: bool = True
    results: list[ValidationResult] = field(default_factory=list)
    critical_failures: int = 0
    warnings: int = 0

    def add(self, result: ValidationResult) -> None:
        self.results.append(result)
        if not result.passed:
            self.all_passed = False
            if result.severity == "critical":
                self.critical_failures += 1
            else:
                self.warnings += 1

    def failures(self) -> list[ValidationResult]:
        return [r for r in self.results if not r.passed]


def validate_forms(templates: list[RequiredTemplate], submissions: list[FormSubmission],
                   employee_label: str = "") -> FormsValidationReport:
    report = FormsValidationReport(employee_label=employee_label)

    for tmpl in templates:
        if not tmpl.is_required:
            continue
        submission = pick_latest_submission(tmpl, submissions)
        status = get_display_status(submission)

        sent = status != DisplayStatus.NOT_SENT
        report.add(ValidationResult(
            check_id="FORM-001",
            name="Form Sent",
            passed=sent,
            severity="critical",
            details="" if sent else f"{tmpl.name}: not sent",
            template_id=tmpl.template_id,
        ))
        if not sent:
            continue

        completed = status == DisplayStatus.COMPLETED
        report.add(ValidationResult(
            check_id="FORM-002",
            name="Form Completed",
            passed=completed,
            severity="critical",
            details="" if completed else f"{tmpl.name}: {status.value}",
            template_id=tmpl.template_id,
        ))

        # Signer detail is optional; only judge signers the provider reported
        for match in reconcile_signers(tmpl, submission):
            if not isinstance(match, MatchedSigner) or not match.template_signer.required:
                continue
            signer_status = signer_display_status(match.submission_signer, status)
            if signer_status != DisplayStatus.COMPLETED:
                who = match.submission_signer.email or match.template_signer.name or match.template_signer.role
                report.add(ValidationResult(
                    check_id="FORM-003",
                    name="Signer Completed",
                    passed=False,
                    severity="high",
                    details=f"{tmpl.name}: {who} is {signer_status.value}",
                    template_id=tmpl.template_id,
                ))

    if not any(r.check_id == "FORM-003" for r in report.results):
        report.add(ValidationResult(
            check_id="FORM-003", name="All Required Signers Completed", passed=True, severity="info",
        ))

    return report
