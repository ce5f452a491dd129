"""Template/submission matching and signer reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Union

from hrsign.models import (
    DEFAULT_SIGNER,
    FormSubmission,
    RequiredTemplate,
    SubmissionSigner,
    SubmissionStatus,
    TemplateSigner,
)

STATUS_RANK = {
    SubmissionStatus.COMPLETED: 3,
    SubmissionStatus.OPENED: 2,
    SubmissionStatus.SENT: 1,
}


def status_rank(status: SubmissionStatus | None) -> int:
    """completed=3 > opened=2 > sent=1 > anything else=0."""
    return STATUS_RANK.get(status, 0)


def matches_template(template: RequiredTemplate, row: FormSubmission) -> bool:
    """Rows are tagged with either the internal template id or the DocuSeal id."""
    row_tid = str(row.template_id)
    return row_tid == str(template.id) or row_tid == str(template.template_id)


def _created_ts(row: FormSubmission) -> float:
    return row.created_at.timestamp() if row.created_at else 0.0


def pick_latest_submission(template: RequiredTemplate,
                           submissions: Iterable[FormSubmission]) -> FormSubmission | None:
    """Return the authoritative submission for a template, or None."""
    rows = [r for r in submissions if matches_template(template, r)]
    if not rows:
        return None
    # sorted() is stable: equal (rank, created) keeps source order
    rows = sorted(rows, key=lambda r: (status_rank(r.status), _created_ts(r)), reverse=True)
    return rows[0]


def template_signers(template: RequiredTemplate) -> list[TemplateSigner]:
    return list(template.signers) or [DEFAULT_SIGNER]


# ---------------------------------------------------------------------------
# Signer reconciliation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MatchedSigner:
    template_signer: TemplateSigner
    submission_signer: SubmissionSigner
    matched_by: Literal["role", "id", "position"]


@dataclass(frozen=True)
class UnmatchedSigner:
    template_signer: TemplateSigner


SignerMatch = Union[MatchedSigner, UnmatchedSigner]


def reconcile_signers(template: RequiredTemplate,
                      submission: FormSubmission | None) -> list[SignerMatch]:
    """Pair each expected signer with the submission signer that represents it.

    Role wins over id; when neither matches, the signer at the same index is
    used and the match is labelled ``position``.
    """
    actual = submission.signers if submission else []
    results: list[SignerMatch] = []
    for index, expected in enumerate(template_signers(template)):
        found = next((s for s in actual if s.role and s.role == expected.role), None)
        if found is not None:
            results.append(MatchedSigner(expected, found, "role"))
            continue
        found = next((s for s in actual if s.id is not None and s.id == expected.id), None)
        if found is not None:
            results.append(MatchedSigner(expected, found, "id"))
            continue
        if index < len(actual):
            results.append(MatchedSigner(expected, actual[index], "position"))
        else:
            results.append(UnmatchedSigner(expected))
    return results
