"""Template/submission matching and signer reconciliation."""
from fixtures import T0, T1, T2, submission, template

from hrsign.engine.matching import (
    MatchedSigner,
    UnmatchedSigner,
    matches_template,
    pick_latest_submission,
    reconcile_signers,
    status_rank,
    template_signers,
)
from hrsign.models import SubmissionStatus


def test_status_rank_order():
    assert status_rank(SubmissionStatus.COMPLETED) == 3
    assert status_rank(SubmissionStatus.OPENED) == 2
    assert status_rank(SubmissionStatus.SENT) == 1
    assert status_rank(SubmissionStatus.PENDING) == 0
    assert status_rank(SubmissionStatus.EXPIRED) == 0
    assert status_rank(None) == 0


def test_matches_internal_or_external_id():
    """Rows tagged with either the numeric id or the DocuSeal id belong to the template."""
    tmpl = template(id=5, template_id="ds-tpl-9")
    assert matches_template(tmpl, submission(1, template_id="5"))
    assert matches_template(tmpl, submission(2, template_id="ds-tpl-9"))
    assert not matches_template(tmpl, submission(3, template_id="6"))


def test_numeric_template_id_is_coerced():
    tmpl = template(id=5, template_id="ds-tpl-9")
    row = submission(1, template_id=5)
    assert row.template_id == "5"
    assert matches_template(tmpl, row)


def test_rank_beats_recency():
    """A completed submission wins over a newer sent one."""
    tmpl = template()
    rows = [submission(1, status="sent", created_at=T1),
            submission(2, status="completed", created_at=T0)]
    assert pick_latest_submission(tmpl, rows).id == 2


def test_newest_wins_within_rank():
    tmpl = template()
    rows = [submission(1, status="sent", created_at=T0),
            submission(2, status="sent", created_at=T2),
            submission(3, status="sent", created_at=T1)]
    assert pick_latest_submission(tmpl, rows).id == 2


def test_ties_keep_source_order():
    tmpl = template()
    rows = [submission(7, status="opened", created_at=T1),
            submission(3, status="opened", created_at=T1)]
    assert pick_latest_submission(tmpl, rows).id == 7


def test_missing_created_at_sorts_last():
    tmpl = template()
    rows = [submission(1, status="sent", created_at=None),
            submission(2, status="sent", created_at=T0)]
    assert pick_latest_submission(tmpl, rows).id == 2


def test_no_match_returns_none():
    assert pick_latest_submission(template(), [submission(1, template_id="other")]) is None
    assert pick_latest_submission(template(), []) is None


def test_default_signer_when_template_has_none():
    signers = template_signers(template())
    assert len(signers) == 1
    assert signers[0].role == "employee"
    assert signers[0].id == "default"


def test_reconcile_by_role_id_and_position():
    tmpl = template(signers=[
        {"id": "s1", "name": "Employee", "role": "employee"},
        {"id": "s2", "name": "Manager", "role": "manager"},
        {"id": "s3", "name": "Witness", "role": "witness"},
    ])
    row = submission(1, signers=[
        {"id": "x", "email": "boss@example.com", "role": "manager", "status": "sent"},
        {"id": "s1", "email": "emp@example.com", "role": "", "status": "opened"},
        {"id": "y", "email": "w@example.com", "role": "", "status": "sent"},
    ])
    employee, manager, witness = reconcile_signers(tmpl, row)

    assert isinstance(manager, MatchedSigner) and manager.matched_by == "role"
    assert manager.submission_signer.email == "boss@example.com"
    assert isinstance(employee, MatchedSigner) and employee.matched_by == "id"
    assert employee.submission_signer.email == "emp@example.com"
    assert isinstance(witness, MatchedSigner) and witness.matched_by == "position"
    assert witness.submission_signer.email == "w@example.com"


def test_reconcile_without_submission_is_unmatched():
    tmpl = template(signers=[{"id": "s1", "name": "HR", "role": "hr"}])
    (match,) = reconcile_signers(tmpl, None)
    assert isinstance(match, UnmatchedSigner)
    assert match.template_signer.role == "hr"


def test_reconcile_more_expected_than_reported():
    tmpl = template(signers=[
        {"id": "s1", "role": "employee"},
        {"id": "s2", "role": "hr"},
    ])
    row = submission(1, signers=[{"email": "e@example.com", "role": "employee", "status": "sent"}])
    first, second = reconcile_signers(tmpl, row)
    assert isinstance(first, MatchedSigner)
    assert isinstance(second, UnmatchedSigner)
