"""Optimistic cache patches and write ordering."""
from datetime import datetime, timezone

from fixtures import T0, T1, submission

from hrsign.engine.cache import SubmissionCache
from hrsign.models import SubmissionStatus

NOW = datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)


def test_update_patches_only_target_row():
    cache = SubmissionCache([submission(5, status="sent"), submission(6, status="sent")])
    assert cache.update_submission(5, {"status": "opened"})
    assert cache.get(5).status == SubmissionStatus.OPENED
    assert cache.get(6).status == SubmissionStatus.SENT


def test_update_matches_string_ids():
    cache = SubmissionCache([submission(5)])
    assert cache.update_submission("5", {"opened_at": NOW})
    assert cache.get(5).opened_at == NOW


def test_update_unknown_id_is_noop():
    cache = SubmissionCache([submission(5)])
    before = cache.rows()
    assert not cache.update_submission(99, {"status": "completed"})
    assert cache.rows() is before


def test_update_snapshots_are_copy_on_write():
    cache = SubmissionCache([submission(5, status="sent")])
    before = cache.rows()
    cache.update_submission(5, {"status": "opened"})
    assert before[0].status == SubmissionStatus.SENT
    assert cache.rows()[0].status == SubmissionStatus.OPENED


def test_signer_patch_only_touches_matching_email():
    cache = SubmissionCache([submission(5, signers=[
        {"email": "Emp@Example.com", "role": "employee", "status": "sent"},
        {"email": "hr@example.com", "role": "hr", "status": "sent"},
    ])])
    cache.update_submission(5, {"status": "opened", "opened_at": NOW}, "emp@example.com")

    emp, hr = cache.get(5).signers
    assert emp.status == SubmissionStatus.OPENED
    assert emp.opened_at == NOW
    assert hr.status == SubmissionStatus.SENT
    assert hr.opened_at is None


def test_signer_patch_keeps_fields_not_in_updates():
    cache = SubmissionCache([submission(5, signers=[
        {"email": "e@example.com", "status": "sent", "sentAt": T0},
    ])])
    cache.update_submission(5, {"status": "opened"}, "e@example.com")
    signer = cache.get(5).signers[0]
    assert signer.status == SubmissionStatus.OPENED
    assert signer.sent_at is not None


def test_apply_sent_replaces_same_id():
    cache = SubmissionCache([submission(5, status="pending"), submission(6, template_id="tpl-2")])
    row = cache.apply_sent(submission(5, status="pending"), "a@b.com", now=NOW)
    assert len(cache.rows()) == 2
    assert row.status == SubmissionStatus.SENT
    assert row.sent_at == NOW
    assert row.signer_email == "a@b.com"
    assert cache.rows()[0].id == 5


def test_apply_sent_replaces_first_row_of_same_template():
    cache = SubmissionCache([submission(6, template_id="tpl-2"),
                             submission(5, template_id="tpl-1", status="pending"),
                             submission(4, template_id="tpl-1", status="pending")])
    cache.apply_sent(submission(9, template_id="tpl-1"), "a@b.com", now=NOW)
    ids = [r.id for r in cache.rows()]
    assert ids == [6, 9, 4]
    assert cache.get(9).status == SubmissionStatus.SENT


def test_apply_sent_prepends_new_row():
    cache = SubmissionCache([submission(6, template_id="tpl-2")])
    cache.apply_sent(submission(9, template_id="tpl-1", created_at=None), None, now=NOW)
    first = cache.rows()[0]
    assert first.id == 9
    assert first.created_at == NOW
    assert first.opened_at is None and first.completed_at is None


def test_apply_sent_falls_back_to_recipient_email():
    cache = SubmissionCache()
    row = cache.apply_sent(submission(9, recipientEmail="r@example.com"), "", now=NOW)
    assert row.signer_email == "r@example.com"


def test_refresh_replaces_rows():
    cache = SubmissionCache([submission(1)])
    ticket = cache.issue_ticket()
    assert cache.replace([submission(2), submission(3)], ticket)
    assert [r.id for r in cache.rows()] == [2, 3]


def test_refresh_issued_before_patch_is_dropped():
    """A response to a request issued before an optimistic write cannot undo it."""
    cache = SubmissionCache([submission(5, status="sent")])
    ticket = cache.issue_ticket()
    cache.update_submission(5, {"status": "opened"})
    assert not cache.replace([submission(5, status="sent")], ticket)
    assert cache.get(5).status == SubmissionStatus.OPENED


def test_later_issued_refresh_wins_regardless_of_arrival():
    cache = SubmissionCache()
    older = cache.issue_ticket()
    newer = cache.issue_ticket()
    assert cache.replace([submission(1, status="completed", created_at=T1)], newer)
    assert not cache.replace([submission(1, status="sent")], older)
    assert cache.get(1).status == SubmissionStatus.COMPLETED


def test_close_drops_rows_and_refuses_later_writes():
    cache = SubmissionCache([submission(1)])
    ticket = cache.issue_ticket()
    cache.close()
    assert cache.closed
    assert cache.rows() == ()
    assert not cache.replace([submission(1)], ticket)
    assert not cache.replace([submission(1)], cache.issue_ticket())
    assert not cache.update_submission(1, {"status": "opened"})
    row = cache.apply_sent(submission(2), "a@b.com", now=NOW)
    assert row.status == SubmissionStatus.SENT
    assert cache.rows() == ()
