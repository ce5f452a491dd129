"""In-memory submission cache with optimistic patches.

The cache holds an immutable snapshot (tuple) that is swapped on every write.
Writes are ordered by tickets drawn from one monotonic counter: optimistic
patches draw theirs when applied, bulk refreshes when their request is
issued. A write whose ticket is older than the last applied one is dropped,
so a slow response can never overwrite fresher state.
"""

from __future__ import annotations

import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Any

from hrsign.models import FormSubmission, SubmissionSigner, SubmissionStatus

logger = logging.getLogger("hrsign.cache")

_SIGNER_FIELDS = ("status", "opened_at", "completed_at", "sent_at")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _patch_signer(signer: SubmissionSigner, updates: dict[str, Any]) -> SubmissionSigner:
    data = signer.model_dump()
    for name in _SIGNER_FIELDS:
        if updates.get(name):
            data[name] = updates[name]
    return SubmissionSigner.model_validate(data)


class SubmissionCache:
    def __init__(self, rows: list[FormSubmission] | None = None):
        self._lock = threading.Lock()
        self._tickets = itertools.count(1)
        self._applied = 0
        self._closed = False
        self._rows: tuple[FormSubmission, ...] = tuple(rows or ())

    # -- reads ---------------------------------------------------------------

    def rows(self) -> tuple[FormSubmission, ...]:
        return self._rows

    def get(self, local_id: int | str) -> FormSubmission | None:
        key = str(local_id)
        return next((r for r in self._rows if str(r.id) == key), None)

    @property
    def closed(self) -> bool:
        return self._closed

    # -- writes --------------------------------------------------------------

    def issue_ticket(self) -> int:
        """Reserve a ticket for a refresh that is about to be requested."""
        with self._lock:
            return next(self._tickets)

    def replace(self, rows: list[FormSubmission], ticket: int) -> bool:
        """Install a server snapshot fetched under ``ticket``."""
        with self._lock:
            if self._closed:
                return False
            if ticket <= self._applied:
                logger.debug("dropping stale refresh (ticket %d <= %d)", ticket, self._applied)
                return False
            self._applied = ticket
            self._rows = tuple(rows)
            return True

    def update_submission(self, local_id: int | str, updates: dict[str, Any],
                          signer_email: str | None = None) -> bool:
        """Merge ``updates`` into one row; optionally patch one signer only.

        Returns False (cache untouched) when no row has ``local_id``
        or the cache is closed.
        """
        key = str(local_id)
        with self._lock:
            if self._closed:
                return False
            idx = next((i for i, r in enumerate(self._rows) if str(r.id) == key), -1)
            if idx < 0:
                return False
            current = self._rows[idx]
            # validate so raw strings in updates become enums/datetimes
            patched = FormSubmission.model_validate({**current.model_dump(), **updates})
            if signer_email and current.signers:
                wanted = signer_email.lower()
                patched.signers = [
                    _patch_signer(sg, updates) if sg.email and sg.email.lower() == wanted else sg
                    for sg in current.signers
                ]
            rows = list(self._rows)
            rows[idx] = patched
            self._commit(rows)
            return True

    def apply_sent(self, submission: FormSubmission, email: str | None,
                   now: datetime | None = None) -> FormSubmission:
        """Record a successful send and return the row now in the cache.

        Replaces the row with the same id, else the first row for the same
        template (the backend upserts per template), else prepends.
        """
        now = now or _now()
        updates = {
            "id": submission.id,
            "template_id": submission.template_id,
            "submission_id": submission.submission_id,
            "status": SubmissionStatus.SENT,
            "signer_email": email or submission.recipient_email,
            "employee_id": submission.employee_id,
            "sent_at": now,
            "opened_at": None,
            "completed_at": None,
            "created_at": submission.created_at or now,
            "signers": list(submission.signers),
        }
        with self._lock:
            if self._closed:
                return submission.model_copy(update=updates)
            rows = list(self._rows)
            idx = next((i for i, r in enumerate(rows) if r.id == submission.id), -1)
            if idx < 0:
                idx = next((i for i, r in enumerate(rows) if r.template_id == submission.template_id), -1)
            if idx >= 0:
                row = rows[idx].model_copy(update=updates)
                rows[idx] = row
            else:
                row = submission.model_copy(update=updates)
                rows.insert(0, row)
            self._commit(rows)
            return row

    def close(self) -> None:
        """Drop all rows and refuse every later write."""
        with self._lock:
            self._closed = True
            self._rows = ()

    def _commit(self, rows: list[FormSubmission]) -> None:
        # caller holds the lock
        self._applied = next(self._tickets)
        self._rows = tuple(rows)
