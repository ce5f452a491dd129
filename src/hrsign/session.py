"""Employee forms session: send, sign and remind, and keep submissions current.

A FormsSession is the lifetime of one forms view: it owns the submission
cache, the status watchers and the periodic refresh, and drops all of them
on close. User-facing outcomes are reported as Notification objects through
the ``notify`` callback; nothing raises past an action handler.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from hrsign.config import Settings, get_settings
from hrsign.engine.cache import SubmissionCache
from hrsign.engine.matching import MatchedSigner, pick_latest_submission, reconcile_signers
from hrsign.engine.status import (
    build_step_data,
    can_sign,
    completed_templates,
    get_display_status,
    signer_display_status,
)
from hrsign.engine.validation import FormsValidationReport, validate_forms
from hrsign.engine.watcher import SubmissionWatchers
from hrsign.integrations import notifications
from hrsign.integrations.forms_api import FormsApiClient, FormsApiError, SubmissionScope
from hrsign.models import (
    DisplayStatus,
    EmployeeContact,
    FormsStepData,
    FormSubmission,
    Notification,
    RequiredTemplate,
    SigningLink,
    SubmissionSigner,
    SubmissionStatus,
    TemplateSigner,
)

logger = logging.getLogger("hrsign.session")

EMPLOYEE_ROLE = "employee"

NotifyFn = Callable[[Notification], None]
PromptFn = Callable[[TemplateSigner], Optional[str]]


def is_valid_email(value: str | None) -> bool:
    return bool(value) and "@" in value


@dataclass
class SignerView:
    """One signer row as the forms view shows it."""

    template_signer: TemplateSigner
    submission_signer: SubmissionSigner | None
    matched_by: str | None
    status: DisplayStatus
    email: str

    @property
    def can_sign(self) -> bool:
        return can_sign(self.status)


class FormsSession:
    def __init__(self, client: FormsApiClient, scope: SubmissionScope,
                 employee: EmployeeContact | None = None,
                 settings: Settings | None = None,
                 notify: NotifyFn | None = None,
                 open_url: Callable[[str], object] | None = None,
                 push: Callable[[Notification], bool] | None = None):
        self.client = client
        self.scope = scope
        self.employee = employee
        self.settings = settings or get_settings()
        self._notify = notify or (lambda n: None)
        self._open_url = open_url or webbrowser.open_new_tab
        if push is None and self.settings.has_push():
            push = lambda n: notifications.send_push(n, self.settings)  # noqa: E731
        self._push = push

        self.templates: list[RequiredTemplate] = []
        self.cache = SubmissionCache()
        self.watchers = SubmissionWatchers(
            self.confirm_status,
            interval=self.settings.status_poll_interval,
            max_ticks=self.settings.status_poll_max_ticks,
        )

        self._refresh_stop = threading.Event()
        self._refresh_thread: threading.Thread | None = None
        self._state_lock = threading.Lock()
        self._completed: set[str] | None = None
        self._all_done_announced = False

    @classmethod
    def from_settings(cls, settings: Settings | None = None,
                      scope: SubmissionScope | None = None, **kwargs) -> FormsSession:
        settings = settings or get_settings()
        scope = scope or SubmissionScope.from_settings(settings)
        client = FormsApiClient.from_settings(settings)
        employee = None
        if scope.employee_id is not None:
            try:
                employee = client.get_employee(scope.employee_id)
            except FormsApiError as e:
                logger.warning("could not load employee %s: %s", scope.employee_id, e.message)
        return cls(client, scope, employee=employee, settings=settings, **kwargs)

    # -- lifecycle -----------------------------------------------------------

    def __enter__(self) -> FormsSession:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self.cache.closed

    def close(self) -> None:
        """Tear down. Ticks and refreshes still in flight become no-ops."""
        with self._state_lock:
            self.cache.close()
        self.stop_auto_refresh()
        self.watchers.stop_all()

    def load(self) -> None:
        """Fetch the template catalog and the current submissions."""
        self.templates = self.client.list_required_forms()
        self.refresh()

    def refresh(self) -> bool:
        """Refetch all submissions. Returns False if a newer write won or the session is closed."""
        if self.closed:
            return False
        ticket = self.cache.issue_ticket()
        rows = self.client.list_submissions(self.scope)
        accepted = self.cache.replace(rows, ticket)
        if accepted:
            self._check_completions()
        return accepted

    def confirm_status(self, local_id: int | str) -> None:
        """Best effort: have the backend recompute one submission, then refetch."""
        if self.closed:
            return
        try:
            self.client.update_status(local_id)
            self.refresh()
        except FormsApiError as e:
            logger.debug("status confirmation for %s failed: %s", local_id, e.message)

    def start_auto_refresh(self, interval: float | None = None) -> None:
        if self._refresh_thread and self._refresh_thread.is_alive():
            return
        interval = interval or self.settings.submissions_refresh_interval
        self._refresh_stop.clear()
        self._refresh_thread = threading.Thread(
            target=self._auto_refresh, args=(interval,), name="hrsign-refresh", daemon=True,
        )
        self._refresh_thread.start()

    def stop_auto_refresh(self) -> None:
        self._refresh_stop.set()
        thread, self._refresh_thread = self._refresh_thread, None
        if thread and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def _auto_refresh(self, interval: float) -> None:
        while not self._refresh_stop.wait(interval):
            try:
                self.refresh()
            except FormsApiError as e:
                logger.warning("periodic refresh failed: %s", e.message)

    # -- views ---------------------------------------------------------------

    @property
    def employee_label(self) -> str:
        return self.employee.display_name if self.employee else self.scope.label

    def employee_email(self) -> str:
        return self.employee.preferred_email if self.employee else ""

    def submissions(self) -> list[FormSubmission]:
        return list(self.cache.rows())

    def find_template(self, key: str) -> RequiredTemplate | None:
        return next((t for t in self.templates if key in (t.template_id, str(t.id))), None)

    def latest(self, template: RequiredTemplate) -> FormSubmission | None:
        return pick_latest_submission(template, self.cache.rows())

    def template_status(self, template: RequiredTemplate) -> DisplayStatus:
        return get_display_status(self.latest(template))

    def signer_views(self, template: RequiredTemplate) -> list[SignerView]:
        submission = self.latest(template)
        base = get_display_status(submission)
        views = []
        for match in reconcile_signers(template, submission):
            signer = match.template_signer
            actual = match.submission_signer if isinstance(match, MatchedSigner) else None
            email = actual.email if actual and actual.email else ""
            if not email and signer.role == EMPLOYEE_ROLE:
                email = self.employee_email()
            views.append(SignerView(
                template_signer=signer,
                submission_signer=actual,
                matched_by=match.matched_by if isinstance(match, MatchedSigner) else None,
                status=signer_display_status(actual, base),
                email=email,
            ))
        return views

    def step_data(self) -> FormsStepData:
        return build_step_data(self.templates, self.submissions())

    def validate(self) -> FormsValidationReport:
        return validate_forms(self.templates, self.submissions(), self.employee_label)

    # -- actions -------------------------------------------------------------

    def resolve_signer_email(self, signer: TemplateSigner,
                             submission_signer: SubmissionSigner | None = None) -> str | None:
        """Known email for a signer: provider record first, then the employee's own."""
        if submission_signer and submission_signer.email:
            return submission_signer.email
        if signer.role == EMPLOYEE_ROLE:
            return self.employee_email() or None
        return None

    def send_form(self, template_id: str) -> FormSubmission | None:
        email = self.employee_email()
        if not email:
            self._error("Email Required", "Please provide an employee email address before sending forms.")
            return None
        return self._send(template_id, email)

    def send_to_signer(self, template_id: str, signer: TemplateSigner,
                       email: str | None) -> FormSubmission | None:
        email = (email or "").strip()
        if not email:
            self._error("Email Required", f"Please provide an email address for {signer.name or signer.role}.")
            return None
        if not is_valid_email(email):
            self._error("Invalid Email",
                        f'The provided value "{email}" is not a valid email address. Please enter a valid email.')
            return None
        return self._send(template_id, email)

    def submit_prompted_email(self, template_id: str, signer: TemplateSigner,
                              value: str | None) -> FormSubmission | None:
        if not is_valid_email(value):
            self._error("Invalid Email", "Please enter a valid email address.")
            return None
        return self.send_to_signer(template_id, signer, value.strip())

    def request_send(self, template: RequiredTemplate, signer: TemplateSigner,
                     prompt: PromptFn | None = None) -> FormSubmission | None:
        """The "Send" button: use a known email or ask for one."""
        view = next((v for v in self.signer_views(template) if v.template_signer.id == signer.id), None)
        email = self.resolve_signer_email(signer, view.submission_signer if view else None)
        if email:
            return self.send_to_signer(template.template_id, signer, email)
        if signer.role != EMPLOYEE_ROLE:
            if prompt is None:
                self._error("Email Required", f"Please provide an email address for {signer.name or signer.role}.")
                return None
            value = prompt(signer)
            if value is None:
                return None  # dialog dismissed
            return self.submit_prompted_email(template.template_id, signer, value)
        self._error("Email Required", "Please provide an employee email address before sending forms.")
        return None

    def _send(self, template_id: str, email: str) -> FormSubmission | None:
        try:
            submission = self.client.send_form(self.scope, template_id, email)
        except FormsApiError as e:
            self._error("Failed to Send Form", e.message or "Unable to send the form. Please try again.")
            return None
        row = self.cache.apply_sent(submission, email)
        logger.info("sent template %s to %s (submission %s)", template_id, email, row.id)
        self.confirm_status(row.id)
        self._info("Form Sent", "The form has been sent successfully to the employee.")
        return row

    def sign_now(self, submission: FormSubmission, signer_email: str | None = None) -> SigningLink | None:
        """Open a one-time signing link and watch the submission until signed."""
        email = signer_email or submission.signer_email or self.employee_email()
        if not email:
            self._error("Email Required", "No signer email is known for this form. Send it to a signer first.")
            return None
        try:
            link = self.client.get_signing_url(submission.id, email)
        except FormsApiError as e:
            self._error("Failed to Open Document",
                        e.message or "Unable to open the signing page. Please try again.")
            return None
        if not link.signing_url:
            self._error("Failed to Open Document", "The server did not return a signing link.")
            return None

        self._open_url(link.signing_url)
        self._info("Opening Signing Page", "The document has been opened in a new tab for signing.")

        local_id = link.submission_id or str(submission.id)
        self.cache.update_submission(local_id, {
            "status": SubmissionStatus.OPENED,
            "opened_at": datetime.now(timezone.utc),
        }, link.signer_email or email)
        self.confirm_status(local_id)
        self.watchers.start(local_id)
        return link

    def remind(self, submission: FormSubmission, signer_email: str | None) -> bool:
        if not signer_email:
            self._error("Email Required", "A signer email is required to send a reminder.")
            return False
        try:
            self.client.send_reminder(submission.id, signer_email)
        except FormsApiError as e:
            self._error("Failed to Send Reminder", e.message or "Unable to send reminder. Please try again.")
            return False
        self._info("Reminder Sent", "A reminder email has been sent to the employee.")
        try:
            self.refresh()
        except FormsApiError as e:
            logger.debug("refresh after reminder failed: %s", e.message)
        return True

    # -- completion tracking -------------------------------------------------

    def _check_completions(self) -> None:
        if not self.templates:
            return
        done = {t.template_id for t in completed_templates(self.templates, self.submissions())}
        required = {t.template_id for t in self.templates if t.is_required}
        with self._state_lock:
            if self.closed:
                return
            previous, self._completed = self._completed, done
            all_done = bool(required) and required <= done
            if previous is None:
                # first snapshot is the baseline, nothing "just" completed
                self._all_done_announced = all_done
                return
            newly = [t for t in self.templates if t.template_id in done - previous]
            announce_all = all_done and not self._all_done_announced
            if announce_all:
                self._all_done_announced = True

        for tmpl in newly:
            note = notifications.form_completed(tmpl.name, self.employee_label, tmpl.template_id)
            self._notify(note)
            self._send_push(note)
        if announce_all:
            self._send_push(notifications.all_forms_completed(self.employee_label, len(required)))

    def _send_push(self, note: Notification) -> None:
        if self._push is None:
            return
        if not self._push(note):
            logger.warning("push notification %r was not delivered", note.title)

    # -- notifications -------------------------------------------------------

    def _info(self, title: str, body: str) -> None:
        self._notify(Notification(title=title, body=body))

    def _error(self, title: str, body: str) -> None:
        logger.info("%s: %s", title, body)
        self._notify(Notification(title=title, body=body, variant="destructive", priority="high"))
