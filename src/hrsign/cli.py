"""Employee Forms CLI.

Usage:
    hrsign forms
    hrsign forms --json
    hrsign send <template> [--signer hr] [--email someone@example.com]
    hrsign sign <template> [--signer-email e@example.com] [--watch]
    hrsign remind <template> --signer-email e@example.com
    hrsign refresh <submission_id>
    hrsign watch
    hrsign validate

Scope defaults to ONBOARDING_ID / EMPLOYEE_ID from .env; override with
--onboarding / --employee.
"""

from __future__ import annotations

import logging
import time

import typer
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.table import Table

from hrsign.config import get_settings
from hrsign.models import DisplayStatus, Notification

app = typer.Typer(name="hrsign", help="Onboarding e-signature forms: send, sign, and track submissions")
console = Console()

STATUS_STYLE = {
    "completed": "green",
    "opened": "magenta",
    "sent": "blue",
    "pending": "yellow",
    "not_sent": "dim",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    onboarding: int = typer.Option(None, "--onboarding", "-o", help="Onboarding invitation id"),
    employee: int = typer.Option(None, "--employee", "-e", help="Employee id"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = {"onboarding": onboarding, "employee": employee}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _print_notification(note: Notification) -> None:
    color = "red" if note.is_error else "green"
    console.print(f"[{color}]{note.title}:[/{color}] {note.body}")


def _open_session(ctx: typer.Context):
    """Build a session for the configured scope and load it."""
    from hrsign.integrations.forms_api import FormsApiError, SubmissionScope
    from hrsign.session import FormsSession

    settings = get_settings()
    overrides = ctx.obj or {}
    onboarding = overrides.get("onboarding") or settings.onboarding_id
    employee = overrides.get("employee") or settings.employee_id
    try:
        scope = SubmissionScope(onboarding_id=onboarding, employee_id=employee)
    except ValueError:
        console.print("[red]No onboarding or employee id. Use --onboarding/--employee or set ONBOARDING_ID.[/red]")
        raise typer.Exit(1)

    session = FormsSession.from_settings(settings, scope, notify=_print_notification)
    try:
        session.load()
    except FormsApiError as e:
        session.close()
        session.client.close()
        console.print(f"[red]Could not load forms: {e.message}[/red]")
        raise typer.Exit(1)
    return session


def _close(session) -> None:
    session.close()
    session.client.close()


def _get_template(session, key: str):
    tmpl = session.find_template(key)
    if not tmpl:
        console.print(f"[red]Template {key} is not a required form.[/red]")
        raise typer.Exit(1)
    return tmpl


def _status_text(status: DisplayStatus) -> str:
    color = STATUS_STYLE.get(status.value, "white")
    return f"[{color}]{status.value.replace('_', ' ').upper()}[/{color}]"


def _forms_table(session) -> Table:
    table = Table(title=f"Onboarding Forms — {session.employee_label}")
    table.add_column("Template", style="dim")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Signer")
    table.add_column("Email")
    table.add_column("Signer Status")

    for tmpl in session.templates:
        status = session.template_status(tmpl)
        for i, view in enumerate(session.signer_views(tmpl)):
            signer = view.template_signer
            table.add_row(
                tmpl.template_id if i == 0 else "",
                tmpl.name if i == 0 else "",
                _status_text(status) if i == 0 else "",
                f"{signer.name} ({signer.role})" if signer.role else signer.name,
                view.email or "[dim]—[/dim]",
                _status_text(view.status),
            )

    step = session.step_data()
    table.caption = f"{step.completed_forms} / {step.total_required_forms} completed"
    return table


# ---------------------------------------------------------------------------
# hrsign forms
# ---------------------------------------------------------------------------

@app.command()
def forms(ctx: typer.Context, as_json: bool = typer.Option(False, "--json", help="Print the forms step payload")):
    """Show required forms, their signers and statuses."""
    session = _open_session(ctx)
    try:
        if as_json:
            console.print_json(data=session.step_data().to_api())
        else:
            console.print(_forms_table(session))
    finally:
        _close(session)


# ---------------------------------------------------------------------------
# hrsign send
# ---------------------------------------------------------------------------

@app.command()
def send(
    ctx: typer.Context,
    template: str = typer.Argument(..., help="Template id (DocuSeal or internal)"),
    signer_role: str = typer.Option(None, "--signer", "-s", help="Signer role (default: first signer)"),
    email: str = typer.Option(None, "--email", help="Signer email (skips lookup and prompt)"),
):
    """Send a form to a signer."""
    from hrsign.engine.matching import template_signers

    session = _open_session(ctx)
    try:
        tmpl = _get_template(session, template)
        signers = template_signers(tmpl)
        signer = next((s for s in signers if s.role == signer_role), None) if signer_role else signers[0]
        if signer is None:
            console.print(f"[red]No signer with role {signer_role} on {tmpl.name}.[/red]")
            raise typer.Exit(1)

        def prompt(s):
            value = typer.prompt(f"Email for {s.name or s.role}", default="", show_default=False)
            return value or None

        if email is not None:
            row = session.send_to_signer(tmpl.template_id, signer, email)
        else:
            row = session.request_send(tmpl, signer, prompt=prompt)
        if row is None:
            raise typer.Exit(1)
        console.print(f"  Submission {row.id}: {_status_text(session.template_status(tmpl))}")
    finally:
        _close(session)


# ---------------------------------------------------------------------------
# hrsign sign
# ---------------------------------------------------------------------------

@app.command()
def sign(
    ctx: typer.Context,
    template: str = typer.Argument(..., help="Template id"),
    signer_email: str = typer.Option(None, "--signer-email", help="Who is signing"),
    watch: bool = typer.Option(False, "--watch/--no-watch", help="Follow status until signed"),
):
    """Open the signing page for a sent form (in-person signing)."""
    session = _open_session(ctx)
    try:
        tmpl = _get_template(session, template)
        submission = session.latest(tmpl)
        if submission is None:
            console.print(f"[red]{tmpl.name} has not been sent yet. Run 'hrsign send {template}' first.[/red]")
            raise typer.Exit(1)

        link = session.sign_now(submission, signer_email)
        if link is None:
            raise typer.Exit(1)
        console.print(f"  {link.signing_url}")
        if not watch:
            return

        local_id = link.submission_id or str(submission.id)
        with console.status(f"Waiting for {tmpl.name} to be signed..."):
            while session.watchers.is_watching(local_id):
                if session.template_status(tmpl) == DisplayStatus.COMPLETED:
                    break
                session.watchers.wait(local_id, timeout=1.0)
        console.print(f"  {tmpl.name}: {_status_text(session.template_status(tmpl))}")
    except KeyboardInterrupt:
        console.print("[dim]Stopped watching.[/dim]")
    finally:
        _close(session)


# ---------------------------------------------------------------------------
# hrsign remind
# ---------------------------------------------------------------------------

@app.command()
def remind(
    ctx: typer.Context,
    template: str = typer.Argument(..., help="Template id"),
    signer_email: str = typer.Option(..., "--signer-email", help="Signer to remind"),
):
    """Send a reminder email to a signer."""
    session = _open_session(ctx)
    try:
        tmpl = _get_template(session, template)
        submission = session.latest(tmpl)
        if submission is None:
            console.print(f"[red]{tmpl.name} has not been sent yet.[/red]")
            raise typer.Exit(1)
        if not session.remind(submission, signer_email):
            raise typer.Exit(1)
    finally:
        _close(session)


# ---------------------------------------------------------------------------
# hrsign refresh
# ---------------------------------------------------------------------------

@app.command()
def refresh(ctx: typer.Context, submission_id: int = typer.Argument(..., help="Local submission id")):
    """Ask the backend to recompute one submission's status from DocuSeal."""
    session = _open_session(ctx)
    try:
        session.confirm_status(submission_id)
        row = session.cache.get(submission_id)
        if row is None:
            console.print(f"[red]Submission {submission_id} not found.[/red]")
            raise typer.Exit(1)
        from hrsign.engine.status import get_display_status
        console.print(f"  Submission {row.id} ({row.template_name or row.template_id}): "
                      f"{_status_text(get_display_status(row))}")
    finally:
        _close(session)


# ---------------------------------------------------------------------------
# hrsign watch
# ---------------------------------------------------------------------------

@app.command("watch")
def watch_forms(
    ctx: typer.Context,
    interval: float = typer.Option(None, "--interval", "-i", help="Refresh interval in seconds"),
):
    """Live view of the forms, refreshed until all are completed."""
    session = _open_session(ctx)
    settings = session.settings
    session.start_auto_refresh(interval or settings.submissions_refresh_interval)
    try:
        with Live(_forms_table(session), console=console, refresh_per_second=1) as live:
            while not session.step_data().all_forms_completed:
                time.sleep(1.0)
                live.update(_forms_table(session))
        console.print("[green]All required forms are completed.[/green]")
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    finally:
        _close(session)


# ---------------------------------------------------------------------------
# hrsign validate
# ---------------------------------------------------------------------------

@app.command()
def validate(ctx: typer.Context):
    """Check whether the forms step is complete."""
    session = _open_session(ctx)
    try:
        report = session.validate()
    finally:
        _close(session)

    console.print(f"\nForms Validation: {report.employee_label}")
    for result in report.results:
        icon = "[green]✓[/green]" if result.passed else "[red]✗[/red]"
        console.print(f"  {icon} \\[{result.severity}] {result.name}")
        if result.details and not result.passed:
            console.print(f"      {result.details}")

    if report.all_passed:
        console.print("\n[green]All checks passed.[/green]")
    else:
        console.print(f"\n[red]FAILED: {report.critical_failures} critical, {report.warnings} warnings[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
