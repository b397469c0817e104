# notifier.py
from __future__ import annotations

from typing import Optional, Protocol

from .errors import ExecutionError, NotifyError
from .model import Conclusion, JobDescriptor, JobResult, NotificationState
from .runner import JobRunner
from .ui.console import get_console


class StatusReporter(Protocol):
    """Sends one check update to the external reporting system."""

    def send(self, state: NotificationState, identity: str) -> None:
        ...


class ConsoleReporter:
    """Reports check transitions on the console only."""

    def send(self, state: NotificationState, identity: str) -> None:
        get_console().print_notification(identity, _conclusion_value(state.conclusion), state.summary)


class CheckRunReporter:
    """
    Reports through a check-run job: a small container that reads CHECK_*
    variables and talks to the checks API. Each send is its own job, named
    by the notification identity.
    """

    def __init__(self, runner: JobRunner, image: str, details_url: Optional[str] = None):
        self.runner = runner
        self.image = image
        self.details_url = details_url

    def job_for(self, state: NotificationState, identity: str) -> JobDescriptor:
        env = {
            "CHECK_CONCLUSION": _conclusion_value(state.conclusion),
            "CHECK_NAME": state.name,
            "CHECK_TITLE": state.title,
            "CHECK_PAYLOAD": state.payload,
            "CHECK_SUMMARY": state.summary,
            "CHECK_TEXT": state.text,
            "CHECK_EXTERNAL_ID": state.external_id,
        }
        details_url = state.details_url or self.details_url
        if details_url:
            env["CHECK_DETAILS_URL"] = details_url.replace("{build_id}", state.external_id)
        return JobDescriptor(name=identity, image=self.image, env=env)

    def send(self, state: NotificationState, identity: str) -> None:
        try:
            self.runner.run(self.job_for(state, identity))
        except ExecutionError as e:
            raise NotifyError(target=identity, cause=str(e)) from e


def _conclusion_value(conclusion: Conclusion) -> str:
    # the checks API has no "pending" conclusion; an empty one means in progress
    if conclusion == Conclusion.PENDING:
        return ""
    return conclusion.value


def _fenced(text: str) -> str:
    return "```" + text + "```"


class Notifier:
    """Wraps job runs with before/after status notifications."""

    def __init__(self, reporter: StatusReporter, runner: JobRunner):
        self.reporter = reporter
        self.runner = runner

    def announce(
        self,
        state: NotificationState,
        conclusion: Optional[Conclusion] = None,
        summary: Optional[str] = None,
        text: Optional[str] = None,
    ) -> str:
        """
        Send `state` to the reporter, returning the identity used.

        Every call takes a fresh identity from the state, so repeated sends for
        the same check are distinguishable. Raises NotifyError when the
        reporter cannot be reached.
        """
        if conclusion is not None:
            state.conclusion = conclusion
        if summary is not None:
            state.summary = summary
        if text is not None:
            state.text = text

        identity = state.next_identity()
        try:
            self.reporter.send(state, identity)
        except NotifyError:
            raise
        except Exception as e:
            raise NotifyError(target=identity, cause=str(e)) from e
        get_console().print_debug(f"sent {identity} ({state.conclusion.value})")
        return identity

    def _announce_quietly(self, state: NotificationState, **changes) -> None:
        try:
            self.announce(state, **changes)
        except NotifyError as e:
            get_console().print_error("Failed to send notification", str(e))

    def wrap(
        self,
        job: JobDescriptor,
        state: NotificationState,
        conclusion: Conclusion = Conclusion.SUCCESS,
    ) -> JobResult:
        """
        Announce pending, run the job, announce the outcome.

        On failure the failure report is sent once and the job's own
        ExecutionError is re-raised. A broken reporting channel is logged and
        never replaces the job's outcome.
        """
        console = get_console()
        self._announce_quietly(state, conclusion=Conclusion.PENDING)

        try:
            result = self.runner.run(job)
        except ExecutionError as e:
            logs = e.logs or self.runner.logs(job)
            try:
                self.announce(
                    state,
                    conclusion=Conclusion.FAILURE,
                    summary=f'Task "{job.name}" failed for {state.external_id}',
                    text=_fenced(logs) + f"\nFailed with error: {e}",
                )
            except NotifyError as notify_err:
                console.print_error(
                    "Failed to send notification",
                    str(notify_err),
                    details=[f"original error: {e}"],
                )
            raise

        self._announce_quietly(
            state,
            conclusion=conclusion,
            summary=f'Task "{job.name}" passed',
            text=_fenced(result.output) + "\nTest Complete",
        )
        return result
