"""Console output formatting utilities for hookci."""

from __future__ import annotations

import sys
import threading
from typing import Optional


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug
        # parallel groups print from worker threads
        self._lock = threading.Lock()

    def _emit(self, *lines: str, err: bool = False) -> None:
        stream = sys.stderr if err else sys.stdout
        with self._lock:
            for line in lines:
                print(line, file=stream)

    def print_header(self, title: str) -> None:
        """Print a section header."""
        self._emit(f"\n{title}", "-" * len(title))

    def print_event_received(self, event_type: str, build_id: str, ref: str) -> None:
        """Print event start information."""
        self._emit(
            "\nEVENT RECEIVED",
            f"Type: {event_type}",
            f"Build: {build_id or '-'}",
            f"Ref: {ref or '-'}",
            "",
        )

    def print_route(self, rule: str, pipelines: list[str]) -> None:
        self._emit(f"ROUTE: {rule} -> {', '.join(pipelines) if pipelines else '(none)'}")

    def print_noop(self, reason: str) -> None:
        """Print a no-op route message."""
        self._emit(f"NO-OP: {reason}")

    def print_pipeline_start(self, name: str, job_count: int) -> None:
        self._emit(f"\nPIPELINE STARTED: {name} ({job_count} job(s))")

    def print_pipeline_done(self, name: str, state: str) -> None:
        self._emit(f"PIPELINE {state.upper()}: {name}")

    def print_job_start(self, name: str, image: str) -> None:
        """Print job start message."""
        self._emit(f"JOB STARTED: {name} [{image}]")

    def print_success(self, name: str) -> None:
        """Print success message."""
        self._emit(f"JOB OK: {name}")

    def print_failure(
        self,
        name: str,
        reason: str,
        exit_code: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        """
        Print failure message.

        Args:
            name: Job name
            reason: Failure reason/error message
            exit_code: Optional exit code
            hint: Optional hint for user
        """
        lines = [f"JOB FAILED: {name}"]
        if exit_code is not None:
            lines.append(f"Exit code: {exit_code}")
        if hint:
            lines.append(f"Hint: {hint}")
        if self.debug:
            lines.append(f"Error details: {reason}")
        else:
            # Show first line of error for non-debug mode
            error_line = reason.split("\n")[0] if reason else "Unknown error"
            lines.append(f"Error: {error_line}")
        self._emit(*lines)

    def print_job_skipped(self, name: str, reason: str) -> None:
        """Print job skipped message."""
        self._emit(f"JOB SKIPPED: {name} ({reason})")

    def print_notification(self, identity: str, conclusion: str, summary: str) -> None:
        self._emit(f"CHECK {identity}: {conclusion or 'pending'} {summary}".rstrip())

    def print_verdict(self, results: dict[str, str], succeeded: bool) -> None:
        """Print final results summary."""
        lines = ["", "=" * 40, "VERDICT", "=" * 40]
        for pipeline, status in results.items():
            lines.append(f"  {pipeline}: {status.upper()}")
        lines.append(f"Overall: {'SUCCESS' if succeeded else 'FAILED'}")
        self._emit(*lines)

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        lines = [f"\nERROR: {title}", message]
        if details:
            lines.extend(f"  {detail}" for detail in details)
        if suggestion:
            lines.append(f"\n{suggestion}")
        self._emit(*lines, err=True)

    def print_exception(self, exc: BaseException) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            with self._lock:
                traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            self._emit(f"Error: {exc}", err=True)

    def print_agent_started(
        self,
        agent_id: str,
        api: str,
        poll_interval: int,
    ) -> None:
        """Print agent start information."""
        self._emit(
            "\nAGENT STARTED",
            f"Agent ID: {agent_id}",
            f"API: {api}",
            f"Polling every: {poll_interval}s",
            "",
        )

    def print_lease_acquired(self, event_type: str, event_id: str) -> None:
        """Print lease acquisition message."""
        self._emit("\nLEASE ACQUIRED", f"Event: {event_type}", f"Event ID: {event_id}")

    def print_execution_complete(
        self,
        status: str,
        duration: Optional[float] = None,
    ) -> None:
        """Print execution completion message."""
        lines = ["\nEXECUTION COMPLETE", f"Status: {status}"]
        if duration is not None:
            lines.append(f"Duration: {duration:.1f}s")
        self._emit(*lines)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        self._emit(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            self._emit(f"[DEBUG] {message}", err=True)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
