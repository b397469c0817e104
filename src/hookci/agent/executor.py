# agent/executor.py
from __future__ import annotations

import io
import sys

from ..orchestrator import Orchestrator
from ..ui.console import get_console
from .models import ExecutionResult, Lease


class LogCapture:
    """
    Context manager that captures stdout/stderr for later submission to the gateway.

    Logs are captured in a buffer and sent at completion via complete_lease().
    This ensures all output (including from worker threads of parallel
    groups) is captured even if exceptions occur while handling the event.
    """

    def __init__(self):
        self.log_buffer = io.StringIO()
        self.original_stdout = sys.stdout
        self.original_stderr = sys.stderr

    def __enter__(self):
        self.original_stdout = sys.stdout
        self.original_stderr = sys.stderr
        sys.stdout = self
        sys.stderr = self
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        sys.stdout = self.original_stdout
        sys.stderr = self.original_stderr

    def write(self, text: str) -> int:
        """Write to buffer."""
        self.log_buffer.write(text)
        return len(text)

    def flush(self) -> None:
        """Flush buffer (no-op, logs are sent at completion)."""
        pass

    def get_logs(self) -> str:
        """Get all captured logs."""
        return self.log_buffer.getvalue()


def execute_lease(lease: Lease, orchestrator: Orchestrator) -> ExecutionResult:
    """
    Handle a leased event with the orchestrator.

    Errors that abort the event (bad payload, missing credentials) are
    reported as a failed result rather than raised, so the lease is always
    completed.
    """
    log_capture = LogCapture()

    try:
        with log_capture:
            verdict = orchestrator.handle(lease.to_event())
    except Exception as e:
        error_msg = str(e)
        logs = log_capture.get_logs()
        if error_msg not in logs:
            logs = f"{logs}\nError: {error_msg}" if logs else error_msg
        get_console().print_debug(f"event {lease.event_id} aborted: {type(e).__name__}")
        return ExecutionResult(
            status="failed",
            logs=logs,
            verdict={"error_type": type(e).__name__},
            error=error_msg,
        )

    if not verdict.routed:
        status = "noop"
    else:
        status = "ok" if verdict.succeeded else "failed"
    return ExecutionResult(status=status, logs=log_capture.get_logs(), verdict=verdict.to_dict())
