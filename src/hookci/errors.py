# errors.py
from __future__ import annotations

from dataclasses import dataclass


class HookCIError(Exception):
    """Base class for every error raised by the orchestration core."""


@dataclass(eq=False)
class ExecutionError(HookCIError):
    """
    A job failed: it could not be scheduled, or it exited non-zero.

    `logs` carries whatever output was captured before the failure so the
    notifier can attach it to the failure report.
    """
    job: str
    cause: str
    logs: str = ""
    exit_code: int | None = None

    def __str__(self) -> str:
        if self.exit_code is not None:
            return f"[{self.job}] {self.cause} (exit={self.exit_code})"
        return f"[{self.job}] {self.cause}"


@dataclass(eq=False)
class NotifyError(HookCIError):
    """The status reporting channel could not be reached."""
    target: str
    cause: str

    def __str__(self) -> str:
        return f"notification '{self.target}' failed: {self.cause}"


@dataclass(eq=False)
class ConfigurationError(HookCIError):
    """A required secret or setting is missing. Raised before any job runs."""
    key: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (missing: {self.key})"


@dataclass(eq=False)
class MissingSecretError(HookCIError):
    key: str

    def __str__(self) -> str:
        return f"secret '{self.key}' is not set"


@dataclass(eq=False)
class UnknownEventError(HookCIError):
    event_type: str

    def __str__(self) -> str:
        return f"no route handles event type '{self.event_type}'"


@dataclass(eq=False)
class UnknownCheckError(HookCIError):
    name: str

    def __str__(self) -> str:
        return f"no pipeline provides check '{self.name}'"


@dataclass(eq=False)
class ValidationError(HookCIError):
    """The event payload is malformed for the event type it arrived with."""
    event_type: str
    message: str

    def __str__(self) -> str:
        return f"invalid '{self.event_type}' payload: {self.message}"
