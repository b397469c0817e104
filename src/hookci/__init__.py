from .config import EnvSecrets, ProjectConfig, StaticSecrets
from .events import Event, Revision
from .model import (
    CheckSpec,
    CheckStage,
    Conclusion,
    JobDescriptor,
    JobFlags,
    JobResult,
    JobStage,
    NotificationState,
    ParallelGroup,
    Pipeline,
    RoutingRule,
    SequentialGroup,
    Verdict,
)
from .notifier import CheckRunReporter, ConsoleReporter, Notifier
from .orchestrator import Orchestrator
from .router import EventRouter
from .runner import DockerRunner, DryRunRunner, LocalRunner

__all__ = [
    "CheckRunReporter",
    "CheckSpec",
    "CheckStage",
    "Conclusion",
    "ConsoleReporter",
    "DockerRunner",
    "DryRunRunner",
    "EnvSecrets",
    "Event",
    "EventRouter",
    "JobDescriptor",
    "JobFlags",
    "JobResult",
    "JobStage",
    "LocalRunner",
    "NotificationState",
    "Notifier",
    "Orchestrator",
    "ParallelGroup",
    "Pipeline",
    "ProjectConfig",
    "Revision",
    "RoutingRule",
    "SequentialGroup",
    "StaticSecrets",
    "Verdict",
]
