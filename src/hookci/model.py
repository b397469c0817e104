# model.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple, Union


class Conclusion(str, Enum):
    """Terminal (or pending) status reported for a check."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class RunState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_TRANSITIONS = {
    RunState.PENDING: {RunState.RUNNING},
    RunState.RUNNING: {RunState.SUCCEEDED, RunState.FAILED},
    RunState.SUCCEEDED: set(),
    RunState.FAILED: set(),
}


@dataclass(frozen=True)
class JobFlags:
    privileged: bool = False
    force_pull: bool = False


@dataclass(frozen=True)
class JobDescriptor:
    """
    One containerized unit of work.

    `tasks` run in order as a single shell script, so a `cd` in one task
    applies to the next. `secrets` maps env var names to secret keys; they are
    resolved by the orchestrator right before the job is scheduled.
    """
    name: str
    image: str
    tasks: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    flags: JobFlags = JobFlags()
    secrets: Mapping[str, str] = field(default_factory=dict)
    # optional jobs are skipped instead of failing the pipeline when a secret is absent
    skip_without_secrets: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("job name must not be empty")
        # Use object.__setattr__ to bypass frozen dataclass restriction
        object.__setattr__(self, "tasks", tuple(self.tasks))
        object.__setattr__(self, "env", MappingProxyType({k: str(v) for k, v in self.env.items()}))
        object.__setattr__(self, "secrets", MappingProxyType(dict(self.secrets)))

    def with_env(self, **extra: str) -> "JobDescriptor":
        merged = dict(self.env)
        merged.update(extra)
        return replace(self, env=merged)

    def script(self) -> str:
        return "\n".join(self.tasks)


@dataclass(frozen=True)
class ErrorInfo:
    kind: str
    message: str


@dataclass
class JobResult:
    job: str
    succeeded: bool
    output: str = ""
    logs: str = ""
    error: Optional[ErrorInfo] = None
    skipped: bool = False


@dataclass(frozen=True)
class CheckSpec:
    """Static template for a check reported around a job."""
    name: str
    title: str = "running check"
    summary: str = ""
    text: str = ""


@dataclass
class NotificationState:
    """
    Per-run state of one reported check.

    `count` lets the same check be sent several times with a distinct
    identity each time; it only ever grows.
    """
    name: str
    conclusion: Conclusion = Conclusion.NEUTRAL
    title: str = "running check"
    summary: str = ""
    text: str = ""
    external_id: str = ""
    payload: str = ""
    details_url: Optional[str] = None
    count: int = 0

    @classmethod
    def from_check(
        cls,
        check: CheckSpec,
        *,
        external_id: str = "",
        payload: str = "",
        commit: str = "",
    ) -> "NotificationState":
        # "{commit}" in a check summary names the revision under test
        return cls(
            name=check.name,
            conclusion=Conclusion.PENDING,
            title=check.title,
            summary=check.summary.replace("{commit}", commit),
            text=check.text,
            external_id=external_id,
            payload=payload,
        )

    def next_identity(self) -> str:
        self.count += 1
        return f"{self.name}-{self.count}"


# ---------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class JobStage:
    job: JobDescriptor


@dataclass(frozen=True)
class CheckStage:
    """A job wrapped between check notifications."""
    job: JobDescriptor
    check: CheckSpec
    conclusion: Conclusion = Conclusion.SUCCESS


@dataclass(frozen=True)
class ParallelGroup:
    """Members run concurrently; every member settles before the group reports."""
    stages: Tuple["Stage", ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "stages", tuple(self.stages))


@dataclass(frozen=True)
class SequentialGroup:
    stages: Tuple["Stage", ...]
    halt_on_failure: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "stages", tuple(self.stages))


Stage = Union[JobStage, CheckStage, ParallelGroup, SequentialGroup]


def iter_stages(stage: Stage) -> Iterator[Stage]:
    """Depth-first walk over a stage and everything nested in it."""
    yield stage
    if isinstance(stage, (ParallelGroup, SequentialGroup)):
        for child in stage.stages:
            yield from iter_stages(child)


def stage_jobs(stage: Stage) -> List[JobDescriptor]:
    return [s.job for s in iter_stages(stage) if isinstance(s, (JobStage, CheckStage))]


@dataclass(frozen=True)
class Pipeline:
    """A named workflow: a root sequence of stages."""
    name: str
    root: SequentialGroup

    def __post_init__(self) -> None:
        names = [j.name for j in self.jobs()]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Pipeline '{self.name}' has duplicate job names: {dupes}")

    def jobs(self) -> List[JobDescriptor]:
        return stage_jobs(self.root)

    def checks(self) -> List[CheckStage]:
        return [s for s in iter_stages(self.root) if isinstance(s, CheckStage)]

    def find_check(self, name: str) -> Optional[CheckStage]:
        for stage in self.checks():
            if stage.check.name == name:
                return stage
        return None


@dataclass
class PipelineResult:
    pipeline: str
    state: RunState = RunState.PENDING
    results: List[JobResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.SUCCEEDED

    @property
    def failures(self) -> List[JobResult]:
        return [r for r in self.results if not r.succeeded and not r.skipped]

    def result_for(self, job_name: str) -> Optional[JobResult]:
        for r in self.results:
            if r.job == job_name:
                return r
        return None

    def transition(self, new_state: RunState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(
                f"Pipeline '{self.pipeline}' cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state


# ---------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------

Predicate = Callable[[Any], bool]


@dataclass(frozen=True)
class RoutingRule:
    """
    Maps matching events to an ordered chain of pipelines.

    When `resolve_check` is set the pipelines are not fixed: the router looks
    up the check named in the re-run request instead.
    """
    name: str
    event_types: Tuple[str, ...]
    predicate: Predicate
    pipelines: Tuple[str, ...] = ()
    resolve_check: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_types", tuple(self.event_types))
        object.__setattr__(self, "pipelines", tuple(self.pipelines))

    def handles(self, event_type: str) -> bool:
        return event_type in self.event_types


@dataclass
class Verdict:
    event_type: str
    build_id: str
    results: List[PipelineResult] = field(default_factory=list)
    skipped_pipelines: List[str] = field(default_factory=list)
    routed: bool = True

    @property
    def succeeded(self) -> bool:
        """True when nothing failed or was skipped; also True for no-ops, so check `routed` first."""
        return all(r.succeeded for r in self.results) and not self.skipped_pipelines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "build_id": self.build_id,
            "routed": self.routed,
            "succeeded": self.succeeded,
            "pipelines": {
                r.pipeline: {
                    "state": r.state.value,
                    "jobs": {
                        j.job: ("skipped" if j.skipped else "ok" if j.succeeded else "failed")
                        for j in r.results
                    },
                    "skipped": list(r.skipped),
                }
                for r in self.results
            },
            "skipped_pipelines": list(self.skipped_pipelines),
        }
