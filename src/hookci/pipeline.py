# pipeline.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import ExecutionError
from .model import (
    CheckStage,
    ErrorInfo,
    JobDescriptor,
    JobResult,
    JobStage,
    NotificationState,
    ParallelGroup,
    Pipeline,
    PipelineResult,
    RunState,
    SequentialGroup,
    Stage,
    stage_jobs,
)
from .notifier import Notifier
from .runner import JobRunner
from .ui.console import get_console


@dataclass
class RunContext:
    """
    Per-event inputs shared by every job of a run.

    `env` is merged into every job; `secret_env` holds the already resolved
    secrets per job name; `skip` lists optional jobs whose secrets are absent.
    """
    build_id: str = ""
    commit: str = ""
    payload: str = ""
    env: Dict[str, str] = field(default_factory=dict)
    secret_env: Dict[str, Dict[str, str]] = field(default_factory=dict)
    skip: Dict[str, str] = field(default_factory=dict)
    details_url: Optional[str] = None

    def prepare(self, job: JobDescriptor) -> JobDescriptor:
        extra: Dict[str, str] = dict(self.env)
        extra.update(self.secret_env.get(job.name, {}))
        if not extra:
            return job
        return job.with_env(**extra)


@dataclass
class StageOutcome:
    results: List[JobResult] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(r.succeeded for r in self.results)

    def extend(self, other: "StageOutcome") -> None:
        self.results.extend(other.results)
        self.skipped.extend(other.skipped)


def _failed(job: JobDescriptor, err: ExecutionError) -> JobResult:
    return JobResult(
        job=job.name,
        succeeded=False,
        logs=err.logs,
        error=ErrorInfo(kind=type(err).__name__, message=str(err)),
    )


class PipelineRun:
    """
    Executes one pipeline for one event.

    Instances are not shared between events; notification states are
    created fresh for every check stage.
    """

    def __init__(
        self,
        runner: JobRunner,
        notifier: Notifier,
        context: Optional[RunContext] = None,
        max_workers: Optional[int] = None,
    ):
        self.runner = runner
        self.notifier = notifier
        self.context = context or RunContext()
        self.max_workers = max_workers

    def execute(self, pipeline: Pipeline) -> PipelineResult:
        console = get_console()
        result = PipelineResult(pipeline=pipeline.name)
        result.transition(RunState.RUNNING)
        console.print_pipeline_start(pipeline.name, len(pipeline.jobs()))

        outcome = self._run_stage(pipeline.root)

        result.results = outcome.results
        result.skipped = outcome.skipped
        result.transition(RunState.SUCCEEDED if outcome.ok else RunState.FAILED)
        console.print_pipeline_done(pipeline.name, result.state.value)
        return result

    # -----------------------------------------------------------------

    def _run_stage(self, stage: Stage) -> StageOutcome:
        if isinstance(stage, JobStage):
            return StageOutcome(results=[self._run_job(stage.job)])
        if isinstance(stage, CheckStage):
            return StageOutcome(results=[self._run_check(stage)])
        if isinstance(stage, ParallelGroup):
            return self._run_parallel(stage)
        if isinstance(stage, SequentialGroup):
            return self._run_sequential(stage)
        raise TypeError(f"Unknown stage type: {type(stage).__name__}")

    def _skipped(self, job: JobDescriptor) -> Optional[JobResult]:
        reason = self.context.skip.get(job.name)
        if reason is None:
            return None
        get_console().print_job_skipped(job.name, reason)
        return JobResult(job=job.name, succeeded=True, skipped=True)

    def _run_job(self, job: JobDescriptor) -> JobResult:
        skipped = self._skipped(job)
        if skipped is not None:
            return skipped

        console = get_console()
        console.print_job_start(job.name, job.image)
        try:
            result = self.runner.run(self.context.prepare(job))
        except ExecutionError as e:
            console.print_failure(job.name, str(e), exit_code=e.exit_code)
            return _failed(job, e)
        console.print_success(job.name)
        return result

    def _run_check(self, stage: CheckStage) -> JobResult:
        skipped = self._skipped(stage.job)
        if skipped is not None:
            return skipped

        console = get_console()
        state = NotificationState.from_check(
            stage.check,
            external_id=self.context.build_id,
            payload=self.context.payload,
            commit=self.context.commit,
        )
        state.details_url = self.context.details_url
        console.print_job_start(stage.job.name, stage.job.image)
        try:
            result = self.notifier.wrap(self.context.prepare(stage.job), state, stage.conclusion)
        except ExecutionError as e:
            console.print_failure(stage.job.name, str(e), exit_code=e.exit_code)
            return _failed(stage.job, e)
        console.print_success(stage.job.name)
        return result

    def _run_sequential(self, group: SequentialGroup) -> StageOutcome:
        outcome = StageOutcome()
        for idx, stage in enumerate(group.stages):
            part = self._run_stage(stage)
            outcome.extend(part)
            if not part.ok and group.halt_on_failure:
                for rest in group.stages[idx + 1:]:
                    outcome.skipped.extend(j.name for j in stage_jobs(rest))
                break
        return outcome

    def _run_parallel(self, group: ParallelGroup) -> StageOutcome:
        outcome = StageOutcome()
        if not group.stages:
            return outcome
        workers = self.max_workers or len(group.stages)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._run_stage, stage) for stage in group.stages]
            # wait for every member, never just the first failure
            wait(futures)
        for future in futures:
            outcome.extend(future.result())
        return outcome


