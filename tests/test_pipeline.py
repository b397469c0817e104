"""Pipeline execution: sequencing, wait-all parallel groups, run state."""
import pytest

from conftest import FakeReporter, FakeRunner
from hookci.model import (
    CheckSpec,
    CheckStage,
    JobDescriptor,
    JobStage,
    ParallelGroup,
    Pipeline,
    PipelineResult,
    RunState,
    SequentialGroup,
)
from hookci.notifier import Notifier
from hookci.pipeline import PipelineRun, RunContext
from hookci.workflows.build import checks_pipeline


def stage(name):
    return JobStage(JobDescriptor(name=name, image="alpine", tasks=[f"echo {name}"]))


def run(pipeline, runner, reporter=None, context=None):
    notifier = Notifier(reporter or FakeReporter(), runner)
    return PipelineRun(runner, notifier, context).execute(pipeline)


class TestParallelGroup:

    def test_waits_for_all_members(self):
        runner = FakeRunner(fail={"b"})
        pipeline = Pipeline("p", SequentialGroup((ParallelGroup((stage("a"), stage("b"))),)))

        result = run(pipeline, runner)

        assert result.state == RunState.FAILED
        assert sorted(runner.calls) == ["a", "b"]
        assert result.result_for("a").succeeded
        assert not result.result_for("b").succeeded
        assert result.result_for("b").error.kind == "ExecutionError"

    def test_results_keep_declaration_order(self):
        runner = FakeRunner()
        group = ParallelGroup(tuple(stage(n) for n in ("x", "y", "z")))
        result = run(Pipeline("p", SequentialGroup((group,))), runner)
        assert [r.job for r in result.results] == ["x", "y", "z"]
        assert result.succeeded

    def test_every_failure_is_collected(self):
        runner = FakeRunner(fail={"a", "c"})
        group = ParallelGroup((stage("a"), stage("b"), stage("c")))
        result = run(Pipeline("p", SequentialGroup((group,))), runner)
        assert [r.job for r in result.failures] == ["a", "c"]


class TestSequentialGroup:

    def test_halts_after_first_failure(self):
        runner = FakeRunner(fail={"a"})
        pipeline = Pipeline("p", SequentialGroup((stage("a"), stage("b"), stage("c"))))

        result = run(pipeline, runner)

        assert runner.calls == ["a"]
        assert result.skipped == ["b", "c"]
        assert result.state == RunState.FAILED

    def test_runs_everything_when_not_halting(self):
        runner = FakeRunner(fail={"a"})
        pipeline = Pipeline("p", SequentialGroup((stage("a"), stage("b")), halt_on_failure=False))

        result = run(pipeline, runner)

        assert runner.calls == ["a", "b"]
        assert result.skipped == []
        assert result.state == RunState.FAILED

    def test_validation_waits_for_lint_and_tests(self, config):
        runner = FakeRunner(fail={"lint"})
        reporter = FakeReporter()

        result = run(checks_pipeline(config), runner, reporter)

        assert sorted(runner.calls) == ["lint", "tests"]
        assert result.skipped == ["validate-examples"]
        assert result.result_for("tests").succeeded
        assert not result.result_for("lint").succeeded


class TestChecksAndContext:

    def test_check_stage_reports_with_build_id_and_commit(self):
        runner = FakeRunner()
        reporter = FakeReporter()
        check = CheckStage(
            JobDescriptor("unit", "golang"),
            CheckSpec("unit", title="Unit", summary="Testing {commit}"),
        )
        context = RunContext(build_id="b-9", commit="abc123")

        run(Pipeline("p", SequentialGroup((check,))), runner, reporter, context)

        assert reporter.identities() == ["unit-1", "unit-2"]
        assert reporter.sent[0][2] == "Testing abc123"

    def test_context_env_and_secrets_reach_the_job(self):
        runner = FakeRunner()
        context = RunContext(
            build_id="b-1",
            env={"BUILD_ID": "b-1"},
            secret_env={"a": {"TOKEN": "s3cret"}},
        )
        run(Pipeline("p", SequentialGroup((stage("a"), stage("b")))), runner, context=context)

        assert runner.jobs["a"].env["TOKEN"] == "s3cret"
        assert runner.jobs["a"].env["BUILD_ID"] == "b-1"
        assert "TOKEN" not in runner.jobs["b"].env

    def test_skipped_optional_job_is_not_run(self):
        runner = FakeRunner()
        context = RunContext(skip={"notify": "no SLACK_WEBHOOK secret found"})

        result = run(Pipeline("p", SequentialGroup((stage("notify"),))), runner, context=context)

        assert runner.calls == []
        assert result.result_for("notify").skipped
        assert result.succeeded


class TestModel:

    def test_duplicate_job_names_rejected(self):
        with pytest.raises(ValueError):
            Pipeline("p", SequentialGroup((stage("a"), ParallelGroup((stage("a"),)))))

    def test_terminal_states_are_final(self):
        result = PipelineResult("p")
        result.transition(RunState.RUNNING)
        result.transition(RunState.SUCCEEDED)
        with pytest.raises(RuntimeError):
            result.transition(RunState.RUNNING)

    def test_cannot_finish_without_running(self):
        with pytest.raises(RuntimeError):
            PipelineResult("p").transition(RunState.FAILED)

    def test_job_descriptor_is_immutable(self):
        job = JobDescriptor("a", "alpine", tasks=["true"], env={"A": "1"})
        with pytest.raises(AttributeError):
            job.name = "b"
        with pytest.raises(TypeError):
            job.env["A"] = "2"
        assert job.tasks == ("true",)

    def test_with_env_returns_a_copy(self):
        job = JobDescriptor("a", "alpine", env={"A": "1"})
        other = job.with_env(B="2")
        assert dict(other.env) == {"A": "1", "B": "2"}
        assert dict(job.env) == {"A": "1"}
