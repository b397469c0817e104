"""End-to-end handling of events through the default routing table."""
import pytest

from conftest import ALL_SECRETS, FakeReporter, FakeRunner
from hookci.config import StaticSecrets
from hookci.errors import ConfigurationError, ValidationError
from hookci.events import Event, Revision
from hookci.model import Conclusion, RunState


def tag_push(tag="v1.2.3"):
    return Event(
        "push",
        {"ref": f"refs/tags/{tag}"},
        build_id="build-42",
        revision=Revision(ref=f"refs/tags/{tag}", commit="deadbeef"),
    )


def without(*keys):
    return StaticSecrets({k: v for k, v in ALL_SECRETS.items() if k not in keys})


class TestReleaseTag:

    def test_runs_test_then_release_chain(self, make_orchestrator):
        runner = FakeRunner()
        verdict = make_orchestrator(runner).handle(tag_push())

        assert verdict.succeeded
        assert [r.pipeline for r in verdict.results] == ["test", "release", "release-notify"]
        assert runner.calls == [
            "duffle-build",
            "duffle-release",
            "duffle-publish-image",
            "duffle-slack-notify",
        ]
        assert "duffle-publish-edge" not in runner.calls

    def test_release_job_gets_tag_and_token(self, make_orchestrator):
        runner = FakeRunner()
        make_orchestrator(runner).handle(tag_push("v2.0.0"))

        env = runner.jobs["duffle-release"].env
        assert env["RELEASE_TAG"] == "v2.0.0"
        assert env["GITHUB_TOKEN"] == "gh-token"
        assert env["BUILD_ID"] == "build-42"
        assert env["REVISION_COMMIT"] == "deadbeef"
        assert "GITHUB_TOKEN" not in runner.jobs["duffle-build"].env

    def test_missing_token_fails_before_any_job(self, make_orchestrator):
        runner = FakeRunner()
        orchestrator = make_orchestrator(runner, secrets=without("ghToken"))

        with pytest.raises(ConfigurationError) as exc:
            orchestrator.handle(tag_push())

        assert exc.value.key == "ghToken"
        assert "secrets.ghToken" in str(exc.value)
        assert runner.calls == []

    def test_missing_slack_webhook_only_skips_the_notification(self, make_orchestrator, capsys):
        runner = FakeRunner()
        verdict = make_orchestrator(runner, secrets=without("SLACK_WEBHOOK")).handle(tag_push())

        assert verdict.succeeded
        assert "duffle-slack-notify" not in runner.calls
        notify = verdict.results[-1].result_for("duffle-slack-notify")
        assert notify.skipped
        assert "not sent; no SLACK_WEBHOOK secret found" in capsys.readouterr().out

    def test_failed_tests_stop_the_release(self, make_orchestrator):
        runner = FakeRunner(fail={"duffle-build"})
        verdict = make_orchestrator(runner).handle(tag_push())

        assert not verdict.succeeded
        assert [r.pipeline for r in verdict.results] == ["test"]
        assert verdict.skipped_pipelines == ["release", "release-notify"]
        assert runner.calls == ["duffle-build"]


class TestDirectRelease:

    def test_build_and_publish_release(self, make_orchestrator):
        runner = FakeRunner()
        verdict = make_orchestrator(runner).build_and_publish_release("v3.1.0", build_id="b-1")

        assert verdict.succeeded
        assert [r.pipeline for r in verdict.results] == ["release", "release-notify"]
        assert runner.jobs["duffle-publish-image"].env["RELEASE_TAG"] == "v3.1.0"
        assert runner.jobs["duffle-publish-image"].env["DOCKER_USER"] == "ci-bot"

    def test_missing_docker_credentials(self, make_orchestrator):
        runner = FakeRunner()
        orchestrator = make_orchestrator(runner, secrets=without("dockerPassword"))

        with pytest.raises(ConfigurationError) as exc:
            orchestrator.build_and_publish_release("v3.1.0")

        assert exc.value.key == "dockerPassword"
        assert runner.calls == []


class TestOtherEvents:

    def test_default_branch_push_publishes_edge(self, make_orchestrator):
        runner = FakeRunner()
        verdict = make_orchestrator(runner).handle(Event("push", {"ref": "refs/heads/main"}))

        assert verdict.succeeded
        assert runner.calls == ["duffle-build", "duffle-publish-edge"]
        assert runner.jobs["duffle-publish-edge"].flags.privileged

    def test_check_suite_reports_every_check(self, make_orchestrator):
        runner = FakeRunner()
        reporter = FakeReporter()
        event = Event("check_suite:requested", "{}", build_id="b-7", revision=Revision(commit="abc"))

        verdict = make_orchestrator(runner, reporter).handle(event)

        assert verdict.succeeded
        assert sorted(reporter.identities()) == [
            "lint-1", "lint-2", "tests-1", "tests-2", "validate-examples-1", "validate-examples-2",
        ]
        assert all(s[1] in (Conclusion.PENDING, Conclusion.SUCCESS) for s in reporter.sent)

    def test_identities_restart_for_every_event(self, make_orchestrator):
        reporter = FakeReporter()
        orchestrator = make_orchestrator(FakeRunner(), reporter)
        rerun = Event("check_run:rerequested", {"check_run": {"name": "tests"}})

        orchestrator.handle(rerun)
        orchestrator.handle(rerun)

        assert reporter.identities() == ["tests-1", "tests-2", "tests-1", "tests-2"]

    def test_failing_check_is_reported_once(self, make_orchestrator):
        reporter = FakeReporter()
        verdict = make_orchestrator(FakeRunner(fail={"tests"}), reporter).handle(
            Event("check_suite:rerequested", "{}")
        )

        assert not verdict.succeeded
        failures = [s for s in reporter.sent if s[1] == Conclusion.FAILURE]
        assert [s[0] for s in failures] == ["tests-2"]
        assert verdict.results[0].skipped == ["validate-examples"]

    def test_unknown_event_is_a_noop(self, make_orchestrator):
        runner = FakeRunner()
        verdict = make_orchestrator(runner).handle(Event("deployment", "{}"))

        assert not verdict.routed
        assert verdict.results == []
        assert runner.calls == []

    def test_unknown_check_is_a_noop(self, make_orchestrator):
        verdict = make_orchestrator(FakeRunner()).handle(
            Event("check_run:rerequested", {"check_run": {"name": "fuzz"}})
        )
        assert not verdict.routed

    def test_unmatched_branch_is_a_noop(self, make_orchestrator):
        verdict = make_orchestrator(FakeRunner()).handle(Event("push", {"ref": "refs/heads/dev"}))
        assert not verdict.routed
        assert verdict.succeeded

    def test_exec_payload_is_opaque(self, make_orchestrator):
        runner = FakeRunner()
        verdict = make_orchestrator(runner).handle(Event("exec", "run-all please"))

        assert verdict.succeeded
        assert runner.calls == ["duffle-build"]
        assert "RELEASE_TAG" not in runner.jobs["duffle-build"].env

    def test_exec_on_a_tag_checkout_knows_the_tag(self, make_orchestrator):
        runner = FakeRunner()
        make_orchestrator(runner).handle(Event("exec", "anything", revision=Revision(ref="refs/tags/v0.9.0")))
        assert runner.jobs["duffle-build"].env["RELEASE_TAG"] == "v0.9.0"

    def test_malformed_payload_propagates(self, make_orchestrator):
        with pytest.raises(ValidationError):
            make_orchestrator(FakeRunner()).handle(Event("push", "not json"))


class TestVerdict:

    def test_to_dict(self, make_orchestrator):
        runner = FakeRunner(fail={"duffle-publish-edge"})
        verdict = make_orchestrator(runner).handle(
            Event("push", {"ref": "refs/heads/main"}, build_id="b-3")
        )

        data = verdict.to_dict()
        assert data["build_id"] == "b-3"
        assert data["succeeded"] is False
        assert data["pipelines"]["edge"] == {
            "state": RunState.FAILED.value,
            "jobs": {"duffle-build": "ok", "duffle-publish-edge": "failed"},
            "skipped": [],
        }
        assert data["skipped_pipelines"] == []
