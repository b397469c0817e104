"""Event routing: which pipelines an event selects, in which order."""
import json

import pytest

from hookci.errors import UnknownCheckError, UnknownEventError, ValidationError
from hookci.events import Event, Revision
from hookci.model import JobDescriptor, JobStage, Pipeline, RoutingRule, SequentialGroup
from hookci.router import EventRouter, always, branch_is, comment_is, tag_matches


def names(pipelines):
    return [p.name for p in pipelines]


def push(ref):
    return Event("push", json.dumps({"ref": ref}), build_id="b-1")


def comment(body, action="created"):
    return Event(f"issue_comment:{action}", {"comment": {"body": body}})


class TestPushRouting:

    @pytest.mark.parametrize("ref", ["refs/tags/1.2.3", "refs/tags/v0.4.0", "refs/tags/v1.0.0-rc.1"])
    def test_release_tag_runs_release_once_and_never_edge(self, router, ref):
        selected = names(router.route(push(ref)))
        assert selected == ["test", "release", "release-notify"]
        assert selected.count("release") == 1
        assert "edge" not in selected

    def test_default_branch_runs_edge_not_release(self, router):
        selected = names(router.route(push("refs/heads/main")))
        assert selected == ["edge"]

    def test_other_branch_is_a_noop(self, router, capsys):
        assert router.route(push("refs/heads/feature/x")) == []
        assert "NO-OP" in capsys.readouterr().out

    def test_non_release_tag_is_a_noop(self, router):
        assert router.route(push("refs/tags/nightly")) == []

    def test_ref_falls_back_to_revision(self, router):
        event = Event("push", "", revision=Revision(ref="refs/heads/main", commit="abc"))
        assert names(router.route(event)) == ["edge"]

    def test_route_is_pure(self, router):
        event = push("refs/tags/2.0.0")
        assert names(router.route(event)) == names(router.route(event))


class TestOtherEvents:

    def test_exec_runs_test(self, router):
        assert names(router.route(Event("exec"))) == ["test"]

    @pytest.mark.parametrize("event_type", ["check_suite:requested", "check_suite:rerequested"])
    def test_check_suite_runs_checks(self, router, event_type):
        assert names(router.route(Event(event_type, "{}"))) == ["checks"]

    def test_release_event(self, router):
        assert names(router.route(Event("release", '{"tag": "v1.2.3"}'))) == ["release", "release-notify"]

    def test_release_event_without_tag(self, router):
        with pytest.raises(ValidationError) as exc:
            router.route(Event("release", "{}"))
        assert "No tag specified" in str(exc.value)

    def test_unknown_event_type(self, router):
        with pytest.raises(UnknownEventError) as exc:
            router.route(Event("pull_request", "{}"))
        assert exc.value.event_type == "pull_request"


class TestChatCommand:

    @pytest.mark.parametrize("action", ["created", "edited"])
    def test_command_is_trimmed(self, router, action):
        assert names(router.route(comment("  /hookci run \n", action))) == ["checks"]

    def test_other_text_is_a_noop(self, router, capsys):
        assert router.route(comment("please /hookci run this")) == []
        assert "no rule matched" in capsys.readouterr().out

    def test_missing_body(self, router):
        with pytest.raises(ValidationError):
            router.route(Event("issue_comment:created", {"comment": {}}))


class TestCheckRerun:

    def rerun(self, name):
        return Event("check_run:rerequested", {"check_run": {"name": name}})

    def test_known_check_becomes_single_stage_pipeline(self, router):
        (pipeline,) = router.route(self.rerun("tests"))
        assert pipeline.name == "tests"
        assert [j.name for j in pipeline.jobs()] == ["tests"]
        assert pipeline.find_check("tests") is not None

    def test_pipeline_name_wins(self, router):
        (pipeline,) = router.route(self.rerun("checks"))
        assert pipeline is router.pipelines["checks"]

    def test_unknown_check(self, router):
        with pytest.raises(UnknownCheckError) as exc:
            router.route(self.rerun("nope"))
        assert exc.value.name == "nope"

    def test_missing_check_run(self, router):
        with pytest.raises(ValidationError):
            router.route(Event("check_run:rerequested", "{}"))


class TestRouterConstruction:

    def pipeline(self, name):
        return Pipeline(name, SequentialGroup((JobStage(JobDescriptor(f"{name}-job", "alpine")),)))

    def test_first_matching_rule_wins(self):
        router = EventRouter(
            [
                RoutingRule("first", ("push",), always, ("a",)),
                RoutingRule("second", ("push",), always, ("b",)),
            ],
            [self.pipeline("a"), self.pipeline("b")],
        )
        assert names(router.route(push("refs/heads/main"))) == ["a"]

    def test_later_rule_used_when_earlier_does_not_match(self):
        router = EventRouter(
            [
                RoutingRule("tags", ("push",), tag_matches(r"^\d+$"), ("a",)),
                RoutingRule("main", ("push",), branch_is("main"), ("b",)),
            ],
            [self.pipeline("a"), self.pipeline("b")],
        )
        assert names(router.route(push("refs/heads/main"))) == ["b"]
        assert names(router.route(push("refs/tags/7"))) == ["a"]

    def test_rule_targeting_missing_pipeline(self):
        with pytest.raises(ValueError):
            EventRouter([RoutingRule("r", ("push",), always, ("ghost",))], [self.pipeline("a")])

    def test_duplicate_pipeline_names(self):
        with pytest.raises(ValueError):
            EventRouter([], [self.pipeline("a"), self.pipeline("a")])

    def test_describe_lists_rules_in_order(self, router):
        rows = router.describe()
        assert [r[0] for r in rows][:3] == ["exec", "release-tag", "default-branch"]
        rerun = dict((r[0], r[3]) for r in rows)["check-rerun"]
        assert rerun == "<requested check>"

    def test_comment_predicate_name(self):
        assert comment_is("/go").__name__ == "comment_is('/go')"
