"""
Default pipelines and routing table.

Rule order matters: the router takes the first matching rule, so release
tags are matched before default-branch pushes.
"""

from __future__ import annotations

from typing import List

from .. import events
from ..config import ProjectConfig
from ..model import Pipeline, RoutingRule
from ..router import EventRouter, always, branch_is, comment_is, requires_tag, tag_matches
from .build import checks_pipeline, edge_pipeline, test_pipeline
from .release import release_notify_pipeline, release_pipeline

RELEASE_CHAIN = ("release", "release-notify")


def default_pipelines(config: ProjectConfig) -> List[Pipeline]:
    return [
        test_pipeline(config),
        edge_pipeline(config),
        checks_pipeline(config),
        release_pipeline(config),
        release_notify_pipeline(config),
    ]


def default_rules(config: ProjectConfig) -> List[RoutingRule]:
    return [
        RoutingRule("exec", (events.EXEC,), always, ("test",)),
        RoutingRule(
            "release-tag",
            (events.PUSH,),
            tag_matches(config.release_tag_pattern),
            ("test", *RELEASE_CHAIN),
        ),
        RoutingRule("default-branch", (events.PUSH,), branch_is(config.default_branch), ("edge",)),
        RoutingRule("release", (events.RELEASE,), requires_tag, RELEASE_CHAIN),
        RoutingRule(
            "check-suite",
            (events.CHECK_SUITE_REQUESTED, events.CHECK_SUITE_REREQUESTED),
            always,
            ("checks",),
        ),
        RoutingRule("check-rerun", (events.CHECK_RUN_REREQUESTED,), always, resolve_check=True),
        RoutingRule(
            "chat-command",
            (events.ISSUE_COMMENT_CREATED, events.ISSUE_COMMENT_EDITED),
            comment_is(config.chat_command),
            ("checks",),
        ),
    ]


def default_router(config: ProjectConfig) -> EventRouter:
    return EventRouter(default_rules(config), default_pipelines(config))


__all__ = ["RELEASE_CHAIN", "default_pipelines", "default_rules", "default_router"]
