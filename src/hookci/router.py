# router.py
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

from .errors import UnknownCheckError, UnknownEventError, ValidationError
from .events import Event, lookup
from .model import Pipeline, RoutingRule, SequentialGroup
from .ui.console import get_console


TAG_PREFIX = "refs/tags/"
BRANCH_PREFIX = "refs/heads/"


# ---------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------

def always(event: Event) -> bool:
    return True


def branch_is(name: str):
    """Matches pushes to exactly `refs/heads/<name>`."""
    wanted = BRANCH_PREFIX + name

    def predicate(event: Event) -> bool:
        return event.ref() == wanted

    predicate.__name__ = f"branch_is({name!r})"
    return predicate


def tag_name(ref: str) -> Optional[str]:
    if ref.startswith(TAG_PREFIX):
        return ref[len(TAG_PREFIX):]
    return None


def tag_matches(pattern: str):
    """Matches pushes of a tag ref whose name matches `pattern`."""
    compiled = re.compile(pattern)

    def predicate(event: Event) -> bool:
        tag = tag_name(event.ref())
        return tag is not None and compiled.match(tag) is not None

    predicate.__name__ = f"tag_matches({pattern!r})"
    return predicate


def comment_is(command: str):
    """Matches a comment whose body, trimmed, is exactly `command`."""
    wanted = command.strip()

    def predicate(event: Event) -> bool:
        body = lookup(event, "comment", "body")
        if not isinstance(body, str):
            raise ValidationError(event.type, "field 'comment.body' must be a string")
        return body.strip() == wanted

    predicate.__name__ = f"comment_is({command!r})"
    return predicate


def release_tag(event: Event) -> Optional[str]:
    """
    The tag a release-producing event is about.

    `release` events carry it as {"tag": "v1.2.3"}; tag pushes carry it in
    the ref. Anything else has no release tag.
    """
    if event.type == "release":
        tag = event.data().get("tag")
        if not isinstance(tag, str) or not tag.strip():
            raise ValidationError(event.type, "No tag specified")
        return tag.strip()
    return tag_name(event.ref())


def requires_tag(event: Event) -> bool:
    """Matches any event that names a release tag; raises ValidationError if it does not."""
    return release_tag(event) is not None


def rerun_check_name(event: Event) -> str:
    name = lookup(event, "check_run", "name")
    if not isinstance(name, str) or not name:
        raise ValidationError(event.type, "field 'check_run.name' must be a non-empty string")
    return name


# ---------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------

class EventRouter:
    """
    Selects pipelines for an event.

    Rules are checked in the order given and the first match wins. A rule's
    pipelines form a chain: each one only runs if the previous succeeded.
    Routing depends on nothing but the event type and payload.
    """

    def __init__(self, rules: Iterable[RoutingRule], pipelines: Iterable[Pipeline]):
        self.rules: Tuple[RoutingRule, ...] = tuple(rules)
        self.pipelines: Dict[str, Pipeline] = {}
        for p in pipelines:
            if p.name in self.pipelines:
                raise ValueError(f"Duplicate pipeline name: {p.name}")
            self.pipelines[p.name] = p

        for rule in self.rules:
            for name in rule.pipelines:
                if name not in self.pipelines:
                    raise ValueError(
                        f"Rule '{rule.name}' targets missing pipeline '{name}'. "
                        f"Known pipelines: {sorted(self.pipelines)}"
                    )

    @property
    def event_types(self) -> List[str]:
        seen: List[str] = []
        for rule in self.rules:
            for t in rule.event_types:
                if t not in seen:
                    seen.append(t)
        return seen

    def match(self, event: Event) -> Optional[RoutingRule]:
        """The first rule matching the event, or None. Raises UnknownEventError for unrouted types."""
        candidates = [r for r in self.rules if r.handles(event.type)]
        if not candidates:
            raise UnknownEventError(event.type)
        for rule in candidates:
            if rule.predicate(event):
                return rule
        return None

    def route(self, event: Event) -> List[Pipeline]:
        console = get_console()
        rule = self.match(event)
        if rule is None:
            console.print_noop(f"no rule matched '{event.type}' event")
            return []
        if rule.resolve_check:
            selected = [self.lookup_check(rerun_check_name(event))]
        else:
            selected = [self.pipelines[name] for name in rule.pipelines]
        console.print_route(rule.name, [p.name for p in selected])
        return selected

    def lookup_check(self, name: str) -> Pipeline:
        """
        Resolve a check name to something runnable.

        A pipeline of that name wins; otherwise the check stage of that name
        is lifted into a single-stage pipeline of its own.
        """
        if name in self.pipelines:
            return self.pipelines[name]
        for pipeline in self.pipelines.values():
            stage = pipeline.find_check(name)
            if stage is not None:
                return Pipeline(name=name, root=SequentialGroup((stage,)))
        raise UnknownCheckError(name)

    def describe(self) -> List[Tuple[str, str, str, str]]:
        """(rule, event types, predicate, targets) rows for display."""
        rows = []
        for rule in self.rules:
            targets = "<requested check>" if rule.resolve_check else " -> ".join(rule.pipelines)
            predicate = getattr(rule.predicate, "__name__", repr(rule.predicate))
            rows.append((rule.name, ", ".join(rule.event_types), predicate, targets))
        return rows
