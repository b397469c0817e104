# events.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ValidationError


EXEC = "exec"
PUSH = "push"
RELEASE = "release"
CHECK_SUITE_REQUESTED = "check_suite:requested"
CHECK_SUITE_REREQUESTED = "check_suite:rerequested"
CHECK_RUN_REREQUESTED = "check_run:rerequested"
ISSUE_COMMENT_CREATED = "issue_comment:created"
ISSUE_COMMENT_EDITED = "issue_comment:edited"

KNOWN_EVENT_TYPES = (
    EXEC,
    PUSH,
    RELEASE,
    CHECK_SUITE_REQUESTED,
    CHECK_SUITE_REREQUESTED,
    CHECK_RUN_REREQUESTED,
    ISSUE_COMMENT_CREATED,
    ISSUE_COMMENT_EDITED,
)

# GitHub events that carry an `action` which is part of the routed event type
_ACTION_EVENTS = {"check_suite", "check_run", "issue_comment"}


@dataclass(frozen=True)
class Revision:
    ref: str = ""
    commit: str = ""


@dataclass(frozen=True)
class Event:
    """An inbound trigger, as delivered by the event source."""
    type: str
    payload: Union[str, Mapping[str, Any]] = ""
    build_id: str = ""
    revision: Revision = field(default_factory=Revision)

    def data(self) -> Dict[str, Any]:
        """
        Parse the payload into a dict.

        An empty payload is an empty dict. Anything that is not a JSON object
        raises ValidationError.
        """
        if isinstance(self.payload, Mapping):
            return dict(self.payload)
        if not self.payload or not self.payload.strip():
            return {}
        try:
            parsed = json.loads(self.payload)
        except json.JSONDecodeError as e:
            raise ValidationError(self.type, f"payload is not valid JSON: {e}") from e
        if not isinstance(parsed, dict):
            raise ValidationError(self.type, "payload must be a JSON object")
        return parsed

    def raw_payload(self) -> str:
        if isinstance(self.payload, Mapping):
            return json.dumps(dict(self.payload), sort_keys=True)
        return self.payload

    def ref(self) -> str:
        """The git ref this event is about: payload `ref` first, then the revision."""
        ref = self.data().get("ref")
        if isinstance(ref, str) and ref:
            return ref
        return self.revision.ref


def lookup(event: Event, *path: str) -> Any:
    """
    Walk nested payload keys, raising ValidationError on the first missing one.

        lookup(event, "comment", "body")
    """
    node: Any = event.data()
    walked = []
    for key in path:
        walked.append(key)
        if not isinstance(node, Mapping) or key not in node:
            raise ValidationError(event.type, f"missing field '{'.'.join(walked)}'")
        node = node[key]
    return node


def github_event_type(header: str, payload: Mapping[str, Any]) -> str:
    """
    Map a GitHub delivery to the routed event type.

    `check_suite` with action `requested` becomes `check_suite:requested`;
    events without a meaningful action keep the bare header name.
    """
    name = (header or "").strip()
    if not name:
        raise ValidationError("", "missing X-GitHub-Event header")
    if name in _ACTION_EVENTS:
        action = payload.get("action")
        if not action:
            raise ValidationError(name, "missing field 'action'")
        return f"{name}:{action}"
    return name


def revision_from_github(payload: Mapping[str, Any]) -> Revision:
    """Best-effort revision extraction from the common GitHub payload shapes."""
    if "ref" in payload:
        return Revision(ref=str(payload.get("ref") or ""), commit=str(payload.get("after") or ""))
    for key in ("check_suite", "check_run"):
        section = payload.get(key)
        if isinstance(section, Mapping):
            if key == "check_run":
                section = section.get("check_suite") or section
            branch = section.get("head_branch")
            return Revision(
                ref=f"refs/heads/{branch}" if branch else "",
                commit=str(section.get("head_sha") or ""),
            )
    return Revision()


def event_from_github(header: str, payload: Mapping[str, Any], delivery_id: Optional[str] = None) -> Event:
    return Event(
        type=github_event_type(header, payload),
        payload=json.dumps(dict(payload)),
        build_id=delivery_id or "",
        revision=revision_from_github(payload),
    )
