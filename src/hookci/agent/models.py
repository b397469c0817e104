# agent/models.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..events import Event, Revision


@dataclass
class Lease:
    """Represents an event lease from the gateway (ClaimedEvent response)."""
    event_id: str
    event_type: str
    payload_json: Dict[str, Any]
    build_id: str
    ref: str
    commit: str
    lease_expires_at: str  # ISO format timestamp

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Lease:
        """Create Lease from gateway ClaimedEvent response dictionary."""
        return cls(
            event_id=data["event_id"],
            event_type=data["event_type"],
            payload_json=data.get("payload_json") or {},
            build_id=data.get("build_id") or data["event_id"],
            ref=data.get("ref") or "",
            commit=data.get("commit") or "",
            lease_expires_at=data["lease_expires_at"],
        )

    def to_event(self) -> Event:
        return Event(
            type=self.event_type,
            payload=self.payload_json,
            build_id=self.build_id,
            revision=Revision(ref=self.ref, commit=self.commit),
        )


@dataclass
class ExecutionResult:
    """Result of handling a leased event."""
    status: str  # "ok" | "failed" | "noop"
    logs: str
    verdict: Dict[str, Any]
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for gateway submission."""
        return {
            "logs": self.logs,
            "verdict": self.verdict,
            "error": self.error,
        }
