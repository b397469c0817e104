# agent/api_client.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from typing import Optional
from urllib.parse import urljoin

from .models import Lease


class APIError(Exception):
    """Raised when gateway requests fail."""
    pass


class NoEventsQueued(APIError):
    """The gateway had nothing to lease (HTTP 204)."""


class APIClient:
    """HTTP client for communicating with the hookci event gateway."""

    def __init__(self, base_url: str, agent_id: str, timeout: float = 30.0):
        """
        Initialize API client.

        Args:
            base_url: Base URL of the gateway (e.g., "https://ci.example.com")
            agent_id: Unique identifier for this agent instance
            timeout: Socket timeout for each request, in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.agent_id = agent_id
        self.timeout = timeout

    def _request(
        self,
        method: str,
        path: str,
        data: Optional[dict] = None,
    ) -> dict:
        """
        Make an HTTP request to the gateway.

        Returns:
            Parsed JSON response as dictionary

        Raises:
            NoEventsQueued: the gateway answered 204
            APIError: If the request fails
        """
        url = urljoin(self.base_url + "/", path.lstrip("/"))
        req_data = json.dumps(data).encode("utf-8") if data is not None else None
        req = urllib.request.Request(
            url,
            data=req_data,
            headers={"Content-Type": "application/json"},
            method=method,
        )

        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                if response.status == 204:
                    raise NoEventsQueued("204")
                body = response.read().decode("utf-8")
                return json.loads(body) if body else {}
        except urllib.error.HTTPError as e:
            if e.code == 204:
                raise NoEventsQueued("204")
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise APIError(f"API request failed: {e.code} {e.reason}. {error_body}")
        except urllib.error.URLError as e:
            raise APIError(f"Network error: {e.reason}")
        except json.JSONDecodeError as e:
            raise APIError(f"Invalid JSON response: {e}")

    def claim_lease(self) -> Optional[Lease]:
        """
        Claim the next queued event.

        Returns:
            Lease if an event is available, None otherwise
        """
        try:
            response = self._request("POST", "/leases/claim", data={"agent_id": self.agent_id})
        except NoEventsQueued:
            return None
        if not isinstance(response, dict) or "event_id" not in response:
            return None
        try:
            return Lease.from_dict(response)
        except (KeyError, TypeError) as e:
            raise APIError(f"Malformed lease response: {e}")

    def complete_lease(self, event_id: str, status: str, details: dict) -> None:
        """
        Mark a lease as complete and send the verdict.

        Args:
            event_id: ID of the leased event
            status: "ok", "failed" or "noop"
            details: logs, verdict and error text
        """
        if status not in ("ok", "failed", "noop"):
            status = "failed"
        self._request(
            "POST",
            f"/leases/{event_id}/complete",
            data={
                "agent_id": self.agent_id,
                "status": status,
                "details": details,
            },
        )
