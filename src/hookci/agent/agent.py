# agent/agent.py
from __future__ import annotations

import signal
import time

from ..orchestrator import Orchestrator
from ..ui.console import get_console
from .api_client import APIClient, APIError
from .executor import execute_lease
from .models import Lease


class Agent:
    """hookci worker that leases events from the gateway and handles them."""

    def __init__(
        self,
        api_client: APIClient,
        orchestrator: Orchestrator,
        poll_interval: int = 5,
        install_signal_handlers: bool = True,
    ):
        """
        Initialize agent.

        Args:
            api_client: Client for the event gateway
            orchestrator: Handles each leased event
            poll_interval: Seconds to wait between polls when nothing is queued
            install_signal_handlers: Stop gracefully on SIGINT/SIGTERM
        """
        self.api_client = api_client
        self.orchestrator = orchestrator
        self.poll_interval = poll_interval
        self.running = True

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        get_console().print_info(f"\nReceived signal {signum}, shutting down gracefully...")
        self.running = False

    def run(self) -> None:
        """Run the agent loop."""
        console = get_console()
        console.print_agent_started(
            agent_id=self.api_client.agent_id,
            api=self.api_client.base_url,
            poll_interval=self.poll_interval,
        )

        while self.running:
            if not self.poll_once():
                time.sleep(self.poll_interval)

        console.print_info("Agent stopped.")

    def poll_once(self) -> bool:
        """
        Claim and handle at most one event.

        Returns True if an event was handled, False if the caller should
        back off before polling again.
        """
        console = get_console()
        try:
            lease = self.api_client.claim_lease()
        except APIError as e:
            console.print_error(
                "API error",
                str(e),
                suggestion="Check gateway connectivity and retry.",
            )
            return False

        if lease is None:
            return False

        console.print_lease_acquired(event_type=lease.event_type, event_id=lease.event_id)
        self._execute_lease(lease)
        return True

    def _execute_lease(self, lease: Lease) -> None:
        """Handle a single lease and report its verdict."""
        console = get_console()
        start_time = time.time()

        result = execute_lease(lease, self.orchestrator)
        duration = time.time() - start_time

        try:
            self.api_client.complete_lease(lease.event_id, result.status, result.to_dict())
        except APIError as api_err:
            console.print_error(
                "Failed to send completion",
                f"Could not send completion status to gateway: {api_err}",
            )

        console.print_execution_complete(status=result.status, duration=duration)

        # Show logs in debug mode
        if console.debug and result.logs:
            console.print_info(f"\nLogs for {lease.event_type} ({lease.event_id}):")
            console.print_info("=" * 60)
            console.print_info(result.logs)
            console.print_info("=" * 60)


def run_agent(api_url: str, agent_id: str, orchestrator: Orchestrator, poll_interval: int = 5) -> None:
    """
    Run the hookci agent loop.

    Args:
        api_url: Base URL of the event gateway
        agent_id: Unique identifier for this agent instance
        orchestrator: Handles each leased event
        poll_interval: Seconds to wait between polls when nothing is queued
    """
    agent = Agent(APIClient(api_url, agent_id), orchestrator, poll_interval)
    agent.run()
