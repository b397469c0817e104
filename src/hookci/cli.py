# cli.py
from __future__ import annotations

import subprocess
import sys
import uuid
from pathlib import Path

import click

from .config import EnvSecrets, ProjectConfig
from .errors import ConfigurationError, ValidationError
from .events import KNOWN_EVENT_TYPES, Event, Revision
from .git_facts.git import local_revision, repo_root
from .model import Verdict
from .notifier import CheckRunReporter, ConsoleReporter
from .orchestrator import Orchestrator
from .runner import DockerRunner, DryRunRunner, LocalRunner
from .ui.console import Console, get_console, set_console
from .workflows import default_router


RUNNERS = ("local", "docker", "dry-run")
REPORTERS = ("console", "check-run")


def default_workdir() -> Path:
    try:
        return repo_root()
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Path(".").resolve()


def build_orchestrator(
    runner_kind: str,
    reporter_kind: str,
    workdir: str | None,
    config: ProjectConfig | None = None,
) -> Orchestrator:
    """Wire the orchestrator from CLI choices and HOOKCI_* environment."""
    config = config or ProjectConfig.from_env()
    work = Path(workdir) if workdir else default_workdir()

    if runner_kind == "docker":
        runner = DockerRunner(work)
    elif runner_kind == "dry-run":
        runner = DryRunRunner()
    else:
        runner = LocalRunner(work)

    if reporter_kind == "check-run":
        reporter = CheckRunReporter(runner, config.check_image, details_url=config.details_url)
    else:
        reporter = ConsoleReporter()

    return Orchestrator(config, default_router(config), runner, reporter, EnvSecrets())


def read_payload(payload: str | None, payload_file: str | None) -> str:
    if payload and payload_file:
        raise click.UsageError("Use either --payload or --payload-file, not both.")
    if payload_file:
        return Path(payload_file).read_text(encoding="utf-8")
    return payload or ""


def _finish(verdict: Verdict) -> None:
    if not verdict.succeeded:
        sys.exit(1)


def _fail(ctx: click.Context, title: str, exc: Exception, suggestion: str | None = None) -> None:
    console = get_console()
    console.print_error(title, str(exc), suggestion=suggestion)
    if ctx.obj.get("debug", False):
        console.print_exception(exc)
    sys.exit(1)


def runner_options(fn):
    fn = click.option(
        "--runner", "runner_kind", type=click.Choice(RUNNERS), default="local", show_default=True,
        help="How jobs are executed",
    )(fn)
    fn = click.option(
        "--reporter", "reporter_kind", type=click.Choice(REPORTERS), default="console", show_default=True,
        help="Where check status is reported",
    )(fn)
    fn = click.option("--workdir", default=None, help="Source checkout (defaults to the git repo root)")(fn)
    return fn


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """hookci: event-driven CI orchestration."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("event_type")
@click.option("--payload", default=None, help="Event payload as a JSON string")
@click.option("--payload-file", default=None, type=click.Path(exists=True, dir_okay=False), help="Read the payload from a file")
@click.option("--build-id", default=None, help="Build identifier (defaults to a random id)")
@click.option("--ref", default=None, help="Git ref (defaults to the current checkout)")
@click.option("--commit", default=None, help="Commit SHA (defaults to the current checkout)")
@runner_options
@click.pass_context
def handle(ctx, event_type, payload, payload_file, build_id, ref, commit, runner_kind, reporter_kind, workdir):
    """Handle one event as if the event source had delivered it."""
    console = get_console()
    if event_type not in KNOWN_EVENT_TYPES:
        console.print_debug(f"'{event_type}' is not a standard event type")

    local = local_revision(workdir)
    event = Event(
        type=event_type,
        payload=read_payload(payload, payload_file),
        build_id=build_id or uuid.uuid4().hex[:12],
        revision=Revision(ref=ref or local.ref, commit=commit or local.commit),
    )

    orchestrator = build_orchestrator(runner_kind, reporter_kind, workdir)
    try:
        verdict = orchestrator.handle(event)
    except ConfigurationError as e:
        _fail(ctx, "Configuration error", e, suggestion="Set the secret as HOOKCI_SECRET_<name> and retry.")
    except ValidationError as e:
        _fail(ctx, "Invalid event", e)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    else:
        _finish(verdict)


@cli.command()
@click.argument("tag")
@click.option("--build-id", default=None, help="Build identifier (defaults to a random id)")
@runner_options
@click.pass_context
def release(ctx, tag, build_id, runner_kind, reporter_kind, workdir):
    """Build and publish a release for TAG."""
    orchestrator = build_orchestrator(runner_kind, reporter_kind, workdir)
    try:
        verdict = orchestrator.build_and_publish_release(tag, build_id=build_id or uuid.uuid4().hex[:12])
    except ConfigurationError as e:
        _fail(ctx, "Configuration error", e, suggestion="Set the secret as HOOKCI_SECRET_<name> and retry.")
    else:
        _finish(verdict)


@cli.command()
def routes():
    """Show the routing table, in evaluation order."""
    console = get_console()
    router = default_router(ProjectConfig.from_env())
    console.print_header("ROUTES (first match wins)")
    for idx, (rule, types, predicate, targets) in enumerate(router.describe(), start=1):
        console.print_info(f"{idx}. {rule}")
        console.print_info(f"   on: {types}")
        console.print_info(f"   when: {predicate}")
        console.print_info(f"   runs: {targets}")


@cli.command()
@click.option("--api", required=True, help="Gateway base URL (e.g., http://localhost:8000)")
@click.option("--agent-id", default=None, help="Unique agent identifier (defaults to hostname)")
@click.option("--poll-interval", default=5, type=int, help="Polling interval in seconds when no events are queued")
@runner_options
@click.pass_context
def agent(ctx, api, agent_id, poll_interval, runner_kind, reporter_kind, workdir):
    """Run the worker loop that leases events from the gateway."""
    import socket
    from .agent.agent import run_agent

    console = get_console()

    if not agent_id:
        agent_id = socket.gethostname()

    orchestrator = build_orchestrator(runner_kind, reporter_kind, workdir)
    try:
        run_agent(api, agent_id, orchestrator, poll_interval)
    except KeyboardInterrupt:
        console.print_info("\nAgent stopped by user")
        sys.exit(0)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


if __name__ == "__main__":
    cli()
