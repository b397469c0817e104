# orchestrator.py
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from .config import ProjectConfig, SecretsProvider
from .errors import ConfigurationError, MissingSecretError, UnknownCheckError, UnknownEventError
from .events import PUSH, RELEASE, Event, Revision
from .model import Pipeline, Verdict
from .notifier import Notifier, StatusReporter
from .pipeline import PipelineRun, RunContext
from .router import EventRouter, release_tag, tag_name
from .runner import JobRunner
from .ui.console import get_console
from .workflows import RELEASE_CHAIN


class Orchestrator:
    """
    Top-level coordinator for one project.

    `handle(event)` routes the event, checks that every secret the selected
    pipelines need is present, then runs the pipelines as a chain: a
    pipeline only starts if the one before it succeeded. Nothing here is
    shared between two `handle` calls except the static configuration.
    """

    def __init__(
        self,
        config: ProjectConfig,
        router: EventRouter,
        runner: JobRunner,
        reporter: StatusReporter,
        secrets: SecretsProvider,
    ):
        self.config = config
        self.router = router
        self.runner = runner
        self.reporter = reporter
        self.secrets = secrets

    # -----------------------------------------------------------------
    # Entry points
    # -----------------------------------------------------------------

    def handle(self, event: Event) -> Verdict:
        """
        Run everything an event asks for and return the aggregated verdict.

        Unroutable events (unknown type, unknown check) are logged and yield
        a no-op verdict. ConfigurationError and ValidationError propagate.
        """
        console = get_console()
        console.print_event_received(event.type, event.build_id, event.revision.ref)

        try:
            pipelines = self.router.route(event)
        except (UnknownEventError, UnknownCheckError) as e:
            console.print_noop(str(e))
            return Verdict(event_type=event.type, build_id=event.build_id, routed=False)

        if not pipelines:
            return Verdict(event_type=event.type, build_id=event.build_id, routed=False)

        context = self.context_for(event, pipelines)
        return self.run_chain(event, pipelines, context)

    def build_and_publish_release(
        self,
        tag: str,
        build_id: str = "",
        revision: Optional[Revision] = None,
    ) -> Verdict:
        """
        Run the release chain for `tag` directly.

        Missing release credentials raise ConfigurationError before any job
        is scheduled.
        """
        event = Event(
            type=RELEASE,
            payload={"tag": tag},
            build_id=build_id,
            revision=revision or Revision(ref=f"refs/tags/{tag}"),
        )
        pipelines = [self.router.pipelines[name] for name in RELEASE_CHAIN]
        context = self.context_for(event, pipelines)
        get_console().print_info(
            f"release at https://github.com/{self.config.repo}/releases/tag/{tag}"
        )
        return self.run_chain(event, pipelines, context)

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    def context_for(self, event: Event, pipelines: Sequence[Pipeline]) -> RunContext:
        env: Dict[str, str] = {
            "BUILD_ID": event.build_id,
            "REVISION_REF": event.revision.ref,
            "REVISION_COMMIT": event.revision.commit,
        }
        # only release events and pushes carry a ref in the payload; other
        # payloads are opaque and never parsed here
        if event.type in (RELEASE, PUSH):
            tag = release_tag(event)
        else:
            tag = tag_name(event.revision.ref)
        if tag:
            env["RELEASE_TAG"] = tag

        context = RunContext(
            build_id=event.build_id,
            commit=event.revision.commit,
            payload=event.raw_payload(),
            env=env,
            details_url=self.config.details_url,
        )
        self.preflight(pipelines, context)
        return context

    def preflight(self, pipelines: Sequence[Pipeline], context: RunContext) -> None:
        """
        Resolve every secret of every job up front.

        Required secrets that are absent raise ConfigurationError; optional
        jobs with absent secrets are marked to be skipped.
        """
        console = get_console()
        for pipeline in pipelines:
            for job in pipeline.jobs():
                if not job.secrets:
                    continue
                resolved: Dict[str, str] = {}
                for env_name, key in job.secrets.items():
                    if job.skip_without_secrets:
                        value = self.secrets.optional(key)
                        if value is None:
                            context.skip[job.name] = f"no {key} secret found"
                            console.print_info(
                                f"Notification '{job.name}' not sent; no {key} secret found."
                            )
                            break
                        resolved[env_name] = value
                        continue
                    try:
                        resolved[env_name] = self.secrets.get(key)
                    except MissingSecretError as e:
                        raise ConfigurationError(
                            key=key,
                            message=f"Project {self.config.name} must have 'secrets.{key}' set "
                                    f"to run pipeline '{pipeline.name}'",
                        ) from e
                if job.name not in context.skip:
                    context.secret_env[job.name] = resolved

    def run_chain(self, event: Event, pipelines: Sequence[Pipeline], context: RunContext) -> Verdict:
        console = get_console()
        verdict = Verdict(event_type=event.type, build_id=event.build_id)

        remaining: List[Pipeline] = list(pipelines)
        while remaining:
            pipeline = remaining.pop(0)
            run = PipelineRun(
                self.runner,
                Notifier(self.reporter, self.runner),
                context,
                max_workers=self.config.max_workers,
            )
            result = run.execute(pipeline)
            verdict.results.append(result)
            if not result.succeeded:
                verdict.skipped_pipelines = [p.name for p in remaining]
                if remaining:
                    console.print_info(
                        f"Pipeline '{pipeline.name}' failed; not running "
                        f"{', '.join(verdict.skipped_pipelines)}"
                    )
                break

        summary = {r.pipeline: r.state.value for r in verdict.results}
        summary.update({name: "skipped" for name in verdict.skipped_pipelines})
        console.print_verdict(summary, verdict.succeeded)
        return verdict
