"""
Shared fixtures for the hookci test suite.

Jobs never really run here: FakeRunner records what would have been
scheduled and FakeReporter records every check update.
"""
import threading

import pytest

from hookci.config import ProjectConfig, StaticSecrets
from hookci.errors import ExecutionError, NotifyError
from hookci.model import JobResult
from hookci.orchestrator import Orchestrator
from hookci.ui.console import Console, set_console
from hookci.workflows import default_router


ALL_SECRETS = {
    "ghToken": "gh-token",
    "dockerUser": "ci-bot",
    "dockerPassword": "hunter2",
    "SLACK_WEBHOOK": "https://hooks.slack.test/T000",
}


class FakeRunner:
    """Records scheduled jobs; fails the ones named in `fail`."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.calls = []
        self.jobs = {}
        self._lock = threading.Lock()

    def run(self, job):
        with self._lock:
            self.calls.append(job.name)
            self.jobs[job.name] = job
        if job.name in self.fail:
            raise ExecutionError(job=job.name, cause="job exited non-zero", logs=f"{job.name} logs", exit_code=2)
        return JobResult(job=job.name, succeeded=True, output=f"{job.name} output", logs=f"{job.name} logs")

    def logs(self, job):
        return f"{job.name} logs"


class FakeReporter:
    """Records (identity, conclusion, summary, text); raises for conclusions in `fail_on`."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.sent = []
        self._lock = threading.Lock()

    def send(self, state, identity):
        with self._lock:
            self.sent.append((identity, state.conclusion, state.summary, state.text))
        if state.conclusion in self.fail_on:
            raise NotifyError(target=identity, cause="channel down")

    def identities(self):
        return [s[0] for s in self.sent]


@pytest.fixture(autouse=True)
def console():
    c = Console(debug=False)
    set_console(c)
    return c


@pytest.fixture
def config():
    return ProjectConfig()


@pytest.fixture
def router(config):
    return default_router(config)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def reporter():
    return FakeReporter()


@pytest.fixture
def secrets():
    return StaticSecrets(ALL_SECRETS)


@pytest.fixture
def make_orchestrator(config, router):
    def make(runner, reporter=None, secrets=None):
        return Orchestrator(
            config,
            router,
            runner,
            reporter or FakeReporter(),
            secrets if secrets is not None else StaticSecrets(ALL_SECRETS),
        )
    return make
