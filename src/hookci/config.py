# config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

from .errors import MissingSecretError


# semantic-version-like tag, optional leading "v" and pre-release/build suffix
SEMVER_TAG_PATTERN = r"^v?\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"


@dataclass(frozen=True)
class ProjectConfig:
    """
    Everything the routing table and the pipelines are built from.

    Constructed once at process start and passed explicitly to the router
    and orchestrator.
    """
    org: str = "deis"
    name: str = "duffle"

    build_image: str = "golang:1.11"
    gopath: str = "/go"
    check_image: str = "technosophos/brigade-github-check-run:latest"
    slack_image: str = "technosophos/slack-notify:latest"
    docker_image: str = "docker:stable-dind"

    default_branch: str = "main"
    release_tag_pattern: str = SEMVER_TAG_PATTERN
    chat_command: str = "/hookci run"

    registry: str = "docker.io"
    details_url: Optional[str] = None
    max_workers: Optional[int] = None

    @property
    def repo(self) -> str:
        return f"{self.org}/{self.name}"

    @property
    def local_path(self) -> str:
        return f"{self.gopath}/src/github.com/{self.org}/{self.name}"

    @property
    def image_repository(self) -> str:
        return f"{self.registry}/{self.org}/{self.name}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ProjectConfig":
        """Read HOOKCI_* variables; anything unset keeps its default."""
        env = os.environ if environ is None else environ
        kwargs = {}
        for key, attr in (
            ("HOOKCI_ORG", "org"),
            ("HOOKCI_PROJECT", "name"),
            ("HOOKCI_BUILD_IMAGE", "build_image"),
            ("HOOKCI_GOPATH", "gopath"),
            ("HOOKCI_CHECK_IMAGE", "check_image"),
            ("HOOKCI_SLACK_IMAGE", "slack_image"),
            ("HOOKCI_DOCKER_IMAGE", "docker_image"),
            ("HOOKCI_DEFAULT_BRANCH", "default_branch"),
            ("HOOKCI_RELEASE_TAG_PATTERN", "release_tag_pattern"),
            ("HOOKCI_CHAT_COMMAND", "chat_command"),
            ("HOOKCI_REGISTRY", "registry"),
            ("HOOKCI_DETAILS_URL", "details_url"),
        ):
            if env.get(key):
                kwargs[attr] = env[key]
        if env.get("HOOKCI_MAX_WORKERS"):
            kwargs["max_workers"] = int(env["HOOKCI_MAX_WORKERS"])
        return cls(**kwargs)


# ---------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------

class SecretsProvider(Protocol):
    def get(self, key: str) -> str:
        ...

    def optional(self, key: str) -> Optional[str]:
        ...


class StaticSecrets:
    """Secrets from an in-memory mapping (project settings, tests)."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values = dict(values or {})

    def get(self, key: str) -> str:
        value = self._values.get(key)
        if not value:
            raise MissingSecretError(key)
        return value

    def optional(self, key: str) -> Optional[str]:
        return self._values.get(key) or None


class EnvSecrets:
    """
    Secrets from environment variables.

    `get("ghToken")` reads HOOKCI_SECRET_ghToken.
    """

    def __init__(self, prefix: str = "HOOKCI_SECRET_", environ: Optional[Mapping[str, str]] = None):
        self.prefix = prefix
        self._environ = environ

    def _env(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def get(self, key: str) -> str:
        value = self._env().get(self.prefix + key)
        if not value:
            raise MissingSecretError(key)
        return value

    def optional(self, key: str) -> Optional[str]:
        return self._env().get(self.prefix + key) or None
