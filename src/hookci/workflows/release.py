# workflows/release.py
from __future__ import annotations

from ..config import ProjectConfig
from ..model import JobDescriptor, JobFlags, JobStage, Pipeline, SequentialGroup
from .build import gopath_prelude


def release_job(config: ProjectConfig) -> JobDescriptor:
    """
    Cross-compile binaries for the tag in $RELEASE_TAG and upload them to
    a GitHub release, creating the release if it does not exist yet.
    """
    tasks = [
        "go get github.com/aktau/github-release",
        "cd /src",
        'git checkout "$RELEASE_TAG"',
        *gopath_prelude(config),
        "make bootstrap",
        "make build-release",
        'last_tag=$(git describe --tags "$RELEASE_TAG"^ --abbrev=0 --always)',
        'github-release release -t "$RELEASE_TAG" -n "$GITHUB_REPO $RELEASE_TAG" '
        "-d \"$(git log --no-merges --pretty=format:'- %s %H (%aN)' HEAD ^$last_tag)\" "
        '|| echo "release $RELEASE_TAG exists"',
        'for bin in ./bin/*; do github-release upload -f "$bin" -n "$(basename "$bin")" -t "$RELEASE_TAG"; done',
    ]
    return JobDescriptor(
        name=f"{config.name}-release",
        image=config.build_image,
        tasks=tasks,
        env={
            "GITHUB_USER": config.org,
            "GITHUB_REPO": config.name,
            "GOPATH": config.gopath,
        },
        secrets={"GITHUB_TOKEN": "ghToken"},
    )


def release_image_job(config: ProjectConfig) -> JobDescriptor:
    image = config.image_repository
    return JobDescriptor(
        name=f"{config.name}-publish-image",
        image=config.docker_image,
        tasks=[
            "dockerd-entrypoint.sh > /dev/null 2>&1 &",
            "sleep 20",
            "cd /src",
            'git checkout "$RELEASE_TAG"',
            f'echo "$DOCKER_PASSWORD" | docker login {config.registry} -u "$DOCKER_USER" --password-stdin',
            f'docker build -t {image}:"$RELEASE_TAG" -t {image}:latest .',
            f'docker push {image}:"$RELEASE_TAG"',
            f"docker push {image}:latest",
        ],
        flags=JobFlags(privileged=True, force_pull=True),
        secrets={"DOCKER_USER": "dockerUser", "DOCKER_PASSWORD": "dockerPassword"},
    )


def slack_notify_job(config: ProjectConfig, title: str, message: str) -> JobDescriptor:
    """
    Chat notification. Optional: without a SLACK_WEBHOOK secret the job is
    skipped rather than failed.

    `message` is expanded by the shell, so it may reference $RELEASE_TAG.
    """
    return JobDescriptor(
        name=f"{config.name}-slack-notify",
        image=config.slack_image,
        tasks=[f'export SLACK_MESSAGE="{message}"', "/slack-notify"],
        env={
            "SLACK_USERNAME": f"{config.name}-ci",
            "SLACK_TITLE": title,
            "SLACK_COLOR": "#00ff00",
        },
        secrets={"SLACK_WEBHOOK": "SLACK_WEBHOOK"},
        skip_without_secrets=True,
    )


def release_pipeline(config: ProjectConfig) -> Pipeline:
    """Binary packaging, then image publish. Both need release credentials."""
    return Pipeline(
        "release",
        SequentialGroup((
            JobStage(release_job(config)),
            JobStage(release_image_job(config)),
        )),
    )


def release_notify_pipeline(config: ProjectConfig) -> Pipeline:
    url = f"https://github.com/{config.repo}/releases/tag/$RELEASE_TAG"
    return Pipeline(
        "release-notify",
        SequentialGroup((
            JobStage(slack_notify_job(
                config,
                f"{config.name.capitalize()} Release",
                f"$RELEASE_TAG release now on GitHub! <{url}>",
            )),
        )),
    )
