# workflows/build.py
from __future__ import annotations

from typing import List

from ..config import ProjectConfig
from ..model import (
    CheckSpec,
    CheckStage,
    JobDescriptor,
    JobFlags,
    JobStage,
    ParallelGroup,
    Pipeline,
    SequentialGroup,
)


# ---------------------------------------------------------------------
# Build jobs
# ---------------------------------------------------------------------

def gopath_prelude(config: ProjectConfig) -> List[str]:
    """Move the checked out source into GOPATH so vendor/ works as desired."""
    return [
        f"mkdir -p {config.local_path}",
        f"cp -a /src/* {config.local_path}",
        f"cp -a /src/.git {config.local_path}",
        f"cd {config.local_path}",
    ]


def go_job(config: ProjectConfig, name: str, *targets: str) -> JobDescriptor:
    return JobDescriptor(
        name=name,
        image=config.build_image,
        tasks=gopath_prelude(config) + [f"make {t}" for t in targets],
        env={"DEST_PATH": config.local_path, "GOPATH": config.gopath},
    )


def build_job(config: ProjectConfig) -> JobDescriptor:
    """The one-stop build: bootstrap, dependency validation, lint, unit tests."""
    return go_job(config, f"{config.name}-build", "bootstrap", "dep-validate", "lint", "test")


def edge_publish_job(config: ProjectConfig) -> JobDescriptor:
    image = config.image_repository
    return JobDescriptor(
        name=f"{config.name}-publish-edge",
        image=config.docker_image,
        tasks=[
            "dockerd-entrypoint.sh > /dev/null 2>&1 &",
            "sleep 20",
            "cd /src",
            f'echo "$DOCKER_PASSWORD" | docker login {config.registry} -u "$DOCKER_USER" --password-stdin',
            f"docker build -t {image}:edge .",
            f"docker push {image}:edge",
        ],
        flags=JobFlags(privileged=True),
        secrets={"DOCKER_USER": "dockerUser", "DOCKER_PASSWORD": "dockerPassword"},
    )


# ---------------------------------------------------------------------
# Pipelines
# ---------------------------------------------------------------------

def test_pipeline(config: ProjectConfig) -> Pipeline:
    return Pipeline("test", SequentialGroup((JobStage(build_job(config)),)))


def edge_pipeline(config: ProjectConfig) -> Pipeline:
    """Default-branch pushes: build and test, then publish the edge image."""
    return Pipeline(
        "edge",
        SequentialGroup((
            JobStage(build_job(config)),
            JobStage(edge_publish_job(config)),
        )),
    )


def checks_pipeline(config: ProjectConfig) -> Pipeline:
    """
    The check suite. Lint and tests report independently and run in
    parallel; example validation only runs once both passed.
    """
    lint = CheckStage(
        go_job(config, "lint", "bootstrap", "dep-validate", "lint"),
        CheckSpec(
            name="lint",
            title="Lint",
            summary="Running dependency validation and linters for {commit}",
            text="This check ensures vendored dependencies and linting pass.",
        ),
    )
    tests = CheckStage(
        go_job(config, "tests", "bootstrap", "test"),
        CheckSpec(
            name="tests",
            title="Run Tests",
            summary="Running the test targets for {commit}",
            text="This test will ensure build, linting and tests all pass.",
        ),
    )
    validate = CheckStage(
        go_job(config, "validate-examples", "bootstrap", "build", "validate-examples"),
        CheckSpec(
            name="validate-examples",
            title="Validate Examples",
            summary="Validating example bundles for {commit}",
            text="Runs only after lint and tests have passed.",
        ),
    )
    return Pipeline(
        "checks",
        SequentialGroup((ParallelGroup((lint, tests)), validate), halt_on_failure=True),
    )
