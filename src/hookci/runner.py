# runner.py
from __future__ import annotations

import os
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Dict, List, Protocol

from .errors import ExecutionError
from .model import JobDescriptor, JobResult
from .ui.console import get_console


# keep only the tail of very chatty jobs
OUTPUT_LIMIT = 4000

TOOL_HINTS = {
    "docker": "Install Docker and ensure the daemon is running.",
}


class JobRunner(Protocol):
    """Executes a job descriptor. The orchestration core never looks past this."""

    def run(self, job: JobDescriptor) -> JobResult:
        ...

    def logs(self, job: JobDescriptor) -> str:
        ...


def _tail(text: str | None) -> str:
    text = text or ""
    return text[-OUTPUT_LIMIT:]


class _LogBook:
    """Last captured log text per job name."""

    def __init__(self) -> None:
        self._logs: Dict[str, str] = {}
        self._lock = threading.Lock()

    def record(self, name: str, text: str) -> None:
        with self._lock:
            self._logs[name] = text

    def get(self, name: str) -> str:
        with self._lock:
            return self._logs.get(name, "")


def _complete(job: JobDescriptor, proc: subprocess.CompletedProcess, book: _LogBook) -> JobResult:
    output = _tail(proc.stdout)
    logs = _tail((proc.stdout or "") + (proc.stderr or ""))
    book.record(job.name, logs)
    if proc.returncode != 0:
        raise ExecutionError(
            job=job.name,
            cause="job exited non-zero",
            logs=logs,
            exit_code=proc.returncode,
        )
    return JobResult(job=job.name, succeeded=True, output=output, logs=logs)


class LocalRunner:
    """
    Runs the job's task script with /bin/sh on this host.

    The image is ignored; this is the runner for trying a
    pipeline against a checkout.
    """

    def __init__(self, workdir: str | Path = "."):
        self.workdir = Path(workdir).resolve()
        self._book = _LogBook()

    def run(self, job: JobDescriptor) -> JobResult:
        if not self.workdir.exists():
            raise ExecutionError(job=job.name, cause=f"workdir not found: {self.workdir}")

        env = os.environ.copy()
        env.update(job.env)

        try:
            proc = subprocess.run(
                ["/bin/sh", "-e", "-c", job.script()],
                cwd=str(self.workdir),
                env=env,
                text=True,
                capture_output=True,
            )
        except OSError as e:
            raise ExecutionError(job=job.name, cause=f"could not start shell: {e}") from e
        return _complete(job, proc, self._book)

    def logs(self, job: JobDescriptor) -> str:
        return self._book.get(job.name)


class DockerRunner:
    """Runs the job's task script inside `docker run` with the workdir mounted at /src."""

    container_src = "/src"

    def __init__(self, workdir: str | Path = ".", docker: str = "docker"):
        self.workdir = Path(workdir).resolve()
        self.docker = docker
        self._book = _LogBook()

    def command(self, job: JobDescriptor) -> List[str]:
        cmd = [self.docker, "run", "--rm"]
        if job.flags.privileged:
            cmd.append("--privileged")
        if job.flags.force_pull:
            cmd.extend(["--pull", "always"])
        cmd.extend(["-v", f"{self.workdir}:{self.container_src}", "-w", self.container_src])
        for key, value in job.env.items():
            cmd.extend(["-e", f"{key}={value}"])
        cmd.append(job.image)
        cmd.extend(["sh", "-e", "-c", job.script()])
        return cmd

    def run(self, job: JobDescriptor) -> JobResult:
        if shutil.which(self.docker) is None:
            raise ExecutionError(job=job.name, cause=f"docker is not available. {TOOL_HINTS['docker']}")

        try:
            proc = subprocess.run(
                self.command(job),
                shell=False,
                text=True,
                capture_output=True,
            )
        except OSError as e:
            raise ExecutionError(job=job.name, cause=f"could not start docker: {e}") from e
        return _complete(job, proc, self._book)

    def logs(self, job: JobDescriptor) -> str:
        return self._book.get(job.name)


class DryRunRunner:
    """Prints what would run and reports success without executing anything."""

    def __init__(self) -> None:
        self.scheduled: List[str] = []

    def run(self, job: JobDescriptor) -> JobResult:
        console = get_console()
        self.scheduled.append(job.name)
        console.print_info(f"[{job.name}] would run in {job.image}")
        for task in job.tasks:
            console.print_debug(f"[{job.name}] $ {task}")
        return JobResult(job=job.name, succeeded=True, output="(dry run)")

    def logs(self, job: JobDescriptor) -> str:
        return ""
