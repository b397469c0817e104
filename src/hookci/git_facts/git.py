# git.py
# Small, focused wrapper around the Git CLI.
# The CLI uses it to fill in the revision of a locally triggered event, so
# nothing else needs to call subprocess("git ...") directly.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional

from ..events import Revision


def _git(args: list[str], cwd: Optional[str] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Args:
        args: List of git arguments (e.g. ["rev-parse", "HEAD"])
        cwd: Optional working directory in which to run the git command.

    Returns:
        Stdout from the git command with surrounding whitespace removed.

    Raises:
        subprocess.CalledProcessError: git exited non-zero.
        FileNotFoundError: git is not installed.
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=cwd,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def repo_root(cwd: Optional[str] = None) -> Path:
    """Absolute path to the root of the current Git repository."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def head_sha(cwd: Optional[str] = None) -> str:
    """Full SHA of the current HEAD commit."""
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def current_ref(cwd: Optional[str] = None) -> str:
    """
    The symbolic ref HEAD points at (e.g. refs/heads/main).

    On a detached HEAD that sits exactly on a tag, the tag ref is returned
    instead; otherwise the bare commit SHA.
    """
    try:
        return _git(["symbolic-ref", "-q", "HEAD"], cwd=cwd)
    except subprocess.CalledProcessError:
        pass
    try:
        tag = _git(["describe", "--tags", "--exact-match", "HEAD"], cwd=cwd)
        return f"refs/tags/{tag}"
    except subprocess.CalledProcessError:
        return head_sha(cwd=cwd)


def local_revision(cwd: Optional[str] = None) -> Revision:
    """
    Revision of the working copy, or an empty one outside a repository.
    """
    try:
        return Revision(ref=current_ref(cwd=cwd), commit=head_sha(cwd=cwd))
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Revision()
