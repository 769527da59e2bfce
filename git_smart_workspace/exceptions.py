"""Custom error hierarchy for git-smart-workspace."""

from __future__ import annotations

from typing import Sequence


class WorkspaceError(RuntimeError):
    """Base error for the CLI."""


class MissingEnvError(WorkspaceError):
    """Raised when the environment does not allow resolving the data roots."""


class InvalidNameError(WorkspaceError):
    """Raised when a workspace name is not usable as a directory name."""


class AlreadyExistsError(WorkspaceError):
    """Raised when a workspace, mirror or worktree path is already present."""


class IdentityParseError(WorkspaceError):
    """Raised when a repository identity or token cannot be resolved."""


class GitCommandError(WorkspaceError):
    """Raised when an underlying git command fails."""

    def __init__(
        self,
        command: list[str],
        returncode: int,
        *,
        stdout: str | None = None,
        stderr: str | None = None,
    ):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout or ""
        self.stderr = stderr or ""
        message = f"git command failed (exit {returncode}): {' '.join(command)}"
        details = "\n".join(
            section
            for section in (self.stdout.strip(), self.stderr.strip())
            if section
        )
        if details:
            message = f"{message}\n{details}"
        super().__init__(message)


class BackendError(WorkspaceError):
    """A git backend failure annotated with the repository and operation."""

    def __init__(self, identity: str, operation: str, detail: str):
        self.identity = identity
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} for {identity}: {detail}")


class MirrorNotFoundError(BackendError):
    """Raised when a workspace references a repository with no local mirror."""

    def __init__(self, identity: str, path: str):
        self.path = path
        super().__init__(
            identity,
            "resolving mirror",
            f"no mirror at {path}. Run 'git-smart-workspace clone <url>' first.",
        )


class NotInWorkspaceError(WorkspaceError):
    """Raised when no metadata file is found walking up from a directory."""


class WorkspaceNotFoundError(WorkspaceError):
    """Raised when a named workspace has no metadata on disk."""


class MetadataError(WorkspaceError):
    """Raised when a workspace metadata file cannot be parsed."""


class PendingChangesError(WorkspaceError):
    """Raised when worktrees hold uncommitted or unpushed work."""

    def __init__(self, workspace: str, repos: Sequence[str]):
        self.workspace = workspace
        self.repos = sorted(repos)
        listing = "".join(f"\n  - {repo}" for repo in self.repos)
        super().__init__(
            f"workspace {workspace!r} has pending changes:{listing}\n\nUse --force to remove anyway"
        )


class UnmergedBranchError(WorkspaceError):
    """Raised when the workspace branch is not merged into a mirror's default branch."""

    def __init__(
        self,
        workspace: str,
        branch: str,
        repos: Sequence[str],
        fetch_failures: Sequence[str] = (),
    ):
        self.workspace = workspace
        self.branch = branch
        self.repos = sorted(repos)
        self.fetch_failures = sorted(fetch_failures)
        listing = "".join(f"\n  - {repo}" for repo in self.repos)
        message = (
            f"workspace {workspace!r}: branch {branch!r} is not merged into the default branch of:{listing}"
        )
        if self.fetch_failures:
            message += (
                "\n\nnote: fetching failed for "
                + ", ".join(self.fetch_failures)
                + "; the merge check may be based on stale refs"
            )
        message += "\n\nUse --force to remove anyway"
        super().__init__(message)


def error_detail(exc: BaseException) -> str:
    """One-line description of a failure, preferring git's own stderr."""
    if isinstance(exc, GitCommandError):
        lines = [line.strip() for line in exc.stderr.splitlines() if line.strip()]
        if lines:
            return lines[-1]
    text = str(exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__


__all__ = [
    "WorkspaceError",
    "MissingEnvError",
    "InvalidNameError",
    "AlreadyExistsError",
    "IdentityParseError",
    "GitCommandError",
    "BackendError",
    "MirrorNotFoundError",
    "NotInWorkspaceError",
    "WorkspaceNotFoundError",
    "MetadataError",
    "PendingChangesError",
    "UnmergedBranchError",
    "error_detail",
]
