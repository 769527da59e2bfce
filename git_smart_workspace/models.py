"""Shared dataclasses used throughout the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Union


@dataclass(frozen=True, slots=True)
class Paths:
    data_dir: Path
    mirrors_dir: Path
    workspaces_dir: Path
    branch_prefix: str | None = None


@dataclass(frozen=True, slots=True)
class Identity:
    """A remote repository addressed as ``host/owner/repo``."""

    host: str
    owner: str
    repo: str

    @property
    def identity(self) -> str:
        return f"{self.host}/{self.owner}/{self.repo}"

    @property
    def mirror_path(self) -> Path:
        return Path(self.host, *self.owner.split("/"), f"{self.repo}.git")

    def __str__(self) -> str:
        return self.identity


@dataclass(frozen=True, slots=True)
class Active:
    """Workspace member that tracks the shared workspace branch."""


@dataclass(frozen=True, slots=True)
class Context:
    """Workspace member pinned to a branch, tag or commit."""

    ref: str

    def __post_init__(self) -> None:
        if not self.ref:
            raise ValueError("a context repo needs a non-empty ref")


RepoRef = Union[Active, Context]


def repo_ref_from_token(ref: str | None) -> RepoRef:
    """Map the ``@ref`` part of a repo token to a RepoRef."""
    if ref:
        return Context(ref)
    return Active()


@dataclass(slots=True)
class WorkspaceMetadata:
    name: str
    branch: str
    repos: dict[str, RepoRef]
    created: datetime

    def __post_init__(self) -> None:
        self.repos = dict(sorted(self.repos.items()))

    def active_identities(self) -> list[str]:
        return [identity for identity, ref in self.repos.items() if isinstance(ref, Active)]

    def context_identities(self) -> list[str]:
        return [identity for identity, ref in self.repos.items() if isinstance(ref, Context)]

    @staticmethod
    def dir_name(identity: str) -> str:
        return identity.rstrip("/").rsplit("/", 1)[-1]


# Attach plans, one per worktree attach strategy.


@dataclass(frozen=True, slots=True)
class NewBranch:
    branch: str
    start_point: str


@dataclass(frozen=True, slots=True)
class ExistingLocal:
    branch: str


@dataclass(frozen=True, slots=True)
class ExistingRemote:
    ref: str


@dataclass(frozen=True, slots=True)
class Detached:
    ref: str


AttachPlan = Union[NewBranch, ExistingLocal, ExistingRemote, Detached]


# Where a worktree's "ahead" commits are counted from.


@dataclass(frozen=True, slots=True)
class Tracking:
    pass


@dataclass(frozen=True, slots=True)
class DefaultBranch:
    name: str


@dataclass(frozen=True, slots=True)
class Head:
    pass


UpstreamRef = Union[Tracking, DefaultBranch, Head]


@dataclass(slots=True)
class FetchResult:
    identity: str
    shortname: str
    ok: bool
    error: str | None = None


@dataclass(slots=True)
class RemoveReport:
    name: str
    removed_worktrees: list[str] = field(default_factory=list)
    deleted_branches: list[str] = field(default_factory=list)
    fetch_failures: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class RepoStatus:
    identity: str
    dir_name: str
    ref: str | None
    changed: int = 0
    ahead: int = 0
    error: str | None = None

    @property
    def summary(self) -> str:
        if self.error:
            return f"ERROR: {self.error}"
        if self.ahead == 0 and self.changed == 0:
            return "clean"
        parts = []
        if self.ahead:
            parts.append(f"{self.ahead} ahead")
        if self.changed:
            parts.append(f"{self.changed} modified")
        return ", ".join(parts)


@dataclass(frozen=True, slots=True)
class Commit:
    sha: str
    timestamp: int
    subject: str

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass(slots=True)
class RepoLog:
    """Commits a workspace repo has on top of its upstream."""

    identity: str
    dir_name: str
    commits: list[Commit] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True)
class RepoDiff:
    dir_name: str
    output: str = ""
    error: str | None = None


__all__ = [
    "Paths",
    "Identity",
    "Active",
    "Context",
    "RepoRef",
    "repo_ref_from_token",
    "WorkspaceMetadata",
    "NewBranch",
    "ExistingLocal",
    "ExistingRemote",
    "Detached",
    "AttachPlan",
    "Tracking",
    "DefaultBranch",
    "Head",
    "UpstreamRef",
    "FetchResult",
    "RemoveReport",
    "RepoStatus",
    "Commit",
    "RepoLog",
    "RepoDiff",
]
