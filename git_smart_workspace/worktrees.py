"""Choosing and running the attach strategy for one workspace worktree."""

from __future__ import annotations

from pathlib import Path

from .exceptions import AlreadyExistsError
from .git import GitBackend
from .models import (
    Active,
    AttachPlan,
    Context,
    Detached,
    ExistingLocal,
    ExistingRemote,
    NewBranch,
    RepoRef,
)


def plan_attach(backend: GitBackend, mirror: Path, branch: str, pinned: RepoRef) -> AttachPlan:
    """Decide how a worktree for ``mirror`` should be attached.

    Context repos reuse a local branch, then a remote-tracking branch (so no
    local branch is created for a read-mostly checkout), and otherwise treat
    the ref as a tag or commit and detach. Active repos reuse the workspace
    branch when the mirror already has it, or create it from the default
    branch, preferring ``origin/<default>`` when that ref exists.
    """

    if isinstance(pinned, Context):
        ref = pinned.ref
        if backend.branch_exists(mirror, ref):
            return ExistingLocal(ref)
        if backend.ref_exists(mirror, f"refs/remotes/origin/{ref}"):
            return ExistingRemote(f"origin/{ref}")
        return Detached(ref)

    if backend.branch_exists(mirror, branch):
        return ExistingLocal(branch)
    default = backend.default_branch(mirror)
    if backend.ref_exists(mirror, f"refs/remotes/origin/{default}"):
        return NewBranch(branch, f"origin/{default}")
    return NewBranch(branch, default)


def execute_plan(backend: GitBackend, mirror: Path, path: Path, plan: AttachPlan) -> None:
    if isinstance(plan, NewBranch):
        backend.worktree_add(mirror, path, plan.branch, plan.start_point)
    elif isinstance(plan, ExistingLocal):
        backend.worktree_add_existing(mirror, path, plan.branch)
    elif isinstance(plan, ExistingRemote):
        backend.worktree_add_existing(mirror, path, plan.ref)
    elif isinstance(plan, Detached):
        backend.worktree_add_detached(mirror, path, plan.ref)
    else:  # pragma: no cover - exhaustive over AttachPlan
        raise TypeError(f"unknown attach plan: {plan!r}")


def attach_worktree(
    backend: GitBackend,
    mirror: Path,
    path: Path,
    branch: str,
    pinned: RepoRef | None = None,
) -> AttachPlan:
    if path.exists():
        raise AlreadyExistsError(f"Worktree path already exists: {path}")
    plan = plan_attach(backend, mirror, branch, pinned if pinned is not None else Active())
    execute_plan(backend, mirror, path, plan)
    return plan


def describe_plan(plan: AttachPlan) -> str:
    if isinstance(plan, NewBranch):
        return f"new branch {plan.branch} from {plan.start_point}"
    if isinstance(plan, ExistingLocal):
        return f"branch {plan.branch}"
    if isinstance(plan, ExistingRemote):
        return plan.ref
    return f"{plan.ref} (detached)"


__all__ = ["plan_attach", "execute_plan", "attach_worktree", "describe_plan"]
