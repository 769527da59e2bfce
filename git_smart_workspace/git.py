"""Git backend capability surface and its git CLI implementation."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol, Sequence

from .exceptions import GitCommandError
from .models import Commit, DefaultBranch, Head, Tracking, UpstreamRef


def run_git(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess[str]:
    command = ["git", *args]
    result = subprocess.run(
        command,
        cwd=str(cwd) if cwd else None,
        env=env,
        text=True,
        capture_output=True,
    )
    if check and result.returncode != 0:
        raise GitCommandError(command, result.returncode, stdout=result.stdout, stderr=result.stderr)
    return result


class GitBackend(Protocol):
    """Everything the workspace lifecycle needs from git.

    Mirror arguments are bare clones; worktree arguments are checkouts
    attached to one of them. Failing operations raise GitCommandError.
    """

    def clone_bare(self, url: str, dest: Path) -> None: ...

    def fetch(self, mirror: Path, prune: bool = False) -> None: ...

    def branch_exists(self, mirror: Path, name: str) -> bool: ...

    def ref_exists(self, mirror: Path, ref: str) -> bool:
        """Check a fully qualified ref such as ``refs/remotes/origin/main``."""
        ...

    def default_branch(self, mirror: Path) -> str: ...

    def worktree_add(self, mirror: Path, path: Path, branch: str, start_point: str) -> None: ...

    def worktree_add_existing(self, mirror: Path, path: Path, ref: str) -> None: ...

    def worktree_add_detached(self, mirror: Path, path: Path, ref: str) -> None: ...

    def worktree_remove(self, mirror: Path, path: Path) -> None: ...

    def branch_delete(self, mirror: Path, name: str) -> None: ...

    def branch_is_merged(self, mirror: Path, branch: str, into: str) -> bool: ...

    def changed_file_count(self, worktree: Path) -> int: ...

    def ahead_count(self, worktree: Path) -> int: ...

    def resolve_upstream_ref(self, worktree: Path) -> UpstreamRef: ...

    def commits_ahead(self, worktree: Path) -> list[Commit]: ...

    def diff(self, worktree: Path, args: Sequence[str] = ()) -> str: ...


class GitCli:
    """GitBackend backed by the ``git`` executable."""

    def clone_bare(self, url: str, dest: Path) -> None:
        run_git(["clone", "--bare", url, str(dest)])
        # Bare clones map remote heads onto local heads; track them under
        # refs/remotes/origin like a regular clone instead.
        run_git(["config", "remote.origin.fetch", "+refs/heads/*:refs/remotes/origin/*"], cwd=dest)
        run_git(["fetch", "origin"], cwd=dest)
        run_git(["remote", "set-head", "origin", "--auto"], cwd=dest, check=False)

    def fetch(self, mirror: Path, prune: bool = False) -> None:
        args = ["fetch", "origin"]
        if prune:
            args.append("--prune")
        run_git(args, cwd=mirror)

    def branch_exists(self, mirror: Path, name: str) -> bool:
        return self.ref_exists(mirror, f"refs/heads/{name}")

    def ref_exists(self, mirror: Path, ref: str) -> bool:
        result = run_git(["rev-parse", "--verify", "--quiet", ref], cwd=mirror, check=False)
        return result.returncode == 0

    def default_branch(self, mirror: Path) -> str:
        result = run_git(["symbolic-ref", "refs/remotes/origin/HEAD"], cwd=mirror, check=False)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip().removeprefix("refs/remotes/origin/")
        result = run_git(["symbolic-ref", "HEAD"], cwd=mirror, check=False)
        head = result.stdout.strip()
        if result.returncode == 0 and head.startswith("refs/heads/"):
            branch = head.removeprefix("refs/heads/")
            if self.branch_exists(mirror, branch) or self.ref_exists(mirror, f"refs/remotes/origin/{branch}"):
                return branch
        for fallback in ("main", "master"):
            if self.branch_exists(mirror, fallback):
                return fallback
        raise GitCommandError(
            ["git", "symbolic-ref", "refs/remotes/origin/HEAD"],
            result.returncode or 1,
            stderr="unable to detect the default branch and neither 'main' nor 'master' exist",
        )

    def worktree_add(self, mirror: Path, path: Path, branch: str, start_point: str) -> None:
        run_git(["worktree", "add", "--no-track", "-b", branch, str(path), start_point], cwd=mirror)

    def worktree_add_existing(self, mirror: Path, path: Path, ref: str) -> None:
        run_git(["worktree", "add", str(path), ref], cwd=mirror)

    def worktree_add_detached(self, mirror: Path, path: Path, ref: str) -> None:
        run_git(["worktree", "add", "--detach", str(path), ref], cwd=mirror)

    def worktree_remove(self, mirror: Path, path: Path) -> None:
        run_git(["worktree", "remove", "--force", str(path)], cwd=mirror)

    def branch_delete(self, mirror: Path, name: str) -> None:
        run_git(["branch", "-D", "--", name], cwd=mirror)

    def branch_is_merged(self, mirror: Path, branch: str, into: str) -> bool:
        result = run_git(["merge-base", "--is-ancestor", branch, into], cwd=mirror, check=False)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise GitCommandError(
            ["git", "merge-base", "--is-ancestor", branch, into],
            result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def changed_file_count(self, worktree: Path) -> int:
        output = run_git(["status", "--porcelain"], cwd=worktree).stdout
        return len([line for line in output.splitlines() if line.strip()])

    def ahead_count(self, worktree: Path) -> int:
        range_ = self._ahead_range(worktree)
        if range_ is None:
            return 0
        output = run_git(["rev-list", "--count", range_], cwd=worktree).stdout.strip()
        return int(output or 0)

    def commits_ahead(self, worktree: Path) -> list[Commit]:
        range_ = self._ahead_range(worktree)
        if range_ is None:
            return []
        output = run_git(["log", "--format=%H%x00%ct%x00%s", range_], cwd=worktree).stdout
        commits: list[Commit] = []
        for line in output.splitlines():
            parts = line.split("\0", 2)
            if len(parts) < 3:
                continue
            sha, timestamp, subject = parts
            commits.append(Commit(sha=sha, timestamp=int(timestamp or 0), subject=subject))
        return commits

    def diff(self, worktree: Path, args: Sequence[str] = ()) -> str:
        return run_git(["diff", *args], cwd=worktree).stdout.rstrip("\n")

    def resolve_upstream_ref(self, worktree: Path) -> UpstreamRef:
        result = run_git(
            ["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}"],
            cwd=worktree,
            check=False,
        )
        if result.returncode == 0 and result.stdout.strip():
            return Tracking()
        # A worktree's own HEAD is the workspace branch, so the default
        # branch is read from the shared repository instead.
        try:
            return DefaultBranch(self.default_branch(self._common_dir(worktree)))
        except GitCommandError:
            return Head()

    def _ahead_range(self, worktree: Path) -> str | None:
        upstream = self.resolve_upstream_ref(worktree)
        if isinstance(upstream, Tracking):
            return "@{upstream}..HEAD"
        if isinstance(upstream, DefaultBranch):
            base = upstream.name
            if self.ref_exists(worktree, f"refs/remotes/origin/{base}"):
                base = f"origin/{base}"
            return f"{base}..HEAD"
        return None

    def _common_dir(self, worktree: Path) -> Path:
        output = run_git(["rev-parse", "--git-common-dir"], cwd=worktree).stdout.strip()
        path = Path(output)
        if not path.is_absolute():
            path = worktree / path
        return path.resolve()


__all__ = ["run_git", "GitBackend", "GitCli"]
