"""High-level orchestration for workspace lifecycle operations."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, Mapping, NamedTuple, Sequence

from rich.console import Console
from rich.markup import escape

from .config import branch_for
from .exceptions import (
    AlreadyExistsError,
    BackendError,
    GitCommandError,
    IdentityParseError,
    UnmergedBranchError,
    WorkspaceError,
    error_detail,
)
from .fetch import failed, fetch_mirrors
from .git import GitBackend
from .identity import parse_identity, parse_repo_token, resolve_identity, validate_workspace_name
from .metadata import METADATA_FILE, detect, load_metadata, save_metadata
from .mirrors import MirrorStore
from .models import (
    Active,
    Context,
    Identity,
    Paths,
    RemoveReport,
    RepoDiff,
    RepoLog,
    RepoRef,
    RepoStatus,
    WorkspaceMetadata,
    repo_ref_from_token,
)
from .worktrees import attach_worktree, describe_plan


class _Member(NamedTuple):
    identity: str
    parsed: Identity
    mirror: Path
    active: bool


@dataclass
class WorkspaceService:
    """Create, extend and remove workspaces.

    Nothing is cached between calls: every operation re-reads the metadata
    file, so edits made between invocations are honoured. There is no
    locking; concurrent operations on one workspace or mirror can race.
    """

    paths: Paths
    backend: GitBackend
    console: Console = field(default_factory=lambda: Console(stderr=True))

    @property
    def mirrors(self) -> MirrorStore:
        return MirrorStore(self.paths.mirrors_dir, self.backend)

    def workspace_dir(self, name: str) -> Path:
        return self.paths.workspaces_dir / name

    def locate(self, name: str | None, cwd: Path | None = None) -> Path:
        """Directory of the named workspace, or of the one containing ``cwd``."""
        if name:
            validate_workspace_name(name)
            return self.workspace_dir(name)
        return detect(cwd or Path.cwd())

    def resolve_tokens(self, tokens: Iterable[str]) -> dict[str, RepoRef]:
        known = self.mirrors.discover()
        refs: dict[str, RepoRef] = {}
        for token in tokens:
            name, ref = parse_repo_token(token)
            if not name:
                raise IdentityParseError(f"invalid repo argument {token!r}")
            identity = resolve_identity(name, known)
            if identity in refs:
                raise IdentityParseError(f"{identity} given more than once (at {token!r})")
            refs[identity] = repo_ref_from_token(ref)
        return refs

    def mirror_pairs(self, identities: Iterable[str]) -> list[tuple[str, Path]]:
        pairs: list[tuple[str, Path]] = []
        for identity in identities:
            try:
                parsed = parse_identity(identity)
            except IdentityParseError as exc:
                self._warn(f"{identity}: {exc}")
                continue
            pairs.append((identity, self.mirrors.dir(parsed)))
        return pairs

    def prefetch(self, identities: Iterable[str], *, prune: bool = False) -> list[str]:
        pairs = [(identity, mirror) for identity, mirror in self.mirror_pairs(identities) if mirror.is_dir()]
        results = fetch_mirrors(self.backend, pairs, prune=prune, console=self.console)
        return failed(results)

    def create(self, name: str, repo_refs: Mapping[str, RepoRef]) -> Path:
        """Create a workspace with one worktree per repo, all or nothing."""

        validate_workspace_name(name)
        ws_dir = self.workspace_dir(name)
        if ws_dir.exists():
            raise AlreadyExistsError(f"workspace {name!r} already exists")
        branch = branch_for(name, self.paths.branch_prefix)
        repos = dict(sorted(repo_refs.items()))
        self.console.print(
            f"Creating workspace {escape(repr(name))} (branch: {escape(branch)}) with {len(repos)} repos..."
        )

        ws_dir.mkdir(parents=True)
        attached: list[tuple[Path, Path]] = []
        try:
            for identity, ref in repos.items():
                attached.append(self._attach(ws_dir, identity, branch, ref))
            meta = WorkspaceMetadata(
                name=name,
                branch=branch,
                repos=repos,
                created=datetime.now(timezone.utc),
            )
            # The metadata file is the commit point of the whole operation.
            save_metadata(ws_dir, meta)
        except Exception:
            self._rollback(ws_dir, attached)
            raise
        return ws_dir

    def add_repos(self, ws_dir: Path, repo_refs: Mapping[str, RepoRef]) -> list[str]:
        """Attach repos not yet in the workspace; returns the identities added.

        A failure stops the loop without undoing earlier additions, which are
        still recorded before the error propagates.
        """

        meta = load_metadata(ws_dir)
        added: list[str] = []
        try:
            for identity, ref in sorted(repo_refs.items()):
                if identity in meta.repos:
                    self.console.print(f"  {escape(identity)} already in workspace, skipping")
                    continue
                self._attach(ws_dir, identity, meta.branch, ref)
                meta.repos[identity] = ref
                added.append(identity)
        finally:
            if added:
                meta.repos = dict(sorted(meta.repos.items()))
                save_metadata(ws_dir, meta)
        return added

    def pending_changes(self, ws_dir: Path) -> list[str]:
        """Directory names of worktrees with changed files or unpushed commits."""

        meta = load_metadata(ws_dir)
        dirty: list[str] = []
        for identity in meta.repos:
            try:
                parsed = parse_identity(identity)
            except IdentityParseError:
                continue
            repo_dir = ws_dir / parsed.repo
            changed = self._count(self.backend.changed_file_count, repo_dir)
            ahead = self._count(self.backend.ahead_count, repo_dir)
            if changed > 0 or ahead > 0:
                dirty.append(parsed.repo)
        return dirty

    def status(self, ws_dir: Path) -> list[RepoStatus]:
        meta = load_metadata(ws_dir)
        statuses: list[RepoStatus] = []
        for identity, ref in meta.repos.items():
            pinned = ref.ref if isinstance(ref, Context) else None
            entry = RepoStatus(identity=identity, dir_name=meta.dir_name(identity), ref=pinned)
            try:
                repo_dir = ws_dir / parse_identity(identity).repo
                entry.changed = self.backend.changed_file_count(repo_dir)
                entry.ahead = self.backend.ahead_count(repo_dir)
            except (WorkspaceError, OSError) as exc:
                entry.error = error_detail(exc)
            statuses.append(entry)
        return statuses

    def log(self, ws_dir: Path) -> list[RepoLog]:
        """Commits ahead of upstream for every Active repo; Context repos are skipped."""

        meta = load_metadata(ws_dir)
        logs: list[RepoLog] = []
        for identity in meta.active_identities():
            entry = RepoLog(identity=identity, dir_name=meta.dir_name(identity))
            try:
                repo_dir = ws_dir / parse_identity(identity).repo
                entry.commits = self.backend.commits_ahead(repo_dir)
            except (WorkspaceError, OSError) as exc:
                entry.error = error_detail(exc)
            logs.append(entry)
        return logs

    def diff(self, ws_dir: Path, args: Sequence[str] = ()) -> list[RepoDiff]:
        """Run ``git diff`` in every repo, keeping only repos with output or errors."""

        meta = load_metadata(ws_dir)
        diffs: list[RepoDiff] = []
        for identity in meta.repos:
            entry = RepoDiff(dir_name=meta.dir_name(identity))
            try:
                entry.output = self.backend.diff(ws_dir / parse_identity(identity).repo, args)
            except (WorkspaceError, OSError) as exc:
                entry.error = error_detail(exc)
            if entry.output or entry.error:
                diffs.append(entry)
        return diffs

    def remove(
        self,
        name: str,
        *,
        force: bool = False,
        fetch: bool = True,
        delete_branches: bool = True,
    ) -> RemoveReport:
        """Remove a workspace, refusing when its branch is not merged.

        Past the merge check nothing aborts: worktree and branch cleanup
        failures become warnings in the returned report.
        """

        validate_workspace_name(name)
        return self.remove_dir(
            self.workspace_dir(name),
            force=force,
            fetch=fetch,
            delete_branches=delete_branches,
        )

    def remove_dir(
        self,
        ws_dir: Path,
        *,
        force: bool = False,
        fetch: bool = True,
        delete_branches: bool = True,
    ) -> RemoveReport:
        meta = load_metadata(ws_dir)
        report = RemoveReport(name=meta.name)
        members = self._members(meta, report)
        active = [member for member in members if member.active]

        if fetch and active:
            present = [(member.identity, member.mirror) for member in active if member.mirror.is_dir()]
            results = fetch_mirrors(self.backend, present, console=self.console)
            report.fetch_failures = failed(results)

        if not force:
            unmerged = self._unmerged(meta.branch, active)
            if unmerged:
                raise UnmergedBranchError(meta.name, meta.branch, unmerged, report.fetch_failures)

        for member in members:
            try:
                self.backend.worktree_remove(member.mirror, ws_dir / member.parsed.repo)
            except (WorkspaceError, OSError) as exc:
                self._warn(f"removing worktree for {member.identity}: {error_detail(exc)}", report)
            else:
                report.removed_worktrees.append(member.parsed.repo)

        if delete_branches:
            for member in active:
                try:
                    if not self.backend.branch_exists(member.mirror, meta.branch):
                        continue
                    self.backend.branch_delete(member.mirror, meta.branch)
                except (WorkspaceError, OSError) as exc:
                    self._warn(f"deleting branch {meta.branch} in {member.identity}: {error_detail(exc)}", report)
                else:
                    report.deleted_branches.append(member.identity)

        try:
            shutil.rmtree(ws_dir)
        except OSError as exc:
            raise WorkspaceError(f"removing workspace directory {ws_dir}: {exc}") from exc
        return report

    def list_all(self) -> list[str]:
        root = self.paths.workspaces_dir
        if not root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in root.iterdir()
            if entry.is_dir() and (entry / METADATA_FILE).is_file()
        )

    def _attach(self, ws_dir: Path, identity: str, branch: str, ref: RepoRef) -> tuple[Path, Path]:
        parsed = parse_identity(identity)
        mirror = self.mirrors.require(parsed)
        target = ws_dir / parsed.repo
        try:
            with self.console.status(f"Adding worktree '{parsed.repo}'…"):
                plan = attach_worktree(self.backend, mirror, target, branch, ref)
        except GitCommandError as exc:
            raise BackendError(identity, "adding worktree", error_detail(exc)) from exc
        self.console.print(f"  {escape(parsed.repo)}: {escape(describe_plan(plan))}")
        return mirror, target

    def _rollback(self, ws_dir: Path, attached: Sequence[tuple[Path, Path]]) -> None:
        for mirror, target in attached:
            try:
                self.backend.worktree_remove(mirror, target)
            except (WorkspaceError, OSError) as exc:
                self._warn(f"cleaning up worktree {target}: {error_detail(exc)}")
        shutil.rmtree(ws_dir, ignore_errors=True)

    def _members(self, meta: WorkspaceMetadata, report: RemoveReport) -> list[_Member]:
        members: list[_Member] = []
        for identity, ref in meta.repos.items():
            try:
                parsed = parse_identity(identity)
            except IdentityParseError:
                self._warn(f"cannot parse {identity}, skipping worktree cleanup", report)
                continue
            members.append(
                _Member(
                    identity=identity,
                    parsed=parsed,
                    mirror=self.mirrors.dir(parsed),
                    active=isinstance(ref, Active),
                )
            )
        return members

    def _unmerged(self, branch: str, active: Sequence[_Member]) -> list[str]:
        unmerged: list[str] = []
        for member in active:
            if not member.mirror.is_dir():
                continue
            try:
                if not self.backend.branch_exists(member.mirror, branch):
                    continue
                default = self.backend.default_branch(member.mirror)
                into = default
                if self.backend.ref_exists(member.mirror, f"refs/remotes/origin/{default}"):
                    into = f"origin/{default}"
                if not self.backend.branch_is_merged(member.mirror, branch, into):
                    unmerged.append(member.parsed.repo)
            except WorkspaceError as exc:
                unmerged.append(f"{member.parsed.repo} (cannot verify: {error_detail(exc)})")
        return unmerged

    def _count(self, counter: Callable[[Path], int], repo_dir: Path) -> int:
        try:
            return counter(repo_dir)
        except (WorkspaceError, OSError):
            return 0

    def _warn(self, message: str, report: RemoveReport | None = None) -> None:
        self.console.print(f"  [yellow]warning:[/yellow] {escape(message)}")
        if report is not None:
            report.warnings.append(message)


__all__ = ["WorkspaceService"]
