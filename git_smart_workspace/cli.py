"""Typer CLI entrypoint for git-smart-workspace."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import load_paths
from .exceptions import PendingChangesError, WorkspaceError
from .fetch import failed, fetch_mirrors
from .git import GitCli
from .identity import identity_from_url, parse_identity
from .metadata import load_metadata
from .render import (
    error,
    fetch_payload,
    info,
    log_payload,
    print_json,
    remove_summary,
    render_diffs,
    render_log,
    render_status_table,
    render_workspaces_table,
    status_payload,
    success,
    warning,
    workspace_rows,
)
from .workspaces import WorkspaceService

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Multi-repo workspaces built from shared bare mirrors.",
)


@dataclass(slots=True)
class AppState:
    service: WorkspaceService
    console: Console
    err_console: Console
    verbose: bool = False


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"git-smart-workspace {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show resolved paths and extra detail."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the git-smart-workspace version and exit.",
    ),
) -> None:
    _ = version  # handled via callback
    console = Console()
    err_console = Console(stderr=True)
    try:
        paths = load_paths()
    except WorkspaceError as exc:
        _fail(err_console, exc)
    if verbose:
        err_console.print(f"[dim]mirrors:    {paths.mirrors_dir}[/dim]")
        err_console.print(f"[dim]workspaces: {paths.workspaces_dir}[/dim]")
    service = WorkspaceService(paths, GitCli(), console=err_console)
    ctx.obj = AppState(service=service, console=console, err_console=err_console, verbose=verbose)


def _require_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):  # pragma: no cover
        raise typer.Exit(1)
    return state


@contextmanager
def _errors(state: AppState) -> Iterator[None]:
    try:
        yield
    except WorkspaceError as exc:
        _fail(state.err_console, exc)


@app.command(help="Clone a bare mirror that workspaces can attach to")
def clone(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Remote URL to mirror."),
    identity: str | None = typer.Option(
        None,
        "--identity",
        help="Store the mirror under this host/owner/repo instead of deriving it from the URL.",
    ),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        parsed = parse_identity(identity) if identity else identity_from_url(url)
        with state.err_console.status(f"Cloning {parsed}…"):
            dest = state.service.mirrors.clone(parsed, url)
    success(state.err_console, f"Mirrored {parsed} at {dest}")


@app.command(help="Create a workspace with one worktree per repo")
def new(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Workspace name; also names the workspace branch."),
    repos: list[str] = typer.Argument(..., help="Repos as identity or suffix, optionally NAME@REF to pin."),
    no_fetch: bool = typer.Option(False, "--no-fetch", help="Skip refreshing mirrors before creating."),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        refs = state.service.resolve_tokens(repos)
        if not no_fetch:
            failures = state.service.prefetch(refs)
            if failures:
                warning(state.err_console, f"fetch failed for {', '.join(failures)}; using existing refs")
        ws_dir = state.service.create(name, refs)
    success(state.err_console, f"Workspace {name!r} created at {ws_dir}")


@app.command(help="Add repos to an existing workspace")
def add(
    ctx: typer.Context,
    repos: list[str] = typer.Argument(..., help="Repos as identity or suffix, optionally NAME@REF to pin."),
    workspace: str | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace name (defaults to the workspace containing the current directory).",
    ),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        ws_dir = state.service.locate(workspace)
        refs = state.service.resolve_tokens(repos)
        added = state.service.add_repos(ws_dir, refs)
    if added:
        success(state.err_console, f"Added {len(added)} repo(s) to {ws_dir.name!r}")
    else:
        info(state.err_console, "Nothing to add.")


@app.command(help="Remove a workspace and its worktrees")
def rm(
    ctx: typer.Context,
    name: str | None = typer.Argument(
        None,
        help="Workspace name (defaults to the workspace containing the current directory).",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Remove even with pending changes or an unmerged branch.",
    ),
    no_fetch: bool = typer.Option(False, "--no-fetch", help="Check merge status against existing refs."),
    delete_branches: bool = typer.Option(
        False,
        "--delete-branches",
        help="Also delete the workspace branch from every active repo's mirror.",
    ),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        ws_dir = state.service.locate(name)
        meta = load_metadata(ws_dir)
        if not force:
            dirty = state.service.pending_changes(ws_dir)
            if dirty:
                raise PendingChangesError(meta.name, dirty)
        report = state.service.remove_dir(
            ws_dir,
            force=force,
            fetch=not no_fetch,
            delete_branches=delete_branches,
        )
    remove_summary(report, state.err_console)


@app.command(help="List workspaces")
def ls(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Output JSON for scripting."),
) -> None:
    state = _require_state(ctx)
    names = state.service.list_all()
    rows = workspace_rows(names, load_metadata, state.service.paths.workspaces_dir)
    if as_json:
        print_json(rows)
        return
    if not rows:
        state.console.print("No workspaces found.")
        return
    render_workspaces_table(rows, state.console)


@app.command(help="Show changed files and unpushed commits per repo")
def status(
    ctx: typer.Context,
    name: str | None = typer.Argument(
        None,
        help="Workspace name (defaults to the workspace containing the current directory).",
    ),
    as_json: bool = typer.Option(False, "--json", help="Output JSON for scripting."),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        ws_dir = state.service.locate(name)
        meta = load_metadata(ws_dir)
        statuses = state.service.status(ws_dir)
    if as_json:
        print_json({"name": meta.name, "branch": meta.branch, "repos": status_payload(statuses)})
        return
    state.console.print(f"Workspace [bold]{meta.name}[/bold] (branch: {meta.branch})")
    render_status_table(statuses, state.console)


@app.command(help="Show commits ahead of upstream in each active repo")
def log(
    ctx: typer.Context,
    name: str | None = typer.Argument(
        None,
        help="Workspace name (defaults to the workspace containing the current directory).",
    ),
    oneline: bool = typer.Option(False, "--oneline", help="One flat, newest-first list across all repos."),
    as_json: bool = typer.Option(False, "--json", help="Output JSON for scripting."),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        logs = state.service.log(state.service.locate(name))
    if as_json:
        print_json(log_payload(logs))
        return
    render_log(logs, state.console, oneline=oneline)


@app.command(help="Show git diff across workspace repos; pass extra git args after --")
def diff(
    ctx: typer.Context,
    args: list[str] | None = typer.Argument(None, help="Extra arguments for git diff, e.g. -- --stat."),
    workspace: str | None = typer.Option(
        None,
        "--workspace",
        "-w",
        help="Workspace name (defaults to the workspace containing the current directory).",
    ),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        diffs = state.service.diff(state.service.locate(workspace), args or [])
    render_diffs(diffs, state.console)


@app.command(help="Fetch mirrors in parallel")
def fetch(
    ctx: typer.Context,
    all_: bool = typer.Option(False, "--all", help="Fetch every mirror, not just the current workspace's."),
    prune: bool = typer.Option(False, "--prune", help="Prune remote-tracking refs that no longer exist."),
    as_json: bool = typer.Option(False, "--json", help="Output JSON for scripting."),
) -> None:
    state = _require_state(ctx)
    with _errors(state):
        if all_:
            identities = state.service.mirrors.discover()
        else:
            identities = list(load_metadata(state.service.locate(None)).repos)
        pairs = []
        for identity, mirror in state.service.mirror_pairs(identities):
            if mirror.is_dir():
                pairs.append((identity, mirror))
            else:
                warning(state.err_console, f"no mirror for {identity}, skipping")
        if not pairs:
            info(state.err_console, "No mirrors to fetch.")
            return
        results = fetch_mirrors(state.service.backend, pairs, prune=prune, console=state.err_console)
    if as_json:
        print_json(fetch_payload(list(results.values())))
    failures = failed(results)
    if failures:
        error(state.err_console, f"fetch failed for {', '.join(failures)}")
        raise typer.Exit(1)


def _fail(console: Console, exc: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False)
    raise typer.Exit(1) from exc


__all__ = ["app"]
