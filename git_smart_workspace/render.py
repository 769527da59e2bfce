"""Rich UI helpers for terminal output.

Diagnostics go to stderr; tables and JSON go to stdout.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Sequence

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .exceptions import WorkspaceError
from .models import FetchResult, RemoveReport, RepoDiff, RepoLog, RepoStatus, WorkspaceMetadata


def info(console: Console, message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {escape(message)}")


def success(console: Console, message: str) -> None:
    console.print(f"[green]✓[/green] {escape(message)}")


def warning(console: Console, message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {escape(message)}")


def error(console: Console, message: str) -> None:
    console.print(f"[red]✗[/red] {escape(message)}", style="red")


def print_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def workspace_rows(
    names: Sequence[str],
    load: Callable[[Path], WorkspaceMetadata],
    root: Path,
) -> list[dict[str, Any]]:
    """One row per workspace; unreadable metadata is reported inline."""

    rows: list[dict[str, Any]] = []
    for name in names:
        ws_dir = root / name
        try:
            meta = load(ws_dir)
        except (WorkspaceError, OSError) as exc:
            rows.append({"name": name, "branch": None, "repos": None, "path": str(ws_dir), "error": str(exc)})
            continue
        rows.append(
            {
                "name": name,
                "branch": meta.branch,
                "repos": len(meta.repos),
                "path": str(ws_dir),
                "error": None,
            }
        )
    return rows


def render_workspaces_table(rows: Sequence[dict[str, Any]], console: Console) -> None:
    table = Table(title="Workspaces", show_lines=False)
    table.add_column("Name", no_wrap=True)
    table.add_column("Branch", no_wrap=True)
    table.add_column("Repos", justify="right")
    table.add_column("Path")
    for row in rows:
        if row["error"]:
            table.add_row(row["name"], "[red]ERROR[/red]", "?", row["path"])
        else:
            table.add_row(row["name"], row["branch"], str(row["repos"]), row["path"])
    console.print(table)


def render_status_table(statuses: Sequence[RepoStatus], console: Console) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Repository", no_wrap=True)
    table.add_column("Role", no_wrap=True)
    table.add_column("Status")
    for entry in statuses:
        role = f"context @ {entry.ref}" if entry.ref else "active"
        style = "green" if entry.summary == "clean" else "yellow"
        if entry.error:
            style = "red"
        table.add_row(entry.dir_name, role, f"[{style}]{escape(entry.summary)}[/{style}]")
    console.print(table)


def status_payload(statuses: Sequence[RepoStatus]) -> list[dict[str, Any]]:
    return [
        {
            "identity": entry.identity,
            "name": entry.dir_name,
            "ref": entry.ref,
            "changed": entry.changed,
            "ahead": entry.ahead,
            "error": entry.error,
        }
        for entry in statuses
    ]


def fetch_payload(results: Sequence[FetchResult]) -> list[dict[str, Any]]:
    return [
        {
            "identity": result.identity,
            "shortname": result.shortname,
            "ok": result.ok,
            "error": result.error,
        }
        for result in results
    ]


def remove_summary(report: RemoveReport, console: Console) -> None:
    if report.warnings:
        warning(console, f"workspace {report.name!r} removed with {len(report.warnings)} warning(s)")
    else:
        success(console, f"Workspace {report.name!r} removed.")
    if report.deleted_branches:
        info(console, f"Deleted workspace branch in {len(report.deleted_branches)} mirror(s)")


def render_diffs(diffs: Sequence[RepoDiff], console: Console) -> None:
    for index, entry in enumerate(diffs):
        if index:
            console.print()
        console.print(f"==> [{entry.dir_name}]", markup=False, highlight=False)
        if entry.error:
            console.print(f"[red]error:[/red] {escape(entry.error)}")
        else:
            console.print(entry.output, markup=False, highlight=False, soft_wrap=True)


def render_log(logs: Sequence[RepoLog], console: Console, *, oneline: bool = False) -> None:
    if oneline:
        # Newest first across every repo.
        flat = sorted(
            ((commit, entry.dir_name) for entry in logs for commit in entry.commits),
            key=lambda item: item[0].timestamp,
            reverse=True,
        )
        for commit, name in flat:
            console.print(f"{commit.short_sha} [{name}] {commit.subject}", markup=False, highlight=False)
        for entry in logs:
            if entry.error:
                error(console, f"{entry.dir_name}: {entry.error}")
        return
    for entry in logs:
        if entry.error:
            console.print(f"[bold]{escape(entry.dir_name)}[/bold]  [red]ERROR: {escape(entry.error)}[/red]")
            continue
        count = len(entry.commits)
        label = "1 commit" if count == 1 else f"{count} commits"
        console.print(f"[bold]{escape(entry.dir_name)}[/bold]  [dim]{label} ahead[/dim]")
        for commit in entry.commits:
            console.print(f"  [yellow]{commit.short_sha}[/yellow] {escape(commit.subject)}")


def log_payload(logs: Sequence[RepoLog]) -> list[dict[str, Any]]:
    return [
        {
            "identity": entry.identity,
            "name": entry.dir_name,
            "commits": [
                {"sha": commit.sha, "timestamp": commit.timestamp, "subject": commit.subject}
                for commit in entry.commits
            ],
            "error": entry.error,
        }
        for entry in logs
    ]


__all__ = [
    "info",
    "success",
    "warning",
    "error",
    "print_json",
    "workspace_rows",
    "render_workspaces_table",
    "render_status_table",
    "status_payload",
    "fetch_payload",
    "remove_summary",
    "render_diffs",
    "render_log",
    "log_payload",
]
