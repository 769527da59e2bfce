"""Concurrent mirror fetches with serialized progress output."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.markup import escape

from .exceptions import WorkspaceError, error_detail
from .git import GitBackend
from .identity import shortnames
from .models import FetchResult


def fetch_mirrors(
    backend: GitBackend,
    mirrors: Sequence[tuple[str, Path]],
    *,
    prune: bool = False,
    console: Console,
) -> dict[str, FetchResult]:
    """Fetch every ``(identity, mirror dir)`` pair on its own thread.

    Returns one result per identity; failures are recorded, never raised.
    There is no timeout: a hung fetch blocks until git exits.
    """

    if not mirrors:
        return {}
    names = shortnames(identity for identity, _ in mirrors)
    if len(mirrors) == 1:
        console.print(f"Fetching {escape(names[mirrors[0][0]])}...")
    else:
        console.print(f"Fetching {len(mirrors)} repos...")

    lock = threading.Lock()
    results: dict[str, FetchResult] = {}

    def _worker(identity: str, mirror: Path) -> None:
        name = names[identity]
        try:
            backend.fetch(mirror, prune=prune)
        except (WorkspaceError, OSError) as exc:
            result = FetchResult(identity=identity, shortname=name, ok=False, error=error_detail(exc))
        else:
            result = FetchResult(identity=identity, shortname=name, ok=True)
        with lock:
            if result.ok:
                console.print(f"  [green]ok[/green]    {escape(name)}")
            else:
                console.print(f"  [red]FAIL[/red]  {escape(name)} ({escape(result.error or '')})")
            results[identity] = result

    threads = [
        threading.Thread(target=_worker, args=(identity, mirror), name=f"fetch-{identity}")
        for identity, mirror in mirrors
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return {
        identity: results.get(identity)
        or FetchResult(identity=identity, shortname=names[identity], ok=False, error="fetch did not complete")
        for identity, _ in mirrors
    }


def failed(results: dict[str, FetchResult]) -> list[str]:
    return sorted(result.shortname for result in results.values() if not result.ok)


__all__ = ["fetch_mirrors", "failed"]
