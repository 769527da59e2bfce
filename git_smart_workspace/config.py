"""Environment-driven configuration for the data and workspace roots."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from .exceptions import MissingEnvError
from .models import Paths

APP_DIR_NAME = "git-smart-workspace"

MIRRORS_ROOT_VAR = "GIT_WORKSPACE_MIRRORS_ROOT"
WORKSPACES_ROOT_VAR = "GIT_WORKSPACE_ROOT"
BRANCH_PREFIX_VAR = "GIT_WORKSPACE_BRANCH_PREFIX"


def load_paths(environ: Mapping[str, str] | None = None, home: Path | None = None) -> Paths:
    """Resolve every root once; callers pass the result down explicitly."""

    env = os.environ if environ is None else environ
    data_dir = resolve_data_dir(env.get("XDG_DATA_HOME"), home if home is not None else _home_dir(env))
    mirrors_override = env.get(MIRRORS_ROOT_VAR)
    workspaces_override = env.get(WORKSPACES_ROOT_VAR)
    mirrors_dir = _expand(mirrors_override) if mirrors_override else data_dir / "mirrors"
    if workspaces_override:
        workspaces_dir = _expand(workspaces_override)
    else:
        workspaces_dir = resolve_workspaces_dir(home if home is not None else _home_dir(env))
    prefix = (env.get(BRANCH_PREFIX_VAR) or "").strip().strip("/") or None
    return Paths(
        data_dir=data_dir,
        mirrors_dir=mirrors_dir,
        workspaces_dir=workspaces_dir,
        branch_prefix=prefix,
    )


def resolve_data_dir(xdg_data_home: str | None, home: Path | None) -> Path:
    if xdg_data_home:
        return _expand(xdg_data_home) / APP_DIR_NAME
    if home is None:
        raise MissingEnvError(
            "Cannot determine the home directory. Set XDG_DATA_HOME or HOME before running the CLI."
        )
    return home / ".local" / "share" / APP_DIR_NAME


def resolve_workspaces_dir(home: Path | None) -> Path:
    if home is None:
        raise MissingEnvError(
            f"Cannot determine the home directory. Set {WORKSPACES_ROOT_VAR} or HOME before running the CLI."
        )
    return home / "dev" / "workspaces"


def branch_for(name: str, prefix: str | None) -> str:
    if prefix:
        return f"{prefix}/{name}"
    return name


def _home_dir(env: Mapping[str, str]) -> Path | None:
    raw = env.get("HOME")
    if raw:
        return Path(raw).expanduser()
    try:
        return Path.home()
    except RuntimeError:
        return None


def _expand(raw: str) -> Path:
    return Path(raw).expanduser()


__all__ = [
    "load_paths",
    "resolve_data_dir",
    "resolve_workspaces_dir",
    "branch_for",
    "MIRRORS_ROOT_VAR",
    "WORKSPACES_ROOT_VAR",
    "BRANCH_PREFIX_VAR",
]
