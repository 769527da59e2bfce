"""Reading and writing the per-workspace metadata file."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from .exceptions import MetadataError, NotInWorkspaceError, WorkspaceNotFoundError
from .models import Active, Context, RepoRef, WorkspaceMetadata

METADATA_FILE = ".ws.yaml"


def metadata_path(ws_dir: Path) -> Path:
    return ws_dir / METADATA_FILE


def load_metadata(ws_dir: Path) -> WorkspaceMetadata:
    path = metadata_path(ws_dir)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise WorkspaceNotFoundError(f"no workspace metadata at {path}") from exc
    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise MetadataError(f"reading {path}: {exc}") from exc
    return metadata_from_dict(raw, source=path)


def save_metadata(ws_dir: Path, meta: WorkspaceMetadata) -> None:
    body = yaml.safe_dump(metadata_to_dict(meta), default_flow_style=False, sort_keys=False)
    metadata_path(ws_dir).write_text(body, encoding="utf-8")


def metadata_to_dict(meta: WorkspaceMetadata) -> dict[str, Any]:
    repos: dict[str, Any] = {}
    for identity, ref in sorted(meta.repos.items()):
        repos[identity] = {"ref": ref.ref} if isinstance(ref, Context) else None
    return {
        "name": meta.name,
        "branch": meta.branch,
        "repos": repos,
        "created": _format_timestamp(meta.created),
    }


def metadata_from_dict(raw: Any, *, source: Path | None = None) -> WorkspaceMetadata:
    where = str(source) if source else "workspace metadata"
    if not isinstance(raw, dict):
        raise MetadataError(f"{where}: expected a mapping at the top level")
    name = raw.get("name")
    branch = raw.get("branch")
    if not isinstance(name, str) or not name:
        raise MetadataError(f"{where}: missing workspace name")
    if not isinstance(branch, str) or not branch:
        raise MetadataError(f"{where}: missing workspace branch")
    repos_raw = raw.get("repos") or {}
    if not isinstance(repos_raw, dict):
        raise MetadataError(f"{where}: 'repos' must be a mapping")
    repos = {str(identity): _repo_ref_from_raw(entry, where, identity) for identity, entry in repos_raw.items()}
    return WorkspaceMetadata(
        name=name,
        branch=branch,
        repos=repos,
        created=_parse_timestamp(raw.get("created"), where),
    )


def detect(start_dir: Path) -> Path:
    """Return the closest directory at or above ``start_dir`` holding a metadata file."""

    current = start_dir.resolve()
    for candidate in (current, *current.parents):
        if metadata_path(candidate).is_file():
            return candidate
    raise NotInWorkspaceError(f"not in a workspace (no {METADATA_FILE} found)")


def _repo_ref_from_raw(entry: Any, where: str, identity: Any) -> RepoRef:
    if entry is None:
        return Active()
    if not isinstance(entry, dict):
        raise MetadataError(f"{where}: entry for {identity} must be empty or a mapping")
    ref = entry.get("ref")
    if ref is None or ref == "":
        return Active()
    return Context(str(ref))


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_timestamp(value: Any, where: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise MetadataError(f"{where}: invalid 'created' timestamp {value!r}") from exc
    else:
        raise MetadataError(f"{where}: missing 'created' timestamp")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = [
    "METADATA_FILE",
    "metadata_path",
    "load_metadata",
    "save_metadata",
    "metadata_to_dict",
    "metadata_from_dict",
    "detect",
]
