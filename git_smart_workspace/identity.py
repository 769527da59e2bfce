"""Repository identities, workspace names and repo tokens."""

from __future__ import annotations

import re
from typing import Iterable, Sequence
from urllib.parse import urlparse

from .exceptions import IdentityParseError, InvalidNameError
from .models import Identity

_SCP_URL_RE = re.compile(r"^(?:[^@/]+@)?(?P<host>[^/:]+):(?P<path>[^/].*)$")
_URL_SCHEMES = {"http", "https", "ssh", "git", "git+ssh"}


def validate_workspace_name(name: str) -> None:
    if not name:
        raise InvalidNameError("workspace name cannot be empty")
    if "/" in name or "\\" in name:
        raise InvalidNameError(f"workspace name {name!r} cannot contain path separators")
    if name in {".", ".."}:
        raise InvalidNameError(f"workspace name {name!r} is not allowed")


def parse_identity(text: str) -> Identity:
    """Parse ``host/owner/repo``; nested owners keep their inner slashes."""

    parts = text.strip().split("/")
    if len(parts) < 3:
        raise IdentityParseError(f"invalid identity {text!r}: expected host/owner/repo")
    for part in parts:
        if not part or part in {".", ".."}:
            raise IdentityParseError(f"invalid identity {text!r}: empty or relative path segment")
    return Identity(host=parts[0], owner="/".join(parts[1:-1]), repo=parts[-1])


def identity_from_url(url: str) -> Identity:
    """Derive the identity a remote URL should be mirrored under."""

    raw = url.strip()
    parsed = urlparse(raw)
    if parsed.scheme in _URL_SCHEMES:
        host = parsed.hostname or ""
        path = parsed.path
    else:
        match = _SCP_URL_RE.match(raw)
        if parsed.scheme == "file" or not match:
            raise IdentityParseError(
                f"Unable to derive an identity from {url!r}. "
                "Supported formats include git@host:owner/repo.git and https URLs; pass --identity otherwise."
            )
        host = match.group("host")
        path = match.group("path")
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    if not host or not path:
        raise IdentityParseError(f"Unsupported remote URL: {url}")
    return parse_identity(f"{host}/{path}")


def parse_repo_token(token: str) -> tuple[str, str]:
    """Split ``name@ref`` into ``(name, ref)``; no suffix means an empty ref."""
    name, _, ref = token.partition("@")
    return name, ref


def shortnames(identities: Iterable[str]) -> dict[str, str]:
    """Map each identity to its shortest unique trailing path suffix."""

    ids = sorted(set(identities))
    split = {identity: identity.split("/") for identity in ids}
    result: dict[str, str] = {}
    for identity, parts in split.items():
        for depth in range(1, len(parts) + 1):
            candidate = parts[-depth:]
            clashes = [
                other
                for other, other_parts in split.items()
                if other != identity and other_parts[-depth:] == candidate
            ]
            if not clashes:
                result[identity] = "/".join(candidate)
                break
        else:
            result[identity] = identity
    return result


def resolve_identity(name: str, known: Sequence[str]) -> str:
    """Resolve a full identity or a unique suffix such as ``repo`` or ``owner/repo``."""

    if name in known:
        return name
    suffix = "/" + name.strip("/")
    matches = sorted(identity for identity in known if identity.endswith(suffix))
    if len(matches) == 1:
        return matches[0]
    if matches:
        raise IdentityParseError(
            f"{name!r} is ambiguous, matches: {', '.join(matches)}. Use the full identity."
        )
    if name.count("/") >= 2:
        # Not mirrored yet; let the mirror lookup report it with a clone hint.
        return str(parse_identity(name))
    raise IdentityParseError(f"unknown repository {name!r}. Clone it first or use host/owner/repo.")


__all__ = [
    "validate_workspace_name",
    "parse_identity",
    "identity_from_url",
    "parse_repo_token",
    "shortnames",
    "resolve_identity",
]
