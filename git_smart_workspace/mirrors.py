"""Shared bare mirror clones, one per repository identity."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

from .exceptions import AlreadyExistsError, IdentityParseError, MirrorNotFoundError
from .git import GitBackend
from .identity import parse_identity
from .models import Identity


@dataclass
class MirrorStore:
    root: Path
    backend: GitBackend

    def dir(self, identity: Identity) -> Path:
        return self.root / identity.mirror_path

    def exists(self, identity: Identity) -> bool:
        return self.dir(identity).is_dir()

    def require(self, identity: Identity) -> Path:
        path = self.dir(identity)
        if not path.is_dir():
            raise MirrorNotFoundError(identity.identity, str(path))
        return path

    def clone(self, identity: Identity, url: str) -> Path:
        dest = self.dir(identity)
        if dest.exists():
            raise AlreadyExistsError(f"mirror for {identity} already exists at {dest}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.backend.clone_bare(url, dest)
        except Exception:
            shutil.rmtree(dest, ignore_errors=True)
            raise
        return dest

    def fetch(self, identity: Identity, prune: bool = False) -> None:
        self.backend.fetch(self.require(identity), prune=prune)

    def remove(self, identity: Identity) -> None:
        """Delete a mirror. Only ever called explicitly, never by workspace removal."""
        shutil.rmtree(self.require(identity))

    def discover(self) -> list[str]:
        """Identities of every mirror found under the root, sorted."""

        if not self.root.is_dir():
            return []
        found: list[str] = []
        for candidate in self.root.rglob("*.git"):
            if not candidate.is_dir() or not (candidate / "HEAD").exists():
                continue
            relative = candidate.relative_to(self.root)
            text = "/".join(relative.parts)[: -len(".git")]
            try:
                found.append(parse_identity(text).identity)
            except IdentityParseError:
                continue
        return sorted(found)


__all__ = ["MirrorStore"]
