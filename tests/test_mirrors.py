"""Tests for the mirror store."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from git_smart_workspace.exceptions import AlreadyExistsError, GitCommandError, MirrorNotFoundError
from git_smart_workspace.identity import parse_identity
from git_smart_workspace.mirrors import MirrorStore

from tests.fakes import FakeBackend


class _FailingCloneBackend(FakeBackend):
    def clone_bare(self, url: str, dest: Path) -> None:
        dest.mkdir(parents=True)
        raise GitCommandError(["git", "clone", "--bare", url], 128, stderr="fatal: repository not found")


class MirrorStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name) / "mirrors"
        self.backend = FakeBackend()
        self.store = MirrorStore(self.root, self.backend)
        self.identity = parse_identity("gitlab.com/group/sub/tool")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_layout(self) -> None:
        self.assertEqual(self.store.dir(self.identity), self.root / "gitlab.com" / "group" / "sub" / "tool.git")

    def test_clone_fetch_remove(self) -> None:
        self.assertFalse(self.store.exists(self.identity))

        dest = self.store.clone(self.identity, "https://gitlab.com/group/sub/tool.git")
        self.store.fetch(self.identity, prune=True)

        self.assertTrue(self.store.exists(self.identity))
        self.assertEqual(self.backend.calls_of("fetch"), [("fetch", str(dest))])
        self.assertEqual(self.store.discover(), ["gitlab.com/group/sub/tool"])

        self.store.remove(self.identity)
        self.assertFalse(dest.exists())

    def test_clone_refuses_existing_mirror(self) -> None:
        self.store.clone(self.identity, "https://gitlab.com/group/sub/tool.git")

        with self.assertRaises(AlreadyExistsError):
            self.store.clone(self.identity, "https://gitlab.com/group/sub/tool.git")

    def test_failed_clone_leaves_nothing_behind(self) -> None:
        store = MirrorStore(self.root, _FailingCloneBackend())

        with self.assertRaises(GitCommandError):
            store.clone(self.identity, "https://gitlab.com/group/sub/tool.git")
        self.assertFalse(store.exists(self.identity))

    def test_require_missing_mirror(self) -> None:
        with self.assertRaises(MirrorNotFoundError) as ctx:
            self.store.require(self.identity)
        self.assertEqual(ctx.exception.identity, "gitlab.com/group/sub/tool")

    def test_discover_without_root(self) -> None:
        self.assertEqual(self.store.discover(), [])


if __name__ == "__main__":
    unittest.main()
