"""Tests for attach planning and execution."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from git_smart_workspace.exceptions import AlreadyExistsError
from git_smart_workspace.models import Active, Context, Detached, ExistingLocal, ExistingRemote, NewBranch
from git_smart_workspace.worktrees import attach_worktree, describe_plan, plan_attach

from tests.fakes import FakeBackend


class PlanAttachTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.backend = FakeBackend()
        self.mirror = self.root / "api.git"
        self.state = self.backend.register(self.mirror)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_active_creates_branch_from_remote_default(self) -> None:
        plan = plan_attach(self.backend, self.mirror, "feature-x", Active())

        self.assertEqual(plan, NewBranch("feature-x", "origin/main"))

    def test_active_falls_back_to_local_default(self) -> None:
        self.state.remote_branches.clear()
        self.state.branches.add("main")

        plan = plan_attach(self.backend, self.mirror, "feature-x", Active())

        self.assertEqual(plan, NewBranch("feature-x", "main"))

    def test_active_reuses_existing_branch(self) -> None:
        self.state.branches.add("feature-x")

        plan = plan_attach(self.backend, self.mirror, "feature-x", Active())

        self.assertEqual(plan, ExistingLocal("feature-x"))

    def test_context_prefers_local_branch(self) -> None:
        self.state.branches.add("main")

        self.assertEqual(plan_attach(self.backend, self.mirror, "feature-x", Context("main")), ExistingLocal("main"))

    def test_context_uses_remote_tracking_branch(self) -> None:
        self.state.remote_branches.add("release")

        plan = plan_attach(self.backend, self.mirror, "feature-x", Context("release"))

        self.assertEqual(plan, ExistingRemote("origin/release"))

    def test_context_detaches_for_tags_and_commits(self) -> None:
        self.state.tags.add("v1.0")

        self.assertEqual(plan_attach(self.backend, self.mirror, "feature-x", Context("v1.0")), Detached("v1.0"))
        self.assertEqual(plan_attach(self.backend, self.mirror, "feature-x", Context("abc1234")), Detached("abc1234"))

    def test_context_never_creates_branch(self) -> None:
        target = self.root / "ws" / "api"

        attach_worktree(self.backend, self.mirror, target, "feature-x", Context("release"))

        self.assertEqual(self.backend.calls_of("worktree_add"), [])
        self.assertNotIn("feature-x", self.state.branches)


class AttachWorktreeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.backend = FakeBackend()
        self.mirror = self.root / "api.git"
        self.backend.register(self.mirror)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_executes_new_branch_plan(self) -> None:
        target = self.root / "ws" / "api"

        plan = attach_worktree(self.backend, self.mirror, target, "feature-x")

        self.assertIsInstance(plan, NewBranch)
        self.assertEqual(
            self.backend.calls_of("worktree_add"),
            [("worktree_add", str(self.mirror), str(target), "feature-x", "origin/main")],
        )
        self.assertTrue(target.is_dir())

    def test_existing_path_is_rejected(self) -> None:
        target = self.root / "ws" / "api"
        target.mkdir(parents=True)

        with self.assertRaises(AlreadyExistsError):
            attach_worktree(self.backend, self.mirror, target, "feature-x")
        self.assertEqual(self.backend.calls, [])

    def test_describe_plan(self) -> None:
        self.assertEqual(describe_plan(NewBranch("x", "origin/main")), "new branch x from origin/main")
        self.assertEqual(describe_plan(ExistingRemote("origin/release")), "origin/release")
        self.assertEqual(describe_plan(Detached("v1.0")), "v1.0 (detached)")


if __name__ == "__main__":
    unittest.main()
