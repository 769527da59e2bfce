"""Tests for the workspace metadata file."""

from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

import yaml

from git_smart_workspace.exceptions import MetadataError, NotInWorkspaceError, WorkspaceNotFoundError
from git_smart_workspace.metadata import (
    METADATA_FILE,
    detect,
    load_metadata,
    metadata_from_dict,
    save_metadata,
)
from git_smart_workspace.models import Active, Context, WorkspaceMetadata


class MetadataRoundTripTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.ws_dir = Path(self._tmp.name)
        self.meta = WorkspaceMetadata(
            name="feature-x",
            branch="feature-x",
            repos={
                "github.com/acme/web": Context("main"),
                "github.com/acme/api": Active(),
                "github.com/acme/proto": Context("v1.0"),
            },
            created=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        )

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_round_trip_preserves_roles(self) -> None:
        save_metadata(self.ws_dir, self.meta)
        loaded = load_metadata(self.ws_dir)

        self.assertEqual(loaded.name, "feature-x")
        self.assertEqual(loaded.branch, "feature-x")
        self.assertEqual(loaded.created, self.meta.created)
        self.assertEqual(loaded.repos, self.meta.repos)
        self.assertEqual(loaded.active_identities(), ["github.com/acme/api"])
        self.assertEqual(loaded.context_identities(), ["github.com/acme/proto", "github.com/acme/web"])

    def test_on_disk_shape(self) -> None:
        save_metadata(self.ws_dir, self.meta)
        raw = yaml.safe_load((self.ws_dir / METADATA_FILE).read_text(encoding="utf-8"))

        self.assertIsNone(raw["repos"]["github.com/acme/api"])
        self.assertEqual(raw["repos"]["github.com/acme/web"], {"ref": "main"})
        self.assertEqual(raw["created"], "2024-05-01T12:30:00Z")
        self.assertEqual(list(raw["repos"]), sorted(raw["repos"]))

    def test_empty_ref_loads_as_active(self) -> None:
        meta = metadata_from_dict(
            {
                "name": "x",
                "branch": "x",
                "repos": {"github.com/acme/api": {"ref": ""}, "github.com/acme/web": {}},
                "created": "2024-05-01T12:30:00Z",
            }
        )

        self.assertEqual(meta.repos["github.com/acme/api"], Active())
        self.assertEqual(meta.repos["github.com/acme/web"], Active())

    def test_missing_file(self) -> None:
        with self.assertRaises(WorkspaceNotFoundError):
            load_metadata(self.ws_dir / "absent")

    def test_malformed_file(self) -> None:
        (self.ws_dir / METADATA_FILE).write_text("name: [unclosed\n", encoding="utf-8")
        with self.assertRaises(MetadataError):
            load_metadata(self.ws_dir)

    def test_missing_branch(self) -> None:
        with self.assertRaises(MetadataError):
            metadata_from_dict({"name": "x", "repos": {}, "created": "2024-05-01T12:30:00Z"})


class DetectTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_walks_up_to_metadata(self) -> None:
        ws_dir = self.root / "ws"
        nested = ws_dir / "api" / "src" / "pkg"
        nested.mkdir(parents=True)
        (ws_dir / METADATA_FILE).write_text("name: ws\n", encoding="utf-8")

        self.assertEqual(detect(nested), ws_dir)
        self.assertEqual(detect(ws_dir), ws_dir)

    def test_outside_any_workspace(self) -> None:
        with self.assertRaises(NotInWorkspaceError):
            detect(self.root)


if __name__ == "__main__":
    unittest.main()
