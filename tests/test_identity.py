"""Tests for identity parsing, URL mapping and repo token resolution."""

from __future__ import annotations

import unittest

from git_smart_workspace.exceptions import IdentityParseError, InvalidNameError
from git_smart_workspace.identity import (
    identity_from_url,
    parse_identity,
    parse_repo_token,
    resolve_identity,
    shortnames,
    validate_workspace_name,
)


class ParseIdentityTests(unittest.TestCase):
    def test_three_segments(self) -> None:
        identity = parse_identity("github.com/acme/api")

        self.assertEqual(identity.host, "github.com")
        self.assertEqual(identity.owner, "acme")
        self.assertEqual(identity.repo, "api")
        self.assertEqual(str(identity), "github.com/acme/api")

    def test_nested_owner_keeps_inner_slashes(self) -> None:
        identity = parse_identity("gitlab.com/group/sub/repo")

        self.assertEqual(identity.owner, "group/sub")
        self.assertEqual(identity.repo, "repo")
        self.assertEqual(identity.mirror_path.parts, ("gitlab.com", "group", "sub", "repo.git"))

    def test_rejects_short_or_empty_segments(self) -> None:
        for text in ("github.com/api", "api", "github.com//api", "github.com/../api"):
            with self.subTest(text=text):
                with self.assertRaises(IdentityParseError):
                    parse_identity(text)


class IdentityFromUrlTests(unittest.TestCase):
    def test_supported_forms(self) -> None:
        cases = {
            "git@github.com:acme/api.git": "github.com/acme/api",
            "https://github.com/acme/api.git": "github.com/acme/api",
            "https://github.com/acme/api": "github.com/acme/api",
            "ssh://git@gitlab.com/group/sub/repo.git": "gitlab.com/group/sub/repo",
            "https://user@example.org:8443/team/tool.git": "example.org/team/tool",
        }
        for url, expected in cases.items():
            with self.subTest(url=url):
                self.assertEqual(identity_from_url(url).identity, expected)

    def test_rejects_local_paths(self) -> None:
        for url in ("/srv/git/api.git", "file:///srv/git/api.git", "api"):
            with self.subTest(url=url):
                with self.assertRaises(IdentityParseError):
                    identity_from_url(url)


class RepoTokenTests(unittest.TestCase):
    def test_split_on_at(self) -> None:
        self.assertEqual(parse_repo_token("api"), ("api", ""))
        self.assertEqual(parse_repo_token("api@v1.0"), ("api", "v1.0"))
        self.assertEqual(parse_repo_token("github.com/acme/api@main"), ("github.com/acme/api", "main"))

    def test_resolve_exact_and_suffix(self) -> None:
        known = ["github.com/acme/api", "github.com/acme/web", "github.com/other/web"]

        self.assertEqual(resolve_identity("github.com/acme/api", known), "github.com/acme/api")
        self.assertEqual(resolve_identity("api", known), "github.com/acme/api")
        self.assertEqual(resolve_identity("other/web", known), "github.com/other/web")

    def test_resolve_ambiguous_suffix(self) -> None:
        known = ["github.com/acme/web", "github.com/other/web"]

        with self.assertRaises(IdentityParseError) as ctx:
            resolve_identity("web", known)
        self.assertIn("ambiguous", str(ctx.exception))

    def test_resolve_unknown(self) -> None:
        with self.assertRaises(IdentityParseError):
            resolve_identity("nope", ["github.com/acme/api"])
        self.assertEqual(resolve_identity("github.com/acme/new", []), "github.com/acme/new")


class ShortnameTests(unittest.TestCase):
    def test_shortest_unique_suffix(self) -> None:
        names = shortnames(["github.com/acme/api", "github.com/acme/web", "github.com/other/web"])

        self.assertEqual(names["github.com/acme/api"], "api")
        self.assertEqual(names["github.com/acme/web"], "acme/web")
        self.assertEqual(names["github.com/other/web"], "other/web")


class WorkspaceNameTests(unittest.TestCase):
    def test_valid_name(self) -> None:
        validate_workspace_name("feature-x")

    def test_invalid_names(self) -> None:
        for name in ("", ".", "..", "a/b", "a\\b"):
            with self.subTest(name=name):
                with self.assertRaises(InvalidNameError):
                    validate_workspace_name(name)


if __name__ == "__main__":
    unittest.main()
