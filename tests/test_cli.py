import json
import unittest
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

import vc_changelog.cli as cli
from vc_changelog import __version__
from vc_changelog.changelog import ReleaseInput
from vc_changelog.parsing.commit_parser import CommitRecord
from vc_changelog.vcs.git_client import GitError


COMMITS = [
    {"id": "a", "message": "feat(api): add table scan (#10)"},
    {"id": "b", "message": "fix: handle overflow (#42)"},
]


class DummyGitClient:
    def __init__(self, root):
        self.root = root
        self.releases = [
            ReleaseInput(
                version="v0.1.0",
                commits=[CommitRecord(id="x", message="feat: from git (#7)")],
            )
        ]

    def collect_releases(self, unreleased_version=None):
        return self.releases


class FailingGitClient(DummyGitClient):
    def collect_releases(self, unreleased_version=None):
        raise GitError("fatal: not a git repository")


class EmptyGitClient(DummyGitClient):
    def collect_releases(self, unreleased_version=None):
        return []


class TestCli(unittest.TestCase):
    def setUp(self) -> None:
        self.runner = CliRunner()

    def invoke(self, args, repo_root=None):
        with patch.object(cli.GitClient, "find_repo_root", return_value=repo_root):
            return self.runner.invoke(cli.main, args)

    def write_json(self, name, data) -> Path:
        path = Path(name)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def test_input_file_to_stdout(self) -> None:
        with self.runner.isolated_filesystem():
            self.write_json("commits.json", COMMITS)
            result = self.invoke(["--input", "commits.json", "--tag", "v1.0.0", "--repo-url", "https://github.com/o/r/"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("## [v1.0.0](https://github.com/o/r/tree/v1.0.0/)", result.output)
        self.assertIn("1. *(api)* Add table scan ([#10])", result.output)
        self.assertIn("[#42]: https://github.com/o/r/pull/42", result.output)

    def test_output_file(self) -> None:
        with self.runner.isolated_filesystem():
            self.write_json("commits.json", COMMITS)
            result = self.invoke(["--input", "commits.json", "-o", "CHANGELOG.md"])
            self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
            text = Path("CHANGELOG.md").read_text(encoding="utf-8")
        self.assertTrue(text.startswith("# Changelog\n\n## [Unreleased]"))
        self.assertTrue(text.endswith("\n"))
        self.assertIn("Changelog written to", result.output)

    def test_git_history(self) -> None:
        with self.runner.isolated_filesystem():
            root = Path.cwd()
            with patch.object(cli, "GitClient") as client_cls:
                client_cls.find_repo_root.return_value = root
                client_cls.side_effect = DummyGitClient
                result = self.runner.invoke(cli.main, [])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("## [v0.1.0]", result.output)
        self.assertIn("From git (#7)", result.output)
        self.assertNotIn("[#7]", result.output)

    def test_no_repository(self) -> None:
        with self.runner.isolated_filesystem():
            result = self.invoke([], repo_root=None)
        self.assertEqual(result.exit_code, cli.EXIT_NO_REPO)
        self.assertIn("No Git repository found", result.output)

    def test_no_commits(self) -> None:
        with self.runner.isolated_filesystem():
            self.write_json("commits.json", [])
            result = self.invoke(["--input", "commits.json"])
        self.assertEqual(result.exit_code, cli.EXIT_NO_COMMITS)

    def test_no_commits_in_git(self) -> None:
        with self.runner.isolated_filesystem():
            with patch.object(cli, "GitClient") as client_cls:
                client_cls.find_repo_root.return_value = Path.cwd()
                client_cls.side_effect = EmptyGitClient
                result = self.runner.invoke(cli.main, [])
        self.assertEqual(result.exit_code, cli.EXIT_NO_COMMITS)

    def test_config_error(self) -> None:
        with self.runner.isolated_filesystem():
            self.write_json("commits.json", COMMITS)
            self.write_json("bad.json", {"group_rules": [{"message": "^feat", "group": "Features"}]})
            result = self.invoke(["--input", "commits.json", "--config", "bad.json"])
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)
        self.assertIn("Configuration error", result.output)

    def test_template_error_is_config_error(self) -> None:
        with self.runner.isolated_filesystem():
            self.write_json("commits.json", COMMITS)
            self.write_json("bad.json", {"body": "{{ x | shout }}"})
            result = self.invoke(["--input", "commits.json", "--config", "bad.json"])
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)

    def test_config_from_repo_root(self) -> None:
        with self.runner.isolated_filesystem():
            self.write_json("commits.json", COMMITS)
            self.write_json(".changelog_config.json", {"header": "# Release notes\n\n"})
            result = self.invoke(["--input", "commits.json"], repo_root=Path.cwd())
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("# Release notes", result.output)
        self.assertIn("Loaded configuration from", result.output)

    def test_git_failure(self) -> None:
        with self.runner.isolated_filesystem():
            with patch.object(cli, "GitClient") as client_cls:
                client_cls.find_repo_root.return_value = Path.cwd()
                client_cls.side_effect = FailingGitClient
                result = self.runner.invoke(cli.main, [])
        self.assertEqual(result.exit_code, cli.EXIT_VCS_FAILURE)
        self.assertIn("not a git repository", result.output)

    def test_input_error(self) -> None:
        with self.runner.isolated_filesystem():
            Path("commits.json").write_text("{broken", encoding="utf-8")
            result = self.invoke(["--input", "commits.json"])
        self.assertEqual(result.exit_code, cli.EXIT_INPUT_ERROR)
        self.assertIn("Input error", result.output)

    def test_missing_input_file_is_usage_error(self) -> None:
        with self.runner.isolated_filesystem():
            result = self.invoke(["--input", "nope.json"])
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)

    def test_unexpected_error(self) -> None:
        with self.runner.isolated_filesystem():
            self.write_json("commits.json", COMMITS)
            with patch.object(cli, "generate_changelog", side_effect=RuntimeError("boom")):
                result = self.invoke(["--input", "commits.json"])
        self.assertEqual(result.exit_code, cli.EXIT_GENERIC_ERROR)
        self.assertIn("Unexpected error: boom", result.output)

    def test_version(self) -> None:
        result = self.runner.invoke(cli.main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)


if __name__ == "__main__":
    unittest.main()
