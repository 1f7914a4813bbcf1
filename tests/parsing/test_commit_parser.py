import dataclasses
import unittest

from vc_changelog.parsing.commit_parser import (
    Commit,
    CommitRecord,
    parse_commit,
    parse_commits,
    parse_message,
    split_commit,
)


class TestParseMessage(unittest.TestCase):
    def test_conventional_with_scope(self) -> None:
        commit = parse_message("fix(core): handle overflow (#42)", commit_id="abc")
        self.assertEqual(commit.type, "fix")
        self.assertEqual(commit.scope, "core")
        self.assertEqual(commit.description, "handle overflow (#42)")
        self.assertFalse(commit.breaking)
        self.assertIsNone(commit.group)

    def test_conventional_without_scope(self) -> None:
        commit = parse_message("feat: add table scan")
        self.assertEqual(commit.type, "feat")
        self.assertIsNone(commit.scope)
        self.assertEqual(commit.description, "add table scan")

    def test_bang_marks_breaking(self) -> None:
        commit = parse_message("feat(api)!: drop legacy reader")
        self.assertTrue(commit.breaking)
        self.assertEqual(commit.scope, "api")

    def test_unconventional_keeps_whole_line(self) -> None:
        cases = [
            "Update README",
            "Merge pull request #12 from owner/branch",
            "fix:",
            "feat(scope) missing colon",
        ]
        for message in cases:
            with self.subTest(message=message):
                commit = parse_message(message)
                self.assertEqual(commit.type, "")
                self.assertEqual(commit.description, message)
                self.assertFalse(commit.conventional)

    def test_empty_and_none_messages_degrade(self) -> None:
        for message in ("", None, "\n\n"):
            with self.subTest(message=message):
                commit = parse_message(message)
                self.assertEqual(commit.description, "")
                self.assertEqual(commit.type, "")

    def test_type_is_lowercased_and_empty_scope_dropped(self) -> None:
        commit = parse_message("Feat(): Something")
        self.assertEqual(commit.type, "feat")
        self.assertIsNone(commit.scope)

    def test_body_is_kept_separately(self) -> None:
        commit = parse_message("docs: explain setup\n\nLonger text here.\nSecond line.")
        self.assertEqual(commit.summary, "docs: explain setup")
        self.assertEqual(commit.body, "Longer text here.\nSecond line.")


class TestBreakingDetection(unittest.TestCase):
    def test_footer_token(self) -> None:
        record = CommitRecord(id="1", message="refactor: move module\n\nBREAKING CHANGE: import path changed")
        self.assertTrue(parse_commit(record).breaking)

    def test_hyphenated_footer_token(self) -> None:
        record = CommitRecord(id="1", message="chore: bump\n\nBREAKING-CHANGE: requires 3.10")
        self.assertTrue(parse_commit(record).breaking)

    def test_label_marks_breaking_regardless_of_type(self) -> None:
        record = CommitRecord(id="1", message="Update things", labels=frozenset({"breaking-change"}))
        commit = parse_commit(record)
        self.assertTrue(commit.breaking)
        self.assertEqual(commit.type, "")

    def test_custom_breaking_labels(self) -> None:
        record = CommitRecord(id="1", message="feat: x", labels=frozenset({"semver-major"}))
        self.assertFalse(parse_commit(record).breaking)
        self.assertTrue(parse_commit(record, breaking_labels={"semver-major"}).breaking)

    def test_token_in_summary_only_is_not_a_footer(self) -> None:
        record = CommitRecord(id="1", message="docs: describe the BREAKING CHANGE: policy")
        self.assertFalse(parse_commit(record).breaking)


class TestSplitCommits(unittest.TestCase):
    def test_each_line_becomes_a_commit(self) -> None:
        record = CommitRecord(id="abc", message="feat: add a\n\nfix(io): repair b\n", timestamp=10)
        commits = split_commit(record)
        self.assertEqual([c.type for c in commits], ["feat", "fix"])
        self.assertEqual([c.description for c in commits], ["add a", "repair b"])
        self.assertTrue(all(c.id == "abc" and c.timestamp == 10 for c in commits))

    def test_breaking_flag_and_labels_apply_to_every_line(self) -> None:
        record = CommitRecord(
            id="abc",
            message="feat: add a\nfix: repair b",
            labels=frozenset({"breaking-change", "area"}),
        )
        commits = split_commit(record)
        self.assertEqual(len(commits), 2)
        for commit in commits:
            self.assertTrue(commit.breaking)
            self.assertEqual(commit.labels, frozenset({"breaking-change", "area"}))

    def test_empty_message_still_yields_one_record(self) -> None:
        commits = split_commit(CommitRecord(id="x", message=""))
        self.assertEqual(len(commits), 1)
        self.assertEqual(commits[0].description, "")

    def test_parse_commits_split_mode(self) -> None:
        records = [
            CommitRecord(id="1", message="feat: one\nfix: two"),
            CommitRecord(id="2", message="docs: three"),
        ]
        commits = parse_commits(records, split_commits=True)
        self.assertEqual([c.description for c in commits], ["one", "two", "three"])
        # default mode keeps the whole message as one record
        self.assertEqual(len(parse_commits(records)), 2)


class TestParseCommits(unittest.TestCase):
    def test_parallel_matches_sequential(self) -> None:
        records = [CommitRecord(id=str(i), message=f"fix(m{i}): change {i} (#{i})") for i in range(50)]
        self.assertEqual(parse_commits(records, workers=4), parse_commits(records))

    def test_commits_are_immutable(self) -> None:
        commit = parse_commits([CommitRecord(id="1", message="feat: x")])[0]
        self.assertIsInstance(commit, Commit)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            commit.group = "feat"  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
