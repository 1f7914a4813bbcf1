import unittest

from vc_changelog.errors import ConfigError
from vc_changelog.grouping.classifier import Classifier, build_rules, is_catch_all_pattern
from vc_changelog.parsing.commit_parser import CommitRecord, parse_commit


def make_commit(message: str, labels=(), commit_id: str = "c1"):
    return parse_commit(CommitRecord(id=commit_id, message=message, labels=frozenset(labels)))


class TestBuildRules(unittest.TestCase):
    def test_shorthand_and_explicit_forms(self) -> None:
        rules = build_rules([
            {"field": "github.pr_labels", "pattern": "breaking-change", "group": "Breaking"},
            {"message": "^feat", "group": "Features"},
            {"match_field": "message", "pattern": "^fix", "group_tag": "Fixes", "header": "Bug fixes"},
            {"message": ".*", "group": "Other"},
        ])
        self.assertEqual([r.match_field for r in rules], ["label", "message", "message", "message"])
        self.assertEqual([r.group_tag for r in rules], ["Breaking", "Features", "Fixes", "Other"])
        self.assertEqual(rules[2].display_header, "Bug fixes")
        self.assertTrue(rules[-1].catch_all)
        self.assertFalse(any(r.catch_all for r in rules[:-1]))

    def test_missing_catch_all_is_rejected(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            build_rules([{"message": "^feat", "group": "Features"}])
        self.assertIn("catch-all", str(ctx.exception))

    def test_empty_rule_list_is_rejected(self) -> None:
        with self.assertRaises(ConfigError):
            build_rules([])

    def test_rule_after_catch_all_is_rejected(self) -> None:
        with self.assertRaises(ConfigError):
            build_rules([
                {"message": ".*", "group": "Other"},
                {"message": "^feat", "group": "Features"},
            ])

    def test_label_catch_all_does_not_count(self) -> None:
        with self.assertRaises(ConfigError):
            build_rules([{"field": "label", "pattern": ".*", "group": "Other"}])

    def test_invalid_pattern_names_the_rule(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            build_rules([
                {"message": "^feat", "group": "Features"},
                {"message": "^fix(", "group": "Fixes"},
                {"message": ".*", "group": "Other"},
            ])
        self.assertIn("#1", str(ctx.exception))
        self.assertIn("^fix(", str(ctx.exception))

    def test_malformed_rules(self) -> None:
        cases = [
            ["not a rule", {"message": ".*", "group": "Other"}],
            [{"message": "^feat"}, {"message": ".*", "group": "Other"}],
            [{"field": "author", "pattern": "x", "group": "A"}, {"message": ".*", "group": "Other"}],
            [{"field": "message", "group": "A"}, {"message": ".*", "group": "Other"}],
        ]
        for rules in cases:
            with self.subTest(rules=rules):
                with self.assertRaises(ConfigError):
                    build_rules(rules)

    def test_catch_all_patterns(self) -> None:
        for pattern in (".*", "^.*", "^.*$", ".*$", ""):
            with self.subTest(pattern=pattern):
                self.assertTrue(is_catch_all_pattern(pattern))
        for pattern in (".+", "^feat", "^$"):
            with self.subTest(pattern=pattern):
                self.assertFalse(is_catch_all_pattern(pattern))

    def test_common_catch_all_variants(self) -> None:
        for pattern in ("(?s).*", ".*?", r"[\s\S]*", "^(?:.*)$", "(?i)^.*"):
            with self.subTest(pattern=pattern):
                self.assertTrue(is_catch_all_pattern(pattern))
                rules = build_rules([{"message": "^feat", "group": "F"}, {"message": pattern, "group": "Other"}])
                self.assertTrue(rules[-1].catch_all)
        self.assertFalse(is_catch_all_pattern(r"\$"))

    def test_missing_catch_all_names_accepted_forms(self) -> None:
        with self.assertRaises(ConfigError) as ctx:
            build_rules([{"message": "^feat", "group": "F"}, {"message": ".+", "group": "Other"}])
        self.assertIn('".*"', str(ctx.exception))


class TestClassifier(unittest.TestCase):
    def setUp(self) -> None:
        self.rules = build_rules([
            {"field": "label", "pattern": "breaking-change", "group": "Breaking"},
            {"message": "^feat", "group": "Features"},
            {"message": "^fix", "group": "Fixes"},
            {"message": "^chore|^ci", "group": "Chores"},
            {"message": ".*", "group": "Other"},
        ])
        self.classifier = Classifier(self.rules)

    def test_message_rules(self) -> None:
        cases = [
            ("feat: add x", "Features"),
            ("fix(core): handle overflow (#42)", "Fixes"),
            ("ci: run on tags", "Chores"),
            ("chore(deps): bump", "Chores"),
            ("Update README", "Other"),
            ("", "Other"),
        ]
        for message, expected in cases:
            with self.subTest(message=message):
                self.assertEqual(self.classifier.classify(make_commit(message)).group_tag, expected)

    def test_label_rule_wins_by_declaration_order(self) -> None:
        commit = make_commit("feat: remove api", labels={"breaking-change"})
        self.assertEqual(self.classifier.classify(commit).group_tag, "Breaking")

    def test_label_rule_requires_exact_label(self) -> None:
        commit = make_commit("feat: remove api", labels={"not-breaking-change"})
        self.assertEqual(self.classifier.classify(commit).group_tag, "Features")

    def test_message_rules_only_see_the_summary_line(self) -> None:
        commit = make_commit("Update docs\n\nfeat: mentioned in body")
        self.assertEqual(self.classifier.classify(commit).group_tag, "Other")

    def test_rule_order_is_observable(self) -> None:
        first = build_rules([
            {"message": "^fix", "group": "Fixes"},
            {"message": "^fix\\(core\\)", "group": "Core"},
            {"message": ".*", "group": "Other"},
        ])
        second = [first[1], first[0], first[2]]
        commit = make_commit("fix(core): handle overflow")
        self.assertEqual(Classifier(first).classify(commit).group_tag, "Fixes")
        self.assertEqual(Classifier(second).classify(commit).group_tag, "Core")

    def test_classify_all_assigns_exactly_one_group(self) -> None:
        commits = [make_commit(m, commit_id=str(i)) for i, m in enumerate(["feat: a", "misc", "fix: b", "???"])]
        classified = self.classifier.classify_all(commits)
        self.assertEqual([c.group for c in classified], ["Features", "Other", "Fixes", "Other"])
        # the input commits are left untouched
        self.assertTrue(all(c.group is None for c in commits))

    def test_filter_commits_drops_catch_all_matches(self) -> None:
        commits = [make_commit(m, commit_id=str(i)) for i, m in enumerate(["feat: a", "misc", "fix: b"])]
        classified = self.classifier.classify_all(commits, filter_commits=True)
        self.assertEqual([c.id for c in classified], ["0", "2"])

    def test_filter_unconventional_drops_free_form_messages(self) -> None:
        messages = ["Update deps", "fix: x", "chore(ci): bump", "WIP"]
        commits = [make_commit(m, commit_id=str(i)) for i, m in enumerate(messages)]
        classified = self.classifier.classify_all(commits, filter_unconventional=True)
        self.assertEqual([c.id for c in classified], ["1", "2"])
        self.assertEqual(len(self.classifier.classify_all(commits)), 4)

    def test_classifier_requires_catch_all(self) -> None:
        with self.assertRaises(ConfigError):
            Classifier([])
        with self.assertRaises(ConfigError):
            Classifier(self.rules[:-1])


if __name__ == "__main__":
    unittest.main()
