"""Tests for the strict GROUP n: response parser."""

import unittest
from textwrap import dedent

from grouped_commit.grouping.group_parser import GroupParser, ParseError


TWO_GROUPS = dedent(
    """
    GROUP 1: fix
    Scope: NONE
    Description: handle empty token
    Files:
    - x.ts

    GROUP 2: docs
    Scope: readme
    Description: document the token flow
    Files:
    - y.ts
    """
).strip()


class TestGroupParser(unittest.TestCase):
    def test_parses_groups_in_order(self) -> None:
        groups = GroupParser(["x.ts", "y.ts"]).parse(TWO_GROUPS)
        self.assertEqual([g.index for g in groups], [1, 2])
        self.assertEqual([g.type for g in groups], ["fix", "docs"])
        self.assertEqual(groups[0].files, ["x.ts"])
        self.assertEqual(groups[1].files, ["y.ts"])
        self.assertEqual(groups[0].description, "handle empty token")

    def test_scope_none_is_absent_and_real_scope_kept(self) -> None:
        groups = GroupParser().parse(TWO_GROUPS.replace("Scope: readme", "Scope: auth"))
        self.assertIsNone(groups[0].scope)
        self.assertEqual(groups[1].scope, "auth")

    def test_one_group_per_header(self) -> None:
        text = "\n\n".join(f"GROUP {n}: chore\nFiles:\n- f{n}.txt" for n in range(1, 6))
        groups = GroupParser().parse(text)
        self.assertEqual(len(groups), 5)
        self.assertTrue(all(g.files for g in groups))

    def test_natural_language_is_rejected(self) -> None:
        parser = GroupParser(["a.ts"])
        with self.assertRaises(ParseError) as ctx:
            parser.parse("I think you should commit everything together.")
        self.assertIn("GROUP 1:", str(ctx.exception))
        self.assertIn("commit everything", ctx.exception.excerpt)

    def test_preamble_before_first_header_is_rejected(self) -> None:
        with self.assertRaises(ParseError):
            GroupParser().parse("Here are the groups:\n" + TWO_GROUPS)

    def test_empty_response_is_rejected(self) -> None:
        with self.assertRaises(ParseError):
            GroupParser().parse("")

    def test_out_of_sequence_headers_are_rejected(self) -> None:
        text = "GROUP 1: feat\n- a\n\nGROUP 3: fix\n- b\n"
        with self.assertRaises(ParseError):
            GroupParser().parse(text)

    def test_leading_whitespace_is_tolerated(self) -> None:
        groups = GroupParser().parse("\n\n  " + TWO_GROUPS + "\n")
        self.assertEqual(len(groups), 2)

    def test_type_aliases_and_unknown_types(self) -> None:
        text = "GROUP 1: Feature\n- a\n\nGROUP 2: wibble\n- b\n"
        parser = GroupParser()
        groups = parser.parse(text)
        self.assertEqual(groups[0].type, "feat")
        self.assertEqual(groups[1].type, "chore")
        self.assertTrue(any("wibble" in w for w in parser.warnings))

    def test_unknown_type_rejected_by_policy(self) -> None:
        with self.assertRaises(ParseError):
            GroupParser(unknown_type_policy="reject").parse("GROUP 1: wibble\n- a\n")

    def test_header_scope(self) -> None:
        groups = GroupParser().parse("GROUP 1: feat(auth)\nDescription: x\n- a\n")
        self.assertEqual(groups[0].type, "feat")
        self.assertEqual(groups[0].scope, "auth")
        groups = GroupParser().parse("GROUP 1: feat(auth)\nScope: NONE\n- a\n")
        self.assertIsNone(groups[0].scope)

    def test_invalid_scope_dropped(self) -> None:
        parser = GroupParser()
        groups = parser.parse("GROUP 1: fix\nScope: not a valid scope at all\n- a\n")
        self.assertIsNone(groups[0].scope)
        self.assertTrue(parser.warnings)

    def test_group_without_files_is_dropped(self) -> None:
        text = "GROUP 1: feat\nDescription: nothing\n\nGROUP 2: fix\n- b\n"
        parser = GroupParser()
        groups = parser.parse(text)
        self.assertEqual([g.index for g in groups], [2])
        self.assertTrue(any("Group 1" in w for w in parser.warnings))

    def test_files_outside_change_set_are_dropped(self) -> None:
        parser = GroupParser(["a.ts"])
        groups = parser.parse("GROUP 1: feat\n- a.ts\n- invented.ts\n\nGROUP 2: fix\n- other.ts\n")
        self.assertEqual(len(groups), 1)
        self.assertEqual(groups[0].files, ["a.ts"])

    def test_duplicate_paths_within_group_collapsed(self) -> None:
        groups = GroupParser().parse("GROUP 1: feat\n- a\n- a\n- b\n")
        self.assertEqual(groups[0].files, ["a", "b"])

    def test_coverage_reports_unassigned_and_overlaps(self) -> None:
        parser = GroupParser(["a", "b", "c"])
        groups = parser.parse("GROUP 1: feat\n- a\n- b\n\nGROUP 2: fix\n- b\n")
        report = parser.coverage(groups)
        self.assertEqual(report.unassigned, ["c"])
        self.assertEqual(report.overlapping, {"b": [1, 2]})
        self.assertFalse(report.complete)

    def test_coverage_complete(self) -> None:
        parser = GroupParser(["x.ts", "y.ts"])
        report = parser.coverage(parser.parse(TWO_GROUPS))
        self.assertTrue(report.complete)


if __name__ == "__main__":
    unittest.main()
