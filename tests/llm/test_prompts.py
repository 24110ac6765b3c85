import unittest

from grouped_commit.llm import prompts


class TestGroupingPrompt(unittest.TestCase):
    def test_lists_files_status_and_untracked(self) -> None:
        prompt, system = prompts.build_grouping_prompt(
            ["src/a.py", "notes.txt"],
            " M src/a.py\n?? notes.txt",
            " src/a.py | 2 +-",
            "diff --git a/src/a.py b/src/a.py\n",
            ["notes.txt"],
            max_chars=1000,
        )
        self.assertIn("- src/a.py\n- notes.txt", prompt)
        self.assertIn("NEW UNTRACKED FILES", prompt)
        self.assertIn("diff --git a/src/a.py", prompt)
        self.assertIn('"GROUP 1: <type>"', system)
        self.assertIn("- feat:", system)
        self.assertNotIn("{types}", system)

    def test_diff_is_truncated(self) -> None:
        prompt, _ = prompts.build_grouping_prompt(["a"], "", "", "x" * 50, [], max_chars=10)
        self.assertIn("x" * 10 + prompts.TRUNCATION_MARKER, prompt)
        self.assertNotIn("x" * 11, prompt)


class TestMessagePrompts(unittest.TestCase):
    def test_message_prompt_carries_prefix_and_limits(self) -> None:
        prompt, system = prompts.build_message_prompt("feat(auth):", "add login", "+code", 60, 1000)
        self.assertIn('starting with "feat(auth):"', prompt)
        self.assertIn("add login", prompt)
        self.assertIn("+code", prompt)
        self.assertIn("at most 60 characters", system)
        self.assertIn("exceed 72 characters", system)

    def test_message_prompt_without_diff(self) -> None:
        prompt, _ = prompts.build_message_prompt("fix:", "", "", 67, 1000)
        self.assertIn("(no diff available)", prompt)
        self.assertIn("(not given)", prompt)

    def test_adjust_prompt_quotes_current_message(self) -> None:
        prompt, system = prompts.build_adjust_prompt("fix: old summary", "mention the cache", "fix:", 67)
        self.assertIn("fix: old summary", prompt)
        self.assertIn('"mention the cache"', prompt)
        self.assertIn('"fix:"', system)

    def test_truncate_short_text_is_unchanged(self) -> None:
        self.assertEqual(prompts.truncate("abc", 3), "abc")


if __name__ == "__main__":
    unittest.main()
