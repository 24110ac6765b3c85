import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

from grouped_commit.vcs.git_client import FileChange, GitClient, GitError, parse_porcelain_z


class DummyProc(SimpleNamespace):
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""


class TestPorcelainParsing(unittest.TestCase):
    def test_parse_porcelain_z(self) -> None:
        output = (
            " M modified.py\0"
            "A  added.py\0"
            "D  deleted.py\0"
            "R  new_name.py\0old_name.py\0"
            "?? untracked.txt\0"
        )
        changes = parse_porcelain_z(output)
        self.assertIn(FileChange(path="modified.py", index_status=" ", worktree_status="M"), changes)
        self.assertIn(FileChange(path="added.py", index_status="A", worktree_status=" "), changes)
        self.assertIn(FileChange(path="deleted.py", index_status="D", worktree_status=" "), changes)
        rename = [c for c in changes if c.path == "new_name.py"][0]
        self.assertEqual(rename.orig_path, "old_name.py")
        self.assertTrue(rename.is_rename)
        untracked = [c for c in changes if c.path == "untracked.txt"][0]
        self.assertTrue(untracked.is_untracked)
        self.assertEqual(len(changes), 5)

    def test_parse_paths_with_spaces(self) -> None:
        changes = parse_porcelain_z(" M dir/with space.py\0")
        self.assertEqual(changes[0].path, "dir/with space.py")

    def test_parse_empty(self) -> None:
        self.assertEqual(parse_porcelain_z(""), [])


class TestGitClient(unittest.TestCase):
    def _client_with(self, responder):
        calls = []

        def fake_run(self, args, check=True, input_text=None):
            calls.append((args, input_text))
            return responder(args)

        patcher = patch.object(GitClient, "_run", autospec=True, side_effect=fake_run)
        patcher.start()
        self.addCleanup(patcher.stop)
        return GitClient(Path("/repo")), calls

    def test_run_raises_git_error_on_failure(self) -> None:
        with patch("grouped_commit.vcs.git_client.subprocess.run",
                   return_value=DummyProc(returncode=128, stdout="", stderr="fatal: bad")):
            with self.assertRaises(GitError) as ctx:
                GitClient(Path("/repo"))._run(["status"])
        self.assertIn("fatal: bad", str(ctx.exception))

    def test_run_without_check_returns_result(self) -> None:
        with patch("grouped_commit.vcs.git_client.subprocess.run",
                   return_value=DummyProc(returncode=1, stdout="", stderr="")):
            result = GitClient(Path("/repo"))._run(["diff", "--quiet"], check=False)
        self.assertEqual(result.returncode, 1)

    def test_run_missing_git_executable(self) -> None:
        with patch("grouped_commit.vcs.git_client.subprocess.run", side_effect=FileNotFoundError("git")):
            with self.assertRaises(GitError):
                GitClient(Path("/repo"))._run(["status"])

    def test_reset_index_with_head(self) -> None:
        def responder(args):
            return DummyProc(returncode=0)

        client, calls = self._client_with(responder)
        client.reset_index()
        self.assertIn(["reset", "-q", "HEAD"], [c[0] for c in calls])

    def test_reset_index_without_head(self) -> None:
        def responder(args):
            if args[:2] == ["rev-parse", "--verify"]:
                return DummyProc(returncode=1)
            return DummyProc(returncode=0)

        client, calls = self._client_with(responder)
        client.reset_index()
        commands = [c[0] for c in calls]
        self.assertIn(["rm", "-r", "--cached", "-q", "--ignore-unmatch", "--", "."], commands)
        self.assertFalse(any(cmd[0] == "reset" for cmd in commands))

    def test_has_staged_changes(self) -> None:
        client, _ = self._client_with(lambda args: DummyProc(returncode=1))
        self.assertTrue(client.has_staged_changes())

    def test_has_no_staged_changes(self) -> None:
        client, _ = self._client_with(lambda args: DummyProc(returncode=0))
        self.assertFalse(client.has_staged_changes())

    def test_has_staged_changes_error(self) -> None:
        client, _ = self._client_with(lambda args: DummyProc(returncode=128, stderr="boom"))
        with self.assertRaises(GitError):
            client.has_staged_changes()

    def test_ignored_uses_stdin(self) -> None:
        client, calls = self._client_with(lambda args: DummyProc(returncode=0, stdout="build/out.js\0"))
        self.assertEqual(client.ignored(["src/a.py", "build/out.js"]), ["build/out.js"])
        args, input_text = calls[0]
        self.assertEqual(args[0], "check-ignore")
        self.assertEqual(input_text, "src/a.py\0build/out.js\0")

    def test_ignored_none_matched(self) -> None:
        client, _ = self._client_with(lambda args: DummyProc(returncode=1, stdout=""))
        self.assertEqual(client.ignored(["a"]), [])

    def test_ignored_empty_input_runs_nothing(self) -> None:
        client, calls = self._client_with(lambda args: DummyProc())
        self.assertEqual(client.ignored([]), [])
        self.assertEqual(calls, [])

    def test_apply_cached_flags(self) -> None:
        client, calls = self._client_with(lambda args: DummyProc(returncode=0))
        self.assertTrue(client.apply_cached("PATCH", check_only=True, reverse=True))
        args, input_text = calls[0]
        self.assertEqual(args[:2], ["apply", "--cached"])
        self.assertIn("--check", args)
        self.assertIn("--reverse", args)
        self.assertEqual(input_text, "PATCH")

    def test_apply_cached_failure_returns_false(self) -> None:
        client, _ = self._client_with(lambda args: DummyProc(returncode=1, stderr="does not apply"))
        self.assertFalse(client.apply_cached("PATCH"))

    def test_commit_uses_message_file(self) -> None:
        seen = {}

        def responder(args):
            if args[0] == "commit":
                seen["message"] = Path(args[-1]).read_text(encoding="utf-8")
                seen["path"] = args[-1]
                return DummyProc()
            if args[0] == "rev-parse":
                return DummyProc(stdout="abc1234\n")
            raise AssertionError(f"Unexpected git command: {args}")

        client, _ = self._client_with(responder)
        sha = client.commit("feat: add x\n\nBody line")
        self.assertEqual(sha, "abc1234")
        self.assertEqual(seen["message"], "feat: add x\n\nBody line\n")
        self.assertFalse(Path(seen["path"]).exists())

    def test_operation_in_progress(self) -> None:
        import tempfile

        with tempfile.TemporaryDirectory() as tmp:
            git_dir = Path(tmp)
            client, _ = self._client_with(lambda args: DummyProc(stdout=f"{git_dir}\n"))
            self.assertIsNone(client.operation_in_progress())
            (git_dir / "rebase-merge").mkdir()
            self.assertEqual(client.operation_in_progress(), "rebase")

    def test_find_repo_root(self) -> None:
        import tempfile

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp).resolve()
            (root / ".git").mkdir()
            nested = root / "a" / "b"
            nested.mkdir(parents=True)
            self.assertEqual(GitClient.find_repo_root(nested), root)


if __name__ == "__main__":
    unittest.main()
