"""Tests for the git log adapter."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

SAMPLE_LOG = (
    "__commit__abc123\x1falice@example.com\x1f1700000000\n"
    "\n"
    "10\t2\tsrc/auth.rs\n"
    "-\t-\tassets/logo.png\n"
    "__commit__def456\x1fbob@example.com\x1f1700000100\n"
    "\n"
    "3\t1\tsrc/{old => new}/mod.rs\n"
    "1\t1\tREADME.md => docs/README.md\n"
)


class TestParseGitLog:
    """Tests for parse_git_log."""

    def test_parses_commits_in_order(self):
        from history_reviewer.history.reader import parse_git_log

        commits = parse_git_log(SAMPLE_LOG)

        assert [c.hash for c in commits] == ["abc123", "def456"]
        assert commits[0].author == "alice@example.com"
        assert commits[0].timestamp == 1700000000
        assert commits[0].files[0].path == "src/auth.rs"
        assert commits[0].files[0].churn == 12

    def test_binary_counts_are_zero(self):
        from history_reviewer.history.reader import parse_git_log

        binary = parse_git_log(SAMPLE_LOG)[0].files[1]

        assert binary.path == "assets/logo.png"
        assert binary.churn == 0

    def test_renames_resolve_to_new_path(self):
        from history_reviewer.history.reader import parse_git_log

        paths = [f.path for f in parse_git_log(SAMPLE_LOG)[1].files]

        assert paths == ["src/new/mod.rs", "docs/README.md"]

    def test_skips_bulk_commits(self):
        from history_reviewer.history.reader import parse_git_log

        lines = ["__commit__big\x1fa@x\x1f1"] + [f"1\t0\tf{i}.py" for i in range(30)]
        lines += ["__commit__small\x1fa@x\x1f2", "1\t0\tone.py"]

        commits = parse_git_log("\n".join(lines), max_files_per_commit=25)

        assert [c.hash for c in commits] == ["small"]

    def test_resolve_rename_empty_side(self):
        from history_reviewer.history.reader import resolve_rename

        assert resolve_rename("src/{ => sub}/a.py") == "src/sub/a.py"
        assert resolve_rename("plain.py") == "plain.py"


class TestGitLogReader:
    """Tests for GitLogReader."""

    def test_read_runs_git_log(self, tmp_path):
        from history_reviewer.history.reader import GitLogReader

        completed = MagicMock(returncode=0, stdout=SAMPLE_LOG, stderr="")
        with patch("history_reviewer.history.reader.subprocess.run", return_value=completed) as mock_run:
            commits = GitLogReader().read(tmp_path, since_days=90)

        assert len(commits) == 2
        cmd = mock_run.call_args.args[0]
        assert cmd[:2] == ["git", "log"]
        assert "--since=90.days" in cmd
        assert "--numstat" in cmd

    def test_failure_raises_history_unavailable(self, tmp_path):
        from history_reviewer.errors import HistoryUnavailable
        from history_reviewer.history.reader import GitLogReader

        completed = MagicMock(returncode=128, stdout="", stderr="fatal: not a git repository")
        with patch("history_reviewer.history.reader.subprocess.run", return_value=completed):
            with pytest.raises(HistoryUnavailable, match="not a git repository"):
                GitLogReader().read(tmp_path, since_days=90)

    def test_timeout_raises_history_unavailable(self, tmp_path):
        from history_reviewer.errors import HistoryUnavailable
        from history_reviewer.history.reader import GitLogReader

        with patch(
            "history_reviewer.history.reader.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="git", timeout=1),
        ):
            with pytest.raises(HistoryUnavailable, match="timed out"):
                GitLogReader(timeout_seconds=1).read(tmp_path, since_days=90)

    def test_missing_git_raises_history_unavailable(self, tmp_path):
        from history_reviewer.errors import HistoryUnavailable
        from history_reviewer.history.reader import GitLogReader

        with patch("history_reviewer.history.reader.subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(HistoryUnavailable):
                GitLogReader().read(tmp_path, since_days=90)


class TestSnapshotLineCounts:
    """Tests for snapshot_line_counts."""

    def test_counts_existing_files_only(self, repo_with_files):
        from history_reviewer.history.reader import snapshot_line_counts

        counts = snapshot_line_counts(repo_with_files, ["src/auth.rs", "src/main.rs", "src/gone.rs"])

        assert counts == {"src/auth.rs": 200, "src/main.rs": 30}
