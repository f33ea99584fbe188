"""Pytest configuration and shared fixtures."""

import json
from pathlib import Path

import pytest

from history_reviewer.models.history import CommitRecord, FileChange
from history_reviewer.providers.base import Prompt, ProviderClient
from history_reviewer.providers.retry import RetryPolicy

# Sample diffs for testing
SAMPLE_AUTH_DIFF = """\
diff --git a/src/auth.rs b/src/auth.rs
index 1234567..abcdefg 100644
--- a/src/auth.rs
+++ b/src/auth.rs
@@ -10,6 +10,9 @@ fn authenticate(user: &str, password: &str) -> bool {
     let hashed = hash_password(password);
-    db.verify_user(user, &hashed)
+    let token = session.get(user).unwrap();
+    db.verify_user(user, &hashed);
+    token.is_valid()
 }
"""

SAMPLE_MULTI_FILE_DIFF = """\
diff --git a/auth/login.py b/auth/login.py
--- a/auth/login.py
+++ b/auth/login.py
@@ -10,6 +10,7 @@ def authenticate(username, password):
     hashed = hash_password(password)
+    query = f"SELECT * FROM users WHERE name = '{username}'"
     return db.verify_user(username, hashed)
diff --git a/auth/session.py b/auth/session.py
--- a/auth/session.py
+++ b/auth/session.py
@@ -1,3 +1,4 @@
 import time
+TIMEOUT = 0
"""


def make_commit(
    hash: str,
    author: str,
    files: list[str] | list[tuple[str, int, int]],
    timestamp: int = 1_700_000_000,
) -> CommitRecord:
    """Build a CommitRecord from paths or (path, added, deleted) tuples."""
    changes = []
    for f in files:
        if isinstance(f, tuple):
            changes.append(FileChange(path=f[0], lines_added=f[1], lines_deleted=f[2]))
        else:
            changes.append(FileChange(path=f, lines_added=1, lines_deleted=0))
    return CommitRecord(hash=hash, author=author, timestamp=timestamp, files=tuple(changes))


def comments_response(*comments: dict) -> str:
    """A generation reply in the wire format the prompt asks for."""
    return json.dumps({"comments": list(comments)})


def evaluations_response(scores: list[int], severities: dict[int, str] | None = None) -> str:
    """A reflection reply scoring findings in order."""
    severities = severities or {}
    evaluations = []
    for i, score in enumerate(scores):
        entry = {"index": i, "score": score}
        if i in severities:
            entry["severity"] = severities[i]
        evaluations.append(entry)
    return json.dumps({"evaluations": evaluations})


class ScriptedProvider:
    """Provider double that replays scripted replies or raises scripted errors."""

    name = "scripted"

    def __init__(self, script: list, model: str = "test-model") -> None:
        self.script = list(script)
        self.model = model
        self.prompts: list[Prompt] = []
        self.closed = False

    async def complete(self, prompt: Prompt) -> str:
        self.prompts.append(prompt)
        if not self.script:
            raise AssertionError("ScriptedProvider ran out of replies")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


class StaticReader:
    """Commit log reader returning a fixed list (or raising)."""

    def __init__(self, commits: list[CommitRecord] | None = None, errors: list[Exception] | None = None):
        self.commits = commits or []
        self.errors = list(errors or [])
        self.calls = 0

    def read(self, repo_path: Path, since_days: int) -> list[CommitRecord]:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return list(self.commits)


async def _no_sleep(delay: float) -> None:
    return None


def scripted_client(script: list, max_retries: int = 5) -> tuple[ProviderClient, ScriptedProvider]:
    provider = ScriptedProvider(script)
    client = ProviderClient(provider, RetryPolicy(max_retries=max_retries), sleep=_no_sleep)
    return client, provider


def large_two_file_diff(lines: int = 700) -> str:
    """A long a.py addition followed by a short z.py change naming SECRET_BUG."""
    body = "".join(
        f"+    value_{i:04d} = compute(argument_{i:04d}, other_argument_{i:04d}, flag=True)  # pad\n"
        for i in range(lines)
    )
    return (
        "diff --git a/a.py b/a.py\n"
        "--- a/a.py\n"
        "+++ b/a.py\n"
        f"@@ -0,0 +1,{lines} @@\n"
        f"{body}"
        "diff --git a/z.py b/z.py\n"
        "--- a/z.py\n"
        "+++ b/z.py\n"
        "@@ -1,2 +1,2 @@\n"
        " def check(user):\n"
        "-    return user.is_admin\n"
        "+    return SECRET_BUG or user.is_admin\n"
    )


@pytest.fixture
def sample_auth_diff() -> str:
    """A single-file diff with an unwrap on a session lookup."""
    return SAMPLE_AUTH_DIFF


@pytest.fixture
def sample_multi_file_diff() -> str:
    """A two-file diff with an injection bug."""
    return SAMPLE_MULTI_FILE_DIFF


@pytest.fixture
def auth_hotspot_commits() -> list[CommitRecord]:
    """auth.rs revised 20 times, 19 of them by alice; a few quiet files."""
    commits = []
    for i in range(20):
        author = "alice@example.com" if i < 19 else "bob@example.com"
        commits.append(make_commit(f"a{i:02d}", author, [("src/auth.rs", 40, 25)], timestamp=1_700_000_000 + i))
    commits.append(make_commit("b01", "bob@example.com", [("src/util.rs", 3, 1)]))
    commits.append(make_commit("b02", "carol@example.com", [("src/main.rs", 2, 0)]))
    return commits


@pytest.fixture
def repo_with_files(tmp_path: Path) -> Path:
    """A directory with a few files of known line counts."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "auth.rs").write_text("line\n" * 200)
    (tmp_path / "src" / "util.rs").write_text("line\n" * 50)
    (tmp_path / "src" / "main.rs").write_text("line\n" * 30)
    return tmp_path
