"""Shared fixtures: in-memory ports and throwaway git repositories."""

import logging
import shutil
import subprocess
from pathlib import Path

import pytest
import structlog

from depverify.errors import FilesystemError

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class FakeWorkspace:
    """Directory tree kept as {path: [entries]}."""

    def __init__(self, paths: dict[str, list[str]] | None = None):
        self.paths = {k: list(v) for k, v in (paths or {}).items()}
        self.removed: list[str] = []
        self.remove_error: str | None = None

    def exists(self, path: str) -> bool:
        if path in self.paths:
            return True
        parent, _, name = path.rpartition("/")
        return name in self.paths.get(parent, [])

    def is_empty(self, path: str) -> bool:
        return not self.paths.get(path)

    def remove(self, path: str) -> None:
        if self.remove_error:
            raise FilesystemError(self.remove_error)
        self.removed.append(path)
        self.paths.pop(path, None)


class FakeTransport:
    """Acquisition populates the fake workspace; refs are tracked per path."""

    def __init__(self, workspace: FakeWorkspace, content: tuple[str, ...] = ("README.md",)):
        self.workspace = workspace
        self.content = content
        self.refs: dict[str, set[str]] = {}
        self.acquire_error: Exception | None = None
        self.unfetchable_refs: set[str] = set()
        self.resolve_calls: list[tuple[str, str]] = []
        self.acquire_calls: list[tuple[str, str, str | None, bool]] = []
        self.on_acquire = None

    @property
    def calls(self) -> int:
        return len(self.resolve_calls) + len(self.acquire_calls)

    def resolve_ref(self, path: str, ref: str, timeout: float) -> bool:
        self.resolve_calls.append((path, ref))
        return ref in self.refs.get(path, set())

    def acquire(self, source, path, ref, shallow, timeout) -> None:
        self.acquire_calls.append((source, path, ref, shallow))
        if self.on_acquire:
            self.on_acquire(path)
        if self.acquire_error:
            raise self.acquire_error
        self.workspace.paths[path] = list(self.content)
        self.refs[path] = set()
        if ref and ref not in self.unfetchable_refs:
            self.refs[path].add(ref)


@pytest.fixture
def workspace():
    return FakeWorkspace()


@pytest.fixture
def transport(workspace):
    return FakeTransport(workspace)


def git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


@pytest.fixture
def upstream(tmp_path):
    """A source repository with two commits; returns (file:// url, first sha, second sha)."""
    repo = tmp_path / "upstream"
    repo.mkdir()
    git(repo, "init", "-q")
    git(repo, "config", "uploadpack.allowAnySHA1InWant", "true")
    (repo / "package.json").write_text('{"name": "magma"}\n')
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "first")
    first = git(repo, "rev-parse", "HEAD")
    (repo / "index.js").write_text("console.log('hi')\n")
    git(repo, "add", ".")
    git(repo, "commit", "-q", "-m", "second")
    second = git(repo, "rev-parse", "HEAD")
    return repo.as_uri(), first, second


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers bound to captured streams once a CLI test finishes."""
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()
