"""Transport port backed by the git command line."""

import os
import re
import shutil
import subprocess
import time
from pathlib import Path

import structlog

from ..core.ports import Transport
from ..errors import FilesystemError, RefNotFound, TransportUnreachable
from .fs_workspace import contained_path

logger = structlog.get_logger()

# stderr fragments meaning the ref itself is absent upstream
_REF_NOT_FOUND_MARKERS = (
    "not our ref",
    "couldn't find remote ref",
    "did not contain",
    "unadvertised object",
    "remote branch",  # "Remote branch X not found in upstream origin"
    "no such ref",
)

_DEST_EXISTS_MARKER = "already exists and is not an empty directory"

_COMMIT_RE = re.compile(r"^(?:[0-9a-fA-F]{40}|[0-9a-fA-F]{64})$")


def _git_env(ceiling: Path | None = None) -> dict[str, str]:
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"
    env.setdefault("LANG", "C")
    env.setdefault("LC_ALL", "C")
    if ceiling is not None:
        # keep git from walking up into an enclosing superproject
        env["GIT_CEILING_DIRECTORIES"] = str(ceiling)
    return env


class GitTransport(Transport):
    def __init__(self, root: Path, git: str = "git"):
        self.root = root
        self.git = git

    def _run(
        self,
        args: list[str],
        timeout: float,
        cwd: Path | None = None,
        ceiling: Path | None = None,
    ) -> subprocess.CompletedProcess:
        cmd = [self.git, *args]
        workdir = cwd or self.root
        logger.debug("git_run", cmd=" ".join(cmd), cwd=str(workdir))
        try:
            return subprocess.run(
                cmd,
                cwd=str(workdir),
                env=_git_env(ceiling),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=max(timeout, 0.0),
            )
        except subprocess.TimeoutExpired as e:
            raise TransportUnreachable(f"timeout after {timeout:g}s running git {args[0]}") from e
        except FileNotFoundError as e:
            if not workdir.is_dir():
                raise FilesystemError(f"working directory does not exist: {workdir}") from e
            raise TransportUnreachable(f"git executable not found: {self.git}") from e

    def resolve_ref(self, path: str, ref: str, timeout: float) -> bool:
        repo = contained_path(self.root, path)
        if not repo.is_dir():
            return False
        # a branch cloned with --branch may only exist as origin/<ref>
        for candidate in (ref, f"refs/remotes/origin/{ref}"):
            result = self._run(
                ["rev-parse", "--verify", "--quiet", f"{candidate}^{{commit}}"],
                timeout,
                cwd=repo,
                ceiling=repo.parent,
            )
            if result.returncode == 0:
                return True
        return False

    def acquire(
        self,
        source: str,
        path: str,
        ref: str | None,
        shallow: bool,
        timeout: float,
    ) -> None:
        dest = contained_path(self.root, path)
        deadline = time.monotonic() + timeout
        depth = ["--depth", "1"] if shallow else []
        existed = dest.exists()

        def remaining() -> float:
            return deadline - time.monotonic()

        try:
            if ref is None:
                self._check(self._run(["clone", *depth, source, str(dest)], remaining()), source)
            elif _COMMIT_RE.match(ref):
                self._fetch_commit(source, dest, ref, depth, remaining)
            else:
                # branch or tag name
                self._check(
                    self._run(["clone", "--branch", ref, *depth, source, str(dest)], remaining()),
                    source,
                    ref,
                )
        except Exception:
            if not existed:
                shutil.rmtree(dest, ignore_errors=True)
            raise

    def _fetch_commit(self, source, dest, commit, depth, remaining) -> None:
        self._check(
            self._run(["clone", "--no-checkout", *depth, source, str(dest)], remaining()),
            source,
        )
        self._check(
            self._run(["fetch", *depth, "origin", commit], remaining(), cwd=dest),
            source,
            commit,
        )
        self._check(
            self._run(["checkout", "--detach", "--quiet", "FETCH_HEAD"], remaining(), cwd=dest),
            source,
            commit,
        )

    def _check(
        self,
        result: subprocess.CompletedProcess,
        source: str,
        ref: str | None = None,
    ) -> None:
        if result.returncode == 0:
            return
        stderr = result.stderr.strip()
        lowered = stderr.lower()
        if _DEST_EXISTS_MARKER in lowered:
            raise FilesystemError(stderr)
        if ref and any(marker in lowered for marker in _REF_NOT_FOUND_MARKERS):
            raise RefNotFound(f"{ref} not found in {source}", stderr=stderr)
        detail = stderr.splitlines()[-1] if stderr else f"exit code {result.returncode}"
        raise TransportUnreachable(f"{source}: {detail}", stderr=stderr)
