"""Discover content units from a superproject's .gitmodules."""

import re
import subprocess
from pathlib import Path

import structlog

from ..core.model import ContentUnit, escapes_root
from ..errors import ConfigError

logger = structlog.get_logger()

_KEY_RE = re.compile(r"^submodule\.(?P<name>.+)\.(?P<key>path|url|branch)$")
_LS_TREE_RE = re.compile(r"^160000 commit (?P<sha>[0-9a-f]{40,64})\t")


def _git(root: Path, git: str, args: list[str], timeout: float) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(
            [git, *args],
            cwd=str(root),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError as e:
        raise ConfigError(f"git executable not found: {git}") from e
    except subprocess.TimeoutExpired as e:
        raise ConfigError(f"timeout reading submodule metadata in {root}") from e


def read_gitmodules(root: Path, git: str = "git", timeout: float = 30.0) -> dict[str, dict[str, str]]:
    """
    Return ``{name: {"path": ..., "url": ..., "branch": ...}}`` from .gitmodules.

    A missing .gitmodules yields an empty mapping.
    """
    if not (root / ".gitmodules").is_file():
        return {}

    result = _git(
        root, git, ["config", "-f", ".gitmodules", "--get-regexp", r"^submodule\..*\.(path|url|branch)$"], timeout
    )
    # exit code 1 means no matching keys
    if result.returncode not in (0, 1):
        raise ConfigError(f"cannot read {root / '.gitmodules'}: {result.stderr.strip()}")

    modules: dict[str, dict[str, str]] = {}
    for line in result.stdout.splitlines():
        key, _, value = line.partition(" ")
        m = _KEY_RE.match(key)
        if not m:
            continue
        modules.setdefault(m.group("name"), {})[m.group("key")] = value.strip()
    return modules


def pinned_commit(root: Path, path: str, git: str = "git", timeout: float = 30.0) -> str | None:
    """Commit recorded for ``path`` in the superproject's HEAD, if any."""
    result = _git(root, git, ["ls-tree", "HEAD", "--", path], timeout)
    if result.returncode != 0:
        return None
    m = _LS_TREE_RE.match(result.stdout)
    return m.group("sha") if m else None


def discover_gitmodules(root: Path, git: str = "git", timeout: float = 30.0) -> list[ContentUnit]:
    """Build one unit per submodule that declares both a path and a url."""
    units: list[ContentUnit] = []
    for name, entry in read_gitmodules(root, git, timeout).items():
        path = entry.get("path")
        url = entry.get("url")
        if not path or not url:
            logger.warning("gitmodules_entry_incomplete", submodule=name)
            continue
        if escapes_root(path):
            logger.warning("gitmodules_path_outside_root", submodule=name, path=path)
            continue
        branch = entry.get("branch")
        if branch == ".":
            branch = None
        ref = pinned_commit(root, path, git, timeout) or branch
        units.append(
            ContentUnit(
                name=name,
                local_path=path,
                canonical_source=url,
                expected_ref=ref,
            )
        )
    logger.debug("gitmodules_discovered", count=len(units))
    return units
