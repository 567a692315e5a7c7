import os
import shutil
from pathlib import Path

from ..core.ports import Workspace
from ..errors import FilesystemError


def contained_path(root: Path, path: str) -> Path:
    """Resolve ``path`` under ``root``, refusing anything not strictly below it."""
    base = root.resolve()
    target = Path(os.path.normpath(base / path))
    if target == base or base not in target.parents:
        raise FilesystemError(f"path {path!r} is not inside {base}")
    return target


class FsWorkspace(Workspace):
    def __init__(self, root: Path):
        self.root = root

    def _path(self, path: str) -> Path:
        return contained_path(self.root, path)

    def exists(self, path: str) -> bool:
        return self._path(path).exists()

    def is_empty(self, path: str) -> bool:
        p = self._path(path)
        if not p.is_dir():
            return p.stat().st_size == 0
        return next(p.iterdir(), None) is None

    def remove(self, path: str) -> None:
        p = self._path(path)
        try:
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(p)
            elif p.exists() or p.is_symlink():
                p.unlink()
        except OSError as e:
            raise FilesystemError(f"cannot remove {p}: {e}") from e
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"cannot create {p.parent}: {e}") from e
