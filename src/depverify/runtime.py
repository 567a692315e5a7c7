"""Runtime wiring helper for the CLI."""

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .adapters.fs_workspace import FsWorkspace
from .adapters.git_transport import GitTransport
from .adapters.gitmodules import discover_gitmodules
from .config import DepVerifyConfig, load_config
from .core.model import ContentUnit
from .errors import ConfigError


@dataclass
class Runtime:
    """Container for all wired components."""
    config: DepVerifyConfig
    workspace: FsWorkspace
    transport: GitTransport
    git: str = "git"

    @property
    def root(self) -> Path:
        return self.config.project.root

    def all_units(self) -> list[ContentUnit]:
        """Discovered submodules first, then config units; config wins on name clashes."""
        units: dict[str, ContentUnit] = {}
        if self.config.project.gitmodules:
            for unit in discover_gitmodules(self.root, self.git):
                units[unit.name] = unit
        for unit in self.config.units:
            units[unit.name] = unit
        return list(units.values())

    def select_units(
        self,
        names: Sequence[str] = (),
        variant: str | None = None,
    ) -> list[ContentUnit]:
        """Units to verify, in configured order, filtered by variant and names."""
        variant = variant or self.config.project.variant
        known = self.config.project.variants
        if variant is not None and known and variant not in known:
            raise ConfigError(f"invalid variant {variant!r}; expected one of: {', '.join(known)}")

        units = self.all_units()
        if names:
            by_name = {u.name: u for u in units}
            # accept a unit's path as an alias for its name
            by_name.update({u.local_path: u for u in units if u.local_path not in by_name})
            unknown = [n for n in names if n not in by_name]
            if unknown:
                raise ConfigError(f"unknown unit(s): {', '.join(unknown)}")
            wanted = {by_name[n].name for n in names}
            units = [u for u in units if u.name in wanted]

        return [u for u in units if u.wanted_by(variant)]


def build_runtime(
    root: Path | None = None,
    config_path: Path | None = None,
    git: str = "git",
) -> Runtime:
    """Build and wire all components for a project."""
    config = load_config(config_path=config_path, root=root)
    project_root = config.project.root

    return Runtime(
        config=config,
        workspace=FsWorkspace(project_root),
        transport=GitTransport(project_root, git=git),
        git=git,
    )
