"""Configuration loader for depverify.toml."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from .core.model import ContentUnit, escapes_root
from .errors import ConfigError

CONFIG_NAME = "depverify.toml"


@dataclass
class ProjectConfig:
    """Project layout and build variant selection."""
    root: Path
    variant: str | None = None
    variants: tuple[str, ...] = ()
    gitmodules: bool = True


@dataclass
class VerifyConfig:
    """Defaults for the verify command."""
    remediate: bool = True
    shallow: bool = True
    timeout: float = 120.0
    workers: int = 1
    strict: bool = True
    require_units: bool = True


@dataclass
class DepVerifyConfig:
    """Complete depverify configuration."""
    project: ProjectConfig
    verify: VerifyConfig
    units: list[ContentUnit] = field(default_factory=list)
    source: Path | None = None  # file the config was read from


def _str_tuple(value: Any, what: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"{what} must be a string or a list of strings")
    return tuple(value)


def _bool(data: dict[str, Any], key: str, default: bool, what: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"{what}.{key} must be true or false, got {value!r}")
    return value


def parse_unit(data: dict[str, Any]) -> ContentUnit:
    """Build a ContentUnit from one [[unit]] table."""
    missing = [k for k in ("name", "path", "source") if not data.get(k)]
    if missing:
        label = data.get("name", "<unnamed>")
        raise ConfigError(f"unit {label}: missing {', '.join(missing)}")

    ref = data.get("ref")
    if ref is not None and not isinstance(ref, str):
        raise ConfigError(f"unit {data['name']}: ref must be a string")
    if escapes_root(str(data["path"])):
        raise ConfigError(f"unit {data['name']}: path {data['path']!r} must be a relative path below the project root")

    return ContentUnit(
        name=str(data["name"]),
        local_path=str(data["path"]),
        canonical_source=str(data["source"]),
        expected_ref=ref or None,
        required_files=_str_tuple(data.get("required"), f"unit {data['name']}: required"),
        variants=_str_tuple(data.get("variants"), f"unit {data['name']}: variants"),
    )


def load_config(config_path: Path | None = None, root: Path | None = None) -> DepVerifyConfig:
    """
    Load configuration from depverify.toml.

    Search order:
    1. config_path (if provided, must exist)
    2. cwd/depverify.toml
    3. root/depverify.toml

    Args:
        config_path: Explicit path to config file
        root: Project root for fallback search; overrides [project].root

    Returns:
        DepVerifyConfig with resolved settings
    """
    toml_data: dict[str, Any] = {}
    source: Path | None = None

    if config_path is not None and not config_path.exists():
        raise ConfigError(f"config file not found: {config_path}")

    search_paths = []
    if config_path:
        search_paths.append(config_path)
    search_paths.append(Path.cwd() / CONFIG_NAME)
    if root:
        search_paths.append(root / CONFIG_NAME)

    for path in search_paths:
        if path.exists():
            try:
                with open(path, "rb") as f:
                    toml_data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"invalid TOML in {path}: {e}") from e
            source = path
            break

    # Parse project config; a relative root is taken from the config file's directory
    project_data = toml_data.get("project", {})
    if root is None:
        root = Path(project_data.get("root", "."))
        if source is not None and not root.is_absolute():
            root = source.parent / root

    variants = _str_tuple(project_data.get("variants"), "project.variants")
    variant = project_data.get("variant")
    if variant is not None and variants and variant not in variants:
        raise ConfigError(f"invalid variant {variant!r}; expected one of: {', '.join(variants)}")

    project_config = ProjectConfig(
        root=root,
        variant=variant,
        variants=variants,
        gitmodules=_bool(project_data, "gitmodules", True, "project"),
    )

    # Parse verify defaults
    verify_data = toml_data.get("verify", {})
    try:
        verify_config = VerifyConfig(
            remediate=_bool(verify_data, "remediate", True, "verify"),
            shallow=_bool(verify_data, "shallow", True, "verify"),
            timeout=float(verify_data.get("timeout", 120.0)),
            workers=int(verify_data.get("workers", 1)),
            strict=_bool(verify_data, "strict", True, "verify"),
            require_units=_bool(verify_data, "require_units", True, "verify"),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid [verify] value: {e}") from e
    if verify_config.timeout <= 0:
        raise ConfigError("verify.timeout must be positive")
    if verify_config.workers < 1:
        raise ConfigError("verify.workers must be at least 1")

    # Parse units
    units = [parse_unit(u) for u in toml_data.get("unit", [])]

    return DepVerifyConfig(
        project=project_config,
        verify=verify_config,
        units=units,
        source=source,
    )
