"""Tests for runtime wiring and unit selection."""

import pytest

import depverify.runtime as runtime
from depverify.core.model import ContentUnit
from depverify.errors import ConfigError
from depverify.runtime import build_runtime

CONFIG = """
[project]
gitmodules = false
variants = ["full", "slim"]

[[unit]]
name = "magma"
path = "plugins/magma"
source = "https://github.com/mitre/magma.git"

[[unit]]
name = "atomic"
path = "plugins/atomic/data/atomic-red-team"
source = "https://github.com/redcanaryco/atomic-red-team.git"
variants = ["full"]

[[unit]]
name = "sandcat"
path = "plugins/sandcat"
source = "https://github.com/mitre/sandcat.git"
"""


@pytest.fixture
def rt(tmp_path):
    (tmp_path / "depverify.toml").write_text(CONFIG)
    return build_runtime(root=tmp_path)


def test_build_runtime_wires_root(rt, tmp_path):
    assert rt.root == tmp_path
    assert rt.workspace.root == tmp_path
    assert rt.transport.root == tmp_path


def test_select_all_units_in_config_order(rt):
    assert [u.name for u in rt.select_units()] == ["magma", "atomic", "sandcat"]


def test_select_by_name_keeps_config_order(rt):
    assert [u.name for u in rt.select_units(["sandcat", "magma"])] == ["magma", "sandcat"]


def test_select_by_path(rt):
    assert [u.name for u in rt.select_units(["plugins/sandcat"])] == ["sandcat"]


def test_unknown_unit_name(rt):
    with pytest.raises(ConfigError, match="unknown unit"):
        rt.select_units(["stockpile"])


def test_variant_filters_units(rt):
    assert [u.name for u in rt.select_units(variant="slim")] == ["magma", "sandcat"]
    assert [u.name for u in rt.select_units(variant="full")] == ["magma", "atomic", "sandcat"]


def test_invalid_variant(rt):
    with pytest.raises(ConfigError, match="invalid variant"):
        rt.select_units(variant="tiny")


def test_config_units_override_discovered(tmp_path, monkeypatch):
    (tmp_path / "depverify.toml").write_text(
        '[[unit]]\nname = "plugins/magma"\npath = "plugins/magma"\nsource = "https://mirror.example/magma.git"\n'
    )
    (tmp_path / ".gitmodules").write_text(
        '[submodule "plugins/magma"]\n\tpath = plugins/magma\n\turl = https://github.com/mitre/magma.git\n'
    )

    monkeypatch.setattr(
        runtime,
        "discover_gitmodules",
        lambda root, git: [
            ContentUnit("plugins/magma", "plugins/magma", "https://github.com/mitre/magma.git", "a" * 40)
        ],
    )

    units = build_runtime(root=tmp_path).all_units()

    assert len(units) == 1
    assert units[0].canonical_source == "https://mirror.example/magma.git"
