"""Tests for core/manifest.py."""
from __future__ import annotations

import json
from pathlib import Path

from ecosystem_ci.core.manifest import PackageManifest


def _manifest() -> PackageManifest:
    return PackageManifest(
        {
            "name": "subject",
            "scripts": {"build": "tsc"},
            "dependencies": {"vue": "^3.4.0"},
            "devDependencies": {"vite": "^5.0.0"},
            "peerDependencies": {"rollup": "^4.0.0"},
        }
    )


def test_properties() -> None:
    manifest = _manifest()
    assert manifest.name == "subject"
    assert manifest.scripts == {"build": "tsc"}
    assert manifest.dependencies == {"vue": "^3.4.0"}
    assert manifest.dev_dependencies == {"vite": "^5.0.0"}
    assert manifest.peer_dependencies == {"rollup": "^4.0.0"}


def test_properties_on_empty_manifest() -> None:
    manifest = PackageManifest()
    assert manifest.name is None
    assert manifest.scripts == {}
    assert manifest.dependency_names() == set()


def test_scripts_is_a_copy() -> None:
    manifest = _manifest()
    manifest.scripts["test"] = "vitest"
    assert "test" not in manifest.data["scripts"]


def test_dependency_names() -> None:
    assert _manifest().dependency_names() == {"vue", "vite", "rollup"}


def test_block_creates_nested_objects() -> None:
    manifest = PackageManifest({"name": "x"})
    manifest.block("pnpm", "overrides")["vite"] = "5.0.0"
    assert manifest.data == {"name": "x", "pnpm": {"overrides": {"vite": "5.0.0"}}}


def test_block_returns_live_mapping() -> None:
    manifest = PackageManifest({"resolutions": {"a": "1"}})
    manifest.block("resolutions")["b"] = "2"
    assert manifest.data["resolutions"] == {"a": "1", "b": "2"}


def test_save_and_load(tmp_path: Path) -> None:
    manifest = _manifest()
    path = manifest.save(tmp_path)
    assert path == tmp_path / "package.json"
    text = path.read_text()
    assert text.endswith("}\n")
    assert text.startswith('{\n  "name": "subject"')
    assert PackageManifest.load(tmp_path).data == json.loads(text)


def test_save_keeps_key_order(tmp_path: Path) -> None:
    manifest = PackageManifest({"z": 1, "a": 2})
    manifest.save(tmp_path)
    assert list(json.loads((tmp_path / "package.json").read_text())) == ["z", "a"]
