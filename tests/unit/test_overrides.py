"""Tests for pipeline/overrides.py — layering of the override set."""
from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from ecosystem_ci.core.config import RunOptions
from ecosystem_ci.core.exceptions import (
    ConfigurationError,
    ConflictingOverrideError,
    UpstreamQueryError,
)
from ecosystem_ci.core.manifest import PackageManifest
from ecosystem_ci.pipeline.builds import BuildContext, SiblingBuildDefinition
from ecosystem_ci.pipeline.overrides import OverrideResolver


class FakeUpstream:
    def __init__(self, root: Path, versions: dict[str, str] | None = None) -> None:
        self.root = root
        self.dependency_versions = AsyncMock(return_value=versions or {})

    def local_overrides(self) -> dict[str, str]:
        return {
            "upstream-lib": str(self.root / "packages/upstream-lib"),
            "@upstream/plugin": str(self.root / "packages/plugin"),
        }


def _options(tmp_path: Path, **kwargs) -> RunOptions:
    return RunOptions(workspace=tmp_path, repo="me/subject", **kwargs)


def _manifest(*deps: str) -> PackageManifest:
    return PackageManifest({"dependencies": {name: "^1.0.0" for name in deps}})


@pytest.fixture
def vue_build(tmp_path: Path) -> tuple[SiblingBuildDefinition, AsyncMock]:
    build = AsyncMock(return_value=tmp_path / "vue")
    definition = SiblingBuildDefinition(
        name="vue",
        packages={"vue": "packages/vue", "@vue/compiler-sfc": "packages/compiler-sfc"},
        build=build,
    )
    return definition, build


@pytest.fixture
def build_context(tmp_path: Path, fake_shell, git, config) -> BuildContext:
    return BuildContext(workspace=tmp_path, shell=fake_shell, git=git, config=config)


# ---------------------------------------------------------------------------
# Release versions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_release_pins_upstream(tmp_path: Path) -> None:
    resolver = OverrideResolver("upstream-lib")
    resolved = await resolver.resolve(_manifest("upstream-lib"), _options(tmp_path, release="2.1.0"))
    assert resolved == {"upstream-lib": "2.1.0"}


@pytest.mark.asyncio
async def test_release_conflicts_with_explicit_override(tmp_path: Path) -> None:
    resolver = OverrideResolver("upstream-lib")
    options = _options(tmp_path, release="2.1.0", overrides={"upstream-lib": "2.0.0"})
    with pytest.raises(ConflictingOverrideError, match="Use either one or the other"):
        await resolver.resolve(_manifest("upstream-lib"), options)


def test_check_release_accepts_matching_or_boolean_override(tmp_path: Path) -> None:
    resolver = OverrideResolver("upstream-lib")
    resolver.check_release(_options(tmp_path, release="2.1.0", overrides={"upstream-lib": "2.1.0"}))
    resolver.check_release(_options(tmp_path, release="2.1.0", overrides={"upstream-lib": True}))
    resolver.check_release(_options(tmp_path, overrides={"upstream-lib": "2.0.0"}))


@pytest.mark.asyncio
async def test_no_release_and_no_upstream(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        await OverrideResolver("upstream-lib").resolve(_manifest(), _options(tmp_path))


# ---------------------------------------------------------------------------
# Local upstream build
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_local_upstream_paths(tmp_path: Path) -> None:
    upstream = FakeUpstream(tmp_path / "up")
    resolver = OverrideResolver("upstream-lib", upstream=upstream)
    resolved = await resolver.resolve(_manifest("upstream-lib"), _options(tmp_path))
    assert resolved == upstream.local_overrides()
    upstream.dependency_versions.assert_not_awaited()


@pytest.mark.asyncio
async def test_pins_use_upstream_versions(tmp_path: Path) -> None:
    upstream = FakeUpstream(tmp_path / "up", {"rollup": "4.9.6", "esbuild": "0.19.0"})
    resolver = OverrideResolver("upstream-lib", upstream=upstream, pins=["rollup", "missing"])
    resolved = await resolver.resolve(_manifest(), _options(tmp_path))
    assert resolved["rollup"] == "4.9.6"
    assert "esbuild" not in resolved
    assert "missing" not in resolved


@pytest.mark.asyncio
async def test_false_suppresses_pin(tmp_path: Path) -> None:
    upstream = FakeUpstream(tmp_path / "up", {"rollup": "4.9.6"})
    resolver = OverrideResolver("upstream-lib", upstream=upstream, pins=["rollup"])
    resolved = await resolver.resolve(_manifest(), _options(tmp_path, overrides={"rollup": False}))
    assert "rollup" not in resolved
    upstream.dependency_versions.assert_not_awaited()


@pytest.mark.asyncio
async def test_upstream_query_failure_propagates(tmp_path: Path) -> None:
    upstream = FakeUpstream(tmp_path / "up")
    upstream.dependency_versions.side_effect = UpstreamQueryError("ls failed")
    resolver = OverrideResolver("upstream-lib", upstream=upstream, pins=["rollup"])
    with pytest.raises(UpstreamQueryError):
        await resolver.resolve(_manifest(), _options(tmp_path))


@pytest.mark.asyncio
async def test_explicit_string_wins(tmp_path: Path) -> None:
    upstream = FakeUpstream(tmp_path / "up")
    resolver = OverrideResolver("upstream-lib", upstream=upstream)
    options = _options(tmp_path, overrides={"@upstream/plugin": "1.2.3", "left-pad": "1.0.0"})
    resolved = await resolver.resolve(_manifest(), options)
    assert resolved["@upstream/plugin"] == "1.2.3"
    assert resolved["left-pad"] == "1.0.0"


@pytest.mark.asyncio
async def test_true_without_sibling_build_is_dropped(tmp_path: Path) -> None:
    resolver = OverrideResolver("upstream-lib")
    options = _options(tmp_path, release="2.1.0", overrides={"left-pad": True})
    resolved = await resolver.resolve(_manifest("left-pad"), options)
    assert resolved == {"upstream-lib": "2.1.0"}


# ---------------------------------------------------------------------------
# Sibling builds
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_sibling_built_when_declared(tmp_path: Path, vue_build, build_context) -> None:
    definition, build = vue_build
    resolver = OverrideResolver(
        "upstream-lib", build_definitions=[definition], build_context=build_context
    )
    resolved = await resolver.resolve(_manifest("vue"), _options(tmp_path, release="2.1.0"))
    build.assert_awaited_once_with(build_context)
    assert resolved == {
        "vue": str(tmp_path / "vue" / "packages/vue"),
        "@vue/compiler-sfc": str(tmp_path / "vue" / "packages/compiler-sfc"),
        "upstream-lib": "2.1.0",
    }


@pytest.mark.asyncio
async def test_sibling_built_when_requested_true(tmp_path: Path, vue_build, build_context) -> None:
    definition, build = vue_build
    resolver = OverrideResolver(
        "upstream-lib", build_definitions=[definition], build_context=build_context
    )
    options = _options(tmp_path, release="2.1.0", overrides={"vue": True})
    resolved = await resolver.resolve(_manifest(), options)
    build.assert_awaited_once()
    assert "vue" in resolved


@pytest.mark.asyncio
async def test_sibling_not_built_when_not_declared(tmp_path: Path, vue_build, build_context) -> None:
    definition, build = vue_build
    resolver = OverrideResolver(
        "upstream-lib", build_definitions=[definition], build_context=build_context
    )
    resolved = await resolver.resolve(_manifest("react"), _options(tmp_path, release="2.1.0"))
    build.assert_not_awaited()
    assert resolved == {"upstream-lib": "2.1.0"}


@pytest.mark.asyncio
async def test_sibling_suppressed_by_false(tmp_path: Path, vue_build, build_context) -> None:
    definition, build = vue_build
    resolver = OverrideResolver(
        "upstream-lib", build_definitions=[definition], build_context=build_context
    )
    options = _options(tmp_path, release="2.1.0", overrides={"vue": False})
    resolved = await resolver.resolve(_manifest("vue"), options)
    build.assert_not_awaited()
    assert "vue" not in resolved


@pytest.mark.asyncio
async def test_sibling_skipped_for_explicit_version(tmp_path: Path, vue_build, build_context) -> None:
    definition, build = vue_build
    resolver = OverrideResolver(
        "upstream-lib", build_definitions=[definition], build_context=build_context
    )
    options = _options(tmp_path, release="2.1.0", overrides={"vue": "3.5.0"})
    resolved = await resolver.resolve(_manifest("vue"), options)
    build.assert_not_awaited()
    assert resolved["vue"] == "3.5.0"


@pytest.mark.asyncio
async def test_sibling_requires_build_context(tmp_path: Path, vue_build) -> None:
    definition, _ = vue_build
    resolver = OverrideResolver("upstream-lib", build_definitions=[definition])
    with pytest.raises(ConfigurationError):
        await resolver.resolve(_manifest("vue"), _options(tmp_path, release="2.1.0"))
