"""Tests for upstream/builder.py."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import FakeShell

from ecosystem_ci.core.config import EcosystemConfig
from ecosystem_ci.core.exceptions import UpstreamQueryError
from ecosystem_ci.runtime.git import Git
from ecosystem_ci.upstream import UpstreamBuilder


@pytest.fixture
def vite_config(tmp_path: Path) -> EcosystemConfig:
    return EcosystemConfig(workspace=tmp_path)


@pytest.fixture
def builder(vite_config: EcosystemConfig, fake_shell: FakeShell, git: Git) -> UpstreamBuilder:
    return UpstreamBuilder(vite_config, fake_shell, git)


def test_default_path(builder: UpstreamBuilder, tmp_path: Path) -> None:
    assert builder.path == (tmp_path / "vite").resolve()
    assert builder.package_dir == builder.path / "packages/vite"


def test_explicit_path(vite_config: EcosystemConfig, fake_shell: FakeShell, git: Git, tmp_path: Path) -> None:
    builder = UpstreamBuilder(vite_config, fake_shell, git, path=tmp_path / "my-vite")
    assert builder.path == (tmp_path / "my-vite").resolve()


def test_local_overrides(builder: UpstreamBuilder) -> None:
    assert builder.local_overrides() == {
        "vite": str(builder.path / "packages/vite"),
        "@vitejs/plugin-legacy": str(builder.path / "packages/plugin-legacy"),
    }


@pytest.mark.asyncio
async def test_setup_uses_configured_repo(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    await builder.setup()
    assert "https://github.com/vitejs/vite.git" in fake_shell.commands[0]
    assert fake_shell.commands[-1] == "git checkout --force -B main FETCH_HEAD"


@pytest.mark.asyncio
async def test_setup_overrides(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    await builder.setup(repo="me/vite", branch="fix", shallow=False)
    assert "https://github.com/me/vite.git" in fake_shell.commands[0]
    assert "--depth=1" not in fake_shell.commands[0]
    assert fake_shell.commands[-1] == "git checkout --force -B fix FETCH_HEAD"


@pytest.mark.asyncio
async def test_build(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    await builder.build()
    assert fake_shell.commands == ["pnpm install --frozen-lockfile", "pnpm run ci-build"]
    assert all(cwd == builder.path for _, cwd in fake_shell.calls)


@pytest.mark.asyncio
async def test_build_with_verify_runs_tests(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    await builder.build(verify=True)
    assert fake_shell.commands[-1] == "pnpm run test"


@pytest.mark.asyncio
async def test_build_uses_detected_agent(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    builder.path.mkdir(parents=True)
    (builder.path / "yarn.lock").write_text("")
    await builder.build()
    assert fake_shell.commands == ["yarn install --frozen-lockfile", "yarn run ci-build"]


@pytest.mark.asyncio
async def test_dependency_versions(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    fake_shell.respond(
        "pnpm ls --json",
        json.dumps([{"name": "vite", "dependencies": {"rollup": {"version": "4.9.6"}}}]),
    )
    assert await builder.dependency_versions() == {"rollup": "4.9.6"}
    assert fake_shell.calls == [("pnpm ls --json", builder.package_dir)]


@pytest.mark.asyncio
async def test_dependency_versions_command_failure(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    fake_shell.fail("pnpm ls", "ERR_PNPM_NO_IMPORTER_MANIFEST_FOUND")
    with pytest.raises(UpstreamQueryError) as exc_info:
        await builder.dependency_versions()
    assert exc_info.value.code == "UPSTREAM_QUERY_FAILED"


@pytest.mark.asyncio
async def test_dependency_versions_bad_output(builder: UpstreamBuilder, fake_shell: FakeShell) -> None:
    fake_shell.respond("pnpm ls --json", "WARN something\n")
    with pytest.raises(UpstreamQueryError):
        await builder.dependency_versions()
