"""Checks that the upstream override actually landed in the manifest."""
from __future__ import annotations

from ecosystem_ci.core.config import RunOptions
from ecosystem_ci.core.exceptions import EcosystemCIError
from ecosystem_ci.core.manifest import PackageManifest
from ecosystem_ci.suites.registry import RunInRepo


async def test(run: RunInRepo, options: RunOptions) -> None:
    upstream = "vite"

    def check_override() -> None:
        directory = (options.workspace / "selftest").resolve()
        manifest = PackageManifest.load(directory)
        overrides = {
            **manifest.block("pnpm", "overrides"),
            **manifest.block("resolutions"),
            **manifest.block("overrides"),
        }
        if upstream not in overrides:
            raise EcosystemCIError(f"{upstream} is not overridden in {directory}")

    await run(
        options,
        repo="vitejs/vite-ecosystem-ci",
        branch="main",
        dir="selftest",
        build=check_override,
    )
