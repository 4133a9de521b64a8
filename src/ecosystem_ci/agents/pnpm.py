from __future__ import annotations

from collections.abc import Mapping

from ecosystem_ci.agents.base import PackageManagerAgent
from ecosystem_ci.core.constants import AgentName
from ecosystem_ci.core.manifest import PackageManifest


class PnpmAgent(PackageManagerAgent):
    """pnpm: overrides live under ``pnpm.overrides``."""

    name = AgentName.PNPM
    binary = "pnpm"
    outdated_lockfile_signatures = (
        "ERR_PNPM_OUTDATED_LOCKFILE",
        "ERR_PNPM_LOCKFILE_CONFIG_MISMATCH",
    )

    def install_command(self, frozen: bool) -> str:
        # CI=true turns on --frozen-lockfile by default, so opt out explicitly
        if frozen:
            return "pnpm install --frozen-lockfile"
        return "pnpm install --no-frozen-lockfile"

    def override_install_command(self) -> str:
        return (
            "pnpm install --prefer-frozen-lockfile --prefer-offline "
            "--strict-peer-dependencies false"
        )

    def list_dependencies_command(self) -> str:
        return "pnpm ls --json"

    def apply_overrides(self, manifest: PackageManifest, overrides: Mapping[str, str]) -> None:
        # an override only takes effect when the package is also a direct dependency
        manifest.block("devDependencies").update(overrides)
        manifest.block("pnpm", "overrides").update(overrides)


class Pnpm6Agent(PnpmAgent):
    name = AgentName.PNPM6

    def override_install_command(self) -> str:
        return "pnpm install --prefer-frozen-lockfile --prefer-offline"
