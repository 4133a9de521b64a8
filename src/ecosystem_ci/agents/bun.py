from __future__ import annotations

from collections.abc import Mapping

from ecosystem_ci.agents.base import PackageManagerAgent
from ecosystem_ci.core.constants import AgentName
from ecosystem_ci.core.exceptions import UnsupportedPackageManagerError
from ecosystem_ci.core.manifest import PackageManifest


class BunAgent(PackageManagerAgent):
    """bun can install and run scripts, but has no override mechanics here."""

    name = AgentName.BUN
    binary = "bun"
    outdated_lockfile_signatures = ("lockfile had changes, but lockfile is frozen",)

    def install_command(self, frozen: bool) -> str:
        return "bun install --frozen-lockfile" if frozen else "bun install"

    def override_install_command(self) -> str:
        return "bun install"

    def apply_overrides(self, manifest: PackageManifest, overrides: Mapping[str, str]) -> None:
        raise UnsupportedPackageManagerError(
            f"unsupported package manager detected: {self.name}",
            code="UNSUPPORTED_PACKAGE_MANAGER",
            details={"agent": str(self.name)},
        )
