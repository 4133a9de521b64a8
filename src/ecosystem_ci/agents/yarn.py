from __future__ import annotations

from collections.abc import Mapping

from ecosystem_ci.agents.base import PackageManagerAgent
from ecosystem_ci.core.constants import AgentName
from ecosystem_ci.core.manifest import PackageManifest


class YarnAgent(PackageManagerAgent):
    """Yarn classic: overrides live under ``resolutions``."""

    name = AgentName.YARN
    binary = "yarn"
    outdated_lockfile_signatures = ("Your lockfile needs to be updated",)

    def install_command(self, frozen: bool) -> str:
        return "yarn install --frozen-lockfile" if frozen else "yarn install"

    def override_install_command(self) -> str:
        return "yarn install --prefer-offline"

    def apply_overrides(self, manifest: PackageManifest, overrides: Mapping[str, str]) -> None:
        manifest.block("resolutions").update(overrides)


class YarnBerryAgent(YarnAgent):
    """Yarn 2+; immutable installs are relaxed through the environment."""

    name = AgentName.YARN_BERRY
    outdated_lockfile_signatures = ("YN0028",)

    def install_command(self, frozen: bool) -> str:
        return "yarn install --immutable" if frozen else "yarn install"

    def override_install_command(self) -> str:
        return "yarn install"
