from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence

from ecosystem_ci.agents.base import PackageManagerAgent
from ecosystem_ci.core.constants import AgentName
from ecosystem_ci.core.manifest import PackageManifest


class NpmAgent(PackageManagerAgent):
    """npm: overrides live under ``overrides``."""

    name = AgentName.NPM
    binary = "npm"
    outdated_lockfile_signatures = (
        "can only install packages when your package.json and package-lock.json",
    )

    def install_command(self, frozen: bool) -> str:
        return "npm ci" if frozen else "npm install"

    def override_install_command(self) -> str:
        return "npm install --prefer-offline --legacy-peer-deps"

    def run_script_command(self, name: str, args: Sequence[str] = ()) -> str:
        if not args:
            return shlex.join(["npm", "run", name])
        return shlex.join(["npm", "run", name, "--", *args])

    def list_dependencies_command(self) -> str:
        return "npm ls --json"

    def apply_overrides(self, manifest: PackageManifest, overrides: Mapping[str, str]) -> None:
        manifest.block("overrides").update(overrides)
        # npm refuses to override a direct dependency through "overrides"
        # alone, so the declarations themselves are rewritten too
        for section in ("dependencies", "devDependencies"):
            declared = manifest.data.get(section)
            if not isinstance(declared, dict):
                continue
            for name, value in overrides.items():
                if name in declared:
                    declared[name] = value
