from __future__ import annotations

import json
import shlex
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any, ClassVar

from ecosystem_ci.core.exceptions import UpstreamQueryError
from ecosystem_ci.core.manifest import PackageManifest


class PackageManagerAgent(ABC):
    """Install/run/override mechanics for one package-manager family.

    The Task Runner and Manifest Rewriter only talk to this interface, so
    adding a package manager means adding one subclass.
    """

    name: ClassVar[str]
    binary: ClassVar[str]
    outdated_lockfile_signatures: ClassVar[tuple[str, ...]] = ()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    @abstractmethod
    def install_command(self, frozen: bool) -> str: ...

    @abstractmethod
    def override_install_command(self) -> str:
        """Install run after overrides were written to the manifest."""

    def run_script_command(self, name: str, args: Sequence[str] = ()) -> str:
        parts = [self.binary, "run", name, *args]
        return shlex.join(parts)

    def list_dependencies_command(self) -> str:
        raise UpstreamQueryError(
            f"{self.name} cannot list resolved dependencies",
            code="UNSUPPORTED_QUERY",
        )

    # ------------------------------------------------------------------ #
    # Output inspection
    # ------------------------------------------------------------------ #

    def is_outdated_lockfile(self, output: str) -> bool:
        """Whether a failed frozen install reported an out-of-date lockfile."""
        return any(sig in output for sig in self.outdated_lockfile_signatures)

    def parse_dependency_versions(self, output: str) -> dict[str, str]:
        """Map dependency name -> resolved version from a listing's JSON.

        Handles both the array form (one entry per project) and the
        single-object form.

        Raises:
            UpstreamQueryError: If the output is not the expected JSON.
        """
        try:
            data: Any = json.loads(output)
        except json.JSONDecodeError as exc:
            raise UpstreamQueryError(
                f"Could not parse {self.name} dependency listing: {exc}"
            ) from exc

        if isinstance(data, list):
            if not data:
                raise UpstreamQueryError(f"{self.name} dependency listing is empty")
            data = data[0]
        if not isinstance(data, dict):
            raise UpstreamQueryError(f"Unexpected {self.name} dependency listing shape")

        versions: dict[str, str] = {}
        for section in ("dependencies", "devDependencies", "optionalDependencies"):
            entries = data.get(section) or {}
            for dep_name, info in entries.items():
                if isinstance(info, Mapping) and isinstance(info.get("version"), str):
                    versions.setdefault(dep_name, info["version"])
        return versions

    # ------------------------------------------------------------------ #
    # Manifest mechanics
    # ------------------------------------------------------------------ #

    @abstractmethod
    def apply_overrides(self, manifest: PackageManifest, overrides: Mapping[str, str]) -> None:
        """Merge *overrides* into *manifest* in place.

        Raises:
            UnsupportedPackageManagerError: If this manager has no known
                override mechanics.
        """
