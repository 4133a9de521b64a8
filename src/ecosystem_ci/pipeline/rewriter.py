"""Manifest rewriter — persists an override set and reinstalls."""
from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from ecosystem_ci.agents.base import PackageManagerAgent
    from ecosystem_ci.core.manifest import PackageManifest
    from ecosystem_ci.runtime.git import Git
    from ecosystem_ci.runtime.shell import ShellLike

logger = structlog.get_logger(__name__)


def is_local_override(value: str) -> bool:
    """Whether *value* points at a package directory rather than a version."""
    if "/" not in value or value.startswith("@"):
        return False
    return Path(value).expanduser().is_dir()


def normalize_overrides(overrides: Mapping[str, Any]) -> dict[str, str]:
    """Drop non-string values and turn local paths into ``file:`` specs."""
    normalized: dict[str, str] = {}
    for name, value in overrides.items():
        if not isinstance(value, str):
            continue
        if is_local_override(value):
            value = f"file:{Path(value).expanduser().resolve()}"
        normalized[name] = value
    return normalized


class ManifestRewriter:
    """Writes overrides into a subject manifest, then reinstalls from scratch."""

    def __init__(self, shell: ShellLike, git: Git) -> None:
        self._shell = shell
        self._git = git

    async def apply(
        self,
        directory: Path,
        manifest: PackageManifest,
        agent: PackageManagerAgent,
        overrides: Mapping[str, Any],
    ) -> dict[str, str]:
        """Apply *overrides* to *manifest*, persist it and reinstall.

        The manifest is mutated in memory first, so a package manager
        without override mechanics fails before anything on disk changes.

        Returns:
            The override set as persisted.

        Raises:
            UnsupportedPackageManagerError: If *agent* cannot apply overrides.
        """
        final = normalize_overrides(overrides)
        agent.apply_overrides(manifest, final)

        await self._git.clean(directory)
        path = manifest.save(directory)
        logger.info("manifest_rewritten", path=str(path), agent=str(agent.name), overrides=final)

        await self._shell.run(agent.override_install_command(), cwd=directory)
        return final
