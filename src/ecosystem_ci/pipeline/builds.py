"""Sibling build definitions — first-party packages built from source.

A build definition is a module in a builds directory that exposes::

    PACKAGES = {"vue": "packages/vue"}        # dependency name -> subpath

    async def build(ctx: BuildContext) -> Path:
        ...                                     # returns the checkout directory

Files whose name starts with ``_`` are ignored.
"""
from __future__ import annotations

import inspect
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Awaitable, Callable

import structlog

from ecosystem_ci.core.exceptions import BuildDefinitionError
from ecosystem_ci.utils.modules import load_module_from_path

if TYPE_CHECKING:
    from ecosystem_ci.core.config import EcosystemConfig
    from ecosystem_ci.runtime.git import Git
    from ecosystem_ci.runtime.shell import ShellLike

logger = structlog.get_logger(__name__)

BUNDLED_BUILDS_DIR = Path(__file__).resolve().parent.parent / "builds"


@dataclass(frozen=True)
class BuildContext:
    """What a build procedure gets to work with."""

    workspace: Path
    shell: ShellLike
    git: Git
    config: EcosystemConfig


@dataclass(frozen=True)
class SiblingBuildDefinition:
    name: str
    packages: Mapping[str, str]
    build: Callable[[BuildContext], Awaitable[Path]] = field(repr=False)

    def satisfies(self, dependency: str) -> bool:
        return dependency in self.packages


def load_build_definitions(directory: Path | None = None) -> list[SiblingBuildDefinition]:
    """Load every build definition in *directory* (bundled ones by default).

    Raises:
        BuildDefinitionError: If a module lacks ``PACKAGES`` or an async ``build``.
    """
    directory = directory or BUNDLED_BUILDS_DIR
    if not directory.is_dir():
        logger.debug("build_definitions_missing", dir=str(directory))
        return []

    definitions: list[SiblingBuildDefinition] = []
    for path in sorted(directory.glob("*.py")):
        if path.name.startswith("_"):
            continue
        module = load_module_from_path(path, "ecosystem_ci_builds")
        packages = getattr(module, "PACKAGES", None)
        build = getattr(module, "build", None)
        if not isinstance(packages, Mapping) or not packages:
            raise BuildDefinitionError(f"{path} must define a non-empty PACKAGES mapping")
        if build is None or not inspect.iscoroutinefunction(build):
            raise BuildDefinitionError(f"{path} must define 'async def build(ctx)'")
        definitions.append(
            SiblingBuildDefinition(
                name=getattr(module, "NAME", path.stem),
                packages=dict(packages),
                build=build,
            )
        )
    logger.debug("build_definitions_loaded", dir=str(directory), count=len(definitions))
    return definitions
