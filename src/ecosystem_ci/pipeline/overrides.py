"""Override resolver — decides which dependencies get forced, and to what.

Three layers feed the final override set. Later layers win on collision:

1. versions/paths produced by building sibling packages locally,
2. the upstream itself (a release version, or paths into the local
   build plus pinned transitive versions),
3. explicit string overrides from the caller.

A ``True`` value in the caller's overrides asks for a sibling build even
when the subject does not declare the dependency; ``False`` suppresses
both the sibling build and the transitive pin. Neither survives into the
resolved set.
"""
from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from typing import TYPE_CHECKING, Protocol

import structlog

from ecosystem_ci.core.exceptions import ConfigurationError, ConflictingOverrideError

if TYPE_CHECKING:
    from ecosystem_ci.core.config import RunOptions
    from ecosystem_ci.core.manifest import PackageManifest
    from ecosystem_ci.pipeline.builds import BuildContext, SiblingBuildDefinition

logger = structlog.get_logger(__name__)

OverrideSet = dict[str, str]


class UpstreamLike(Protocol):
    """What the resolver needs from a local upstream build."""

    def local_overrides(self) -> dict[str, str]: ...

    async def dependency_versions(self) -> dict[str, str]: ...


class OverrideResolver:
    """Computes the override set for one subject.

    Args:
        upstream_package: Name of the upstream package on the registry.
        upstream: Local upstream build; required unless a release is given.
        pins: Dependencies pinned to the version the upstream resolved.
        build_definitions: Sibling packages that can be built from source.
        build_context: Passed to sibling build procedures.
    """

    def __init__(
        self,
        upstream_package: str,
        *,
        upstream: UpstreamLike | None = None,
        pins: Sequence[str] = (),
        build_definitions: Sequence[SiblingBuildDefinition] = (),
        build_context: BuildContext | None = None,
    ) -> None:
        self._package = upstream_package
        self._upstream = upstream
        self._pins = list(pins)
        self._definitions = list(build_definitions)
        self._build_context = build_context

    def check_release(self, options: RunOptions) -> None:
        """Reject a release that contradicts an explicit upstream override.

        Raises:
            ConflictingOverrideError: If both name different values.
        """
        if not options.release:
            return
        explicit = options.overrides.get(self._package)
        if isinstance(explicit, str) and explicit != options.release:
            raise ConflictingOverrideError(
                f"conflicting overrides.{self._package}={explicit} and "
                f"--release={options.release} config. Use either one or the other",
                code="CONFLICTING_OVERRIDE",
                details={"package": self._package, "override": explicit, "release": options.release},
            )

    async def resolve(self, manifest: PackageManifest, options: RunOptions) -> OverrideSet:
        self.check_release(options)
        requested: Mapping[str, str | bool] = dict(options.overrides)
        explicit = {name: value for name, value in requested.items() if isinstance(value, str)}

        upstream_layer = await self._upstream_layer(options, requested)
        sibling_layer = await self._sibling_layer(manifest, requested, fixed=upstream_layer.keys())

        resolved: OverrideSet = {**sibling_layer, **upstream_layer, **explicit}
        dropped = sorted(
            name for name, value in requested.items() if value is True and name not in resolved
        )
        if dropped:
            logger.debug("overrides_dropped", names=dropped)
        logger.info("overrides_resolved", overrides=resolved)
        return resolved

    async def _upstream_layer(
        self, options: RunOptions, requested: Mapping[str, str | bool]
    ) -> OverrideSet:
        if options.release:
            return {self._package: options.release}

        if self._upstream is None:
            raise ConfigurationError(
                "Neither a release version nor a local upstream build is available",
                code="NO_UPSTREAM",
            )

        layer = dict(self._upstream.local_overrides())
        pins = [name for name in self._pins if requested.get(name) is not False]
        if pins:
            versions = await self._upstream.dependency_versions()
            for name in pins:
                if name in versions:
                    layer[name] = versions[name]
        return layer

    async def _sibling_layer(
        self,
        manifest: PackageManifest,
        requested: Mapping[str, str | bool],
        *,
        fixed: Collection[str],
    ) -> OverrideSet:
        declared = manifest.dependency_names()
        already_fixed = set(fixed)

        def needs_override(name: str) -> bool:
            if requested.get(name) is True:
                return True
            return name in declared and name not in requested and name not in already_fixed

        wanted = [name for name in sorted({*declared, *requested}) if needs_override(name)]
        layer: OverrideSet = {}
        for definition in self._definitions:
            if not any(definition.satisfies(name) for name in wanted):
                continue
            if self._build_context is None:
                raise ConfigurationError(
                    f"Sibling build {definition.name!r} is required but no build context was given"
                )
            logger.info("sibling_build_started", build=definition.name)
            output_dir = await definition.build(self._build_context)
            for name, subpath in definition.packages.items():
                layer[name] = str(output_dir / subpath)
            logger.info("sibling_build_finished", build=definition.name, dir=str(output_dir))
        return layer
