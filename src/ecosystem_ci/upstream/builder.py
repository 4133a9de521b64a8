"""Checkout, build and query the upstream project under test."""
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from ecosystem_ci.agents import PackageManagerAgent, detect_agent, get_agent
from ecosystem_ci.core.constants import AgentName
from ecosystem_ci.core.exceptions import CommandFailedError, UpstreamQueryError
from ecosystem_ci.pipeline.install import frozen_install

if TYPE_CHECKING:
    from ecosystem_ci.core.config import EcosystemConfig
    from ecosystem_ci.runtime.git import Git
    from ecosystem_ci.runtime.shell import ShellLike

logger = structlog.get_logger(__name__)


class UpstreamBuilder:
    """The upstream checkout that subjects are tested against.

    Args:
        config: Upstream layout (repo, package directory, companions, pins).
        shell: Shell used for installs, builds and queries.
        git: Git plumbing for the checkout.
        path: Checkout directory. Defaults to ``<workspace>/<repo name>``.
    """

    def __init__(
        self,
        config: EcosystemConfig,
        shell: ShellLike,
        git: Git,
        path: Path | None = None,
    ) -> None:
        self._config = config
        self._shell = shell
        self._git = git
        repo_name = config.upstream_repo.rstrip("/").rsplit("/", 1)[-1].removesuffix(".git")
        self.path = (path or config.workspace / repo_name).resolve()

    def __repr__(self) -> str:
        return f"UpstreamBuilder(package={self._config.upstream_package!r}, path={str(self.path)!r})"

    @property
    def package_dir(self) -> Path:
        return self.path / self._config.upstream_package_dir

    def _agent(self) -> PackageManagerAgent:
        return get_agent(detect_agent(self.path) or AgentName.PNPM)

    async def setup(
        self,
        *,
        repo: str | None = None,
        branch: str | None = None,
        tag: str | None = None,
        commit: str | None = None,
        shallow: bool = True,
    ) -> Path:
        """Clone (or refresh) the upstream checkout."""
        return await self._git.clone_or_reuse(
            repo or self._config.upstream_repo,
            self.path,
            branch=branch or self._config.upstream_branch,
            tag=tag,
            commit=commit,
            shallow=shallow,
        )

    async def build(self, *, verify: bool = False) -> None:
        """Install and build the upstream; with *verify*, run its own tests too."""
        agent = self._agent()
        await frozen_install(self._shell, agent, self.path)
        await self._shell.run(
            agent.run_script_command(self._config.upstream_build_script), cwd=self.path
        )
        if verify:
            await self._shell.run(
                agent.run_script_command(self._config.upstream_test_script), cwd=self.path
            )
        logger.info("upstream_built", path=str(self.path), verified=verify)

    def local_overrides(self) -> dict[str, str]:
        """Override paths for the upstream package and its companions."""
        overrides = {self._config.upstream_package: str(self.package_dir)}
        for name, subdir in self._config.upstream_companions.items():
            overrides[name] = str(self.path / subdir)
        return overrides

    async def dependency_versions(self) -> dict[str, str]:
        """Resolved dependency versions of the built upstream package.

        Raises:
            UpstreamQueryError: If the listing command fails or its output
                cannot be parsed. Pinning cannot go ahead without it.
        """
        agent = self._agent()
        try:
            output = await self._shell.run(agent.list_dependencies_command(), cwd=self.package_dir)
        except CommandFailedError as exc:
            raise UpstreamQueryError(
                f"Failed to list dependencies of {self._config.upstream_package}: {exc}",
                code="UPSTREAM_QUERY_FAILED",
                details={"cwd": str(self.package_dir)},
            ) from exc
        return agent.parse_dependency_versions(output)
