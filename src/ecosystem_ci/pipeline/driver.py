"""Pipeline driver — runs one subject against the upstream.

States, in order (bracketed ones are conditional)::

    start -> branch_created -> agent_resolved -> installed -> [pre_verified]
          -> overrides_applied -> before_build_ran -> built -> [test_ran]
          -> [e2e_ran] -> finalized

Every run works on a fresh branch. Whatever happens, the working tree is
committed on that branch (with a success or failure marker) and the
original branch is checked out again.
"""
from __future__ import annotations

import secrets
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Sequence

import structlog
from pydantic import BaseModel, Field

from ecosystem_ci.agents import PackageManagerAgent, detect_agent, get_agent
from ecosystem_ci.core.constants import (
    BRANCH_PREFIX,
    FAILURE_COMMIT_MESSAGE,
    SUCCESS_COMMIT_MESSAGE,
    PipelineState,
)
from ecosystem_ci.core.exceptions import AgentDetectionError, ConfigurationError
from ecosystem_ci.core.manifest import PackageManifest
from ecosystem_ci.pipeline.builds import BuildContext, SiblingBuildDefinition
from ecosystem_ci.pipeline.install import frozen_install
from ecosystem_ci.pipeline.overrides import OverrideResolver
from ecosystem_ci.pipeline.rewriter import ManifestRewriter
from ecosystem_ci.pipeline.tasks import TaskRunner, normalize_tasks
from ecosystem_ci.upstream.builder import UpstreamBuilder

if TYPE_CHECKING:
    from ecosystem_ci.core.config import EcosystemConfig, RunOptions
    from ecosystem_ci.runtime.git import Git
    from ecosystem_ci.runtime.shell import ShellLike

logger = structlog.get_logger(__name__)


class PipelineResult(BaseModel):
    """Outcome of a successful pipeline run."""

    dir: Path
    branch: str
    original_ref: str
    agent: str
    overrides: dict[str, str] = Field(default_factory=dict)
    states: list[PipelineState] = Field(default_factory=list)
    commit_message: str = SUCCESS_COMMIT_MESSAGE


class _Run:
    """Mutable bookkeeping for one in-flight run."""

    def __init__(self, directory: Path, options: RunOptions) -> None:
        self.directory = directory
        self.options = options
        self.states: list[PipelineState] = [PipelineState.START]
        self.overrides: dict[str, str] = {}

    def reach(self, state: PipelineState) -> None:
        self.states.append(state)
        logger.debug("pipeline_state", dir=str(self.directory), state=str(state))


class PipelineDriver:
    """Composes the task runner, override resolver and manifest rewriter.

    Args:
        config: Process-wide settings (upstream layout, workspace).
        shell: Shell used for every child process.
        git: Git plumbing for the subject checkout.
        upstream: Local upstream build. When ``None``, one is created from
            ``RunOptions.upstream_path`` if that is set.
        build_definitions: Sibling packages that can be built from source.
        detect: Package-manager detection; replaceable in tests.
    """

    def __init__(
        self,
        config: EcosystemConfig,
        shell: ShellLike,
        git: Git,
        *,
        upstream: UpstreamBuilder | None = None,
        build_definitions: Sequence[SiblingBuildDefinition] = (),
        detect: Callable[[Path], str | None] = detect_agent,
    ) -> None:
        self._config = config
        self._shell = shell
        self._git = git
        self._upstream = upstream
        self._definitions = list(build_definitions)
        self._detect = detect
        self._rewriter = ManifestRewriter(shell, git)

    def __repr__(self) -> str:
        return f"PipelineDriver(upstream={self._config.upstream_package!r})"

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def run_in_repo(self, options: RunOptions, **repo: Any) -> PipelineResult:
        """Run the pipeline with *repo* fields layered over *options*.

        This is the callable suites receive, e.g.
        ``await run(options, repo="vuejs/vitepress", build="build", test="test")``.
        """
        return await self.run(options.merged(**repo))

    async def run(self, options: RunOptions) -> PipelineResult:
        """Execute the full pipeline for one subject.

        Raises:
            EcosystemCIError: Whatever step failed, after the failure has
                been committed on the run branch and the original branch
                restored.
        """
        directory = options.subject_dir(options.workspace)
        if not options.skip_git:
            if not options.repo:
                raise ConfigurationError("'repo' is required unless skip_git is set")
            await self._git.clone_or_reuse(
                options.repo,
                directory,
                branch=options.branch,
                tag=options.tag,
                commit=options.commit,
                shallow=options.shallow,
            )

        run = _Run(directory, options)
        original_ref = await self._git.current_ref(directory)
        branch = options.ci_branch or f"{BRANCH_PREFIX}/{secrets.token_hex(4)}"
        await self._git.checkout_branch(directory, branch, create=True)
        run.reach(PipelineState.BRANCH_CREATED)
        logger.info("pipeline_started", dir=str(directory), branch=branch, original_ref=original_ref)

        try:
            agent = await self._execute(run)
        except Exception as exc:
            logger.error("pipeline_failed", dir=str(directory), state=str(run.states[-1]), error=str(exc))
            await self._finalize_after_failure(directory, original_ref)
            raise

        await self._finalize(directory, original_ref, SUCCESS_COMMIT_MESSAGE)
        run.reach(PipelineState.FINALIZED)
        logger.info("pipeline_succeeded", dir=str(directory), branch=branch)
        return PipelineResult(
            dir=directory,
            branch=branch,
            original_ref=original_ref,
            agent=str(agent.name),
            overrides=run.overrides,
            states=run.states,
        )

    # ------------------------------------------------------------------ #
    # States
    # ------------------------------------------------------------------ #

    async def _execute(self, run: _Run) -> PackageManagerAgent:
        options = run.options
        directory = run.directory
        resolver = self._resolver(options)
        resolver.check_release(options)

        agent = self._resolve_agent(directory, options)
        run.reach(PipelineState.AGENT_RESOLVED)

        tasks = TaskRunner(self._shell, agent, directory)
        manifest = PackageManifest.load(directory)

        await tasks.run(options.before_install, manifest.scripts)
        await frozen_install(self._shell, agent, directory)
        run.reach(PipelineState.INSTALLED)

        if options.migration is not None:
            if options.verify and normalize_tasks(options.test):
                await self._build_and_test(tasks, options, manifest.scripts)
                run.reach(PipelineState.PRE_VERIFIED)
            await tasks.run(options.migration.command, manifest.scripts)
            await frozen_install(self._shell, agent, directory)
            await tasks.run(options.migration.codemods, manifest.scripts)
            manifest = PackageManifest.load(directory)
        else:
            overrides = await resolver.resolve(manifest, options)
            run.overrides = await self._rewriter.apply(directory, manifest, agent, overrides)
        run.reach(PipelineState.OVERRIDES_APPLIED)

        scripts = manifest.scripts
        await tasks.run(options.before_build, scripts)
        run.reach(PipelineState.BEFORE_BUILD_RAN)
        await tasks.run(options.build, scripts)
        run.reach(PipelineState.BUILT)
        if normalize_tasks(options.test):
            await tasks.run(options.before_test, scripts)
            await tasks.run(options.test, scripts)
            run.reach(PipelineState.TEST_RAN)
        if normalize_tasks(options.e2e):
            await tasks.run(options.e2e, scripts)
            run.reach(PipelineState.E2E_RAN)
        return agent

    async def _build_and_test(
        self, tasks: TaskRunner, options: RunOptions, scripts: dict[str, str]
    ) -> None:
        for spec in (
            options.before_build,
            options.build,
            options.before_test,
            options.test,
            options.e2e,
        ):
            await tasks.run(spec, scripts)

    def _resolve_agent(self, directory: Path, options: RunOptions) -> PackageManagerAgent:
        if options.agent is None:
            detected = self._detect(directory)
            if detected is None:
                raise AgentDetectionError(
                    f"Failed to detect package manager in {directory}",
                    code="AGENT_DETECTION_FAILED",
                    details={"dir": str(directory)},
                )
            options.agent = detected
            logger.info("agent_resolved", dir=str(directory), agent=detected)
        return get_agent(options.agent)

    def _resolver(self, options: RunOptions) -> OverrideResolver:
        upstream = self._upstream
        if upstream is None and options.upstream_path is not None:
            upstream = UpstreamBuilder(self._config, self._shell, self._git, path=options.upstream_path)
        return OverrideResolver(
            self._config.upstream_package,
            upstream=upstream,
            pins=self._config.upstream_pins,
            build_definitions=self._definitions,
            build_context=BuildContext(
                workspace=options.workspace,
                shell=self._shell,
                git=self._git,
                config=self._config,
            ),
        )

    # ------------------------------------------------------------------ #
    # Finalization
    # ------------------------------------------------------------------ #

    async def _finalize(self, directory: Path, original_ref: str, message: str) -> None:
        await self._git.commit_all(directory, message)
        await self._git.checkout_branch(directory, original_ref)

    async def _finalize_after_failure(self, directory: Path, original_ref: str) -> None:
        # the pipeline error is what the caller needs to see
        try:
            await self._finalize(directory, original_ref, FAILURE_COMMIT_MESSAGE)
        except Exception:
            logger.error("pipeline_finalize_failed", dir=str(directory), exc_info=True)
