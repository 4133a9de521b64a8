"""ecosystem-ci — run downstream projects against an upstream built from source."""

from ecosystem_ci.__version__ import __version__

from ecosystem_ci.agents import PackageManagerAgent, detect_agent, get_agent
from ecosystem_ci.core.config import (
    EcosystemConfig,
    MigrationOptions,
    RepoOptions,
    RunOptions,
    ScriptTaskSpec,
    load_options_file,
)
from ecosystem_ci.core.constants import AgentName, BisectVerdict, PipelineState
from ecosystem_ci.core.exceptions import (
    AgentDetectionError,
    BuildDefinitionError,
    CommandFailedError,
    ConfigurationError,
    ConflictingOverrideError,
    EcosystemCIError,
    InvalidTaskError,
    OutdatedLockfileError,
    SuiteNotFoundError,
    UnknownScriptError,
    UnsupportedAgentError,
    UnsupportedPackageManagerError,
    UpstreamQueryError,
)
from ecosystem_ci.core.manifest import PackageManifest
from ecosystem_ci.pipeline.bisect import Bisector
from ecosystem_ci.pipeline.builds import BuildContext, SiblingBuildDefinition, load_build_definitions
from ecosystem_ci.pipeline.driver import PipelineDriver, PipelineResult
from ecosystem_ci.pipeline.overrides import OverrideResolver
from ecosystem_ci.pipeline.rewriter import ManifestRewriter
from ecosystem_ci.pipeline.tasks import CallbackTask, CommandTask, ScriptTask, TaskRunner
from ecosystem_ci.runtime.git import Git
from ecosystem_ci.runtime.shell import Shell
from ecosystem_ci.suites import SuiteRegistry, run_suites
from ecosystem_ci.upstream import UpstreamBuilder
from ecosystem_ci.utils.logging import configure_logging

__all__ = [
    "__version__",
    # Agents
    "AgentName",
    "PackageManagerAgent",
    "detect_agent",
    "get_agent",
    # Config
    "EcosystemConfig",
    "MigrationOptions",
    "RepoOptions",
    "RunOptions",
    "ScriptTaskSpec",
    "load_options_file",
    # Pipeline
    "Bisector",
    "BisectVerdict",
    "BuildContext",
    "CallbackTask",
    "CommandTask",
    "ManifestRewriter",
    "OverrideResolver",
    "PackageManifest",
    "PipelineDriver",
    "PipelineResult",
    "PipelineState",
    "ScriptTask",
    "SiblingBuildDefinition",
    "TaskRunner",
    "UpstreamBuilder",
    "load_build_definitions",
    # Runtime
    "Git",
    "Shell",
    "SuiteRegistry",
    "run_suites",
    "configure_logging",
    # Exceptions
    "AgentDetectionError",
    "BuildDefinitionError",
    "CommandFailedError",
    "ConfigurationError",
    "ConflictingOverrideError",
    "EcosystemCIError",
    "InvalidTaskError",
    "OutdatedLockfileError",
    "SuiteNotFoundError",
    "UnknownScriptError",
    "UnsupportedAgentError",
    "UnsupportedPackageManagerError",
    "UpstreamQueryError",
]
