from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ecosystem_ci.core.exceptions import ConfigurationError


class EcosystemConfig(BaseModel):
    """Process-wide settings: where to work and which upstream to build."""

    workspace: Path = Path("./workspace")
    builds_dir: Path | None = None
    """Directory of sibling build definitions (``None`` = bundled builds)."""
    suites_dir: Path | None = None
    """Directory of suite modules (``None`` = bundled suites)."""
    upstream_repo: str = "vitejs/vite"
    upstream_branch: str = "main"
    upstream_package: str = "vite"
    upstream_package_dir: str = "packages/vite"
    upstream_companions: dict[str, str] = Field(
        default_factory=lambda: {"@vitejs/plugin-legacy": "packages/plugin-legacy"}
    )
    """Extra first-party packages the upstream ships, name -> directory."""
    upstream_pins: list[str] = Field(default_factory=lambda: ["rollup"])
    """Dependencies pinned to the exact version the upstream resolved."""
    upstream_build_script: str = "ci-build"
    upstream_test_script: str = "test"
    node_heap_mb: int = Field(default=6144, ge=512, le=65536)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> EcosystemConfig:
        """Create an :class:`EcosystemConfig` from ``ECOSYSTEM_CI_*`` variables.

        Reads the following env vars (all optional):

        * ``ECOSYSTEM_CI_WORKSPACE`` → ``workspace``
        * ``ECOSYSTEM_CI_BUILDS_DIR`` → ``builds_dir``
        * ``ECOSYSTEM_CI_SUITES_DIR`` → ``suites_dir``
        * ``ECOSYSTEM_CI_UPSTREAM_REPO`` → ``upstream_repo``
        * ``ECOSYSTEM_CI_UPSTREAM_BRANCH`` → ``upstream_branch``
        * ``ECOSYSTEM_CI_UPSTREAM_PACKAGE`` → ``upstream_package``
        * ``ECOSYSTEM_CI_NODE_HEAP_MB`` → ``node_heap_mb``
        * ``ECOSYSTEM_CI_LOG_LEVEL`` → ``log_level``
        * ``ECOSYSTEM_CI_LOG_JSON`` → ``log_json`` (``1``/``true``/``yes``)

        Any variable that is not set or is empty is left at its default value.
        """
        kwargs: dict[str, Any] = {}

        for env_name, field_name in (
            ("ECOSYSTEM_CI_WORKSPACE", "workspace"),
            ("ECOSYSTEM_CI_BUILDS_DIR", "builds_dir"),
            ("ECOSYSTEM_CI_SUITES_DIR", "suites_dir"),
            ("ECOSYSTEM_CI_UPSTREAM_REPO", "upstream_repo"),
            ("ECOSYSTEM_CI_UPSTREAM_BRANCH", "upstream_branch"),
            ("ECOSYSTEM_CI_UPSTREAM_PACKAGE", "upstream_package"),
            ("ECOSYSTEM_CI_LOG_LEVEL", "log_level"),
        ):
            value = os.environ.get(env_name)
            if value:
                kwargs[field_name] = value

        heap = os.environ.get("ECOSYSTEM_CI_NODE_HEAP_MB")
        if heap:
            kwargs["node_heap_mb"] = int(heap)

        log_json = os.environ.get("ECOSYSTEM_CI_LOG_JSON")
        if log_json:
            kwargs["log_json"] = log_json.strip().lower() in ("1", "true", "yes")

        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Repository / run options
# ---------------------------------------------------------------------------


class ScriptTaskSpec(BaseModel):
    """A reference to a named script in the subject's manifest."""

    script: str
    args: list[str] = Field(default_factory=list)


TaskInput = Union[str, ScriptTaskSpec, Callable[[], Any]]
TaskSpec = Union[TaskInput, list[TaskInput], None]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class MigrationOptions(_CamelModel):
    """Tool-migration variant: run ``command``, reinstall, then ``codemods``."""

    command: TaskSpec
    codemods: TaskSpec = None


class RepoOptions(_CamelModel):
    """Describes one subject repository and the tasks to run in it."""

    repo: str | None = None
    dir: str | None = None
    branch: str = "main"
    tag: str | None = None
    commit: str | None = None
    shallow: bool = True
    overrides: dict[str, str | bool] = Field(default_factory=dict)
    before_install: TaskSpec = None
    before_build: TaskSpec = None
    before_test: TaskSpec = None
    build: TaskSpec = None
    test: TaskSpec = None
    e2e: TaskSpec = None
    migration: MigrationOptions | None = None

    def subject_dir(self, workspace: Path) -> Path:
        """Directory the subject is checked out into under *workspace*."""
        name = self.dir
        if not name and self.repo:
            name = self.repo.rstrip("/").rsplit("/", 1)[-1]
            name = name.removesuffix(".git")
        if not name:
            raise ConfigurationError("Either 'repo' or 'dir' must be set for a subject")
        return (workspace / name).resolve()


class RunOptions(RepoOptions):
    """Resolved configuration for one pipeline execution.

    Only ``agent`` changes after the run starts: it is filled in once,
    from detection when not supplied, and then left alone.
    """

    workspace: Path
    upstream_path: Path | None = None
    verify: bool = False
    skip_git: bool = False
    release: str | None = None
    agent: str | None = None
    ci_branch: str | None = None

    def merged(self, **fields: Any) -> RunOptions:
        """Return a validated copy with *fields* layered on top.

        Keys may be field names or their camelCase aliases, and nested
        values such as ``migration`` may be plain mappings.

        Raises:
            ConfigurationError: On an unknown key or a value that does not validate.
        """
        names = {info.alias or name: name for name, info in type(self).model_fields.items()}
        names.update({name: name for name in type(self).model_fields})
        unknown = sorted(key for key in fields if key not in names)
        if unknown:
            raise ConfigurationError(f"Unknown subject option(s): {', '.join(unknown)}")

        data = dict(self)
        data.update({names[key]: value for key, value in fields.items()})
        try:
            return type(self).model_validate(data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid subject options: {exc}") from exc


def load_options_file(path: Path) -> dict[str, Any]:
    """Read a JSON options file and validate it as :class:`RepoOptions`.

    Returns the raw mapping (only validated keys) so callers can layer
    CLI flags on top before building the final model.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Options file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Options file {path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Options file {path} must contain a JSON object")

    try:
        validated = RepoOptions.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid options file {path}: {exc}") from exc
    return validated.model_dump(exclude_unset=True)
