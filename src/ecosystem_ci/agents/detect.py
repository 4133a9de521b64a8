"""Package-manager detection from a project's manifest and lockfiles."""
from __future__ import annotations

import json
from pathlib import Path

import structlog

from ecosystem_ci.core.constants import MANIFEST_FILE, AgentName

logger = structlog.get_logger(__name__)

# checked in order, first hit wins
_LOCKFILES: tuple[tuple[str, AgentName], ...] = (
    ("bun.lockb", AgentName.BUN),
    ("bun.lock", AgentName.BUN),
    ("pnpm-lock.yaml", AgentName.PNPM),
    ("yarn.lock", AgentName.YARN),
    ("package-lock.json", AgentName.NPM),
    ("npm-shrinkwrap.json", AgentName.NPM),
)


def _major(version: str) -> int | None:
    head = version.lstrip("^~=v").split(".", 1)[0]
    return int(head) if head.isdigit() else None


def _from_package_manager_field(directory: Path) -> str | None:
    manifest_path = directory / MANIFEST_FILE
    if not manifest_path.is_file():
        return None
    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    field = data.get("packageManager") if isinstance(data, dict) else None
    if not isinstance(field, str) or "@" not in field:
        return None

    name, _, version = field.partition("@")
    major = _major(version.split("+", 1)[0])
    if name == "yarn" and major is not None and major > 1:
        return AgentName.YARN_BERRY
    if name == "pnpm" and major is not None and major < 7:
        return AgentName.PNPM6
    return name


def detect_agent(directory: Path) -> str | None:
    """Detect the package manager used in *directory*.

    The ``packageManager`` field of ``package.json`` wins over lockfiles.
    The returned name may be outside :class:`AgentName` when the field names
    a manager this tool does not know; callers validate it.

    Returns:
        The agent name, or ``None`` when nothing recognisable was found.
    """
    declared = _from_package_manager_field(directory)
    if declared is not None:
        logger.debug("agent_detected", dir=str(directory), agent=declared, source="packageManager")
        return declared

    for filename, agent in _LOCKFILES:
        if (directory / filename).exists():
            if agent is AgentName.YARN and (directory / ".yarnrc.yml").exists():
                agent = AgentName.YARN_BERRY
            logger.debug("agent_detected", dir=str(directory), agent=str(agent), source=filename)
            return agent

    return None
