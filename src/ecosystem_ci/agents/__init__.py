"""Package-manager agents — install, run and override mechanics per manager."""
from __future__ import annotations

from ecosystem_ci.agents.base import PackageManagerAgent
from ecosystem_ci.agents.bun import BunAgent
from ecosystem_ci.agents.detect import detect_agent
from ecosystem_ci.agents.npm import NpmAgent
from ecosystem_ci.agents.pnpm import Pnpm6Agent, PnpmAgent
from ecosystem_ci.agents.yarn import YarnAgent, YarnBerryAgent
from ecosystem_ci.core.exceptions import UnsupportedAgentError

AGENTS: dict[str, type[PackageManagerAgent]] = {
    cls.name: cls
    for cls in (NpmAgent, YarnAgent, YarnBerryAgent, PnpmAgent, Pnpm6Agent, BunAgent)
}


def get_agent(name: str) -> PackageManagerAgent:
    """Return the agent for *name*.

    Raises:
        UnsupportedAgentError: If *name* is not a known package manager.
    """
    try:
        return AGENTS[name]()
    except KeyError:
        raise UnsupportedAgentError(
            f"Invalid agent {name!r}. Allowed values: {', '.join(AGENTS)}",
            code="UNSUPPORTED_AGENT",
            details={"agent": name},
        ) from None


__all__ = [
    "AGENTS",
    "BunAgent",
    "NpmAgent",
    "PackageManagerAgent",
    "Pnpm6Agent",
    "PnpmAgent",
    "YarnAgent",
    "YarnBerryAgent",
    "detect_agent",
    "get_agent",
]
