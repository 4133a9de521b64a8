"""Build Vue from vuejs/core so subjects can be tested against its main branch."""
from __future__ import annotations

from pathlib import Path

from ecosystem_ci.agents import get_agent
from ecosystem_ci.core.constants import AgentName
from ecosystem_ci.pipeline.builds import BuildContext
from ecosystem_ci.pipeline.install import frozen_install

NAME = "vue"

PACKAGES = {
    "vue": "packages/vue",
    "@vue/compiler-core": "packages/compiler-core",
    "@vue/compiler-dom": "packages/compiler-dom",
    "@vue/compiler-sfc": "packages/compiler-sfc",
    "@vue/compiler-ssr": "packages/compiler-ssr",
    "@vue/reactivity": "packages/reactivity",
    "@vue/runtime-core": "packages/runtime-core",
    "@vue/runtime-dom": "packages/runtime-dom",
    "@vue/server-renderer": "packages/server-renderer",
    "@vue/shared": "packages/shared",
}


async def build(ctx: BuildContext) -> Path:
    directory = await ctx.git.clone_or_reuse("vuejs/core", ctx.workspace / "vue", branch="main")
    agent = get_agent(AgentName.PNPM)
    await frozen_install(ctx.shell, agent, directory)
    await ctx.shell.run(agent.run_script_command("build", ["--release"]), cwd=directory)
    return directory
