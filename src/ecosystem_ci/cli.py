"""Command-line entry point: ``ecosystem-ci [command] [suites...] [flags]``.

Commands:

* ``run`` (default): set up and build the upstream (skipped with
  ``--release``), then run the named suites, every listed suite when none
  is named, or the single subject from ``--options-file``.
* ``build-upstream``: set up and build the upstream only.
* ``run-suites``: run suites against an upstream that is already built.
* ``bisect``: find the upstream commit between ``--good`` and the
  current checkout that broke the named suites.
"""
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Sequence

import structlog

from ecosystem_ci.__version__ import __version__
from ecosystem_ci.core.config import EcosystemConfig, RunOptions, load_options_file
from ecosystem_ci.core.exceptions import ConfigurationError, EcosystemCIError
from ecosystem_ci.pipeline.bisect import Bisector
from ecosystem_ci.pipeline.builds import load_build_definitions
from ecosystem_ci.pipeline.driver import PipelineDriver
from ecosystem_ci.runtime.git import Git
from ecosystem_ci.runtime.shell import Shell
from ecosystem_ci.suites.registry import SuiteRegistry, run_suites
from ecosystem_ci.upstream.builder import UpstreamBuilder
from ecosystem_ci.utils.logging import configure_logging

logger = structlog.get_logger(__name__)

COMMANDS = ("run", "build-upstream", "run-suites", "bisect")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecosystem-ci",
        description="Run downstream projects against an upstream built from source.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--workspace", type=Path, help="Directory for all checkouts")
    common.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    common.add_argument("--log-format", choices=["json", "console"])

    upstream = argparse.ArgumentParser(add_help=False)
    upstream.add_argument("--verify", action="store_true", help="Run the upstream's own tests too")
    upstream.add_argument("--repo", help="Upstream repository (owner/name or URL)")
    upstream.add_argument("--branch", help="Upstream branch")
    upstream.add_argument("--tag", help="Upstream tag")
    upstream.add_argument("--commit", help="Upstream commit")

    subject = argparse.ArgumentParser(add_help=False)
    subject.add_argument("suites", nargs="*", help="Suite names (default: all)")
    subject.add_argument("--release", help="Test against this published upstream version")
    for task in ("build", "test", "e2e"):
        subject.add_argument(
            f"--{task}",
            action="append",
            metavar="SCRIPT",
            help=f"{task} task for the subject (repeatable)",
        )
    subject.add_argument(
        "--options-file",
        "--optionsFile",
        dest="options_file",
        type=Path,
        help="JSON file with base subject options",
    )

    subparsers.add_parser(
        "run", parents=[common, upstream, subject], help="Build the upstream and run suites"
    )
    subparsers.add_parser(
        "build-upstream", parents=[common, upstream], help="Set up and build the upstream"
    )
    subparsers.add_parser(
        "run-suites", parents=[common, subject], help="Run suites against a built upstream"
    )
    bisect = subparsers.add_parser(
        "bisect", parents=[common, upstream, subject], help="Bisect the upstream for a regression"
    )
    bisect.add_argument("--good", required=True, help="Last known good upstream ref")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse *argv*, treating a leading non-command argument as ``run``."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args or (args[0] not in COMMANDS and args[0] not in ("-h", "--help", "--version")):
        args.insert(0, "run")
    return build_parser().parse_args(args)


def load_config(args: argparse.Namespace) -> EcosystemConfig:
    config = EcosystemConfig.from_env()
    update: dict[str, Any] = {}
    if args.workspace is not None:
        update["workspace"] = args.workspace
    if args.log_level is not None:
        update["log_level"] = args.log_level
    if args.log_format is not None:
        update["log_json"] = args.log_format == "json"
    return config.model_copy(update=update)


def _task_flag(values: list[str] | None) -> str | list[str] | None:
    if not values:
        return None
    return values[0] if len(values) == 1 else values


def build_run_options(args: argparse.Namespace, config: EcosystemConfig) -> RunOptions:
    """Layer CLI flags over the options file (if any) into :class:`RunOptions`."""
    base: dict[str, Any] = {}
    options_file = getattr(args, "options_file", None)
    if options_file is not None:
        base = load_options_file(options_file)
    for task in ("build", "test", "e2e"):
        value = _task_flag(getattr(args, task, None))
        if value is not None:
            base[task] = value
    base["workspace"] = config.workspace
    base["verify"] = getattr(args, "verify", False)
    base["release"] = getattr(args, "release", None)
    return RunOptions(**base)


class Application:
    """Wires the collaborators for one CLI invocation."""

    def __init__(self, config: EcosystemConfig, args: argparse.Namespace) -> None:
        self.config = config
        self.args = args
        self.shell = Shell.for_config(config)
        self.git = Git(self.shell)
        self.upstream = UpstreamBuilder(config, self.shell, self.git)
        self.registry = SuiteRegistry(config.suites_dir)

    async def setup_upstream(self, *, shallow: bool = True) -> None:
        args = self.args
        await self.upstream.setup(
            repo=args.repo,
            branch=args.branch,
            tag=args.tag,
            commit=args.commit,
            shallow=shallow,
        )

    async def build_upstream(self) -> int:
        await self.setup_upstream()
        await self.upstream.build(verify=self.args.verify)
        return 0

    async def run(self) -> int:
        if not self.args.release:
            await self.build_upstream()
        return await self.run_suites()

    async def run_suites(self) -> int:
        options = build_run_options(self.args, self.config)
        driver = self._driver(options)
        if not self.args.suites and self.args.options_file is not None:
            await driver.run(options)
            return 0

        names = self.args.suites or self.registry.names()
        failed = await run_suites(self.registry, names, driver.run_in_repo, options)
        if failed:
            logger.error("suites_failed", suites=failed)
            return 1
        return 0

    async def bisect(self) -> int:
        await self.setup_upstream(shallow=False)
        options = build_run_options(self.args, self.config)
        driver = self._driver(options)
        names = self.args.suites or self.registry.names()

        async def verify() -> BaseException | None:
            try:
                await self.upstream.build()
            except EcosystemCIError as exc:
                return exc
            failed = await run_suites(self.registry, names, driver.run_in_repo, options)
            if failed:
                return EcosystemCIError(f"suites failed: {', '.join(failed)}")
            return None

        await Bisector(self.git, self.upstream.path).bisect(self.args.good, verify)
        return 0

    def _driver(self, options: RunOptions) -> PipelineDriver:
        return PipelineDriver(
            self.config,
            self.shell,
            self.git,
            upstream=None if options.release else self.upstream,
            build_definitions=load_build_definitions(self.config.builds_dir),
        )


async def _dispatch(app: Application, command: str) -> int:
    if command == "build-upstream":
        return await app.build_upstream()
    if command == "run-suites":
        return await app.run_suites()
    if command == "bisect":
        return await app.bisect()
    return await app.run()


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args)
    except ValueError as exc:
        print(f"ecosystem-ci: invalid configuration: {exc}", file=sys.stderr)
        return 1
    configure_logging(config.log_level, json=config.log_json)

    try:
        app = Application(config, args)
        return asyncio.run(_dispatch(app, args.command))
    except ConfigurationError as exc:
        logger.error("configuration_error", error=str(exc))
        return 1
    except EcosystemCIError as exc:
        logger.error("run_failed", error=str(exc), code=exc.code, details=exc.details)
        return 1


if __name__ == "__main__":
    sys.exit(main())
