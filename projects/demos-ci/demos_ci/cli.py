#!/usr/bin/env python3

import argparse
import logging
import os
from pathlib import Path

from demos_ci.runner import DemoRunner, github_status_reporter, log_only_reporter
from demos_ci.scaffold import DemoProjectGenerator, add_dependencies, compile_project
from demos_ci.settings import DEFAULT_COMPONENT_NAME, DEFAULT_STATUS_REPOSITORY, JULIA_BINARY
from demos_ci.steps import Toolchain, resolve_dyad_cli
from demos_ci.workspace import discover_demos, select_demos
from dyad_ci_utils.cli import CIClient
from dyad_ci_utils.git import GitException, git_rev_parse
from dyad_ci_utils.github import GitHubContext, post_status, resolve_commit_sha
from dyad_ci_utils.kinds import StatusState

logger = logging.getLogger("dyad-ci")


class DemosCIClient(CIClient):
    def add_commands(self, subparsers: argparse._SubParsersAction):
        # --- Subcommand: run ---
        run_parser = subparsers.add_parser(
            "run", help="Instantiate, test, compile and document demo packages"
        )
        self.add_shared_flags(run_parser)
        self.add_root_flag(run_parser, "repository root holding the demo folders")
        run_parser.add_argument(
            "demos", nargs="*", metavar="DEMO", help="only run these demos (default: all)"
        )
        run_parser.add_argument("--julia", type=str, default=JULIA_BINARY, help="julia binary")
        run_parser.add_argument(
            "--dyad-cli",
            type=str,
            default=None,
            help="dyad CLI binary (default: $DYAD_CLI_PATH, then `dyad` on PATH)",
        )
        run_parser.add_argument(
            "-t", "--timeout", type=str, default=None, help="timeout per step, e.g. 45m or 1h30m"
        )
        run_parser.add_argument(
            "-o", "--out", metavar="OUTPUT_DIR", type=str, default=None, help="write step logs here"
        )
        run_parser.add_argument(
            "--no-status", action="store_true", help="do not post GitHub commit statuses"
        )
        run_parser.add_argument(
            "--repo",
            type=str,
            default=DEFAULT_STATUS_REPOSITORY,
            help="status repository if GITHUB_REPOSITORY is unset",
        )

        # --- Subcommand: list ---
        list_parser = subparsers.add_parser("list", help="List the demo packages")
        self.add_shared_flags(list_parser)
        self.add_root_flag(list_parser, "repository root holding the demo folders")

        # --- Subcommand: status ---
        status_parser = subparsers.add_parser("status", help="Post a single commit status")
        self.add_shared_flags(status_parser)
        status_parser.add_argument("name", help="status context, e.g. CoffeeMugDemo/all")
        status_parser.add_argument("state", choices=[s.value for s in StatusState])
        status_parser.add_argument(
            "--sha", type=str, default=None, help="commit (default: event commit, then HEAD)"
        )
        status_parser.add_argument(
            "--repo",
            type=str,
            default=None,
            help=f"status repository (default: GITHUB_REPOSITORY, then {DEFAULT_STATUS_REPOSITORY})",
        )

        # --- Subcommand: new ---
        new_parser = subparsers.add_parser("new", help="Scaffold a new demo package")
        self.add_shared_flags(new_parser)
        self.add_root_flag(new_parser, "directory to create the demo folder in")
        new_parser.add_argument("package", help="Julia package name, e.g. CoffeeMugDemo")
        new_parser.add_argument("--component", type=str, default=DEFAULT_COMPONENT_NAME)
        new_parser.add_argument("--author", dest="authors", action="append", default=[])
        new_parser.add_argument("--overwrite", action="store_true")
        new_parser.add_argument(
            "--no-deps", action="store_true", help="do not run Pkg.add for the demo dependencies"
        )
        new_parser.add_argument(
            "--no-compile", action="store_true", help="do not run `dyad compile` on the new demo"
        )
        new_parser.add_argument("--julia", type=str, default=JULIA_BINARY, help="julia binary")
        new_parser.add_argument(
            "--dyad-cli",
            type=str,
            default=None,
            help="dyad CLI binary (default: $DYAD_CLI_PATH, then `dyad` on PATH)",
        )

    def dispatch(self, command: str) -> int:
        match command:
            case "run":
                return self.run()
            case "list":
                return self.list_demos()
            case "status":
                return self.status()
            case "new":
                return self.new()
        self.argument_parser.error(f"unknown command {command}")

    # ------------------------------------------------------------------------ #

    def run(self) -> int:
        root = self.extract_dir(self.args.root, "--root")
        try:
            demos = select_demos(discover_demos(root), self.args.demos)
        except ValueError as e:
            self.argument_parser.error(str(e))

        toolchain = Toolchain(
            julia=self.args.julia,
            dyad_cli=resolve_dyad_cli(self.args.dyad_cli),
            timeout=self.extract_timeout(self.args.timeout),
        )
        reporter = (
            log_only_reporter if self.args.no_status else github_status_reporter(self.args.repo)
        )
        summary = os.environ.get("GITHUB_STEP_SUMMARY")
        runner = DemoRunner(
            toolchain,
            reporter=reporter,
            out_dir=Path(self.args.out).absolute() if self.args.out else None,
            summary_path=Path(summary) if summary else None,
        )

        logger.info(f"=== Start {self.logger_prefix} Run ===")
        logger.info(f" * root: {root}")
        logger.info(f" * demos: {', '.join(d.name for d in demos) or '<none>'}")
        logger.info(f" * julia: {toolchain.julia}")
        logger.info(f" * dyad: {toolchain.dyad_cli}")
        logger.info("===")

        results = runner.run(demos)

        failed = [r for r in results if not r.is_success()]
        for result in failed:
            steps = ", ".join(s.step.value for s in result.failed_steps())
            logger.error(f"{result.name}: {result.state.value}" + (f" ({steps})" if steps else ""))
        logger.info(f"=== End {self.logger_prefix} Run: {len(results) - len(failed)}/{len(results)} ok ===")
        return 1 if failed else 0

    def list_demos(self) -> int:
        root = self.extract_dir(self.args.root, "--root")
        for demo in discover_demos(root):
            tests = "tests" if demo.has_tests else "no tests"
            print(
                f"{demo.name}\t{len(demo.dyad_files)} dyad file(s)\t"
                f"{len(demo.scripts)} script(s)\t{tests}"
            )
        return 0

    def status(self) -> int:
        sha = self.args.sha
        if sha is None:
            try:
                sha = resolve_commit_sha(GitHubContext.from_env())
            except (OSError, ValueError) as e:
                logger.debug(f"unable to read event payload: {e}")
        if sha is None:
            try:
                sha = git_rev_parse(Path.cwd())
            except GitException:
                self.argument_parser.error("unable to determine the commit, pass --sha")
        posted = post_status(
            self.args.name,
            self.args.state,
            repo=self.args.repo,
            default_repo=DEFAULT_STATUS_REPOSITORY,
            sha=sha,
        )
        if not posted:
            logger.error(f"status {self.args.name} was not posted")
        return 0 if posted else 1

    def new(self) -> int:
        root = self.extract_dir(self.args.root, "--root")
        try:
            generator = DemoProjectGenerator(
                root / self.args.package,
                self.args.package,
                self.args.component,
                authors=self.args.authors,
                overwrite=self.args.overwrite,
            )
            files = generator.create()
        except (ValueError, FileExistsError) as e:
            self.argument_parser.error(str(e))

        for path in files:
            print(path.relative_to(root))

        if not self.args.no_deps:
            status = add_dependencies(generator.root, julia=self.args.julia)
            if status.is_failure():
                logger.error("Failed to add dependencies")
                logger.info(str(status))
                return 1
        if not self.args.no_compile:
            status = compile_project(generator.root, resolve_dyad_cli(self.args.dyad_cli))
            if status.is_failure():
                logger.error("Compilation failed")
                logger.info(str(status))
                return 1
        return 0


def app() -> int:
    cli = DemosCIClient(
        "dyad-demos-ci", "CI harness for the Dyad demo packages", "DYAD-DEMOS"
    )
    return cli.start()


if __name__ == "__main__":
    raise SystemExit(app())
