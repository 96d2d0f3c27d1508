import logging
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Callable

from demos_ci.settings import DEFAULT_STATUS_REPOSITORY
from demos_ci.steps import StepCommand, Toolchain, pipeline
from demos_ci.workspace import DemoFolder
from dyad_ci_utils.cmd import ExecStatus, invoke_command
from dyad_ci_utils.common import to_table_cell
from dyad_ci_utils.file import create_file
from dyad_ci_utils.github import post_status
from dyad_ci_utils.kinds import DemoStep, StatusState
from dyad_ci_utils.logs import group

logger = logging.getLogger("dyad-ci")

# (status context, state) -> anything
StatusReporter = Callable[[str, StatusState], Any]

STEP_START_MESSAGES = {
    DemoStep.INSTANTIATE: "Instantiating project",
    DemoStep.TEST: "Running tests",
    DemoStep.DYAD_COMPILE: "Compiling with latest `dyad-lang`",
    DemoStep.DYAD_DOC_GEN: "Running Dyad doc-gen",
}

STEP_FAILURE_MESSAGES = {
    DemoStep.INSTANTIATE: "Failed to instantiate project",
    DemoStep.TEST: "Tests errored",
    DemoStep.DYAD_COMPILE: "Compilation failed",
    DemoStep.DYAD_DOC_GEN: "Doc-gen failed",
}


# ---------------------------------------------------------------------------- #
#                                   Results                                    #
# ---------------------------------------------------------------------------- #


@dataclass
class StepResult:
    step: DemoStep
    exec_status: ExecStatus
    state: StatusState

    def is_success(self) -> bool:
        return self.state == StatusState.SUCCESS


@dataclass
class DemoResult:
    demo: DemoFolder
    steps: list[StepResult] = field(default_factory=list)
    state: StatusState = StatusState.PENDING

    @property
    def name(self) -> str:
        return self.demo.name

    def is_success(self) -> bool:
        return self.state == StatusState.SUCCESS

    def failed_steps(self) -> list[StepResult]:
        return [s for s in self.steps if not s.is_success()]

    def get_step(self, step: DemoStep) -> StepResult | None:
        for result in self.steps:
            if result.step == step:
                return result
        return None


# ---------------------------------------------------------------------------- #
#                                  Reporters                                   #
# ---------------------------------------------------------------------------- #


def github_status_reporter(repo: str = DEFAULT_STATUS_REPOSITORY) -> StatusReporter:
    return partial(post_status, default_repo=repo)


def log_only_reporter(name: str, state: StatusState) -> None:
    logger.info(f"status {name}: {state.value} (not posted)")


# ---------------------------------------------------------------------------- #
#                                    Runner                                    #
# ---------------------------------------------------------------------------- #


class DemoRunner:
    """Runs the instantiate / test / compile / doc-gen pipeline over demo
    packages and reports one commit status per failing step, plus an
    overall `<demo>/all` status."""

    toolchain: Toolchain
    reporter: StatusReporter
    out_dir: Path | None
    summary_path: Path | None

    def __init__(
        self,
        toolchain: Toolchain,
        *,
        reporter: StatusReporter | None = None,
        out_dir: Path | None = None,
        summary_path: Path | None = None,
    ):
        self.toolchain = toolchain
        self.reporter = reporter if reporter is not None else github_status_reporter()
        self.out_dir = out_dir
        self.summary_path = summary_path

    def report(self, demo: DemoFolder, step: DemoStep, state: StatusState):
        self.reporter(step.context(demo.name), state)

    def run_step(self, demo: DemoFolder, step_command: StepCommand) -> StepResult:
        logger.info(STEP_START_MESSAGES[step_command.step])
        status = invoke_command(
            step_command.command,
            cwd=step_command.cwd,
            env=step_command.env,
            timeout=step_command.timeout,
            explicit_clean_zombies=True,
        )
        state = step_command.failure_state if status.is_failure() else StatusState.SUCCESS
        result = StepResult(step_command.step, status, state)
        self.write_artifacts(demo, result)
        return result

    def run_demo(self, demo: DemoFolder) -> DemoResult:
        result = DemoResult(demo)
        self.report(demo, DemoStep.ALL, StatusState.PENDING)

        with group(f"Testing {demo.path}"):
            for step_command in pipeline(demo, self.toolchain):
                step_result = self.run_step(demo, step_command)
                result.steps.append(step_result)
                if step_result.is_success():
                    continue

                if step_result.exec_status.is_timeout:
                    logger.error(
                        f"{STEP_FAILURE_MESSAGES[step_command.step]} "
                        f"(timeout after {step_command.timeout}s)"
                    )
                else:
                    logger.error(STEP_FAILURE_MESSAGES[step_command.step])
                logger.info(str(step_result.exec_status))
                self.report(demo, step_command.step, step_result.state)

                if step_command.is_fatal:
                    result.state = step_result.state
                    self.report(demo, DemoStep.ALL, result.state)
                    return result

            logger.info("All steps succeeded")
            result.state = StatusState.SUCCESS
            self.report(demo, DemoStep.ALL, StatusState.SUCCESS)
        return result

    def run(self, demos: list[DemoFolder]) -> list[DemoResult]:
        results = []
        for demo in demos:
            try:
                results.append(self.run_demo(demo))
            except Exception as e:
                # keep going with the remaining demos
                logger.error(f"Testing {demo.name} crashed: {e}", exc_info=True)
                self.report(demo, DemoStep.ALL, StatusState.ERROR)
                results.append(DemoResult(demo, state=StatusState.ERROR))
        if self.summary_path is not None:
            write_step_summary(self.summary_path, results)
        return results

    # ------------------------------------------------------------------------ #

    def write_artifacts(self, demo: DemoFolder, result: StepResult):
        if self.out_dir is None:
            return
        demo_dir = self.out_dir / demo.name
        step = result.step.value
        create_file(demo_dir / f"{step}.stdout.txt", result.exec_status.stdout)
        create_file(demo_dir / f"{step}.stderr.txt", result.exec_status.stderr)
        if not result.is_success():
            create_file(demo_dir / f"{step}.sh", result.exec_status.to_script())


# ---------------------------------------------------------------------------- #
#                                 Job Summary                                  #
# ---------------------------------------------------------------------------- #

SUMMARY_STEPS = [
    DemoStep.INSTANTIATE,
    DemoStep.TEST,
    DemoStep.DYAD_COMPILE,
    DemoStep.DYAD_DOC_GEN,
]

STATE_MARKS = {
    StatusState.SUCCESS: "ok",
    StatusState.FAILURE: "failed",
    StatusState.ERROR: "errored",
    StatusState.PENDING: "-",
}


def render_summary(results: list[DemoResult]) -> str:
    header = ["Demo", *[s.value for s in SUMMARY_STEPS], "Result"]
    lines = [
        "## Dyad demos",
        "",
        "| " + " | ".join(header) + " |",
        "|" + "---|" * len(header),
    ]
    for result in results:
        cells = [to_table_cell(result.name)]
        for step in SUMMARY_STEPS:
            step_result = result.get_step(step)
            cells.append("-" if step_result is None else STATE_MARKS[step_result.state])
        cells.append(STATE_MARKS[result.state])
        lines.append("| " + " | ".join(cells) + " |")
    lines.append("")
    return "\n".join(lines)


def write_step_summary(path: Path, results: list[DemoResult]):
    """Append the result table to the GitHub job summary file."""
    try:
        with path.open("a") as summary:
            summary.write(render_summary(results))
    except OSError as e:
        logger.warning(f"unable to write job summary to {path}: {e}")
