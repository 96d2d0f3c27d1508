import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from demos_ci.settings import (
    DYAD_CLI_BINARY,
    DYAD_CLI_PATH_ENV,
    INSTANTIATE_ENV,
    JULIA_BINARY,
    TIMEOUT_PER_COMPILE,
    TIMEOUT_PER_DOC_GEN,
    TIMEOUT_PER_INSTANTIATE,
    TIMEOUT_PER_TEST,
)
from demos_ci.workspace import DemoFolder
from dyad_ci_utils.file import path_to_binary
from dyad_ci_utils.kinds import DemoStep, StatusState

# ---------------------------------------------------------------------------- #
#                                 Step Command                                 #
# ---------------------------------------------------------------------------- #


@dataclass(frozen=True)
class StepCommand:
    step: DemoStep
    command: list[str]
    cwd: Path
    env: dict[str, str] | None = None
    timeout: float | None = None
    # state reported when the step does not succeed
    failure_state: StatusState = StatusState.FAILURE
    # whether a failure ends the pipeline for this demo
    is_fatal: bool = True


@dataclass(frozen=True)
class Toolchain:
    julia: str = JULIA_BINARY
    dyad_cli: str = DYAD_CLI_BINARY
    # overrides every per-step timeout when set
    timeout: float | None = None
    step_timeouts: dict[DemoStep, float | None] = field(
        default_factory=lambda: {
            DemoStep.INSTANTIATE: TIMEOUT_PER_INSTANTIATE,
            DemoStep.TEST: TIMEOUT_PER_TEST,
            DemoStep.DYAD_COMPILE: TIMEOUT_PER_COMPILE,
            DemoStep.DYAD_DOC_GEN: TIMEOUT_PER_DOC_GEN,
        }
    )

    def timeout_for(self, step: DemoStep) -> float | None:
        if self.timeout is not None:
            return self.timeout
        return self.step_timeouts.get(step)


def resolve_dyad_cli(explicit: str | None = None, env: Mapping[str, str] | None = None) -> str:
    """`--dyad-cli` flag, then `$DYAD_CLI_PATH`, then `dyad` on PATH."""
    env = os.environ if env is None else env
    if explicit:
        return explicit
    from_env = env.get(DYAD_CLI_PATH_ENV)
    if from_env:
        return from_env
    found = path_to_binary(DYAD_CLI_BINARY)
    return str(found) if found is not None else DYAD_CLI_BINARY


# ---------------------------------------------------------------------------- #
#                                Step Builders                                 #
# ---------------------------------------------------------------------------- #


def julia_pkg_command(julia: str, project: Path, code: str) -> list[str]:
    return [julia, f"--project={project}", "-e", code]


def instantiate_step(demo: DemoFolder, toolchain: Toolchain) -> StepCommand:
    return StepCommand(
        DemoStep.INSTANTIATE,
        julia_pkg_command(toolchain.julia, demo.path, "import Pkg; Pkg.resolve(); Pkg.instantiate()"),
        demo.path,
        env=dict(INSTANTIATE_ENV),
        timeout=toolchain.timeout_for(DemoStep.INSTANTIATE),
    )


def run_tests_step(demo: DemoFolder, toolchain: Toolchain) -> StepCommand:
    return StepCommand(
        DemoStep.TEST,
        julia_pkg_command(toolchain.julia, demo.path, "import Pkg; Pkg.test()"),
        demo.path,
        timeout=toolchain.timeout_for(DemoStep.TEST),
        failure_state=StatusState.ERROR,
    )


def compile_step(demo: DemoFolder, toolchain: Toolchain) -> StepCommand:
    return StepCommand(
        DemoStep.DYAD_COMPILE,
        [toolchain.dyad_cli, "compile", "."],
        demo.path,
        timeout=toolchain.timeout_for(DemoStep.DYAD_COMPILE),
    )


def doc_gen_step(demo: DemoFolder, toolchain: Toolchain) -> StepCommand:
    return StepCommand(
        DemoStep.DYAD_DOC_GEN,
        [toolchain.dyad_cli, "document", demo.name],
        demo.path,
        timeout=toolchain.timeout_for(DemoStep.DYAD_DOC_GEN),
        is_fatal=False,
    )


def pipeline(demo: DemoFolder, toolchain: Toolchain) -> list[StepCommand]:
    return [
        instantiate_step(demo, toolchain),
        run_tests_step(demo, toolchain),
        compile_step(demo, toolchain),
        doc_gen_step(demo, toolchain),
    ]
