import logging
import re
import uuid
from pathlib import Path

from demos_ci.settings import (
    DEFAULT_COMPONENT_NAME,
    DYAD_CLI_BINARY,
    DYAD_SOURCE_DIR,
    JULIA_BINARY,
    SCAFFOLD_DEPENDENCIES,
    SCRIPTS_DIR,
    TEST_DIR,
    TIMEOUT_PER_COMPILE,
    TIMEOUT_PER_INSTANTIATE,
)
from dyad_ci_utils.cmd import ExecStatus, invoke_command
from dyad_ci_utils.file import create_file, is_empty_dir
from dyad_ci_utils.project import AbstractProjectGenerator

logger = logging.getLogger("dyad-ci")

TEMPLATE_DIR = Path(__file__).parent / "templates"
IDENTIFIER_PATTERN = re.compile(r"^[A-Z][A-Za-z0-9_]*$")


def to_snake_case(name: str) -> str:
    """`CoffeeMug` -> `coffee_mug`"""
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name).lower()


def check_identifier(value: str, what: str) -> str:
    if not IDENTIFIER_PATTERN.match(value):
        raise ValueError(
            f"{what} '{value}' must start with an uppercase letter and contain only "
            "letters, digits and underscores"
        )
    return value


class DemoProjectGenerator(AbstractProjectGenerator):
    """Creates a minimal Dyad demo package that the CI runner picks up:
    a Newton-cooling component with its transient analysis, a test set and a
    simulation script."""

    package: str
    component: str
    overwrite: bool

    def __init__(
        self,
        root: Path,
        package: str,
        component: str = DEFAULT_COMPONENT_NAME,
        *,
        authors: list[str] | None = None,
        t_inf: float = 300.0,
        t0: float = 320.0,
        tau: float = 2.0,
        stop: float = 10.0,
        overwrite: bool = False,
    ):
        super().__init__(root, TEMPLATE_DIR)
        self.package = check_identifier(package, "package name")
        self.component = check_identifier(component, "component name")
        if tau <= 0:
            raise ValueError("time constant must be positive")
        if stop <= 0:
            raise ValueError("stop time must be positive")
        self.authors = authors or []
        self.t_inf = t_inf
        self.t0 = t0
        self.tau = tau
        self.stop = stop
        self.overwrite = overwrite

    @property
    def template_args(self) -> dict:
        return {
            "package": self.package,
            "component": self.component,
            "t_inf": self.t_inf,
            "t0": self.t0,
            "tau": self.tau,
            "stop": self.stop,
        }

    def create(self) -> list[Path]:
        if self.root.is_file():
            raise FileExistsError(f"{self.root} is a file")
        if self.root.exists() and not is_empty_dir(self.root) and not self.overwrite:
            raise FileExistsError(f"{self.root} already exists and is not empty")

        logger.info(f"creating demo package {self.package} @ {self.root}")
        files = {
            self.root / "Project.toml": self.render_template(
                "Project.toml.j2",
                package=self.package,
                uuid=str(uuid.uuid4()),
                authors=self.authors,
            ),
            self.root / "src" / f"{self.package}.jl": self.render_template(
                "package.jl.j2", **self.template_args
            ),
            self.root / DYAD_SOURCE_DIR / f"{self.component}.dyad": self.render_template(
                "component.dyad.j2", **self.template_args
            ),
            self.root / TEST_DIR / "runtests.jl": self.render_template(
                "runtests.jl.j2", **self.template_args
            ),
            self.root / SCRIPTS_DIR / f"simulate_{to_snake_case(self.component)}.jl": (
                self.render_template("simulate.jl.j2", **self.template_args)
            ),
        }
        for path, content in files.items():
            create_file(path, content)
        return list(files)


def add_dependencies(
    project: Path,
    dependencies: list[str] = SCAFFOLD_DEPENDENCIES,
    julia: str = JULIA_BINARY,
) -> ExecStatus:
    """Let Pkg resolve and record the demo's dependencies in Project.toml."""
    packages = ", ".join(f'"{dep}"' for dep in dependencies)
    return invoke_command(
        [julia, f"--project={project}", "-e", f"import Pkg; Pkg.add([{packages}])"],
        cwd=project,
        timeout=TIMEOUT_PER_INSTANTIATE,
    )


def compile_project(project: Path, dyad_cli: str = DYAD_CLI_BINARY) -> ExecStatus:
    """Generate the Julia definitions (`generated/`) that `src/` includes."""
    return invoke_command(
        [dyad_cli, "compile", "."],
        cwd=project,
        timeout=TIMEOUT_PER_COMPILE,
    )
