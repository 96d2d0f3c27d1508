import logging
from dataclasses import dataclass
from pathlib import Path

from demos_ci.settings import DYAD_SOURCE_DIR, SCRIPTS_DIR, TEST_DIR

logger = logging.getLogger("dyad-ci")


@dataclass(frozen=True)
class DemoFolder:
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def dyad_dir(self) -> Path:
        return self.path / DYAD_SOURCE_DIR

    @property
    def has_tests(self) -> bool:
        return (self.path / TEST_DIR / "runtests.jl").is_file()

    @property
    def scripts(self) -> list[Path]:
        scripts_dir = self.path / SCRIPTS_DIR
        if not scripts_dir.is_dir():
            return []
        return sorted(scripts_dir.glob("*.jl"))

    @property
    def dyad_files(self) -> list[Path]:
        return sorted(self.dyad_dir.rglob("*.dyad"))


def is_demo_folder(path: Path) -> bool:
    return path.is_dir() and not path.name.startswith(".") and (path / DYAD_SOURCE_DIR).is_dir()


def discover_demos(root: Path) -> list[DemoFolder]:
    """All direct children of `root` that are Dyad demo packages, by name."""
    demos = [DemoFolder(child) for child in sorted(root.iterdir()) if is_demo_folder(child)]
    logger.debug(f"discovered {len(demos)} demo(s) in {root}: {[d.name for d in demos]}")
    return demos


def select_demos(demos: list[DemoFolder], names: list[str]) -> list[DemoFolder]:
    if not names:
        return demos
    available = {demo.name for demo in demos}
    unknown = [name for name in names if name not in available]
    if unknown:
        raise ValueError(
            f"unknown demo(s): {', '.join(unknown)} (available: {', '.join(sorted(available))})"
        )
    wanted = set(names)
    return [demo for demo in demos if demo.name in wanted]
