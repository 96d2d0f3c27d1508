from pathlib import Path

import pytest


def make_demo(root: Path, name: str, *, tests: bool = True, dyad_files: tuple[str, ...] = ("Model.dyad",)) -> Path:
    demo = root / name
    (demo / "dyad").mkdir(parents=True)
    for dyad_file in dyad_files:
        (demo / "dyad" / dyad_file).write_text("component Model\nend\n")
    if tests:
        (demo / "test").mkdir()
        (demo / "test" / "runtests.jl").write_text("using Test\n")
    return demo


@pytest.fixture
def demo_repo(tmp_path) -> Path:
    """A checkout with three demos and some folders that are not demos."""
    make_demo(tmp_path, "TurkeyDemo")
    make_demo(tmp_path, "CoffeeMugDemo", dyad_files=("CoffeeMug.dyad", "Hand.dyad"))
    make_demo(tmp_path, "MakieWebinar", tests=False)
    (tmp_path / ".ci").mkdir()
    (tmp_path / ".hidden" / "dyad").mkdir(parents=True)
    (tmp_path / "docs").mkdir()
    (tmp_path / "README.md").write_text("# Dyad demos\n")
    return tmp_path


@pytest.fixture
def make_demo_folder():
    return make_demo
