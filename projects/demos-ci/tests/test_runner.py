import shlex
from pathlib import Path

import pytest

import demos_ci.runner as runner_module
from demos_ci.runner import DemoRunner, render_summary
from demos_ci.steps import Toolchain
from demos_ci.workspace import discover_demos
from dyad_ci_utils.cmd import TIMEOUT_RETURNCODE, ExecStatus
from dyad_ci_utils.kinds import DemoStep, StatusState


def step_of(command: list[str]) -> DemoStep:
    if "Pkg.instantiate" in command[-1]:
        return DemoStep.INSTANTIATE
    if "Pkg.test" in command[-1]:
        return DemoStep.TEST
    if command[1] == "compile":
        return DemoStep.DYAD_COMPILE
    if command[1] == "document":
        return DemoStep.DYAD_DOC_GEN
    raise AssertionError(f"unexpected command {command}")


class FakeToolchain:
    """Stands in for julia and the dyad CLI: every step succeeds unless a
    (demo, step) pair is listed in `failures`."""

    def __init__(self, failures: dict[tuple[str, DemoStep], int] | None = None):
        self.failures = failures or {}
        self.calls: list[tuple[str, DemoStep]] = []

    def __call__(self, command, cwd=None, env=None, timeout=None, **kwargs):
        step = step_of(command)
        self.calls.append((Path(cwd).name, step))
        returncode = self.failures.get((Path(cwd).name, step), 0)
        return ExecStatus(
            shlex.join(command),
            f"{step.value} output\n",
            "" if returncode == 0 else f"{step.value} broke\n",
            None,
            None,
            returncode,
            0.01,
            is_timeout=returncode == TIMEOUT_RETURNCODE,
            env=env,
            cwd=cwd,
        )


class RecordingReporter:
    def __init__(self):
        self.statuses: list[tuple[str, StatusState]] = []

    def __call__(self, name: str, state: StatusState):
        self.statuses.append((name, state))


@pytest.fixture
def reporter():
    return RecordingReporter()


def install(monkeypatch, failures=None) -> FakeToolchain:
    fake = FakeToolchain(failures)
    monkeypatch.setattr(runner_module, "invoke_command", fake)
    return fake


# ---------------------------------------------------------------------------- #


def test_all_steps_succeed(monkeypatch, demo_repo, reporter):
    fake = install(monkeypatch)
    demos = discover_demos(demo_repo)

    results = DemoRunner(Toolchain(), reporter=reporter).run(demos)

    assert all(r.is_success() for r in results)
    assert [r.name for r in results] == ["CoffeeMugDemo", "MakieWebinar", "TurkeyDemo"]
    assert fake.calls[:4] == [
        ("CoffeeMugDemo", DemoStep.INSTANTIATE),
        ("CoffeeMugDemo", DemoStep.TEST),
        ("CoffeeMugDemo", DemoStep.DYAD_COMPILE),
        ("CoffeeMugDemo", DemoStep.DYAD_DOC_GEN),
    ]
    assert len(fake.calls) == 12
    assert reporter.statuses == [
        ("CoffeeMugDemo/all", StatusState.PENDING),
        ("CoffeeMugDemo/all", StatusState.SUCCESS),
        ("MakieWebinar/all", StatusState.PENDING),
        ("MakieWebinar/all", StatusState.SUCCESS),
        ("TurkeyDemo/all", StatusState.PENDING),
        ("TurkeyDemo/all", StatusState.SUCCESS),
    ]


def test_instantiate_failure_stops_the_demo(monkeypatch, demo_repo, reporter):
    fake = install(monkeypatch, {("CoffeeMugDemo", DemoStep.INSTANTIATE): 1})
    demos = discover_demos(demo_repo)

    results = DemoRunner(Toolchain(), reporter=reporter).run(demos)

    coffee = results[0]
    assert coffee.state == StatusState.FAILURE
    assert [s.step for s in coffee.steps] == [DemoStep.INSTANTIATE]
    assert ("CoffeeMugDemo", DemoStep.TEST) not in fake.calls
    assert reporter.statuses[:3] == [
        ("CoffeeMugDemo/all", StatusState.PENDING),
        ("CoffeeMugDemo/instantiate", StatusState.FAILURE),
        ("CoffeeMugDemo/all", StatusState.FAILURE),
    ]
    # the other demos still run
    assert results[1].is_success() and results[2].is_success()


def test_test_failure_is_reported_as_error(monkeypatch, demo_repo, reporter):
    install(monkeypatch, {("TurkeyDemo", DemoStep.TEST): 1})
    demos = discover_demos(demo_repo)

    results = DemoRunner(Toolchain(), reporter=reporter).run(demos)

    turkey = results[2]
    assert turkey.state == StatusState.ERROR
    assert turkey.get_step(DemoStep.TEST).state == StatusState.ERROR
    assert turkey.get_step(DemoStep.DYAD_COMPILE) is None
    assert ("TurkeyDemo/test", StatusState.ERROR) in reporter.statuses
    assert reporter.statuses[-1] == ("TurkeyDemo/all", StatusState.ERROR)


def test_test_timeout_is_reported_as_error(monkeypatch, demo_repo, reporter):
    install(monkeypatch, {("MakieWebinar", DemoStep.TEST): TIMEOUT_RETURNCODE})
    demos = discover_demos(demo_repo)

    results = DemoRunner(Toolchain(timeout=1), reporter=reporter).run(demos)

    assert results[1].state == StatusState.ERROR
    assert results[1].get_step(DemoStep.TEST).exec_status.is_timeout


def test_compile_failure(monkeypatch, demo_repo, reporter):
    fake = install(monkeypatch, {("CoffeeMugDemo", DemoStep.DYAD_COMPILE): 2})
    demos = discover_demos(demo_repo)

    results = DemoRunner(Toolchain(), reporter=reporter).run(demos[:1])

    assert results[0].state == StatusState.FAILURE
    assert ("CoffeeMugDemo", DemoStep.DYAD_DOC_GEN) not in fake.calls
    assert reporter.statuses == [
        ("CoffeeMugDemo/all", StatusState.PENDING),
        ("CoffeeMugDemo/dyad-compile", StatusState.FAILURE),
        ("CoffeeMugDemo/all", StatusState.FAILURE),
    ]


def test_doc_gen_failure_does_not_fail_the_demo(monkeypatch, demo_repo, reporter):
    install(monkeypatch, {("CoffeeMugDemo", DemoStep.DYAD_DOC_GEN): 1})
    demos = discover_demos(demo_repo)

    results = DemoRunner(Toolchain(), reporter=reporter).run(demos[:1])

    coffee = results[0]
    assert coffee.is_success()
    assert [s.step for s in coffee.failed_steps()] == [DemoStep.DYAD_DOC_GEN]
    assert reporter.statuses == [
        ("CoffeeMugDemo/all", StatusState.PENDING),
        ("CoffeeMugDemo/dyad-doc-gen", StatusState.FAILURE),
        ("CoffeeMugDemo/all", StatusState.SUCCESS),
    ]


def test_crashing_demo_does_not_stop_the_run(monkeypatch, demo_repo, reporter):
    fake = FakeToolchain()

    def flaky(command, cwd=None, **kwargs):
        if Path(cwd).name == "CoffeeMugDemo":
            raise PermissionError("cannot enter directory")
        return fake(command, cwd=cwd, **kwargs)

    monkeypatch.setattr(runner_module, "invoke_command", flaky)
    demos = discover_demos(demo_repo)

    results = DemoRunner(Toolchain(), reporter=reporter).run(demos)

    assert results[0].state == StatusState.ERROR
    assert ("CoffeeMugDemo/all", StatusState.ERROR) in reporter.statuses
    assert results[1].is_success() and results[2].is_success()


def test_artifacts_are_written(monkeypatch, demo_repo, reporter, tmp_path):
    install(monkeypatch, {("TurkeyDemo", DemoStep.DYAD_COMPILE): 1})
    demos = discover_demos(demo_repo)
    out_dir = tmp_path / "out"

    DemoRunner(Toolchain(), reporter=reporter, out_dir=out_dir).run(demos[2:])

    turkey_out = out_dir / "TurkeyDemo"
    assert (turkey_out / "instantiate.stdout.txt").read_text() == "instantiate output\n"
    assert (turkey_out / "dyad-compile.stderr.txt").read_text() == "dyad-compile broke\n"
    assert not (turkey_out / "instantiate.sh").exists()
    script = (turkey_out / "dyad-compile.sh").read_text()
    assert "compile ." in script
    assert "TurkeyDemo" in script


def test_summary_is_appended(monkeypatch, demo_repo, reporter, tmp_path):
    install(monkeypatch, {("MakieWebinar", DemoStep.TEST): 1})
    demos = discover_demos(demo_repo)
    summary = tmp_path / "summary.md"
    summary.write_text("previous step\n")

    DemoRunner(Toolchain(), reporter=reporter, summary_path=summary).run(demos)

    text = summary.read_text()
    assert text.startswith("previous step\n## Dyad demos")
    assert "| CoffeeMugDemo | ok | ok | ok | ok | ok |" in text
    assert "| MakieWebinar | ok | errored | - | - | errored |" in text


def test_render_summary_without_results():
    text = render_summary([])
    assert "| Demo | instantiate | test | dyad-compile | dyad-doc-gen | Result |" in text


def test_github_status_reporter_keeps_workflow_repository():
    reporter = runner_module.github_status_reporter("JuliaComputing/DyadDemos")

    assert reporter.keywords == {"default_repo": "JuliaComputing/DyadDemos"}
