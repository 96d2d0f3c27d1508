from pathlib import Path

from dyad_ci_utils.cmd import (
    NOT_FOUND_RETURNCODE,
    TIMEOUT_RETURNCODE,
    ExecStatus,
    invoke_command,
    make_printable,
)


def test_invoke_command_captures_output():
    status = invoke_command(["echo", "hello"])

    assert not status.is_failure()
    assert status.stdout == "hello\n"
    assert status.stderr == ""
    assert status.command == "echo hello"
    assert status.stdout_raw == b"hello\n"


def test_invoke_command_merges_environment(tmp_path):
    status = invoke_command(["sh", "-c", "echo $DYAD_TEST_VALUE; pwd"], cwd=tmp_path, env={"DYAD_TEST_VALUE": "42"})

    lines = status.stdout.splitlines()
    assert lines[0] == "42"
    assert Path(lines[1]).resolve() == tmp_path.resolve()


def test_invoke_command_failure_and_strict_failure():
    status = invoke_command(["sh", "-c", "echo oops >&2; exit 3"])

    assert status.returncode == 3
    assert status.is_failure()
    assert status.stderr == "oops\n"

    warn_only = invoke_command(["sh", "-c", "echo warn >&2"])
    assert not warn_only.is_failure()
    assert warn_only.is_failure_strict()


def test_invoke_command_timeout():
    status = invoke_command(["sleep", "5"], timeout=0.2)

    assert status.is_timeout
    assert status.returncode == TIMEOUT_RETURNCODE
    assert status.is_failure()


def test_invoke_command_missing_binary():
    status = invoke_command(["definitely-not-a-dyad-binary"])

    assert status.returncode == NOT_FOUND_RETURNCODE
    assert status.is_failure()
    assert "definitely-not-a-dyad-binary" in status.stderr


def test_invoke_command_redacts_secrets():
    status = invoke_command(["echo", "token s3cr3t"], secrets=["s3cr3t"])

    assert status.command == "echo 'token ***'"
    assert status.stdout == "token ***\n"


def test_command_string_is_shell_quoted():
    status = invoke_command(["sh", "-c", "echo one; echo two"])

    assert status.command == "sh -c 'echo one; echo two'"


def test_exec_status_to_script_reproduces_the_run(tmp_path):
    work_dir = tmp_path / "Coffee Mug Demo"
    work_dir.mkdir()
    (work_dir / "marker.txt").write_text("")
    status = invoke_command(
        ["sh", "-c", 'echo one; echo "$DYAD_TEST_VALUE"; ls; exit 3'],
        cwd=work_dir,
        env={"DYAD_TEST_VALUE": "two words; $HOME"},
    )
    assert status.returncode == 3

    script = status.to_script()
    assert script.startswith("#!/usr/bin/env bash\n")
    reproducer = tmp_path / "reproduce.sh"
    reproducer.write_text(script)

    rerun = invoke_command(["bash", str(reproducer)])
    assert rerun.returncode == status.returncode
    assert rerun.stdout == status.stdout
    assert rerun.stdout.splitlines() == ["one", "two words; $HOME", "marker.txt"]


def test_exec_status_to_script_without_cwd():
    status = ExecStatus("echo hi", "", "", None, None, 1, 0.5, cwd=Path("/tmp/CoffeeMugDemo"))

    assert "cd " in status.to_script()
    assert "cd " not in status.to_script(ignore_cwd=True)


def test_make_printable_keeps_line_breaks():
    assert make_printable("a\x1b[0mb\x00c\nd\r\te") == "a[0mbc\nd\r\te"
