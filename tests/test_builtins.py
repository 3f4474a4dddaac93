"""Tests for the in-process commands."""

import os
from pathlib import Path

import pytest  # type: ignore

from builtin_commands import Builtin, format_env, run_builtin
from command import Command


def run(executor, line: str) -> int:
    return executor.execute_line(line)


@pytest.mark.parametrize("name", ["cd", "pwd", "echo", "exit", "export", "unset", "env"])
def test_lookup_known(name):
    assert Builtin.lookup(name) is Builtin(name)


@pytest.mark.parametrize("name", ["ls", "", "CD", "true"])
def test_lookup_unknown(name):
    assert Builtin.lookup(name) is None


def test_echo(executor):
    assert run(executor, "echo hello   world") == 0
    assert executor.stdout.getvalue() == "hello world\n"


def test_echo_no_flag_processing(executor):
    run(executor, "echo -n x")
    assert executor.stdout.getvalue() == "-n x\n"


def test_echo_no_args(executor):
    run(executor, "echo")
    assert executor.stdout.getvalue() == "\n"


def test_pwd(executor, tmp_path):
    assert run(executor, "pwd") == 0
    assert Path(executor.stdout.getvalue().strip()).resolve() == tmp_path.resolve()


def test_cd_and_pwd(executor, tmp_path):
    (tmp_path / "sub").mkdir()
    assert run(executor, "cd sub ; pwd") == 0
    assert Path(os.getcwd()).resolve() == (tmp_path / "sub").resolve()
    assert executor.stdout.getvalue().strip().endswith("/sub")
    assert executor.env["PWD"] == os.getcwd()


def test_cd_home(executor, tmp_path):
    (tmp_path / "home").mkdir()
    executor.set_env("HOME", str(tmp_path / "home"))
    assert run(executor, "cd") == 0
    assert Path(os.getcwd()).resolve() == (tmp_path / "home").resolve()


def test_cd_without_home_stays(executor, tmp_path):
    executor.unset_env("HOME")
    assert run(executor, "cd") == 0
    assert Path(os.getcwd()).resolve() == tmp_path.resolve()


def test_cd_missing_directory(executor, tmp_path):
    assert run(executor, "cd nope") == 1
    err = executor.stderr.getvalue()
    assert err.startswith("cd: ")
    assert "nope" in err
    assert Path(os.getcwd()).resolve() == tmp_path.resolve()


def test_cd_failure_short_circuits(executor):
    assert run(executor, "cd nope && echo unreachable") == 1
    assert executor.stdout.getvalue() == ""


def test_export_and_env(executor):
    assert run(executor, "export FOO=bar") == 0
    assert executor.env["FOO"] == "bar"
    run(executor, "env")
    assert "FOO=bar\n" in executor.stdout.getvalue()


def test_export_without_args_lists(executor):
    run(executor, "export")
    lines = executor.stdout.getvalue().splitlines()
    assert "HOME=" + executor.env["HOME"] in lines
    assert len(lines) == len(executor.env)


def test_export_ignores_args_without_equals(executor):
    before = dict(executor.env)
    assert run(executor, "export JUSTNAME =x") == 0
    assert executor.env == before


def test_export_keeps_equals_in_value(executor):
    run(executor, "export OPTS=a=b")
    assert executor.env["OPTS"] == "a=b"


def test_export_empty_value(executor):
    run(executor, "export EMPTY=")
    assert executor.env["EMPTY"] == ""


def test_unset(executor):
    run(executor, "export FOO=bar")
    assert run(executor, "unset FOO NOT_THERE") == 0
    assert "FOO" not in executor.env
    run(executor, "env")
    assert "FOO=bar" not in executor.stdout.getvalue()


def test_exported_value_reaches_children(executor, tmp_path):
    run(executor, "export GREETING=hi")
    assert run(executor, "printenv GREETING") == 0
    assert executor.stdout.getvalue() == "hi\n"


@pytest.mark.parametrize(
    "line,code",
    [("exit", 0), ("exit 3", 3), ("exit abc", 0), ("exit 3.5", 3), ("exit 12abc", 12)],
)
def test_exit(executor, line, code):
    with pytest.raises(SystemExit) as info:
        run(executor, line)
    assert info.value.code == code


def test_exit_stops_background_jobs(executor):
    run(executor, "sleep 30 &")
    (proc,) = executor.background.values()
    with pytest.raises(SystemExit):
        run(executor, "exit")
    assert proc.wait(timeout=5) != 0
    assert executor.background == {}


def test_builtin_output_goes_to_redirect(executor, tmp_path):
    assert run(executor, "echo hi > out.txt") == 0
    assert executor.stdout.getvalue() == ""
    assert (tmp_path / "out.txt").read_text() == "hi\n"
    run(executor, "echo again >> out.txt")
    assert (tmp_path / "out.txt").read_text() == "hi\nagain\n"


def test_builtin_redirect_round_trip(executor, tmp_path):
    run(executor, "echo hi > f.txt")
    assert run(executor, "cat < f.txt") == 0
    assert executor.stdout.getvalue() == "hi\n"


def test_builtin_error_redirect(executor, tmp_path):
    assert run(executor, "cd nope 2> err.txt") == 1
    assert executor.stderr.getvalue() == ""
    assert "nope" in (tmp_path / "err.txt").read_text()


def test_builtin_ignores_input_redirect_and_background(executor):
    assert run(executor, "echo hi < missing.txt &") == 0
    assert executor.stdout.getvalue() == "hi\n"
    assert executor.background_pids == set()


def test_builtin_exception_becomes_result(executor, monkeypatch):
    def boom():
        raise RuntimeError("no cwd")
    monkeypatch.setattr(os, "getcwd", boom)
    assert run(executor, "pwd ; echo after") == 0
    assert executor.stderr.getvalue() == "pwd: no cwd\n"
    assert executor.stdout.getvalue() == "after\n"


def test_run_builtin_directly(executor):
    result = run_builtin(Builtin.ECHO, Command("echo", ["a", "b"]), executor)
    assert result.exit_code == 0
    assert result.stdout == "a b\n"
    assert result.stderr == ""


def test_format_env():
    assert format_env({}) == ""
    assert format_env({"A": "1", "B": "2"}) == "A=1\nB=2\n"
