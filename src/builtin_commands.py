"""Commands that run inside the interpreter instead of a child process.

Built-ins never spawn anything and ignore redirections, pipes and the
background flag. Changes to the environment go through the executor's
``set_env``/``unset_env`` so every later child sees them.
"""
from __future__ import annotations

import os
import re
import sys
from enum import Enum
from typing import TYPE_CHECKING, Optional

from command import Command, CommandResult

if TYPE_CHECKING:
    from ops import Executor


class Builtin(Enum):
    CD = "cd"
    PWD = "pwd"
    ECHO = "echo"
    EXIT = "exit"
    EXPORT = "export"
    UNSET = "unset"
    ENV = "env"

    @classmethod
    def lookup(cls, name: str) -> Optional[Builtin]:
        try:
            return cls(name)
        except ValueError:
            return None


def format_env(env: dict[str, str]) -> str:
    if not env:
        return ""
    return "\n".join(f"{k}={v}" for k, v in env.items()) + "\n"


def _cd(args: list[str], executor: Executor) -> CommandResult:
    target = args[0] if args else (executor.env.get("HOME") or os.getcwd())
    try:
        os.chdir(target)
    except OSError as e:
        return CommandResult(1, "", f"cd: {e.strerror or e}: {target}\n")
    executor.set_env("PWD", os.getcwd())
    return CommandResult(0)


# leading integer, as in "3.5" or "12abc"
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _exit(args: list[str], executor: Executor) -> CommandResult:
    code = 0
    if args:
        m = _LEADING_INT.match(args[0])
        if m:
            code = int(m.group(1))
    executor.cleanup()
    sys.exit(code)


def _export(args: list[str], executor: Executor) -> CommandResult:
    if not args:
        return CommandResult(0, format_env(executor.env))
    for arg in args:
        name, sep, value = arg.partition("=")
        if sep and name:
            executor.set_env(name, value)
    return CommandResult(0)


def _unset(args: list[str], executor: Executor) -> CommandResult:
    for name in args:
        executor.unset_env(name)
    return CommandResult(0)


def run_builtin(kind: Builtin, cmd: Command, executor: Executor) -> CommandResult:
    """Run built-in ``kind`` with the arguments of ``cmd``.

    Exceptions are left to the caller, which turns them into results.
    ``exit`` does not return.
    """
    args = cmd.args
    match kind:
        case Builtin.CD:
            return _cd(args, executor)
        case Builtin.PWD:
            return CommandResult(0, os.getcwd() + "\n")
        case Builtin.ECHO:
            return CommandResult(0, " ".join(args) + "\n")
        case Builtin.EXIT:
            return _exit(args, executor)
        case Builtin.EXPORT:
            return _export(args, executor)
        case Builtin.UNSET:
            return _unset(args, executor)
        case Builtin.ENV:
            return CommandResult(0, format_env(executor.env))
    raise ValueError(f"unhandled built-in: {kind}")
