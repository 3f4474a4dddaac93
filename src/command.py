"""Command descriptors and the chain that holds them.

A chain is built once per input line by the parser in ``groups`` and then
handed to the executor in ``ops``. Each descriptor remembers the control
operator that links it to the descriptor before it.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional


class ControlOp(Enum):
    """Relationship of a command to the previous one in its chain."""
    NONE = ""
    SEQUENCE = ";"
    AND_THEN = "&&"
    OR_ELSE = "||"


@dataclass
class Command:
    """A single parsed invocation (program is argv[0], args the rest)."""
    program: str
    args: list[str] = field(default_factory=list)
    operator: ControlOp = ControlOp.NONE
    input_redirect: Optional[str] = None
    output_redirect: Optional[str] = None
    append_redirect: Optional[str] = None
    error_redirect: Optional[str] = None
    background: bool = False
    pipe: Optional[Command] = None

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def set_pipe(self, right: Command) -> Command:
        # only one pipe stage; the right side never pipes further
        right.pipe = None
        self.pipe = right
        return right

    def __str__(self) -> str:
        text = ' '.join(self.argv)
        if self.input_redirect:
            text += f" < {self.input_redirect}"
        if self.output_redirect:
            text += f" > {self.output_redirect}"
        if self.append_redirect:
            text += f" >> {self.append_redirect}"
        if self.error_redirect:
            text += f" 2> {self.error_redirect}"
        if self.pipe is not None:
            text += f" | {self.pipe}"
        if self.background:
            text += " &"
        return text


@dataclass
class CommandResult:
    """Outcome of running one command: exit code plus captured text."""
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandChain:
    """Append-only, single-use ordered list of commands."""

    def __init__(self) -> None:
        self._commands: list[Command] = []

    def add(self, cmd: Command, operator: ControlOp = ControlOp.NONE) -> Command:
        """Append ``cmd`` linked by ``operator`` and return it for further setup."""
        if not cmd.program:
            raise ValueError("cannot add a command without a program")
        # nothing precedes the head of a chain
        cmd.operator = operator if self._commands else ControlOp.NONE
        self._commands.append(cmd)
        return cmd

    def first(self) -> Optional[Command]:
        return self._commands[0] if self._commands else None

    def commands(self) -> list[Command]:
        return list(self._commands)

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __bool__(self) -> bool:
        return bool(self._commands)


# --- Formatting (debug / test aid) ---

def format_chain(chain: CommandChain) -> str:
    lines: list[str] = []
    for cmd in chain:
        op = cmd.operator.value or "-"
        lines.append(f"{op:<3}{cmd}")
    return "\n".join(lines) if lines else "<empty>"
