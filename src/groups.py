"""Line splitting and command parsing for minish.

A raw input line is first cut into ``(operator, text)`` groups on ``;``,
``&&`` and ``||``. Each group is then parsed into a ``Command``: a trailing
``&`` marks it as background, a single ``|`` splits off the right-hand side
of a pipe, and the rest is split on whitespace with ``<``, ``>``, ``>>`` and
``2>`` taking the following word as their target.

There is no quoting, escaping or expansion of any kind.
"""
from __future__ import annotations

import logging
from typing import Optional

from command import Command, CommandChain, ControlOp

logger = logging.getLogger(__name__)

# redirect operator -> Command attribute
REDIRECTS = {
    "<": "input_redirect",
    ">": "output_redirect",
    ">>": "append_redirect",
    "2>": "error_redirect",
}

# --- Line splitting ---

def split_line(line: str) -> list[tuple[ControlOp, str]]:
    """Split ``line`` on control operators.

    Each returned operator describes how its text relates to the group
    before it. Blank groups are dropped without touching the pending
    operator, so ``; echo a`` yields a single ``(SEQUENCE, 'echo a')``.
    Single ``&`` and ``|`` characters are left in the text.
    """
    groups: list[tuple[ControlOp, str]] = []
    buf: list[str] = []
    pending = ControlOp.NONE

    def flush(next_op: ControlOp) -> None:
        nonlocal pending
        text = ''.join(buf).strip()
        buf.clear()
        if text:
            groups.append((pending, text))
        pending = next_op

    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        nxt = line[i + 1] if i + 1 < n else ''
        if ch == ';':
            flush(ControlOp.SEQUENCE)
            i += 1
            continue
        if ch == '&' and nxt == '&':
            flush(ControlOp.AND_THEN)
            i += 2
            continue
        if ch == '|' and nxt == '|':
            flush(ControlOp.OR_ELSE)
            i += 2
            continue
        buf.append(ch)
        i += 1
    text = ''.join(buf).strip()
    if text:
        groups.append((pending, text))
    return groups

# --- Command parsing ---

def _strip_background(text: str) -> tuple[str, bool]:
    text = text.strip()
    if text.endswith('&'):
        return text[:-1].strip(), True
    return text, False


def _split_pipe(text: str) -> tuple[str, Optional[str]]:
    """Cut ``text`` at the first ``|`` that is not part of ``||``."""
    i = 0
    n = len(text)
    while i < n:
        if text[i] == '|':
            if i + 1 < n and text[i + 1] == '|':
                i += 2
                continue
            return text[:i].strip(), text[i + 1:].strip()
        i += 1
    return text, None


def _parse_words(text: str) -> Optional[Command]:
    words = text.split()
    if not words:
        return None
    cmd = Command(program=words[0])
    i = 1
    while i < len(words):
        word = words[i]
        attr = REDIRECTS.get(word)
        if attr is not None and i + 1 < len(words):
            target = words[i + 1]
            # '>' and '>>' share stdout; whichever comes last wins
            if attr == "output_redirect":
                cmd.append_redirect = None
            elif attr == "append_redirect":
                cmd.output_redirect = None
            setattr(cmd, attr, target)
            i += 2
            continue
        # includes a redirect operator with nothing after it
        cmd.args.append(word)
        i += 1
    return cmd


def _parse_pipe_stage(text: str) -> Optional[Command]:
    text, background = _strip_background(text)
    text, extra = _split_pipe(text)
    if extra is not None:
        logger.warning(f"only one pipe stage is supported; ignoring '| {extra}'")
    cmd = _parse_words(text)
    if cmd is not None:
        cmd.background = background
    return cmd


def parse_command(text: str) -> Optional[Command]:
    """Parse one group of text into a ``Command``.

    Returns None when there is no program name to run.
    """
    text, background = _strip_background(text)
    text, pipe_text = _split_pipe(text)
    cmd = _parse_words(text)
    if cmd is None:
        return None
    cmd.background = background
    if pipe_text:
        right = _parse_pipe_stage(pipe_text)
        if right is not None:
            cmd.set_pipe(right)
    return cmd

# --- Public helpers ---

def parse_line(line: str) -> CommandChain:
    chain = CommandChain()
    for op, text in split_line(line):
        cmd = parse_command(text)
        if cmd is None:
            logger.debug(f"dropping empty command group: {text!r}")
            continue
        chain.add(cmd, op)
    return chain
