from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
from contextlib import ExitStack
from typing import IO, Any, Dict, Optional, Tuple

from builtin_commands import Builtin, run_builtin
from command import Command, CommandChain, CommandResult, ControlOp, format_chain
from groups import parse_line

logger = logging.getLogger(__name__)

# exit code for a program that could not be found or started
NOT_FOUND = 127
# exit code when the user interrupts a foreground wait
INTERRUPTED = 130


class Executor:
    """Runs command chains against the operating system.

    Owns the environment handed to every child process and the set of
    background processes that were launched and never waited on.

    Output captured from foreground commands is written to ``stdout`` /
    ``stderr`` (the interpreter's own streams unless given) as soon as each
    command finishes.
    """

    def __init__(self, env: Optional[Dict[str, str]] = None,
                 stdout: Optional[IO[str]] = None,
                 stderr: Optional[IO[str]] = None) -> None:
        self.env: Dict[str, str] = dict(os.environ) if env is None else dict(env)
        self.background: Dict[int, subprocess.Popen] = {}
        self.last_exit_status: int = 0
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> IO[str]:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def stderr(self) -> IO[str]:
        return self._stderr if self._stderr is not None else sys.stderr

    @property
    def background_pids(self) -> set[int]:
        return set(self.background)

    # --- Environment ---
    def set_env(self, name: str, value: str) -> None:
        self.env[name] = value

    def unset_env(self, name: str) -> None:
        self.env.pop(name, None)

    # --- Chains ---
    def execute_line(self, line: str) -> int:
        chain = parse_line(line)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("parsed chain:\n" + format_chain(chain))
        return self.execute_chain(chain)

    def execute_chain(self, chain: CommandChain) -> int:
        """Run ``chain`` in order and return the last executed exit code."""
        last = 0
        for idx, cmd in enumerate(chain):
            if idx > 0:
                if cmd.operator is ControlOp.AND_THEN and last != 0:
                    logger.debug(f"stopping before '{cmd}': previous command failed")
                    break
                if cmd.operator is ControlOp.OR_ELSE and last == 0:
                    logger.debug(f"stopping before '{cmd}': previous command succeeded")
                    break
            result = self.execute_command(cmd)
            self._emit(result)
            last = result.exit_code
        self.last_exit_status = last
        return last

    def execute_command(self, cmd: Command) -> CommandResult:
        kind = Builtin.lookup(cmd.program)
        if kind is not None:
            return self.run_builtin(kind, cmd)
        if cmd.pipe is not None:
            return self.run_pipe(cmd, cmd.pipe)
        return self.run_external(cmd)

    def _emit(self, result: CommandResult) -> None:
        if result.stdout:
            self.stdout.write(result.stdout)
            self.stdout.flush()
        if result.stderr:
            self.stderr.write(result.stderr)
            self.stderr.flush()

    # --- Built-ins ---
    def run_builtin(self, kind: Builtin, cmd: Command) -> CommandResult:
        logger.debug(f"built-in {kind.value} {cmd.args}")
        try:
            result = run_builtin(kind, cmd, self)
        except Exception as e:
            result = CommandResult(1, "", f"{kind.value}: {e}\n")
        return _route_to_files(cmd, result)

    # --- External processes ---
    def run_external(self, cmd: Command) -> CommandResult:
        with ExitStack() as stack:
            try:
                stdin, stdout, stderr = _open_redirects(cmd, stack)
            except OSError as e:
                return _redirect_failure(e)
            capture = None if cmd.background else subprocess.PIPE
            try:
                proc = subprocess.Popen(
                    cmd.argv,
                    stdin=stdin,
                    stdout=stdout if stdout is not None else capture,
                    stderr=stderr if stderr is not None else capture,
                    env=self.env,
                )
            except OSError as e:
                return _spawn_failure(cmd.program, e)
            logger.debug(f"spawned pid {proc.pid}: {cmd}")
            if cmd.background:
                self._track(proc, cmd)
                return CommandResult(0)
            return _wait(proc)

    def run_pipe(self, left: Command, right: Command) -> CommandResult:
        """Run ``left | right`` and return the right-hand result.

        Both sides run at the same time; only the right side is waited on.
        """
        background = left.background or right.background
        capture = None if background else subprocess.PIPE
        with ExitStack() as stack:
            try:
                stdin, _, left_err = _open_redirects(left, stack, stdout=False)
                _, right_out, right_err = _open_redirects(right, stack, stdin=False)
            except OSError as e:
                return _redirect_failure(e)
            try:
                lproc = subprocess.Popen(
                    left.argv,
                    stdin=stdin,
                    stdout=subprocess.PIPE,
                    stderr=left_err,
                    env=self.env,
                )
            except OSError as e:
                return _spawn_failure(left.program, e)
            assert lproc.stdout is not None
            try:
                rproc = subprocess.Popen(
                    right.argv,
                    stdin=lproc.stdout,
                    stdout=right_out if right_out is not None else capture,
                    stderr=right_err if right_err is not None else capture,
                    env=self.env,
                )
            except OSError as e:
                self._reap_or_track(lproc, left)
                return _spawn_failure(right.program, e)
            finally:
                # the right side holds its own copy; dropping ours lets the
                # left side see a broken pipe once the right side exits
                lproc.stdout.close()
            logger.debug(f"spawned pipe pids {lproc.pid} | {rproc.pid}")
            if background:
                self._track(lproc, left)
                self._track(rproc, right)
                return CommandResult(0)
            result = _wait(rproc)
            self._reap_or_track(lproc, left)
            return result

    # --- Background processes ---
    def _track(self, proc: subprocess.Popen, cmd: Command) -> None:
        self.background[proc.pid] = proc
        self.stderr.write(f"[{proc.pid}] {' '.join(cmd.argv)}\n")
        self.stderr.flush()

    def _reap_or_track(self, proc: subprocess.Popen, cmd: Command) -> None:
        if proc.poll() is None:
            # still running; make sure shutdown signals it
            logger.debug(f"pipe stage {proc.pid} ({cmd.program}) still running")
            self.background[proc.pid] = proc

    def cleanup(self) -> None:
        """Signal every recorded background process, ignoring failures."""
        for pid, proc in list(self.background.items()):
            try:
                proc.send_signal(signal.SIGTERM)
            except OSError as e:
                logger.debug(f"could not signal {pid}: {e}")
        self.background.clear()

    def __enter__(self) -> Executor:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.cleanup()


def _open_redirects(cmd: Command, stack: ExitStack, *, stdin: bool = True,
                    stdout: bool = True) -> Tuple[Optional[IO[bytes]], Optional[IO[bytes]], Optional[IO[bytes]]]:
    # Returns (stdin, stdout, stderr) file objects, None where not redirected.
    # Files are closed by ``stack`` once the child has been started.
    in_f = out_f = err_f = None
    if stdin and cmd.input_redirect:
        in_f = stack.enter_context(open(cmd.input_redirect, 'rb'))
    if stdout and cmd.output_redirect:
        out_f = stack.enter_context(open(cmd.output_redirect, 'wb'))
    elif stdout and cmd.append_redirect:
        out_f = stack.enter_context(open(cmd.append_redirect, 'ab'))
    if cmd.error_redirect:
        err_f = stack.enter_context(open(cmd.error_redirect, 'wb'))
    return in_f, out_f, err_f


def _route_to_files(cmd: Command, result: CommandResult) -> CommandResult:
    """Write a built-in's text to the command's ``>``/``>>``/``2>`` targets.

    The built-in itself never sees the redirects; whatever lands in a file
    is removed from the result so it is not echoed as well.
    """
    out_path = cmd.output_redirect or cmd.append_redirect
    mode = 'w' if cmd.output_redirect else 'a'
    try:
        if out_path:
            with open(out_path, mode) as f:
                f.write(result.stdout)
            result.stdout = ""
        if cmd.error_redirect:
            with open(cmd.error_redirect, 'w') as f:
                f.write(result.stderr)
            result.stderr = ""
    except OSError as e:
        return _redirect_failure(e)
    return result


def _wait(proc: subprocess.Popen) -> CommandResult:
    try:
        out, err = proc.communicate()
    except KeyboardInterrupt:
        proc.kill()
        proc.wait()
        return CommandResult(INTERRUPTED)
    code = proc.returncode
    if code is None or code < 0:
        # no exit status (killed by a signal) counts as success
        code = 0
    return CommandResult(code, _decode(out), _decode(err))


def _decode(data: Optional[bytes]) -> str:
    # bytes in, so '\r' and '\r\n' reach the caller untouched
    return data.decode(errors="replace") if data else ""


def _spawn_failure(program: str, e: OSError) -> CommandResult:
    logger.debug(f"failed to start {program}: {e}")
    if isinstance(e, FileNotFoundError):
        return CommandResult(NOT_FOUND, "", f"{program}: command not found\n")
    return CommandResult(NOT_FOUND, "", f"{program}: {e.strerror or e}\n")


def _redirect_failure(e: OSError) -> CommandResult:
    return CommandResult(1, "", f"{e.filename}: {e.strerror or e}\n")
