#!/usr/bin/env python3

# Entry of minish

from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from typing import Optional

try:
    import readline  # type: ignore
except Exception:  # pragma: no cover - fallback when readline unavailable
    readline = None

READLINE_ACTIVE = bool(readline)

PROMPT = "$ "
BANNER = "Mini Shell v1.0 - POSIX Compatible\nType 'exit' to quit\n"

from ops import Executor  # local module in the same folder

logger = logging.getLogger(__name__)


def get_prompt() -> str:
    return os.environ.get("MINISH_PROMPT", PROMPT)


def setup_logging(debug: bool = False) -> None:
    if os.environ.get("MINISH_DEBUG"):
        debug = True
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def setup_readline() -> None:
    if not READLINE_ACTIVE:
        return
    try:
        readline.parse_and_bind("set editing-mode emacs")
        readline.parse_and_bind("Control-l: clear-screen")
    except Exception:
        pass


def install_signal_handlers(executor: Executor) -> None:
    def on_term(signum, frame) -> None:
        executor.cleanup()
        sys.exit(0)

    signal.signal(signal.SIGTERM, on_term)
    signal.signal(signal.SIGQUIT, signal.SIG_IGN)


def run_line(line: str, executor: Executor) -> int:
    """Execute one line, reporting unexpected failures instead of raising."""
    if not line.strip():
        return executor.last_exit_status
    try:
        return executor.execute_line(line)
    except KeyboardInterrupt:
        # Ctrl-C between commands abandons the rest of the line
        print()
        executor.last_exit_status = 130
        return 130
    except Exception as e:
        logger.debug("line failed", exc_info=True)
        print(f"minish: error: {e}", file=sys.stderr)
        executor.last_exit_status = 1
        return 1


def repl(executor: Executor, quiet: bool = False) -> int:
    setup_readline()
    if not quiet and sys.stdin.isatty():
        print(BANNER)

    prompt = get_prompt()
    while True:
        try:
            line = input(prompt)
        except EOFError:
            # Ctrl-D on empty line -> exit
            print()
            break
        except KeyboardInterrupt:
            # Ctrl-C at prompt -> new line and continue
            print()
            continue
        run_line(line, executor)

    return executor.last_exit_status


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="minish - a small interactive command interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  minish                       # Interactive prompt
  minish -c 'ls | wc -l'       # Run one line and exit with its status
  MINISH_PROMPT='> ' minish    # Custom prompt

Supported syntax: ;  &&  ||  |  &  <  >  >>  2>
"""
    )

    parser.add_argument(
        "--command", "-c",
        metavar="LINE",
        help="Run LINE and exit with its exit status"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Do not print the startup banner"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Log parsing and process activity to stderr"
    )

    return parser.parse_args(args)


def main(argv=None) -> None:
    args = parse_args(argv)
    setup_logging(args.debug)
    executor = Executor()
    install_signal_handlers(executor)
    try:
        if args.command is not None:
            status = run_line(args.command, executor)
        else:
            status = repl(executor, quiet=args.quiet)
    finally:
        executor.cleanup()
    sys.exit(status)


if __name__ == "__main__":
    main()
