#!/usr/bin/env python3
"""REPL Sessions - live Scheme sessions with a debug panel.

Entry point for the CLI application.
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from .config import load_config
from .exceptions import ReplSessionsError

console = Console()
err_console = Console(stderr=True)


def configure_logging(verbosity: int):
    """Send repl_sessions logs to stderr through rich."""
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logger = logging.getLogger("repl_sessions")
    logger.setLevel(level)
    logger.addHandler(RichHandler(console=err_console, show_path=False))


def cmd_repl(args, config):
    """Launch the TUI."""
    from .app import ReplSessionsApp

    app = ReplSessionsApp(config=config, identity=args.implementation)
    app.run()


def cmd_implementations(args, config):
    """List known implementations."""
    from .implementations import get_all_implementations

    implementations = get_all_implementations(config)

    if args.status:
        print("Implementation Status:")
        print("-" * 60)
        for impl in implementations:
            command = impl.command()
            available = "✓" if impl.is_available() else "✗"
            status = "available" if impl.is_available() else "not found"
            print(f"{available} {impl.display_name:<15} ({impl.name})")
            print(f"    Command: {' '.join(command)}")
            print(f"    Status: {status}")
            print(f"    History: {config.history_path_for(impl.name)}")
            print()
    else:
        print("Known implementations:")
        for impl in implementations:
            status = "✓" if impl.is_available() else "✗"
            print(f"  {status} {impl.display_name} ({impl.name})")


def positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def cmd_history(args, config):
    """Print saved input history."""
    from .history import HistoryStore

    store = HistoryStore(config.history_path_for(args.implementation), config.history_max_size)
    entries = store.load()
    if not entries:
        print(f"No history for {args.implementation}.")
        return
    # entries[-0:] would be everything
    if args.limit <= 0:
        return
    for entry in entries[-args.limit:]:
        print(entry)


def run_once(args, config) -> int:
    """Start a session, send one request, print the retort, quit."""
    from .dispatcher import RetortDispatcher
    from .evaluator import ReplEvaluator
    from .orchestrator import Orchestrator
    from .panel import DebugPanel
    from .registry import Context, SessionRegistry
    from .ui import build_retort_text

    registry = SessionRegistry(config)
    panel = DebugPanel()

    def enter_debugger(session, err, hint):
        err_console.print(Text(f"Debugger: {err.message or err.kind}", style="bold yellow"))
        if hint:
            err_console.print(Text(hint, style="dim"))

    dispatcher = RetortDispatcher(
        config,
        registry,
        panel,
        enter_debugger=enter_debugger,
        show_status=lambda message: err_console.print(Text(message, style="dim")),
    )
    orchestrator = Orchestrator(
        registry,
        ReplEvaluator(registry),
        dispatcher,
        context=Context("cli", identity=args.implementation),
    )

    registry.start(args.implementation)
    try:
        if args.command == "eval":
            retort = orchestrator.evaluate(args.code)
        elif args.command == "expand":
            retort = orchestrator.macro_expand(args.code, expand_all=args.all)
        else:
            retort = orchestrator.compile_or_load(args.file, compile=args.command == "compile")
    finally:
        registry.shutdown()

    if panel.visible:
        err_console.rule("Debug")
        err_console.print(panel.render())
    else:
        console.print(build_retort_text(retort))
    return 1 if retort.error is not None else 0


def main():
    """Main entry point for repl-sessions CLI."""
    parser = argparse.ArgumentParser(
        description="Run Scheme REPL sessions and inspect their results",
        prog="repl-sessions",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="More logging (-vv for debug)"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        help="Config file (default ~/.config/repl-sessions/config.toml)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    repl_parser = subparsers.add_parser("repl", help="Launch TUI (default)")
    repl_parser.add_argument("implementation", nargs="?", help="Implementation to start")

    impl_parser = subparsers.add_parser("implementations", help="List known implementations")
    impl_parser.add_argument("--status", "-s", action="store_true", help="Show detailed status")

    eval_parser = subparsers.add_parser("eval", help="Evaluate code once")
    eval_parser.add_argument("implementation")
    eval_parser.add_argument("code")

    expand_parser = subparsers.add_parser("expand", help="Macro-expand code once")
    expand_parser.add_argument("implementation")
    expand_parser.add_argument("code")
    expand_parser.add_argument("--all", "-a", action="store_true", help="Expand fully")

    load_parser = subparsers.add_parser("load", help="Load a file")
    load_parser.add_argument("implementation")
    load_parser.add_argument("file", type=Path)

    compile_parser = subparsers.add_parser("compile", help="Compile a file")
    compile_parser.add_argument("implementation")
    compile_parser.add_argument("file", type=Path)

    history_parser = subparsers.add_parser("history", help="Show saved input history")
    history_parser.add_argument("implementation")
    history_parser.add_argument("--limit", "-l", type=positive_int, default=50, help="Max entries to show")

    args = parser.parse_args()

    if args.version:
        from . import __version__
        print(f"repl-sessions {__version__}")
        return

    configure_logging(args.verbose)

    try:
        config = load_config(args.config)
        if args.command == "implementations":
            cmd_implementations(args, config)
        elif args.command == "history":
            cmd_history(args, config)
        elif args.command in ("eval", "expand", "load", "compile"):
            sys.exit(run_once(args, config))
        elif args.command == "repl":
            cmd_repl(args, config)
        else:
            repl_args = argparse.Namespace(implementation=None)
            cmd_repl(repl_args, config)
    except ReplSessionsError as e:
        err_console.print(Text(str(e), style="bold red"))
        sys.exit(2)


if __name__ == "__main__":
    main()
