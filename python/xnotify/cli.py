"""
Command line entry point.

Usage:
    xnotify [options] [-- <command> [args...]]...

Examples:
    # Print changes under src/
    xnotify -i src

    # Re-run the tests 200ms after the last change, killing a stale run
    xnotify -i . -e '\\.git' --batch 200 -- pytest -x

    # Build then run, forwarding every change to another machine
    xnotify --client build-host:8090 --batch 100 -- make -- ./app

    # Receive changes from other machines
    xnotify --listen :8090 --base /srv/project -- make
"""

import argparse
import codecs
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence, TextIO

from xnotify import __version__
from xnotify.config import DirectoryEventPolicy, EngineConfig, TaskSpec
from xnotify.errors import ConfigurationError, InvalidEventError
from xnotify.logging_config import get_logger, setup_logging
from xnotify.paths import paths_from_stdin
from xnotify.watcher.types import Operation

logger = get_logger("xnotify.cli")

TASK_SEPARATOR = "--"


def split_tasks(argv: Sequence[str]) -> tuple[list[str], list[TaskSpec]]:
    """
    Split argv into options and tasks.

    Everything after each '--' up to the next '--' is one task; empty
    segments are ignored.
    """
    argv = list(argv)
    if TASK_SEPARATOR not in argv:
        return argv, []

    first = argv.index(TASK_SEPARATOR)
    options = argv[:first]
    tasks: list[TaskSpec] = []
    current: list[str] = []
    for arg in argv[first + 1:]:
        if arg == TASK_SEPARATOR:
            if current:
                tasks.append(TaskSpec(tuple(current)))
            current = []
        else:
            current.append(arg)
    if current:
        tasks.append(TaskSpec(tuple(current)))
    return options, tasks


def parse_operations(value: str) -> frozenset[Operation]:
    """Parse a comma separated operation list, e.g. 'create,write'."""
    try:
        return frozenset(Operation.parse(op) for op in value.split(",") if op.strip())
    except InvalidEventError as e:
        raise ConfigurationError(str(e)) from e


def decode_escapes(value: str) -> str:
    """Expand backslash escapes ('\\0', '\\n', '\\u2192') and keep other characters as typed."""
    return codecs.decode(value.encode("latin-1", "backslashreplace"), "unicode_escape")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xnotify",
        usage="xnotify [options] [-- <command> [args...]...]",
        description=(
            "Watch files for changes. File changes are printed to stdout in the format "
            "<operation> <path>. stdin accepts a list of files to watch. Use -- to execute "
            "1 or more commands in sequence, stopping if any command exits unsuccessfully."
        ),
    )
    parser.add_argument(
        "-i", "--include", action="append", default=[],
        help="Include path to watch recursively (glob, relative to --base). Defaults to the base folder.",
    )
    parser.add_argument(
        "-e", "--exclude", action="append", default=[],
        help="Exclude paths matching this regular expression (searched in the relative path).",
    )
    parser.add_argument(
        "--shallow", action="store_true",
        help="Disable recursive file globbing.",
    )
    parser.add_argument(
        "--listen", default=None,
        help="Listen on address for file changes e.g. localhost:8080 or just :8080.",
    )
    parser.add_argument(
        "--base", default=".",
        help="Base path for --include, task working directory and event paths.",
    )
    parser.add_argument(
        "--client", default=None,
        help="Send file changes to the address e.g. localhost:8080 or just :8080.",
    )
    parser.add_argument(
        "--batch", type=int, default=0, metavar="MS",
        help="Collect events until MS milliseconds pass without a new one, then act on them together.",
    )
    parser.add_argument(
        "--trigger", action="store_true",
        help="Run the tasks once on startup.",
    )
    parser.add_argument(
        "--terminator", default="",
        help="Print this after each batch of events (backslash escapes allowed, e.g. '\\0'). Needs --batch.",
    )
    parser.add_argument(
        "--silent", action="store_true",
        help="Don't print task output.",
    )
    parser.add_argument(
        "--queue", action="store_true",
        help="Let a running task finish instead of killing it when new events arrive.",
    )
    parser.add_argument(
        "--dedupe", action="store_true",
        help="Keep only the latest event per path in a batch.",
    )
    parser.add_argument(
        "--keep-dir-events", action="store_true",
        help="Also act on change events reported for directories.",
    )
    parser.add_argument(
        "--on", default=Operation.WRITE.value, metavar="OPS",
        help=(
            "Comma separated operations that trigger actions (create,write,remove,rename,chmod). "
            "Local attribute changes are reported as write; chmod only arrives through --listen."
        ),
    )
    parser.add_argument(
        "--log-dir", default=None,
        help="Also write logs to a daily file in this directory.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Print verbose logs.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace, tasks: list[TaskSpec]) -> EngineConfig:
    """
    EngineConfig from parsed arguments (not resolved yet).

    Raises:
        ConfigurationError: If an option value is invalid
    """
    kwargs = dict(
        base_path=args.base,
        batch_ms=args.batch,
        tasks=tasks,
        trigger_immediately=args.trigger,
        exclude_patterns=list(args.exclude),
        suppress_output=args.silent,
        terminator=decode_escapes(args.terminator),
        trigger_operations=parse_operations(args.on),
        dedupe_paths=args.dedupe,
        directory_events=(
            DirectoryEventPolicy.KEEP if args.keep_dir_events else DirectoryEventPolicy.DROP
        ),
        preempt=not args.queue,
        includes=list(args.include),
        recursive=not args.shallow,
        verbose=args.verbose,
        log_dir=args.log_dir,
    )
    if args.listen is not None:
        kwargs["listen_address"] = args.listen
    if args.client is not None:
        kwargs["forward_address"] = args.client
    return EngineConfig.from_env(**kwargs)


def main(argv: Optional[Sequence[str]] = None, stdin: Optional[TextIO] = None) -> int:
    """
    Run xnotify.

    Returns:
        Exit code: 1 when there is nothing to watch, 2 on configuration
        errors; otherwise xnotify runs until killed
    """
    from xnotify.engine import collect_watch_paths, run_engine

    options, tasks = split_tasks(sys.argv[1:] if argv is None else argv)
    args = build_parser().parse_args(options)

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_dir=Path(args.log_dir) if args.log_dir else None,
    )

    try:
        config = build_config(args, tasks).resolve()
    except (ConfigurationError, UnicodeError) as e:
        logger.error(str(e))
        return 2

    for name in config.unused_options():
        logger.warning(f"--{name} has no effect. See --help for more info.")

    stdin_paths = [p if p.is_absolute() else Path.cwd() / p for p in paths_from_stdin(stdin)]
    if not config.includes and not stdin_paths and not config.listen_address:
        config = replace(config, includes=["."])

    watch_paths = collect_watch_paths(config, stdin_paths)
    for path in watch_paths:
        logger.debug(f"Watching: {path}")

    if not watch_paths and not config.listen_address:
        logger.error("No files to watch. See --help on how to use this command.")
        return 1

    try:
        run_engine(config, watch_paths)
    except ConfigurationError as e:
        logger.error(str(e))
        return 2
    except KeyboardInterrupt:
        logger.info("Shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
