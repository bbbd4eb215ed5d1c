"""Command line interface for filesaver package."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .cli_progress import (
    BatchProgressDisplay,
    render_batch_summary,
    render_configuration_summary,
)
from .models import Entry, SaverConfig


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or a log level (flag or LOG_LEVEL) is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level_name = (log_level or "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)

    from rich.logging import RichHandler

    handler = RichHandler(rich_tracebacks=True, markup=False, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _normalize_dest(dest: Optional[str]) -> str:
    if dest is None:
        return "/"
    value = dest.strip()
    if value in {"", "/"}:
        return "/"
    return "/" + value.strip("/")


def _read_env_file(path: Path) -> Dict[str, str]:
    """Parse ``KEY=VALUE`` lines; comments, blank lines and ``export`` prefixes are skipped."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    values: Dict[str, str] = {}
    for raw_line in lines:
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        key, sep, value = line.partition("=")
        key, value = key.strip(), value.strip()
        if not sep or not key or key.startswith("#"):
            continue
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
            value = value[1:-1]
        values[key] = value
    return values


def _build_environ(env_file: Optional[Path]) -> Dict[str, str]:
    """Environment for SaverConfig: the process environment wins over the env file."""
    environ: Dict[str, str] = {}
    if env_file is not None:
        environ.update(_read_env_file(env_file))
    environ.update(os.environ)
    return environ


def _load_entries(path: Path, stack: ExitStack) -> List[Entry]:
    """
    Read a JSON list of entry dicts.

    A ``filepath`` key is opened as the entry's filestream; the file's
    basename is used when no ``filename`` is given.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CLIError(f"could not read entries file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise CLIError(f"entries file {path} is not valid JSON: {exc}") from exc

    if not isinstance(raw, list):
        raise CLIError("entries file must contain a JSON list")

    entries = []
    for idx, item in enumerate(raw):
        if not isinstance(item, dict):
            raise CLIError(f"entry #{idx} is not an object")
        item = dict(item)
        local = item.get("filepath")
        if local:
            local_path = (path.parent / local).expanduser()
            if not local_path.is_file():
                raise CLIError(f"entry #{idx}: file not found: {local_path}")
            item["filestream"] = stack.enter_context(open(local_path, "rb"))
            item.setdefault("filename", local_path.name)
        entries.append(Entry.from_dict(item))
    return entries


def _write_output(entries: Sequence[Entry], output: Optional[Path]) -> None:
    payload = json.dumps([entry.to_dict() for entry in entries], indent=2, default=str)
    if output is None:
        sys.stdout.write(payload + "\n")
        return
    output.write_text(payload + "\n", encoding="utf-8")


async def _run_save(
    entries: List[Entry],
    dest: str,
    config: SaverConfig,
    concurrency: Optional[int],
    timeout_seconds: Optional[float],
    content_type: Optional[str],
    show_progress: bool,
):
    from .orchestrator import FileSaver

    deadline = time.time() + timeout_seconds if timeout_seconds else None
    async with FileSaver(config) as saver:
        if not show_progress:
            return await saver.save_batch(
                entries, dest, timeout=deadline, concurrency=concurrency, content_type=content_type
            )
        display = BatchProgressDisplay(len(entries))
        display.attach(saver.events)
        with display:
            return await saver.save_batch(
                entries, dest, timeout=deadline, concurrency=concurrency, content_type=content_type
            )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="save-files",
        description="Save the files listed in a JSON entries file into the storage service.",
    )
    parser.add_argument("entries", nargs="?", type=Path, help="JSON file with a list of entries")
    parser.add_argument(
        "-g",
        "--dest",
        default=None,
        help="Destination folder path (example: /Administrative/Bills)",
    )
    parser.add_argument(
        "-c",
        "--concurrency",
        type=int,
        default=None,
        help="Entries saved in parallel (default from FILESAVER_CONCURRENCY or 1)",
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        default=None,
        help="Seconds from now after which no new entry starts (default 240)",
    )
    parser.add_argument(
        "--content-type",
        default=None,
        help="Force the media type of every stored file (example: application/pdf)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write resulting entries to this JSON file instead of stdout",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="save-files (from filesaver)",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    default_env = Path(".env")
    used_env_file = args.env_file or (default_env if default_env.is_file() else None)
    try:
        environ = _build_environ(used_env_file)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level or environ.get("LOG_LEVEL"),
    )

    if args.entries is None:
        parser.print_help()
        return 0

    if args.concurrency is not None and args.concurrency < 1:
        print("ERROR: --concurrency must be >= 1", file=sys.stderr)
        return 1

    try:
        config = SaverConfig.from_env(environ)
    except ValueError as exc:
        print(f"ERROR: invalid environment configuration: {exc}", file=sys.stderr)
        return 1

    dest = _normalize_dest(args.dest)

    with ExitStack() as stack:
        try:
            entries = _load_entries(Path(args.entries).expanduser(), stack)
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

        if not args.silent:
            render_configuration_summary(
                {
                    "Entries": f"{args.entries} ({len(entries)})",
                    "Dest": dest,
                    "Storage API": config.storage_url,
                    "Token": "set" if config.storage_token else "(missing)",
                    "Concurrency": args.concurrency or config.default_concurrency,
                    "Timeout": f"{args.timeout or config.default_timeout_seconds:g}s",
                    "Content Type": args.content_type or "(from source)",
                    "Env File": str(used_env_file) if used_env_file else "-",
                    "Logging": effective_log_mode,
                }
            )

        try:
            result = asyncio.run(
                _run_save(
                    entries,
                    dest,
                    config,
                    concurrency=args.concurrency,
                    timeout_seconds=args.timeout,
                    content_type=args.content_type,
                    show_progress=not (args.silent or args.no_progress),
                )
            )
        except KeyboardInterrupt:
            print("Cancelled.", file=sys.stderr)
            return 130

    if not args.silent:
        render_batch_summary(result)
    _write_output(result.entries, args.output)
    return 0 if result.all_success else 1


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
