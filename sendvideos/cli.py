"""Command line interface for sendvideos package."""
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.logging import RichHandler

from .cli_progress import (
    ChunkUploadProgress,
    render_configuration_summary,
    render_health,
    render_health_sample,
    render_notification,
    render_poll_result,
    render_upload_result,
)
from .config import Settings
from .errors import ConfigError
from .models import NetworkQuality, UploaderConfig


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _resolve_settings(base_url: Optional[str]) -> Settings:
    settings = Settings.from_env()
    if base_url:
        settings = settings.with_base_url(base_url)
    try:
        return settings.validate()
    except ConfigError as exc:
        raise CLIError(f"invalid server URL (set SENDVIDEOS_BASE_URL or --base-url): {exc}") from exc


def _require_file(path: Path) -> Path:
    source = Path(path).expanduser()
    if not source.is_file():
        raise CLIError(f"source is not a file: {source}")
    return source


async def _run_upload(settings: Settings, config: UploaderConfig, source: Path, poll: bool, honour_mode: bool) -> int:
    from .orchestrator import VideoSender

    async with VideoSender(settings, config=config) as sender:
        sender.on("notify", render_notification)
        sample = sender.monitor.last_sample
        if sample is not None:
            render_health_sample(sample)

        progress = ChunkUploadProgress(source.name, source.stat().st_size)
        if honour_mode:
            result = await sender.send(source, poll=poll, progress_callback=progress.get_callback())
            if result.upload is None:
                return 0 if result.success else 1
            upload = result.upload
            progress.complete(success=upload.success, error=upload.error)
            render_upload_result(upload)
            if result.poll is not None:
                render_poll_result(result.poll)
            return 0 if result.success else 1

        upload = await sender.upload(source, progress_callback=progress.get_callback())
        progress.complete(success=upload.success, error=upload.error)
        render_upload_result(upload)
        if not upload.success:
            return 1
        if poll and upload.task_id:
            poll_result = await sender.poll(upload.task_id)
            render_poll_result(poll_result)
            return 0 if poll_result.success else 1
        return 0


async def _run_ping(settings: Settings, config: UploaderConfig, count: int) -> int:
    from .orchestrator import VideoSender

    config = dataclasses.replace(config, monitor_network=False)
    async with VideoSender(settings, config=config, status_callback=render_health) as sender:
        sample = None
        for i in range(count):
            if i:
                await asyncio.sleep(config.ping_interval)
            sample = await sender.monitor.check_now()
    return 0 if sample is not None and sample.quality != NetworkQuality.POOR else 1


async def _run_status(
    settings: Settings,
    config: UploaderConfig,
    task_id: str,
    interval: Optional[float],
    max_attempts: Optional[int],
) -> int:
    from .orchestrator import VideoSender

    config = dataclasses.replace(config, monitor_network=False)
    async with VideoSender(settings, config=config) as sender:
        sender.on("notify", render_notification)
        result = await sender.poll(task_id, interval=interval, max_attempts=max_attempts)
        render_poll_result(result)
        return 0 if result.success else 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sendvideos",
        description="Upload recorded videos to a processing server in chunks and track the result.",
    )
    parser.add_argument(
        "--base-url",
        default=None,
        help="Server base URL (default from SENDVIDEOS_BASE_URL), e.g. http://192.168.1.20:5000",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument("--version", action="version", version="sendvideos")

    commands = parser.add_subparsers(dest="command")

    send = commands.add_parser("send", help="Handle a recording according to SENDVIDEOS_REMOTE_UPLOAD")
    send.add_argument("source", type=Path, help="Video file")
    send.add_argument("--no-poll", action="store_true", help="Do not wait for server processing")

    upload = commands.add_parser("upload", help="Upload a video file in chunks")
    upload.add_argument("source", type=Path, help="Video file")
    upload.add_argument("--no-poll", action="store_true", help="Do not wait for server processing")
    upload.add_argument(
        "--skip-network-check",
        action="store_true",
        help="Upload without the ping admission check",
    )

    ping = commands.add_parser("ping", help="Probe server health")
    ping.add_argument("-n", "--count", type=int, default=1, help="Number of probes")

    status = commands.add_parser("status", help="Poll processing status of a task")
    status.add_argument("task_id", help="Task ID returned by the last chunk")
    status.add_argument("--interval", type=float, default=None, help="Seconds between polls")
    status.add_argument("--max-attempts", type=int, default=None, help="Poll attempt budget")

    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = _resolve_settings(args.base_url)
        config = UploaderConfig.from_env()
        render_configuration_summary(
            {
                "Command": args.command,
                "Server": settings.base_url,
                "Upload URL": settings.upload_endpoint,
                "Mode": "remote upload" if settings.remote_upload else "local processing",
                "Chunk Size": f"{config.chunk_size // (1024 * 1024)} MiB",
                "Parallel": config.max_concurrent_uploads,
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

        if args.command in ("send", "upload"):
            source = _require_file(args.source)
            if args.command == "upload" and args.skip_network_check:
                config = dataclasses.replace(config, monitor_network=False)
            coro = _run_upload(
                settings,
                config,
                source,
                poll=not args.no_poll,
                honour_mode=args.command == "send",
            )
        elif args.command == "ping":
            coro = _run_ping(settings, config, max(args.count, 1))
        else:
            coro = _run_status(settings, config, args.task_id, args.interval, args.max_attempts)

        return asyncio.run(coro)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
