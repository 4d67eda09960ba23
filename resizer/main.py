# main.py
"""
Command-line entry point for Batch Resizer.

Reads images (files, directories or ZIP archives), applies one set of
processing settings to each and writes a single ZIP archive with the results.
"""
import argparse
import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from . import __version__, config
from .controllers import BatchJobController, load_sources, write_archive
from .errors import ConfigurationError, EmptyBatchError
from .progress import ProgressEvent, ProgressStage
from .settings import MarginEdge, OutputFormat, ProcessingSettings, normalize_options

EXIT_OK = 0
EXIT_EMPTY_BATCH = 1
EXIT_USAGE = 2

logger = logging.getLogger("resizer.cli")


def configure_logging(
    log_path: Optional[Path] = None,
    level: int = logging.INFO,
) -> logging.Logger:
    """Configure the package loggers and return the CLI logger.

    The handler setup is idempotent to avoid duplicate handlers when called
    repeatedly (e.g., in tests). A rotating file handler limits on-disk log
    growth while mirroring output to stdout.
    """

    package_loggers = [logging.getLogger(name) for name in config.LOGGER_NAMES]
    if all(pkg.handlers for pkg in package_loggers):
        for pkg in package_loggers:
            pkg.setLevel(level)
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
    )

    if log_path is None:
        log_path = Path(os.environ.get(config.LOG_PATH_ENV, config.LOG_FILENAME))
    log_path = Path(log_path).expanduser().resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=config.LOG_MAX_BYTES,
        backupCount=config.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(formatter)

    for pkg in package_loggers:
        pkg.setLevel(level)
        pkg.addHandler(file_handler)
        pkg.addHandler(stream_handler)
        pkg.propagate = False

    return logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch-resizer",
        description="Resize, crop and re-encode images into a single ZIP archive.",
    )
    parser.add_argument("inputs", nargs="+", help="Image files, directories or ZIP archives")
    parser.add_argument(
        "-o", "--output",
        default=None,
        help=f"Archive path or directory (default: ./{config.ARCHIVE_FILENAME})",
    )
    parser.add_argument("--settings", help="JSON file with processing options")
    parser.add_argument("--width", type=int)
    parser.add_argument("--height", type=int)
    parser.add_argument(
        "--crop-position",
        help=f"Crop anchor, e.g. \"{config.DEFAULT_CROP_POSITION}\" or bottom-middle",
    )
    parser.add_argument(
        "--add-space",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reserve an empty strip on one edge",
    )
    parser.add_argument("--space-size", type=int)
    parser.add_argument("--space-position", choices=[edge.value for edge in MarginEdge])
    parser.add_argument("--max-file-size", type=int, help="Size ceiling per image in KiB")
    parser.add_argument("--format", choices=[fmt.value for fmt in OutputFormat])
    parser.add_argument(
        "--workers",
        type=int,
        default=config.DEFAULT_MAX_WORKERS,
        help="Images processed concurrently",
    )
    parser.add_argument(
        "--on-collision",
        choices=config.COLLISION_POLICIES,
        default=config.DEFAULT_COLLISION_POLICY,
        help="What to do when two outputs share a name",
    )
    parser.add_argument("--log-file", type=Path, help=f"Log file (default: ${config.LOG_PATH_ENV} or ./{config.LOG_FILENAME})")
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _load_settings_file(path: str) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read settings file {path}: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Settings file {path} must contain a JSON object")
    return payload


def settings_from_args(args: argparse.Namespace) -> ProcessingSettings:
    """Merge defaults, the optional settings file and CLI flags (highest wins)."""
    options: Dict[str, Any] = {}
    if args.settings:
        options.update(normalize_options(_load_settings_file(args.settings)))

    overrides = {
        "width": args.width,
        "height": args.height,
        "crop_anchor": args.crop_position,
        "add_space": args.add_space,
        "space_size": args.space_size,
        "space_position": args.space_position,
        "max_file_size": args.max_file_size,
        "format": args.format,
    }
    options.update({key: value for key, value in overrides.items() if value is not None})
    return ProcessingSettings.from_options(options)


def _log_progress(event: ProgressEvent) -> None:
    if event.stage is ProgressStage.PROCESSING:
        status = "ok" if event.succeeded else "failed"
        logger.info("[%3d%%] %s (%s)", event.percent, event.name, status)
    else:
        logger.info("[%3d%%] %s", event.percent, event.stage.value)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_file, logging.DEBUG if args.verbose else logging.INFO)

    try:
        settings = settings_from_args(args)
        controller = BatchJobController(
            settings,
            max_workers=args.workers,
            collision_policy=args.on_collision,
        )
        sources = load_sources(args.inputs)
    except (ConfigurationError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return EXIT_USAGE

    if not sources:
        logger.error("No images found in %s", ", ".join(args.inputs))
        return EXIT_EMPTY_BATCH

    try:
        outcome = controller.run(sources, progress_callback=_log_progress)
    except EmptyBatchError as exc:
        logger.error("%s", exc)
        return EXIT_EMPTY_BATCH

    destination = args.output or Path.cwd() / outcome.filename
    try:
        path = write_archive(outcome, destination)
    except (OSError, ValueError) as exc:
        logger.error("Cannot write archive: %s", exc)
        return EXIT_USAGE

    logger.info(
        "Wrote %d of %d images to %s",
        outcome.result.succeeded,
        outcome.result.total,
        path,
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
