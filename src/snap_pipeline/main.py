"""Main module for the snap pipeline CLI."""

import argparse
import json
import mimetypes
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .core import BatchOutcome, BatchStatus, PipelineConfig, get_logger
from .core.exceptions import SnapPipelineError, ValidationError
from .core.factories import PipelineFactory
from .core.models import SUPPORTED_PROCESSORS, UploadFile
from .core.resolver import FILTER_DESCRIPTIONS, SUPPORTED_FILTERS

__version__ = "0.1.0"

EXIT_CODES = {
    BatchStatus.SUCCESS: 0,
    BatchStatus.PARTIAL_SUCCESS: 2,
    BatchStatus.FAILURE: 1,
    BatchStatus.EMPTY: 1,
}


def build_parser() -> argparse.ArgumentParser:
    """
    Builds the argument parser for the ``snap-pipeline`` command.

    Subcommands: ``apply`` (filter previously uploaded images), ``upload``
    (store local files and record them), ``filters`` and ``version``.
    """
    parser = argparse.ArgumentParser(
        prog="snap-pipeline",
        description="Snap Pipeline - concurrent image filtering backed by object storage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload local files for user 7
  snap-pipeline upload photo1.jpg photo2.png --owner-id 7

  # Resize and sharpen contrast of two uploaded images
  snap-pipeline apply --owner-id 7 \\
                      --image-url https://bucket.s3.amazonaws.com/images/1_photo1.jpg \\
                      --image-url https://bucket.s3.amazonaws.com/images/2_photo2.png \\
                      --filter resize=800x0 --filter contrast_increase=20

  # List supported filters
  snap-pipeline filters
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    apply_parser = subparsers.add_parser(
        "apply", help="Apply filters to previously uploaded images"
    )
    apply_parser.add_argument(
        "--image-url",
        action="append",
        default=[],
        help="Location of an uploaded image (repeatable)",
    )
    apply_parser.add_argument(
        "--filter",
        dest="filters",
        action="append",
        default=[],
        metavar="NAME[=VALUE]",
        help="Filter to apply, e.g. resize=800x600 or grayscale (repeatable)",
    )
    _add_common_arguments(apply_parser)

    upload_parser = subparsers.add_parser(
        "upload", help="Upload local image files and record them"
    )
    upload_parser.add_argument("files", nargs="+", help="Image files to upload")
    _add_common_arguments(upload_parser)

    subparsers.add_parser("filters", help="List supported filters")
    subparsers.add_parser("version", help="Show version information")

    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--owner-id", type=int, required=True, help="Owning user id")
    parser.add_argument(
        "--processor",
        type=str,
        default=None,
        choices=list(SUPPORTED_PROCESSORS),
        help="Fan-out strategy (default: multithread, or SNAP_PROCESSOR)",
    )
    parser.add_argument(
        "--max-workers", type=int, default=None, help="Maximum concurrent workers"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")


def parse_filter_args(values: List[str]) -> Dict[str, str]:
    """Turn ``name=value`` strings into request parameters; a bare name has an empty value."""
    params: Dict[str, str] = {}
    for value in values:
        name, _, param = value.partition("=")
        params[name.strip()] = param.strip()
    return params


def load_upload_files(paths: List[str]) -> List[UploadFile]:
    files = []
    for path in paths:
        file_path = Path(path)
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        files.append(
            UploadFile(
                filename=file_path.name,
                body=file_path.read_bytes(),
                content_type=content_type,
            )
        )
    return files


def _config_from_args(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig.from_env(
        processor=args.processor,
        max_workers=args.max_workers,
        debug=True if args.debug else None,
    )


def _print_json(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _report(outcome: BatchOutcome, action: str) -> int:
    _print_json(outcome.summary(action))
    return EXIT_CODES[outcome.status]


def run_apply(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    service = PipelineFactory(config).create_filter_service()
    outcome = service.apply_filters(
        args.image_url, parse_filter_args(args.filters), args.owner_id
    )
    return _report(outcome, "process")


def run_upload(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    files = load_upload_files(args.files)
    service = PipelineFactory(config).create_upload_service()
    outcome = service.upload_files(files, args.owner_id)
    return _report(outcome, "upload")


def run_filters() -> int:
    for name in SUPPORTED_FILTERS:
        print(f"{name:<22} {FILTER_DESCRIPTIONS[name]}")
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the ``snap-pipeline`` command-line interface.

    Exits 0 when every item succeeded, 2 on partial success and 1 when the
    request is invalid or no item succeeded. Without a command, prints help
    and exits 1.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = get_logger("cli")

    if args.command == "version":
        print("Snap Pipeline CLI")
        print(f"Version {__version__}")
        print("Concurrent image filtering backed by object storage")
        sys.exit(0)

    if args.command == "filters":
        sys.exit(run_filters())

    if args.command not in ("apply", "upload"):
        parser.print_help()
        sys.exit(1)

    try:
        code = run_apply(args) if args.command == "apply" else run_upload(args)
    except KeyboardInterrupt:
        logger.warning("Processing interrupted by user.")
        code = 1
    except ValidationError as e:
        _print_json({"status": "error", "message": str(e), "data": None})
        code = 1
    except (SnapPipelineError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        code = 1
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
