"""CLI for the ghcr.io temporary tag pruner."""

import argparse
import sys
from pathlib import Path

import httpx
import structlog

from .config import PrunerConfig
from .exceptions import PrunerError
from .services.pruner import Pruner


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description=(
            "Delete old temporary image tags from ghcr.io, keeping "
            "everything referenced by the keep tags."
        )
    )
    parser.add_argument(
        "-c",
        "--config-file",
        "--file",
        type=Path,
        help="pruner config file (default: read the environment)",
        default=None,
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
        default=False,
    )
    parser.add_argument(
        "-x",
        "--dry-run",
        action="store_true",
        help="Dry run only: do not delete any versions",
        default=False,
    )
    return parser.parse_args(argv)


def _load_config(args: argparse.Namespace) -> PrunerConfig:
    if args.config_file:
        cfg = PrunerConfig.from_file(args.config_file)
    else:
        cfg = PrunerConfig.from_env()

    # Override settings in config, if dry_run or debug are specified here
    if args.dry_run:
        cfg.dry_run = True
    if args.debug:
        cfg.debug = True
    return cfg


def main(argv: list[str] | None = None) -> int:
    """Run one pruning pass.  Returns the process exit status."""
    logger = structlog.get_logger(__name__)
    args = _parse_args(argv)
    try:
        cfg = _load_config(args)
        Pruner(cfg).run()
    except PrunerError as exc:
        logger.error(f"ERROR: {exc}")
        return 1
    except httpx.HTTPStatusError as exc:
        logger.error(
            f"ERROR: {exc.request.method} {exc.request.url} returned"
            f" {exc.response.status_code}"
        )
        return 1
    except httpx.HTTPError as exc:
        logger.error(f"ERROR: {exc}")
        return 1
    return 0


def prune() -> None:
    """Console script entry point."""
    sys.exit(main())
