"""Command line entry point that rebuilds the index synchronously."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Optional, Sequence

from .drive import DriveClient
from .errors import DocSearchError
from .index import BuildProgress, IndexBuilder, get_index_store
from .logging_config import configure_logging


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Rebuild the Drive document search index.")
    parser.add_argument(
        "--token",
        default=os.getenv("DRIVE_ACCESS_TOKEN"),
        help="OAuth access token for the Drive API (defaults to $DRIVE_ACCESS_TOKEN).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _print_progress(progress: BuildProgress) -> None:
    print(f"[{progress.current}/{progress.total}] {progress.message}", flush=True)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging(verbose=args.verbose)

    if not args.token:
        logging.error("An access token is required (--token or DRIVE_ACCESS_TOKEN).")
        return 2

    try:
        with DriveClient(args.token) as drive:
            result = IndexBuilder(drive, get_index_store(drive)).build(_print_progress)
    except DocSearchError as error:
        logging.error("Index build failed: %s", error)
        return 1

    print(f"Index build complete. Successfully indexed {result.indexed_count} of {result.scanned_count} files.")
    for skipped in result.skipped:
        logging.info("Skipped %s: %s", skipped.name, skipped.reason)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
