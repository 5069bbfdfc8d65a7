#!/usr/bin/env python3
"""Page through stored predictions by label substring."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from faceindex.config import FaceIndexConfig
from faceindex.io_utils import setup_logging
from faceindex.store import SQLStore


LOGGER = logging.getLogger("scripts.search_predictions")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search stored predictions")
    parser.add_argument("query", nargs="?", default="", help="Case-sensitive label substring (empty = all)")
    parser.add_argument("--after", type=str, default="", help="Return identifiers strictly after this one")
    parser.add_argument("-n", "--limit", type=int, default=20, help="Page size")
    parser.add_argument("--config", type=Path, default=Path("configs/faceindex.yaml"))
    parser.add_argument("--db", type=str, default=None, help="SQLAlchemy URL overriding store.url")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()

    config = FaceIndexConfig.load(args.config)
    with SQLStore(args.db or config.store.url) as store:
        items = store.search_predictions(args.query, args.after, args.limit)
    for item in items:
        labels = ", ".join(f"{p.label} ({p.network} {p.score:.2f})" for p in item.predictions)
        print(f"{item.identifier}: {labels}")
    if len(items) == args.limit:
        LOGGER.info("More results: --after %s", items[-1].identifier)


if __name__ == "__main__":
    main()
