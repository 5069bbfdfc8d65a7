#!/usr/bin/env python3
"""Fill the face-distance table from every stored face."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from faceindex.config import FaceIndexConfig
from faceindex.distances import precompute_distances
from faceindex.io_utils import setup_logging
from faceindex.recognition.matcher import DescriptorMatcher
from faceindex.store import SQLStore


LOGGER = logging.getLogger("scripts.precompute_distances")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Precompute pairwise face distances")
    parser.add_argument("--config", type=Path, default=Path("configs/faceindex.yaml"))
    parser.add_argument("--db", type=str, default=None, help="SQLAlchemy URL overriding store.url")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()

    config = FaceIndexConfig.load(args.config)
    with SQLStore(args.db or config.store.url) as store:
        summary = precompute_distances(store, store, DescriptorMatcher(config.matcher.threshold))
    LOGGER.info("Done: %s", summary)


if __name__ == "__main__":
    main()
