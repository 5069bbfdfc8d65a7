#!/usr/bin/env python3
"""Classify an image folder (through the on-disk cache) and search it by label."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from faceindex.cache import ContentAddressedCache
from faceindex.classify import find, inspect_folder
from faceindex.config import FaceIndexConfig
from faceindex.io_utils import setup_logging
from faceindex.recognition.classifier_onnx import OnnxClassifier
from faceindex.store import SQLStore


LOGGER = logging.getLogger("scripts.index_folder")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Index images by classifier label and search interactively")
    parser.add_argument("image_dir", type=Path, help="Folder of images to index")
    parser.add_argument("--config", type=Path, default=Path("configs/faceindex.yaml"))
    parser.add_argument("--model", type=Path, default=None, help="ONNX classifier model (overrides config)")
    parser.add_argument("--labels", type=Path, default=None, help="Class index JSON (overrides config)")
    parser.add_argument("--threshold", type=float, default=None, help="Minimum classifier score")
    parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Cache directory (defaults to cache.cache_dir under image_dir)",
    )
    parser.add_argument("--no-cache", action="store_true", help="Always run the classifier")
    parser.add_argument("--only-cache", action="store_true", help="Never load the classifier")
    parser.add_argument("--db", type=str, default=None, help="Also store predictions at this SQLAlchemy URL")
    parser.add_argument("--query", type=str, nargs="*", default=None, help="Run these queries instead of prompting")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()
    if args.no_cache and args.only_cache:
        raise SystemExit("--no-cache and --only-cache are mutually exclusive")

    config = FaceIndexConfig.load(args.config)
    classifier_config = config.classifier
    classifier = None
    if not args.only_cache:
        model_path = args.model or classifier_config.model_path
        labels_path = args.labels or classifier_config.labels_path
        if model_path is None or labels_path is None:
            raise SystemExit("A classifier model and labels file are required unless --only-cache is set")
        classifier = OnnxClassifier(
            model_path,
            labels_path,
            threshold=args.threshold if args.threshold is not None else classifier_config.threshold,
            image_size=classifier_config.image_size,
        )

    cache = None
    if not args.no_cache:
        cache = ContentAddressedCache(args.cache_dir or args.image_dir / config.cache.cache_dir)

    store = SQLStore(args.db) if args.db else None
    try:
        index = inspect_folder(args.image_dir, cache=cache, classifier=classifier, store=store)
    finally:
        if store is not None:
            store.close()
    LOGGER.info("Labels: %s", ", ".join(sorted(index)))

    if args.query is not None:
        for query in args.query:
            for path in find(index, query):
                print(path)
        return

    while True:
        try:
            query = input("search: ")
        except (EOFError, KeyboardInterrupt):
            print()
            return
        print()
        for path in find(index, query):
            print(path)


if __name__ == "__main__":
    main()
