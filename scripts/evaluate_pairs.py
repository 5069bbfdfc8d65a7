#!/usr/bin/env python3
"""Measure false match / false non-match rates on a labeled face dataset (LFW layout)."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import numpy as np

from faceindex.config import FaceIndexConfig
from faceindex.evaluate import evaluate_pairs, extract_dataset, load_dataset, save_dataset, sweep_thresholds
from faceindex.extract import build_default_extractor
from faceindex.io_utils import ensure_dir, setup_logging
from faceindex.recognition.matcher import DescriptorMatcher


LOGGER = logging.getLogger("scripts.evaluate_pairs")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate descriptor matching on labeled pairs")
    parser.add_argument("dataset_root", type=Path, help="Directory with one sub-directory of images per identity")
    parser.add_argument("--config", type=Path, default=Path("configs/faceindex.yaml"))
    parser.add_argument(
        "--descriptors",
        type=Path,
        default=Path("data/pairs_descriptors.json"),
        help="Extracted descriptors are reused from / saved to this file",
    )
    parser.add_argument("--threshold", type=float, default=None, help="Override matcher threshold")
    parser.add_argument("--min-match", type=int, default=2000, help="Stop after this many same-identity pairs")
    parser.add_argument("--min-non-match", type=int, default=10000, help="... and this many different-identity pairs")
    parser.add_argument("--names", type=str, nargs="*", default=None, help="Restrict to these identities")
    parser.add_argument("--sweep-csv", type=Path, default=None, help="Write a threshold sweep (0.30-1.00) here")
    parser.add_argument("--providers", type=str, nargs="*", default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()

    config = FaceIndexConfig.load(args.config)
    if args.descriptors.exists():
        LOGGER.info("Loading descriptors from %s", args.descriptors)
        dataset = load_dataset(args.descriptors)
    else:
        extractor = build_default_extractor(config.extractor, providers=args.providers)
        dataset = extract_dataset(args.dataset_root, extractor)
        ensure_dir(args.descriptors.parent)
        save_dataset(args.descriptors, dataset)

    threshold = args.threshold if args.threshold is not None else config.matcher.threshold
    stats = evaluate_pairs(
        dataset,
        DescriptorMatcher(threshold),
        names=args.names,
        min_match=args.min_match,
        min_non_match=args.min_non_match,
    )
    LOGGER.info(
        "threshold %.3f: total %d / false match %d (%.2f%%) / false non-match %d (%.2f%%)",
        threshold,
        stats.total,
        stats.false_match,
        100 * stats.false_match_rate,
        stats.false_non_match,
        100 * stats.false_non_match_rate,
    )

    if args.sweep_csv is not None:
        table = sweep_thresholds(dataset, np.round(np.arange(0.30, 1.0001, 0.02), 2), names=args.names)
        ensure_dir(args.sweep_csv.parent)
        table.to_csv(args.sweep_csv, index=False)
        LOGGER.info("Wrote threshold sweep to %s", args.sweep_csv)


if __name__ == "__main__":
    main()
