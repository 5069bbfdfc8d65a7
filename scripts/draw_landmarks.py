#!/usr/bin/env python3
"""Draw detected landmarks on an image for visual checks."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from faceindex.config import FaceIndexConfig
from faceindex.errors import NoFaceDetected
from faceindex.extract import build_default_extractor
from faceindex.io_utils import ensure_dir, load_image, save_image, setup_logging
from faceindex.viz.overlay import draw_detections, draw_on_crop, draw_points


LOGGER = logging.getLogger("scripts.draw_landmarks")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render landmark overlays for one image")
    parser.add_argument("image", type=Path, help="Input image")
    parser.add_argument("--output-dir", type=Path, default=Path("data/landmarks"), help="Output directory")
    parser.add_argument("--config", type=Path, default=Path("configs/faceindex.yaml"))
    parser.add_argument("--providers", type=str, nargs="*", default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()

    config = FaceIndexConfig.load(args.config)
    extractor = build_default_extractor(config.extractor, providers=args.providers, with_descriptor=False)
    image = load_image(args.image)
    try:
        results = extractor.extract_landmarks(image)
    except NoFaceDetected:
        LOGGER.error("No face detected in %s", args.image)
        raise SystemExit(1)

    ensure_dir(args.output_dir)
    full = draw_detections(image, [r.detection for r in results])
    for idx, result in enumerate(results):
        full = draw_points(full, result.points)
        crop = draw_on_crop(result.crop.pixels, result.crop.bounds, result.points)
        save_image(args.output_dir / f"{args.image.stem}_crop{idx:02d}.jpg", crop)
    save_image(args.output_dir / f"{args.image.stem}_landmarks.jpg", full)
    LOGGER.info("Wrote %d landmark overlays to %s", len(results), args.output_dir)


if __name__ == "__main__":
    main()
