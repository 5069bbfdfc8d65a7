#!/usr/bin/env python3
"""CLI for extracting face descriptors from an image folder into the face store."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from tqdm import tqdm

from faceindex.config import FaceIndexConfig
from faceindex.errors import ConstraintViolation, FaceIndexError
from faceindex.extract import build_default_extractor, to_face_items
from faceindex.io_utils import ensure_dir, list_images, load_image, save_image, setup_logging
from faceindex.store import SQLStore


LOGGER = logging.getLogger("scripts.extract_faces")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract normalized face crops and descriptors")
    parser.add_argument("image_dir", type=Path, help="Folder of .jpg/.png images")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("configs/faceindex.yaml"),
        help="faceindex configuration YAML",
    )
    parser.add_argument("--db", type=str, default=None, help="SQLAlchemy URL overriding store.url")
    parser.add_argument(
        "--crops-dir",
        type=Path,
        default=None,
        help="Optional directory where normalized face crops are written",
    )
    parser.add_argument("--arcface-model", type=str, default=None, help="Optional ArcFace model override")
    parser.add_argument(
        "--providers",
        type=str,
        nargs="*",
        default=None,
        help="ONNX execution providers (overrides platform defaults)",
    )
    parser.add_argument("--det-threshold", type=float, default=None, help="Override detection threshold")
    parser.add_argument("--workers", type=int, default=None, help="Threads per image for detections")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging()

    config = FaceIndexConfig.load(args.config)
    if args.det_threshold is not None:
        config.extractor.detection_threshold = args.det_threshold
    if args.workers is not None:
        config.extractor.detection_workers = args.workers

    extractor = build_default_extractor(config.extractor, providers=args.providers, arcface_model=args.arcface_model)
    network = getattr(extractor.descriptor, "network", "arcface")
    if args.crops_dir is not None:
        ensure_dir(args.crops_dir)

    stored = skipped = failed = 0
    with SQLStore(args.db or config.store.url) as store:
        for path in tqdm(list_images(args.image_dir), desc="extract", unit="img"):
            identifier = str(path)
            if any(face.network == network for face in store.get_faces(identifier)):
                LOGGER.debug("Faces for %s already stored", identifier)
                skipped += 1
                continue
            try:
                faces = extractor.extract(load_image(path))
                store.store_faces(identifier, to_face_items(identifier, network, faces))
            except ConstraintViolation:
                LOGGER.info("Faces for %s were stored by another run", identifier)
                skipped += 1
                continue
            except (FaceIndexError, OSError) as exc:
                LOGGER.warning("Skipping %s: %s", path, exc)
                failed += 1
                continue
            stored += len(faces)
            if args.crops_dir is not None:
                for idx, face in enumerate(faces):
                    save_image(args.crops_dir / f"{path.stem}_face{idx:02d}.jpg", face.crop.pixels)

    LOGGER.info("Stored %d faces (%d images already stored, %d failed)", stored, skipped, failed)


if __name__ == "__main__":
    main()
