"""ONNX Runtime execution provider selection shared by the inference backends."""

from __future__ import annotations

import os
import platform
from typing import List, Optional, Sequence


def default_providers(providers: Optional[Sequence[str]] = None) -> List[str]:
    """Explicit providers win; otherwise CoreML on Apple silicon, CPU everywhere."""
    if providers:
        return list(providers)
    if platform.system() == "Darwin" and platform.machine().lower() in {"arm64", "aarch64"}:
        return ["CoreMLExecutionProvider", "CPUExecutionProvider"]
    return ["CPUExecutionProvider"]


def limit_threads(count: int = 2) -> None:
    """Cap BLAS/ORT intra-op threads unless the environment already does."""
    for var in ("OMP_NUM_THREADS", "MKL_NUM_THREADS", "ORT_INTRA_OP_NUM_THREADS"):
        os.environ.setdefault(var, str(count))
