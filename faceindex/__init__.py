"""
Core package init for faceindex.

Face crop extraction, descriptor matching, content-addressed caching and
prediction/face persistence.
"""

__version__ = "0.1.0"

__all__ = [
    "cache",
    "classify",
    "config",
    "detectors",
    "distances",
    "errors",
    "evaluate",
    "extract",
    "geometry",
    "io_utils",
    "providers",
    "recognition",
    "store",
    "types",
    "viz",
]
