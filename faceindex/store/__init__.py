from faceindex.store.base import FaceDistanceStore, FaceStore, PredictionStore, pair_key
from faceindex.store.sql import SQLStore

__all__ = ["FaceDistanceStore", "FaceStore", "PredictionStore", "SQLStore", "pair_key"]
