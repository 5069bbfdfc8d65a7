"""SQLAlchemy implementation of the prediction, face and face-distance stores."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from sqlalchemy import create_engine, delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from faceindex.errors import ConstraintViolation, StorageError, check_cancelled
from faceindex.store.base import FaceDistanceStore, FaceStore, PredictionStore, pair_key
from faceindex.store.models import Base, FaceDistanceRow, FaceRow, PredictionRow
from faceindex.types import Detection, FaceItem, Landmarks, Prediction, PredictionItem, Rect, as_descriptors

LOGGER = logging.getLogger("faceindex.store.sql")


def _engine_for(url: str, echo: bool = False):
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo)
    if url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees a new empty database.
        return create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=echo, connect_args={"check_same_thread": False})


class SQLStore(PredictionStore, FaceStore, FaceDistanceStore):
    """All three stores over one database (SQLite by default)."""

    def __init__(self, url: str = "sqlite:///faceindex.db", echo: bool = False) -> None:
        self.url = url
        try:
            self.engine = _engine_for(url, echo=echo)
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"error initializing store {url}: {exc}") from exc
        LOGGER.info("Opened store %s", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "SQLStore":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @contextmanager
    def _transaction(self, action: str) -> Iterator:
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError as exc:
            raise ConstraintViolation(f"error {action}: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"error {action}: {exc}") from exc

    # predictions

    def get_prediction(self, identifier: str, cancel: Optional[threading.Event] = None) -> Optional[PredictionItem]:
        check_cancelled(cancel, "prediction lookup")
        stmt = (
            select(PredictionRow.network, PredictionRow.label, PredictionRow.score)
            .where(PredictionRow.id == identifier)
            .order_by(PredictionRow.score.desc())
        )
        with self._transaction(f"reading predictions for {identifier!r}") as conn:
            rows = conn.execute(stmt).all()
        if not rows:
            return None
        return PredictionItem(
            identifier=identifier,
            predictions=[Prediction(network=r.network, label=r.label, score=float(r.score)) for r in rows],
        )

    def store_prediction(
        self, identifier: str, item: PredictionItem, cancel: Optional[threading.Event] = None
    ) -> None:
        check_cancelled(cancel, "prediction write")
        if item.identifier != identifier:
            raise ValueError(f"identifier {identifier!r} does not match item {item.identifier!r}")
        rows = [
            {"id": identifier, "network": p.network, "label": p.label, "score": float(p.score)}
            for p in item.predictions
        ]
        if not rows:
            return
        with self._transaction(f"storing predictions for {identifier!r}") as conn:
            conn.execute(insert(PredictionRow.__table__), rows)
        LOGGER.debug("Stored %d predictions for %s", len(rows), identifier)

    def _label_contains(self, query: str):
        if self.engine.dialect.name == "sqlite":
            # LIKE is case-insensitive in SQLite; instr() is not.
            return func.instr(PredictionRow.label, query) > 0
        return PredictionRow.label.contains(query, autoescape=True)

    def search_predictions(
        self, query: str, after: str, n: int, cancel: Optional[threading.Event] = None
    ) -> List[PredictionItem]:
        check_cancelled(cancel, "prediction search")
        if n <= 0:
            return []
        page = select(PredictionRow.id).distinct()
        if query:
            page = page.where(self._label_contains(query))
        if after:
            page = page.where(PredictionRow.id > after)
        page = page.order_by(PredictionRow.id).limit(n)

        with self._transaction("searching predictions") as conn:
            ids = [row.id for row in conn.execute(page)]
            if not ids:
                return []
            rows = conn.execute(
                select(PredictionRow.id, PredictionRow.network, PredictionRow.label, PredictionRow.score)
                .where(PredictionRow.id.in_(ids))
                .order_by(PredictionRow.id, PredictionRow.score.desc(), PredictionRow.network, PredictionRow.label)
            ).all()

        items: Dict[str, PredictionItem] = {identifier: PredictionItem(identifier) for identifier in ids}
        for r in rows:
            items[r.id].predictions.append(Prediction(network=r.network, label=r.label, score=float(r.score)))
        return [items[identifier] for identifier in ids]

    # faces

    def store_face(self, item: FaceItem, cancel: Optional[threading.Event] = None) -> None:
        check_cancelled(cancel, "face write")
        with self._transaction(f"storing face for {item.identifier!r}") as conn:
            conn.execute(insert(FaceRow.__table__), [_face_row(item)])

    def store_faces(
        self, identifier: str, items: List[FaceItem], cancel: Optional[threading.Event] = None
    ) -> None:
        check_cancelled(cancel, "face write")
        mismatched = [item.identifier for item in items if item.identifier != identifier]
        if mismatched:
            raise ValueError(f"identifier {identifier!r} does not match faces {mismatched!r}")
        if not items:
            return
        networks = sorted({item.network for item in items})
        existing = (
            select(FaceRow.network)
            .where(FaceRow.id == identifier, FaceRow.network.in_(networks))
            .limit(1)
        )
        with self._transaction(f"storing faces for {identifier!r}") as conn:
            taken = conn.execute(existing).scalar_one_or_none()
            if taken is not None:
                raise ConstraintViolation(f"faces for {identifier!r} ({taken}) are already stored")
            conn.execute(insert(FaceRow.__table__), [_face_row(item) for item in items])
        LOGGER.debug("Stored %d faces for %s", len(items), identifier)

    def get_faces(self, identifier: str, cancel: Optional[threading.Event] = None) -> List[FaceItem]:
        check_cancelled(cancel, "face lookup")
        stmt = select(FaceRow.__table__).where(FaceRow.id == identifier).order_by(FaceRow.face_id)
        with self._transaction(f"reading faces for {identifier!r}") as conn:
            return [_face_from_row(r) for r in conn.execute(stmt)]

    def get_all_faces(self, cancel: Optional[threading.Event] = None) -> List[FaceItem]:
        check_cancelled(cancel, "face scan")
        stmt = select(FaceRow.__table__).order_by(FaceRow.id, FaceRow.face_id)
        with self._transaction("scanning faces") as conn:
            return [_face_from_row(r) for r in conn.execute(stmt)]

    # face distances

    def store_face_distance(
        self, item1: FaceItem, item2: FaceItem, distance: float, cancel: Optional[threading.Event] = None
    ) -> None:
        check_cancelled(cancel, "face distance write")
        id_a, id_b = pair_key(item1, item2)
        with self._transaction(f"storing distance {id_a!r}/{id_b!r}") as conn:
            conn.execute(delete(FaceDistanceRow.__table__).where(FaceDistanceRow.id_a == id_a, FaceDistanceRow.id_b == id_b))
            conn.execute(insert(FaceDistanceRow.__table__), [{"id_a": id_a, "id_b": id_b, "distance": float(distance)}])

    def get_face_distance(
        self, item1: FaceItem, item2: FaceItem, cancel: Optional[threading.Event] = None
    ) -> Optional[float]:
        check_cancelled(cancel, "face distance lookup")
        id_a, id_b = pair_key(item1, item2)
        stmt = select(FaceDistanceRow.distance).where(FaceDistanceRow.id_a == id_a, FaceDistanceRow.id_b == id_b)
        with self._transaction(f"reading distance {id_a!r}/{id_b!r}") as conn:
            value = conn.execute(stmt).scalar_one_or_none()
        return None if value is None else float(value)


def _face_row(item: FaceItem) -> Dict[str, object]:
    box = item.detection.box
    return {
        "id": item.identifier,
        "network": item.network,
        "box_min_x": box.min_x,
        "box_min_y": box.min_y,
        "box_max_x": box.max_x,
        "box_max_y": box.max_y,
        "score": float(item.detection.score),
        "class_score": float(item.detection.class_score),
        "landmarks": [float(v) for v in item.landmarks.coords],
        "descriptors": [float(v) for v in as_descriptors(item.descriptors)],
    }


def _face_from_row(row) -> FaceItem:
    return FaceItem(
        identifier=row.id,
        network=row.network,
        detection=Detection(
            box=Rect(row.box_min_x, row.box_min_y, row.box_max_x, row.box_max_y),
            score=float(row.score),
            class_score=float(row.class_score),
        ),
        landmarks=Landmarks(coords=list(row.landmarks)),
        descriptors=as_descriptors(row.descriptors),
    )
