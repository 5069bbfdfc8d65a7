from sqlalchemy import JSON, Column, DateTime, Float, Integer, String
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class PredictionRow(Base):
    __tablename__ = "predictions"

    id = Column(String, primary_key=True)
    network = Column(String, primary_key=True)
    label = Column(String, primary_key=True)
    score = Column(Float, nullable=False)
    created = Column(DateTime, server_default=func.now())  # audit only, never used for ordering


class FaceRow(Base):
    __tablename__ = "faces"

    face_id = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String, nullable=False, index=True)
    network = Column(String, nullable=False)
    box_min_x = Column(Integer, nullable=False)
    box_min_y = Column(Integer, nullable=False)
    box_max_x = Column(Integer, nullable=False)
    box_max_y = Column(Integer, nullable=False)
    score = Column(Float, nullable=False)
    class_score = Column(Float, nullable=False, default=0.0)
    landmarks = Column(JSON, nullable=False)  # flat normalized x, y list
    descriptors = Column(JSON, nullable=False)
    created = Column(DateTime, server_default=func.now())


class FaceDistanceRow(Base):
    __tablename__ = "face_distances"

    # Stored with id_a <= id_b.
    id_a = Column(String, primary_key=True)
    id_b = Column(String, primary_key=True)
    distance = Column(Float, nullable=False)
    created = Column(DateTime, server_default=func.now())
