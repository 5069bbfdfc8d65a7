import numpy as np

from faceindex.types import Detection, Rect
from faceindex.viz.overlay import POINT_COLOR, draw_detections, draw_on_crop, draw_points


def test_draw_points_marks_copy_only():
    image = np.zeros((20, 20, 3), dtype=np.uint8)
    out = draw_points(image, [(5, 7)])
    assert tuple(out[7, 5]) == POINT_COLOR
    assert image.max() == 0


def test_draw_on_crop_shifts_full_frame_points():
    crop = np.zeros((20, 20, 3), dtype=np.uint8)
    out = draw_on_crop(crop, Rect(100, 50, 120, 70), [(110, 60)])
    assert tuple(out[10, 10]) == POINT_COLOR


def test_draw_detections_outlines_box():
    image = np.zeros((100, 100, 3), dtype=np.uint8)
    out = draw_detections(image, [Detection(box=Rect(20, 30, 60, 80), score=0.9)], label="alice")
    assert out[30, 40].any()
    assert not out[55, 40].any()
