from types import SimpleNamespace

import numpy as np
import pytest

from facerig.vtuber.errors import TrackerFailure
from facerig.vtuber.face_tracker import result_to_detection


def category(name, score):
    return SimpleNamespace(category_name=name, score=score)


def test_first_face_converted_to_detection():
    result = SimpleNamespace(
        facial_transformation_matrixes=[np.eye(4), np.eye(4) * 2],
        face_blendshapes=[
            [category("_neutral", 0.01), category("eyeBlinkLeft", 0.4)],
            [category("jawOpen", 0.9)],
        ],
    )

    detection = result_to_detection(result, timestamp_ms=500)

    assert detection.has_face
    assert detection.timestamp_ms == 500
    assert detection.transform.tolist() == np.eye(4).tolist()
    assert [(e.name, e.score) for e in detection.expressions] == [("_neutral", 0.01), ("eyeBlinkLeft", 0.4)]


def test_no_face_gives_empty_detection():
    result = SimpleNamespace(facial_transformation_matrixes=[], face_blendshapes=[])

    detection = result_to_detection(result, timestamp_ms=10)

    assert detection.transform is None
    assert detection.expressions is None
    assert detection.has_face is False


def test_missing_blendshapes_keeps_transform():
    result = SimpleNamespace(facial_transformation_matrixes=[np.eye(4)], face_blendshapes=None)

    detection = result_to_detection(result)

    assert detection.transform is not None
    assert detection.has_face is False


def test_none_result_is_empty():
    assert result_to_detection(None).has_face is False


def test_malformed_categories_raise_tracker_failure():
    result = SimpleNamespace(
        facial_transformation_matrixes=[np.eye(4)],
        face_blendshapes=[[SimpleNamespace(label="jawOpen")]],
    )

    with pytest.raises(TrackerFailure):
        result_to_detection(result)
