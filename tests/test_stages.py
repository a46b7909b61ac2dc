import numpy as np
import pytest

from screen_ocr.libs.onnx_ocr import TextDetector, TextRecognizer


def solid(color, h=20, w=60):
    return np.full((h, w, 3), color, dtype=np.uint8)


def test_detector_batch_of_images(fake_det_session, two_line_image):
    detector = TextDetector(session=fake_det_session)
    blank = solid((255, 255, 255), 120, 200)

    per_image = detector([two_line_image, blank])

    assert [len(boxes) for boxes in per_image] == [3, 0]
    assert fake_det_session.calls == 2
    assert "no valid text region" in detector.status


def test_detector_single_image_is_wrapped(fake_det_session, two_line_image):
    per_image = TextDetector(session=fake_det_session)(two_line_image)
    assert len(per_image) == 1
    assert len(per_image[0]) == 3


def test_detector_needs_model_or_session():
    with pytest.raises(ValueError):
        TextDetector()


def test_recognizer_batch_of_patches(fake_rec_session, label_dict):
    recognizer = TextRecognizer(session=fake_rec_session, label_dict=label_dict)

    results = recognizer([solid((255, 0, 0)), solid((0, 0, 255)), solid((255, 255, 255))])

    assert [text for text, _ in results] == ["A", "C", ""]
    assert results[0][1] == pytest.approx(0.9)
    assert results[2][1] == 0.0
    assert recognizer.status == "empty recognition result"
    # Height fixed at 48, width follows the 60x20 aspect ratio
    assert fake_rec_session.input_shapes[0] == (1, 3, 48, 144)


def test_recognizer_empty_patch(fake_rec_session, label_dict):
    recognizer = TextRecognizer(session=fake_rec_session, label_dict=label_dict)

    assert recognizer([np.zeros((0, 10, 3), dtype=np.uint8)]) == [("", 0.0)]
    assert recognizer.status == "empty image patch"
    assert fake_rec_session.input_shapes == []


def test_recognizer_needs_dictionary(fake_rec_session):
    with pytest.raises(ValueError):
        TextRecognizer(session=fake_rec_session)
