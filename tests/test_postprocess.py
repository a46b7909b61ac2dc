import numpy as np
import pytest

from screen_ocr.libs.onnx_ocr import BoundingBox, BufferPool, DBPostProcess, ObjectPool


def logits_with_regions(h, w, regions, high=10.0, low=-10.0):
    """Raw detector output [1, 1, h, w] with high logits inside (x, y, w, h) regions."""
    pred = np.full((1, 1, h, w), low, dtype=np.float32)
    for x, y, rw, rh in regions:
        pred[0, 0, y:y + rh, x:x + rw] = high
    return pred


def test_single_region_gives_one_centered_box():
    post = DBPostProcess()
    pred = logits_with_regions(100, 160, [(50, 60, 40, 20)])

    boxes = post(pred, 160, 100)

    assert len(boxes) == 1
    box = boxes[0]
    assert abs(box.center_x - 69.5) <= 3
    assert abs((box.y_min + box.y_max) / 2.0 - 69.5) <= 3
    # Unclipped outward, so it covers the region with some margin
    assert box.x_min < 50 and box.x_max > 89
    assert box.y_min < 60 and box.y_max > 79


def test_unclip_distance_matches_rectangle_geometry():
    post = DBPostProcess(unclip_ratio=1.5)
    rect = np.array([[0, 0], [40, 0], [40, 20], [0, 20]], dtype=np.float32)

    expanded = post.unclip(rect, 1.5)

    distance = 40 * 20 * 1.5 / 120
    np.testing.assert_allclose(expanded[:, 0].min(), -distance, atol=0.01)
    np.testing.assert_allclose(expanded[:, 0].max(), 40 + distance, atol=0.01)
    np.testing.assert_allclose(expanded[:, 1].min(), -distance, atol=0.01)
    np.testing.assert_allclose(expanded[:, 1].max(), 20 + distance, atol=0.01)
    # Mitred corners keep it a rectangle
    assert len(expanded) == 4


def test_unclip_degenerate_polygon():
    post = DBPostProcess()
    point = np.zeros((4, 2), dtype=np.float32)
    assert post.unclip(point, 1.5) is None


def test_prob_map_is_resized_to_original_resolution():
    post = DBPostProcess()
    # Detector ran at half resolution
    pred = logits_with_regions(50, 80, [(25, 30, 20, 10)])

    boxes = post(pred, 160, 100)

    assert len(boxes) == 1
    assert abs(boxes[0].center_x - 70) <= 4
    assert abs((boxes[0].y_min + boxes[0].y_max) / 2.0 - 70) <= 4


def test_boxes_are_clamped_to_image():
    post = DBPostProcess()
    pred = logits_with_regions(60, 100, [(0, 0, 40, 20), (70, 45, 30, 15)])

    boxes = post(pred, 100, 60)

    assert len(boxes) == 2
    for box in boxes:
        assert 0 <= box.x_min <= box.x_max <= 99
        assert 0 <= box.y_min <= box.y_max <= 59
    assert min(b.x_min for b in boxes) == 0
    assert max(b.x_max for b in boxes) == 99


def test_small_regions_are_rejected():
    post = DBPostProcess()
    pred = logits_with_regions(100, 100, [(10, 10, 12, 8)])
    assert post(pred, 100, 100) == []


def test_low_score_regions_are_rejected():
    post = DBPostProcess(box_thresh=0.99)
    # sigmoid(1.0) ~ 0.73: above the 0.7 mask threshold but a weak score
    pred = logits_with_regions(100, 100, [(10, 10, 50, 20)], high=1.0)

    assert post(pred, 100, 100) == []
    assert "below threshold" in post.status


def test_fast_score_mode():
    post = DBPostProcess(score_mode="fast")
    pred = logits_with_regions(100, 160, [(50, 60, 40, 20)])
    assert len(post(pred, 160, 100)) == 1


def test_unknown_score_mode():
    with pytest.raises(ValueError):
        DBPostProcess(score_mode="median")


def test_all_zero_map_gives_no_boxes():
    post = DBPostProcess()
    pred = np.zeros((1, 1, 64, 64), dtype=np.float32)

    assert post(pred, 64, 64) == []
    assert post.status == "no valid text region found"


def test_extra_channels_use_first_channel():
    post = DBPostProcess()
    first = logits_with_regions(100, 160, [(50, 60, 40, 20)])[0, 0]
    second = np.full_like(first, 10.0)
    pred = np.stack([first, second])[np.newaxis]

    boxes = post(pred, 160, 100)

    assert len(boxes) == 1
    assert "2 channels" in post.status


def test_repeated_calls_give_identical_boxes():
    buffer_pool = BufferPool()
    box_pool = ObjectPool(BoundingBox)
    post = DBPostProcess(buffer_pool=buffer_pool, box_pool=box_pool)
    pred = logits_with_regions(120, 200, [(20, 20, 60, 20), (100, 70, 50, 25)])

    first = [b.to_list() for b in post(pred, 200, 120)]
    second_boxes = post(pred, 200, 120)
    second = [b.to_list() for b in second_boxes]

    assert first == second
    assert len(first) == 2

    # Give the boxes back and run again with recycled objects
    for box in second_boxes:
        box_pool.release(box)
    third = [b.to_list() for b in post(pred, 200, 120)]
    assert third == first


def test_buffers_are_returned_after_postprocess():
    pool = BufferPool()
    post = DBPostProcess(buffer_pool=pool)
    post(logits_with_regions(100, 160, [(50, 60, 40, 20)]), 160, 100)
    assert len(pool) >= 3


def test_dilation_merges_touching_regions():
    pred = logits_with_regions(100, 200, [(20, 40, 40, 20), (61, 40, 40, 20)])

    without = DBPostProcess(use_dilation=False)(pred, 200, 100)
    with_dilation = DBPostProcess(use_dilation=True)(pred, 200, 100)

    assert len(without) == 2
    assert len(with_dilation) == 1
