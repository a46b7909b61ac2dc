import numpy as np
import pytest

from screen_ocr.libs.onnx_ocr import LabelDictionary, OCRPipeline

# Colors (BGR) of the synthetic "glyph" blocks and the label each one reads as
COLOR_LABELS = {
    (255, 0, 0): "A",   # blue
    (0, 255, 0): "B",   # green
    (0, 0, 255): "C",   # red
}


class FakeDetSession:
    """Detector stand-in: any pixel that is not white is text."""

    def __init__(self):
        self.calls = 0
        self.input_shapes = []

    def run_single(self, tensor):
        self.calls += 1
        self.input_shapes.append(tensor.shape)
        # White normalizes to a positive value on every channel
        is_text = tensor[0].min(axis=0) < 0
        logits = np.where(is_text, 10.0, -10.0).astype(np.float32)
        return logits[np.newaxis, np.newaxis]


class FakeRecSession:
    """Recognizer stand-in: reads the color at the patch center."""

    def __init__(self, label_dict, timesteps=6):
        self.label_dict = label_dict
        self.timesteps = timesteps
        self.input_shapes = []

    def run_single(self, tensor):
        self.input_shapes.append(tensor.shape)
        _, _, h, w = tensor.shape
        center = tensor[0, :, h // 2, w // 2]
        bgr = tuple(255 if v > 0 else 0 for v in center)
        label = COLOR_LABELS.get(bgr)

        probs = np.zeros((1, self.timesteps, len(self.label_dict)), dtype=np.float32)
        probs[0, :, 0] = 1.0
        if label is not None:
            index = list(self.label_dict).index(label)
            probs[0, 1:3, 0] = 0.1
            probs[0, 1:3, index] = 0.9
        return probs


class FailingRecSession:
    def run_single(self, tensor):
        raise RuntimeError("engine exploded")


@pytest.fixture
def label_dict():
    return LabelDictionary.from_characters("ABC", use_space_char=True)


@pytest.fixture
def fake_det_session():
    return FakeDetSession()


@pytest.fixture
def failing_rec_session():
    return FailingRecSession()


@pytest.fixture
def fake_rec_session(label_dict):
    return FakeRecSession(label_dict)


@pytest.fixture
def make_pipeline(label_dict):
    def _make(rec_session=None, det_session=None, config=None):
        return OCRPipeline(
            config=config,
            det_session=det_session or FakeDetSession(),
            rec_session=rec_session or FakeRecSession(label_dict),
            label_dict=label_dict,
        )
    return _make


def draw_block(img, x, y, w, h, color):
    img[y:y + h, x:x + w] = color
    return img


@pytest.fixture
def two_line_image():
    """White 400x200 image: blue + green blocks on one line, red below."""
    img = np.full((200, 400, 3), 255, dtype=np.uint8)
    draw_block(img, 20, 20, 60, 20, (255, 0, 0))
    draw_block(img, 150, 22, 60, 20, (0, 255, 0))
    draw_block(img, 20, 120, 60, 20, (0, 0, 255))
    return img
