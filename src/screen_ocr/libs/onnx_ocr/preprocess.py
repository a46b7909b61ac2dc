"""Preprocessing operations for OCR."""

import math
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np

from .config import DetectorConfig, RecognizerConfig
from .pools import BufferPool

# Detector strides need input sides divisible by this
SIZE_STRIDE = 32


def _rent(data: Dict, pool: Optional[BufferPool], shape, dtype) -> np.ndarray:
    """Rent a buffer and remember it so the caller can give it back."""
    if pool is None:
        return np.empty(shape, dtype=dtype)
    buffer = pool.rent(shape, dtype)
    data.setdefault('buffers', []).append(buffer)
    return buffer


def _resize_into(data: Dict, pool: Optional[BufferPool], img: np.ndarray,
                 resize_w: int, resize_h: int) -> np.ndarray:
    src_h, src_w = img.shape[:2]
    out = _rent(data, pool, (resize_h, resize_w) + img.shape[2:], img.dtype)
    if (src_h, src_w) == (resize_h, resize_w):
        np.copyto(out, img)
        return out
    return cv2.resize(img, (resize_w, resize_h), dst=out, interpolation=cv2.INTER_LINEAR)


def det_resize_shape(src_h: int, src_w: int, limit_side_len: int = 960,
                     limit_type: str = 'max') -> Tuple[int, int, float]:
    """Compute the detector input size for an image.

    Returns:
        (resize_h, resize_w, ratio), both sides rounded up to a multiple
        of 32 and at least 32.
    """
    if limit_type == 'max':
        # Shrink so the longer side fits limit_side_len
        if max(src_h, src_w) > limit_side_len:
            ratio = float(limit_side_len) / max(src_h, src_w)
        else:
            ratio = 1.0
    elif limit_type == 'min':
        # Grow so the shorter side reaches limit_side_len
        if min(src_h, src_w) < limit_side_len:
            ratio = float(limit_side_len) / min(src_h, src_w)
        else:
            ratio = 1.0
    else:
        raise ValueError(f"Unknown limit_type: {limit_type}")

    resize_h = int(src_h * ratio)
    resize_w = int(src_w * ratio)

    resize_h = max(int(math.ceil(resize_h / SIZE_STRIDE)) * SIZE_STRIDE, SIZE_STRIDE)
    resize_w = max(int(math.ceil(resize_w / SIZE_STRIDE)) * SIZE_STRIDE, SIZE_STRIDE)
    return resize_h, resize_w, ratio


class DetResizeForTest:
    """Resize image for text detection."""

    def __init__(self, limit_side_len=960, limit_type='max', pool=None, **kwargs):
        self.limit_side_len = limit_side_len
        self.limit_type = limit_type
        self.pool = pool

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        src_h, src_w = img.shape[:2]

        resize_h, resize_w, _ = det_resize_shape(
            src_h, src_w, self.limit_side_len, self.limit_type
        )
        data['image'] = _resize_into(data, self.pool, img, resize_w, resize_h)
        data['shape'] = np.array([src_h, src_w, resize_h / float(src_h), resize_w / float(src_w)])
        return data


class RecResizeImg:
    """Resize a text crop to a fixed height, keeping its aspect ratio."""

    def __init__(self, image_height=48, pool=None, **kwargs):
        self.image_height = image_height
        self.pool = pool

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        src_h, src_w = img.shape[:2]
        resize_h = self.image_height
        resize_w = max(int(math.ceil(resize_h * (src_w / float(src_h)))), 1)

        data['image'] = _resize_into(data, self.pool, img, resize_w, resize_h)
        data['shape'] = np.array([src_h, src_w, resize_h / float(src_h), resize_w / float(src_w)])
        return data


class NormalizeImage:
    """Normalize image values: ``(pixel * scale - mean) / std`` per channel."""

    def __init__(self, scale=1.0 / 255.0, mean=(0.485, 0.456, 0.406),
                 std=(0.229, 0.224, 0.225), pool=None, **kwargs):
        self.scale = np.float32(scale)
        self.mean = np.array(mean, dtype=np.float32).reshape((1, 1, 3))
        # Multiply by the reciprocal instead of dividing every pixel
        self.inv_std = (1.0 / np.array(std, dtype=np.float32)).reshape((1, 1, 3))
        self.pool = pool

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        if img.ndim != 3 or img.shape[2] != 3:
            raise ValueError(f"Expected a 3-channel HWC image, got shape {img.shape}")

        out = _rent(data, self.pool, img.shape, np.float32)
        np.multiply(img, self.scale, out=out, casting='unsafe')
        out -= self.mean
        out *= self.inv_std

        data['image'] = out
        return data


class ToCHWImage:
    """Convert image from interleaved HWC to planar CHW format."""

    def __init__(self, **kwargs):
        pass

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        # The planar copy belongs to the caller, so it is never pooled
        data['image'] = np.ascontiguousarray(img.transpose((2, 0, 1)))
        return data


class KeepKeys:
    """Keep only specified keys in data dict."""

    def __init__(self, keep_keys: List[str], **kwargs):
        self.keep_keys = keep_keys

    def __call__(self, data: Dict) -> Tuple:
        result = []
        for key in self.keep_keys:
            result.append(data[key])
        return tuple(result)


def create_operators(op_param_list: List[Dict], **shared):
    """Create preprocessing operators from config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]
        **shared: Extra keyword arguments passed to every operator (e.g. pool)

    Returns:
        List of operator instances
    """
    ops = []
    for operator in op_param_list:
        assert isinstance(operator, dict) and len(operator) == 1
        op_name = list(operator)[0]
        param = {} if operator[op_name] is None else dict(operator[op_name])
        param.update(shared)
        op = globals()[op_name](**param)
        ops.append(op)
    return ops


def transform(data: Dict, ops: List) -> Tuple:
    """Apply preprocessing operators sequentially.

    Args:
        data: Dictionary containing 'image' key
        ops: List of operator instances

    Returns:
        Output of the last operator, (image, shape) when it is KeepKeys
    """
    for op in ops:
        data = op(data)
    return data


class Preprocessor:
    """Detection and recognition preprocessing sharing one buffer pool."""

    MODES = ('det', 'rec')

    def __init__(
        self,
        det_config: Optional[DetectorConfig] = None,
        rec_config: Optional[RecognizerConfig] = None,
        pool: Optional[BufferPool] = None,
    ):
        det_config = det_config or DetectorConfig()
        rec_config = rec_config or RecognizerConfig()
        self.pool = pool

        self._ops = {
            'det': create_operators([
                {
                    "DetResizeForTest": {
                        "limit_side_len": det_config.det_limit_side_len,
                        "limit_type": det_config.det_limit_type,
                    }
                },
                {
                    "NormalizeImage": {
                        "std": det_config.det_std,
                        "mean": det_config.det_mean,
                        "scale": 1.0 / 255.0 if det_config.det_is_scale else 1.0,
                    }
                },
                {"ToCHWImage": None},
                {"KeepKeys": {"keep_keys": ["image", "shape"]}},
            ], pool=pool),
            'rec': create_operators([
                {"RecResizeImg": {"image_height": rec_config.rec_image_height}},
                {
                    "NormalizeImage": {
                        "std": rec_config.rec_std,
                        "mean": rec_config.rec_mean,
                        "scale": 1.0 / 255.0 if rec_config.rec_is_scale else 1.0,
                    }
                },
                {"ToCHWImage": None},
                {"KeepKeys": {"keep_keys": ["image", "shape"]}},
            ], pool=pool),
        }

    def __call__(self, image: np.ndarray, mode: str) -> Tuple[np.ndarray, int, int, float, float]:
        """Preprocess an HWC image for one of the two models.

        Args:
            image: Input image (H, W, 3)
            mode: 'det' or 'rec'

        Returns:
            (planar, resized_w, resized_h, ratio_w, ratio_h) where ``planar``
            is a contiguous float32 (3, resized_h, resized_w) array.
        """
        if mode not in self._ops:
            raise ValueError(f"Unknown preprocess mode '{mode}'. Available: {', '.join(self.MODES)}")

        data = {'image': image, 'buffers': []}
        try:
            planar, shape = transform(data, self._ops[mode])
        finally:
            if self.pool is not None:
                for buffer in data['buffers']:
                    self.pool.release(buffer)

        _, _, ratio_h, ratio_w = shape
        return planar, planar.shape[2], planar.shape[1], float(ratio_w), float(ratio_h)
