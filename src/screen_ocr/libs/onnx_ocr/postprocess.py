"""Postprocessing modules for OCR outputs."""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
import pyclipper
from shapely.geometry import Polygon

from .pools import BufferPool, ObjectPool
from .types import BoundingBox

logger = logging.getLogger(__name__)


class DBPostProcess:
    """Post-processing for DB (Differentiable Binarization) text detection.

    Converts the detector's raw probability map into axis-aligned boxes in
    original-image coordinates.
    """

    # pyclipper works on integers, coordinates are scaled for sub-pixel offsets
    CLIPPER_SCALE = 1 << 16
    # Expanded rectangles smaller than this on both sides are dropped
    MIN_EXPANDED_SIDE = 1.001

    def __init__(
        self,
        thresh=0.3,
        box_thresh=0.6,
        max_candidates=1000,
        unclip_ratio=1.5,
        min_size=16,
        use_dilation=False,
        score_mode="slow",
        buffer_pool: Optional[BufferPool] = None,
        box_pool: Optional[ObjectPool] = None,
    ):
        """Initialize DB post-processor.

        Args:
            thresh: Binarization threshold, pixels with p > 1 - thresh are text
            box_thresh: Minimum confidence score for boxes
            max_candidates: Maximum number of contours examined
            unclip_ratio: Ratio for expanding text regions
            min_size: Minimum longest side of a fitted rectangle
            use_dilation: Apply morphological dilation to the binary mask
            score_mode: 'slow' (mean under contour) or 'fast' (mean under rectangle)
            buffer_pool: Pool for the probability and mask buffers
            box_pool: Pool the returned BoundingBox objects are rented from
        """
        if score_mode not in ("slow", "fast"):
            raise ValueError(f"Unknown score_mode: {score_mode}")

        self.thresh = thresh
        self.box_thresh = box_thresh
        self.max_candidates = max_candidates
        self.unclip_ratio = unclip_ratio
        self.min_size = min_size
        self.score_mode = score_mode
        self.buffer_pool = buffer_pool
        self.box_pool = box_pool
        self.status = ""

        self.dilation_kernel = None if not use_dilation else np.ones((2, 2), dtype=np.uint8)

    def __call__(self, pred: np.ndarray, original_w: int, original_h: int) -> List[BoundingBox]:
        """Convert a probability tensor to bounding boxes.

        Args:
            pred: Detector output of shape [1, 1, h, w] (raw, before sigmoid)
            original_w: Width of the source image
            original_h: Height of the source image

        Returns:
            List of boxes clamped to the source image. Empty if nothing passed
            the filters; ``self.status`` then says why.
        """
        self.status = ""
        prob = self._first_channel(np.asarray(pred, dtype=np.float32))
        h, w = prob.shape

        prob_map = self._rent((h, w), np.float32)
        resized = self._rent((original_h, original_w), np.float32)
        bitmap = self._rent((original_h, original_w), np.uint8)
        try:
            # Sigmoid
            with np.errstate(over="ignore"):
                np.negative(prob, out=prob_map)
                np.exp(prob_map, out=prob_map)
            prob_map += 1.0
            np.reciprocal(prob_map, out=prob_map)

            resized = cv2.resize(
                prob_map, (original_w, original_h), dst=resized,
                interpolation=cv2.INTER_LINEAR,
            )
            np.greater(resized, 1.0 - self.thresh, out=bitmap, casting="unsafe")

            mask = bitmap
            if self.dilation_kernel is not None:
                mask = cv2.dilate(bitmap, self.dilation_kernel)

            boxes = self.boxes_from_bitmap(resized, mask, original_w, original_h)
        finally:
            self._release(prob_map, resized, bitmap)

        if not boxes and not self.status:
            self.status = "no valid text region found"
        return boxes

    def _first_channel(self, pred: np.ndarray) -> np.ndarray:
        if pred.ndim == 4:
            channels = pred.shape[1]
            if channels != 1:
                self.status = (
                    f"detector output has {channels} channels, expected 1; "
                    "using the first channel only"
                )
                logger.warning(self.status)
            return pred[0, 0]
        if pred.ndim == 3:
            return pred[0]
        if pred.ndim == 2:
            return pred
        raise ValueError(f"Expected detector output [1, 1, H, W], got shape {pred.shape}")

    def boxes_from_bitmap(self, pred, bitmap, dest_width, dest_height) -> List[BoundingBox]:
        """Extract boxes from a binary mask at destination resolution."""
        outs = cv2.findContours(bitmap, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)
        if len(outs) == 3:
            contours = outs[1]
        else:
            contours = outs[0]

        boxes = []
        for contour in contours[:self.max_candidates]:
            if contour.shape[0] <= 3:
                continue

            rect = cv2.minAreaRect(contour)
            ssid = max(rect[1])
            if ssid < self.min_size:
                continue

            points = cv2.boxPoints(rect)
            if self.score_mode == "slow":
                score = self.box_score_slow(pred, contour.reshape(-1, 2))
            else:
                score = self.box_score_fast(pred, points)

            if score < self.box_thresh:
                self.status = f"region score {score:.3f} below threshold {self.box_thresh}"
                logger.debug(self.status)
                continue

            expanded = self.unclip(points, self.unclip_ratio)
            if expanded is None:
                continue
            _, (exp_w, exp_h), _ = cv2.minAreaRect(expanded.astype(np.float32))
            if exp_w < self.MIN_EXPANDED_SIDE and exp_h < self.MIN_EXPANDED_SIDE:
                continue

            box = self.box_pool.rent() if self.box_pool is not None else BoundingBox()
            box.x_min = int(round(float(expanded[:, 0].min())))
            box.y_min = int(round(float(expanded[:, 1].min())))
            box.x_max = int(round(float(expanded[:, 0].max())))
            box.y_max = int(round(float(expanded[:, 1].max())))
            boxes.append(box.clamp(dest_width, dest_height))

        return boxes

    def unclip(self, box: np.ndarray, unclip_ratio: float) -> Optional[np.ndarray]:
        """Push every edge of a polygon outward along its normal.

        The offset distance is ``area * unclip_ratio / perimeter``; adjacent
        offset edges meet at mitred corners, so a rectangle stays a rectangle.

        Returns:
            Expanded polygon as an (N, 2) float array, or None if degenerate
        """
        poly = Polygon(box)
        if poly.length == 0:
            return None
        distance = poly.area * unclip_ratio / poly.length

        offset = pyclipper.PyclipperOffset(miter_limit=4.0)
        offset.AddPath(
            pyclipper.scale_to_clipper(np.asarray(box, dtype=np.float64).tolist(), self.CLIPPER_SCALE),
            pyclipper.JT_MITER,
            pyclipper.ET_CLOSEDPOLYGON,
        )
        expanded = offset.Execute(distance * self.CLIPPER_SCALE)
        if not expanded:
            return None

        # Keep the outer ring if the offset produced several
        path = max(expanded, key=lambda p: abs(pyclipper.Area(p)))
        return np.array(pyclipper.scale_from_clipper(path, self.CLIPPER_SCALE), dtype=np.float64)

    def box_score_fast(self, bitmap, box):
        """Calculate box confidence score as the mean under the fitted rectangle."""
        return self._mean_under_polygon(bitmap, np.asarray(box, dtype=np.float32))

    def box_score_slow(self, bitmap, contour):
        """Calculate box confidence score as the mean under the contour itself."""
        return self._mean_under_polygon(bitmap, np.asarray(contour, dtype=np.float32))

    def _mean_under_polygon(self, bitmap: np.ndarray, points: np.ndarray) -> float:
        h, w = bitmap.shape[:2]
        points = points.copy()

        xmin = int(np.clip(np.floor(points[:, 0].min()), 0, w - 1))
        xmax = int(np.clip(np.ceil(points[:, 0].max()), 0, w - 1))
        ymin = int(np.clip(np.floor(points[:, 1].min()), 0, h - 1))
        ymax = int(np.clip(np.ceil(points[:, 1].max()), 0, h - 1))

        mask = self._rent((ymax - ymin + 1, xmax - xmin + 1), np.uint8, zero=True)
        try:
            points[:, 0] -= xmin
            points[:, 1] -= ymin
            cv2.fillPoly(mask, [np.round(points).astype(np.int32)], 1)
            return cv2.mean(bitmap[ymin:ymax + 1, xmin:xmax + 1], mask)[0]
        finally:
            self._release(mask)

    def _rent(self, shape, dtype, zero=False) -> np.ndarray:
        if self.buffer_pool is None:
            return np.zeros(shape, dtype=dtype) if zero else np.empty(shape, dtype=dtype)
        return self.buffer_pool.rent(shape, dtype, zero=zero)

    def _release(self, *buffers) -> None:
        if self.buffer_pool is None:
            return
        for buffer in buffers:
            self.buffer_pool.release(buffer)


# Label files are read once per path for the whole process
_label_cache: Dict[str, Tuple[str, ...]] = {}
_cache_lock = threading.Lock()


def _read_labels(path: Path) -> Tuple[str, ...]:
    if not path.exists():
        raise FileNotFoundError(f"Label file not found: {path}")

    key = str(path.resolve())
    with _cache_lock:
        cached = _label_cache.get(key)
        if cached is not None:
            return cached

        labels = []
        with open(path, "rb") as fin:
            for line in fin.readlines():
                labels.append(line.decode("utf-8").strip("\n").strip("\r\n"))
        cached = tuple(labels)
        _label_cache[key] = cached
        return cached


class LabelDictionary:
    """Read-only mapping from recognizer class index to label.

    Index 0 is the CTC blank; a space is appended when requested.
    """

    BLANK = "blank"
    UNKNOWN = "?"

    def __init__(self, labels: Sequence[str]):
        self._labels = tuple(labels)

    @classmethod
    def from_file(cls, path: Union[str, Path], use_space_char: bool = True) -> "LabelDictionary":
        """Load a UTF-8 dictionary with one label per line.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        labels = [cls.BLANK]
        labels.extend(_read_labels(Path(path)))
        if use_space_char:
            labels.append(" ")
        return cls(labels)

    @classmethod
    def from_characters(cls, characters: str, use_space_char: bool = False) -> "LabelDictionary":
        labels = [cls.BLANK] + list(characters)
        if use_space_char:
            labels.append(" ")
        return cls(labels)

    def lookup(self, index: int) -> str:
        if 0 <= index < len(self._labels):
            return self._labels[index]
        return self.UNKNOWN

    def __getitem__(self, index: int) -> str:
        return self._labels[index]

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self):
        return iter(self._labels)


class CTCLabelDecode:
    """CTC decoding for text recognition."""

    def __init__(self, character_dict_path=None, use_space_char=False,
                 label_dict: Optional[LabelDictionary] = None):
        """Initialize CTC decoder.

        Args:
            character_dict_path: Path to character dictionary file
            use_space_char: Include space character in vocabulary
            label_dict: Already loaded dictionary, takes precedence over the path
        """
        if label_dict is not None:
            self.character = label_dict
        elif character_dict_path is None:
            self.character = LabelDictionary.from_characters(
                "0123456789abcdefghijklmnopqrstuvwxyz", use_space_char
            )
        else:
            self.character = LabelDictionary.from_file(character_dict_path, use_space_char)

    def __call__(self, preds) -> List[Tuple[str, float]]:
        """Decode CTC predictions to text.

        Args:
            preds: Prediction array [batch, time, num_classes], or a tuple/list
                of model outputs whose last element is that array

        Returns:
            List of (text, confidence) tuples
        """
        if isinstance(preds, (tuple, list)):
            preds = preds[-1]

        preds = np.asarray(preds)
        preds_idx = preds.argmax(axis=2)
        preds_prob = preds.max(axis=2)
        return self.decode(preds_idx, preds_prob, is_remove_duplicate=True)

    def decode_single(self, preds) -> Tuple[str, float]:
        """Decode a [1, T, C] tensor into one (text, confidence) pair."""
        result = self(preds)
        return result[0] if result else ("", 0.0)

    def decode(self, text_index, text_prob, is_remove_duplicate=False):
        """Convert text indices to strings, scored by the mean emitted probability.

        With ``is_remove_duplicate`` a step is dropped when its index equals
        the previous step's index, blanks included, so a blank between two
        equal indices lets the second one through.
        """
        result_list = []
        ignored_tokens = [0]  # CTC blank token
        batch_size = len(text_index)

        for batch_idx in range(batch_size):
            indices = np.asarray(text_index[batch_idx])
            selection = np.ones(len(indices), dtype=bool)

            if is_remove_duplicate:
                selection[1:] = indices[1:] != indices[:-1]

            for ignored_token in ignored_tokens:
                selection &= indices != ignored_token

            char_list = [
                self.character.lookup(int(text_id))
                for text_id in indices[selection]
            ]

            conf_list = np.asarray(text_prob[batch_idx])[selection]
            if len(conf_list) == 0:
                conf_list = [0]

            text = "".join(char_list)
            result_list.append((text, float(np.mean(conf_list))))

        return result_list
