"""
Detection + recognition + line assembly on BGR numpy images.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .config import OCRConfig
from .pools import BufferPool, ObjectPool
from .postprocess import LabelDictionary
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .types import BoundingBox, OCRResult
from .utils import crop_box, group_lines, merge_line

logger = logging.getLogger(__name__)

NO_TEXT_REGION = "no text region detected"
EMPTY_RECOGNITION = "empty recognition result"


class OCRPipeline:
    """
    Complete OCR pipeline: detection, per-region recognition, line merging.

    Usage:
        ocr = OCRPipeline(det_model_path, rec_model_path, char_dict_path)
        lines = ocr(image)
        if not lines:
            print(ocr.last_error_message)

    Finding no text is not an error: the call returns an empty list and
    ``last_error_message`` describes what happened.
    """

    def __init__(
        self,
        det_model_path: Optional[Union[str, Path]] = None,
        rec_model_path: Optional[Union[str, Path]] = None,
        char_dict_path: Optional[Union[str, Path]] = None,
        config: Optional[OCRConfig] = None,
        det_session=None,
        rec_session=None,
        label_dict: Optional[LabelDictionary] = None,
    ):
        """
        Initialize OCR pipeline

        Args:
            det_model_path: Path to detection model
            rec_model_path: Path to recognition model
            char_dict_path: Path to character dictionary
            config: Pipeline configuration (defaults if None)
            det_session: Ready detection engine, replaces ``det_model_path``
            rec_session: Ready recognition engine, replaces ``rec_model_path``
            label_dict: Loaded dictionary, replaces ``char_dict_path``

        Raises:
            FileNotFoundError: If a model or dictionary file is missing
        """
        self.config = config or OCRConfig()
        self.last_error_message = ""

        self.buffer_pool = BufferPool(self.config.pool.buffer_pool_size)
        self.box_pool = ObjectPool(BoundingBox, self.config.pool.object_pool_size)
        self.result_pool = ObjectPool(OCRResult, self.config.pool.object_pool_size)

        try:
            required = []
            if det_session is None:
                required.append((det_model_path, "detection model"))
            if rec_session is None:
                required.append((rec_model_path, "recognition model"))
            if label_dict is None:
                required.append((char_dict_path, "character dictionary"))
            for path, name in required:
                if path is None or not Path(path).exists():
                    raise FileNotFoundError(f"Required {name} not found at: {path}")

            self.text_detector = TextDetector(
                det_model_path,
                self.config.detector,
                session=det_session,
                buffer_pool=self.buffer_pool,
                box_pool=self.box_pool,
            )
            self.text_recognizer = TextRecognizer(
                rec_model_path,
                char_dict_path,
                self.config.recognizer,
                session=rec_session,
                label_dict=label_dict,
                buffer_pool=self.buffer_pool,
            )
        except Exception as e:
            self.last_error_message = f"model loading failed: {e}"
            raise

    def __call__(self, img: np.ndarray) -> List[OCRResult]:
        """
        Run OCR on a BGR image.

        Args:
            img: Input image (H, W, 3), uint8, BGR

        Returns:
            One merged OCRResult per text line, top to bottom
        """
        self.last_error_message = ""
        if img.ndim != 3 or img.shape[2] != 3:
            raise ValueError(f"Expected a 3-channel image, got shape {img.shape}")

        boxes = self.text_detector.detect_single(img)
        if not boxes:
            self.last_error_message = NO_TEXT_REGION
            if self.text_detector.status:
                self.last_error_message += f" ({self.text_detector.status})"
            logger.info(self.last_error_message)
            return []

        results: List[OCRResult] = []
        pending = list(boxes)
        try:
            while pending:
                box = pending.pop(0)
                text, confidence = self._recognize_box(img, box)
                if not text:
                    self.box_pool.release(box)
                    continue

                result = self.result_pool.rent()
                result.text = text
                result.confidence = confidence
                result.box = box
                results.append(result)

            lines = []
            for line in group_lines(results, self.config.line.line_threshold):
                merged, absorbed = merge_line(line, self.config.line.separator)
                lines.append(merged)
                for result in absorbed:
                    self._release_result(result)
        finally:
            # Boxes left over if recognition was interrupted
            for box in pending:
                self.box_pool.release(box)

        if not lines and not self.last_error_message:
            self.last_error_message = EMPTY_RECOGNITION
        return lines

    def _recognize_box(self, img: np.ndarray, box: BoundingBox):
        crop = crop_box(img, box)
        if crop is None:
            logger.debug("Skipping degenerate box %s", box.to_list())
            return "", 0.0

        try:
            text, confidence = self.text_recognizer.recognize_single(crop)
        except Exception as e:
            # One unreadable region must not sink the whole screenshot
            logger.warning("Recognition failed for box %s: %s", box.to_list(), e)
            self.last_error_message = f"recognition failed: {e}"
            return "", 0.0

        if not text:
            self.last_error_message = self.text_recognizer.status or EMPTY_RECOGNITION
        return text, confidence

    def _release_result(self, result: OCRResult) -> None:
        self.box_pool.release(result.box)
        self.result_pool.release(result)

    def clear_pools(self) -> None:
        """Drop every pooled buffer and object."""
        self.buffer_pool.clear()
        self.box_pool.clear()
        self.result_pool.clear()

    def __repr__(self):
        return (
            f"OCRPipeline(\n"
            f"  detector={self.text_detector},\n"
            f"  recognizer={self.text_recognizer}\n"
            f")"
        )
