"""
Screen OCR entry point
Turns a captured bitmap into reading-order text lines
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
from PIL import Image

from .libs.onnx_ocr import OCRConfig, OCRPipeline, OCRResult, results_to_text
from .models import registry

logger = logging.getLogger(__name__)

ImageLike = Union[Image.Image, np.ndarray]


def to_bgr(image: ImageLike) -> np.ndarray:
    """Convert a PIL image (any mode) or an HxWx3 BGR array to a BGR array."""
    if isinstance(image, Image.Image):
        img = np.array(image.convert("RGB"))
        return img[:, :, ::-1].copy()  # RGB to BGR

    if isinstance(image, np.ndarray):
        if image.ndim != 3 or image.shape[2] != 3:
            raise ValueError(f"Expected an HxWx3 BGR array, got shape {image.shape}")
        if image.dtype != np.uint8:
            raise ValueError(f"Expected a uint8 image, got {image.dtype}")
        return image

    raise ValueError(f"Unsupported image type: {type(image).__name__}")


class ScreenOCR:
    """
    OCR for screenshots and screen regions

    Workflow:
    1. Text detection (DB) - find text regions
    2. Text recognition (SVTR + CTC) - read each region
    3. Line assembly - group regions into lines, merge left to right

    Model files not given explicitly are fetched through the model registry.
    """

    def __init__(
        self,
        det_model_path: Optional[Union[str, Path]] = None,
        rec_model_path: Optional[Union[str, Path]] = None,
        char_dict_path: Optional[Union[str, Path]] = None,
        config: Optional[OCRConfig] = None,
    ):
        """
        Initialize OCR

        Args:
            det_model_path: Detection ONNX model (default: registry download)
            rec_model_path: Recognition ONNX model (default: registry download)
            char_dict_path: Character dictionary (default: registry download)
            config: Pipeline configuration

        Raises:
            FileNotFoundError: If a model or dictionary file is missing
        """
        self.last_error_message = ""
        self.closed = False
        try:
            det_model_path = registry.resolve("paddle_ocr", "detector", det_model_path)
            rec_model_path = registry.resolve("paddle_ocr", "recognizer", rec_model_path)
            char_dict_path = registry.resolve("paddle_ocr", "dictionary", char_dict_path)
        except FileNotFoundError as e:
            self.last_error_message = f"model loading failed: {e}"
            raise

        logger.info("Loading OCR models...")
        self.ocr = OCRPipeline(
            det_model_path,
            rec_model_path,
            char_dict_path,
            config=config,
        )

    @classmethod
    def from_pipeline(cls, ocr: OCRPipeline) -> "ScreenOCR":
        """Wrap an already built pipeline, skipping model resolution."""
        instance = cls.__new__(cls)
        instance.last_error_message = ""
        instance.closed = False
        instance.ocr = ocr
        return instance

    def perform_ocr(self, image: ImageLike) -> List[OCRResult]:
        """
        Recognize text lines in an image

        Args:
            image: PIL Image or BGR numpy array (H, W, 3)

        Returns:
            Merged OCR results, one per line, top to bottom. Empty when no
            text was found; ``last_error_message`` then says why.

        Raises:
            RuntimeError: If ``close()`` was already called
        """
        if self.closed:
            raise RuntimeError("ScreenOCR is closed")
        try:
            return self.ocr(to_bgr(image))
        finally:
            self.last_error_message = self.ocr.last_error_message

    __call__ = perform_ocr

    def recognize(self, image: ImageLike) -> List[Dict[str, Any]]:
        """Recognize text and return plain dicts with bbox, text, and confidence."""
        return [result.to_dict() for result in self.perform_ocr(image)]

    def recognize_text(self, image: ImageLike) -> str:
        """Recognize text and return it as one newline-separated string."""
        return results_to_text(self.perform_ocr(image))

    def clear_pools(self) -> None:
        self.ocr.clear_pools()

    def close(self) -> None:
        """Release pooled memory and the inference sessions.

        Any later recognition call raises RuntimeError.
        """
        self.closed = True
        self.ocr.clear_pools()
        self.ocr.text_detector.session = None
        self.ocr.text_recognizer.session = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, tb):
        self.close()

    def __repr__(self):
        return f"ScreenOCR(ocr={self.ocr})"
