"""
Text Detection Module - Stage 1 of OCR Pipeline

Detects text regions in images using DBNet architecture.
"""

from pathlib import Path
from typing import List, Optional, Union

import numpy as np

from .onnx_base import ONNXInferenceBase
from .config import DetectorConfig
from .pools import BufferPool, ObjectPool
from .preprocess import Preprocessor
from .postprocess import DBPostProcess
from .types import BoundingBox


class TextDetector:
    """Text detection module.

    Takes BGR images and returns axis-aligned text boxes for each.
    """

    def __init__(
        self,
        model_path: Optional[Union[str, Path]] = None,
        config: DetectorConfig = None,
        session=None,
        buffer_pool: Optional[BufferPool] = None,
        box_pool: Optional[ObjectPool] = None,
    ):
        """Initialize text detector.

        Args:
            model_path: Path to detection ONNX model (det.onnx)
            config: Detector configuration (uses defaults if None)
            session: Ready inference engine exposing ``run_single``; when
                given, ``model_path`` is ignored
            buffer_pool: Pool for resize/normalize/probability buffers
            box_pool: Pool the detected boxes are rented from
        """
        if config is None:
            config = DetectorConfig()

        self.config = config

        if session is None:
            if model_path is None:
                raise ValueError("TextDetector needs a model_path or a session")
            session = ONNXInferenceBase(
                model_path,
                use_gpu=config.use_gpu,
                use_tensorrt=config.use_tensorrt,
            )
        self.session = session

        self.preprocess_op = Preprocessor(det_config=config, pool=buffer_pool)

        self.postprocess_op = DBPostProcess(
            thresh=config.det_db_thresh,
            box_thresh=config.det_db_box_thresh,
            max_candidates=config.det_max_candidates,
            unclip_ratio=config.det_db_unclip_ratio,
            min_size=config.det_db_min_size,
            use_dilation=config.use_dilation,
            score_mode=config.det_db_score_mode,
            buffer_pool=buffer_pool,
            box_pool=box_pool,
        )

    @property
    def status(self) -> str:
        """Soft-failure message left by the last postprocess call."""
        return self.postprocess_op.status

    def preprocess(self, image: np.ndarray) -> tuple:
        """Preprocess single image for detection.

        Returns:
            (planar, resized_w, resized_h, ratio_w, ratio_h)
        """
        return self.preprocess_op(image, 'det')

    def __call__(self, images: Union[np.ndarray, List[np.ndarray]]) -> List[List[BoundingBox]]:
        """Detect text regions in a batch of images, one at a time."""
        if isinstance(images, np.ndarray) and images.ndim == 3:
            images = [images]
        return [self.detect_single(img) for img in images]

    def detect_single(self, image: np.ndarray) -> List[BoundingBox]:
        """Detect text in a single image.

        Args:
            image: Input image as numpy array (H, W, 3) in BGR

        Returns:
            Boxes in ``image`` coordinates, possibly empty
        """
        src_h, src_w = image.shape[:2]

        planar, _, _, _, _ = self.preprocess(image)

        # Add batch dimension
        pred = self.session.run_single(np.expand_dims(planar, axis=0))

        return self.postprocess_op(pred, src_w, src_h)

    def __repr__(self):
        return f"TextDetector(limit_side_len={self.config.det_limit_side_len})"
