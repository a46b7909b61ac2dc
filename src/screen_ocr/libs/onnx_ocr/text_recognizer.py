"""
Text Recognition Module - Stage 2 of OCR Pipeline

Recognizes text from axis-aligned text image patches.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from .onnx_base import ONNXInferenceBase
from .config import RecognizerConfig
from .pools import BufferPool
from .preprocess import Preprocessor
from .postprocess import CTCLabelDecode, LabelDictionary

logger = logging.getLogger(__name__)


class TextRecognizer:
    """Text recognition module.

    Each patch is resized to the model height, run through the recognizer
    and greedily CTC-decoded against the label dictionary.
    """

    def __init__(
        self,
        model_path: Optional[Union[str, Path]] = None,
        char_dict_path: Optional[Union[str, Path]] = None,
        config: RecognizerConfig = None,
        session=None,
        label_dict: Optional[LabelDictionary] = None,
        buffer_pool: Optional[BufferPool] = None,
    ):
        """Initialize text recognizer.

        Args:
            model_path: Path to recognition ONNX model (rec.onnx)
            char_dict_path: Path to character dictionary file
            config: Recognizer configuration (uses defaults if None)
            session: Ready inference engine exposing ``run_single``
            label_dict: Already loaded dictionary, used instead of ``char_dict_path``
            buffer_pool: Pool for resize/normalize buffers
        """
        if config is None:
            config = RecognizerConfig()

        self.config = config
        self.status = ""

        # Dictionary first: a missing label file should fail before model loading
        if label_dict is None:
            if char_dict_path is None:
                raise ValueError("TextRecognizer needs a char_dict_path or a label_dict")
            label_dict = LabelDictionary.from_file(char_dict_path, config.use_space_char)
        self.postprocess_op = CTCLabelDecode(label_dict=label_dict)

        if session is None:
            if model_path is None:
                raise ValueError("TextRecognizer needs a model_path or a session")
            session = ONNXInferenceBase(
                model_path,
                use_gpu=config.use_gpu,
                use_tensorrt=config.use_tensorrt,
            )
        self.session = session

        self.preprocess_op = Preprocessor(rec_config=config, pool=buffer_pool)

    @property
    def label_dict(self) -> LabelDictionary:
        return self.postprocess_op.character

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize and normalize a patch into a (3, 48, W) planar tensor."""
        planar, _, _, _, _ = self.preprocess_op(img, 'rec')
        return planar

    def __call__(self, img_list: List[np.ndarray]) -> List[Tuple[str, float]]:
        """Recognize text in a list of patches, one inference per patch."""
        return [self.recognize_single(img) for img in img_list]

    def recognize_single(self, img: np.ndarray) -> Tuple[str, float]:
        """Recognize text in a single image.

        Args:
            img: Text image patch (BGR format)

        Returns:
            Tuple of (text, confidence); ("", 0.0) when nothing is readable
        """
        self.status = ""
        if img is None or img.size == 0 or img.shape[0] == 0 or img.shape[1] == 0:
            self.status = "empty image patch"
            return "", 0.0

        norm_img = self.resize_norm_img(img)
        preds = self.session.run_single(norm_img[np.newaxis, :])
        if preds is None:
            self.status = "recognizer produced no output"
            return "", 0.0

        text, score = self.postprocess_op.decode_single(preds)
        if not text:
            self.status = "empty recognition result"
            logger.debug(self.status)
        return text, score

    def __repr__(self):
        return f"TextRecognizer(height={self.config.rec_image_height}, labels={len(self.label_dict)})"
