"""
ONNX OCR library for screen captures

Stages:
- TextDetector: Finds text regions (DB postprocessing to axis-aligned boxes)
- TextRecognizer: Converts text patches to strings (greedy CTC decoding)
- OCRPipeline: Runs both and merges regions into reading-order lines

Buffers and per-region objects are pooled across calls (see ``pools``).
"""

from .types import BoundingBox, OCRResult
from .pools import BufferPool, ObjectPool
from .config import DetectorConfig, RecognizerConfig, LineConfig, PoolConfig, OCRConfig
from .preprocess import Preprocessor
from .postprocess import DBPostProcess, CTCLabelDecode, LabelDictionary
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer
from .pipeline import OCRPipeline
from .utils import group_lines, merge_line, results_to_text

__all__ = [
    "BoundingBox",
    "OCRResult",
    "BufferPool",
    "ObjectPool",
    "DetectorConfig",
    "RecognizerConfig",
    "LineConfig",
    "PoolConfig",
    "OCRConfig",
    "Preprocessor",
    "DBPostProcess",
    "CTCLabelDecode",
    "LabelDictionary",
    "TextDetector",
    "TextRecognizer",
    "OCRPipeline",
    "group_lines",
    "merge_line",
    "results_to_text",
]
