"""
Screen OCR Library
Text detection and recognition for screen captures with ONNX models
"""

from .pipeline import ScreenOCR
from .libs.onnx_ocr import (
    BoundingBox,
    OCRResult,
    OCRConfig,
    DetectorConfig,
    RecognizerConfig,
    LineConfig,
    PoolConfig,
    OCRPipeline,
    results_to_text,
)

__version__ = "0.1.0"
__all__ = [
    'ScreenOCR',
    'OCRPipeline',
    'BoundingBox',
    'OCRResult',
    'OCRConfig',
    'DetectorConfig',
    'RecognizerConfig',
    'LineConfig',
    'PoolConfig',
    'results_to_text',
]
