"""
Which weight files the OCR pipeline needs and where they live in the
HuggingFace repository.
"""

from dataclasses import dataclass
from typing import Dict


HF_REPO = "hpllduck/PaperStructure"


@dataclass(frozen=True)
class ModelFile:
    filename: str  # path inside the repo
    description: str = ""


@dataclass(frozen=True)
class ModelGroup:
    """Files that are always used together."""
    name: str
    description: str
    files: Dict[str, ModelFile]


# PP-OCRv5 mobile models, exported to ONNX
PADDLE_OCR = ModelGroup(
    name="paddle_ocr",
    description="PP-OCRv5 detection and recognition",
    files={
        "detector": ModelFile("paddle_ocr/det.onnx", "DB detector, [1,3,H,W] -> [1,1,H,W]"),
        "recognizer": ModelFile("paddle_ocr/rec.onnx", "SVTR recognizer, [1,3,48,W] -> [1,T,C]"),
        "dictionary": ModelFile("paddle_ocr/ppocrv5_dict.txt", "UTF-8 labels, one per line"),
    },
)

ALL_GROUPS: Dict[str, ModelGroup] = {PADDLE_OCR.name: PADDLE_OCR}
