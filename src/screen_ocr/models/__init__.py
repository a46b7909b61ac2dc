"""
Model management for screen_ocr.

Usage:
    from screen_ocr.models import registry

    path = registry.get("paddle_ocr", "detector")   # download + resolve
    print(registry.status())                         # show what's cached
"""

from .registry import ModelRegistry, registry
from .config import ALL_GROUPS, HF_REPO, PADDLE_OCR, ModelFile, ModelGroup

__all__ = [
    "ModelRegistry",
    "registry",
    "ALL_GROUPS",
    "HF_REPO",
    "PADDLE_OCR",
    "ModelFile",
    "ModelGroup",
]
