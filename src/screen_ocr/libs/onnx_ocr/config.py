"""Configuration classes for OCR modules."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Tuple


@dataclass(frozen=True)
class DetectorConfig:
    """Configuration for text detection stage."""
    det_limit_side_len: int = 960  # Maximum side length for input images
    det_limit_type: str = "max"  # 'max' or 'min'
    det_mean: Tuple[float, float, float] = (0.485, 0.456, 0.406)
    det_std: Tuple[float, float, float] = (0.229, 0.224, 0.225)
    det_is_scale: bool = True  # Divide pixel values by 255 before normalizing
    det_db_thresh: float = 0.3  # Binarization threshold (mask is p > 1 - thresh)
    det_db_box_thresh: float = 0.6  # Box confidence threshold
    det_db_unclip_ratio: float = 1.5  # Text region expansion ratio
    det_db_min_size: int = 16  # Longest side of the fitted rectangle, in pixels
    det_db_score_mode: str = "slow"  # 'slow' (contour mask) or 'fast' (fitted rectangle)
    det_max_candidates: int = 1000
    use_dilation: bool = False  # Apply dilation to binary mask
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration


@dataclass(frozen=True)
class RecognizerConfig:
    """Configuration for text recognition stage."""
    rec_image_height: int = 48  # Fixed input height, width follows aspect ratio
    rec_mean: Tuple[float, float, float] = (0.5, 0.5, 0.5)
    rec_std: Tuple[float, float, float] = (0.5, 0.5, 0.5)
    rec_is_scale: bool = True
    use_space_char: bool = True  # Include space character in vocabulary
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration


@dataclass(frozen=True)
class LineConfig:
    """Configuration for grouping recognized regions into lines."""
    line_threshold: float = 16.0  # Max |dy| of top and bottom edges within a line
    separator: str = "    "


@dataclass(frozen=True)
class PoolConfig:
    """Capacity of the buffer and object pools."""
    buffer_pool_size: int = 100
    object_pool_size: int = 100


@dataclass
class OCRConfig:
    """Full pipeline configuration."""
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    recognizer: RecognizerConfig = field(default_factory=RecognizerConfig)
    line: LineConfig = field(default_factory=LineConfig)
    pool: PoolConfig = field(default_factory=PoolConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> "OCRConfig":
        """Build a config from nested mappings, e.g. parsed JSON settings.

        Args:
            data: ``{"detector": {...}, "recognizer": {...}, "line": {...}, "pool": {...}}``

        Raises:
            ValueError: On unknown sections or keys
        """
        sections: Dict[str, type] = {
            "detector": DetectorConfig,
            "recognizer": RecognizerConfig,
            "line": LineConfig,
            "pool": PoolConfig,
        }
        kwargs = {}
        for section, values in data.items():
            if section not in sections:
                available = ", ".join(sections)
                raise ValueError(f"Unknown config section '{section}'. Available: {available}")
            config_cls = sections[section]
            known = {f.name for f in fields(config_cls)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys in '{section}': {', '.join(sorted(unknown))}"
                )
            values = {
                key: tuple(value) if isinstance(value, list) else value
                for key, value in values.items()
            }
            kwargs[section] = config_cls(**values)
        return cls(**kwargs)
