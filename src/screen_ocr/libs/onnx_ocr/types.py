"""Result types shared by the detection, recognition and line stages."""

from dataclasses import dataclass, field
from typing import List


@dataclass
class BoundingBox:
    """Axis-aligned text region in original-image pixel coordinates."""
    x_min: int = 0
    y_min: int = 0
    x_max: int = 0
    y_max: int = 0

    @property
    def width(self) -> int:
        return self.x_max - self.x_min

    @property
    def height(self) -> int:
        return self.y_max - self.y_min

    @property
    def center_x(self) -> float:
        return (self.x_min + self.x_max) / 2.0

    def clamp(self, width: int, height: int) -> "BoundingBox":
        """Clamp all edges into [0, width-1] x [0, height-1] in place."""
        self.x_min = min(max(self.x_min, 0), width - 1)
        self.x_max = min(max(self.x_max, 0), width - 1)
        self.y_min = min(max(self.y_min, 0), height - 1)
        self.y_max = min(max(self.y_max, 0), height - 1)
        return self

    def reset(self) -> None:
        self.x_min = 0
        self.y_min = 0
        self.x_max = 0
        self.y_max = 0

    def to_list(self) -> List[int]:
        return [self.x_min, self.y_min, self.x_max, self.y_max]


@dataclass
class OCRResult:
    """Recognized text for one region (or one merged line)."""
    text: str = ""
    confidence: float = 0.0
    box: BoundingBox = field(default_factory=BoundingBox)

    def reset(self) -> None:
        # The box is left alone, it may still be owned elsewhere
        self.text = ""
        self.confidence = 0.0

    def to_dict(self) -> dict:
        return {
            'bbox': self.box.to_list(),
            'text': self.text,
            'confidence': float(self.confidence),
        }
