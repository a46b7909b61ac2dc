"""Utility functions for OCR pipeline."""

from typing import List, Optional, Tuple

import numpy as np

from .types import BoundingBox, OCRResult


def crop_box(img: np.ndarray, box: BoundingBox) -> Optional[np.ndarray]:
    """Crop a box out of an image.

    The box is intersected with the image bounds first.

    Returns:
        A view into ``img``, or None if the intersection has no area
    """
    img_h, img_w = img.shape[:2]
    x_min = max(box.x_min, 0)
    y_min = max(box.y_min, 0)
    x_max = min(box.x_min + box.width, img_w)
    y_max = min(box.y_min + box.height, img_h)

    if x_max <= x_min or y_max <= y_min:
        return None
    return img[y_min:y_max, x_min:x_max]


def group_lines(results: List[OCRResult], line_threshold: float = 16.0) -> List[List[OCRResult]]:
    """Group results into text lines, top to bottom.

    A result joins the current line when both its top and bottom edges are
    within ``line_threshold`` of the line's most recently added member.
    """
    lines: List[List[OCRResult]] = []
    current_line: List[OCRResult] = []

    for result in sorted(results, key=lambda r: r.box.y_min):
        if not current_line:
            current_line.append(result)
            continue

        last = current_line[-1]
        if abs(result.box.y_min - last.box.y_min) < line_threshold and \
           abs(result.box.y_max - last.box.y_max) < line_threshold:
            current_line.append(result)
        else:
            lines.append(current_line)
            current_line = [result]

    if current_line:
        lines.append(current_line)

    return lines


def merge_line(line: List[OCRResult], separator: str = "    ") -> Tuple[OCRResult, List[OCRResult]]:
    """Merge one line into its leftmost member.

    Members are ordered by horizontal center, texts joined with
    ``separator``, and the leftmost box is stretched to the right edge of
    the last member.

    Returns:
        (merged result, members absorbed into it)
    """
    sorted_line = sorted(line, key=lambda r: r.box.center_x)

    merged = sorted_line[0]
    for result in sorted_line[1:]:
        merged.text += separator + result.text
        merged.box.x_max = result.box.x_max

    return merged, sorted_line[1:]


def results_to_text(results: List[OCRResult]) -> str:
    """Join merged lines into the final text block."""
    return "\n".join(r.text for r in results)
