"""
Preview image generator: draws merged line boxes and their text over the
original capture.
"""

from typing import List, Optional

from PIL import Image, ImageDraw, ImageFont

from .libs.onnx_ocr import OCRResult


_BOX_COLOR = (56, 142, 60)      # green
_LABEL_COLOR = (41, 98, 255)    # blue

# Fill opacity (0-255)
_FILL_ALPHA = 40
# Border width in pixels
_BORDER_WIDTH = 2
# Max chars of recognized text drawn per line
_MAX_CONTENT_CHARS = 60


def _truncate(text: str, max_chars: int = _MAX_CONTENT_CHARS) -> str:
    """Truncate text and add ellipsis if too long."""
    text = text.replace("\n", " ").strip()
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


def _load_font(size: int):
    """Try to load a font with wide glyph coverage; fall back to the default bitmap font."""
    candidates = [
        "/System/Library/Fonts/PingFang.ttc",
        "/System/Library/Fonts/Helvetica.ttc",
        "C:/Windows/Fonts/msyh.ttc",
        "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    ]
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()


def draw_results(
    image: Image.Image,
    results: List[OCRResult],
    font_size: int = 14,
) -> Image.Image:
    """Draw boxes and a text label for each result.

    Returns a new RGB image; ``image`` is not modified.
    """
    base = image.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = _load_font(font_size)

    for result in results:
        x1, y1, x2, y2 = result.box.to_list()

        draw.rectangle([x1, y1, x2, y2], fill=(*_BOX_COLOR, _FILL_ALPHA))
        for i in range(_BORDER_WIDTH):
            draw.rectangle([x1 - i, y1 - i, x2 + i, y2 + i], outline=(*_BOX_COLOR, 220))

        label = f"{_truncate(result.text)} ({result.confidence:.0%})"
        lbox = draw.textbbox((0, 0), label, font=font)
        lw, lh = lbox[2] - lbox[0], lbox[3] - lbox[1]

        # Above the box when there is room, otherwise below it
        label_y = y1 - lh - 6 if y1 - lh - 6 >= 0 else y2 + 2
        draw.rectangle([x1, label_y, x1 + lw + 6, label_y + lh + 4], fill=(*_LABEL_COLOR, 180))
        draw.text((x1 + 3, label_y + 1), label, fill=(255, 255, 255, 240), font=font)

    return Image.alpha_composite(base, overlay).convert("RGB")


def generate_preview(
    image: Image.Image,
    results: List[OCRResult],
    output_path: str,
    verbose: bool = False,
    font_size: Optional[int] = None,
) -> None:
    """Save an annotated copy of ``image`` to ``output_path``.

    Args:
        image: The image that was recognized
        results: Results returned by ``ScreenOCR.perform_ocr``
        output_path: Destination file; format follows the extension
        verbose: Print progress info
        font_size: Label font size (default 14)
    """
    if verbose:
        print(f"  Annotating {len(results)} lines...")

    annotated = draw_results(image, results, font_size or 14)
    annotated.save(output_path)

    if verbose:
        print(f"  Preview saved to: {output_path}")
