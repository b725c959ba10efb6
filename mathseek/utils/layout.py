"""
Layout analysis for input-type classification.

Provides:
- Block-based density analysis (formula-like vs text-like regions)
- Single formula / document classification
- Detection confidence estimate
- Debug rendering of detected regions

This is a coarse luminance heuristic, not OCR. It only seeds the
input-type decision and is deterministic for identical pixel data.
"""

import logging
from typing import List, Tuple
import numpy as np

from ..config import (
    InputType,
    LAYOUT_BLOCK_SIZE,
    CONTENT_THRESHOLD,
    FORMULA_THRESHOLD,
)
from .images import decode_image, draw_debug_image
from .models import ImageLayout, Region

logger = logging.getLogger(__name__)


# ============================================================================
# Block Analysis
# ============================================================================

def iter_blocks(
    gray: np.ndarray,
    block_size: int = LAYOUT_BLOCK_SIZE
):
    """
    Yield (region, mean_luminance) for each block of a grayscale image.

    Blocks are scanned row by row; edge blocks are clipped to the image.
    The mean is the integer floor of the pixel average.
    """
    height, width = gray.shape[:2]

    for y in range(0, height, block_size):
        for x in range(0, width, block_size):
            block = gray[y:y + block_size, x:x + block_size]
            block_height, block_width = block.shape[:2]
            mean = int(block.sum(dtype=np.uint64)) // block.size
            yield Region(x, y, block_width, block_height), mean


def classify_blocks(
    gray: np.ndarray,
    block_size: int = LAYOUT_BLOCK_SIZE,
    content_threshold: int = CONTENT_THRESHOLD,
    formula_threshold: int = FORMULA_THRESHOLD
) -> Tuple[List[Region], List[Region]]:
    """
    Split content blocks into formula-like and text-like regions.

    A block whose mean luminance is below content_threshold holds content;
    darker blocks (below formula_threshold) are treated as formula-like,
    the rest as text-like.

    Returns:
        Tuple of (formula_regions, text_regions)
    """
    formula_regions = []
    text_regions = []

    for region, mean in iter_blocks(gray, block_size):
        if mean >= content_threshold:
            continue
        if mean < formula_threshold:
            formula_regions.append(region)
        else:
            text_regions.append(region)

    return formula_regions, text_regions


def analyze_layout(data: bytes) -> ImageLayout:
    """
    Analyze image layout to detect formula and text regions.

    Args:
        data: Encoded image bytes

    Returns:
        ImageLayout with region lists and summary flags

    Raises:
        ImageError: If the image cannot be decoded
    """
    gray = decode_image(data, grayscale=True)
    formula_regions, text_regions = classify_blocks(gray)

    layout = ImageLayout(
        has_multiple_formulas=len(formula_regions) > 1,
        has_text_content=len(text_regions) > 0,
        formula_regions=formula_regions,
        text_regions=text_regions,
    )

    logger.debug(
        f"Layout: {len(formula_regions)} formula regions, "
        f"{len(text_regions)} text regions"
    )
    return layout


def classify_input_type(data: bytes) -> InputType:
    """
    Detect whether an image holds a single formula or a document.

    Multiple formula regions or any text region means a document.
    """
    layout = analyze_layout(data)

    if layout.has_multiple_formulas or layout.has_text_content:
        input_type = InputType.DOCUMENT
    else:
        input_type = InputType.SINGLE_FORMULA

    logger.info(f"Detected input type: {input_type.value}")
    return input_type


def detection_confidence(layout: ImageLayout) -> float:
    """Estimate how confident the layout-based classification is."""
    confidence = 0.5

    if layout.has_multiple_formulas:
        confidence += 0.3
    if layout.has_text_content:
        confidence += 0.2
    if layout.total_regions > 3:
        confidence += 0.1

    return min(max(confidence, 0.0), 1.0)


# ============================================================================
# Debug Visualization
# ============================================================================

def draw_layout_debug(data: bytes, layout: ImageLayout) -> np.ndarray:
    """Render formula regions in red and text regions in green."""
    image = decode_image(data)

    boxes = [r.to_xywh() for r in layout.formula_regions]
    boxes += [r.to_xywh() for r in layout.text_regions]

    labels = ["formula"] * len(layout.formula_regions)
    labels += ["text"] * len(layout.text_regions)

    colors = [(0, 0, 255)] * len(layout.formula_regions)
    colors += [(0, 255, 0)] * len(layout.text_regions)

    return draw_debug_image(image, boxes, labels=labels, colors=colors, line_width=1)
