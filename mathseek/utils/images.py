"""
Image utilities for the recognition pipeline.

Provides:
- Decoding and validation of raw image bytes
- Preprocessing (grayscale, size cap, lossless re-encode)
- Suitability checks before sending to the remote recognizer
- Base64 conversion helpers
- Debug visualization of layout regions
"""

import base64
import binascii
import logging
from typing import Tuple, Optional, List, Dict, Any
import numpy as np

from ..config import (
    MAX_PREPROCESS_DIMENSION,
    MIN_DIMENSION,
    MAX_DIMENSION,
    MAX_FILE_SIZE,
)
from ..exceptions import ImageError

logger = logging.getLogger(__name__)

DATA_URL_PREFIX = "data:image/png;base64,"


# ============================================================================
# Decoding
# ============================================================================

def decode_image(data: bytes, grayscale: bool = False) -> np.ndarray:
    """
    Decode raw image bytes into a numpy array.

    Args:
        data: Encoded image (PNG, JPEG, BMP, TIFF, ...)
        grayscale: If True, decode as single-channel grayscale

    Returns:
        Numpy array (BGR if color)

    Raises:
        ImageError: If the bytes are empty or cannot be decoded
    """
    import cv2

    if not data:
        raise ImageError("Image data is empty")

    buffer = np.frombuffer(data, dtype=np.uint8)
    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR

    try:
        img = cv2.imdecode(buffer, flag)
    except cv2.error as e:
        raise ImageError(f"Failed to load image: {e}") from e

    if img is None:
        raise ImageError("Failed to load image: unsupported or corrupt data")

    return img


def encode_png(image: np.ndarray) -> bytes:
    """Encode an image losslessly as PNG."""
    import cv2

    try:
        ok, buffer = cv2.imencode('.png', image)
    except cv2.error as e:
        raise ImageError(f"Failed to encode processed image: {e}") from e

    if not ok:
        raise ImageError("Failed to encode processed image")

    return buffer.tobytes()


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """
    Convert image to grayscale if it's color.

    Args:
        image: Input image (BGR or grayscale)

    Returns:
        Grayscale image
    """
    import cv2

    if len(image.shape) == 2:
        return image
    elif len(image.shape) == 3:
        if image.shape[2] == 3:
            return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        elif image.shape[2] == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
        elif image.shape[2] == 1:
            return image.squeeze(axis=2)

    raise ImageError(f"Unexpected image shape: {image.shape}")


# ============================================================================
# Validation
# ============================================================================

def validate_image(data: bytes) -> bool:
    """Check that the data is a decodable raster image."""
    if not data:
        return False

    try:
        decode_image(data)
    except ImageError:
        return False

    return True


def get_image_dimensions(data: bytes) -> Tuple[int, int]:
    """Return (width, height) of an encoded image."""
    img = decode_image(data)
    h, w = img.shape[:2]
    return w, h


def is_suitable_for_processing(data: bytes) -> bool:
    """
    Check if an image is suitable for recognition.

    Rejects images smaller than 50x50, larger than 4096x4096 or
    heavier than 10 MiB.

    Raises:
        ImageError: If the image cannot be decoded
    """
    width, height = get_image_dimensions(data)

    if width < MIN_DIMENSION or height < MIN_DIMENSION:
        logger.debug(f"Image too small: {width}x{height}")
        return False

    if width > MAX_DIMENSION or height > MAX_DIMENSION:
        logger.debug(f"Image too large: {width}x{height}")
        return False

    if len(data) > MAX_FILE_SIZE:
        logger.debug(f"Image file too large: {len(data)} bytes")
        return False

    return True


def get_image_info(data: bytes) -> Dict[str, Any]:
    """Summarize an image for display."""
    width, height = get_image_dimensions(data)
    return {
        "width": width,
        "height": height,
        "size": len(data),
        "is_suitable": is_suitable_for_processing(data),
    }


# ============================================================================
# Preprocessing
# ============================================================================

def limit_size(
    image: np.ndarray,
    max_dimension: int = MAX_PREPROCESS_DIMENSION
) -> np.ndarray:
    """
    Downsample an image so neither side exceeds max_dimension.

    Aspect ratio is preserved. Images already within bounds are returned
    unchanged.
    """
    import cv2

    h, w = image.shape[:2]
    if w <= max_dimension and h <= max_dimension:
        return image

    scale = min(max_dimension / w, max_dimension / h)
    new_width = max(1, int(round(w * scale)))
    new_height = max(1, int(round(h * scale)))

    resized = cv2.resize(image, (new_width, new_height), interpolation=cv2.INTER_LANCZOS4)

    logger.debug(f"Resized image: {(h, w)} -> {resized.shape[:2]} (scale={scale:.3f})")
    return resized


def preprocess_image(data: bytes) -> bytes:
    """
    Prepare an image for remote recognition.

    Decodes, converts to grayscale, caps the size at 2048px per side and
    re-encodes as PNG.

    Args:
        data: Encoded input image

    Returns:
        PNG-encoded grayscale image

    Raises:
        ImageError: On decode or encode failure
    """
    img = decode_image(data)
    original_shape = img.shape[:2]

    gray = to_grayscale(img)
    processed = limit_size(gray)

    encoded = encode_png(processed)
    logger.info(
        f"Preprocessed image: {original_shape} -> {processed.shape[:2]}, "
        f"{len(data)} -> {len(encoded)} bytes"
    )
    return encoded


# ============================================================================
# Base64 Conversion
# ============================================================================

def image_to_base64(data: bytes) -> str:
    """Convert image bytes to a data URL for display."""
    if not validate_image(data):
        raise ImageError("Invalid image data")

    return DATA_URL_PREFIX + base64.b64encode(data).decode('utf-8')


def base64_to_image(b64_string: str) -> bytes:
    """Convert a base64 string (optionally a data URL) back to bytes."""
    if b64_string.startswith("data:image/"):
        _, _, b64_string = b64_string.partition(",")

    try:
        return base64.b64decode(b64_string, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageError(f"Failed to decode base64: {e}") from e


# ============================================================================
# Debug Visualization
# ============================================================================

def draw_debug_image(
    image: np.ndarray,
    boxes: List[Tuple[int, int, int, int]],
    labels: Optional[List[str]] = None,
    colors: Optional[List[Tuple[int, int, int]]] = None,
    line_width: int = 2
) -> np.ndarray:
    """
    Draw bounding boxes on image for debugging.

    Args:
        image: Input image
        boxes: List of (x, y, width, height) tuples
        labels: Optional labels for each box
        colors: Optional colors for each box (BGR)
        line_width: Line thickness

    Returns:
        Image with drawn boxes
    """
    import cv2

    # Convert grayscale to color for visualization
    if len(image.shape) == 2:
        debug_img = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    else:
        debug_img = image.copy()

    default_color = (0, 0, 255)

    for i, box in enumerate(boxes):
        x, y, w, h = box
        color = colors[i] if colors and i < len(colors) else default_color

        cv2.rectangle(debug_img, (x, y), (x + w - 1, y + h - 1), color, line_width)

        if labels and i < len(labels):
            cv2.putText(
                debug_img,
                labels[i],
                (x + 2, y + 12),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.4,
                color,
                1
            )

    return debug_img
