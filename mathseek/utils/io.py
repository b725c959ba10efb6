"""
I/O utilities for MathSeek.

Handles:
- Image file loading
- JSON serialization
- Configuration persistence
- Text output
"""

import json
import logging
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Union, Optional, Any

import numpy as np

from ..config import AppConfig
from ..exceptions import IoError, SerializationError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp', '.webp')


# ============================================================================
# Image Loading
# ============================================================================

def load_image_bytes(image_path: Union[str, Path]) -> bytes:
    """
    Read an encoded image file.

    The bytes are returned undecoded; the recognition pipeline validates
    them itself.

    Raises:
        IoError: If the file doesn't exist or cannot be read
    """
    image_path = Path(image_path)
    if not image_path.is_file():
        raise IoError(f"Image file not found: {image_path}")

    if image_path.suffix.lower() not in IMAGE_EXTENSIONS:
        logger.warning(f"Unrecognized image extension: {image_path.suffix}")

    try:
        data = image_path.read_bytes()
    except OSError as e:
        raise IoError(f"Failed to read image {image_path}: {e}") from e

    logger.debug(f"Loaded image: {image_path} ({len(data)} bytes)")
    return data


# ============================================================================
# JSON Serialization
# ============================================================================

class EnhancedJSONEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy values, enums and dataclasses."""

    def default(self, obj):
        if hasattr(obj, 'to_dict'):
            return obj.to_dict()
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, np.integer):
            return int(obj)
        if isinstance(obj, np.floating):
            return float(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, '__dataclass_fields__'):
            return asdict(obj)
        if isinstance(obj, Path):
            return str(obj)
        return super().default(obj)


def save_json(
    data: Any,
    output_path: Union[str, Path],
    indent: int = 2,
    ensure_ascii: bool = False
) -> Path:
    """
    Save data to a JSON file.

    Args:
        data: Data to serialize (dict, list, dataclass, etc.)
        output_path: Path to save the JSON file
        indent: Indentation level for pretty printing
        ensure_ascii: If True, escape non-ASCII characters

    Returns:
        Path to the saved file
    """
    output_path = Path(output_path)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=indent, ensure_ascii=ensure_ascii, cls=EnhancedJSONEncoder)
    except OSError as e:
        raise IoError(f"Failed to write JSON {output_path}: {e}") from e
    except TypeError as e:
        raise SerializationError(f"Failed to serialize data: {e}") from e

    logger.debug(f"Saved JSON: {output_path}")
    return output_path


def load_json(json_path: Union[str, Path]) -> Any:
    """Load data from a JSON file."""
    json_path = Path(json_path)
    if not json_path.exists():
        raise IoError(f"JSON file not found: {json_path}")

    try:
        with open(json_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except OSError as e:
        raise IoError(f"Failed to read JSON {json_path}: {e}") from e
    except ValueError as e:
        raise SerializationError(f"Invalid JSON in {json_path}: {e}") from e


def save_text(content: str, output_path: Union[str, Path]) -> Path:
    """Write text to a UTF-8 file, creating parent directories."""
    output_path = Path(output_path)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding='utf-8')
    except OSError as e:
        raise IoError(f"Failed to write file {output_path}: {e}") from e

    logger.debug(f"Saved text: {output_path}")
    return output_path


# ============================================================================
# Configuration Persistence
# ============================================================================

def save_config(
    config: AppConfig,
    config_path: Union[str, Path],
    include_sensitive: bool = False
) -> Path:
    """
    Persist an AppConfig as JSON.

    The API key is written only when include_sensitive is set.
    """
    path = save_json(config.to_dict(include_sensitive=include_sensitive), config_path)
    logger.info(f"Saved configuration: {path}")
    return path


def load_config(config_path: Union[str, Path]) -> Optional[AppConfig]:
    """
    Load an AppConfig from JSON.

    Returns:
        The configuration, or None if the file does not exist

    Raises:
        SerializationError: If the file is not a valid configuration
    """
    config_path = Path(config_path)
    if not config_path.exists():
        logger.debug(f"No configuration file at {config_path}")
        return None

    return AppConfig.from_dict(load_json(config_path))
