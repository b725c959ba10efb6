"""
Configuration and constants for MathSeek.

This module provides:
- Logging configuration
- Enumerations shared across the pipeline (input types, export formats)
- Application and recognition configuration dataclasses
- Image and layout analysis constants
"""

import os
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any

from .exceptions import ConfigError, SerializationError

# ============================================================================
# Logging Configuration
# ============================================================================

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("mathseek")


# ============================================================================
# Enumerations
# ============================================================================

class InputType(Enum):
    """Classification of recognized content."""
    SINGLE_FORMULA = "SingleFormula"
    DOCUMENT = "Document"

    @classmethod
    def parse(cls, value: str) -> "InputType":
        for member in cls:
            if member.value == value:
                return member
        raise SerializationError(f"Invalid InputType: {value}")


class ExportFormat(Enum):
    """Output formats supported by the export engine."""
    LATEX = "LaTeX"
    LATEX_INLINE = "LaTeXInline"
    LATEX_BLOCK = "LaTeXBlock"
    MARKDOWN = "Markdown"
    MARKDOWN_INLINE = "MarkdownInline"
    MARKDOWN_BLOCK = "MarkdownBlock"
    DOCX = "DOCX"
    HTML = "HTML"
    PLAIN_TEXT = "PlainText"

    @classmethod
    def parse(cls, value: str) -> "ExportFormat":
        for member in cls:
            if member.value == value:
                return member
        raise SerializationError(f"Invalid ExportFormat: {value}")


class RenderEngine(Enum):
    MATHJAX = "MathJax"
    KATEX = "KaTeX"


class InlineFormat(Enum):
    DOLLAR = "Dollar"            # $...$
    PARENTHESES = "Parentheses"  # \(...\)


class BlockFormat(Enum):
    DOUBLE_DOLLAR = "DoubleDollar"  # $$...$$
    BRACKETS = "Brackets"           # \[...\]


# ============================================================================
# Constants
# ============================================================================

USER_AGENT = "MathSeek/1.0"

# Image limits
MAX_PREPROCESS_DIMENSION = 2048
MIN_DIMENSION = 50
MAX_DIMENSION = 4096
MAX_FILE_SIZE = 10 * 1024 * 1024

# Layout analysis (mean luminance per block, 0-255)
LAYOUT_BLOCK_SIZE = 50
CONTENT_THRESHOLD = 240
FORMULA_THRESHOLD = 200

# Hint sent to the remote recognizer
REMOTE_CONFIDENCE_HINT = 0.5


# ============================================================================
# Configuration Dataclasses
# ============================================================================

@dataclass
class MarkdownFormulaFormat:
    """Delimiter styles used when writing formulas into Markdown."""
    inline: InlineFormat = InlineFormat.DOLLAR
    block: BlockFormat = BlockFormat.DOUBLE_DOLLAR

    def to_dict(self) -> Dict[str, str]:
        return {"inline": self.inline.value, "block": self.block.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarkdownFormulaFormat":
        try:
            return cls(
                inline=InlineFormat(data.get("inline", InlineFormat.DOLLAR.value)),
                block=BlockFormat(data.get("block", BlockFormat.DOUBLE_DOLLAR.value)),
            )
        except ValueError as e:
            raise SerializationError(f"Invalid markdown formula format: {e}") from e


def _default_export_formats() -> Dict[InputType, ExportFormat]:
    return {
        InputType.SINGLE_FORMULA: ExportFormat.LATEX,
        InputType.DOCUMENT: ExportFormat.MARKDOWN,
    }


@dataclass
class AppConfig:
    """Application configuration supplied by the host (UI, CLI, tests)."""
    api_endpoint: str = ""
    api_key: str = ""
    default_export_format: Dict[InputType, ExportFormat] = field(
        default_factory=_default_export_formats
    )
    render_engine: RenderEngine = RenderEngine.MATHJAX
    markdown_formula_format: MarkdownFormulaFormat = field(default_factory=MarkdownFormulaFormat)

    def validate(self):
        """Raise ConfigError if the endpoint or credential is unusable."""
        if not self.api_endpoint:
            raise ConfigError("API endpoint cannot be empty")
        if not self.api_key:
            raise ConfigError("API key cannot be empty")
        if not self.api_endpoint.startswith(("http://", "https://")):
            raise ConfigError(f"API endpoint must be a valid URL: {self.api_endpoint}")

    def to_dict(self, include_sensitive: bool = True) -> Dict[str, Any]:
        return {
            "api_endpoint": self.api_endpoint,
            "api_key": self.api_key if include_sensitive else "",
            "default_export_format": {
                k.value: v.value for k, v in self.default_export_format.items()
            },
            "render_engine": self.render_engine.value,
            "markdown_formula_format": self.markdown_formula_format.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        if not isinstance(data, dict):
            raise SerializationError("Config must be a JSON object")

        formats = _default_export_formats()
        for key, value in (data.get("default_export_format") or {}).items():
            formats[InputType.parse(key)] = ExportFormat.parse(value)

        try:
            render_engine = RenderEngine(data.get("render_engine", RenderEngine.MATHJAX.value))
        except ValueError as e:
            raise SerializationError(f"Invalid render engine: {e}") from e

        return cls(
            api_endpoint=data.get("api_endpoint", ""),
            api_key=data.get("api_key", ""),
            default_export_format=formats,
            render_engine=render_engine,
            markdown_formula_format=MarkdownFormulaFormat.from_dict(
                data.get("markdown_formula_format") or {}
            ),
        )


@dataclass
class RecognitionConfig:
    """Recognition pipeline configuration."""
    confidence_threshold: float = 0.5
    preprocessing_enabled: bool = True
    auto_type_detection: bool = True
    validation_enabled: bool = True


# ============================================================================
# Default Configuration Instance
# ============================================================================

def get_config() -> AppConfig:
    """Get the default application configuration with environment overrides."""
    config = AppConfig()

    config.api_endpoint = os.environ.get("MATHSEEK_API_ENDPOINT", "").rstrip("/")
    config.api_key = os.environ.get("MATHSEEK_API_KEY", "")

    engine = os.environ.get("MATHSEEK_RENDER_ENGINE", "")
    if engine.lower() == "katex":
        config.render_engine = RenderEngine.KATEX

    return config


def resolve_endpoint(endpoint: Optional[str]) -> str:
    """Normalize an endpoint so paths can be appended directly."""
    return (endpoint or "").rstrip("/")
