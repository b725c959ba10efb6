"""
Utility modules for MathSeek.
"""

from .io import load_image_bytes, save_json, load_json, save_config, load_config
from .images import preprocess_image, validate_image, is_suitable_for_processing
from .layout import analyze_layout, classify_input_type
from .models import (
    FormulaFragment, DocumentSection, DocumentContent,
    RecognitionResult, AnalysisResult, ImageLayout,
)
from .api_client import ApiClient, ApiConfig
from .recognition import RecognitionEngine, validate_latex_syntax
from .export import ExportManager, ExportConfig, ExportResult

__all__ = [
    # IO
    "load_image_bytes", "save_json", "load_json", "save_config", "load_config",
    # Images
    "preprocess_image", "validate_image", "is_suitable_for_processing",
    # Layout
    "analyze_layout", "classify_input_type",
    # Models
    "FormulaFragment", "DocumentSection", "DocumentContent",
    "RecognitionResult", "AnalysisResult", "ImageLayout",
    # Recognition
    "ApiClient", "ApiConfig", "RecognitionEngine", "validate_latex_syntax",
    # Export
    "ExportManager", "ExportConfig", "ExportResult",
]
