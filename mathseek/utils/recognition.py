"""
Recognition pipeline.

Provides:
- RecognitionEngine: validate -> check -> preprocess -> classify ->
  dispatch -> post-validate -> confidence gate
- LaTeX syntax scan used by post-validation
- Recognition statistics for the host UI

Each step either passes its output on or raises a typed error; no step
returns a partial result.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Optional, Tuple, Dict, Any

from ..config import AppConfig, RecognitionConfig, InputType
from ..exceptions import ApiError, ImageError
from . import images
from . import layout as layout_analysis
from .api_client import ApiClient
from .models import (
    RecognitionResult,
    DocumentContent,
    DocumentSection,
    ImageLayout,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_HEADING = "Recognized content"


# ============================================================================
# LaTeX Syntax Validation
# ============================================================================

def validate_latex_syntax(latex: str) -> Tuple[bool, str]:
    """
    Validate LaTeX syntax.

    Braces must never close more than they opened and must balance at the
    end; every ``$`` toggles math mode, which must end closed.

    Args:
        latex: LaTeX string

    Returns:
        Tuple of (is_valid, error_message)
    """
    brace_count = 0
    in_math_mode = False

    for char in latex.strip():
        if char == '{':
            brace_count += 1
        elif char == '}':
            brace_count -= 1
            if brace_count < 0:
                return False, "Unbalanced braces"
        elif char == '$':
            in_math_mode = not in_math_mode

    if brace_count != 0:
        return False, "Unbalanced braces"

    if in_math_mode:
        return False, "Unclosed math mode"

    return True, ""


# ============================================================================
# Recognition Engine
# ============================================================================

@dataclass
class RecognitionStats:
    """Recognition configuration snapshot reported to the host."""
    threshold: float
    preprocessing_enabled: bool
    auto_detect: bool
    validation_enabled: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class RecognitionEngine:
    """
    Orchestrates a recognition call.

    Coordinates:
    - Image validation and preprocessing
    - Input type detection
    - Remote recognition
    - Result validation and confidence gating
    """

    def __init__(
        self,
        app_config: AppConfig,
        config: Optional[RecognitionConfig] = None,
        api_client: Optional[ApiClient] = None
    ):
        self.app_config = app_config
        self.config = config or RecognitionConfig()
        self.api_client = api_client or ApiClient.from_app_config(app_config)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def recognize(
        self,
        image_data: bytes,
        input_type: Optional[InputType] = None
    ) -> RecognitionResult:
        """
        Recognize mathematical content from image data.

        Args:
            image_data: Encoded image bytes
            input_type: Optional caller hint; detected when omitted

        Returns:
            Validated RecognitionResult

        Raises:
            ImageError: Invalid or unsuitable image
            ApiError: Rejected, malformed or low-confidence result
            NetworkError: Transport failure after retries
        """
        # Snapshot so a concurrent reconfiguration does not affect this call
        config = self.config
        client = self.api_client

        # Step 1: Validate image data
        if not images.validate_image(image_data):
            raise ImageError("Invalid image data provided")

        # Step 2: Suitability
        if not images.is_suitable_for_processing(image_data):
            raise ImageError(
                "Image is not suitable for processing (too small, too large, or poor quality)"
            )

        # Step 3: Preprocess
        if config.preprocessing_enabled:
            processed = images.preprocess_image(image_data)
        else:
            processed = image_data

        # Step 4: Classify
        detected_type = self._resolve_input_type(processed, input_type, config)

        # Step 5: Dispatch
        if detected_type == InputType.SINGLE_FORMULA:
            result = self._recognize_single_formula(client, processed)
        else:
            result = self._recognize_document(client, processed)

        # Step 6: Post-validate
        if config.validation_enabled:
            self.validate_result(result)

        # Step 7: Confidence gate
        if result.confidence < config.confidence_threshold:
            raise ApiError(
                f"Recognition confidence ({result.confidence:.2f}) below "
                f"threshold ({config.confidence_threshold:.2f})"
            )

        logger.info(
            f"Recognized {result.input_type.value} "
            f"(confidence={result.confidence:.2f}, formulas={result.formula_count})"
        )
        return result

    def re_recognize(
        self,
        image_data: bytes,
        forced_type: InputType
    ) -> RecognitionResult:
        """Re-run recognition with the input type forced."""
        return self.recognize(image_data, forced_type)

    def get_stats(self) -> RecognitionStats:
        return RecognitionStats(
            threshold=self.config.confidence_threshold,
            preprocessing_enabled=self.config.preprocessing_enabled,
            auto_detect=self.config.auto_type_detection,
            validation_enabled=self.config.validation_enabled,
        )

    def update_config(self, config: RecognitionConfig):
        self.config = config

    def update_app_config(self, app_config: AppConfig):
        """Rebuild the API client for new credentials or endpoint."""
        old_client = self.api_client
        self.api_client = ApiClient.from_app_config(app_config)
        self.app_config = app_config
        old_client.close()

    def close(self):
        """Release the API client's HTTP session."""
        self.api_client.close()

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _resolve_input_type(
        self,
        image_data: bytes,
        hint: Optional[InputType],
        config: RecognitionConfig
    ) -> InputType:
        if hint is not None:
            return hint
        if config.auto_type_detection:
            return layout_analysis.classify_input_type(image_data)
        return InputType.SINGLE_FORMULA

    def _recognize_single_formula(
        self,
        client: ApiClient,
        image_data: bytes
    ) -> RecognitionResult:
        result = client.recognize_image(image_data, InputType.SINGLE_FORMULA)

        if not result.is_document:
            return result

        logger.debug("Remote returned a document for a single formula request")
        latex = extract_single_formula(result.content)
        return RecognitionResult.single_formula(latex, result.confidence)

    def _recognize_document(
        self,
        client: ApiClient,
        image_data: bytes
    ) -> RecognitionResult:
        layout = layout_analysis.analyze_layout(image_data)
        result = client.recognize_image(image_data, InputType.DOCUMENT)

        if result.is_document:
            enhance_document_with_layout(result.content, layout)

        return result

    def validate_result(self, result: RecognitionResult):
        """
        Validate and correct a recognition result in place.

        Out-of-range confidence is clamped into [0, 1]; every other
        violation raises ApiError.
        """
        if result.confidence > 1.0:
            logger.warning(f"Clamping confidence {result.confidence} to 1.0")
            result.confidence = 1.0
        elif result.confidence < 0.0:
            logger.warning(f"Clamping confidence {result.confidence} to 0.0")
            result.confidence = 0.0

        result.validate()

        if result.is_document:
            self._validate_document_content(result.content)
        else:
            self._validate_single_formula(result.content)

    def _validate_single_formula(self, latex: str):
        if not latex.strip():
            raise ApiError("Empty formula content")

        valid, message = validate_latex_syntax(latex)
        if not valid:
            raise ApiError(f"Invalid LaTeX syntax detected ({message}): {latex}")

    def _validate_document_content(self, document: DocumentContent):
        document.validate()

        for section in document.sections:
            for formula in section.formulas:
                valid, message = validate_latex_syntax(formula.latex)
                if not valid:
                    raise ApiError(
                        f"Invalid LaTeX syntax in formula ({message}): {formula.latex}"
                    )


# ============================================================================
# Document Helpers
# ============================================================================

def extract_single_formula(document: DocumentContent) -> str:
    """
    Pull one formula out of a document.

    Takes the first fragment of the first section that has one; a section
    whose text starts with ``$`` or ``\\[`` counts as a formula and is used
    verbatim.

    Raises:
        ApiError: If no formula is found
    """
    for section in document.sections:
        if section.formulas:
            return section.formulas[0].latex

        stripped = section.text.strip()
        if stripped.startswith('$') or stripped.startswith('\\['):
            return section.text

    raise ApiError("No formula found in document")


def enhance_document_with_layout(document: DocumentContent, layout: ImageLayout):
    """Record layout findings on the document's first section."""
    if not document.sections:
        document.add_section(DocumentSection(heading=PLACEHOLDER_HEADING))

    region_info = (
        f"Detected {len(layout.formula_regions)} formula regions and "
        f"{len(layout.text_regions)} text regions"
    )

    first_section = document.sections[0]
    if not first_section.text:
        first_section.text = region_info
