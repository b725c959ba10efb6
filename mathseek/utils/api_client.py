"""
Remote recognition client.

Provides:
- Image to LaTeX/document recognition through the remote service
- Formula analysis
- Bounded retry with linear backoff
- Mapping of raw JSON envelopes into typed results
"""

import base64
import logging
import time
from dataclasses import dataclass, replace
from typing import Dict, Any, Optional

import requests

from ..config import (
    AppConfig,
    InputType,
    USER_AGENT,
    REMOTE_CONFIDENCE_HINT,
    resolve_endpoint,
)
from ..exceptions import (
    MathSeekError,
    ApiError,
    ConfigError,
    NetworkError,
    SerializationError,
    is_retryable,
)
from .models import (
    RecognitionResult,
    AnalysisResult,
    DocumentContent,
    DocumentSection,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Configuration
# ============================================================================

@dataclass(frozen=True)
class ApiConfig:
    """Connection settings for the remote service."""
    endpoint: str = ""
    api_key: str = ""
    timeout_seconds: float = 30
    max_retries: int = 3
    retry_delay_ms: int = 1000

    @classmethod
    def from_app_config(cls, app_config: AppConfig, **overrides) -> "ApiConfig":
        config = cls(
            endpoint=resolve_endpoint(app_config.api_endpoint),
            api_key=app_config.api_key,
        )
        return replace(config, **overrides) if overrides else config


# ============================================================================
# API Client
# ============================================================================

class ApiClient:
    """
    HTTP client for the remote recognition service.

    The client holds no per-call state. Its configuration is immutable;
    use with_config() to obtain a reconfigured client.
    """

    def __init__(
        self,
        config: ApiConfig,
        session: Optional[requests.Session] = None
    ):
        self.config = config
        self.session = session if session is not None else self._build_session()

    @classmethod
    def from_app_config(cls, app_config: AppConfig) -> "ApiClient":
        return cls(ApiConfig.from_app_config(app_config))

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": USER_AGENT})
        return session

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def close(self):
        self.session.close()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def test_connection(self) -> bool:
        """
        Probe the service health endpoint with the configured credential.

        Returns:
            True if the service answered with a 2xx status

        Raises:
            ConfigError: If endpoint or API key is not configured
            NetworkError: If the service could not be reached
        """
        if not self.config.endpoint or not self.config.api_key:
            raise ConfigError("API endpoint or key not configured")

        url = f"{self.config.endpoint}/health"

        try:
            response = self.session.get(
                url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                timeout=self.config.timeout_seconds
            )
        except requests.exceptions.Timeout as e:
            raise NetworkError("Request timeout") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed: {e}") from e

        ok = 200 <= response.status_code < 300
        logger.info(f"Health check {url}: {response.status_code}")
        return ok

    def recognize_image(
        self,
        image_data: bytes,
        input_type: InputType
    ) -> RecognitionResult:
        """
        Recognize mathematical content from image data.

        Args:
            image_data: Encoded image bytes
            input_type: Whether to ask for a single formula or a document

        Returns:
            Validated RecognitionResult
        """
        payload = {
            "image_data": base64.b64encode(image_data).decode('utf-8'),
            "input_type": input_type.value,
            "options": {
                "output_format": "latex",
                "confidence_threshold": REMOTE_CONFIDENCE_HINT,
            },
        }

        logger.info(f"Requesting {input_type.value} recognition ({len(image_data)} bytes)")
        body = self._request_with_retry("/recognize", payload)
        return self._parse_recognition_response(body, input_type)

    def analyze_formula(self, formula: str) -> AnalysisResult:
        """Ask the service for the type, description and usage of a formula."""
        payload = {
            "formula": formula,
            "analysis_type": "comprehensive",
        }

        body = self._request_with_retry("/analyze", payload)
        return self._parse_analysis_response(body)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request_with_retry(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST a payload, retrying transient failures.

        Attempt n (1-based) is preceded by a sleep of
        retry_delay_ms * (n - 1). Errors that is_retryable() rejects end
        the loop at once. The last error is raised when attempts run out.
        """
        last_error: Optional[MathSeekError] = None
        max_attempts = self.config.max_retries

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                delay_ms = self.config.retry_delay_ms * (attempt - 1)
                logger.warning(f"Retrying {path} in {delay_ms}ms (attempt {attempt}/{max_attempts})")
                time.sleep(delay_ms / 1000.0)

            try:
                return self._single_request(path, payload)
            except MathSeekError as e:
                last_error = e
                if not is_retryable(e):
                    logger.error(f"{path} failed with non-retryable error: {e}")
                    break
                logger.warning(f"{path} attempt {attempt}/{max_attempts} failed: {e}")

        if last_error is None:
            raise NetworkError("Max retries exceeded")
        raise last_error

    def _single_request(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Make a single POST request and unwrap the success envelope."""
        url = f"{self.config.endpoint}{path}"

        try:
            response = self.session.post(
                url,
                headers=self._headers(),
                json=payload,
                timeout=self.config.timeout_seconds
            )
        except requests.exceptions.Timeout as e:
            raise NetworkError("Request timeout") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ApiError(
                f"API request failed with status: {response.status_code} - {response.text}",
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SerializationError(f"Failed to parse response: {e}") from e

        if not isinstance(body, dict):
            raise SerializationError("Failed to parse response: expected a JSON object")

        if not body.get("success"):
            raise ApiError(body.get("error") or "Unknown API error")

        return body

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    def _parse_recognition_response(
        self,
        body: Dict[str, Any],
        input_type: InputType
    ) -> RecognitionResult:
        """Map a recognition envelope into a validated RecognitionResult."""
        latex = body.get("latex")
        if latex is None:
            raise ApiError("No LaTeX content in response")
        if not isinstance(latex, str):
            raise SerializationError("LaTeX content must be a string")

        confidence = body.get("confidence")
        try:
            confidence = float(confidence) if confidence is not None else 0.0
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Invalid confidence value: {confidence!r}") from e

        if input_type == InputType.SINGLE_FORMULA:
            result = RecognitionResult.single_formula(latex, confidence)
        else:
            document = self._parse_document_content(body.get("content"), latex)
            result = RecognitionResult.document(latex, confidence, document)

        result.validate()
        return result

    def _parse_document_content(
        self,
        content: Optional[Any],
        latex: str
    ) -> DocumentContent:
        """Decode structured content, falling back to a single-section document."""
        if content is not None:
            try:
                return DocumentContent.from_dict(content)
            except SerializationError as e:
                logger.warning(f"Could not decode document content, using fallback: {e}")

        document = DocumentContent()
        document.add_section(DocumentSection(heading=None, text=latex))
        return document

    def _parse_analysis_response(self, body: Dict[str, Any]) -> AnalysisResult:
        examples = body.get("examples") or []
        if not isinstance(examples, list):
            raise SerializationError("Analysis examples must be a list")

        return AnalysisResult(
            formula_type=body.get("formula_type") or "Unknown",
            description=body.get("description") or "No description available",
            usage=body.get("usage") or "No usage information available",
            examples=[str(e) for e in examples],
        )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def with_config(self, config: ApiConfig) -> "ApiClient":
        """
        Build a new client for a new configuration.

        The current client is left untouched so calls already running on it
        keep their configuration.
        """
        if not config.endpoint:
            raise ConfigError("API endpoint cannot be empty")
        if not config.api_key:
            raise ConfigError("API key cannot be empty")

        return ApiClient(config)

    def get_config_info(self) -> Dict[str, Any]:
        """Current configuration without the credential."""
        return {
            "endpoint": self.config.endpoint,
            "timeout_seconds": self.config.timeout_seconds,
            "max_retries": self.config.max_retries,
            "retry_delay_ms": self.config.retry_delay_ms,
            "has_api_key": bool(self.config.api_key),
        }
