"""
Tests for the recognition data model.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))


class TestFormulaFragment:
    """Test FormulaFragment decoding."""

    def test_from_dict(self):
        """Test fragment decoding."""
        from mathseek.utils.models import FormulaFragment

        frag = FormulaFragment.from_dict({"latex": "x", "position": 3, "is_inline": False})

        assert frag == FormulaFragment("x", 3, False)

    @pytest.mark.parametrize("data", [
        {"latex": "x", "position": -1, "is_inline": True},
        {"latex": "x", "position": "3", "is_inline": True},
        {"latex": "x", "position": True, "is_inline": True},
        {"latex": 5, "position": 0, "is_inline": True},
        {"latex": "x", "position": 0},
        {"latex": "x", "position": 0, "is_inline": "yes"},
    ])
    def test_from_dict_rejects(self, data):
        """Test malformed fragments are rejected."""
        from mathseek.utils.models import FormulaFragment
        from mathseek.exceptions import SerializationError

        with pytest.raises(SerializationError):
            FormulaFragment.from_dict(data)


class TestDocument:
    """Test DocumentSection and DocumentContent."""

    def test_section_requires_content(self):
        """Test an empty section is invalid."""
        from mathseek.utils.models import DocumentSection
        from mathseek.exceptions import ApiError

        with pytest.raises(ApiError, match="Section must have either text or formulas"):
            DocumentSection(heading="Empty").validate()

    def test_section_with_only_formulas_is_valid(self):
        """Test a section with only formulas is valid."""
        from mathseek.utils.models import DocumentSection, FormulaFragment

        DocumentSection(formulas=[FormulaFragment("x", 0)]).validate()

    def test_section_fragment_offset(self):
        """Test fragment offsets must fall within the section text."""
        from mathseek.utils.models import DocumentSection, FormulaFragment
        from mathseek.exceptions import ApiError

        DocumentSection(text="ab", formulas=[FormulaFragment("x", 2)]).validate()

        with pytest.raises(ApiError, match="Formula offset 3 is outside section text of length 2: y"):
            DocumentSection(text="ab", formulas=[FormulaFragment("y", 3)]).validate()

    def test_document_requires_sections(self):
        """Test a document needs a section."""
        from mathseek.utils.models import DocumentContent
        from mathseek.exceptions import ApiError

        with pytest.raises(ApiError):
            DocumentContent(title="Untitled").validate()

    def test_formula_count(self):
        """Test formulas are counted across sections."""
        from mathseek.utils.models import DocumentContent, DocumentSection, FormulaFragment

        doc = DocumentContent()
        doc.add_section(DocumentSection(text="a", formulas=[FormulaFragment("x", 0)]))
        doc.add_section(DocumentSection(text="b", formulas=[FormulaFragment("y", 0), FormulaFragment("z", 1)]))

        assert doc.formula_count == 3

    def test_from_dict_nested(self):
        """Test nested document decoding."""
        from mathseek.utils.models import DocumentContent

        doc = DocumentContent.from_dict({
            "title": None,
            "sections": [{"heading": "H", "text": "t", "formulas": []}],
        })

        assert doc.title is None
        assert doc.sections[0].heading == "H"

    def test_from_dict_bad_sections(self):
        """Test malformed sections are rejected."""
        from mathseek.utils.models import DocumentContent
        from mathseek.exceptions import SerializationError

        with pytest.raises(SerializationError):
            DocumentContent.from_dict({"title": "T", "sections": "nope"})


class TestRecognitionResult:
    """Test RecognitionResult invariants and serialization."""

    def test_single_formula_constructor(self):
        """Test the single formula constructor."""
        from mathseek.utils.models import RecognitionResult
        from mathseek.config import InputType

        result = RecognitionResult.single_formula("x^2", 0.9)

        assert result.input_type == InputType.SINGLE_FORMULA
        assert result.content == "x^2"
        assert result.formula_count == 1
        assert not result.is_document
        assert result.timestamp > 0
        result.validate()

    def test_empty_latex(self):
        """Test empty LaTeX is invalid."""
        from mathseek.utils.models import RecognitionResult
        from mathseek.exceptions import ApiError

        with pytest.raises(ApiError, match="LaTeX content cannot be empty"):
            RecognitionResult.single_formula("", 0.9).validate()

    @pytest.mark.parametrize("confidence", [-0.01, 1.01])
    def test_confidence_range(self, confidence):
        """Test confidence outside [0, 1] is invalid."""
        from mathseek.utils.models import RecognitionResult
        from mathseek.exceptions import ApiError

        with pytest.raises(ApiError, match="Confidence must be between 0.0 and 1.0"):
            RecognitionResult.single_formula("x", confidence).validate()

    @pytest.mark.parametrize("confidence", [0.0, 1.0])
    def test_confidence_bounds_inclusive(self, confidence):
        """Test the confidence bounds are inclusive."""
        from mathseek.utils.models import RecognitionResult

        RecognitionResult.single_formula("x", confidence).validate()

    def test_mismatched_content(self):
        """Test content must match the input type."""
        from mathseek.utils.models import RecognitionResult, DocumentContent, DocumentSection
        from mathseek.config import InputType
        from mathseek.exceptions import ApiError

        doc = DocumentContent(sections=[DocumentSection(text="a")])
        result = RecognitionResult("a", 0.9, InputType.SINGLE_FORMULA, doc)

        with pytest.raises(ApiError):
            result.validate()

    def test_to_dict_shape(self):
        """Test the serialized result shape."""
        from mathseek.utils.models import RecognitionResult

        data = RecognitionResult.single_formula("x", 0.5).to_dict()

        assert data["input_type"] == "SingleFormula"
        assert data["content"] == {"SingleFormula": "x"}

    def test_document_round_trip(self):
        """Test a document result survives serialization."""
        from mathseek.utils.models import (
            RecognitionResult, DocumentContent, DocumentSection, FormulaFragment,
        )

        section = DocumentSection("H", "text", [FormulaFragment("x", 2, False)])
        original = RecognitionResult.document("text", 0.7, DocumentContent("T", [section]))

        restored = RecognitionResult.from_dict(original.to_dict())

        assert restored == original

    def test_from_dict_invalid(self):
        """Test malformed results are rejected."""
        from mathseek.utils.models import RecognitionResult
        from mathseek.exceptions import SerializationError

        with pytest.raises(SerializationError):
            RecognitionResult.from_dict({"latex": "x", "content": "x"})

        with pytest.raises(SerializationError):
            RecognitionResult.from_dict({
                "latex": "x", "confidence": 0.5, "input_type": "Image",
                "content": {"SingleFormula": "x"},
            })


class TestConfigModel:
    """Test AppConfig validation and serialization."""

    def test_validate(self):
        """Test app config validation."""
        from mathseek.config import AppConfig
        from mathseek.exceptions import ConfigError

        AppConfig(api_endpoint="https://api.example.com", api_key="k").validate()

        with pytest.raises(ConfigError):
            AppConfig(api_endpoint="", api_key="k").validate()
        with pytest.raises(ConfigError):
            AppConfig(api_endpoint="https://api.example.com", api_key="").validate()
        with pytest.raises(ConfigError):
            AppConfig(api_endpoint="ftp://api.example.com", api_key="k").validate()

    def test_to_dict_without_key(self):
        """Test the key is left out of to_dict."""
        from mathseek.config import AppConfig

        data = AppConfig(api_endpoint="https://x", api_key="secret").to_dict(include_sensitive=False)

        assert data["api_key"] == ""
        assert data["default_export_format"] == {"SingleFormula": "LaTeX", "Document": "Markdown"}

    def test_from_dict(self):
        """Test app config decoding."""
        from mathseek.config import AppConfig, InputType, ExportFormat, RenderEngine, InlineFormat

        config = AppConfig.from_dict({
            "api_endpoint": "https://x",
            "api_key": "k",
            "default_export_format": {"Document": "HTML"},
            "render_engine": "KaTeX",
            "markdown_formula_format": {"inline": "Parentheses"},
        })

        assert config.default_export_format[InputType.DOCUMENT] == ExportFormat.HTML
        assert config.default_export_format[InputType.SINGLE_FORMULA] == ExportFormat.LATEX
        assert config.render_engine == RenderEngine.KATEX
        assert config.markdown_formula_format.inline == InlineFormat.PARENTHESES

    def test_from_dict_invalid_format(self):
        """Test an unknown export format is rejected."""
        from mathseek.config import AppConfig
        from mathseek.exceptions import SerializationError

        with pytest.raises(SerializationError):
            AppConfig.from_dict({"default_export_format": {"Document": "PDF"}})

    def test_get_config_from_environment(self, monkeypatch):
        """Test environment overrides."""
        from mathseek.config import get_config, RenderEngine

        monkeypatch.setenv("MATHSEEK_API_ENDPOINT", "https://env.example.com/")
        monkeypatch.setenv("MATHSEEK_API_KEY", "env-key")
        monkeypatch.setenv("MATHSEEK_RENDER_ENGINE", "katex")

        config = get_config()

        assert config.api_endpoint == "https://env.example.com"
        assert config.api_key == "env-key"
        assert config.render_engine == RenderEngine.KATEX


class TestErrors:
    """Test the error taxonomy."""

    def test_kinds(self):
        """Test each error carries its kind."""
        from mathseek.exceptions import (
            MathSeekError, ApiError, ImageError, ExportError, NetworkError,
        )

        assert issubclass(ApiError, MathSeekError)
        assert ImageError("x").kind == "image"
        assert ExportError("x").kind == "export"
        assert NetworkError("boom").to_dict() == {"kind": "network", "message": "boom"}
