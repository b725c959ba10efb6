"""
Data model for recognition results.

Provides:
- Recognized content (single formula string or DocumentContent)
- Document sections and formula fragments
- Recognition and analysis results
- Image layout regions
"""

import time
from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Union

from ..config import InputType
from ..exceptions import ApiError, SerializationError


# ============================================================================
# Document Structure
# ============================================================================

@dataclass
class FormulaFragment:
    """A formula embedded in section text at a character offset."""
    latex: str
    position: int
    is_inline: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latex": self.latex,
            "position": self.position,
            "is_inline": self.is_inline,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormulaFragment":
        try:
            latex = data["latex"]
            position = data["position"]
            is_inline = data["is_inline"]
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Invalid formula fragment: {e}") from e

        if not isinstance(latex, str):
            raise SerializationError("Formula latex must be a string")
        if isinstance(position, bool) or not isinstance(position, int) or position < 0:
            raise SerializationError(f"Formula position must be a non-negative integer: {position!r}")
        if not isinstance(is_inline, bool):
            raise SerializationError("Formula is_inline must be a boolean")

        return cls(latex=latex, position=position, is_inline=is_inline)


@dataclass
class DocumentSection:
    """A section of a recognized document."""
    heading: Optional[str] = None
    text: str = ""
    formulas: List[FormulaFragment] = field(default_factory=list)

    def add_formula(self, formula: FormulaFragment):
        self.formulas.append(formula)

    def validate(self):
        if not self.text and not self.formulas:
            raise ApiError("Section must have either text or formulas")

        for formula in self.formulas:
            if formula.position > len(self.text):
                raise ApiError(
                    f"Formula offset {formula.position} is outside section text "
                    f"of length {len(self.text)}: {formula.latex}"
                )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heading": self.heading,
            "text": self.text,
            "formulas": [f.to_dict() for f in self.formulas],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentSection":
        if not isinstance(data, dict):
            raise SerializationError("Section must be an object")

        heading = data.get("heading")
        text = data.get("text")
        formulas = data.get("formulas")

        if heading is not None and not isinstance(heading, str):
            raise SerializationError("Section heading must be a string or null")
        if not isinstance(text, str):
            raise SerializationError("Section text must be a string")
        if not isinstance(formulas, list):
            raise SerializationError("Section formulas must be a list")

        return cls(
            heading=heading,
            text=text,
            formulas=[FormulaFragment.from_dict(f) for f in formulas],
        )


@dataclass
class DocumentContent:
    """A multi-section recognized document."""
    title: Optional[str] = None
    sections: List[DocumentSection] = field(default_factory=list)

    def add_section(self, section: DocumentSection):
        self.sections.append(section)

    @property
    def formula_count(self) -> int:
        return sum(len(s.formulas) for s in self.sections)

    def validate(self):
        if not self.sections:
            raise ApiError("Document must have at least one section")
        for section in self.sections:
            section.validate()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "sections": [s.to_dict() for s in self.sections],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentContent":
        if not isinstance(data, dict):
            raise SerializationError("Document content must be an object")

        title = data.get("title")
        sections = data.get("sections")

        if title is not None and not isinstance(title, str):
            raise SerializationError("Document title must be a string or null")
        if not isinstance(sections, list):
            raise SerializationError("Document sections must be a list")

        return cls(
            title=title,
            sections=[DocumentSection.from_dict(s) for s in sections],
        )


# Single formulas are carried as plain LaTeX strings.
ResultContent = Union[str, DocumentContent]


# ============================================================================
# Recognition Results
# ============================================================================

@dataclass
class RecognitionResult:
    """Result of a recognition call."""
    latex: str
    confidence: float
    input_type: InputType
    content: ResultContent
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @classmethod
    def single_formula(cls, latex: str, confidence: float) -> "RecognitionResult":
        return cls(
            latex=latex,
            confidence=confidence,
            input_type=InputType.SINGLE_FORMULA,
            content=latex,
        )

    @classmethod
    def document(
        cls,
        latex: str,
        confidence: float,
        document: DocumentContent
    ) -> "RecognitionResult":
        return cls(
            latex=latex,
            confidence=confidence,
            input_type=InputType.DOCUMENT,
            content=document,
        )

    @property
    def is_document(self) -> bool:
        return isinstance(self.content, DocumentContent)

    @property
    def formula_count(self) -> int:
        if self.is_document:
            return self.content.formula_count
        return 1

    def validate(self):
        """Check the structural invariants, raising ApiError on violation."""
        if not self.latex:
            raise ApiError("LaTeX content cannot be empty")

        if not 0.0 <= self.confidence <= 1.0:
            raise ApiError(
                f"Confidence must be between 0.0 and 1.0, got {self.confidence}"
            )

        self.validate_content()

    def validate_content(self):
        if self.input_type == InputType.SINGLE_FORMULA:
            if self.is_document:
                raise ApiError("Single formula result carries document content")
            if self.content != self.latex:
                raise ApiError("Single formula content does not match LaTeX")
        else:
            if not self.is_document:
                raise ApiError("Document result carries single formula content")
            self.content.validate()

    def to_dict(self) -> Dict[str, Any]:
        if self.is_document:
            content = {"Document": self.content.to_dict()}
        else:
            content = {"SingleFormula": self.content}

        return {
            "latex": self.latex,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
            "input_type": self.input_type.value,
            "content": content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecognitionResult":
        try:
            content_data = data["content"]
            if not isinstance(content_data, dict):
                raise SerializationError("Result content must be an object")
            if "Document" in content_data:
                content = DocumentContent.from_dict(content_data["Document"])
            else:
                content = content_data["SingleFormula"]

            return cls(
                latex=data["latex"],
                confidence=float(data["confidence"]),
                input_type=InputType.parse(data["input_type"]),
                content=content,
                timestamp=int(data.get("timestamp", time.time())),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid recognition result: {e}") from e


@dataclass
class AnalysisResult:
    """Semantic classification of a formula."""
    formula_type: str
    description: str
    usage: str
    examples: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "formula_type": self.formula_type,
            "description": self.description,
            "usage": self.usage,
            "examples": list(self.examples),
        }


# ============================================================================
# Layout
# ============================================================================

@dataclass
class Region:
    """Rectangular image region."""
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def to_xywh(self):
        return (self.x, self.y, self.width, self.height)

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass
class ImageLayout:
    """Coarse formula/text partition of an image."""
    has_multiple_formulas: bool
    has_text_content: bool
    formula_regions: List[Region] = field(default_factory=list)
    text_regions: List[Region] = field(default_factory=list)

    @property
    def total_regions(self) -> int:
        return len(self.formula_regions) + len(self.text_regions)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_multiple_formulas": self.has_multiple_formulas,
            "has_text_content": self.has_text_content,
            "formula_regions": [r.to_dict() for r in self.formula_regions],
            "text_regions": [r.to_dict() for r in self.text_regions],
        }
