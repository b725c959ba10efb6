"""
Export module for recognition results.

Provides:
- LaTeX export (raw, inline, block, full document)
- Markdown export with configurable delimiters
- HTML export with client-side math rendering
- Plain text export
- DOCX placeholder summary

Exporters are pure: they turn a RecognitionResult into text and never
modify it. Formula fragments are spliced into section text at their
recorded offsets, highest offset first, so earlier offsets stay valid.
"""

import html
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union, Any

from ..config import (
    AppConfig,
    InputType,
    ExportFormat,
    RenderEngine,
    InlineFormat,
    BlockFormat,
    MarkdownFormulaFormat,
)
from ..exceptions import ExportError, IoError
from .models import RecognitionResult, DocumentContent, DocumentSection, FormulaFragment

logger = logging.getLogger(__name__)

TEMPLATE_PLACEHOLDER = "{{content}}"


# ============================================================================
# Data Classes
# ============================================================================

@dataclass
class ExportConfig:
    """Options for a single export call."""
    format: ExportFormat = ExportFormat.LATEX
    include_metadata: bool = True
    custom_template: Optional[str] = None
    format_options: Dict[str, str] = field(default_factory=dict)


@dataclass
class ExportMetadata:
    """Metadata about the export operation."""
    timestamp: int
    original_input_type: InputType
    export_format: ExportFormat
    character_count: int
    formula_count: int
    processing_time_ms: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "original_input_type": self.original_input_type.value,
            "export_format": self.export_format.value,
            "character_count": self.character_count,
            "formula_count": self.formula_count,
            "processing_time_ms": self.processing_time_ms,
        }


@dataclass
class ExportResult:
    """Rendered content plus metadata."""
    content: str
    format: ExportFormat
    metadata: ExportMetadata

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "format": self.format.value,
            "metadata": self.metadata.to_dict(),
        }


# ============================================================================
# Fragment Splicing
# ============================================================================

def strip_math_delimiters(latex: str) -> str:
    """Remove surrounding ``$`` characters so delimiters are not doubled."""
    return latex.strip('$')


def splice_fragments(
    text: str,
    fragments: List[FormulaFragment],
    render: Callable[[FormulaFragment], str]
) -> str:
    """
    Insert rendered fragments into text at their offsets.

    Fragments are applied in descending offset order: inserting at a lower
    offset first would shift every later offset. The result does not depend
    on the order of the fragments list (for distinct offsets).

    Raises:
        ExportError: If an offset lies outside the text
    """
    for fragment in fragments:
        if fragment.position < 0 or fragment.position > len(text):
            raise ExportError(
                f"Formula offset {fragment.position} is outside section text "
                f"of length {len(text)}: {fragment.latex}"
            )

    for fragment in sorted(fragments, key=lambda f: f.position, reverse=True):
        pos = fragment.position
        text = text[:pos] + render(fragment) + text[pos:]

    return text


def _has_body(section: DocumentSection) -> bool:
    return bool(section.text) or bool(section.formulas)


def _underline(text: str, char: str) -> List[str]:
    return [text, char * len(text), ""]


# ============================================================================
# LaTeX Exporter
# ============================================================================

class LatexExporter:
    """Export recognized content to LaTeX."""

    def __init__(
        self,
        document_class: str = "article",
        packages: Optional[List[str]] = None
    ):
        self.document_class = document_class
        self.packages = packages or [
            "amsmath", "amsfonts", "amssymb", "[utf8]inputenc"
        ]

    @staticmethod
    def inline(latex: str) -> str:
        return f"${strip_math_delimiters(latex)}$"

    @staticmethod
    def block(latex: str) -> str:
        return f"$${strip_math_delimiters(latex)}$$"

    @staticmethod
    def equation(latex: str) -> str:
        return f"\\begin{{equation}}\n{strip_math_delimiters(latex)}\n\\end{{equation}}"

    def _package_line(self, package: str) -> str:
        # "[opts]name" -> \usepackage[opts]{name}
        if package.startswith('[') and ']' in package:
            options, _, name = package[1:].partition(']')
            return f"\\usepackage[{options}]{{{name}}}"
        return f"\\usepackage{{{package}}}"

    def render_document(self, document: DocumentContent) -> str:
        """Full LaTeX document with fragments spliced into section text."""
        lines = [f"\\documentclass{{{self.document_class}}}"]
        lines.extend(self._package_line(pkg) for pkg in self.packages)
        lines.append("")
        lines.append("\\begin{document}")
        lines.append("")

        if document.title:
            lines.append(f"\\title{{{document.title}}}")
            lines.append("\\maketitle")
            lines.append("")

        for section in document.sections:
            if section.heading:
                lines.append(f"\\section{{{section.heading}}}")
                lines.append("")

            if _has_body(section):
                body = splice_fragments(
                    section.text,
                    section.formulas,
                    lambda f: self.inline(f.latex) if f.is_inline else self.equation(f.latex)
                )
                lines.append(body)
                lines.append("")

        lines.append("\\end{document}")
        return "\n".join(lines)

    def render_document_inline(self, document: DocumentContent) -> str:
        """Section bodies with every fragment forced to inline math."""
        lines = []

        for section in document.sections:
            if section.heading:
                lines.append(f"\\section{{{section.heading}}}")
                lines.append("")

            if _has_body(section):
                lines.append(splice_fragments(
                    section.text,
                    section.formulas,
                    lambda f: self.inline(f.latex)
                ))
                lines.append("")

        return "\n".join(lines)

    def render_document_block(self, document: DocumentContent) -> str:
        """Plain headings and text, each fragment as its own display block."""
        lines = []

        if document.title:
            lines.extend(_underline(document.title, "="))

        for section in document.sections:
            if section.heading:
                lines.extend(_underline(section.heading, "-"))

            if section.text:
                lines.append(section.text)
                lines.append("")

            for formula in section.formulas:
                lines.append(self.block(formula.latex))
                lines.append("")

        return "\n".join(lines)


# ============================================================================
# Markdown Exporter
# ============================================================================

INLINE_OPTION_VALUES = {
    "dollar": InlineFormat.DOLLAR,
    "parentheses": InlineFormat.PARENTHESES,
}

BLOCK_OPTION_VALUES = {
    "double_dollar": BlockFormat.DOUBLE_DOLLAR,
    "brackets": BlockFormat.BRACKETS,
}


class MarkdownExporter:
    """Export recognized content to Markdown."""

    def __init__(self, formula_format: Optional[MarkdownFormulaFormat] = None):
        self.formula_format = formula_format or MarkdownFormulaFormat()

    @classmethod
    def from_options(
        cls,
        formula_format: MarkdownFormulaFormat,
        options: Dict[str, str]
    ) -> "MarkdownExporter":
        """Apply per-call ``inline`` / ``block`` delimiter overrides."""
        inline = formula_format.inline
        block = formula_format.block

        if "inline" in options:
            try:
                inline = INLINE_OPTION_VALUES[options["inline"].lower()]
            except KeyError:
                raise ExportError(f"Unknown inline delimiter style: {options['inline']}")

        if "block" in options:
            try:
                block = BLOCK_OPTION_VALUES[options["block"].lower()]
            except KeyError:
                raise ExportError(f"Unknown block delimiter style: {options['block']}")

        return cls(MarkdownFormulaFormat(inline=inline, block=block))

    def format_formula(self, latex: str, is_inline: bool) -> str:
        clean = strip_math_delimiters(latex)

        if is_inline:
            if self.formula_format.inline == InlineFormat.PARENTHESES:
                return f"\\({clean}\\)"
            return f"${clean}$"

        if self.formula_format.block == BlockFormat.BRACKETS:
            return f"\\[{clean}\\]"
        return f"$${clean}$$"

    def render_document(
        self,
        document: DocumentContent,
        force_inline: bool = False
    ) -> str:
        lines = []

        if document.title:
            lines.append(f"# {document.title}")
            lines.append("")

        for section in document.sections:
            if section.heading:
                lines.append(f"## {section.heading}")
                lines.append("")

            if _has_body(section):
                lines.append(splice_fragments(
                    section.text,
                    section.formulas,
                    lambda f: self.format_formula(f.latex, True if force_inline else f.is_inline)
                ))
                lines.append("")

        return "\n".join(lines)

    def render_document_block(self, document: DocumentContent) -> str:
        lines = []

        if document.title:
            lines.append(f"# {document.title}")
            lines.append("")

        for section in document.sections:
            if section.heading:
                lines.append(f"## {section.heading}")
                lines.append("")

            if section.text:
                lines.append(section.text)
                lines.append("")

            for formula in section.formulas:
                lines.append(self.format_formula(formula.latex, False))
                lines.append("")

        return "\n".join(lines)


# ============================================================================
# HTML Exporter
# ============================================================================

MATHJAX_HEAD = """<script>
window.MathJax = {
  tex: {
    inlineMath: [['$', '$'], ['\\\\(', '\\\\)']],
    displayMath: [['$$', '$$'], ['\\\\[', '\\\\]']]
  }
};
</script>
<script id="MathJax-script" async src="https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"></script>"""

KATEX_HEAD = """<link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/katex@0.16/dist/katex.min.css">
<script defer src="https://cdn.jsdelivr.net/npm/katex@0.16/dist/katex.min.js"></script>
<script defer src="https://cdn.jsdelivr.net/npm/katex@0.16/dist/contrib/auto-render.min.js"
  onload="renderMathInElement(document.body, {delimiters: [
    {left: '$$', right: '$$', display: true},
    {left: '\\\\[', right: '\\\\]', display: true},
    {left: '$', right: '$', display: false},
    {left: '\\\\(', right: '\\\\)', display: false}
  ]});"></script>"""

HTML_STYLE = """<style>
body { font-family: serif; margin: 2rem; line-height: 1.6; }
.formula { text-align: center; margin: 1rem 0; }
.document-title { text-align: center; font-size: 1.5em; margin-bottom: 2rem; }
.section-heading { font-size: 1.2em; margin: 1.5rem 0 1rem 0; }
.metadata { color: #666; }
</style>"""


class HtmlExporter:
    """Export recognized content to a standalone HTML page."""

    def __init__(self, render_engine: RenderEngine = RenderEngine.MATHJAX):
        self.render_engine = render_engine

    @staticmethod
    def _fragment_markup(fragment: FormulaFragment) -> str:
        clean = strip_math_delimiters(fragment.latex)
        return f"${clean}$" if fragment.is_inline else f"$${clean}$$"

    def render(self, result: RecognitionResult, include_metadata: bool) -> str:
        title = "Mathematical Formula"
        if result.is_document and result.content.title:
            title = result.content.title

        lines = [
            "<!DOCTYPE html>",
            "<html>",
            "<head>",
            '<meta charset="utf-8">',
            f"<title>{html.escape(title)}</title>",
            KATEX_HEAD if self.render_engine == RenderEngine.KATEX else MATHJAX_HEAD,
            HTML_STYLE,
            "</head>",
            "<body>",
        ]

        if result.is_document:
            lines.extend(self._document_body(result.content))
        else:
            lines.append('<div class="formula">')
            lines.append(html.escape(f"$${strip_math_delimiters(result.content)}$$", quote=False))
            lines.append("</div>")

        if include_metadata:
            lines.extend([
                "<hr>",
                '<div class="metadata">',
                "<small>",
                "Generated by MathSeek<br>",
                f"Input Type: {result.input_type.value}<br>",
                f"Confidence: {result.confidence:.2f}<br>",
                "</small>",
                "</div>",
            ])

        lines.append("</body>")
        lines.append("</html>")
        return "\n".join(lines)

    def _document_body(self, document: DocumentContent) -> List[str]:
        lines = []

        if document.title:
            lines.append(f'<h1 class="document-title">{html.escape(document.title)}</h1>')

        for section in document.sections:
            if section.heading:
                lines.append(f'<h2 class="section-heading">{html.escape(section.heading)}</h2>')

            if _has_body(section):
                text = splice_fragments(section.text, section.formulas, self._fragment_markup)

                for paragraph in text.split("\n\n"):
                    if paragraph.strip():
                        lines.append(f"<p>{html.escape(paragraph.strip(), quote=False)}</p>")

            lines.append("")

        return lines


# ============================================================================
# Plain Text and DOCX Placeholder
# ============================================================================

def _inline_label(fragment: FormulaFragment) -> str:
    return "inline" if fragment.is_inline else "block"


class PlainTextExporter:
    """Export recognized content without markup."""

    def render(self, result: RecognitionResult) -> str:
        if not result.is_document:
            return result.content

        document = result.content
        lines = []

        if document.title:
            lines.extend(_underline(document.title, "="))

        for section in document.sections:
            if section.heading:
                lines.extend(_underline(section.heading, "-"))

            if section.text:
                lines.append(section.text)
                lines.append("")

            if section.formulas:
                lines.append("Formulas:")
                for i, formula in enumerate(section.formulas, 1):
                    lines.append(f"{i}. {formula.latex} ({_inline_label(formula)})")
                lines.append("")

        return "\n".join(lines)


class DocxExporter:
    """
    Placeholder DOCX export.

    Produces a labeled plain-text outline of the document rather than a
    binary .docx file.
    """

    def render(self, result: RecognitionResult) -> str:
        if not result.is_document:
            return f"DOCX Export:\n\nFormula: {result.content}"

        document = result.content
        lines = ["DOCX Export:", ""]

        if document.title:
            lines.append(f"Title: {document.title}")
            lines.append("")

        for i, section in enumerate(document.sections, 1):
            lines.append(f"Section {i}:")

            if section.heading:
                lines.append(f"Heading: {section.heading}")

            if section.text:
                lines.append(f"Text: {section.text}")

            for j, formula in enumerate(section.formulas, 1):
                lines.append(f"Formula {j}: {formula.latex} ({_inline_label(formula)})")

            lines.append("")

        return "\n".join(lines)


# ============================================================================
# Export Manager
# ============================================================================

SINGLE_FORMULA_FORMATS = [
    ExportFormat.LATEX,
    ExportFormat.LATEX_INLINE,
    ExportFormat.LATEX_BLOCK,
    ExportFormat.MARKDOWN,
    ExportFormat.MARKDOWN_INLINE,
    ExportFormat.MARKDOWN_BLOCK,
    ExportFormat.HTML,
    ExportFormat.PLAIN_TEXT,
]

DOCUMENT_FORMATS = [
    ExportFormat.LATEX,
    ExportFormat.MARKDOWN,
    ExportFormat.HTML,
    ExportFormat.DOCX,
    ExportFormat.PLAIN_TEXT,
]


class ExportManager:
    """Dispatches recognition results to the exporter for each format."""

    def __init__(self, app_config: Optional[AppConfig] = None):
        self.app_config = app_config or AppConfig()

        self._renderers: Dict[ExportFormat, Callable[[RecognitionResult, ExportConfig], str]] = {
            ExportFormat.LATEX: self._export_latex,
            ExportFormat.LATEX_INLINE: self._export_latex_inline,
            ExportFormat.LATEX_BLOCK: self._export_latex_block,
            ExportFormat.MARKDOWN: self._export_markdown,
            ExportFormat.MARKDOWN_INLINE: self._export_markdown_inline,
            ExportFormat.MARKDOWN_BLOCK: self._export_markdown_block,
            ExportFormat.HTML: self._export_html,
            ExportFormat.DOCX: self._export_docx,
            ExportFormat.PLAIN_TEXT: self._export_plain_text,
        }

    def export(
        self,
        result: RecognitionResult,
        export_config: ExportConfig
    ) -> ExportResult:
        """
        Render a recognition result in the requested format.

        Args:
            result: Recognition result (not modified)
            export_config: Target format and options

        Returns:
            ExportResult with content and metadata

        Raises:
            ExportError: If the content cannot be rendered
        """
        start = time.perf_counter()

        renderer = self._renderers.get(export_config.format)
        if renderer is None:
            raise ExportError(f"Unsupported export format: {export_config.format}")

        content = renderer(result, export_config)

        if export_config.custom_template is not None:
            content = self._apply_template(export_config.custom_template, content)

        elapsed_ms = (time.perf_counter() - start) * 1000.0

        metadata = ExportMetadata(
            timestamp=int(time.time()),
            original_input_type=result.input_type,
            export_format=export_config.format,
            character_count=len(content),
            formula_count=result.formula_count,
            processing_time_ms=round(elapsed_ms, 3),
        )

        logger.debug(
            f"Exported {result.input_type.value} to {export_config.format.value}: "
            f"{metadata.character_count} chars, {metadata.formula_count} formulas"
        )

        return ExportResult(content=content, format=export_config.format, metadata=metadata)

    def export_to_file(
        self,
        result: RecognitionResult,
        export_config: ExportConfig,
        output_path: Union[str, Path]
    ) -> Path:
        """Export and write the content to a UTF-8 file."""
        export_result = self.export(result, export_config)
        output_path = Path(output_path)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(export_result.content)
        except OSError as e:
            raise IoError(f"Failed to write file {output_path}: {e}") from e

        logger.info(f"Exported {export_config.format.value} to: {output_path}")
        return output_path

    def available_formats(self, input_type: InputType) -> List[ExportFormat]:
        if input_type == InputType.SINGLE_FORMULA:
            return list(SINGLE_FORMULA_FORMATS)
        return list(DOCUMENT_FORMATS)

    def default_format(self, input_type: InputType) -> ExportFormat:
        configured = self.app_config.default_export_format.get(input_type)
        if configured is not None:
            return configured
        if input_type == InputType.SINGLE_FORMULA:
            return ExportFormat.LATEX
        return ExportFormat.MARKDOWN

    def update_config(self, app_config: AppConfig):
        self.app_config = app_config

    @staticmethod
    def _apply_template(template: str, content: str) -> str:
        if TEMPLATE_PLACEHOLDER not in template:
            raise ExportError(f"Custom template has no {TEMPLATE_PLACEHOLDER} placeholder")
        return template.replace(TEMPLATE_PLACEHOLDER, content)

    # ------------------------------------------------------------------
    # Per-format renderers
    # ------------------------------------------------------------------

    def _latex_exporter(self, export_config: ExportConfig) -> LatexExporter:
        document_class = export_config.format_options.get("document_class", "article")
        return LatexExporter(document_class=document_class)

    def _markdown_exporter(self, export_config: ExportConfig) -> MarkdownExporter:
        return MarkdownExporter.from_options(
            self.app_config.markdown_formula_format,
            export_config.format_options
        )

    def _export_latex(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        if not result.is_document:
            return result.content
        return self._latex_exporter(export_config).render_document(result.content)

    def _export_latex_inline(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        exporter = self._latex_exporter(export_config)
        if not result.is_document:
            return exporter.inline(result.content)
        return exporter.render_document_inline(result.content)

    def _export_latex_block(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        exporter = self._latex_exporter(export_config)
        if not result.is_document:
            return exporter.block(result.content)
        return exporter.render_document_block(result.content)

    def _export_markdown(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        exporter = self._markdown_exporter(export_config)
        if not result.is_document:
            return exporter.format_formula(result.content, True)
        return exporter.render_document(result.content)

    def _export_markdown_inline(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        exporter = self._markdown_exporter(export_config)
        if not result.is_document:
            return exporter.format_formula(result.content, True)
        return exporter.render_document(result.content, force_inline=True)

    def _export_markdown_block(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        exporter = self._markdown_exporter(export_config)
        if not result.is_document:
            return exporter.format_formula(result.content, False)
        return exporter.render_document_block(result.content)

    def _export_html(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        exporter = HtmlExporter(self.app_config.render_engine)
        return exporter.render(result, export_config.include_metadata)

    def _export_docx(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        return DocxExporter().render(result)

    def _export_plain_text(self, result: RecognitionResult, export_config: ExportConfig) -> str:
        return PlainTextExporter().render(result)
