"""
MathSeek
========

Recognizes mathematical content in images through a remote recognition
service and exports it to LaTeX, Markdown, HTML, plain text or a DOCX
placeholder.

Main components:
- Image preconditioning and layout-based input classification
- Remote recognition client with bounded retry
- Recognition pipeline with validation and confidence gating
- Multi-format export
"""

__version__ = "1.0.0"
__author__ = "MathSeek Team"
