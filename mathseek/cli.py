#!/usr/bin/env python
"""
Command-line interface for MathSeek.

Usage:
    mathseek [global options] <command> [options]

Examples:
    # Recognize a formula and print LaTeX
    mathseek --endpoint https://api.example.com --api-key KEY recognize --input formula.png

    # Recognize a document and write Markdown
    mathseek recognize --input page.png --type Document --format Markdown --output page.md

    # Explain a formula
    mathseek analyze "E = mc^2"
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config import (
    AppConfig,
    RecognitionConfig,
    InputType,
    ExportFormat,
    get_config,
)
from .exceptions import MathSeekError

logger = logging.getLogger("mathseek.cli")


def setup_argparser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="mathseek",
        description="MathSeek - Recognize mathematical formulas and documents from images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Recognize a single formula:
    mathseek recognize --input formula.png

  Recognize a document and export HTML:
    mathseek recognize --input page.png --type Document --format HTML --output page.html

  List export formats for documents:
    mathseek formats --type Document
        """
    )

    # Global arguments
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="JSON configuration file (default: environment variables)"
    )

    parser.add_argument(
        "--endpoint",
        default=None,
        help="Recognition service endpoint (overrides configuration)"
    )

    parser.add_argument(
        "--api-key",
        default=None,
        help="Recognition service API key (overrides configuration)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress non-error output"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # recognize
    recognize = subparsers.add_parser("recognize", help="Recognize an image")
    recognize.add_argument(
        "--input", "-i",
        required=True,
        help="Input image file"
    )
    recognize.add_argument(
        "--type", "-t",
        choices=[t.value for t in InputType],
        default=None,
        help="Force the input type (default: detect from layout)"
    )
    recognize.add_argument(
        "--format", "-f",
        choices=[f.value for f in ExportFormat],
        default=None,
        help="Export format (default: per input type)"
    )
    recognize.add_argument(
        "--output", "-o",
        default=None,
        help="Output file (default: print to stdout)"
    )
    recognize.add_argument(
        "--no-preprocessing",
        action="store_true",
        help="Disable grayscale conversion and downscaling"
    )
    recognize.add_argument(
        "--no-validation",
        action="store_true",
        help="Disable result validation"
    )
    recognize.add_argument(
        "--confidence-threshold",
        type=float,
        default=0.5,
        help="Minimum recognition confidence (default: 0.5)"
    )
    recognize.add_argument(
        "--include-metadata",
        action="store_true",
        help="Include metadata in HTML output and print export metadata"
    )
    recognize.add_argument(
        "--debug",
        action="store_true",
        help="Write a layout debug image and show tracebacks"
    )

    # analyze
    analyze = subparsers.add_parser("analyze", help="Explain a LaTeX formula")
    analyze.add_argument("formula", help="LaTeX formula")

    # test-connection
    subparsers.add_parser("test-connection", help="Check the recognition service")

    # formats
    formats = subparsers.add_parser("formats", help="List export formats")
    formats.add_argument(
        "--type", "-t",
        choices=[t.value for t in InputType],
        default=InputType.SINGLE_FORMULA.value,
        help="Input type (default: SingleFormula)"
    )

    return parser


def build_app_config(args) -> AppConfig:
    """Resolve configuration: file or environment, then command-line overrides."""
    from .utils.io import load_config

    config: Optional[AppConfig] = None
    if args.config:
        config = load_config(args.config)
        if config is None:
            logger.warning(f"Configuration file not found: {args.config}")

    if config is None:
        config = get_config()

    if args.endpoint:
        config.api_endpoint = args.endpoint
    if args.api_key:
        config.api_key = args.api_key

    return config


# ============================================================================
# Commands
# ============================================================================

def run_recognize(args, app_config: AppConfig) -> int:
    from .utils.io import load_image_bytes, save_json
    from .utils.recognition import RecognitionEngine
    from .utils.export import ExportManager, ExportConfig

    app_config.validate()

    image_data = load_image_bytes(args.input)

    recognition_config = RecognitionConfig(
        confidence_threshold=args.confidence_threshold,
        preprocessing_enabled=not args.no_preprocessing,
        validation_enabled=not args.no_validation,
    )

    if args.debug:
        write_layout_debug(image_data, Path(args.input))

    engine = RecognitionEngine(app_config, recognition_config)
    input_type = InputType.parse(args.type) if args.type else None
    try:
        result = engine.recognize(image_data, input_type)
    finally:
        engine.close()

    manager = ExportManager(app_config)
    export_format = (
        ExportFormat.parse(args.format) if args.format
        else manager.default_format(result.input_type)
    )
    export_config = ExportConfig(
        format=export_format,
        include_metadata=args.include_metadata,
    )

    if args.output:
        output_path = manager.export_to_file(result, export_config, args.output)
        if args.include_metadata:
            save_json(result.to_dict(), output_path.with_suffix(".json"))
    else:
        export_result = manager.export(result, export_config)
        print(export_result.content)

    if not args.quiet:
        print("\n" + "=" * 60, file=sys.stderr)
        print("RECOGNITION COMPLETE", file=sys.stderr)
        print("=" * 60, file=sys.stderr)
        print(f"Input type: {result.input_type.value}", file=sys.stderr)
        print(f"Confidence: {result.confidence:.2%}", file=sys.stderr)
        print(f"Formulas: {result.formula_count}", file=sys.stderr)
        print(f"Format: {export_format.value}", file=sys.stderr)
        if args.output:
            print(f"Output: {args.output}", file=sys.stderr)
        print("=" * 60, file=sys.stderr)

    return 0


def write_layout_debug(image_data: bytes, input_path: Path):
    """Save the detected layout regions next to the input image."""
    from .utils.layout import analyze_layout, draw_layout_debug
    from .utils.images import encode_png

    layout = analyze_layout(image_data)
    debug_image = draw_layout_debug(image_data, layout)

    debug_path = input_path.with_name(f"{input_path.stem}_layout_debug.png")
    debug_path.write_bytes(encode_png(debug_image))
    logger.info(f"Saved layout debug image: {debug_path}")


def run_analyze(args, app_config: AppConfig) -> int:
    from .utils.api_client import ApiClient

    app_config.validate()
    client = ApiClient.from_app_config(app_config)
    try:
        analysis = client.analyze_formula(args.formula)
    finally:
        client.close()

    print(json.dumps(analysis.to_dict(), indent=2, ensure_ascii=False))
    return 0


def run_test_connection(args, app_config: AppConfig) -> int:
    from .utils.api_client import ApiClient

    client = ApiClient.from_app_config(app_config)
    try:
        ok = client.test_connection()
    finally:
        client.close()

    if ok:
        print(f"Connection OK: {client.config.endpoint}")
        return 0

    print(f"Connection failed: {client.config.endpoint}")
    return 1


def run_formats(args, app_config: AppConfig) -> int:
    from .utils.export import ExportManager

    manager = ExportManager(app_config)
    input_type = InputType.parse(args.type)
    default = manager.default_format(input_type)

    for fmt in manager.available_formats(input_type):
        marker = " (default)" if fmt == default else ""
        print(f"{fmt.value}{marker}")

    return 0


COMMANDS = {
    "recognize": run_recognize,
    "analyze": run_analyze,
    "test-connection": run_test_connection,
    "formats": run_formats,
}


def main(argv=None):
    """Main entry point."""
    parser = setup_argparser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger().setLevel(logging.ERROR)

    debug = getattr(args, "debug", False)

    try:
        app_config = build_app_config(args)
        exit_code = COMMANDS[args.command](args, app_config)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except MathSeekError as e:
        logger.error(f"{e.kind} error: {e}")
        if debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
