"""Command-line interface for receipt extraction and refund emails.

Provides subcommands to extract form fields from a receipt, preview the
binarized image fed to OCR, generate a refund email from a form saved as
JSON, and run the API server.
"""

import argparse
import json
import sys
from pathlib import Path

import uvicorn

from refundai.api.app import app
from refundai.extraction.receipt_extractor import ReceiptExtractor
from refundai.ocr.receipt_reader import UnsupportedFileError
from refundai.preprocessing.pipeline import preprocess_for_ocr
from refundai.refund.client import RefundClient
from refundai.utils.config import load_config
from refundai.utils.logger import get_logger, setup_logging
from refundai.validation.form_rules import FormValidator, to_generate_request

logger = get_logger(__name__)


def _emit(output: dict[str, object], output_path: Path | None) -> None:
    """Print a JSON document or write it to a file."""
    output_str = json.dumps(output, indent=2, ensure_ascii=False)
    if output_path:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(output_str, encoding="utf-8")
        print(f"Output written to {output_path}")
    else:
        print(output_str)


def extract_single(file_path: Path, use_llm: bool = True) -> dict[str, object]:
    """Extract form fields from a single receipt.

    Args:
        file_path: Path to the receipt image or PDF.
        use_llm: Whether to try LLM parsing before the regex rules.

    Returns:
        Dictionary with filename, parsed fields, source and raw text.
    """
    config = load_config()
    result = ReceiptExtractor(config).extract(file_path, use_llm=use_llm)
    read = result.read
    return {
        "filename": file_path.name,
        "fields": result.fields.to_json(),
        "source": result.source,
        "warnings": result.warnings,
        "page_count": read.page_count if read else 0,
        "threshold": result.threshold,
        "raw_text": result.text,
    }


def preprocess_single(image_path: Path, output_path: Path) -> int | None:
    """Write the binarized JPEG of an image and return its Otsu threshold."""
    config = load_config()
    result = preprocess_for_ocr(image_path.read_bytes(), config.preprocessing)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.jpeg)
    logger.info("Wrote %s (threshold %s)", output_path, result.threshold)
    return result.threshold


def generate_from_form(
    form_path: Path, locale: str | None = None
) -> tuple[dict[str, object] | None, dict[str, str]]:
    """Validate a form saved as JSON and generate its refund email.

    Args:
        form_path: JSON file with the form values.
        locale: Email language; defaults to the configured locale.

    Returns:
        Tuple of (response with the tier used, validation errors). The
        response is ``None`` when the form is invalid.
    """
    config = load_config()
    locale = locale or config.default_locale
    values = json.loads(form_path.read_text(encoding="utf-8"))

    report = FormValidator(locale).validate(values)
    if not report.all_valid or report.form is None:
        return None, report.errors

    outcome = RefundClient(config).generate(to_generate_request(report.form, locale))
    return {
        **outcome.response.to_json(),
        "tier": outcome.tier,
        "errors": outcome.errors,
    }, {}


def serve(host: str | None = None, port: int | None = None) -> None:
    """Run the API server, defaulting to the configured address."""
    server = load_config().server
    uvicorn.run(app, host=host or server.host, port=port or server.port)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="REFUND.AI receipt reader and refund email writer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    extract_parser = subparsers.add_parser(
        "extract", help="Extract form fields from a receipt"
    )
    extract_parser.add_argument("file", type=Path, help="Receipt image or PDF")
    extract_parser.add_argument(
        "--no-llm", action="store_true", help="Use the regex rules only"
    )
    extract_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    preprocess_parser = subparsers.add_parser(
        "preprocess", help="Write the binarized image used for OCR"
    )
    preprocess_parser.add_argument("image", type=Path, help="Receipt image")
    preprocess_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("preprocessed.jpg"),
        help="Output JPEG file (default: preprocessed.jpg)",
    )

    generate_parser = subparsers.add_parser(
        "generate", help="Generate a refund email from a form JSON file"
    )
    generate_parser.add_argument("form", type=Path, help="Form values as JSON")
    generate_parser.add_argument(
        "-l", "--locale", choices=["en", "fr"], help="Email language"
    )
    generate_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", help="Bind address (default: from config)")
    serve_parser.add_argument(
        "--port", type=int, help="Bind port (default: from config)"
    )

    args = parser.parse_args(argv)

    setup_logging()

    if args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        try:
            result = extract_single(args.file, not args.no_llm)
        except UnsupportedFileError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        _emit(result, args.output)
    elif args.command == "preprocess":
        if not args.image.exists():
            print(f"Error: {args.image} does not exist", file=sys.stderr)
            sys.exit(1)
        threshold = preprocess_single(args.image, args.output)
        print(f"Output written to {args.output} (threshold: {threshold})")
    elif args.command == "generate":
        if not args.form.exists():
            print(f"Error: {args.form} does not exist", file=sys.stderr)
            sys.exit(1)
        response, errors = generate_from_form(args.form, args.locale)
        if response is None:
            for field_name, message in errors.items():
                print(f"{field_name}: {message}", file=sys.stderr)
            sys.exit(1)
        _emit(response, args.output)
    elif args.command == "serve":
        serve(args.host, args.port)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
