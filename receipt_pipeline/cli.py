"""Command-line interface for single receipt extraction.

Runs one receipt photo (or a text file of already recognized text)
through the pipeline and prints the suggested fields as JSON.
"""

import argparse
import json
import sys
from pathlib import Path

from receipt_pipeline.ocr.receipt_processor import ReceiptProcessor
from receipt_pipeline.utils.config import AppConfig, ExtractionMode, load_config
from receipt_pipeline.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def extract_single(
    file_path: Path,
    config: AppConfig | None = None,
    processor: ReceiptProcessor | None = None,
    from_text: bool = False,
) -> dict[str, object]:
    """Process a single receipt and return structured results.

    Args:
        file_path: Receipt image, or a UTF-8 text file when ``from_text``.
        config: Application configuration; loaded from disk when omitted.
        processor: Receipt processor; built from the configuration when
            omitted.
        from_text: Treat the file as recognized text and skip recognition.

    Returns:
        Dictionary with the filename and every suggested field.
    """
    config = config or load_config()
    processor = processor or ReceiptProcessor(config)

    if from_text:
        result = processor.extract_text_fields(file_path.read_text(encoding="utf-8"))
    else:
        result = processor.process(file_path)

    if not result.success:
        logger.error("Failed to process %s: %s", file_path.name, result.error)

    output: dict[str, object] = {"filename": file_path.name}
    output.update(result.to_dict())
    return output


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Receipt Understanding Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="YAML config file (default: configs/config.yaml)",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=[mode.value for mode in ExtractionMode],
        help="Extraction mode (default: from config)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("extract", help="Process a single receipt")
    single_parser.add_argument("file", type=Path, help="Receipt image to process")
    single_parser.add_argument(
        "--text",
        action="store_true",
        help="Treat the file as recognized text instead of an image",
    )
    single_parser.add_argument("-o", "--output", type=Path, help="Output JSON file")

    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.mode:
        config.pipeline.mode = ExtractionMode(args.mode)
    setup_logging(config.log_level)

    if args.command == "extract":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        result = extract_single(args.file, config, from_text=args.text)
        output_str = json.dumps(result, indent=2, ensure_ascii=False)
        if args.output:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(output_str)
            print(f"Output written to {args.output}")
        else:
            print(output_str)
    else:
        parser.print_help()
        sys.exit(0)


if __name__ == "__main__":
    main()
