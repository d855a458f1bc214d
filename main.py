#!/usr/bin/env python3
"""
Bill Extraction Pipeline - Main Entry Point.

Command-line driver for the bill extraction pipeline. Images are
recognized with Tesseract through the worker pool; ``.txt`` files are
treated as already-recognized OCR text.

Usage:
    Command Line:
        python main.py --input bill.png
        python main.py --input ./bills/ --output results.json --trace

    Python:
        from main import run_extraction
        results = run_extraction("bills/")
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import ConfigurationManager
from bill_extraction.utils.logger import ROOT_LOGGER_NAME, setup_logger_from_config, get_logger
from bill_extraction.utils.helpers import ensure_directory, get_file_extension

IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.tiff', '.tif', '.bmp'}
TEXT_EXTENSIONS = {'.txt'}
SUPPORTED_EXTENSIONS = IMAGE_EXTENSIONS | TEXT_EXTENSIONS


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Bill Extraction Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process a single bill image:
        python main.py --input bill.png

    Process a directory of images and OCR text files:
        python main.py --input ./bills/ --output results.json

    Show heuristic confidences and fallback decisions:
        python main.py --input bill.txt --trace
        """
    )

    parser.add_argument(
        "--input", "-i",
        type=str,
        required=True,
        help="Input file or directory containing bills"
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="JSON output file (default: print to stdout)"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--no-fallback",
        action="store_true",
        help="Never escalate to the AI fallback"
    )

    parser.add_argument(
        "--trace",
        action="store_true",
        help="Include heuristic diagnostics for text inputs"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def collect_inputs(input_path: Path) -> List[Path]:
    """
    Return the files to process.

    Raises:
        FileNotFoundError: If the input path doesn't exist.
        ValueError: If a single file has an unsupported type.
    """
    logger = get_logger(__name__)

    if not input_path.exists():
        raise FileNotFoundError(f"Input path not found: {input_path}")

    if input_path.is_file():
        if get_file_extension(input_path) in SUPPORTED_EXTENSIONS:
            return [input_path]
        raise ValueError(f"Unsupported file type: {input_path.suffix}")

    files = sorted(
        p for p in input_path.iterdir()
        if p.is_file() and get_file_extension(p) in SUPPORTED_EXTENSIONS
    )
    if not files:
        logger.warning(f"No supported files found in: {input_path}")
    else:
        logger.info(f"Found {len(files)} files to process")
    return files


def run_extraction(
    input_path: str,
    config_path: Optional[str] = None,
    fallback_enabled: Optional[bool] = None,
    trace: bool = False
) -> List[Dict[str, Any]]:
    """
    Run the bill extraction pipeline over a file or directory.

    Args:
        input_path: Path to input file or directory.
        config_path: Optional custom configuration file path.
        fallback_enabled: Override the configured fallback switch.
        trace: Attach diagnostics to text inputs.

    Returns:
        One dictionary per file with ``file`` and either ``result`` or ``error``.
    """
    logger = get_logger(__name__)

    ConfigurationManager(config_path)

    from bill_extraction.pipeline import BillExtractionPipeline

    files = collect_inputs(Path(input_path))
    images = [f for f in files if get_file_extension(f) in IMAGE_EXTENSIONS]
    texts = [f for f in files if get_file_extension(f) in TEXT_EXTENSIONS]

    pipeline = BillExtractionPipeline.from_config(with_scheduler=bool(images))
    if fallback_enabled is not None:
        pipeline.fallback_enabled = fallback_enabled

    results: List[Dict[str, Any]] = []

    with pipeline:
        for file_path in texts:
            logger.info(f"Processing: {file_path.name}")
            extraction = pipeline.extract_with_trace(file_path.read_text(encoding="utf-8", errors="replace"))
            entry: Dict[str, Any] = {'file': str(file_path), 'result': extraction.result.to_dict()}
            if trace:
                entry['trace'] = extraction.to_dict()
            results.append(entry)

        if images:
            logger.info(f"Recognizing {len(images)} images...")
            outcomes = pipeline.process_batch([f.read_bytes() for f in images])
            for file_path, outcome in zip(images, outcomes):
                if outcome.ok:
                    results.append({'file': str(file_path), 'result': outcome.result.to_dict()})
                else:
                    results.append({'file': str(file_path), 'error': str(outcome.error)})

    return results


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    try:
        args = parse_arguments(argv)

        config = ConfigurationManager(args.config)
        logger = setup_logger_from_config()
        if args.debug:
            logging.getLogger(ROOT_LOGGER_NAME).setLevel(logging.DEBUG)

        logger.info("=" * 60)
        logger.info("BILL EXTRACTION PIPELINE")
        logger.info("=" * 60)
        logger.info(f"Version: {config.get('project.version', '1.0.0')}")
        logger.info(f"Input: {args.input}")

        results = run_extraction(
            input_path=args.input,
            config_path=args.config,
            fallback_enabled=False if args.no_fallback else None,
            trace=args.trace
        )

        payload = json.dumps(results, indent=2)
        if args.output:
            output_path = Path(args.output)
            ensure_directory(output_path.parent)
            output_path.write_text(payload, encoding="utf-8")
            logger.info(f"Results written to {output_path}")
        else:
            print(payload)

        failed = sum(1 for r in results if 'error' in r)
        logger.info(f"Extraction complete. Processed {len(results)} files, {failed} failed.")
        return 0 if failed == 0 else 2

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if "--debug" in (argv if argv is not None else sys.argv):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
