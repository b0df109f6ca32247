#!/usr/bin/env python3
"""
reduce_pdf.py - Shrink PDFs under a size target.

Walks a ladder of Ghostscript settings (baseline -> aggr72 -> aggr50 -> ultra36),
stops as soon as the file fits, and never writes a result larger than the input.

Usage:
    python reduce_pdf.py input.pdf -o output.pdf
    python reduce_pdf.py input.pdf --target-mb 5
    python reduce_pdf.py *.pdf --output-dir ./compressed/ --workers 4
"""

import argparse
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

# Add parent to path when running as script
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent))

from pdf_reducer.config import PRESETS, Settings, load_policy, mb_to_bytes
from pdf_reducer.errors import PreconditionError
from pdf_reducer.ghostscript import GhostscriptCompressor, get_page_count
from pdf_reducer.pipeline import AdaptiveDriver
from pdf_reducer.profiles import build_ladder
from pdf_reducer.service import LocalFileStore, ReductionReport, reduce_document

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def parse_args(argv=None):
    """Parse command-line arguments."""
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(
        description="Adaptive PDF compression to a size target.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python reduce_pdf.py scan.pdf -o small.pdf
  python reduce_pdf.py scan.pdf --target-mb 2 --skip-below-mb 1
  python reduce_pdf.py *.pdf --output-dir ./out/ --workers 4

Each level compresses the best result so far. A level that fails or does
not shrink the file is skipped. If nothing beats the original, no output
file is written.
"""
    )

    parser.add_argument(
        "input",
        nargs="+",
        type=Path,
        help="Input PDF file(s)"
    )

    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file (single input only)"
    )
    output.add_argument(
        "--output-dir",
        type=Path,
        help="Output directory (for multiple files)"
    )

    parser.add_argument(
        "-t", "--target-mb",
        type=float,
        default=settings.target_mb,
        help=f"Stop once the file is at most this size in MB (default: {settings.target_mb})"
    )

    parser.add_argument(
        "--skip-below-mb",
        type=float,
        default=settings.skip_below_mb,
        help="Leave files smaller than this untouched (default: compress everything)"
    )

    parser.add_argument(
        "-p", "--preset",
        choices=PRESETS,
        default=settings.preset,
        help=f"Ghostscript PDFSETTINGS preset for every level (default: {settings.preset})"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=settings.timeout_seconds,
        help=f"Seconds allowed per Ghostscript pass (default: {settings.timeout_seconds})"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Files processed in parallel (default: 1)"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print one JSON report per file instead of a summary"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output"
    )

    return parser.parse_args(argv), settings


def output_path_for(input_path: Path, args) -> Path:
    if args.output:
        return args.output
    if args.output_dir:
        return args.output_dir / f"{input_path.stem}_reduced.pdf"
    return input_path.with_name(f"{input_path.stem}_reduced.pdf")


def failed_report(input_path: Path, target_max_bytes: int, error: Exception) -> ReductionReport:
    try:
        size = input_path.stat().st_size
    except OSError:
        size = 0
    return ReductionReport(
        input_path=input_path,
        ok=False,
        original_bytes=size,
        compressed_bytes=size,
        target_max_bytes=target_max_bytes,
        error=str(error),
    )


def print_report(report: ReductionReport, as_json: bool):
    if as_json:
        data = {"file": str(report.input_path), **report.to_dict()}
        print(json.dumps(data))
    else:
        print(report.summary())


def print_progress(current: int, total: int, level: str):
    """Print progress bar."""
    width = 40
    filled = int(width * current / total)
    bar = "=" * filled + "-" * (width - filled)
    print(f"\r[{bar}] {current}/{total} {level:<10}", end="", file=sys.stderr)


def main(argv=None) -> int:
    args, settings = parse_args(argv)
    setup_logging(args.verbose)

    # Validate inputs
    valid_inputs = []
    for p in args.input:
        if not p.exists():
            print(f"Error: File not found: {p}", file=sys.stderr)
            continue
        if not p.is_file():
            print(f"Error: Not a file: {p}", file=sys.stderr)
            continue
        if p.suffix.lower() != ".pdf":
            print(f"Warning: Skipping non-PDF: {p}", file=sys.stderr)
            continue
        valid_inputs.append(p)

    if not valid_inputs:
        print("Error: No valid PDF files", file=sys.stderr)
        return 1

    if len(valid_inputs) > 1 and args.output:
        print("Error: Use --output-dir for multiple files", file=sys.stderr)
        return 1

    try:
        policy = load_policy(
            settings,
            target_max_bytes=mb_to_bytes(args.target_mb),
            skip_below_bytes=(
                mb_to_bytes(args.skip_below_mb) if args.skip_below_mb is not None else None
            ),
            timeout_seconds=args.timeout,
        )
    except PreconditionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.output_dir:
        args.output_dir.mkdir(parents=True, exist_ok=True)

    ladder = build_ladder(args.preset)
    on_pass = None
    if len(valid_inputs) == 1 and not args.json and not args.verbose:
        on_pass = lambda attempt, outcome: print_progress(attempt.pass_num, len(ladder), attempt.level)

    driver = AdaptiveDriver(
        compressor=GhostscriptCompressor(gs_cmd=settings.gs_binary, timeout=policy.timeout_seconds),
        ladder=ladder,
        on_pass=on_pass,
    )

    def process(input_path: Path) -> ReductionReport:
        pages = get_page_count(input_path)
        if pages is not None:
            logger.info(f"{input_path.name}: {pages} pages")
        try:
            return reduce_document(
                input_path,
                policy,
                store=LocalFileStore(output_path_for(input_path, args)),
                driver=driver,
            )
        except (PreconditionError, OSError) as e:
            # One unreadable input must not stop the batch
            logger.error(f"{input_path.name}: {e}")
            return failed_report(input_path, policy.target_max_bytes, e)

    reports = []
    workers = max(1, args.workers)

    if workers == 1 or len(valid_inputs) == 1:
        for i, input_path in enumerate(valid_inputs):
            if len(valid_inputs) > 1 and not args.json:
                print(f"\n[{i+1}/{len(valid_inputs)}] {input_path.name}")
            report = process(input_path)
            if on_pass:
                print(file=sys.stderr)
            print_report(report, args.json)
            reports.append(report)
    else:
        # Runs are independent; each one names its temp files uniquely
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(process, p): p for p in valid_inputs}
            for future in as_completed(futures):
                report = future.result()
                print_report(report, args.json)
                reports.append(report)

    if len(reports) > 1 and not args.json:
        total_in = sum(r.original_bytes for r in reports)
        total_out = sum(r.compressed_bytes for r in reports)
        successes = sum(1 for r in reports if r.ok)
        print(f"\n{'='*50}")
        print(f"Batch complete: {successes}/{len(reports)} files")
        print(f"Total: {total_in:,} -> {total_out:,} bytes")
        if total_in > 0:
            print(f"Reduction: {(1 - total_out/total_in)*100:.1f}%")

    return 0 if all(r.ok for r in reports) else 1


if __name__ == "__main__":
    sys.exit(main())
