"""
Command line interface.

    article-capture capture URL [-f png|pdf] [-o DIR] [--prefix P]
        [--width W] [--height H] [--scale S] [--strategy auto|scroll|direct]
        [--pdf-mode crop|clip] [--headful] [--timing] [-v]
    article-capture detect FILE.html [-v]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from article_capture import __version__
from article_capture.capture.drivers import TransportError
from article_capture.capture.progress import ProgressEvent
from article_capture.capture.retry import CaptureError
from article_capture.config import (
    ArticleCaptureConfig,
    BrowserConfig,
    CaptureConfig,
    PageConfig,
    OUTPUT_FORMATS,
    RENDER_MODES,
    STRATEGIES,
)
from article_capture.detection import DetectionError
from article_capture.pagination import PaginationError
from article_capture.pipeline import capture_article, detect_html
from article_capture.stitching import StitchError

logger = logging.getLogger("article_capture")

PIPELINE_ERRORS = (
    DetectionError,
    CaptureError,
    StitchError,
    PaginationError,
    TransportError,
    OSError,  # artifact or timing file could not be written
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="article-capture",
        description="Capture the main article of a web page as PNG or PDF",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    cap = sub.add_parser("capture", help="Capture a URL to a file")
    cap.add_argument("url", help="Page to capture")
    cap.add_argument("-f", "--format", choices=OUTPUT_FORMATS, default="png")
    cap.add_argument("-o", "--output-dir", type=Path, default=Path("."))
    cap.add_argument("--prefix", default="article", help="File name prefix")
    cap.add_argument("--width", type=int, default=1280, help="Viewport width (CSS px)")
    cap.add_argument("--height", type=int, default=800, help="Viewport height (CSS px)")
    cap.add_argument("--scale", type=float, default=1.0, help="Device scale factor")
    cap.add_argument("--strategy", choices=STRATEGIES, default="auto")
    cap.add_argument("--pdf-mode", choices=RENDER_MODES, default="crop")
    cap.add_argument("--headful", action="store_true", help="Show the browser window")
    cap.add_argument("--timing", action="store_true", help="Write a .timing.json next to the file")
    cap.add_argument("-v", "--verbose", action="store_true")

    det = sub.add_parser("detect", help="Run article detection on an HTML file")
    det.add_argument("file", type=Path)
    det.add_argument("-v", "--verbose", action="store_true")

    return parser


def _print_progress(event: ProgressEvent) -> None:
    print(f"[{event.percent:3d}%] {event.label}", file=sys.stderr)


def _run_capture(args: argparse.Namespace) -> int:
    try:
        config = ArticleCaptureConfig(
            capture=CaptureConfig(strategy=args.strategy),
            page=PageConfig(mode=args.pdf_mode),
            browser=BrowserConfig(
                viewport_width=args.width,
                viewport_height=args.height,
                device_scale_factor=args.scale,
                headless=not args.headful,
            ),
            output_format=args.format,
            output_dir=args.output_dir,
            prefix=args.prefix,
            save_timing=args.timing,
        )
    except ValueError as e:
        print(f"Invalid options: {e}", file=sys.stderr)
        return 2

    try:
        result = asyncio.run(capture_article(args.url, config, observer=_print_progress))
    except PIPELINE_ERRORS as e:
        print(f"Capture failed: {e}", file=sys.stderr)
        return 1

    print(result.artifact)
    return 0


def _run_detect(args: argparse.Namespace) -> int:
    try:
        html = args.file.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return 2

    try:
        detection, noise = detect_html(html)
    except DetectionError as e:
        print(f"Capture failed: {e}", file=sys.stderr)
        return 1

    score = "-" if detection.score is None else f"{detection.score:.1f}"
    print(f"region: {detection.locator}")
    print(f"method: {detection.method}")
    print(f"score:  {score}")
    print(f"noise:  {len(noise)}")
    for locator in noise:
        print(f"  {locator}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )
    if args.command == "capture":
        return _run_capture(args)
    return _run_detect(args)


if __name__ == "__main__":
    sys.exit(main())
