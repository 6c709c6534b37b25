#!/usr/bin/env python3
"""Split an image into a printable multi-page poster PDF.

No Qt, no GUI: decodes the image with Pillow, runs the layout engine and
writes one PDF page per tile.

Usage:
    python poster_split.py photo.jpg poster.pdf                  # 2x2 A4, 5 mm margin
    python poster_split.py photo.jpg poster.pdf --cols 4 --rows 3
    python poster_split.py photo.jpg poster.pdf --auto-grid      # grid from image resolution
    python poster_split.py photo.jpg poster.pdf --margin 0.25 --unit in --crop-marks full
    python poster_split.py photo.jpg poster.pdf --preview all.png
"""

import argparse
import dataclasses
import logging
import sys

from models import LayoutSettings, PAGE_FORMATS, CROP_MARK_TYPES, page_format
from units import MARGIN_UNITS
from tiler import PosterTiler, DegenerateImageError
from decorations import compute_branding
from renderer import (
    load_image_file, open_source, render_pages, build_composite_preview, export_pdf,
)


def build_settings(args) -> LayoutSettings:
    return LayoutSettings(
        grid_cols=args.cols,
        grid_rows=args.rows,
        printer_margin=args.margin,
        margin_unit=args.unit,
        crop_mark_type=args.crop_marks,
        add_overlap=not args.no_overlap,
    )


def split_image(args) -> bool:
    page = page_format(args.paper)
    settings = build_settings(args)

    try:
        source = load_image_file(args.image)
    except OSError as e:
        print(f"ERROR: could not read {args.image}: {e}", file=sys.stderr)
        return False

    descriptor = source.descriptor
    if args.auto_grid:
        cols, rows = PosterTiler(settings, page).suggest_grid(descriptor)
        settings = dataclasses.replace(settings, grid_cols=cols, grid_rows=rows)

    tiler = PosterTiler(settings, page)
    try:
        tiles = tiler.layout(descriptor)
    except DegenerateImageError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return False

    print(f"Image {descriptor.width} x {descriptor.height} px -> "
          f"{settings.grid_cols} x {settings.grid_rows} grid ({len(tiles)} pages, {args.paper})")

    warning = tiler.resolution_warning(descriptor)
    if warning:
        print(f"WARNING: low resolution. {warning.required_width} x {warning.required_height} px "
              f"recommended for {page.dpi} DPI, image is "
              f"{warning.actual_width} x {warning.actual_height} px.")

    branding = None if args.no_branding else compute_branding(page)
    bitmap = open_source(source)
    pages = render_pages(tiles, bitmap, branding, page.dpi)
    export_pdf(pages, args.output, page.dpi)
    print(f"PDF saved as: {args.output}")

    if args.preview:
        preview = build_composite_preview(pages, settings.grid_cols, settings.grid_rows)
        preview.save(args.preview)
        print(f"Preview saved as: {args.preview}")
    return True


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Split an image into a printable poster PDF")
    parser.add_argument("image", help="Input image file")
    parser.add_argument("output", help="Output PDF file")
    parser.add_argument("--cols", type=int, default=2,
                        help="Pages across (default 2)")
    parser.add_argument("--rows", type=int, default=2,
                        help="Pages down (default 2)")
    parser.add_argument("--auto-grid", action="store_true",
                        help="Choose the grid from the image resolution")
    parser.add_argument("--margin", type=float, default=5.0,
                        help="Printer margin on every side (default 5)")
    parser.add_argument("--unit", choices=MARGIN_UNITS, default="mm",
                        help="Margin unit (default mm)")
    parser.add_argument("--crop-marks", choices=CROP_MARK_TYPES, default="corners",
                        help="Crop mark style (default corners)")
    parser.add_argument("--no-overlap", action="store_true",
                        help="Do not extend pages into glue tabs")
    parser.add_argument("--paper", choices=[name for name, _ in PAGE_FORMATS], default="A4",
                        help="Page format (default A4)")
    parser.add_argument("--preview", default=None,
                        help="Also save the assembled poster as an image")
    parser.add_argument("--no-branding", action="store_true",
                        help="Leave the footer text off the pages")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)
    if args.cols < 1 or args.rows < 1:
        parser.error("--cols and --rows must be at least 1")
    if args.margin < 0:
        parser.error("--margin must not be negative")
    return args


def main(argv=None):
    args = parse_args(argv)
    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
    sys.exit(0 if split_image(args) else 1)


if __name__ == "__main__":
    main()
