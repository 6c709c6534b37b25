"""Tiler: poster layout engine.

Splits one image across a grid of printer pages.  Every function here is
pure geometry: given settings, a page format and the image's pixel size, it
returns where each page samples the image and where that sample lands on
the printed sheet.  Nothing touches pixels.

Pipeline:
  1. Normalize the margin to millimeters, derive per-page printable size
  2. Fit the whole image into the grid's printable area (object-fit: contain)
  3. For each page, intersect its cell (plus any glue tab) with the image
  4. Map that intersection back into source-image pixels
"""

import dataclasses
import logging

from models import (
    LayoutSettings, PageGeometry, PlacementRect, Rect, ResolutionWarning,
    TileDescriptor, A4, OVERLAP_CAP_MM, MAX_SUGGESTED_GRID,
)
from units import MM_PER_INCH, mm_to_px
from decorations import compute_decorations

logger = logging.getLogger(__name__)


class DegenerateImageError(ValueError):
    """The image has a zero or negative dimension; no layout is possible."""


# ---------------------------------------------------------------------- #
#  Page measurements                                                      #
# ---------------------------------------------------------------------- #

def printable_size_mm(settings: LayoutSettings, page: PageGeometry) -> tuple[float, float]:
    """Per-page printable area in mm. May be zero or negative for huge margins."""
    margin = settings.margin_mm
    return page.width_mm - 2 * margin, page.height_mm - 2 * margin


def overlap_mm(settings: LayoutSettings) -> float:
    """Glue tab width: the margin, capped so the tab never outgrows it."""
    if not settings.add_overlap:
        return 0.0
    return min(settings.margin_mm, OVERLAP_CAP_MM)


# ---------------------------------------------------------------------- #
#  Resolution adequacy                                                    #
# ---------------------------------------------------------------------- #

def compute_resolution_warning(settings: LayoutSettings, page: PageGeometry,
                               image_width: int, image_height: int) -> ResolutionWarning | None:
    """Return a warning if the image is too small to print the poster at page.dpi.

    Advisory only.  When the margin eats the whole page the requirement
    cannot be computed and no warning is produced.
    """
    pw_mm, ph_mm = printable_size_mm(settings, page)
    if pw_mm <= 0 or ph_mm <= 0:
        logger.debug("Printable area is empty (margin %.2f mm); resolution check skipped",
                     settings.margin_mm)
        return None

    required_w = round(pw_mm * settings.grid_cols / MM_PER_INCH * page.dpi)
    required_h = round(ph_mm * settings.grid_rows / MM_PER_INCH * page.dpi)

    if image_width < required_w or image_height < required_h:
        logger.debug("Image %dx%d below required %dx%d",
                     image_width, image_height, required_w, required_h)
        return ResolutionWarning(
            required_width=required_w,
            required_height=required_h,
            actual_width=image_width,
            actual_height=image_height,
        )
    return None


# ---------------------------------------------------------------------- #
#  Grid fit                                                               #
# ---------------------------------------------------------------------- #

def compute_grid_placement(image_width: float, image_height: float,
                           total_printable_width_px: float,
                           total_printable_height_px: float) -> PlacementRect:
    """Inscribe the image into the grid area, preserving aspect ratio.

    Leftover space is split evenly on the two short sides (letterbox or
    pillarbox), so the image is never cropped.
    """
    if image_width <= 0 or image_height <= 0:
        raise DegenerateImageError(f"Image has no area: {image_width}x{image_height}")
    if total_printable_width_px <= 0 or total_printable_height_px <= 0:
        return PlacementRect(0.0, 0.0, 0.0, 0.0)

    image_ratio = image_width / image_height
    grid_ratio = total_printable_width_px / total_printable_height_px

    if image_ratio > grid_ratio:
        # Wider than the grid: full width, bars above and below
        scaled_w = total_printable_width_px
        scaled_h = scaled_w / image_ratio
        offset_x = 0.0
        offset_y = (total_printable_height_px - scaled_h) / 2
    else:
        # Taller (or equal): full height, bars left and right
        scaled_h = total_printable_height_px
        scaled_w = scaled_h * image_ratio
        offset_y = 0.0
        offset_x = (total_printable_width_px - scaled_w) / 2

    return PlacementRect(scaled_width=scaled_w, scaled_height=scaled_h,
                         offset_x=offset_x, offset_y=offset_y)


# ---------------------------------------------------------------------- #
#  Tile geometry                                                          #
# ---------------------------------------------------------------------- #

def compute_tile_layout(settings: LayoutSettings, page: PageGeometry,
                        image_width: int, image_height: int) -> list[TileDescriptor]:
    """Return one TileDescriptor per page, row-major.

    Source rectangles are clamped to the part of the grid the image really
    covers, so edge pages never sample outside the image.  Pages that land
    entirely in the letterbox bars are still emitted, blank.
    """
    if image_width <= 0 or image_height <= 0:
        raise DegenerateImageError(f"Image has no area: {image_width}x{image_height}")

    cols, rows = settings.grid_cols, settings.grid_rows
    pw_mm, ph_mm = printable_size_mm(settings, page)
    tile_w = max(0.0, mm_to_px(pw_mm, page.dpi))
    tile_h = max(0.0, mm_to_px(ph_mm, page.dpi))
    margin_px = mm_to_px(settings.margin_mm, page.dpi)
    overlap_px = mm_to_px(overlap_mm(settings), page.dpi)

    placement = compute_grid_placement(image_width, image_height, tile_w * cols, tile_h * rows)
    image_area = placement.rect
    # Aspect ratio is preserved, so one factor serves both axes
    scale = image_width / placement.scaled_width if placement.scaled_width > 0 else 0.0

    logger.debug("Layout %dx%d, tile %.1fx%.1f px, margin %.1f px, overlap %.1f px, "
                 "placement %s", cols, rows, tile_w, tile_h, margin_px, overlap_px, placement)

    tiles: list[TileDescriptor] = []
    for row in range(rows):
        for col in range(cols):
            has_right = settings.add_overlap and col < cols - 1
            has_bottom = settings.add_overlap and row < rows - 1

            grid_x = col * tile_w
            grid_y = row * tile_h
            cell = Rect(grid_x, grid_y,
                        tile_w + (overlap_px if has_right else 0.0),
                        tile_h + (overlap_px if has_bottom else 0.0))
            hit = cell.intersect(image_area)

            source = dest = None
            if not hit.is_empty and scale > 0:
                source = _clamp(Rect((hit.x - placement.offset_x) * scale,
                                     (hit.y - placement.offset_y) * scale,
                                     hit.width * scale,
                                     hit.height * scale),
                                image_width, image_height)
                dest = Rect(hit.x - grid_x + margin_px,
                            hit.y - grid_y + margin_px,
                            hit.width, hit.height)

            tile = TileDescriptor(
                row=row,
                col=col,
                source_rect=source,
                dest_rect=dest,
                printable_rect=Rect(margin_px, margin_px, tile_w, tile_h),
                has_right_tab=has_right,
                has_bottom_tab=has_bottom,
                overlap_px=overlap_px,
                page_width=page.width_px,
                page_height=page.height_px,
            )
            decorations = compute_decorations(tile, settings, page.dpi)
            tiles.append(dataclasses.replace(tile, decorations=decorations))

    return tiles


def _clamp(r: Rect, width: float, height: float) -> Rect:
    """Trim floating-point spill so the rect stays inside [0, width] x [0, height]."""
    x0 = min(max(r.x, 0.0), width)
    y0 = min(max(r.y, 0.0), height)
    x1 = min(max(r.right, x0), width)
    y1 = min(max(r.bottom, y0), height)
    return Rect(x0, y0, x1 - x0, y1 - y0)


# ---------------------------------------------------------------------- #
#  Grid suggestion                                                        #
# ---------------------------------------------------------------------- #

def suggest_grid(settings: LayoutSettings, page: PageGeometry,
                 image_width: int, image_height: int) -> tuple[int, int]:
    """Pick (cols, rows) so each page prints roughly one page worth of pixels.

    Clamped to 1..MAX_SUGGESTED_GRID per axis; a single page is bumped to
    2x2 since a one-page poster is not a poster.
    """
    pw_mm, ph_mm = printable_size_mm(settings, page)
    tile_w = mm_to_px(pw_mm, page.dpi)
    tile_h = mm_to_px(ph_mm, page.dpi)

    cols = rows = 1
    if tile_w > 0 and tile_h > 0:
        cols = round(image_width / tile_w)
        rows = round(image_height / tile_h)

    cols = max(1, min(MAX_SUGGESTED_GRID, cols))
    rows = max(1, min(MAX_SUGGESTED_GRID, rows))
    if cols == 1 and rows == 1:
        cols = rows = 2
    return cols, rows


class PosterTiler:
    """Layout engine bound to one set of settings and one page format."""

    def __init__(self, settings: LayoutSettings | None = None, page: PageGeometry = A4):
        self.settings = settings or LayoutSettings()
        self.page = page

    # ------------------------------------------------------------------ #
    #  Public API                                                         #
    # ------------------------------------------------------------------ #

    def layout(self, image) -> list[TileDescriptor]:
        """Tile *image* (anything with .width/.height, e.g. ImageDescriptor)."""
        return compute_tile_layout(self.settings, self.page, image.width, image.height)

    def resolution_warning(self, image) -> ResolutionWarning | None:
        return compute_resolution_warning(self.settings, self.page, image.width, image.height)

    def placement(self, image) -> PlacementRect:
        tile_w, tile_h = self.tile_size_px()
        return compute_grid_placement(image.width, image.height,
                                      tile_w * self.settings.grid_cols,
                                      tile_h * self.settings.grid_rows)

    def suggest_grid(self, image) -> tuple[int, int]:
        return suggest_grid(self.settings, self.page, image.width, image.height)

    def tile_size_px(self) -> tuple[float, float]:
        """Printable size of one page in pixels (never negative)."""
        pw_mm, ph_mm = printable_size_mm(self.settings, self.page)
        return max(0.0, mm_to_px(pw_mm, self.page.dpi)), max(0.0, mm_to_px(ph_mm, self.page.dpi))
