"""Decoration layer: glue-tab hatching, crop marks and the footer text.

Works only from a tile's page rectangles and the layout settings; the image
itself is never consulted.
"""

import math

from models import (
    Decorations, LayoutSettings, PageGeometry, Rect, Segment, TextLabel,
    HATCH_SPACING_MM, CORNER_MARK_RATIO, BRANDING_FONT_PT, BRANDING_LINES,
)
from units import TARGET_DPI, mm_to_px, pt_to_px


def compute_decorations(tile, settings: LayoutSettings, dpi: float = TARGET_DPI) -> Decorations:
    """Return stripes, hatch lines and crop lines for *tile*.

    *dpi* only sizes the hatch spacing.
    """
    if tile.printable_rect.is_empty:
        # Margins meet in the middle: no cell to cut out or glue
        return Decorations()
    stripes = glue_tab_stripes(tile)
    spacing = mm_to_px(HATCH_SPACING_MM, dpi)
    hatch: list[Segment] = []
    for stripe in stripes:
        hatch.extend(hatch_lines(stripe, spacing))
    return Decorations(
        stripes=stripes,
        hatch_lines=hatch,
        crop_lines=crop_marks(tile, settings.crop_mark_type),
    )


def glue_tab_stripes(tile) -> list[Rect]:
    """Rectangles covering the tab area past the printable cell's right/bottom edges."""
    p = tile.printable_rect
    tab = tile.overlap_px
    stripes = []
    if tile.has_right_tab:
        stripes.append(Rect(p.right, p.y, tab, p.height))
    if tile.has_bottom_tab:
        stripes.append(Rect(p.x, p.bottom, p.width, tab))
    if tile.has_right_tab and tile.has_bottom_tab:
        stripes.append(Rect(p.right, p.bottom, tab, tab))
    return [s for s in stripes if not s.is_empty]


def hatch_lines(area: Rect, spacing: float) -> list[Segment]:
    """45-degree lines (x + y = k * spacing) clipped to *area*.

    Anchoring on multiples of spacing keeps neighbouring stripes' patterns
    continuous across the corner square.
    """
    if area.is_empty or spacing <= 0:
        return []
    lines = []
    first = math.ceil((area.x + area.y) / spacing)
    last = math.floor((area.right + area.bottom) / spacing)
    for k in range(first, last + 1):
        c = k * spacing
        y_start = max(area.y, c - area.right)
        y_end = min(area.bottom, c - area.x)
        if y_end > y_start:
            lines.append(Segment(c - y_start, y_start, c - y_end, y_end))
    return lines


def crop_marks(tile, crop_mark_type: str) -> list[Segment]:
    """Cut guides on the interior-facing edges only.

    A page is cut along its top edge when a page sits above it (row > 0)
    and along its left edge when a page sits to its left (col > 0); the
    outer boundary of the poster never gets a mark.
    """
    if crop_mark_type == "none":
        return []

    p = tile.printable_rect
    page_w, page_h = tile.page_width, tile.page_height
    cut_top = tile.row > 0
    cut_left = tile.col > 0
    lines = []

    if crop_mark_type == "full":
        if cut_top:
            lines.append(Segment(0, p.y, page_w, p.y))
        if cut_left:
            lines.append(Segment(p.x, 0, p.x, page_h))
        return lines

    # corners: short ticks in the margin at both ends of each cut edge
    tick = p.x * CORNER_MARK_RATIO
    if tick <= 0:
        return lines
    if cut_top:
        lines.append(Segment(0, p.y, tick, p.y))
        lines.append(Segment(page_w - tick, p.y, page_w, p.y))
    if cut_left:
        lines.append(Segment(p.x, 0, p.x, tick))
        lines.append(Segment(p.x, page_h - tick, p.x, page_h))
    return lines


def compute_branding(page: PageGeometry, lines=BRANDING_LINES) -> list[TextLabel]:
    """Footer text anchors, centred in the bottom margin, 3 mm and 1.5 mm up."""
    offsets_mm = (3.0, 1.5)
    size_px = pt_to_px(BRANDING_FONT_PT, page.dpi)
    cx = page.width_px / 2
    return [
        TextLabel(text, cx, page.height_px - mm_to_px(off, page.dpi), size_px)
        for text, off in zip(lines, offsets_mm)
    ]
