"""Pillow rendering: page bitmaps, the composite preview and PDF export.

The layout engine only produces geometry; this module is the headless
rasterizer that turns TileDescriptors into printable page images.
"""

import io
import logging
import math

from PIL import Image, ImageDraw, ImageFont, ImageOps

from models import SourceImage, TileDescriptor, TextLabel, CROP_DASH_MM
from units import TARGET_DPI, mm_to_px

logger = logging.getLogger(__name__)

PAGE_COLOR = (255, 255, 255)
HATCH_COLOR = (170, 170, 170)
CROP_COLOR = (242, 124, 124)     # red-500 at 70% over white
BRANDING_COLOR = (150, 150, 150)


class PreviewNotReadyError(RuntimeError):
    """Some pages are missing or empty; retry once every page has rendered."""


# === Source images ===

def source_from_pil(img: Image.Image) -> SourceImage:
    """Normalize to an upright RGBA PNG and return a SourceImage."""
    img = ImageOps.exif_transpose(img)
    img = img.convert("RGBA")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return SourceImage(png_data=buf.getvalue(),
                       pixel_width=img.width,
                       pixel_height=img.height)


def load_image_file(path: str) -> SourceImage:
    """Decode an image file. Raises OSError if Pillow cannot read it."""
    with Image.open(path) as img:
        img.load()
        return source_from_pil(img)


def open_source(source: SourceImage) -> Image.Image:
    """Decode a SourceImage to an RGB bitmap, transparency flattened onto white."""
    img = Image.open(io.BytesIO(source.png_data))
    img.load()
    if img.mode in ("RGBA", "LA", "PA") or "transparency" in img.info:
        img = img.convert("RGBA")
        flat = Image.new("RGB", img.size, PAGE_COLOR)
        flat.paste(img, mask=img.getchannel("A"))
        return flat
    return img.convert("RGB")


# === Rasterizer ===

class PillowRasterizer:
    """Draws a region of the source image, scaled, into a region of a page."""

    def __init__(self, source: Image.Image, resample=Image.Resampling.LANCZOS):
        self.source = source
        self.resample = resample

    def draw(self, surface: Image.Image, source_rect, dest_rect):
        # Round edges, not sizes, so neighbouring regions share their seams
        x0, y0 = round(dest_rect.x), round(dest_rect.y)
        x1, y1 = round(dest_rect.right), round(dest_rect.bottom)
        if x1 <= x0 or y1 <= y0 or source_rect.is_empty:
            return
        region = self.source.resize((x1 - x0, y1 - y0), self.resample, box=source_rect.box)
        surface.paste(region, (x0, y0))


# === Pages ===

def render_page(tile: TileDescriptor, rasterizer: PillowRasterizer,
                branding: list[TextLabel] | None = None,
                dpi: float = TARGET_DPI) -> Image.Image:
    """Rasterize one tile: image content, glue-tab hatching, crop marks, footer."""
    page = Image.new("RGB", (tile.page_width, tile.page_height), PAGE_COLOR)
    if not tile.is_blank:
        rasterizer.draw(page, tile.source_rect, tile.dest_rect)

    draw = ImageDraw.Draw(page)
    deco = tile.decorations
    for seg in deco.hatch_lines:
        draw.line([(seg.x0, seg.y0), (seg.x1, seg.y1)], fill=HATCH_COLOR, width=1)

    dash = mm_to_px(CROP_DASH_MM, dpi)
    for seg in deco.crop_lines:
        _dashed_line(draw, seg, dash, CROP_COLOR)

    for label in branding or []:
        _draw_label(draw, label)
    return page


def render_pages(tiles: list[TileDescriptor], source: Image.Image,
                 branding: list[TextLabel] | None = None,
                 dpi: float = TARGET_DPI) -> list[Image.Image]:
    """Rasterize every tile in row-major order."""
    rasterizer = PillowRasterizer(source)
    pages = [render_page(tile, rasterizer, branding, dpi) for tile in tiles]
    logger.debug("Rendered %d pages", len(pages))
    return pages


def _dashed_line(draw: ImageDraw.ImageDraw, seg, dash: float, color):
    """Pillow has no dash pattern; draw equal on/off runs along the segment."""
    dx, dy = seg.x1 - seg.x0, seg.y1 - seg.y0
    length = math.hypot(dx, dy)
    if length == 0:
        return
    if dash <= 0:
        draw.line([(seg.x0, seg.y0), (seg.x1, seg.y1)], fill=color, width=1)
        return
    ux, uy = dx / length, dy / length
    pos = 0.0
    while pos < length:
        end = min(pos + dash, length)
        draw.line([(seg.x0 + ux * pos, seg.y0 + uy * pos),
                   (seg.x0 + ux * end, seg.y0 + uy * end)], fill=color, width=1)
        pos += 2 * dash


def _load_font(size_px: float):
    size = max(1, round(size_px))
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _draw_label(draw: ImageDraw.ImageDraw, label: TextLabel):
    font = _load_font(label.size_px)
    left, top, right, bottom = draw.textbbox((0, 0), label.text, font=font)
    draw.text((label.x - (right - left) / 2, label.y - bottom), label.text,
              fill=BRANDING_COLOR, font=font)


# === Composite preview ===

def build_composite_preview(pages: list[Image.Image], grid_cols: int, grid_rows: int) -> Image.Image:
    """Lay the rendered pages out edge to edge, row-major, in one image."""
    if not pages:
        raise PreviewNotReadyError("No pages rendered yet")
    if len(pages) != grid_cols * grid_rows:
        raise PreviewNotReadyError(
            f"Expected {grid_cols * grid_rows} pages, got {len(pages)}")
    if any(p.width == 0 or p.height == 0 for p in pages):
        raise PreviewNotReadyError("A page has zero size")

    page_w, page_h = pages[0].size
    canvas = Image.new("RGB", (page_w * grid_cols, page_h * grid_rows), PAGE_COLOR)
    for i, page in enumerate(pages):
        row, col = divmod(i, grid_cols)
        if page.size != (page_w, page_h):
            page = page.resize((page_w, page_h), Image.Resampling.LANCZOS)
        canvas.paste(page, (col * page_w, row * page_h))
    return canvas


# === PDF ===

def export_pdf(pages: list[Image.Image], path, dpi: float = TARGET_DPI):
    """Write pages to a multi-page PDF whose page size follows from *dpi*."""
    if not pages:
        raise ValueError("Nothing to export")
    first, rest = pages[0], pages[1:]
    first.save(path, "PDF", save_all=True, append_images=rest, resolution=dpi)
    logger.debug("Wrote %d-page PDF to %s", len(pages), path)
