"""Data model classes and constants for Poster Tiler.

All tile geometry is expressed in page pixels at TARGET_DPI.
"""

from dataclasses import dataclass, field

from units import TARGET_DPI, MARGIN_UNITS, mm_to_px, normalize_margin_mm


# === Constants ===

A4_WIDTH_MM = 210.0
A4_HEIGHT_MM = 297.0

OVERLAP_CAP_MM = 10.0          # glue tab never wider than this, even with large margins
MAX_SUGGESTED_GRID = 10
RECOMPUTE_DELAY_MS = 300       # settings changes are coalesced for this long

HATCH_SPACING_MM = 2.0
CROP_DASH_MM = 2.0
CORNER_MARK_RATIO = 0.75       # corner tick length as a fraction of the margin
BRANDING_FONT_PT = 6
BRANDING_LINES = ("Poster made with Poster Tiler", "Print, cut, glue, enjoy")

POSTER_FILTER = "Poster Files (*.poster)"
IMAGE_FILTER = "Images (*.png *.jpg *.jpeg *.bmp *.gif *.tif *.tiff *.webp)"

CROP_MARK_TYPES = ("none", "corners", "full")
CROP_MARK_LABELS = {"none": "None", "corners": "Corners", "full": "Full lines"}


# === Data Model ===

@dataclass(frozen=True)
class PageGeometry:
    """Physical page size and the resolution used for every pixel conversion."""
    width_mm: float = A4_WIDTH_MM
    height_mm: float = A4_HEIGHT_MM
    dpi: int = TARGET_DPI

    @property
    def width_px(self) -> int:
        return round(mm_to_px(self.width_mm, self.dpi))

    @property
    def height_px(self) -> int:
        return round(mm_to_px(self.height_mm, self.dpi))


A4 = PageGeometry()

# Named page formats as (name, geometry). A4 first: it is the default.
PAGE_FORMATS = [
    ("A4", A4),
    ("A3", PageGeometry(297.0, 420.0)),
    ("Letter", PageGeometry(215.9, 279.4)),
]


def page_format(name: str) -> PageGeometry:
    for fmt_name, geometry in PAGE_FORMATS:
        if fmt_name.lower() == name.lower():
            return geometry
    raise ValueError(f"Unknown page format: {name!r}")


@dataclass(frozen=True)
class LayoutSettings:
    """User-facing layout parameters. Immutable per computation."""
    grid_cols: int = 2
    grid_rows: int = 2
    printer_margin: float = 5.0        # in margin_unit
    margin_unit: str = "mm"            # "mm" or "in"
    crop_mark_type: str = "corners"    # one of CROP_MARK_TYPES
    add_overlap: bool = True

    def __post_init__(self):
        if self.margin_unit not in MARGIN_UNITS:
            raise ValueError(f"Unknown margin unit: {self.margin_unit!r}")
        if self.crop_mark_type not in CROP_MARK_TYPES:
            raise ValueError(f"Unknown crop mark type: {self.crop_mark_type!r}")

    @property
    def margin_mm(self) -> float:
        """The printer margin normalized to millimeters."""
        return normalize_margin_mm(self.printer_margin, self.margin_unit)

    @property
    def tile_count(self) -> int:
        return self.grid_cols * self.grid_rows


@dataclass(frozen=True)
class ImageDescriptor:
    """Natural pixel size of a decoded image."""
    width: int
    height: int


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def box(self) -> tuple[float, float, float, float]:
        """(left, top, right, bottom), the form Pillow takes."""
        return (self.x, self.y, self.right, self.bottom)

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersect(self, other: "Rect") -> "Rect":
        """Overlap of two rects. Width/height are non-positive when disjoint."""
        x0 = max(self.x, other.x)
        y0 = max(self.y, other.y)
        x1 = min(self.right, other.right)
        y1 = min(self.bottom, other.bottom)
        return Rect(x0, y0, x1 - x0, y1 - y0)


@dataclass(frozen=True)
class Segment:
    x0: float
    y0: float
    x1: float
    y1: float


@dataclass(frozen=True)
class PlacementRect:
    """Where the whole image lands inside the total grid area, in pixels."""
    scaled_width: float
    scaled_height: float
    offset_x: float
    offset_y: float

    @property
    def rect(self) -> Rect:
        return Rect(self.offset_x, self.offset_y, self.scaled_width, self.scaled_height)


@dataclass(frozen=True)
class TextLabel:
    """A line of text centred horizontally on x, with its baseline at y."""
    text: str
    x: float
    y: float
    size_px: float


@dataclass
class Decorations:
    """Overlay geometry for one page, in page pixels."""
    stripes: list[Rect] = field(default_factory=list)
    hatch_lines: list[Segment] = field(default_factory=list)
    crop_lines: list[Segment] = field(default_factory=list)


@dataclass(frozen=True)
class TileDescriptor:
    """One printed page of the poster.

    source_rect is in original-image pixels, dest_rect and printable_rect in
    page pixels. Both rects are None when the tile has no image content.
    """
    row: int
    col: int
    source_rect: Rect | None
    dest_rect: Rect | None
    printable_rect: Rect
    has_right_tab: bool
    has_bottom_tab: bool
    overlap_px: float
    page_width: int
    page_height: int
    decorations: Decorations = field(default_factory=Decorations, compare=False)

    @property
    def is_blank(self) -> bool:
        return self.source_rect is None

    def index(self, grid_cols: int) -> int:
        """Position in the row-major page order (0-based)."""
        return self.row * grid_cols + self.col


@dataclass(frozen=True)
class ResolutionWarning:
    """Present when the image has fewer pixels than the poster needs at TARGET_DPI."""
    required_width: int
    required_height: int
    actual_width: int
    actual_height: int


@dataclass
class SourceImage:
    """The uploaded image stored as normalized PNG bytes."""
    png_data: bytes
    pixel_width: int
    pixel_height: int

    @property
    def descriptor(self) -> ImageDescriptor:
        return ImageDescriptor(self.pixel_width, self.pixel_height)


@dataclass
class PosterProject:
    """Full project state. Pickle-serializable."""
    image: SourceImage | None = None
    settings: LayoutSettings = field(default_factory=LayoutSettings)
    paper_format: str = "A4"

    @property
    def page(self) -> PageGeometry:
        return page_format(self.paper_format)

    def __getattr__(self, name):
        # Backward compat: older pickled projects may lack newer fields
        defaults = {'paper_format': "A4"}
        if name in defaults:
            return defaults[name]
        if name == 'settings':
            return LayoutSettings()
        raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")
