"""Millimeter, inch and pixel conversions at a fixed resolution."""

MM_PER_INCH = 25.4
TARGET_DPI = 150               # 25.4 mm == 150 px

MARGIN_UNITS = ("mm", "in")


def mm_to_px(mm: float, dpi: float = TARGET_DPI) -> float:
    return (mm / MM_PER_INCH) * dpi


def px_to_mm(px: float, dpi: float = TARGET_DPI) -> float:
    return (px / dpi) * MM_PER_INCH


def inch_to_mm(inches: float) -> float:
    return inches * MM_PER_INCH


def mm_to_inch(mm: float) -> float:
    return mm / MM_PER_INCH


def pt_to_px(pt: float, dpi: float = TARGET_DPI) -> float:
    """Typographic points (1/72 in) to pixels."""
    return pt / 72 * dpi


def normalize_margin_mm(printer_margin: float, margin_unit: str) -> float:
    """Return the margin in millimeters, whatever unit the user picked."""
    if margin_unit not in MARGIN_UNITS:
        raise ValueError(f"Unknown margin unit: {margin_unit!r}")
    if margin_unit == "in":
        return inch_to_mm(printer_margin)
    return printer_margin
