"""Unit conversion tests."""
import pytest

from units import (
    mm_to_px, px_to_mm, inch_to_mm, mm_to_inch, pt_to_px, normalize_margin_mm, TARGET_DPI,
)


class TestConversions:
    """Millimeters, inches and pixels at the fixed resolution."""

    def test_one_inch_is_target_dpi_pixels(self):
        assert mm_to_px(25.4) == pytest.approx(TARGET_DPI)
        assert TARGET_DPI == 150

    def test_zero_mm_is_zero_px(self):
        assert mm_to_px(0) == 0

    def test_two_inches(self):
        assert mm_to_px(50.8) == pytest.approx(300)

    def test_custom_dpi(self):
        assert mm_to_px(25.4, dpi=300) == pytest.approx(300)

    def test_px_to_mm_inverts_mm_to_px(self):
        assert px_to_mm(mm_to_px(12.5)) == pytest.approx(12.5)

    def test_inch_mm_round_trip(self):
        assert inch_to_mm(1) == pytest.approx(25.4)
        assert mm_to_inch(inch_to_mm(0.25)) == pytest.approx(0.25)

    def test_points(self):
        """72 points to the inch."""
        assert pt_to_px(72) == pytest.approx(150)
        assert pt_to_px(6) == pytest.approx(12.5)


class TestMarginNormalization:

    def test_mm_unchanged(self):
        assert normalize_margin_mm(6, "mm") == 6

    def test_inches_converted(self):
        assert normalize_margin_mm(0.5, "in") == pytest.approx(12.7)

    def test_unknown_unit_rejected(self):
        with pytest.raises(ValueError):
            normalize_margin_mm(5, "cm")
