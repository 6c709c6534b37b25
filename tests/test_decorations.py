"""Tests for glue-tab hatching, crop marks and footer placement."""
import pytest

from models import LayoutSettings, ImageDescriptor, Rect, A4, BRANDING_LINES
from tiler import PosterTiler
from decorations import compute_branding, crop_marks, glue_tab_stripes, hatch_lines
from units import mm_to_px


def _tiles(**kwargs):
    settings = LayoutSettings(grid_cols=3, grid_rows=2, printer_margin=6, **kwargs)
    return PosterTiler(settings).layout(ImageDescriptor(3000, 2000))


def _is_horizontal(seg):
    return seg.y0 == seg.y1


def _is_vertical(seg):
    return seg.x0 == seg.x1


class TestCropMarks:
    """Marks go only on edges shared with another page."""

    def test_none(self):
        assert all(t.decorations.crop_lines == [] for t in _tiles(crop_mark_type="none"))

    def test_top_left_page_has_no_marks(self):
        for kind in ("full", "corners"):
            assert _tiles(crop_mark_type=kind)[0].decorations.crop_lines == []

    def test_full_lines_on_interior_edges(self):
        tiles = _tiles(crop_mark_type="full")
        # (0, 1): left edge only
        lines = tiles[1].decorations.crop_lines
        assert len(lines) == 1 and _is_vertical(lines[0])
        # (1, 0): top edge only
        lines = tiles[3].decorations.crop_lines
        assert len(lines) == 1 and _is_horizontal(lines[0])

    def test_bottom_right_marks_top_and_left_only(self):
        t = _tiles(crop_mark_type="full")[5]
        p = t.printable_rect
        lines = t.decorations.crop_lines
        assert len(lines) == 2
        top = next(s for s in lines if _is_horizontal(s))
        left = next(s for s in lines if _is_vertical(s))
        assert top.y0 == pytest.approx(p.y)
        assert (top.x0, top.x1) == (0, t.page_width)
        assert left.x0 == pytest.approx(p.x)
        assert (left.y0, left.y1) == (0, t.page_height)

    def test_corner_ticks(self):
        t = _tiles(crop_mark_type="corners")[5]
        lines = t.decorations.crop_lines
        assert len(lines) == 4
        tick = mm_to_px(6) * 0.75
        for seg in lines:
            length = abs(seg.x1 - seg.x0) + abs(seg.y1 - seg.y0)
            assert length == pytest.approx(tick)

    def test_corner_ticks_stay_in_margin(self):
        t = _tiles(crop_mark_type="corners")[4]
        p = t.printable_rect
        for seg in t.decorations.crop_lines:
            if _is_horizontal(seg):
                assert max(seg.x0, seg.x1) <= p.x or min(seg.x0, seg.x1) >= p.right
            else:
                assert max(seg.y0, seg.y1) <= p.y or min(seg.y0, seg.y1) >= p.bottom

    def test_zero_margin_has_no_ticks(self):
        t = _tiles(crop_mark_type="corners")[5]
        assert crop_marks(t, "corners")  # sanity: non-zero margin has ticks
        settings = LayoutSettings(grid_cols=2, grid_rows=2, printer_margin=0)
        tile = PosterTiler(settings).layout(ImageDescriptor(100, 100))[3]
        assert tile.decorations.crop_lines == []

    def test_margin_fills_page(self):
        """With no printable cell left there is nothing to cut or glue."""
        for kind in ("full", "corners"):
            settings = LayoutSettings(grid_cols=2, grid_rows=2, printer_margin=120,
                                      crop_mark_type=kind)
            for t in PosterTiler(settings).layout(ImageDescriptor(1000, 1000)):
                assert t.printable_rect.is_empty
                assert t.decorations.stripes == []
                assert t.decorations.hatch_lines == []
                assert t.decorations.crop_lines == []


class TestGlueTabs:

    def test_stripes_in_tab_area(self):
        t = _tiles()[0]
        p = t.printable_rect
        stripes = t.decorations.stripes
        assert len(stripes) == 3
        right, bottom, corner = stripes
        assert right == Rect(p.right, p.y, t.overlap_px, p.height)
        assert bottom == Rect(p.x, p.bottom, p.width, t.overlap_px)
        assert corner == Rect(p.right, p.bottom, t.overlap_px, t.overlap_px)

    def test_last_column_has_bottom_stripe_only(self):
        t = _tiles()[2]
        assert len(t.decorations.stripes) == 1
        assert t.decorations.stripes[0].y == pytest.approx(t.printable_rect.bottom)

    def test_last_page_has_none(self):
        assert _tiles()[5].decorations.stripes == []
        assert glue_tab_stripes(_tiles()[5]) == []

    def test_hatch_lines_clipped_to_stripes(self):
        t = _tiles()[0]
        assert t.decorations.hatch_lines
        eps = 1e-6
        stripes = t.decorations.stripes
        for seg in t.decorations.hatch_lines:
            assert any(
                s.x - eps <= min(seg.x0, seg.x1) and max(seg.x0, seg.x1) <= s.right + eps and
                s.y - eps <= min(seg.y0, seg.y1) and max(seg.y0, seg.y1) <= s.bottom + eps
                for s in stripes)


class TestHatchLines:

    def test_square(self):
        lines = hatch_lines(Rect(0, 0, 10, 10), 5)
        assert len(lines) == 3
        for seg in lines:
            # 45 degrees: x + y constant along the line
            assert seg.x0 + seg.y0 == pytest.approx(seg.x1 + seg.y1)

    def test_empty_area(self):
        assert hatch_lines(Rect(0, 0, 0, 10), 5) == []

    def test_zero_spacing(self):
        assert hatch_lines(Rect(0, 0, 10, 10), 0) == []


class TestBranding:

    def test_two_centred_lines(self):
        labels = compute_branding(A4)
        assert [lbl.text for lbl in labels] == list(BRANDING_LINES)
        assert all(lbl.x == A4.width_px / 2 for lbl in labels)

    def test_baselines_in_bottom_margin(self):
        first, second = compute_branding(A4)
        assert first.y == pytest.approx(A4.height_px - mm_to_px(3))
        assert second.y == pytest.approx(A4.height_px - mm_to_px(1.5))
        assert first.size_px == pytest.approx(12.5)
