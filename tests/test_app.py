"""Integration tests for the Poster Tiler window via pytest-qt."""
import os

import pytest
from PIL import Image

from controller import MainWindow
from models import SourceImage, page_format, RECOMPUTE_DELAY_MS


@pytest.fixture
def main_window(qapp, qtbot):
    """Create a MainWindow managed by qtbot."""
    win = MainWindow()
    # Override closeEvent to avoid unsaved-changes dialog during test teardown
    win.closeEvent = lambda event: event.accept()
    qtbot.addWidget(win)
    win.show()
    return win


class TestLoadImage:
    """Loading an image replaces the poster and picks a grid."""

    def test_initial_state(self, main_window):
        assert main_window.tiles == []
        assert "No image" in main_window._status.currentMessage()
        assert not main_window._export_action.isEnabled()

    def test_set_image_tiles_after_delay(self, main_window, make_source, qtbot):
        main_window.set_image(make_source(600, 400))
        assert main_window._retile_timer.isActive()
        qtbot.waitUntil(lambda: len(main_window.tiles) == 4, timeout=RECOMPUTE_DELAY_MS * 5)
        assert (main_window.project.settings.grid_cols,
                main_window.project.settings.grid_rows) == (2, 2)
        assert "4 pages" in main_window._status.currentMessage()
        assert main_window._export_action.isEnabled()

    def test_low_resolution_warning(self, main_window, make_source):
        main_window.set_image(make_source(600, 400))
        main_window._retile()
        assert main_window.warning is not None
        assert not main_window.settings_panel.warning_label.isHidden()
        assert "Low resolution" in main_window._status.currentMessage()

    def test_suggested_grid(self, main_window, make_source):
        main_window.set_image(make_source(3543, 1695))
        assert (main_window.project.settings.grid_cols,
                main_window.project.settings.grid_rows) == (3, 1)
        assert main_window.settings_panel._cols_spin.value() == 3

    def test_replace_image_wholesale(self, main_window, make_source):
        main_window.set_image(make_source(600, 400, 'red'))
        second = make_source(400, 600, 'blue')
        main_window.set_image(second)
        main_window._retile()
        assert main_window.project.image is second

    def test_undo_load(self, main_window, make_source):
        main_window.set_image(make_source(600, 400))
        main_window._undo_stack.undo()
        main_window._retile()
        assert main_window.project.image is None
        assert main_window.tiles == []

    def test_open_image_file(self, main_window, image_file):
        main_window.open_file(image_file)
        main_window._retile()
        assert main_window.project.image.descriptor.width == 600
        assert len(main_window.tiles) == 4

    def test_degenerate_image(self, main_window):
        main_window.project.image = SourceImage(b'', 0, 0)
        main_window._retile()
        assert main_window.tiles == []
        assert main_window.layout_error
        assert "Cannot use this image" in main_window._status.currentMessage()


class TestSettings:
    """Settings edits from the panel go through undo and a delayed retile."""

    def test_rapid_changes_coalesce(self, main_window, make_source, qtbot):
        main_window.set_image(make_source(600, 400))
        main_window._retile()
        panel = main_window.settings_panel
        panel._cols_spin.setValue(3)
        panel._cols_spin.setValue(4)
        # Nothing recomputed yet; both edits merge into one undo step
        assert len(main_window.tiles) == 4
        assert main_window._undo_stack.count() == 2
        qtbot.waitUntil(lambda: len(main_window.tiles) == 8, timeout=RECOMPUTE_DELAY_MS * 5)

        main_window._undo_stack.undo()
        assert panel._cols_spin.value() == 2
        qtbot.waitUntil(lambda: len(main_window.tiles) == 4, timeout=RECOMPUTE_DELAY_MS * 5)

    def test_crop_and_overlap(self, main_window, make_source):
        main_window.set_image(make_source(600, 400))
        panel = main_window.settings_panel
        panel._crop_combo.setCurrentIndex(panel._crop_combo.findData("full"))
        panel._overlap_check.setChecked(False)
        main_window._retile()
        assert main_window.project.settings.crop_mark_type == "full"
        assert not any(t.has_right_tab for t in main_window.tiles)
        assert main_window.tiles[3].decorations.crop_lines

    def test_unit_switch_keeps_physical_margin(self, main_window):
        panel = main_window.settings_panel
        panel._unit_combo.setCurrentText("in")
        s = main_window.project.settings
        assert s.margin_unit == "in"
        assert s.margin_mm == pytest.approx(5.0, abs=1e-4)

    def test_unit_round_trip_keeps_margin(self, main_window):
        panel = main_window.settings_panel
        panel._unit_combo.setCurrentText("in")
        panel._unit_combo.setCurrentText("mm")
        s = main_window.project.settings
        assert s.margin_unit == "mm"
        assert s.printer_margin == pytest.approx(5.0, abs=1e-9)

    def test_paper_format(self, main_window, make_source):
        main_window.set_image(make_source(600, 400))
        main_window.settings_panel._paper_combo.setCurrentText("A3")
        main_window._retile()
        assert main_window.project.paper_format == "A3"
        assert main_window.tiles[0].page_width == page_format("A3").width_px

    def test_auto_grid(self, main_window, make_source):
        main_window.set_image(make_source(3543, 1695))
        main_window.settings_panel._rows_spin.setValue(5)
        assert main_window.project.settings.grid_rows == 5
        main_window._auto_grid()
        assert main_window.project.settings.grid_rows == 1


class TestSaveLoad:
    """File > Save and File > Open."""

    def test_save_creates_file(self, main_window, make_source, tmp_path):
        main_window.set_image(make_source(600, 400))
        filepath = str(tmp_path / "test_save.poster")
        assert main_window._write_file(filepath) is True
        assert os.path.getsize(filepath) > 0
        assert not main_window._dirty

    def test_load_restores_project(self, main_window, make_source, tmp_path):
        main_window.set_image(make_source(600, 400))
        main_window.settings_panel._cols_spin.setValue(5)
        filepath = str(tmp_path / "test_load.poster")
        main_window._write_file(filepath)

        main_window._new_project()
        assert main_window.project.image is None

        main_window.open_file(filepath)
        assert main_window.project.image.pixel_width == 600
        assert main_window.project.settings.grid_cols == 5
        assert len(main_window.tiles) == 10
        assert main_window.settings_panel._cols_spin.value() == 5

    def test_new_clears_project(self, main_window, make_source):
        main_window.set_image(make_source(600, 400))
        main_window._retile()
        # Mark as clean so _check_unsaved() returns True without dialog
        main_window._undo_stack.setClean()
        main_window._mark_clean()
        main_window._new_project()
        assert main_window.project.image is None
        assert main_window.tiles == []


class TestExport:

    def test_export_pdf(self, main_window, make_source, tmp_path):
        main_window.set_image(make_source(600, 400))
        path = str(tmp_path / "poster.pdf")
        # Export runs the pending recomputation itself
        assert main_window.export_pdf_to(path) is True
        with open(path, "rb") as f:
            assert f.read(4) == b"%PDF"

    def test_export_preview(self, main_window, make_source, tmp_path):
        main_window.set_image(make_source(600, 400))
        path = str(tmp_path / "preview.png")
        assert main_window.export_preview_to(path) is True
        with Image.open(path) as img:
            assert img.size == (1240 * 2, 1754 * 2)

    def test_export_without_image(self, main_window, tmp_path):
        assert main_window.export_pdf_to(str(tmp_path / "nothing.pdf")) is False
        assert main_window.export_preview_to(str(tmp_path / "nothing.png")) is False
