"""Controller layer: MainWindow, undo commands, and PosterApp.

Orchestrates the model, layout engine, renderer and views.  Layout is
recomputed from scratch after every change, coalesced by a single-shot timer.
"""

import dataclasses
import io
import logging
import pickle

from PIL import Image
from PySide6.QtCore import Qt, QEvent, QMarginsF, QRectF, QSizeF, QTimer, Signal
from PySide6.QtGui import (
    QAction, QImage, QKeySequence, QPageLayout, QPageSize, QPainter, QUndoCommand, QUndoStack,
)
from PySide6.QtPrintSupport import QPrintDialog, QPrinter
from PySide6.QtWidgets import (
    QApplication, QDockWidget, QFileDialog, QMainWindow, QMessageBox, QStatusBar,
)

from models import (
    PosterProject, SourceImage, LayoutSettings,
    POSTER_FILTER, IMAGE_FILTER, RECOMPUTE_DELAY_MS,
)
from tiler import PosterTiler, DegenerateImageError
from decorations import compute_branding
from renderer import (
    load_image_file, source_from_pil, open_source, render_pages, build_composite_preview,
    export_pdf, PreviewNotReadyError,
)
from views import PosterPreviewWidget, SettingsPanel, QtRasterizer, paint_tile

logger = logging.getLogger(__name__)


# === Undo Commands ===

class LoadImageCommand(QUndoCommand):
    """Undoable command: replace the poster image (and its suggested grid)."""

    def __init__(self, window: "MainWindow", image: SourceImage, settings: LayoutSettings):
        super().__init__("Load Image")
        self._window = window
        self._old_image = window.project.image
        self._old_settings = window.project.settings
        self._image = image
        self._settings = settings

    def redo(self):
        self._window._apply_state(self._image, self._settings)

    def undo(self):
        self._window._apply_state(self._old_image, self._old_settings)


class ChangeSettingsCommand(QUndoCommand):
    """Undoable command: change layout settings and/or the paper format.

    Consecutive edits merge into one step, so dragging a spin box is undone
    in one go.
    """

    def __init__(self, window: "MainWindow", settings: LayoutSettings, paper_format: str):
        super().__init__("Change Settings")
        self._window = window
        self._old = (window.project.settings, window.project.paper_format)
        self._new = (settings, paper_format)

    def id(self):
        return 1

    def mergeWith(self, other):
        if not isinstance(other, ChangeSettingsCommand):
            return False
        self._new = other._new
        return True

    def redo(self):
        self._window._apply_settings(*self._new)

    def undo(self):
        self._window._apply_settings(*self._old)


# === MainWindow ===

class MainWindow(QMainWindow):
    """Top-level window: menu bar, poster preview, settings dock, status bar."""

    def __init__(self):
        super().__init__()
        self.project = PosterProject()
        self.tiles = []
        self.warning = None
        self.layout_error: str | None = None
        self._file_path: str | None = None
        self._dirty = False
        self._undo_stack = QUndoStack(self)
        self._undo_stack.cleanChanged.connect(self._on_clean_changed)

        self._retile_timer = QTimer(self)
        self._retile_timer.setSingleShot(True)
        self._retile_timer.setInterval(RECOMPUTE_DELAY_MS)
        self._retile_timer.timeout.connect(self._retile)

        self.setWindowTitle("Poster Tiler")
        self.resize(1100, 900)

        self.preview = PosterPreviewWidget()
        self.setCentralWidget(self.preview)
        self.preview.image_dropped.connect(self.set_image)
        self.preview.zoom_changed.connect(self._update_status)

        self.settings_panel = SettingsPanel(self.project.settings, self.project.paper_format)
        self.settings_panel.settings_changed.connect(self._on_panel_settings)
        self.settings_panel.paper_changed.connect(self._on_panel_paper)
        self.settings_panel.auto_grid_requested.connect(self._auto_grid)
        dock = QDockWidget("Layout", self)
        dock.setObjectName("layout_dock")
        dock.setFeatures(QDockWidget.DockWidgetFeature.NoDockWidgetFeatures)
        dock.setWidget(self.settings_panel)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, dock)

        self._build_menus()
        self._status = QStatusBar()
        self.setStatusBar(self._status)
        self._update_title()
        self._update_status()

    def _build_menus(self):
        mb = self.menuBar()

        # --- About action (macOS places this in the app menu automatically) ---
        about_act = QAction("&About Poster Tiler", self)
        about_act.setMenuRole(QAction.MenuRole.AboutRole)
        about_act.triggered.connect(self._show_about)

        # --- File menu ---
        file_menu = mb.addMenu("&File")

        act = QAction("&New", self)
        act.setShortcut(QKeySequence.StandardKey.New)
        act.triggered.connect(self._new_project)
        file_menu.addAction(act)

        act = QAction("Open &Image...", self)
        act.setShortcut(QKeySequence("Ctrl+I"))
        act.triggered.connect(self._open_image)
        file_menu.addAction(act)

        act = QAction("&Open Project...", self)
        act.setShortcut(QKeySequence.StandardKey.Open)
        act.triggered.connect(self._open)
        file_menu.addAction(act)

        file_menu.addSeparator()

        act = QAction("&Close Window", self)
        act.setShortcut(QKeySequence.StandardKey.Close)
        act.triggered.connect(self.close)
        file_menu.addAction(act)

        act = QAction("&Save", self)
        act.setShortcut(QKeySequence.StandardKey.Save)
        act.triggered.connect(self._save)
        file_menu.addAction(act)

        act = QAction("Save &As...", self)
        act.setShortcut(QKeySequence.StandardKey.SaveAs)
        act.triggered.connect(self._save_as)
        file_menu.addAction(act)

        file_menu.addSeparator()

        self._export_action = QAction("&Export PDF...", self)
        self._export_action.setShortcut(QKeySequence("Ctrl+E"))
        self._export_action.triggered.connect(self._export_pdf)
        file_menu.addAction(self._export_action)

        self._export_preview_action = QAction("Export Pre&view Image...", self)
        self._export_preview_action.triggered.connect(self._export_preview)
        file_menu.addAction(self._export_preview_action)

        self._print_action = QAction("&Print...", self)
        self._print_action.setShortcut(QKeySequence.StandardKey.Print)
        self._print_action.triggered.connect(self._print)
        file_menu.addAction(self._print_action)

        file_menu.addSeparator()

        act = QAction("&Quit", self)
        act.setShortcut(QKeySequence.StandardKey.Quit)
        act.triggered.connect(self.close)
        file_menu.addAction(act)

        # --- Edit menu ---
        edit_menu = mb.addMenu("&Edit")

        self._undo_action = self._undo_stack.createUndoAction(self, "&Undo")
        self._undo_action.setShortcut(QKeySequence.StandardKey.Undo)
        edit_menu.addAction(self._undo_action)

        self._redo_action = self._undo_stack.createRedoAction(self, "&Redo")
        self._redo_action.setShortcut(QKeySequence.StandardKey.Redo)
        edit_menu.addAction(self._redo_action)

        edit_menu.addSeparator()

        act = QAction("&Paste Image", self)
        act.setShortcut(QKeySequence.StandardKey.Paste)
        act.triggered.connect(self._paste)
        edit_menu.addAction(act)

        act = QAction("&Auto-fit Grid", self)
        act.setShortcut(QKeySequence("Ctrl+G"))
        act.triggered.connect(self._auto_grid)
        edit_menu.addAction(act)

        # About must be added to a menu for macOS role handling to pick it up
        edit_menu.addAction(about_act)

        # --- View menu ---
        view_menu = mb.addMenu("&View")

        act = QAction("Zoom &In", self)
        act.setShortcut(QKeySequence.StandardKey.ZoomIn)
        act.triggered.connect(lambda: self.preview.zoom_by(1.25))
        view_menu.addAction(act)

        act = QAction("Zoom &Out", self)
        act.setShortcut(QKeySequence.StandardKey.ZoomOut)
        act.triggered.connect(lambda: self.preview.zoom_by(1 / 1.25))
        view_menu.addAction(act)

        act = QAction("Zoom to &Fit", self)
        act.setShortcut(QKeySequence("Ctrl+0"))
        act.triggered.connect(self.preview.reset_view)
        view_menu.addAction(act)

        view_menu.addSeparator()

        self._fullscreen_action = QAction("Enter Full Screen", self)
        self._fullscreen_action.setShortcut(QKeySequence.StandardKey.FullScreen)
        self._fullscreen_action.triggered.connect(self._toggle_full_screen)
        view_menu.addAction(self._fullscreen_action)

        self._update_actions()

    # --- Dirty state ---

    def _mark_clean(self):
        self._dirty = False
        self._update_title()

    def _on_clean_changed(self, clean: bool):
        self._dirty = not clean
        self._update_title()

    def _update_title(self):
        name = self._file_path.rsplit("/", 1)[-1] if self._file_path else "Untitled"
        dirty = " *" if self._dirty else ""
        self.setWindowTitle(f"{name}{dirty} \u2014 Poster Tiler")
        self.setWindowFilePath(self._file_path or "")

    def _check_unsaved(self) -> bool:
        """Return True if it's safe to proceed (saved or discarded). False = cancelled."""
        if not self._dirty:
            return True
        reply = QMessageBox.question(
            self, "Unsaved Changes",
            "You have unsaved changes. Do you want to save before continuing?",
            QMessageBox.StandardButton.Save |
            QMessageBox.StandardButton.Discard |
            QMessageBox.StandardButton.Cancel,
        )
        if reply == QMessageBox.StandardButton.Save:
            return self._save()
        return reply == QMessageBox.StandardButton.Discard

    # --- State changes (called by undo commands) ---

    def _apply_state(self, image: SourceImage | None, settings: LayoutSettings):
        self.project.image = image
        self.project.settings = settings
        self.preview.set_source(image)
        self.settings_panel.set_settings(settings)
        self._schedule_retile()

    def _apply_settings(self, settings: LayoutSettings, paper_format: str):
        self.project.settings = settings
        self.project.paper_format = paper_format
        self.settings_panel.set_settings(settings, paper_format)
        self._schedule_retile()

    # --- Actions ---

    def set_image(self, source: SourceImage):
        """Make *source* the poster image, with a grid suggested from its resolution."""
        tiler = PosterTiler(self.project.settings, self.project.page)
        cols, rows = tiler.suggest_grid(source.descriptor)
        settings = dataclasses.replace(self.project.settings, grid_cols=cols, grid_rows=rows)
        logger.debug("Loaded %dx%d image, suggested grid %dx%d",
                     source.pixel_width, source.pixel_height, cols, rows)
        self._undo_stack.push(LoadImageCommand(self, source, settings))

    def _open_image(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", "", IMAGE_FILTER)
        if path:
            self.load_image(path)

    def load_image(self, path: str) -> bool:
        try:
            source = load_image_file(path)
        except OSError as e:
            QMessageBox.critical(self, "Open Error", f"Could not open image:\n{e}")
            return False
        self.set_image(source)
        return True

    def _paste(self):
        """Paste an image from the clipboard: bitmap data first, then raw image MIME data."""
        cb = QApplication.clipboard()
        mime = cb.mimeData()
        source = None

        # 1. Direct image data
        if mime.hasImage():
            qimg = cb.image()
            if not qimg.isNull():
                source = self.preview._qimage_to_source(qimg)

        # 2. Raw image MIME formats (e.g. image/png bytes)
        if source is None:
            for fmt in mime.formats():
                if "image" in fmt.lower():
                    data = mime.data(fmt)
                    if data:
                        try:
                            with Image.open(io.BytesIO(bytes(data))) as img:
                                img.load()
                                source = source_from_pil(img)
                            break
                        except OSError:
                            continue

        if source:
            self.set_image(source)
        else:
            self._status.showMessage("Clipboard does not contain an image", 3000)

    def _on_panel_settings(self, settings: LayoutSettings):
        if settings != self.project.settings:
            self._undo_stack.push(ChangeSettingsCommand(self, settings, self.project.paper_format))

    def _on_panel_paper(self, paper_format: str):
        if paper_format != self.project.paper_format:
            self._undo_stack.push(ChangeSettingsCommand(self, self.project.settings, paper_format))

    def _auto_grid(self):
        if self.project.image is None:
            return
        tiler = PosterTiler(self.project.settings, self.project.page)
        cols, rows = tiler.suggest_grid(self.project.image.descriptor)
        settings = dataclasses.replace(self.project.settings, grid_cols=cols, grid_rows=rows)
        if settings != self.project.settings:
            self._undo_stack.push(ChangeSettingsCommand(self, settings, self.project.paper_format))

    def _new_project(self):
        if not self._check_unsaved():
            return
        self.project = PosterProject()
        self._file_path = None
        self._undo_stack.clear()
        self._undo_stack.setClean()
        self.preview.clear()
        self.settings_panel.set_settings(self.project.settings, self.project.paper_format)
        self._retile()
        self._mark_clean()

    # --- View actions ---

    def _show_about(self):
        QMessageBox.about(
            self,
            "About Poster Tiler",
            "Poster Tiler\n\n"
            "Split one image across many printer pages,\n"
            "then cut, glue and hang your poster.",
        )

    def _toggle_full_screen(self):
        if self.isFullScreen():
            self.showNormal()
            self._fullscreen_action.setText("Enter Full Screen")
        else:
            self.showFullScreen()
            self._fullscreen_action.setText("Exit Full Screen")

    # --- Save / Load ---

    def _save(self) -> bool:
        if self._file_path:
            return self._write_file(self._file_path)
        return self._save_as()

    def _save_as(self) -> bool:
        path, _ = QFileDialog.getSaveFileName(self, "Save Poster", "", POSTER_FILTER)
        if not path:
            return False
        if not path.endswith(".poster"):
            path += ".poster"
        return self._write_file(path)

    def _write_file(self, path: str) -> bool:
        try:
            with open(path, "wb") as f:
                pickle.dump(self.project, f)
            self._file_path = path
            self._undo_stack.setClean()
            self._mark_clean()
            return True
        except (OSError, pickle.PicklingError) as e:
            QMessageBox.critical(self, "Save Error", f"Could not save file:\n{e}")
            return False

    def _open(self):
        if not self._check_unsaved():
            return
        path, _ = QFileDialog.getOpenFileName(self, "Open Poster", "", POSTER_FILTER)
        if not path:
            return
        self.open_file(path)

    def open_file(self, path: str):
        """Open a .poster project or an image. Used by File menu, argv, and QFileOpenEvent."""
        if not path.endswith(".poster"):
            self.load_image(path)
            return
        try:
            with open(path, "rb") as f:
                proj = pickle.load(f)  # noqa: S301
            if not isinstance(proj, PosterProject):
                raise TypeError("Not a valid poster project")
        except Exception as e:
            QMessageBox.critical(self, "Open Error", f"Could not open file:\n{e}")
            return
        self.project = proj
        self._file_path = path
        self._undo_stack.clear()
        self._undo_stack.setClean()
        self.preview.set_source(proj.image)
        self.settings_panel.set_settings(proj.settings, proj.paper_format)
        self._retile()
        self._mark_clean()

    # --- Export ---

    def _flush_retile(self):
        """Run a pending recomputation now, so exports never use stale tiles."""
        if self._retile_timer.isActive():
            self._retile_timer.stop()
            self._retile()

    def render_pages(self):
        """Rasterize every page with Pillow at the page format's resolution."""
        self._flush_retile()
        if not self.tiles:
            return []
        page = self.project.page
        bitmap = open_source(self.project.image)
        return render_pages(self.tiles, bitmap, compute_branding(page), page.dpi)

    def _export_pdf(self):
        if not self.tiles:
            return
        path, _ = QFileDialog.getSaveFileName(self, "Export PDF", "poster.pdf", "PDF (*.pdf)")
        if path:
            self.export_pdf_to(path)

    def export_pdf_to(self, path: str) -> bool:
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            pages = self.render_pages()
            if not pages:
                return False
            export_pdf(pages, path, self.project.page.dpi)
        except OSError as e:
            QMessageBox.critical(self, "Export Error", f"Could not write PDF:\n{e}")
            return False
        finally:
            QApplication.restoreOverrideCursor()
        self._status.showMessage(f"Exported {len(pages)} pages to {path}", 5000)
        return True

    def _export_preview(self):
        if not self.tiles:
            return
        path, _ = QFileDialog.getSaveFileName(self, "Export Preview", "poster-preview.png",
                                              "Images (*.png *.jpg)")
        if path:
            self.export_preview_to(path)

    def export_preview_to(self, path: str) -> bool:
        s = self.project.settings
        try:
            preview = build_composite_preview(self.render_pages(), s.grid_cols, s.grid_rows)
            preview.save(path)
        except PreviewNotReadyError as e:
            self._status.showMessage(f"Preview not ready: {e}", 5000)
            return False
        except (OSError, ValueError) as e:
            QMessageBox.critical(self, "Export Error", f"Could not write image:\n{e}")
            return False
        return True

    # --- Print ---

    def _print(self):
        if not self.tiles:
            return
        printer = QPrinter(QPrinter.PrinterMode.HighResolution)
        dialog = QPrintDialog(printer, self)
        if dialog.exec() != QPrintDialog.DialogCode.Accepted:
            return
        self.print_to(printer)

    def print_to(self, printer: QPrinter) -> bool:
        """Render every page through *printer*, one tile per sheet."""
        self._flush_retile()
        if not self.tiles:
            return False
        page = self.project.page
        printer.setFullPage(True)
        printer.setPageLayout(QPageLayout(
            QPageSize(QSizeF(page.width_mm, page.height_mm), QPageSize.Unit.Millimeter),
            QPageLayout.Orientation.Portrait,
            QMarginsF(0, 0, 0, 0),
        ))

        painter = QPainter()
        if not painter.begin(printer):
            return False

        # Scale from page pixels at page.dpi to printer DPI
        painter.scale(printer.logicalDpiX() / page.dpi, printer.logicalDpiY() / page.dpi)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)

        qimg = QImage()
        qimg.loadFromData(self.project.image.png_data)
        rasterizer = QtRasterizer(qimg)
        branding = compute_branding(page)
        for i, tile in enumerate(self.tiles):
            if i > 0:
                printer.newPage()
            painter.save()
            painter.setClipRect(QRectF(0, 0, tile.page_width, tile.page_height))
            paint_tile(painter, tile, rasterizer, branding, page.dpi)
            painter.restore()

        painter.end()
        return True

    # --- Retile & status ---

    def _schedule_retile(self):
        """Restart the debounce timer; only the last change in a burst is computed."""
        self._retile_timer.start()

    def _retile(self):
        """Recompute every tile from scratch and repaint."""
        s = self.project.settings
        page = self.project.page
        self.tiles = []
        self.warning = None
        self.layout_error = None
        if self.project.image is not None:
            tiler = PosterTiler(s, page)
            descriptor = self.project.image.descriptor
            try:
                self.tiles = tiler.layout(descriptor)
            except DegenerateImageError as e:
                logger.warning("Cannot lay out image: %s", e)
                self.layout_error = str(e)
            else:
                self.warning = tiler.resolution_warning(descriptor)
        logger.debug("Retiled: %d tiles, warning=%s", len(self.tiles), self.warning)
        self.preview.set_layout(self.tiles, s.grid_cols, s.grid_rows, page.dpi)
        self.settings_panel.set_warning(self.warning)
        self._update_actions()
        self._update_status()

    def _update_actions(self):
        has_tiles = bool(self.tiles)
        for act in (self._export_action, self._export_preview_action, self._print_action):
            act.setEnabled(has_tiles)

    def _update_status(self):
        zoom = int(self.preview._zoom * 100)
        if self.project.image is None:
            paste_shortcut = QKeySequence(
                QKeySequence.StandardKey.Paste
            ).toString(QKeySequence.SequenceFormat.NativeText)
            self._status.showMessage(
                f"No image \u2014 Open, paste ({paste_shortcut}) or drag an image | Zoom: {zoom}%")
            return
        if self.layout_error:
            self._status.showMessage(f"Cannot use this image: {self.layout_error} | Zoom: {zoom}%")
            return
        s = self.project.settings
        n = len(self.tiles)
        warn = " | Low resolution" if self.warning else ""
        self._status.showMessage(
            f"{n} page{'s' if n != 1 else ''} ({s.grid_cols} × {s.grid_rows}, "
            f"{self.project.paper_format}){warn} | Zoom: {zoom}%")

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self._update_status()

    def closeEvent(self, event):
        if self._check_unsaved():
            event.accept()
        else:
            event.ignore()


# === PosterApp: custom QApplication for macOS file open events ===

class PosterApp(QApplication):
    """QApplication subclass that handles macOS QFileOpenEvent."""

    file_open_requested = Signal(str)

    def event(self, event):
        if event.type() == QEvent.Type.FileOpen:
            self.file_open_requested.emit(event.file())
            return True
        return super().event(event)
