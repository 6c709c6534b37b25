"""View layer: Qt widgets for display and interaction.

Contains PosterPreviewWidget (WYSIWYG view of every page), SettingsPanel,
and the QPainter rasterizer shared by the preview and printing.
"""

import io

from PIL import Image
from PySide6.QtCore import Qt, QRectF, QPointF, QByteArray, QBuffer, QIODevice, QEvent, Signal
from PySide6.QtGui import QImage, QPainter, QPen, QColor, QFont
from PySide6.QtWidgets import (
    QWidget, QFormLayout, QComboBox, QDoubleSpinBox, QSpinBox, QCheckBox, QLabel,
    QVBoxLayout, QHBoxLayout, QGroupBox, QPushButton,
)

from models import (
    LayoutSettings, SourceImage, TileDescriptor, TextLabel, A4,
    CROP_MARK_TYPES, CROP_MARK_LABELS, PAGE_FORMATS, MAX_SUGGESTED_GRID, CROP_DASH_MM,
)
from units import MARGIN_UNITS, TARGET_DPI, mm_to_px, mm_to_inch, inch_to_mm
from renderer import source_from_pil


PAGE_GAP = 24        # page px between pages in the preview
HATCH_COLOR = QColor(170, 170, 170)
CROP_COLOR = QColor(239, 68, 68, 180)
BRANDING_COLOR = QColor(150, 150, 150)


# === Qt rasterizer ===

class QtRasterizer:
    """Draws a region of the source image, scaled, into a region of the painter."""

    def __init__(self, image: QImage):
        self.image = image

    def draw(self, painter: QPainter, source_rect, dest_rect):
        if source_rect.is_empty or dest_rect.is_empty:
            return
        painter.drawImage(
            QRectF(dest_rect.x, dest_rect.y, dest_rect.width, dest_rect.height),
            self.image,
            QRectF(source_rect.x, source_rect.y, source_rect.width, source_rect.height),
        )


def paint_tile(painter: QPainter, tile: TileDescriptor, rasterizer: QtRasterizer | None,
               branding: list[TextLabel] | None = None, dpi: float = TARGET_DPI):
    """Paint one page in page-pixel coordinates (caller sets the transform)."""
    painter.fillRect(QRectF(0, 0, tile.page_width, tile.page_height), QColor(255, 255, 255))
    if rasterizer is not None and not tile.is_blank:
        rasterizer.draw(painter, tile.source_rect, tile.dest_rect)

    deco = tile.decorations
    painter.setBrush(Qt.BrushStyle.NoBrush)
    painter.setPen(QPen(HATCH_COLOR, 1))
    for seg in deco.hatch_lines:
        painter.drawLine(QPointF(seg.x0, seg.y0), QPointF(seg.x1, seg.y1))

    if deco.crop_lines:
        pen = QPen(CROP_COLOR, 1)
        # Qt dash lengths are in units of the pen width
        dash = mm_to_px(CROP_DASH_MM, dpi)
        pen.setDashPattern([dash, dash])
        painter.setPen(pen)
        for seg in deco.crop_lines:
            painter.drawLine(QPointF(seg.x0, seg.y0), QPointF(seg.x1, seg.y1))

    if branding:
        painter.setPen(QPen(BRANDING_COLOR))
        for label in branding:
            font = QFont()
            font.setPixelSize(max(1, round(label.size_px)))
            painter.setFont(font)
            metrics = painter.fontMetrics()
            w = metrics.horizontalAdvance(label.text)
            painter.drawText(QPointF(label.x - w / 2, label.y), label.text)


# === PosterPreviewWidget: WYSIWYG poster view ===

class PosterPreviewWidget(QWidget):
    """Draws every page of the poster in grid order, as it will be printed."""

    image_dropped = Signal(object)  # emits a SourceImage
    zoom_changed = Signal()

    def __init__(self, parent=None):
        super().__init__(parent)
        self.tiles: list[TileDescriptor] = []
        self.grid_cols = 1
        self.grid_rows = 1
        self.dpi: float = TARGET_DPI
        self._qimage: QImage | None = None
        self._rasterizer: QtRasterizer | None = None
        self._zoom: float = 1.0
        self._pan = QPointF(0, 0)
        self._pan_start: QPointF | None = None
        self._pan_start_offset = QPointF(0, 0)
        self.setMinimumSize(400, 500)
        self.setAcceptDrops(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)

    def set_source(self, source: SourceImage | None):
        """Decode the source image once; every page samples from it."""
        if source is None:
            self._qimage = None
            self._rasterizer = None
        else:
            qimg = QImage()
            qimg.loadFromData(source.png_data)
            self._qimage = qimg
            self._rasterizer = QtRasterizer(qimg)
        self.update()

    def set_layout(self, tiles: list[TileDescriptor], grid_cols: int, grid_rows: int, dpi: float):
        self.tiles = tiles
        self.grid_cols = grid_cols
        self.grid_rows = grid_rows
        self.dpi = dpi
        self.update()

    def clear(self):
        self.tiles = []
        self.set_source(None)

    def event(self, event):
        """Handle native gesture events (macOS trackpad pinch-to-zoom)."""
        if event.type() == QEvent.Type.NativeGesture:
            try:
                if event.gestureType() == Qt.NativeGestureType.ZoomNativeGesture:
                    self._zoom_at(event.position(), 1.0 + event.value())
                    return True
            except AttributeError:
                pass  # Platform doesn't support NativeGestureType
        return super().event(event)

    # --- Geometry ---

    def _page_size(self) -> tuple[int, int]:
        if self.tiles:
            return self.tiles[0].page_width, self.tiles[0].page_height
        return A4.width_px, A4.height_px

    def _sheet_w(self) -> float:
        page_w, _ = self._page_size()
        return self.grid_cols * page_w + (self.grid_cols - 1) * PAGE_GAP

    def _sheet_h(self) -> float:
        _, page_h = self._page_size()
        return self.grid_rows * page_h + (self.grid_rows - 1) * PAGE_GAP

    def _base_scale(self) -> float:
        """Scale factor to fit all pages into the widget at zoom=1."""
        padding = 20
        w = max(1, self.width() - 2 * padding)
        h = max(1, self.height() - 2 * padding)
        return min(w / self._sheet_w(), h / self._sheet_h())

    def page_scale(self) -> float:
        """Scale factor from page pixels to screen pixels."""
        return self._base_scale() * self._zoom

    def _origin(self) -> tuple[float, float]:
        """Top-left corner of the page grid on screen, centered with pan offset."""
        scale = self.page_scale()
        return ((self.width() - self._sheet_w() * scale) / 2 + self._pan.x(),
                (self.height() - self._sheet_h() * scale) / 2 + self._pan.y())

    def reset_view(self):
        """Reset zoom and pan to defaults."""
        self._zoom = 1.0
        self._pan = QPointF(0, 0)
        self.zoom_changed.emit()
        self.update()

    def zoom_by(self, factor: float):
        new_zoom = max(0.25, min(self._zoom * factor, 8.0))
        if new_zoom != self._zoom:
            self._zoom = new_zoom
            self.zoom_changed.emit()
            self.update()

    def _zoom_at(self, pos: QPointF, factor: float):
        """Zoom keeping the point under *pos* fixed on screen."""
        new_zoom = max(0.25, min(self._zoom * factor, 8.0))
        if new_zoom == self._zoom:
            return
        old_scale = self.page_scale()
        ox, oy = self._origin()
        rel_x = pos.x() - ox
        rel_y = pos.y() - oy

        self._zoom = new_zoom
        new_scale = self.page_scale()
        ratio = new_scale / old_scale

        new_ox = pos.x() - rel_x * ratio
        new_oy = pos.y() - rel_y * ratio
        base_ox = (self.width() - self._sheet_w() * new_scale) / 2
        base_oy = (self.height() - self._sheet_h() * new_scale) / 2
        self._pan = QPointF(new_ox - base_ox, new_oy - base_oy)

        self.zoom_changed.emit()
        self.update()

    # --- Painting ---

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(200, 200, 200))

        if not self.tiles:
            painter.setPen(QColor(90, 90, 90))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter,
                             "Open, paste or drop an image to make a poster")
            painter.end()
            return

        scale = self.page_scale()
        ox, oy = self._origin()
        page_w, page_h = self._page_size()

        for i, tile in enumerate(self.tiles):
            px = ox + tile.col * (page_w + PAGE_GAP) * scale
            py = oy + tile.row * (page_h + PAGE_GAP) * scale

            # Page shadow
            painter.fillRect(QRectF(px + 3, py + 3, page_w * scale, page_h * scale),
                             QColor(150, 150, 150))

            painter.save()
            painter.translate(px, py)
            painter.scale(scale, scale)
            painter.setClipRect(QRectF(0, 0, page_w, page_h))
            paint_tile(painter, tile, self._rasterizer, dpi=self.dpi)
            # Margin guide (faint dashed rectangle)
            p = tile.printable_rect
            painter.setPen(QPen(QColor(230, 230, 230), 0, Qt.PenStyle.DashLine))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawRect(QRectF(p.x, p.y, p.width, p.height))
            painter.restore()

            self._paint_page_number(painter, i + 1, px, py)

        painter.end()

    def _paint_page_number(self, painter, number, px, py):
        badge = QRectF(px + 4, py + 4, 22, 22)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor(0, 0, 0, 128))
        painter.drawEllipse(badge)
        painter.setPen(QColor(255, 255, 255))
        painter.drawText(badge, Qt.AlignmentFlag.AlignCenter, str(number))

    # --- Zoom and pan ---

    def wheelEvent(self, event):
        """Cmd+scroll or Shift+scroll to zoom toward cursor."""
        mods = event.modifiers()
        if mods & Qt.KeyboardModifier.ControlModifier or mods & Qt.KeyboardModifier.ShiftModifier:
            delta = event.angleDelta().y()
            if delta == 0:
                event.ignore()
                return
            self._zoom_at(event.position(), 1.15 if delta > 0 else 1 / 1.15)
            event.accept()
        else:
            # Unmodified scroll: pan (natural two-finger trackpad scrolling on macOS)
            pd = event.pixelDelta()
            if not pd.isNull():
                self._pan += QPointF(pd.x(), pd.y())
            else:
                # Fallback for mouse wheels
                self._pan += QPointF(event.angleDelta().x() / 2,
                                     event.angleDelta().y() / 2)
            self.update()
            event.accept()

    def mousePressEvent(self, event):
        if event.button() in (Qt.MouseButton.MiddleButton, Qt.MouseButton.LeftButton):
            self._pan_start = event.position()
            self._pan_start_offset = QPointF(self._pan)
            event.accept()
            return
        super().mousePressEvent(event)

    def mouseMoveEvent(self, event):
        if self._pan_start is not None:
            delta = event.position() - self._pan_start
            self._pan = self._pan_start_offset + delta
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
            self.update()
            event.accept()
        else:
            super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event):
        if self._pan_start is not None:
            self._pan_start = None
            self.unsetCursor()
            event.accept()
        else:
            super().mouseReleaseEvent(event)

    def mouseDoubleClickEvent(self, event):
        if event.button() == Qt.MouseButton.LeftButton:
            self.reset_view()
            event.accept()
            return
        super().mouseDoubleClickEvent(event)

    # --- Drag and drop ---

    def dragEnterEvent(self, event):
        mime = event.mimeData()
        if mime.hasImage() or mime.hasUrls():
            event.acceptProposedAction()

    def dragMoveEvent(self, event):
        event.acceptProposedAction()

    def dropEvent(self, event):
        mime = event.mimeData()
        source = None

        # 1. Image data (some apps include the actual bitmap)
        if mime.hasImage():
            qimg = QImage(mime.imageData())
            if not qimg.isNull():
                source = self._qimage_to_source(qimg)

        # 2. Local files: the first one Pillow can read wins
        if source is None and mime.hasUrls():
            for url in mime.urls():
                path = url.toLocalFile()
                if path:
                    source = self._load_file_as_source(path)
                    if source:
                        break

        if source:
            self.image_dropped.emit(source)
        event.acceptProposedAction()

    @staticmethod
    def _load_file_as_source(path: str) -> SourceImage | None:
        try:
            with Image.open(path) as img:
                img.load()
                return source_from_pil(img)
        except OSError:
            return None

    @staticmethod
    def _qimage_to_source(qimage: QImage) -> SourceImage:
        """Convert QImage to a SourceImage via Pillow normalization."""
        ba = QByteArray()
        buf = QBuffer(ba)
        buf.open(QIODevice.OpenModeFlag.WriteOnly)
        qimage.save(buf, "PNG")
        buf.close()
        img = Image.open(io.BytesIO(bytes(ba.data())))
        return source_from_pil(img)


# === Settings Panel ===

class SettingsPanel(QWidget):
    """Live layout controls. Emits settings_changed on every edit."""

    settings_changed = Signal(object)   # LayoutSettings
    paper_changed = Signal(str)
    auto_grid_requested = Signal()

    def __init__(self, settings: LayoutSettings, paper_format: str = "A4", parent=None):
        super().__init__(parent)
        layout = QVBoxLayout(self)

        # --- Grid group ---
        grid_group = QGroupBox("Poster")
        grid_form = QFormLayout(grid_group)

        self._paper_combo = QComboBox()
        for name, _ in PAGE_FORMATS:
            self._paper_combo.addItem(name)
        grid_form.addRow("Paper:", self._paper_combo)

        self._cols_spin = QSpinBox()
        self._cols_spin.setRange(1, MAX_SUGGESTED_GRID)
        grid_form.addRow("Columns:", self._cols_spin)

        self._rows_spin = QSpinBox()
        self._rows_spin.setRange(1, MAX_SUGGESTED_GRID)
        grid_form.addRow("Rows:", self._rows_spin)

        self._auto_btn = QPushButton("Auto-fit Grid")
        self._auto_btn.clicked.connect(self.auto_grid_requested.emit)
        grid_form.addRow("", self._auto_btn)

        layout.addWidget(grid_group)

        # --- Printing group ---
        print_group = QGroupBox("Printing")
        print_form = QFormLayout(print_group)

        margin_row = QHBoxLayout()
        self._margin_spin = QDoubleSpinBox()
        self._unit_combo = QComboBox()
        for unit in MARGIN_UNITS:
            self._unit_combo.addItem(unit)
        margin_row.addWidget(self._margin_spin, 1)
        margin_row.addWidget(self._unit_combo)
        print_form.addRow("Margin:", margin_row)

        self._crop_combo = QComboBox()
        for kind in CROP_MARK_TYPES:
            self._crop_combo.addItem(CROP_MARK_LABELS[kind], kind)
        print_form.addRow("Crop marks:", self._crop_combo)

        self._overlap_check = QCheckBox("Glue tabs on inner edges")
        print_form.addRow("Overlap:", self._overlap_check)

        layout.addWidget(print_group)

        self.warning_label = QLabel()
        self.warning_label.setWordWrap(True)
        self.warning_label.setStyleSheet("color: #b45309;")
        self.warning_label.hide()
        layout.addWidget(self.warning_label)
        layout.addStretch()

        self.set_settings(settings, paper_format)

        self._cols_spin.valueChanged.connect(self._emit)
        self._rows_spin.valueChanged.connect(self._emit)
        self._margin_spin.valueChanged.connect(self._emit)
        self._unit_combo.currentIndexChanged.connect(self._on_unit_changed)
        self._crop_combo.currentIndexChanged.connect(self._emit)
        self._overlap_check.toggled.connect(self._emit)
        self._paper_combo.currentTextChanged.connect(self.paper_changed.emit)

    def set_settings(self, settings: LayoutSettings, paper_format: str | None = None):
        """Show *settings* without emitting settings_changed."""
        widgets = (self._cols_spin, self._rows_spin, self._margin_spin, self._unit_combo,
                   self._crop_combo, self._overlap_check, self._paper_combo)
        for w in widgets:
            w.blockSignals(True)
        self._cols_spin.setValue(settings.grid_cols)
        self._rows_spin.setValue(settings.grid_rows)
        self._unit_combo.setCurrentText(settings.margin_unit)
        self._apply_margin_range(settings.margin_unit)
        self._margin_spin.setValue(settings.printer_margin)
        self._crop_combo.setCurrentIndex(CROP_MARK_TYPES.index(settings.crop_mark_type))
        self._overlap_check.setChecked(settings.add_overlap)
        if paper_format is not None:
            self._paper_combo.setCurrentText(paper_format)
        for w in widgets:
            w.blockSignals(False)

    def result_settings(self) -> LayoutSettings:
        """Return a LayoutSettings reflecting the panel's current values."""
        return LayoutSettings(
            grid_cols=self._cols_spin.value(),
            grid_rows=self._rows_spin.value(),
            printer_margin=self._margin_spin.value(),
            margin_unit=self._unit_combo.currentText(),
            crop_mark_type=self._crop_combo.currentData(),
            add_overlap=self._overlap_check.isChecked(),
        )

    def set_warning(self, warning):
        if warning is None:
            self.warning_label.hide()
            return
        self.warning_label.setText(
            f"Low resolution: {warning.required_width} × {warning.required_height} px "
            f"recommended, image is {warning.actual_width} × {warning.actual_height} px. "
            "Use fewer pages or a larger image for a sharp print.")
        self.warning_label.show()

    def _apply_margin_range(self, unit: str):
        if unit == "in":
            # Enough digits that mm -> in -> mm returns the same margin
            self._margin_spin.setDecimals(5)
            self._margin_spin.setRange(0.0, 2.0)
            self._margin_spin.setSingleStep(0.125)
            self._margin_spin.setSuffix(" in")
        else:
            self._margin_spin.setDecimals(3)
            self._margin_spin.setRange(0.0, 50.0)
            self._margin_spin.setSingleStep(1.0)
            self._margin_spin.setSuffix(" mm")

    def _on_unit_changed(self):
        # Keep the physical margin, just re-express it in the new unit
        unit = self._unit_combo.currentText()
        value = self._margin_spin.value()
        value = mm_to_inch(value) if unit == "in" else inch_to_mm(value)
        self._margin_spin.blockSignals(True)
        self._apply_margin_range(unit)
        self._margin_spin.setValue(value)
        self._margin_spin.blockSignals(False)
        self._emit()

    def _emit(self, *_):
        self.settings_changed.emit(self.result_settings())
