"""
pdf_viewer.py — Page preview widgets.

PDFPreviewWidget shows one page of the chain's current artifact, rendered in
the background and fitted to the widget. PlacementCanvas paints a session's
one-shot raster plus its vector overlay and turns pointer drags into
PDF-space position updates.
"""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QPointF, QRectF, QSize, Qt, QThreadPool, QTimer, pyqtSignal
from PyQt6.QtGui import QColor, QFont, QMouseEvent, QPainter, QPen, QPixmap
from PyQt6.QtWidgets import QSizePolicy, QWidget

from engines import RenderingEngine, RenderResult, RenderWorker
from positioning import Overlay, PositioningSession

logger = logging.getLogger(__name__)

PAGE_MARGIN = 16  # pixels around the page


# ─────────────────────────────────────────────
# Main preview
# ─────────────────────────────────────────────

class PDFPreviewWidget(QWidget):
    """Fit-to-widget preview of one page of an in-memory PDF."""

    render_failed = pyqtSignal(str)

    def __init__(self, renderer: Optional[RenderingEngine] = None, parent=None):
        super().__init__(parent)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMinimumSize(300, 300)
        self._renderer = renderer or RenderingEngine()
        self._pdf_bytes: Optional[bytes] = None
        self._page_index: int = 0
        self._pixmap: Optional[QPixmap] = None
        self._error: str = ""
        # Only the newest request may paint; older results are dropped.
        self._render_token: int = 0
        self._workers: dict[int, RenderWorker] = {}
        self._thread_pool = QThreadPool.globalInstance()

        # Resize debounce
        self._refresh_timer = QTimer(self)
        self._refresh_timer.setSingleShot(True)
        self._refresh_timer.setInterval(120)
        self._refresh_timer.timeout.connect(self._request_render)

    @property
    def page_index(self) -> int:
        return self._page_index

    def set_document(self, pdf_bytes: Optional[bytes], page_index: int = 0):
        self._pdf_bytes = pdf_bytes
        self._page_index = page_index
        self._pixmap = None
        self._error = ""
        self._request_render()
        self.update()

    def set_page(self, page_index: int):
        if page_index == self._page_index:
            return
        self._page_index = page_index
        self._request_render()

    def sizeHint(self) -> QSize:
        return QSize(640, 800)

    # ── Rendering ─────────────────────────────

    def _request_render(self):
        self._render_token += 1
        if not self._pdf_bytes:
            self._pixmap = None
            self.update()
            return
        token = self._render_token
        worker = RenderWorker(
            self._renderer, self._pdf_bytes, self._page_index,
            max(self.width() - 2 * PAGE_MARGIN, 50),
            max(self.height() - 2 * PAGE_MARGIN, 50),
        )
        worker.signals.finished.connect(lambda result, t=token: self._on_render_finished(result, t))
        worker.signals.failed.connect(lambda msg, t=token: self._on_render_failed(msg, t))
        self._workers[token] = worker
        self._thread_pool.start(worker)

    def _on_render_finished(self, result: RenderResult, token: int):
        self._workers.pop(token, None)
        if token != self._render_token:
            return
        self._pixmap = QPixmap.fromImage(result.image)
        self._error = ""
        self.update()

    def _on_render_failed(self, message: str, token: int):
        self._workers.pop(token, None)
        if token != self._render_token:
            return
        self._pixmap = None
        self._error = message
        logger.error("Preview render failed: %s", message)
        self.render_failed.emit(message)
        self.update()

    # ── Painting ──────────────────────────────

    def resizeEvent(self, event):
        super().resizeEvent(event)
        if self._pdf_bytes:
            self._refresh_timer.start()

    def paintEvent(self, event):
        if not self._pdf_bytes:
            self._draw_drop_zone()
            return

        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor("#444444"))

        if self._pixmap is None:
            painter.setPen(QColor("#dddddd"))
            painter.drawText(
                self.rect(), Qt.AlignmentFlag.AlignCenter,
                self._error or "불러오는 중...",
            )
            painter.end()
            return

        pw, ph = self._pixmap.width(), self._pixmap.height()
        px = (self.width() - pw) // 2
        py = (self.height() - ph) // 2
        painter.drawPixmap(px, py, self._pixmap)

        # Page border shadow
        painter.setPen(QPen(QColor(0, 0, 0, 60), 1))
        painter.drawRect(px - 1, py - 1, pw + 2, ph + 2)
        painter.end()

    def _draw_drop_zone(self):
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor("#f0f0f0"))
        painter.setPen(QPen(QColor("#999999"), 2, Qt.PenStyle.DashLine))
        painter.drawRect(self.rect().adjusted(40, 40, -40, -40))
        painter.setPen(QColor("#666666"))
        font = QFont()
        font.setPointSize(14)
        painter.setFont(font)
        painter.drawText(
            self.rect(), Qt.AlignmentFlag.AlignCenter,
            "PDF 파일을 드래그하거나\n열기 버튼을 누르세요"
        )
        painter.end()


# ─────────────────────────────────────────────
# Placement canvas
# ─────────────────────────────────────────────

OVERLAY_BLUE = QColor(0, 135, 247)
OVERLAY_FILL = QColor(0, 135, 247, 77)   # rgba(0, 135, 247, 0.3)


class PlacementCanvas(QWidget):
    """Raster background + vector overlay for one PositioningSession."""

    def __init__(self, session: PositioningSession, parent=None):
        super().__init__(parent)
        self._session = session
        self._background = QPixmap.fromImage(session.background)
        self._overlay: Optional[Overlay] = session.overlay()
        w, h = session.transform.display_size
        self.setFixedSize(int(round(w)), int(round(h)))
        self.setCursor(Qt.CursorShape.CrossCursor)
        session.overlay_changed.connect(self._on_overlay_changed)

    def _on_overlay_changed(self, overlay: Overlay):
        self._overlay = overlay
        self.update()

    # ── Pointer ───────────────────────────────

    def mousePressEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton:
            self._move_to(event.position())

    def mouseMoveEvent(self, event: QMouseEvent):
        if event.buttons() & Qt.MouseButton.LeftButton:
            self._move_to(event.position())

    def _move_to(self, pos: QPointF):
        if self._session.is_open:
            self._session.move_to_screen(pos.x(), pos.y())

    # ── Painting ──────────────────────────────

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.setRenderHint(QPainter.RenderHint.TextAntialiasing)
        painter.drawPixmap(0, 0, self._background)

        ov = self._overlay
        if ov is not None:
            if ov.kind == "image" and ov.rect:
                painter.setPen(QPen(OVERLAY_BLUE, 2))
                painter.setBrush(OVERLAY_FILL)
                painter.drawRect(QRectF(*ov.rect))
            elif ov.kind == "text" and ov.text:
                font = QFont("sans-serif")
                font.setPixelSize(max(1, int(round(ov.text_size))))
                painter.setFont(font)
                painter.setPen(QColor(ov.color))
                x, y = ov.text_pos
                for i, line in enumerate(ov.text.split("\n")):
                    painter.drawText(QPointF(x, y + i * ov.text_size * 1.2), line)

            label_font = QFont()
            label_font.setBold(True)
            label_font.setPixelSize(max(1, int(round(ov.label_size))))
            painter.setFont(label_font)
            painter.setPen(OVERLAY_BLUE)
            painter.drawText(QPointF(*ov.label_pos), ov.label)

        painter.end()
