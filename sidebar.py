"""
sidebar.py — Sidebar panel: uploaded PDF list with first-page thumbnails.
"""

from __future__ import annotations

import logging
from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import QSize, Qt, QThread, pyqtSignal
from PyQt6.QtGui import QColor, QIcon, QImage, QPixmap
from PyQt6.QtWidgets import (
    QAbstractItemView, QFrame, QLabel, QListWidget, QListWidgetItem, QMenu,
    QVBoxLayout, QWidget,
)

from engines import fitz_pixmap_to_qimage
from models import ActiveFileSet, SourceDocument

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Thumbnail rendering thread
# ─────────────────────────────────────────────

class ThumbnailWorker(QThread):
    """
    Renders the first page of each document sequentially.
    문서마다 스레드 전용 fitz.Document 인스턴스를 연다.
    """
    done = pyqtSignal(int, int, QImage)   # generation, row, image

    def __init__(self, buffers: list[bytes], size: int = 120, generation: int = 0):
        super().__init__()
        self.generation = generation
        self._buffers = list(buffers)
        self.size = size
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def run(self):
        for row, data in enumerate(self._buffers):
            if self._cancelled:
                break
            self.done.emit(self.generation, row, self._render_first_page(data))
            QThread.msleep(2)  # 2ms yield to prevent UI freeze

    def _render_first_page(self, data: bytes) -> QImage:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.warning("Thumbnail: cannot open document: %s", e)
            return QImage()
        try:
            if doc.page_count == 0:
                return QImage()
            page = doc[0]
            pr = page.rect
            dpi_scale = self.size / max(pr.width, pr.height, 1)
            pix = page.get_pixmap(matrix=fitz.Matrix(dpi_scale, dpi_scale), alpha=False)
            return fitz_pixmap_to_qimage(pix)
        except Exception as e:
            logger.warning("Thumbnail render failed: %s", e)
            return QImage()
        finally:
            doc.close()


# ─────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────

THUMB_W = 120
THUMB_H = 160


# ─────────────────────────────────────────────
# File list panel
# ─────────────────────────────────────────────

class FileListPanel(QWidget):
    """Uploaded documents in upload order; the selected one is highlighted.

    The panel never mutates the file set itself, it only emits requests.
    """

    files_dropped = pyqtSignal(list)      # local file paths
    remove_requested = pyqtSignal(int)
    select_requested = pyqtSignal(int)

    def __init__(self, file_set: ActiveFileSet, parent=None):
        super().__init__(parent)
        self.setMinimumWidth(160)
        self.setMaximumWidth(220)
        self.setAcceptDrops(True)
        self._file_set = file_set
        self._workers: list[ThumbnailWorker] = []
        self._generation = 0

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        header = QLabel("  업로드된 PDF")
        header.setFixedHeight(28)
        header.setStyleSheet("font-size: 11px; color: #666;")
        layout.addWidget(header)

        line = QFrame()
        line.setFrameShape(QFrame.Shape.HLine)
        line.setStyleSheet("color: #ddd;")
        layout.addWidget(line)

        self._list = QListWidget()
        self._list.setViewMode(QListWidget.ViewMode.IconMode)
        self._list.setIconSize(QSize(THUMB_W, THUMB_H))
        self._list.setResizeMode(QListWidget.ResizeMode.Adjust)
        self._list.setMovement(QListWidget.Movement.Static)
        self._list.setSpacing(8)
        self._list.setUniformItemSizes(True)
        self._list.setWordWrap(True)
        self._list.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self._list.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self._list.setDragDropMode(QAbstractItemView.DragDropMode.NoDragDrop)
        self._list.itemClicked.connect(self._on_item_clicked)
        self._list.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        self._list.customContextMenuRequested.connect(self._show_context_menu)
        self._list.setStyleSheet(
            "QListWidget { background: #fafafa; border: none; padding: 5px; }"
            "QListWidget::item { border-radius: 6px; }"
            "QListWidget::item:selected { background: rgba(41, 121, 255, 0.12); }"
        )
        layout.addWidget(self._list, 1)

        self._empty_label = QLabel("PDF 파일을\n여기에 놓으세요")
        self._empty_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._empty_label.setStyleSheet("color: #999; font-size: 12px;")
        layout.addWidget(self._empty_label, 1)

        file_set.files_changed.connect(self.reload)
        file_set.selection_changed.connect(self._on_selection_changed)
        self.reload()

    def row_count(self) -> int:
        return self._list.count()

    def row_text(self, row: int) -> str:
        return self._list.item(row).text()

    # ── Population ────────────────────────────

    def reload(self):
        self._stop_workers()
        self._generation += 1
        self._list.clear()
        docs = self._file_set.documents
        self._list.setVisible(bool(docs))
        self._empty_label.setVisible(not docs)
        if not docs:
            return

        placeholder = QPixmap(THUMB_W, THUMB_H)
        placeholder.fill(QColor("white"))
        placeholder_icon = QIcon(placeholder)
        for doc in docs:
            item = QListWidgetItem(placeholder_icon, self._item_text(doc))
            item.setSizeHint(QSize(THUMB_W + 20, THUMB_H + 40))
            item.setTextAlignment(Qt.AlignmentFlag.AlignHCenter | Qt.AlignmentFlag.AlignBottom)
            item.setToolTip(doc.name)
            self._list.addItem(item)
        self._on_selection_changed(self._file_set.selected)

        worker = ThumbnailWorker([d.data for d in docs], size=THUMB_W * 2, generation=self._generation)
        worker.done.connect(self._on_thumbnail_done)
        self._workers.append(worker)
        worker.start()

    @staticmethod
    def _item_text(doc: SourceDocument) -> str:
        return f"{doc.name}\n{doc.page_count}페이지"

    def _on_thumbnail_done(self, generation: int, row: int, image: QImage):
        # Rows from a previous list layout may still be queued.
        if generation != self._generation:
            return
        if image.isNull() or row >= self._list.count():
            return
        pixmap = QPixmap.fromImage(image).scaled(
            THUMB_W, THUMB_H,
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        self._list.item(row).setIcon(QIcon(pixmap))

    def _on_selection_changed(self, doc: Optional[SourceDocument]):
        row = self._file_set.index_of(doc) if doc is not None else -1
        self._list.blockSignals(True)
        if 0 <= row < self._list.count():
            self._list.setCurrentRow(row)
        else:
            self._list.clearSelection()
        self._list.blockSignals(False)

    def _stop_workers(self):
        for w in self._workers:
            w.cancel()
            w.quit()
            w.wait(1000)
        self._workers.clear()

    def cleanup(self):
        self._stop_workers()

    # ── Interaction ───────────────────────────

    def _on_item_clicked(self, item: QListWidgetItem):
        self.select_requested.emit(self._list.row(item))

    def _show_context_menu(self, pos):
        item = self._list.itemAt(pos)
        if not item:
            return
        row = self._list.row(item)
        menu = QMenu(self._list)
        menu.addAction("선택").triggered.connect(lambda: self.select_requested.emit(row))
        menu.addAction("삭제").triggered.connect(lambda: self.remove_requested.emit(row))
        menu.exec(self._list.mapToGlobal(pos))

    # ── External PDF drop ─────────────────────

    @staticmethod
    def _pdf_paths(mime_data) -> list[str]:
        if not mime_data or not mime_data.hasUrls():
            return []
        return [
            url.toLocalFile() for url in mime_data.urls()
            if url.toLocalFile().lower().endswith(".pdf")
        ]

    def dragEnterEvent(self, event):
        if self._pdf_paths(event.mimeData()):
            event.setDropAction(Qt.DropAction.CopyAction)
            event.accept()
        else:
            event.ignore()

    def dragMoveEvent(self, event):
        if self._pdf_paths(event.mimeData()):
            event.setDropAction(Qt.DropAction.CopyAction)
            event.accept()
        else:
            event.ignore()

    def dropEvent(self, event):
        paths = self._pdf_paths(event.mimeData())
        if not paths:
            event.ignore()
            return
        self.files_dropped.emit(paths)
        event.accept()
