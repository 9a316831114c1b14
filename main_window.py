"""
main_window.py — Main application window
"""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

from PyQt6.QtCore import Qt, QThread, pyqtSignal
from PyQt6.QtGui import QKeySequence, QShortcut
from PyQt6.QtWidgets import (
    QFileDialog, QFrame, QHBoxLayout, QLabel, QMainWindow, QMessageBox,
    QSplitter, QStatusBar, QToolButton, QVBoxLayout, QWidget,
)

from edit_chain import MERGED_FILENAME, DocumentAssembler, EditChain, EngineWorker
from engines import DocumentEngine, RenderingEngine
from models import (
    ActiveFileSet, ChainBusy, ComposerError, ExportArtifact, ImagePlacement,
    InvalidInputCount, MissingActiveDocument, NothingToExport, SourceDocument,
    TextPlacement, UnsupportedInput, load_image_asset, load_source_document,
)
from panels import ImagePositionerDialog, TextPositionerDialog
from pdf_viewer import PDFPreviewWidget
from positioning import PositioningSession
from settings import AppSettings
from sidebar import FileListPanel

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────

def make_tool_button(text: str, tooltip: str) -> QToolButton:
    btn = QToolButton()
    btn.setText(text)
    btn.setToolTip(tooltip)
    btn.setFixedSize(36, 32)
    btn.setStyleSheet(
        "QToolButton { border: none; border-radius: 4px; font-size: 16px; }"
        "QToolButton:hover { background: rgba(0,0,0,0.08); }"
        "QToolButton:pressed { background: rgba(0,0,0,0.15); }"
        "QToolButton:disabled { color: #bbb; }"
    )
    return btn


DIVIDER_STYLE = "background: #d0d0d0; min-width: 1px; max-width: 1px; margin: 3px 4px;"


def make_divider() -> QFrame:
    d = QFrame()
    d.setFrameShape(QFrame.Shape.VLine)
    d.setStyleSheet(DIVIDER_STYLE)
    return d


# ─────────────────────────────────────────────
# Workers
# ─────────────────────────────────────────────

class FileSaveWorker(QThread):
    finished = pyqtSignal(bool, str)  # success, path or message

    def __init__(self, data: bytes, save_path: str):
        super().__init__()
        self._data = data
        self._save_path = save_path

    def run(self):
        try:
            with open(self._save_path, "wb") as f:
                f.write(self._data)
            self._data = None  # 메모리 해제
            self.finished.emit(True, self._save_path)
        except OSError as e:
            logger.error("Save to %s failed: %s", self._save_path, e)
            self.finished.emit(False, str(e))


# ─────────────────────────────────────────────
# Main Window
# ─────────────────────────────────────────────

class MainWindow(QMainWindow):

    def __init__(self, settings: Optional[AppSettings] = None):
        super().__init__()
        self.setWindowTitle("PDF Composer")
        self.setMinimumSize(960, 680)
        self.resize(1180, 820)

        # Managers
        self._settings = settings or AppSettings()
        self._file_set = ActiveFileSet(self)
        self._renderer = RenderingEngine()
        engine = DocumentEngine(self._settings.fonts_dir)
        self._chain = EditChain(engine, self)
        self._assembler = DocumentAssembler(engine)

        # Workers
        self._merge_worker: Optional[EngineWorker] = None
        self._save_worker: Optional[FileSaveWorker] = None
        self._edit_worker: Optional[EngineWorker] = None

        self._page_index: int = 0

        self._build_ui()
        self._connect_signals()
        self._update_toolbar_state()
        self.setAcceptDrops(True)

    # ── Worker lifecycle helper ───────────────
    @staticmethod
    def _stop_worker(worker: "QThread | None", timeout_ms: int = 2000):
        """기존 QThread 워커가 끝날 때까지 기다린 후 정리."""
        if worker is None:
            return
        if worker.isRunning():
            worker.quit()
            worker.wait(timeout_ms)
        worker.deleteLater()

    # ── UI Build ──────────────────────────────

    def _build_ui(self):
        central = QWidget()
        self.setCentralWidget(central)
        main_vl = QVBoxLayout(central)
        main_vl.setContentsMargins(0, 0, 0, 0)
        main_vl.setSpacing(0)

        # ── Toolbar ──
        self._toolbar = QWidget()
        self._toolbar.setFixedHeight(38)
        self._toolbar.setStyleSheet("background: #fafafa;")
        tb_layout = QHBoxLayout(self._toolbar)
        tb_layout.setContentsMargins(6, 3, 6, 3)
        tb_layout.setSpacing(0)

        self._open_btn = make_tool_button("📂", "PDF 열기 (Ctrl+O)")
        self._open_btn.clicked.connect(self._open_files)
        tb_layout.addWidget(self._open_btn)
        self._merge_btn = make_tool_button("⊕", "업로드한 PDF 합치기")
        self._merge_btn.clicked.connect(self._merge_pdfs)
        tb_layout.addWidget(self._merge_btn)
        tb_layout.addWidget(make_divider())

        # Page navigation
        self._prev_pg_btn = make_tool_button("<", "이전 페이지")
        self._prev_pg_btn.clicked.connect(self._prev_page)
        tb_layout.addWidget(self._prev_pg_btn)
        self._page_label = QLabel("—")
        self._page_label.setFixedWidth(60)
        self._page_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._page_label.setStyleSheet("font-size: 11px; color: #888;")
        tb_layout.addWidget(self._page_label)
        self._next_pg_btn = make_tool_button(">", "다음 페이지")
        self._next_pg_btn.clicked.connect(self._next_page)
        tb_layout.addWidget(self._next_pg_btn)
        tb_layout.addWidget(make_divider())

        # Placement tools
        self._image_btn = make_tool_button("🖼", "이미지 추가")
        self._image_btn.clicked.connect(self._add_image)
        tb_layout.addWidget(self._image_btn)
        self._text_btn = make_tool_button("T", "텍스트 추가")
        self._text_btn.clicked.connect(self._add_text)
        tb_layout.addWidget(self._text_btn)
        self._reset_btn = make_tool_button("↺", "편집 초기화")
        self._reset_btn.clicked.connect(self._reset_edits)
        tb_layout.addWidget(self._reset_btn)

        tb_layout.addStretch()

        self._export_btn = make_tool_button("💾", "편집한 PDF 내보내기 (Ctrl+S)")
        self._export_btn.clicked.connect(self._export_edited)
        tb_layout.addWidget(self._export_btn)

        main_vl.addWidget(self._toolbar)

        sep = QFrame()
        sep.setFrameShape(QFrame.Shape.HLine)
        sep.setStyleSheet("color: #d0d0d0;")
        main_vl.addWidget(sep)

        # Edit banner (visible while a working artifact exists)
        self._edit_banner = QLabel()
        self._edit_banner.setStyleSheet(
            "background: #E3F2FD; color: #1565C0; font-size: 11px; padding: 4px 10px;"
        )
        self._edit_banner.hide()
        main_vl.addWidget(self._edit_banner)

        # ── Main Content Area ──
        self._sidebar = FileListPanel(self._file_set)
        self._preview = PDFPreviewWidget(self._renderer)

        self._splitter = QSplitter(Qt.Orientation.Horizontal)
        self._splitter.addWidget(self._sidebar)
        self._splitter.addWidget(self._preview)
        self._splitter.setSizes([200, 980])
        main_vl.addWidget(self._splitter, 1)

        # ── Status Bar ──
        self._status_label = QLabel("PDF Composer")
        self._status_label.setStyleSheet("font-size: 11px; color: #888; padding: 2px 10px;")
        statusbar = QStatusBar()
        statusbar.addWidget(self._status_label)
        statusbar.setFixedHeight(24)
        self.setStatusBar(statusbar)

    def _connect_signals(self):
        self._file_set.selection_changed.connect(self._on_selection_changed)
        self._file_set.files_changed.connect(self._update_toolbar_state)

        self._sidebar.files_dropped.connect(self.load_files)
        self._sidebar.select_requested.connect(self._select_document)
        self._sidebar.remove_requested.connect(self._remove_document)

        self._chain.artifact_changed.connect(self._on_artifact_changed)
        self._chain.busy_changed.connect(self._on_busy_changed)
        self._chain.placement_applied.connect(self._on_placement_applied)
        self._chain.placement_failed.connect(self._on_placement_failed)

        self._preview.render_failed.connect(lambda msg: self._set_status(f"미리보기 오류: {msg}"))

        # Keyboard shortcuts
        QShortcut(QKeySequence("Ctrl+O"), self).activated.connect(self._open_files)
        QShortcut(QKeySequence("Ctrl+S"), self).activated.connect(self._export_edited)
        QShortcut(QKeySequence("PgUp"), self).activated.connect(self._prev_page)
        QShortcut(QKeySequence("PgDown"), self).activated.connect(self._next_page)

    # ── File Operations ───────────────────────

    def _open_files(self):
        paths, _ = QFileDialog.getOpenFileNames(self, "PDF 열기", "", "PDF Files (*.pdf)")
        if paths:
            self.load_files(paths)

    def load_files(self, paths: list[str]) -> list[SourceDocument]:
        """Upload PDFs in the given order; rejected files are reported together."""
        docs: list[SourceDocument] = []
        rejected: list[str] = []
        for path in paths:
            try:
                docs.append(load_source_document(path))
            except UnsupportedInput as e:
                logger.warning("Upload rejected: %s", e)
                rejected.append(str(e))
            except OSError as e:
                logger.warning("Cannot read %s: %s", path, e)
                rejected.append(f"{os.path.basename(path)}: {e}")
        self._file_set.add_many(docs)
        if rejected:
            QMessageBox.warning(self, "지원하지 않는 파일", "\n".join(rejected))
        if docs:
            self._set_status(f"{len(docs)}개 PDF 업로드 완료 (총 {len(self._file_set)}개)")
        return docs

    def _select_document(self, index: int):
        try:
            self._file_set.select(index)
        except IndexError as e:
            logger.warning("Select ignored: %s", e)

    def _remove_document(self, index: int):
        if self._chain.busy:
            self._set_status("편집 적용 중에는 파일을 삭제할 수 없습니다.")
            return
        try:
            removed = self._file_set.remove(index)
        except IndexError as e:
            logger.warning("Remove ignored: %s", e)
            return
        self._set_status(f"{removed.name} 삭제됨")

    def _on_selection_changed(self, doc: Optional[SourceDocument]):
        self._page_index = 0
        self._chain.set_source(doc)

    # ── Merge ─────────────────────────────────

    def _merge_pdfs(self):
        docs = self._file_set.documents
        try:
            DocumentAssembler.check_count(docs)
        except InvalidInputCount as e:
            QMessageBox.information(self, "알림", str(e))
            return
        self._set_status(f"{len(docs)}개 PDF 합치는 중...")
        self._stop_worker(self._merge_worker)
        self._merge_worker = EngineWorker(self._assembler.merge_bytes, docs)
        self._merge_worker.succeeded.connect(self._on_merge_done)
        self._merge_worker.failed.connect(self._on_merge_failed)
        self._merge_worker.finished.connect(self._update_toolbar_state)
        self._merge_worker.start()
        self._update_toolbar_state()

    def _on_merge_done(self, data: bytes):
        logger.info("Merged %d documents", len(self._file_set))
        self._set_status("합치기 완료")
        self._save_artifact(ExportArtifact(MERGED_FILENAME, data), "합친 PDF 저장")

    def _on_merge_failed(self, message: str):
        QMessageBox.critical(self, "합치기 오류", message)
        self._set_status("합치기 실패")

    # ── Placement ─────────────────────────────

    def _open_session(self, session: PositioningSession,
                      dialog_cls: type[Union[ImagePositionerDialog, TextPositionerDialog]]):
        page = session.page_index
        self._chain.open_session(session)
        session.confirmed.connect(lambda draft: self._apply_placement(draft, page))
        dialog = dialog_cls(session, self)
        session.start()
        dialog.exec()

    def _add_image(self):
        try:
            current = self._chain.current_bytes
        except MissingActiveDocument as e:
            QMessageBox.information(self, "알림", str(e))
            return
        path, _ = QFileDialog.getOpenFileName(
            self, "이미지 선택", "", "이미지 (*.png *.jpg *.jpeg)"
        )
        if not path:
            return
        try:
            asset = load_image_asset(path)
        except UnsupportedInput as e:
            QMessageBox.warning(self, "지원하지 않는 파일", str(e))
            return
        except OSError as e:
            QMessageBox.critical(self, "오류", f"파일을 열 수 없습니다:\n{e}")
            return
        session = PositioningSession.for_image(current, self._page_index, asset,
                                               **self._session_kwargs())
        self._open_session(session, ImagePositionerDialog)

    def _add_text(self):
        try:
            current = self._chain.current_bytes
        except MissingActiveDocument as e:
            QMessageBox.information(self, "알림", str(e))
            return
        session = PositioningSession.for_text(current, self._page_index,
                                              **self._session_kwargs())
        self._open_session(session, TextPositionerDialog)

    def _session_kwargs(self) -> dict:
        return {
            "renderer": self._renderer,
            "max_width": self._settings.preview_max_width,
            "max_height": self._settings.preview_max_height,
        }

    def _apply_placement(self, draft: Union[ImagePlacement, TextPlacement], page_index: int):
        try:
            self._edit_worker = self._chain.apply_placement_async(draft, page_index)
        except ChainBusy as e:
            self._set_status(str(e))
        except ComposerError as e:
            QMessageBox.critical(self, "오류", str(e))

    def _on_placement_applied(self, draft):
        self._edit_worker = None
        what = "이미지" if draft.kind == "image" else "텍스트"
        self._set_status(f"{what} 추가 완료 (페이지 {self._page_index + 1})")

    def _on_placement_failed(self, message: str):
        self._edit_worker = None
        QMessageBox.critical(self, "편집 오류", message)
        self._set_status("편집 실패")

    # ── Export / reset ────────────────────────

    def _export_edited(self):
        try:
            artifact = self._chain.export()
        except ChainBusy as e:
            self._set_status(str(e))
            return
        except NothingToExport as e:
            QMessageBox.information(self, "알림", str(e))
            return
        self._save_artifact(artifact, "편집한 PDF 내보내기")

    def _save_artifact(self, artifact: ExportArtifact, title: str):
        default_path = os.path.join(self._settings.export_dir, artifact.filename)
        path, _ = QFileDialog.getSaveFileName(self, title, default_path, "PDF Files (*.pdf)")
        if not path:
            return
        if not path.lower().endswith(".pdf"):
            path += ".pdf"
        self._settings.export_dir = os.path.dirname(path)
        self._set_status("저장 중...")
        self._stop_worker(self._save_worker)
        self._save_worker = FileSaveWorker(artifact.data, path)
        self._save_worker.finished.connect(self._on_save_finished)
        self._save_worker.start()

    def _on_save_finished(self, success: bool, msg: str):
        if success:
            logger.info("Saved %s", msg)
            self._set_status(f"저장 완료: {os.path.basename(msg)}")
        else:
            QMessageBox.critical(self, "저장 오류", msg)
            self._set_status("저장 실패")

    def _reset_edits(self):
        if not self._chain.has_edits:
            return
        reply = QMessageBox.question(
            self, "편집 초기화",
            f"적용한 편집 {self._chain.edit_count}개를 모두 취소하고 원본으로 되돌리시겠습니까?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
        )
        if reply != QMessageBox.StandardButton.Yes:
            return
        self._chain.reset()
        self._page_index = 0
        self._refresh_preview()
        self._set_status("원본으로 되돌렸습니다")

    # ── Navigation ────────────────────────────

    def _page_count(self) -> int:
        source = self._chain.source
        return source.page_count if source else 0

    def _go_to_page(self, page: int):
        count = self._page_count()
        if count == 0:
            return
        page = max(0, min(page, count - 1))
        if page == self._page_index:
            return
        self._page_index = page
        self._preview.set_page(page)
        self._update_page_label()

    def _prev_page(self):
        self._go_to_page(self._page_index - 1)

    def _next_page(self):
        self._go_to_page(self._page_index + 1)

    # ── Chain events ──────────────────────────

    def _on_artifact_changed(self):
        self._refresh_preview()
        self._update_toolbar_state()

    def _refresh_preview(self):
        source = self._chain.source
        if source is None:
            self._preview.set_document(None)
        else:
            self._page_index = min(self._page_index, max(source.page_count - 1, 0))
            self._preview.set_document(self._chain.current_bytes, self._page_index)
        self._update_page_label()

    def _on_busy_changed(self, busy: bool):
        if busy:
            self._set_status("편집 적용 중...")
        self._update_toolbar_state()

    # ── Helpers ───────────────────────────────

    def _update_toolbar_state(self):
        busy = self._chain.busy or (self._merge_worker is not None and self._merge_worker.isRunning())
        has_doc = self._chain.source is not None
        self._image_btn.setEnabled(has_doc and not busy)
        self._text_btn.setEnabled(has_doc and not busy)
        self._reset_btn.setEnabled(self._chain.has_edits and not busy)
        self._export_btn.setEnabled(self._chain.has_edits and not busy)
        self._merge_btn.setEnabled(len(self._file_set) >= 2 and not busy)
        self._sidebar.setEnabled(not self._chain.busy)
        if self._chain.has_edits:
            self._edit_banner.setText(
                f"✎ {self._chain.source.name}: 편집 {self._chain.edit_count}개 적용됨 · 내보내기로 저장하세요"
            )
            self._edit_banner.show()
        else:
            self._edit_banner.hide()
        self._update_page_label()

    def _update_page_label(self):
        count = self._page_count()
        if count:
            self._page_label.setText(f"{self._page_index + 1}/{count}")
        else:
            self._page_label.setText("—")
        self._prev_pg_btn.setEnabled(count > 0 and self._page_index > 0)
        self._next_pg_btn.setEnabled(count > 0 and self._page_index < count - 1)

    def _set_status(self, msg: str):
        self._status_label.setText(msg)

    # ── Drag & Drop (PDF) ─────────────────────

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            for url in event.mimeData().urls():
                if url.toLocalFile().lower().endswith(".pdf"):
                    event.acceptProposedAction()
                    return
        event.ignore()

    def dropEvent(self, event):
        paths = [
            url.toLocalFile() for url in event.mimeData().urls()
            if url.toLocalFile().lower().endswith(".pdf")
        ]
        if paths:
            self.load_files(paths)

    # ── Close ─────────────────────────────────

    def closeEvent(self, event):
        if self._chain.has_edits:
            reply = QMessageBox.question(
                self, "저장하지 않은 변경사항",
                "내보내지 않은 편집 내용이 있습니다. 종료하시겠습니까?",
                QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            )
            if reply == QMessageBox.StandardButton.No:
                event.ignore()
                return
        for worker in (self._merge_worker, self._save_worker, self._edit_worker):
            if worker is not None and worker.isRunning():
                worker.wait(3000)
        self._sidebar.cleanup()
        self._settings.sync()
        event.accept()
