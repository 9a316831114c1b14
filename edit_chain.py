"""
edit_chain.py — Linear edit chain over one source document, and the merge path.

The chain holds a single nullable working artifact. Each confirmed placement
is applied to the current artifact (working artifact if any, else the source)
and the result replaces the slot wholesale only after the engine succeeded.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from engines import DocumentEngine
from models import (
    AssemblyFailure, ChainBusy, ComposerError, ExportArtifact, ImagePlacement,
    InvalidInputCount, MissingActiveDocument, NothingToExport, SourceDocument,
    TextPlacement,
)
from positioning import PositioningSession

logger = logging.getLogger(__name__)

EDITED_FILENAME = "edited.pdf"
MERGED_FILENAME = "merged.pdf"


# ─────────────────────────────────────────────
# Worker
# ─────────────────────────────────────────────

class EngineWorker(QThread):
    """Background thread for one document-engine call returning bytes."""
    succeeded = pyqtSignal(bytes)
    failed = pyqtSignal(str)

    def __init__(self, func: Callable[..., bytes], *args):
        super().__init__()
        self._func = func
        self._args = args

    def run(self):
        try:
            result = self._func(*self._args)
        except ComposerError as e:
            self.failed.emit(str(e))
            return
        except Exception as e:
            logger.exception("Unexpected engine error")
            self.failed.emit(f"{type(e).__name__}: {e}")
            return
        self.succeeded.emit(result)


# ─────────────────────────────────────────────
# Edit Chain
# ─────────────────────────────────────────────

class EditChain(QObject):
    """Owns the working artifact for the selected source document."""

    artifact_changed = pyqtSignal()
    busy_changed = pyqtSignal(bool)
    placement_applied = pyqtSignal(object)   # the applied draft
    placement_failed = pyqtSignal(str)

    def __init__(self, engine: Optional[DocumentEngine] = None, parent=None):
        super().__init__(parent)
        self._engine = engine or DocumentEngine()
        self._source: Optional[SourceDocument] = None
        self._working: Optional[bytes] = None
        self._busy = False
        self._worker: Optional[EngineWorker] = None
        self._sessions: list[PositioningSession] = []
        self.generation = 0
        self.edit_count = 0

    # ── State ─────────────────────────────────

    @property
    def source(self) -> Optional[SourceDocument]:
        return self._source

    @property
    def working_artifact(self) -> Optional[bytes]:
        return self._working

    @property
    def has_edits(self) -> bool:
        return self._working is not None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def current_bytes(self) -> bytes:
        if self._working is not None:
            return self._working
        if self._source is None:
            raise MissingActiveDocument("PDF 파일을 선택하세요.")
        return self._source.data

    def _set_busy(self, busy: bool):
        if self._busy != busy:
            self._busy = busy
            self.busy_changed.emit(busy)

    def _bump(self):
        self.generation += 1
        self.artifact_changed.emit()

    # ── Source / sessions ─────────────────────

    def set_source(self, doc: Optional[SourceDocument]):
        if doc is self._source:
            return
        self._source = doc
        dropped = self._working is not None
        self._working = None
        self.edit_count = 0
        self._invalidate_sessions()
        logger.info("Edit chain source -> %s%s", doc.name if doc else None,
                    " (working artifact discarded)" if dropped else "")
        self._bump()

    def open_session(self, session: PositioningSession):
        """Track a session so that discarding its artifact also closes it."""
        self._sessions = [s for s in self._sessions if s.is_open]
        self._sessions.append(session)

    def _invalidate_sessions(self):
        sessions, self._sessions = self._sessions, []
        for s in sessions:
            s.invalidate()

    # ── Edits ─────────────────────────────────

    def _embed(self, current: bytes, draft: Union[ImagePlacement, TextPlacement],
               page_index: int) -> bytes:
        if isinstance(draft, ImagePlacement):
            if draft.asset is None:
                raise AssemblyFailure("배치할 이미지 데이터가 없습니다.")
            return self._engine.embed_image(
                current, draft.asset.data, page_index,
                draft.x, draft.y, draft.width, draft.height,
            )
        if isinstance(draft, TextPlacement):
            return self._engine.embed_text(
                current, draft.content, page_index, draft.x, draft.y,
                draft.font_size, draft.color, draft.font_family,
            )
        raise TypeError(f"unknown placement draft: {draft!r}")

    def _commit(self, result: bytes, draft):
        self._working = result
        self.edit_count += 1
        logger.info("Edit #%d committed (%s, %d bytes)", self.edit_count, draft.kind, len(result))
        self._bump()
        self.placement_applied.emit(draft)

    def apply_placement(self, draft: Union[ImagePlacement, TextPlacement], page_index: int) -> bytes:
        """Apply synchronously; the slot is only replaced if the engine succeeds."""
        if self._busy:
            raise ChainBusy("이전 작업이 진행 중입니다.")
        current = self.current_bytes
        self._set_busy(True)
        try:
            result = self._embed(current, draft, page_index)
        finally:
            self._set_busy(False)
        self._commit(result, draft)
        return result

    def apply_placement_async(self, draft: Union[ImagePlacement, TextPlacement],
                              page_index: int) -> EngineWorker:
        if self._busy:
            raise ChainBusy("이전 작업이 진행 중입니다.")
        current = self.current_bytes
        generation = self.generation
        worker = EngineWorker(self._embed, current, draft, page_index)

        def on_success(result: bytes):
            self._finish_worker()
            if generation != self.generation:
                logger.warning("Dropping edit result: chain changed while it was applied")
                self.placement_failed.emit("문서가 변경되어 편집 결과를 적용하지 않았습니다.")
                return
            self._commit(result, draft)

        def on_failure(message: str):
            self._finish_worker()
            logger.error("Placement failed: %s", message)
            self.placement_failed.emit(message)

        worker.succeeded.connect(on_success)
        worker.failed.connect(on_failure)
        self._worker = worker
        self._set_busy(True)
        worker.start()
        return worker

    def _finish_worker(self):
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.wait()
            worker.deleteLater()
        self._set_busy(False)

    def reset(self):
        if self._working is None:
            return
        self._working = None
        self.edit_count = 0
        self._invalidate_sessions()
        logger.info("Edits reset to source %s", self._source.name if self._source else None)
        self._bump()

    def export(self) -> ExportArtifact:
        if self._busy:
            raise ChainBusy("이전 작업이 진행 중입니다.")
        if self._working is None:
            raise NothingToExport("편집 내용이 없습니다.")
        return ExportArtifact(EDITED_FILENAME, self._working)


# ─────────────────────────────────────────────
# Merge
# ─────────────────────────────────────────────

class DocumentAssembler:
    """Concatenates source documents into a new artifact, independent of any chain."""

    def __init__(self, engine: Optional[DocumentEngine] = None):
        self._engine = engine or DocumentEngine()

    @staticmethod
    def check_count(ordered_documents: list[SourceDocument]):
        if len(ordered_documents) < 2:
            raise InvalidInputCount("합치려면 2개 이상의 PDF 파일이 필요합니다.")

    def merge_bytes(self, ordered_documents: list[SourceDocument]) -> bytes:
        self.check_count(ordered_documents)
        return self._engine.merge([d.data for d in ordered_documents])

    def merge_documents(self, ordered_documents: list[SourceDocument]) -> ExportArtifact:
        data = self.merge_bytes(ordered_documents)
        logger.info("Merged %s", ", ".join(d.name for d in ordered_documents))
        return ExportArtifact(MERGED_FILENAME, data)
