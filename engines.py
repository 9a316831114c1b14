"""
engines.py — PyMuPDF-backed rendering engine and document manipulation engine.

Every call opens its own fitz.Document from bytes (thread-private instance)
and returns complete byte buffers / detached QImages, so both engines can be
used from worker threads.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import QObject, QRunnable, pyqtSignal
from PyQt6.QtGui import QImage

from coords import fit_scale, pdf_point_to_engine, pdf_rect_to_engine
from models import AssemblyFailure, FontFamily, PageGeometry, RenderFailure, RGBColor

logger = logging.getLogger(__name__)


def fitz_pixmap_to_qimage(pix: fitz.Pixmap) -> QImage:
    """Convert fitz.Pixmap to QImage."""
    fmt = QImage.Format.Format_RGB888 if pix.n == 3 else QImage.Format.Format_RGBA8888
    img = QImage(pix.samples, pix.width, pix.height, pix.stride, fmt)
    return img.copy()  # copy to detach from fitz memory


# ─────────────────────────────────────────────
# Rendering engine
# ─────────────────────────────────────────────

@dataclass
class RenderResult:
    geometry: PageGeometry
    image: QImage
    scale: float


class RenderingEngine:
    """Rasterizes one PDF page for preview."""

    def page_count(self, pdf_bytes: bytes) -> int:
        doc = self._open(pdf_bytes)
        try:
            return doc.page_count
        finally:
            doc.close()

    def page_geometry(self, pdf_bytes: bytes, page_index: int) -> PageGeometry:
        doc = self._open(pdf_bytes)
        try:
            return self._geometry(self._page(doc, page_index))
        finally:
            doc.close()

    def render(self, pdf_bytes: bytes, page_index: int, scale: float) -> RenderResult:
        doc = self._open(pdf_bytes)
        try:
            page = self._page(doc, page_index)
            return self._rasterize(page, self._geometry(page), scale)
        finally:
            doc.close()

    def render_fit(self, pdf_bytes: bytes, page_index: int,
                   max_width: float, max_height: float) -> RenderResult:
        """Render at the largest scale that fits (max_width, max_height)."""
        doc = self._open(pdf_bytes)
        try:
            page = self._page(doc, page_index)
            geometry = self._geometry(page)
            return self._rasterize(page, geometry, fit_scale(geometry, max_width, max_height))
        finally:
            doc.close()

    # ── internals ──

    @staticmethod
    def _open(pdf_bytes: bytes) -> fitz.Document:
        try:
            return fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            logger.error("Render: cannot open document: %s", e)
            raise RenderFailure(f"문서를 열 수 없습니다: {e}") from e

    @staticmethod
    def _page(doc: fitz.Document, page_index: int) -> fitz.Page:
        if not 0 <= page_index < doc.page_count:
            raise RenderFailure(f"페이지 {page_index + 1}이(가) 없습니다 (총 {doc.page_count}페이지)")
        return doc[page_index]

    @staticmethod
    def _geometry(page: fitz.Page) -> PageGeometry:
        try:
            return PageGeometry(page.rect.width, page.rect.height)
        except ValueError as e:
            raise RenderFailure(str(e)) from e

    @staticmethod
    def _rasterize(page: fitz.Page, geometry: PageGeometry, scale: float) -> RenderResult:
        try:
            pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
            image = fitz_pixmap_to_qimage(pix)
        except Exception as e:
            logger.error("Render failed for page %d: %s", page.number, e)
            raise RenderFailure(f"페이지 렌더링 실패: {e}") from e
        logger.debug("Rendered page %d at %.3f (%dx%d)", page.number, scale, image.width(), image.height())
        return RenderResult(geometry=geometry, image=image, scale=scale)


class WorkerSignals(QObject):
    finished = pyqtSignal(object)   # RenderResult
    failed = pyqtSignal(str)


class RenderWorker(QRunnable):
    """Background worker for one render_fit call."""

    def __init__(self, engine: RenderingEngine, pdf_bytes: bytes, page_index: int,
                 max_width: float, max_height: float):
        super().__init__()
        self._engine = engine
        self._pdf_bytes = pdf_bytes
        self.page_index = page_index
        self._max_width = max_width
        self._max_height = max_height
        self.signals = WorkerSignals()

    def run(self):
        try:
            result = self._engine.render_fit(
                self._pdf_bytes, self.page_index, self._max_width, self._max_height
            )
        except RenderFailure as e:
            self.signals.failed.emit(str(e))
            return
        self.signals.finished.emit(result)


# ─────────────────────────────────────────────
# Document manipulation engine
# ─────────────────────────────────────────────

class DocumentEngine:
    """Embeds images/text into pages and merges documents."""

    def __init__(self, fonts_dir: Optional[Path] = None):
        self.fonts_dir = fonts_dir

    def embed_image(self, pdf_bytes: bytes, image_bytes: bytes, page_index: int,
                    x: float, y: float, width: float, height: float) -> bytes:
        if width <= 0 or height <= 0:
            raise AssemblyFailure(f"이미지 크기가 올바르지 않습니다: {width}x{height}")
        doc = self._open(pdf_bytes)
        try:
            page = self._page(doc, page_index)
            geometry = PageGeometry(page.rect.width, page.rect.height)
            rect = fitz.Rect(*pdf_rect_to_engine(x, y, width, height, geometry))
            page.insert_image(rect, stream=image_bytes, keep_proportion=False)
            out = doc.tobytes(garbage=3, deflate=True)
        except AssemblyFailure:
            raise
        except Exception as e:
            logger.error("embed_image failed on page %d: %s", page_index, e)
            raise AssemblyFailure(f"이미지 추가 실패: {e}") from e
        finally:
            doc.close()
        logger.debug("Embedded image on page %d at (%.1f, %.1f) %.1fx%.1f", page_index, x, y, width, height)
        return out

    def embed_text(self, pdf_bytes: bytes, text: str, page_index: int, x: float, y: float,
                   font_size: float, color: RGBColor, font_family: FontFamily) -> bytes:
        doc = self._open(pdf_bytes)
        try:
            page = self._page(doc, page_index)
            geometry = PageGeometry(page.rect.width, page.rect.height)
            point = fitz.Point(*pdf_point_to_engine(x, y, geometry))
            page.insert_text(
                point, text,
                fontsize=font_size,
                color=color.to_unit(),
                **self.font_kwargs(font_family),
            )
            out = doc.tobytes(garbage=3, deflate=True)
        except AssemblyFailure:
            raise
        except Exception as e:
            logger.error("embed_text failed on page %d: %s", page_index, e)
            raise AssemblyFailure(f"텍스트 추가 실패: {e}") from e
        finally:
            doc.close()
        logger.debug("Embedded text %r on page %d at (%.1f, %.1f)", text[:30], page_index, x, y)
        return out

    def merge(self, ordered_buffers: list[bytes]) -> bytes:
        merged = fitz.open()
        try:
            for i, buf in enumerate(ordered_buffers):
                src = self._open(buf, label=f"#{i + 1}")
                try:
                    merged.insert_pdf(src)
                finally:
                    src.close()
            out = merged.tobytes(garbage=3, deflate=True)
        except AssemblyFailure:
            raise
        except Exception as e:
            logger.error("merge failed: %s", e)
            raise AssemblyFailure(f"PDF 합치기 실패: {e}") from e
        finally:
            merged.close()
        logger.debug("Merged %d documents (%d bytes)", len(ordered_buffers), len(out))
        return out

    def font_kwargs(self, family: FontFamily) -> dict:
        """insert_text kwargs: embed the family's TTF if present, else the built-in font."""
        if family.font_file and self.fonts_dir is not None:
            path = self.fonts_dir / family.font_file
            if path.is_file():
                return {"fontname": f"F{family.name}", "fontfile": str(path)}
        return {"fontname": family.builtin}

    # ── internals ──

    @staticmethod
    def _open(pdf_bytes: bytes, label: str = "") -> fitz.Document:
        try:
            return fitz.open(stream=pdf_bytes, filetype="pdf")
        except Exception as e:
            name = f"문서 {label}" if label else "문서"
            logger.error("Cannot open %s: %s", name, e)
            raise AssemblyFailure(f"{name}를 열 수 없습니다: {e}") from e

    @staticmethod
    def _page(doc: fitz.Document, page_index: int) -> fitz.Page:
        if not 0 <= page_index < doc.page_count:
            raise AssemblyFailure(f"페이지 {page_index + 1}이(가) 없습니다 (총 {doc.page_count}페이지)")
        return doc[page_index]
