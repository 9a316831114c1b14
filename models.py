"""
models.py — Data models: page geometry, placement drafts, source documents,
ActiveFileSet, and the error kinds surfaced to the user.
"""

from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import fitz  # PyMuPDF
from PyQt6.QtCore import QObject, pyqtSignal

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────

class ComposerError(Exception):
    """Base class for errors reported to the user at the point of action."""


class InvalidInputCount(ComposerError):
    pass


class MissingActiveDocument(ComposerError):
    pass


class RenderFailure(ComposerError):
    pass


class AssemblyFailure(ComposerError):
    pass


class NothingToExport(ComposerError):
    pass


class UnsupportedInput(ComposerError):
    pass


class SessionClosed(ComposerError):
    pass


class ChainBusy(ComposerError):
    pass


# ─────────────────────────────────────────────
# Geometry & style values
# ─────────────────────────────────────────────

@dataclass(frozen=True)
class PageGeometry:
    """Page size in PDF points (origin bottom-left)."""
    width_pt: float
    height_pt: float

    def __post_init__(self):
        if self.width_pt <= 0 or self.height_pt <= 0:
            raise ValueError(f"invalid page size {self.width_pt}x{self.height_pt}")


@dataclass(frozen=True)
class RGBColor:
    r: int = 0
    g: int = 0
    b: int = 0

    def __post_init__(self):
        for ch in (self.r, self.g, self.b):
            if not 0 <= ch <= 255:
                raise ValueError(f"color channel out of range: {ch}")

    @classmethod
    def clamped(cls, r: float, g: float, b: float) -> "RGBColor":
        return cls(*(int(max(0, min(255, round(c)))) for c in (r, g, b)))

    @classmethod
    def from_hex(cls, value: str) -> "RGBColor":
        h = value.lstrip("#")
        if len(h) == 3:
            h = "".join(c * 2 for c in h)
        if len(h) != 6:
            raise ValueError(f"not a #rrggbb color: {value!r}")
        return cls(int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16))

    @property
    def hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def to_unit(self) -> tuple[float, float, float]:
        """Returns RGB tuple 0.0–1.0 for PyMuPDF."""
        return (self.r / 255.0, self.g / 255.0, self.b / 255.0)


class FontFamily(Enum):
    """Supported text fonts: (label, TTF file name, PyMuPDF built-in fallback)."""
    NOTO_SANS_JP = ("Noto Sans JP (고딕)", "NotoSansJP-Regular.ttf", "korea")
    NOTO_SERIF_JP = ("Noto Serif JP (명조)", "NotoSerifJP-Regular.ttf", "korea")
    MPLUS_ROUNDED = ("M PLUS Rounded 1c (둥근 고딕)", "MPLUSRounded1c-Regular.ttf", "korea")
    HELVETICA = ("Helvetica", None, "helv")
    TIMES = ("Times", None, "tiro")
    COURIER = ("Courier", None, "cour")

    def __init__(self, label: str, font_file: Optional[str], builtin: str):
        self.label = label
        self.font_file = font_file
        self.builtin = builtin

    def __str__(self):
        return self.label

    @classmethod
    def all_cases(cls) -> list["FontFamily"]:
        return list(cls)


FONT_SIZE_MIN = 8.0
FONT_SIZE_MAX = 72.0


# ─────────────────────────────────────────────
# Inputs
# ─────────────────────────────────────────────

PDF_MIME = "application/pdf"
IMAGE_MIMES = ("image/png", "image/jpeg")
_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
_JPEG_MAGIC = b"\xff\xd8\xff"


@dataclass(eq=False)
class SourceDocument:
    """An uploaded PDF. Compared by identity, never by content."""
    name: str
    data: bytes
    page_count: int = 0

    def __repr__(self):
        return f"SourceDocument({self.name!r}, {len(self.data)} bytes, {self.page_count}p)"


@dataclass(frozen=True)
class ImageAsset:
    name: str
    data: bytes
    natural_width: int
    natural_height: int


@dataclass(frozen=True)
class ExportArtifact:
    filename: str
    data: bytes


def _guess_mime(name: str) -> str:
    mime, _ = mimetypes.guess_type(name)
    return mime or ""


def is_pdf_input(name: str, data: bytes) -> bool:
    by_type = name.lower().endswith(".pdf") or _guess_mime(name) == PDF_MIME
    return by_type and data[:1024].lstrip().startswith(b"%PDF-")


def source_document_from_bytes(name: str, data: bytes) -> SourceDocument:
    if not is_pdf_input(name, data):
        raise UnsupportedInput(f"PDF 파일이 아닙니다: {name}")
    try:
        doc = fitz.open(stream=data, filetype="pdf")
    except Exception as e:
        raise UnsupportedInput(f"PDF를 열 수 없습니다: {name} ({e})") from e
    try:
        page_count = doc.page_count
    finally:
        doc.close()
    logger.info("Loaded %s (%d pages, %d bytes)", name, page_count, len(data))
    return SourceDocument(name=name, data=bytes(data), page_count=page_count)


def load_source_document(path: Union[str, Path]) -> SourceDocument:
    p = Path(path)
    return source_document_from_bytes(p.name, p.read_bytes())


def image_asset_from_bytes(name: str, data: bytes) -> ImageAsset:
    lower = name.lower()
    by_type = lower.endswith((".png", ".jpg", ".jpeg")) or _guess_mime(name) in IMAGE_MIMES
    by_magic = data.startswith(_PNG_MAGIC) or data.startswith(_JPEG_MAGIC)
    if not (by_type and by_magic):
        raise UnsupportedInput(f"PNG 또는 JPEG 이미지만 지원합니다: {name}")
    try:
        pix = fitz.Pixmap(data)
        w, h = pix.width, pix.height
        pix = None  # free memory
    except Exception as e:
        raise UnsupportedInput(f"이미지를 읽을 수 없습니다: {name} ({e})") from e
    if w <= 0 or h <= 0:
        raise UnsupportedInput(f"이미지 크기가 올바르지 않습니다: {name}")
    return ImageAsset(name=name, data=bytes(data), natural_width=w, natural_height=h)


def load_image_asset(path: Union[str, Path]) -> ImageAsset:
    p = Path(path)
    return image_asset_from_bytes(p.name, p.read_bytes())


# ─────────────────────────────────────────────
# Placement drafts
# ─────────────────────────────────────────────

@dataclass
class PlacementDraft:
    """Common positional part of a placement, in PDF points (origin bottom-left)."""
    x: float
    y: float

    kind = "base"


@dataclass
class ImagePlacement(PlacementDraft):
    width: float
    height: float
    natural_width: float
    natural_height: float
    scale_percent: float = 100.0
    asset: Optional[ImageAsset] = field(default=None, repr=False)

    kind = "image"

    @classmethod
    def for_asset(cls, asset: ImageAsset, x: float = 50.0, y: float = 50.0) -> "ImagePlacement":
        return cls(
            x=x, y=y,
            width=float(asset.natural_width), height=float(asset.natural_height),
            natural_width=float(asset.natural_width), natural_height=float(asset.natural_height),
            scale_percent=100.0, asset=asset,
        )


@dataclass
class TextPlacement(PlacementDraft):
    font_size: float = 24.0
    color: RGBColor = field(default_factory=RGBColor)
    font_family: FontFamily = FontFamily.NOTO_SANS_JP
    content: str = "샘플 텍스트"

    kind = "text"


# ─────────────────────────────────────────────
# Active File Set
# ─────────────────────────────────────────────

class ActiveFileSet(QObject):
    """Uploaded documents in upload order plus the selected one."""

    files_changed = pyqtSignal()
    selection_changed = pyqtSignal(object)   # SourceDocument or None

    def __init__(self, parent=None):
        super().__init__(parent)
        self._docs: list[SourceDocument] = []
        self._selected: Optional[SourceDocument] = None

    def __len__(self) -> int:
        return len(self._docs)

    @property
    def documents(self) -> list[SourceDocument]:
        return list(self._docs)

    @property
    def selected(self) -> Optional[SourceDocument]:
        return self._selected

    def index_of(self, doc: SourceDocument) -> int:
        for i, d in enumerate(self._docs):
            if d is doc:
                return i
        return -1

    def add(self, doc: SourceDocument):
        self.add_many([doc])

    def add_many(self, docs: list[SourceDocument]):
        fresh: list[SourceDocument] = []
        for doc in docs:
            if self.index_of(doc) >= 0 or any(d is doc for d in fresh):
                logger.debug("Skipping already added document %s", doc.name)
                continue
            fresh.append(doc)
        if not fresh:
            return
        self._docs.extend(fresh)
        self.files_changed.emit()
        if self._selected is None:
            self._set_selected(fresh[0])

    def remove(self, index: int) -> SourceDocument:
        if not 0 <= index < len(self._docs):
            raise IndexError(f"no document at index {index}")
        removed = self._docs.pop(index)
        self.files_changed.emit()
        if removed is self._selected:
            self._set_selected(self._docs[0] if self._docs else None)
        return removed

    def select(self, target: Union[SourceDocument, int, None]):
        if target is None:
            doc = None
        elif isinstance(target, int):
            if not 0 <= target < len(self._docs):
                raise IndexError(f"no document at index {target}")
            doc = self._docs[target]
        else:
            if self.index_of(target) < 0:
                raise ValueError(f"{target!r} is not in the file set")
            doc = target
        self._set_selected(doc)

    def _set_selected(self, doc: Optional[SourceDocument]):
        if doc is self._selected:
            return
        self._selected = doc
        self.selection_changed.emit(doc)
