"""
Shared fixtures: in-memory PDFs and images built with PyMuPDF, headless Qt.
"""

from __future__ import annotations

import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import fitz  # PyMuPDF
import pytest
from PyQt6.QtCore import QSettings

from models import source_document_from_bytes
from settings import AppSettings

LETTER = (612.0, 792.0)


def make_pdf(labels: list[str], size: tuple[float, float] = LETTER) -> bytes:
    """One page per label, the label written near the top-left corner."""
    doc = fitz.open()
    try:
        for label in labels:
            page = doc.new_page(width=size[0], height=size[1])
            page.insert_text((72, 72), label, fontsize=18, fontname="helv")
        return doc.tobytes()
    finally:
        doc.close()


def make_png(width: int = 200, height: int = 200, rgb=(255, 0, 0)) -> bytes:
    pix = fitz.Pixmap(fitz.csRGB, fitz.IRect(0, 0, width, height), False)
    pix.set_rect(pix.irect, rgb)
    return pix.tobytes("png")


def page_texts(pdf_bytes: bytes) -> list[str]:
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        return [page.get_text().strip() for page in doc]
    finally:
        doc.close()


@pytest.fixture(autouse=True)
def _qt_app(qapp):
    """Every test runs with a QApplication alive."""
    return qapp


@pytest.fixture
def pdf_a() -> bytes:
    return make_pdf(["A-1", "A-2"])


@pytest.fixture
def pdf_b() -> bytes:
    return make_pdf(["B-1"])


@pytest.fixture
def doc_a(pdf_a):
    return source_document_from_bytes("a.pdf", pdf_a)


@pytest.fixture
def doc_b(pdf_b):
    return source_document_from_bytes("b.pdf", pdf_b)


@pytest.fixture
def png_200() -> bytes:
    return make_png(200, 200)


@pytest.fixture
def app_settings(tmp_path, monkeypatch) -> AppSettings:
    """AppSettings over a throwaway ini file, config dir under tmp_path."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("APPDATA", str(tmp_path))
    qs = QSettings(str(tmp_path / "settings.ini"), QSettings.Format.IniFormat)
    return AppSettings(qs)
