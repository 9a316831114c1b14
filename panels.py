"""
panels.py — Positioner dialogs: ImagePositionerDialog, TextPositionerDialog.

Both wrap a PositioningSession: widgets write draft fields through the
session, and the session's overlay_changed signal repaints the canvas.
"""

from __future__ import annotations

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QColor
from PyQt6.QtWidgets import (
    QColorDialog, QComboBox, QDialog, QDoubleSpinBox, QFrame, QGroupBox,
    QHBoxLayout, QLabel, QMessageBox, QPlainTextEdit, QPushButton, QSlider,
    QSpinBox, QVBoxLayout, QWidget,
)

from models import FONT_SIZE_MAX, FONT_SIZE_MIN, FontFamily, ImagePlacement, TextPlacement
from pdf_viewer import PlacementCanvas
from positioning import (
    SCALE_SLIDER_MAX, SCALE_SLIDER_MIN, SCALE_SLIDER_STEP, PositioningSession,
    SessionState,
)

PRESET_COLORS = ["#000000", "#FF3B30", "#007AFF", "#34C759", "#FF9500", "#AF52DE"]

HINT_STYLE = "font-size: 11px; color: #666;"
CONFIRM_STYLE = "background: #2979FF; color: white; padding: 6px 16px; border-radius: 4px;"


def _slider(lo: int, hi: int, step: int = 1) -> QSlider:
    s = QSlider(Qt.Orientation.Horizontal)
    s.setRange(lo, hi)
    s.setSingleStep(step)
    s.setPageStep(step * 5)
    return s


# ─────────────────────────────────────────────
# Shared dialog shell
# ─────────────────────────────────────────────

class _PositionerDialog(QDialog):
    """Loading view → preview + controls → 확정/취소."""

    TITLE = ""

    def __init__(self, session: PositioningSession, parent=None):
        super().__init__(parent)
        self.setWindowTitle(self.TITLE)
        self.setModal(True)
        self._session = session
        self._syncing = False

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(10)

        title = QLabel(self.TITLE)
        title.setStyleSheet("font-weight: bold; font-size: 14px;")
        layout.addWidget(title)
        self._size_label = QLabel("PDF 페이지 크기: —")
        self._size_label.setStyleSheet(HINT_STYLE)
        layout.addWidget(self._size_label)

        body = QHBoxLayout()
        self._preview_holder = QVBoxLayout()
        self._loading_label = QLabel("불러오는 중...")
        self._loading_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self._loading_label.setMinimumSize(300, 300)
        self._loading_label.setStyleSheet("color: #999; border: 2px solid #ddd; border-radius: 4px;")
        self._preview_holder.addWidget(self._loading_label)
        body.addLayout(self._preview_holder)

        self._controls = QWidget()
        self._controls.setEnabled(False)
        self._controls.setMinimumWidth(300)
        self._controls_layout = QVBoxLayout(self._controls)
        self._controls_layout.setContentsMargins(0, 0, 0, 0)
        body.addWidget(self._controls)
        layout.addLayout(body)

        self._build_position_group()
        self._build_variant_controls()
        self._controls_layout.addStretch()

        btn_row = QHBoxLayout()
        btn_row.addStretch()
        cancel_btn = QPushButton("취소")
        cancel_btn.clicked.connect(self.reject)
        self._confirm_btn = QPushButton("확정")
        self._confirm_btn.setStyleSheet(CONFIRM_STYLE)
        self._confirm_btn.setEnabled(False)
        self._confirm_btn.clicked.connect(self._on_confirm)
        btn_row.addWidget(cancel_btn)
        btn_row.addWidget(self._confirm_btn)
        layout.addLayout(btn_row)

        session.preview_ready.connect(self._on_preview_ready)
        session.overlay_changed.connect(lambda _ov: self._sync_from_draft())
        session.failed.connect(self._on_failed)
        session.cancelled.connect(self._on_session_cancelled)
        if session.state is SessionState.READY:
            self._show_preview()

    # ── Position controls ─────────────────────

    def _build_position_group(self):
        box = QGroupBox("위치 설정 (PDF 좌표계)")
        vl = QVBoxLayout(box)
        hint = QLabel("※ PDF 좌표는 왼쪽 아래가 원점(0,0)입니다")
        hint.setStyleSheet(HINT_STYLE)
        vl.addWidget(hint)

        self._x_spin, self._x_slider = self._add_axis_row(vl, "X 좌표 (왼쪽):")
        self._y_spin, self._y_slider = self._add_axis_row(vl, "Y 좌표 (아래):")
        self._x_spin.valueChanged.connect(lambda v: self._set_position(x=v))
        self._y_spin.valueChanged.connect(lambda v: self._set_position(y=v))
        self._x_slider.valueChanged.connect(lambda v: self._set_position(x=float(v)))
        self._y_slider.valueChanged.connect(lambda v: self._set_position(y=float(v)))
        self._controls_layout.addWidget(box)

    @staticmethod
    def _add_axis_row(parent_layout: QVBoxLayout, text: str) -> tuple[QDoubleSpinBox, QSlider]:
        row = QHBoxLayout()
        lbl = QLabel(text)
        lbl.setMinimumWidth(90)
        row.addWidget(lbl)
        spin = QDoubleSpinBox()
        spin.setDecimals(0)
        spin.setSuffix(" pt")
        spin.setFixedWidth(100)
        row.addWidget(spin)
        row.addStretch()
        parent_layout.addLayout(row)
        slider = _slider(0, 0)
        parent_layout.addWidget(slider)
        return spin, slider

    def _set_position(self, x: float | None = None, y: float | None = None):
        if self._syncing or self._session.state is not SessionState.READY:
            return
        d = self._session.draft
        self._session.set_position(d.x if x is None else x, d.y if y is None else y)

    def _position_bounds(self) -> tuple[float, float]:
        raise NotImplementedError

    # ── Variant hooks ─────────────────────────

    def _build_variant_controls(self):
        raise NotImplementedError

    def _sync_variant(self):
        raise NotImplementedError

    # ── Session events ────────────────────────

    def _on_preview_ready(self, _result):
        self._show_preview()

    def _show_preview(self):
        g = self._session.geometry
        self._size_label.setText(f"PDF 페이지 크기: {round(g.width_pt)} x {round(g.height_pt)} pt")
        self._loading_label.hide()
        self._preview_holder.addWidget(PlacementCanvas(self._session))
        self._controls.setEnabled(True)
        self._confirm_btn.setEnabled(True)
        self._sync_from_draft()
        self.adjustSize()

    def _sync_from_draft(self):
        """Push draft values back into the widgets without re-triggering edits."""
        if self._session.state is not SessionState.READY:
            return
        self._syncing = True
        try:
            d = self._session.draft
            max_x, max_y = self._position_bounds()
            for spin, slider, value, hi in (
                (self._x_spin, self._x_slider, d.x, max_x),
                (self._y_spin, self._y_slider, d.y, max_y),
            ):
                spin.setRange(0, hi)
                spin.setValue(value)
                slider.setRange(0, int(hi))
                slider.setValue(int(round(value)))
            self._sync_variant()
        finally:
            self._syncing = False

    def _on_failed(self, message: str):
        QMessageBox.critical(self, "미리보기 오류", message)
        super().reject()

    def _on_session_cancelled(self):
        if self.isVisible():
            super().reject()

    def _on_confirm(self):
        if self._session.state is SessionState.READY:
            self._session.confirm()
            self.accept()

    def reject(self):
        self._session.cancel()
        super().reject()


# ─────────────────────────────────────────────
# Image positioner
# ─────────────────────────────────────────────

class ImagePositionerDialog(_PositionerDialog):
    TITLE = "이미지 위치와 크기 조정"

    def _build_variant_controls(self):
        box = QGroupBox("크기 조정")
        vl = QVBoxLayout(box)

        row = QHBoxLayout()
        row.addWidget(QLabel("배율:"))
        self._scale_spin = QSpinBox()
        self._scale_spin.setRange(1, 1000)
        self._scale_spin.setSuffix(" %")
        self._scale_spin.valueChanged.connect(self._on_scale_changed)
        row.addWidget(self._scale_spin)
        row.addStretch()
        vl.addLayout(row)
        self._scale_slider = _slider(SCALE_SLIDER_MIN, SCALE_SLIDER_MAX, SCALE_SLIDER_STEP)
        self._scale_slider.valueChanged.connect(self._on_scale_slider)
        vl.addWidget(self._scale_slider)

        self._width_spin = self._dimension_row(vl, "폭:")
        self._height_spin = self._dimension_row(vl, "높이:")
        self._width_spin.valueChanged.connect(self._on_width_changed)
        self._height_spin.valueChanged.connect(self._on_height_changed)

        reset_btn = QPushButton("원래 크기로 (100%)")
        reset_btn.clicked.connect(self._session.reset_size)
        vl.addWidget(reset_btn)

        natural = QLabel()
        natural.setStyleSheet(HINT_STYLE)
        d = self._session.draft
        natural.setText(f"원본 크기: {int(d.natural_width)} x {int(d.natural_height)} px")
        vl.addWidget(natural)
        self._controls_layout.addWidget(box)

    @staticmethod
    def _dimension_row(parent_layout: QVBoxLayout, text: str) -> QDoubleSpinBox:
        row = QHBoxLayout()
        lbl = QLabel(text)
        lbl.setMinimumWidth(90)
        row.addWidget(lbl)
        spin = QDoubleSpinBox()
        spin.setDecimals(0)
        spin.setRange(1, 100000)
        spin.setSuffix(" pt")
        spin.setFixedWidth(100)
        row.addWidget(spin)
        row.addStretch()
        parent_layout.addLayout(row)
        return spin

    def _position_bounds(self) -> tuple[float, float]:
        g = self._session.geometry
        d: ImagePlacement = self._session.draft
        return (max(0.0, g.width_pt - d.width), max(0.0, g.height_pt - d.height))

    def _sync_variant(self):
        d: ImagePlacement = self._session.draft
        self._scale_spin.setValue(int(round(d.scale_percent)))
        self._scale_slider.setValue(int(round(d.scale_percent)))
        self._width_spin.setValue(d.width)
        self._height_spin.setValue(d.height)

    def _on_scale_changed(self, value: int):
        if not self._syncing:
            self._session.set_scale(value)

    def _on_scale_slider(self, value: int):
        if not self._syncing:
            # snap to the slider step
            self._session.set_scale(round(value / SCALE_SLIDER_STEP) * SCALE_SLIDER_STEP)

    def _on_width_changed(self, value: float):
        if not self._syncing:
            self._session.set_width(value)

    def _on_height_changed(self, value: float):
        if not self._syncing:
            self._session.set_height(value)


# ─────────────────────────────────────────────
# Text positioner
# ─────────────────────────────────────────────

class TextPositionerDialog(_PositionerDialog):
    TITLE = "텍스트 위치와 스타일 조정"

    def _build_variant_controls(self):
        content_box = QGroupBox("텍스트 내용")
        cl = QVBoxLayout(content_box)
        self._text_edit = QPlainTextEdit()
        self._text_edit.setPlaceholderText("추가할 텍스트를 입력하세요...")
        self._text_edit.setPlainText(self._session.draft.content)
        self._text_edit.setFixedHeight(80)
        self._text_edit.textChanged.connect(self._on_text_changed)
        cl.addWidget(self._text_edit)
        # Text box goes above the position group
        self._controls_layout.insertWidget(0, content_box)

        box = QGroupBox("스타일 설정")
        vl = QVBoxLayout(box)

        font_row = QHBoxLayout()
        font_row.addWidget(QLabel("글꼴:"))
        self._font_combo = QComboBox()
        for family in FontFamily.all_cases():
            self._font_combo.addItem(family.label, family)
        self._font_combo.currentIndexChanged.connect(self._on_font_changed)
        font_row.addWidget(self._font_combo, 1)
        vl.addLayout(font_row)

        size_row = QHBoxLayout()
        size_row.addWidget(QLabel("글자 크기:"))
        self._size_spin = QSpinBox()
        self._size_spin.setRange(int(FONT_SIZE_MIN), int(FONT_SIZE_MAX))
        self._size_spin.setSuffix(" pt")
        self._size_spin.valueChanged.connect(self._on_size_changed)
        size_row.addWidget(self._size_spin)
        size_row.addStretch()
        vl.addLayout(size_row)
        self._size_slider = _slider(int(FONT_SIZE_MIN), int(FONT_SIZE_MAX))
        self._size_slider.valueChanged.connect(self._on_size_changed)
        vl.addWidget(self._size_slider)

        color_row = QHBoxLayout()
        color_row.addWidget(QLabel("글자 색:"))
        for hex_color in PRESET_COLORS:
            btn = QPushButton()
            btn.setFixedSize(24, 24)
            btn.setStyleSheet(
                f"background: {hex_color}; border-radius: 12px; border: 1px solid #ccc;"
            )
            btn.clicked.connect(lambda _, h=hex_color: self._session.set_color_hex(h))
            color_row.addWidget(btn)
        custom_color_btn = QPushButton("…")
        custom_color_btn.setFixedSize(24, 24)
        custom_color_btn.clicked.connect(self._pick_custom_color)
        color_row.addWidget(custom_color_btn)
        color_row.addStretch()
        vl.addLayout(color_row)

        self._color_preview = QFrame()
        self._color_preview.setFixedHeight(20)
        vl.addWidget(self._color_preview)
        self._color_label = QLabel()
        self._color_label.setStyleSheet(HINT_STYLE)
        vl.addWidget(self._color_label)

        self._controls_layout.addWidget(box)

    def _position_bounds(self) -> tuple[float, float]:
        g = self._session.geometry
        return (g.width_pt, g.height_pt)

    def _sync_variant(self):
        d: TextPlacement = self._session.draft
        if self._text_edit.toPlainText() != d.content:
            self._text_edit.setPlainText(d.content)
        self._font_combo.setCurrentIndex(FontFamily.all_cases().index(d.font_family))
        self._size_spin.setValue(int(round(d.font_size)))
        self._size_slider.setValue(int(round(d.font_size)))
        c = d.color
        self._color_preview.setStyleSheet(
            f"background: {c.hex}; border-radius: 4px; border: 1px solid #ccc;"
        )
        self._color_label.setText(f"RGB({c.r}, {c.g}, {c.b})")

    def _on_text_changed(self):
        if not self._syncing and self._session.state is SessionState.READY:
            self._session.set_content(self._text_edit.toPlainText())

    def _on_font_changed(self, index: int):
        if not self._syncing and index >= 0:
            self._session.set_font_family(self._font_combo.itemData(index))

    def _on_size_changed(self, value: int):
        if not self._syncing:
            self._session.set_font_size(value)

    def _pick_custom_color(self):
        color = QColorDialog.getColor(
            QColor(self._session.draft.color.hex), self, "색상 선택"
        )
        if color.isValid():
            self._session.set_color(color.red(), color.green(), color.blue())
