"""
positioning.py — Modal placement session for an image or a text block.

The page raster is requested once on start(); every later draft edit only
recomputes the vector overlay from the cached geometry.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from PyQt6.QtCore import QObject, QThreadPool, pyqtSignal
from PyQt6.QtGui import QImage

from coords import (
    DisplayTransform, apply_affine, clamp_image_position, clamp_text_position,
    compose, dimensions_for_scale, glyph_counter_flip, height_for_width,
    overlay_outer_transform, scale_for_height, scale_for_width, width_for_height,
)
from engines import RenderingEngine, RenderResult, RenderWorker
from models import (
    FONT_SIZE_MAX, FONT_SIZE_MIN, FontFamily, ImageAsset, ImagePlacement,
    PageGeometry, RenderFailure, RGBColor, SessionClosed, TextPlacement,
)
from settings import DEFAULT_PREVIEW_HEIGHT, DEFAULT_PREVIEW_WIDTH

logger = logging.getLogger(__name__)

SCALE_SLIDER_MIN = 10
SCALE_SLIDER_MAX = 300
SCALE_SLIDER_STEP = 5
LABEL_OFFSET = 5.0
LABEL_FONT_SIZE = 12.0


class SessionState(Enum):
    LOADING = "loading"
    READY = "ready"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.CONFIRMED, SessionState.CANCELLED, SessionState.FAILED)


@dataclass(frozen=True)
class Overlay:
    """Vector overlay in preview (screen) coordinates, origin top-left."""
    kind: str
    label: str
    label_pos: tuple[float, float]          # baseline-left
    label_size: float
    rect: Optional[tuple[float, float, float, float]] = None   # image: left, top, w, h
    text: Optional[str] = None
    text_pos: Optional[tuple[float, float]] = None             # text: baseline-left
    text_size: float = 0.0
    color: str = "#0087f7"


class PositioningSession(QObject):
    """Collects one placement draft against a one-shot page preview."""

    state_changed = pyqtSignal(object)      # SessionState
    preview_ready = pyqtSignal(object)      # RenderResult
    overlay_changed = pyqtSignal(object)    # Overlay
    confirmed = pyqtSignal(object)          # ImagePlacement | TextPlacement
    cancelled = pyqtSignal()
    failed = pyqtSignal(str)

    def __init__(self, pdf_bytes: bytes, page_index: int,
                 draft: Union[ImagePlacement, TextPlacement],
                 renderer: Optional[RenderingEngine] = None,
                 max_width: float = DEFAULT_PREVIEW_WIDTH,
                 max_height: float = DEFAULT_PREVIEW_HEIGHT,
                 parent=None):
        super().__init__(parent)
        self._pdf_bytes = pdf_bytes
        self.page_index = page_index
        self._draft = draft
        self._renderer = renderer or RenderingEngine()
        self._max_width = max_width
        self._max_height = max_height
        self._state = SessionState.LOADING
        self._result: Optional[RenderResult] = None
        self._transform: Optional[DisplayTransform] = None
        self._worker: Optional[RenderWorker] = None
        self._started = False
        self.render_count = 0
        self.error: Optional[str] = None

    @classmethod
    def for_image(cls, pdf_bytes: bytes, page_index: int, asset: ImageAsset, **kwargs) -> "PositioningSession":
        return cls(pdf_bytes, page_index, ImagePlacement.for_asset(asset), **kwargs)

    @classmethod
    def for_text(cls, pdf_bytes: bytes, page_index: int, **kwargs) -> "PositioningSession":
        return cls(pdf_bytes, page_index, TextPlacement(x=50.0, y=50.0), **kwargs)

    # ── State ─────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return not self._state.is_terminal

    @property
    def kind(self) -> str:
        return self._draft.kind

    @property
    def draft(self) -> Union[ImagePlacement, TextPlacement]:
        return self._draft

    @property
    def geometry(self) -> Optional[PageGeometry]:
        return self._result.geometry if self._result else None

    @property
    def transform(self) -> Optional[DisplayTransform]:
        return self._transform

    @property
    def background(self) -> Optional[QImage]:
        return self._result.image if self._result else None

    def _set_state(self, state: SessionState):
        self._state = state
        self.state_changed.emit(state)

    def _require_ready(self):
        if self._state is not SessionState.READY:
            raise SessionClosed(f"session is {self._state.value}, not ready")

    # ── Loading ───────────────────────────────

    def start(self, blocking: bool = False):
        """Request the page geometry + raster. Only the first call renders."""
        if self._started:
            return
        self._started = True
        if blocking:
            try:
                result = self._renderer.render_fit(
                    self._pdf_bytes, self.page_index, self._max_width, self._max_height
                )
            except RenderFailure as e:
                self._on_render_failed(str(e))
                return
            self._on_render_finished(result)
            return

        worker = RenderWorker(self._renderer, self._pdf_bytes, self.page_index,
                              self._max_width, self._max_height)
        worker.signals.finished.connect(self._on_render_finished)
        worker.signals.failed.connect(self._on_render_failed)
        self._worker = worker
        QThreadPool.globalInstance().start(worker)

    def _on_render_finished(self, result: RenderResult):
        self._worker = None
        self.render_count += 1
        if self._state is not SessionState.LOADING:
            return  # cancelled while rendering
        self._result = result
        self._transform = DisplayTransform(result.geometry, result.scale)
        self._set_state(SessionState.READY)
        logger.debug("Session ready: page %d, %s, scale %.3f",
                     self.page_index, result.geometry, result.scale)
        self.preview_ready.emit(result)
        self._emit_overlay()

    def _on_render_failed(self, message: str):
        self._worker = None
        if self._state is not SessionState.LOADING:
            return
        self.error = message
        logger.error("Session aborted, render failed: %s", message)
        self._set_state(SessionState.FAILED)
        self.failed.emit(message)

    # ── Shared edits ──────────────────────────

    def set_position(self, x: float, y: float):
        self._require_ready()
        d = self._draft
        if isinstance(d, ImagePlacement):
            d.x, d.y = clamp_image_position(x, y, d.width, d.height, self.geometry)
        else:
            d.x, d.y = clamp_text_position(x, y, self.geometry)
        self._emit_overlay()

    def move_to_screen(self, sx: float, sy: float):
        """Pointer placement: image is centered on the pointer, text is anchored at it."""
        self._require_ready()
        px, py = self._transform.to_pdf(sx, sy)
        d = self._draft
        if isinstance(d, ImagePlacement):
            self.set_position(px - d.width / 2, py - d.height / 2)
        else:
            self.set_position(px, py)

    # ── Image edits ───────────────────────────

    def _image_draft(self) -> ImagePlacement:
        self._require_ready()
        if not isinstance(self._draft, ImagePlacement):
            raise TypeError("not an image session")
        return self._draft

    def set_scale(self, percent: float):
        d = self._image_draft()
        if percent <= 0:
            raise ValueError(f"scale must be positive, got {percent}")
        d.scale_percent = float(percent)
        d.width, d.height = dimensions_for_scale(d.natural_width, d.natural_height, percent)
        self._reclamp(d)
        self._emit_overlay()

    def set_width(self, width: float, keep_aspect: bool = True):
        d = self._image_draft()
        if width <= 0:
            raise ValueError(f"width must be positive, got {width}")
        d.width = float(width)
        if keep_aspect:
            d.height = height_for_width(width, d.natural_width, d.natural_height)
        d.scale_percent = scale_for_width(width, d.natural_width)
        self._reclamp(d)
        self._emit_overlay()

    def set_height(self, height: float, keep_aspect: bool = True):
        d = self._image_draft()
        if height <= 0:
            raise ValueError(f"height must be positive, got {height}")
        d.height = float(height)
        if keep_aspect:
            d.width = width_for_height(height, d.natural_width, d.natural_height)
        d.scale_percent = scale_for_height(height, d.natural_height)
        self._reclamp(d)
        self._emit_overlay()

    def reset_size(self):
        self.set_scale(100.0)

    def _reclamp(self, d: ImagePlacement):
        # A size change can push a previously legal position off the page.
        d.x, d.y = clamp_image_position(d.x, d.y, d.width, d.height, self.geometry)

    # ── Text edits ────────────────────────────

    def _text_draft(self) -> TextPlacement:
        self._require_ready()
        if not isinstance(self._draft, TextPlacement):
            raise TypeError("not a text session")
        return self._draft

    def set_content(self, content: str):
        self._text_draft().content = content
        self._emit_overlay()

    def set_font_size(self, size: float):
        self._text_draft().font_size = max(FONT_SIZE_MIN, min(float(size), FONT_SIZE_MAX))
        self._emit_overlay()

    def set_color(self, r: float, g: float, b: float):
        self._text_draft().color = RGBColor.clamped(r, g, b)
        self._emit_overlay()

    def set_color_hex(self, value: str):
        self._text_draft().color = RGBColor.from_hex(value)
        self._emit_overlay()

    def set_font_family(self, family: FontFamily):
        d = self._text_draft()
        if not isinstance(family, FontFamily):
            raise ValueError(f"unsupported font family: {family!r}")
        d.font_family = family
        self._emit_overlay()

    # ── Overlay ───────────────────────────────

    def _glyph_screen_pos(self, x: float, anchor_y: float) -> tuple[float, float]:
        # outer flip ∘ counter-flip about the glyph's own baseline, then display scale
        m = compose(overlay_outer_transform(self.geometry), glyph_counter_flip(anchor_y))
        ox, oy = apply_affine(m, x, anchor_y)
        s = self._transform.scale
        return (ox * s, oy * s)

    def overlay(self) -> Overlay:
        if self._transform is None:
            raise SessionClosed("preview not loaded yet")
        s = self._transform.scale
        d = self._draft
        label = f"({round(d.x)}, {round(d.y)})"
        if isinstance(d, ImagePlacement):
            label_anchor = d.y + d.height - LABEL_OFFSET
            return Overlay(
                kind="image",
                rect=self._transform.rect_to_screen(d.x, d.y, d.width, d.height),
                label=label,
                label_pos=self._glyph_screen_pos(d.x + LABEL_OFFSET, label_anchor),
                label_size=LABEL_FONT_SIZE * s,
            )
        label_anchor = d.y - d.font_size - LABEL_OFFSET
        return Overlay(
            kind="text",
            text=d.content,
            text_pos=self._glyph_screen_pos(d.x, d.y),
            text_size=d.font_size * s,
            color=d.color.hex,
            label=label,
            label_pos=self._glyph_screen_pos(d.x + LABEL_OFFSET, label_anchor),
            label_size=LABEL_FONT_SIZE * s,
        )

    def _emit_overlay(self):
        self.overlay_changed.emit(self.overlay())

    # ── Termination ───────────────────────────

    def confirm(self) -> Union[ImagePlacement, TextPlacement]:
        self._require_ready()
        final = dataclasses.replace(self._draft)
        self._set_state(SessionState.CONFIRMED)
        logger.info("Placement confirmed: %s on page %d", final, self.page_index)
        self.confirmed.emit(final)
        return final

    def cancel(self):
        if not self.is_open:
            return
        self._set_state(SessionState.CANCELLED)
        self.cancelled.emit()

    def invalidate(self):
        """The artifact under this preview was discarded; the draft can no longer be confirmed."""
        if self.is_open:
            logger.info("Session on page %d invalidated", self.page_index)
        self.cancel()
