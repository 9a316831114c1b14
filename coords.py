"""
coords.py — Coordinate conversion between PDF page space, preview space and
overlay drawing space.

PDF space: origin bottom-left, Y up, unit = point (1/72 inch).
Preview space: origin top-left, Y down, unit = display pixel.
Overlay space: same numbers as PDF space, drawn under an outer Y flip.
"""

from __future__ import annotations

from dataclasses import dataclass

from models import PageGeometry

Affine = tuple[float, float, float, float, float, float]  # (a, b, c, d, e, f)


# ─────────────────────────────────────────────
# Display scale
# ─────────────────────────────────────────────

def fit_scale(geometry: PageGeometry, max_width: float, max_height: float) -> float:
    """Largest scale that fits the page inside (max_width, max_height)."""
    return min(max_width / geometry.width_pt, max_height / geometry.height_pt)


@dataclass(frozen=True)
class DisplayTransform:
    """PDF ↔ preview mapping for one page at one display scale."""
    geometry: PageGeometry
    scale: float

    def __post_init__(self):
        if self.scale <= 0:
            raise ValueError(f"display scale must be positive, got {self.scale}")

    @classmethod
    def fit(cls, geometry: PageGeometry, max_width: float, max_height: float) -> "DisplayTransform":
        return cls(geometry, fit_scale(geometry, max_width, max_height))

    @property
    def display_size(self) -> tuple[float, float]:
        return (self.geometry.width_pt * self.scale, self.geometry.height_pt * self.scale)

    def to_screen(self, x: float, y: float) -> tuple[float, float]:
        return (x * self.scale, (self.geometry.height_pt - y) * self.scale)

    def to_pdf(self, sx: float, sy: float) -> tuple[float, float]:
        return (sx / self.scale, self.geometry.height_pt - sy / self.scale)

    def rect_to_screen(self, x: float, y: float, w: float, h: float) -> tuple[float, float, float, float]:
        """Screen (left, top, width, height) of a PDF rect anchored at its lower-left corner."""
        left, top = self.to_screen(x, y + h)
        return (left, top, w * self.scale, h * self.scale)


# ─────────────────────────────────────────────
# Overlay space (outer flip + per-glyph counter-flip)
# ─────────────────────────────────────────────

def overlay_outer_transform(geometry: PageGeometry) -> Affine:
    """scale(1, -1) translate(0, -H): overlay (PDF) coords → top-left coords."""
    return (1.0, 0.0, 0.0, -1.0, 0.0, geometry.height_pt)


def glyph_counter_flip(anchor_y: float) -> Affine:
    """scale(1, -1) translate(0, -2·anchor_y), applied to a glyph inside the outer flip.

    anchor_y must be the glyph's own final baseline, otherwise the upright
    glyph ends up shifted by twice the difference.
    """
    return (1.0, 0.0, 0.0, -1.0, 0.0, 2.0 * anchor_y)


def compose(outer: Affine, inner: Affine) -> Affine:
    """outer ∘ inner (inner is applied first)."""
    a1, b1, c1, d1, e1, f1 = outer
    a2, b2, c2, d2, e2, f2 = inner
    return (
        a1 * a2 + c1 * b2,
        b1 * a2 + d1 * b2,
        a1 * c2 + c1 * d2,
        b1 * c2 + d1 * d2,
        a1 * e2 + c1 * f2 + e1,
        b1 * e2 + d1 * f2 + f1,
    )


def apply_affine(m: Affine, x: float, y: float) -> tuple[float, float]:
    a, b, c, d, e, f = m
    return (a * x + c * y + e, b * x + d * y + f)


# ─────────────────────────────────────────────
# Clamp policy
# ─────────────────────────────────────────────

def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(v, hi))


def clamp_image_position(x: float, y: float, obj_width: float, obj_height: float,
                         geometry: PageGeometry) -> tuple[float, float]:
    """Keep the whole image rectangle on the page."""
    return (
        _clamp(x, 0.0, max(0.0, geometry.width_pt - obj_width)),
        _clamp(y, 0.0, max(0.0, geometry.height_pt - obj_height)),
    )


def clamp_text_position(x: float, y: float, geometry: PageGeometry) -> tuple[float, float]:
    # Anchor only; rendered text extent is not subtracted.
    return (
        _clamp(x, 0.0, geometry.width_pt),
        _clamp(y, 0.0, geometry.height_pt),
    )


# ─────────────────────────────────────────────
# Scale ↔ dimension linkage
# ─────────────────────────────────────────────

def dimensions_for_scale(natural_width: float, natural_height: float,
                         scale_percent: float) -> tuple[float, float]:
    return (natural_width * scale_percent / 100.0, natural_height * scale_percent / 100.0)


def scale_for_width(width: float, natural_width: float) -> float:
    return width / natural_width * 100.0


def scale_for_height(height: float, natural_height: float) -> float:
    return height / natural_height * 100.0


def height_for_width(width: float, natural_width: float, natural_height: float) -> float:
    return width * (natural_height / natural_width)


def width_for_height(height: float, natural_width: float, natural_height: float) -> float:
    return height * (natural_width / natural_height)


# ─────────────────────────────────────────────
# PDF space → PyMuPDF page space (top-left origin)
# ─────────────────────────────────────────────

def pdf_rect_to_engine(x: float, y: float, w: float, h: float,
                       geometry: PageGeometry) -> tuple[float, float, float, float]:
    """(x0, y0, x1, y1) in PyMuPDF page coords for a rect with lower-left (x, y)."""
    top = geometry.height_pt - y - h
    return (x, top, x + w, top + h)


def pdf_point_to_engine(x: float, y: float, geometry: PageGeometry) -> tuple[float, float]:
    return (x, geometry.height_pt - y)
