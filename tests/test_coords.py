"""
Tests for PDF ↔ preview ↔ overlay coordinate conversion and the clamp policy.
"""

import pytest

from coords import (
    DisplayTransform, apply_affine, clamp_image_position, clamp_text_position,
    compose, dimensions_for_scale, fit_scale, glyph_counter_flip,
    height_for_width, overlay_outer_transform, pdf_point_to_engine,
    pdf_rect_to_engine, scale_for_height, scale_for_width, width_for_height,
)
from models import PageGeometry

LETTER = PageGeometry(612, 792)


class TestDisplayTransform:

    def test_fit_scale_uses_limiting_dimension(self):
        assert fit_scale(LETTER, 400, 500) == pytest.approx(500 / 792)
        assert fit_scale(PageGeometry(842, 595), 400, 500) == pytest.approx(400 / 842)

    def test_round_trip(self):
        t = DisplayTransform.fit(LETTER, 400, 500)
        for x, y in [(0, 0), (50, 50), (612, 792), (123.4, 567.8)]:
            sx, sy = t.to_screen(x, y)
            assert t.to_pdf(sx, sy) == pytest.approx((x, y))

    def test_origin_maps_to_bottom_left(self):
        t = DisplayTransform(LETTER, 0.5)
        assert t.to_screen(0, 0) == pytest.approx((0, 396))
        assert t.to_screen(0, 792) == pytest.approx((0, 0))
        assert t.display_size == pytest.approx((306, 396))

    def test_rect_to_screen_uses_top_edge(self):
        t = DisplayTransform(LETTER, 0.5)
        assert t.rect_to_screen(50, 50, 100, 100) == pytest.approx((25, (792 - 150) * 0.5, 50, 50))

    def test_non_positive_scale_rejected(self):
        with pytest.raises(ValueError):
            DisplayTransform(LETTER, 0)

    def test_invalid_page_geometry(self):
        with pytest.raises(ValueError):
            PageGeometry(0, 792)


class TestOverlayTransform:

    def test_glyph_lands_on_its_own_baseline(self):
        m = compose(overlay_outer_transform(LETTER), glyph_counter_flip(300))
        assert apply_affine(m, 40, 300) == pytest.approx((40, 792 - 300))

    def test_wrong_anchor_shifts_by_twice_the_difference(self):
        m = compose(overlay_outer_transform(LETTER), glyph_counter_flip(300))
        _, y = apply_affine(m, 40, 310)
        assert y == pytest.approx((792 - 310) + 2 * (310 - 300))

    def test_outer_flip_alone(self):
        assert apply_affine(overlay_outer_transform(LETTER), 10, 0) == pytest.approx((10, 792))


class TestClamp:

    def test_image_stays_on_page(self):
        assert clamp_image_position(600, 780, 100, 100, LETTER) == (512, 692)
        assert clamp_image_position(-20, -1, 100, 100, LETTER) == (0, 0)

    def test_image_larger_than_page_pins_to_origin(self):
        assert clamp_image_position(30, 30, 700, 900, LETTER) == (0, 0)

    def test_text_clamps_anchor_only(self):
        assert clamp_text_position(700, 900, LETTER) == (612, 792)
        assert clamp_text_position(-5, -5, LETTER) == (0, 0)
        assert clamp_text_position(600, 780, LETTER) == (600, 780)


class TestScaleLinkage:

    def test_dimensions_for_scale(self):
        assert dimensions_for_scale(200, 200, 50) == (100, 100)
        assert dimensions_for_scale(300, 150, 200) == (600, 300)

    def test_scale_from_dimension(self):
        assert scale_for_width(150, 200) == pytest.approx(75)
        assert scale_for_height(300, 200) == pytest.approx(150)

    def test_aspect_ratio_follows(self):
        assert height_for_width(300, 200, 100) == pytest.approx(150)
        assert width_for_height(50, 200, 100) == pytest.approx(100)


class TestEngineSpace:

    def test_rect(self):
        assert pdf_rect_to_engine(50, 50, 100, 100, LETTER) == (50, 642, 150, 742)

    def test_point(self):
        assert pdf_point_to_engine(50, 50, LETTER) == (50, 742)
