"""
Tests for value types, upload intake and ActiveFileSet.
"""

import pytest

from models import (
    ActiveFileSet, FontFamily, ImagePlacement, RGBColor, SourceDocument,
    TextPlacement, UnsupportedInput, image_asset_from_bytes, is_pdf_input,
    load_image_asset, load_source_document, source_document_from_bytes,
)


class TestRGBColor:

    def test_clamped(self):
        assert RGBColor.clamped(300, -5, 12.6) == RGBColor(255, 0, 13)

    def test_hex_round_trip(self):
        c = RGBColor.from_hex("#FF3B30")
        assert (c.r, c.g, c.b) == (255, 59, 48)
        assert c.hex == "#ff3b30"
        assert RGBColor.from_hex("#fff") == RGBColor(255, 255, 255)

    def test_to_unit(self):
        assert RGBColor(255, 0, 51).to_unit() == pytest.approx((1.0, 0.0, 0.2))

    def test_out_of_range_rejected(self):
        with pytest.raises(ValueError):
            RGBColor(256, 0, 0)
        with pytest.raises(ValueError):
            RGBColor.from_hex("#12345")


class TestDrafts:

    def test_text_defaults(self):
        d = TextPlacement(x=50, y=50)
        assert d.kind == "text"
        assert d.font_size == 24.0
        assert d.color == RGBColor(0, 0, 0)
        assert d.font_family is FontFamily.NOTO_SANS_JP
        assert d.content == "샘플 텍스트"

    def test_image_for_asset(self, png_200):
        asset = image_asset_from_bytes("logo.png", png_200)
        d = ImagePlacement.for_asset(asset)
        assert d.kind == "image"
        assert (d.x, d.y, d.width, d.height, d.scale_percent) == (50, 50, 200, 200, 100)
        assert d.asset is asset

    def test_font_family_cases(self):
        cases = FontFamily.all_cases()
        assert len(cases) == 6
        assert cases[0] is FontFamily.NOTO_SANS_JP
        assert FontFamily.HELVETICA.builtin == "helv"
        assert FontFamily.HELVETICA.font_file is None


class TestIntake:

    def test_pdf_detection(self, pdf_a):
        assert is_pdf_input("a.pdf", pdf_a)
        assert is_pdf_input("A.PDF", pdf_a)
        assert not is_pdf_input("a.txt", pdf_a)
        assert not is_pdf_input("a.pdf", b"hello world")

    def test_source_document_page_count(self, pdf_a, pdf_b):
        assert source_document_from_bytes("a.pdf", pdf_a).page_count == 2
        assert source_document_from_bytes("b.pdf", pdf_b).page_count == 1

    def test_non_pdf_rejected(self):
        with pytest.raises(UnsupportedInput):
            source_document_from_bytes("notes.txt", b"just text")

    def test_load_from_disk(self, tmp_path, pdf_a):
        path = tmp_path / "a.pdf"
        path.write_bytes(pdf_a)
        doc = load_source_document(path)
        assert doc.name == "a.pdf"
        assert doc.data == pdf_a

    def test_image_asset_dimensions(self, tmp_path, png_200):
        path = tmp_path / "logo.png"
        path.write_bytes(png_200)
        asset = load_image_asset(path)
        assert (asset.natural_width, asset.natural_height) == (200, 200)

    def test_image_wrong_type_rejected(self, png_200):
        with pytest.raises(UnsupportedInput):
            image_asset_from_bytes("logo.gif", png_200)
        with pytest.raises(UnsupportedInput):
            image_asset_from_bytes("logo.png", b"not an image")


class TestActiveFileSet:

    def test_first_upload_selects_first_document(self, doc_a, doc_b):
        fs = ActiveFileSet()
        seen = []
        fs.selection_changed.connect(seen.append)
        fs.add_many([doc_a, doc_b])
        assert fs.documents == [doc_a, doc_b]
        assert fs.selected is doc_a
        assert seen == [doc_a]

    def test_later_upload_keeps_selection(self, doc_a, doc_b):
        fs = ActiveFileSet()
        fs.add(doc_a)
        fs.add(doc_b)
        assert fs.selected is doc_a
        assert len(fs) == 2

    def test_same_document_added_once(self, doc_a, doc_b):
        fs = ActiveFileSet()
        fs.add_many([doc_a, doc_a])
        fs.add_many([doc_b, doc_a])
        assert fs.documents == [doc_a, doc_b]

    def test_removing_selected_never_reselects_it(self, doc_a, doc_b):
        fs = ActiveFileSet()
        seen = []
        fs.add_many([doc_a, doc_b])
        fs.add(doc_a)
        fs.selection_changed.connect(seen.append)
        fs.remove(0)
        assert fs.selected is doc_b
        assert seen == [doc_b]

    def test_removing_selected_reselects_first_remaining(self, doc_a, doc_b, pdf_a):
        doc_c = source_document_from_bytes("c.pdf", pdf_a)
        fs = ActiveFileSet()
        fs.add_many([doc_a, doc_b, doc_c])
        fs.select(2)
        fs.remove(2)
        assert fs.selected is doc_a

    def test_removing_other_document_keeps_selection(self, doc_a, doc_b):
        fs = ActiveFileSet()
        fs.add_many([doc_a, doc_b])
        fs.select(doc_b)
        fs.remove(0)
        assert fs.selected is doc_b
        assert fs.documents == [doc_b]

    def test_removing_last_document_clears_selection(self, doc_a):
        fs = ActiveFileSet()
        fs.add(doc_a)
        seen = []
        fs.selection_changed.connect(seen.append)
        fs.remove(0)
        assert fs.selected is None
        assert seen == [None]

    def test_invalid_index(self, doc_a):
        fs = ActiveFileSet()
        fs.add(doc_a)
        with pytest.raises(IndexError):
            fs.remove(3)
        with pytest.raises(IndexError):
            fs.select(-1)

    def test_select_foreign_document(self, doc_a, doc_b):
        fs = ActiveFileSet()
        fs.add(doc_a)
        with pytest.raises(ValueError):
            fs.select(doc_b)

    def test_documents_compared_by_identity(self, pdf_a):
        one = SourceDocument("a.pdf", pdf_a, 2)
        two = SourceDocument("a.pdf", pdf_a, 2)
        fs = ActiveFileSet()
        fs.add_many([one, two])
        assert one != two
        assert fs.index_of(two) == 1
