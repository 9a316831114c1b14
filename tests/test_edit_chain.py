"""
Tests for the linear edit chain and the merge path.
"""

import pytest

from edit_chain import EDITED_FILENAME, MERGED_FILENAME, DocumentAssembler, EditChain
from engines import DocumentEngine
from models import (
    AssemblyFailure, ChainBusy, FontFamily, ImagePlacement,
    InvalidInputCount, MissingActiveDocument, NothingToExport, TextPlacement,
    image_asset_from_bytes,
)
from positioning import PositioningSession, SessionState

from conftest import page_texts


class RecordingEngine(DocumentEngine):
    """Keeps every embed call's input and output buffer."""

    def __init__(self):
        super().__init__()
        self.inputs: list[bytes] = []
        self.outputs: list[bytes] = []

    def embed_text(self, pdf_bytes, *args, **kwargs):
        self.inputs.append(pdf_bytes)
        out = super().embed_text(pdf_bytes, *args, **kwargs)
        self.outputs.append(out)
        return out


class FailingEngine(DocumentEngine):
    def embed_text(self, *args, **kwargs):
        raise AssemblyFailure("boom")


def text_draft(content: str, x: float = 50, y: float = 50) -> TextPlacement:
    return TextPlacement(x=x, y=y, content=content, font_size=18, font_family=FontFamily.HELVETICA)


@pytest.fixture
def chain(doc_a):
    c = EditChain(RecordingEngine())
    c.set_source(doc_a)
    return c


@pytest.fixture
def image_draft(png_200):
    asset = image_asset_from_bytes("logo.png", png_200)
    d = ImagePlacement.for_asset(asset)
    d.width = d.height = 100
    d.scale_percent = 50
    return d


class TestEditChain:

    def test_no_source(self):
        chain = EditChain()
        with pytest.raises(MissingActiveDocument):
            chain.current_bytes
        with pytest.raises(MissingActiveDocument):
            chain.apply_placement(text_draft("x"), 0)

    def test_fresh_chain_reads_source(self, chain, doc_a):
        assert chain.current_bytes is doc_a.data
        assert not chain.has_edits
        with pytest.raises(NothingToExport):
            chain.export()

    def test_image_then_export(self, chain, doc_a, image_draft):
        chain.apply_placement(image_draft, 0)
        artifact = chain.export()
        assert artifact.filename == EDITED_FILENAME
        assert artifact.data != doc_a.data
        assert chain.edit_count == 1

    def test_each_edit_builds_on_the_previous(self, chain):
        chain.apply_placement(text_draft("Hello", 50, 50), 0)
        chain.apply_placement(text_draft("World", 80, 50), 0)
        engine = chain._engine
        assert engine.inputs[1] == engine.outputs[0]
        assert chain.working_artifact == engine.outputs[1]
        first_page = page_texts(chain.export().data)[0]
        assert "Hello" in first_page and "World" in first_page

    def test_reset_restores_source(self, chain, doc_a):
        chain.apply_placement(text_draft("Hello"), 0)
        generation = chain.generation
        chain.reset()
        assert chain.current_bytes == doc_a.data
        assert chain.working_artifact is None
        assert chain.generation == generation + 1
        with pytest.raises(NothingToExport):
            chain.export()

    def test_two_edits_then_reset_is_byte_identical(self, chain, doc_a, image_draft):
        chain.apply_placement(image_draft, 0)
        chain.apply_placement(text_draft("World", 80, 300), 1)
        assert chain.edit_count == 2
        chain.reset()
        assert chain.current_bytes == doc_a.data
        assert chain.working_artifact is None
        assert chain.edit_count == 0

    def test_reset_without_edits_is_noop(self, chain):
        changes = []
        chain.artifact_changed.connect(lambda: changes.append(1))
        chain.reset()
        assert changes == []

    def test_failure_leaves_slot_untouched(self, doc_a):
        chain = EditChain(FailingEngine())
        chain.set_source(doc_a)
        with pytest.raises(AssemblyFailure):
            chain.apply_placement(text_draft("x"), 0)
        assert chain.working_artifact is None
        assert not chain.busy

    def test_failure_keeps_previous_edit(self, chain):
        chain.apply_placement(text_draft("Hello"), 0)
        before = chain.working_artifact
        with pytest.raises(AssemblyFailure):
            chain.apply_placement(text_draft("x"), 9)
        assert chain.working_artifact is before

    def test_source_swap_discards_working(self, chain, doc_b):
        chain.apply_placement(text_draft("Hello"), 0)
        chain.set_source(doc_b)
        assert chain.working_artifact is None
        assert chain.current_bytes is doc_b.data

    def test_same_source_is_noop(self, chain, doc_a):
        generation = chain.generation
        chain.set_source(doc_a)
        assert chain.generation == generation

    def test_reset_invalidates_open_session(self, chain):
        chain.apply_placement(text_draft("Hello"), 0)
        session = PositioningSession.for_text(chain.current_bytes, 0)
        session.start(blocking=True)
        chain.open_session(session)
        chain.reset()
        assert session.state is SessionState.CANCELLED

    def test_source_swap_invalidates_open_session(self, chain, doc_b):
        session = PositioningSession.for_text(chain.current_bytes, 0)
        session.start(blocking=True)
        chain.open_session(session)
        chain.set_source(doc_b)
        assert not session.is_open


class TestAsyncApply:

    def test_apply_in_background(self, chain, qtbot):
        busy = []
        chain.busy_changed.connect(busy.append)
        with qtbot.waitSignal(chain.placement_applied, timeout=5000):
            chain.apply_placement_async(text_draft("Hello"), 0)
            assert chain.busy
        assert chain.has_edits
        assert busy == [True, False]

    def test_second_mutation_while_busy(self, chain, qtbot):
        with qtbot.waitSignal(chain.placement_applied, timeout=5000):
            chain.apply_placement_async(text_draft("Hello"), 0)
            with pytest.raises(ChainBusy):
                chain.apply_placement(text_draft("World"), 0)
        assert chain.edit_count == 1

    def test_export_refused_while_busy(self, chain, qtbot):
        chain.apply_placement(text_draft("Hello"), 0)
        with qtbot.waitSignal(chain.placement_applied, timeout=5000):
            chain.apply_placement_async(text_draft("World"), 0)
            with pytest.raises(ChainBusy):
                chain.export()
        assert "World" in page_texts(chain.export().data)[0]

    def test_result_dropped_after_source_swap(self, chain, doc_b, qtbot):
        with qtbot.waitSignal(chain.placement_failed, timeout=5000):
            chain.apply_placement_async(text_draft("Hello"), 0)
            chain.set_source(doc_b)
        assert chain.working_artifact is None
        assert not chain.busy

    def test_background_failure(self, doc_a, qtbot):
        chain = EditChain(FailingEngine())
        chain.set_source(doc_a)
        with qtbot.waitSignal(chain.placement_failed, timeout=5000) as blocker:
            chain.apply_placement_async(text_draft("x"), 0)
        assert blocker.args == ["boom"]
        assert chain.working_artifact is None


class TestDocumentAssembler:

    def test_requires_two_documents(self, doc_a):
        assembler = DocumentAssembler()
        with pytest.raises(InvalidInputCount):
            assembler.merge_documents([])
        with pytest.raises(InvalidInputCount):
            assembler.merge_documents([doc_a])

    def test_merge_keeps_upload_order(self, doc_a, doc_b):
        artifact = DocumentAssembler().merge_documents([doc_a, doc_b])
        assert artifact.filename == MERGED_FILENAME
        assert page_texts(artifact.data) == ["A-1", "A-2", "B-1"]

    def test_merge_ignores_edit_chain(self, chain, doc_a, doc_b):
        chain.apply_placement(text_draft("Hello"), 0)
        artifact = DocumentAssembler().merge_documents([doc_a, doc_b])
        assert "Hello" not in page_texts(artifact.data)[0]
