"""
Unit tests for the setup step: the gate between extraction and practice.
"""

import pytest

from conftest import FakeServiceClient
from dictation_buddy.background import run_inline
from dictation_buddy.extraction import ContentExtractionService
from dictation_buddy.messages import CONTENT_MISSING
from dictation_buddy.models import Attachment, AudioLanguage, DictationMode
from dictation_buddy.setup_flow import SetupFlow


class Recorder:
    def __init__(self):
        self.ready = []
        self.loading = []

    def on_ready(self, items, mode, language):
        self.ready.append((items, mode, language))


@pytest.fixture
def recorder():
    return Recorder()


def make_flow(recorder, notices, json_response=None, runner=run_inline):
    extraction = ContentExtractionService(FakeServiceClient(json_response=json_response), run_in_background=runner)
    return SetupFlow(
        extraction,
        on_ready=recorder.on_ready,
        notify=notices,
        on_loading_changed=recorder.loading.append,
    )


class TestSubmit:
    def test_items_open_practice(self, recorder, notices):
        flow = make_flow(recorder, notices, {"items": [{"content": "獅子"}]})
        assert flow.submit("獅子", [], "vocab", "mandarin") is True

        items, mode, language = recorder.ready[0]
        assert [item.content for item in items] == ["獅子"]
        assert mode is DictationMode.VOCAB
        assert language is AudioLanguage.MANDARIN
        assert notices.messages == []
        assert recorder.loading == [True, False]
        assert not flow.is_loading

    def test_empty_result_shows_notice(self, recorder, notices):
        flow = make_flow(recorder, notices, {"items": []})
        flow.submit("???", [], DictationMode.PARAGRAPH, AudioLanguage.CANTONESE)

        assert recorder.ready == []
        assert notices.messages == [CONTENT_MISSING]
        assert not flow.is_loading

    def test_failed_extraction_shows_notice(self, recorder, notices):
        flow = make_flow(recorder, notices, RuntimeError("timeout"))
        flow.submit("獅子", [], DictationMode.VOCAB, AudioLanguage.CANTONESE)

        assert recorder.ready == []
        assert notices.messages == [CONTENT_MISSING]

    def test_nothing_to_extract(self, recorder, notices):
        flow = make_flow(recorder, notices, {"items": [{"content": "獅子"}]})
        assert flow.submit("   ", [], DictationMode.VOCAB, AudioLanguage.CANTONESE) is False
        assert recorder.loading == []

    def test_attachments_alone_are_enough(self, recorder, notices):
        flow = make_flow(recorder, notices, {"items": [{"content": "獅子"}]})
        scan = Attachment(mime_type="image/jpeg", data=b"img", name="scan.jpg")
        assert flow.submit("", [scan], DictationMode.VOCAB, AudioLanguage.CANTONESE) is True
        assert len(recorder.ready) == 1


class TestInFlight:
    def test_duplicate_submit_ignored(self, recorder, notices):
        pending = []
        flow = make_flow(recorder, notices, {"items": [{"content": "獅子"}]}, runner=pending.append)

        assert flow.submit("獅子", [], DictationMode.VOCAB, AudioLanguage.CANTONESE) is True
        assert flow.is_loading
        assert flow.submit("獅子", [], DictationMode.VOCAB, AudioLanguage.CANTONESE) is False
        assert len(pending) == 1

        pending[0]()
        assert len(recorder.ready) == 1

    def test_cancel_drops_result(self, recorder, notices):
        pending = []
        flow = make_flow(recorder, notices, {"items": [{"content": "獅子"}]}, runner=pending.append)
        flow.submit("獅子", [], DictationMode.VOCAB, AudioLanguage.CANTONESE)
        flow.cancel()

        assert not flow.is_loading
        pending[0]()
        assert recorder.ready == []
        assert notices.messages == []
        assert recorder.loading == [True, False]

    def test_resubmit_after_cancel(self, recorder, notices):
        pending = []
        flow = make_flow(recorder, notices, {"items": [{"content": "獅子"}]}, runner=pending.append)
        flow.submit("獅子", [], DictationMode.VOCAB, AudioLanguage.CANTONESE)
        flow.cancel()
        assert flow.submit("老虎", [], DictationMode.VOCAB, AudioLanguage.CANTONESE) is True

        pending[0]()
        pending[1]()
        assert len(recorder.ready) == 1
