"""
Unit tests for speech input: transcript replacement, language rotation and
barge-in through the shared audio focus.
"""

from conftest import FakeRecognitionBackend
from dictation_buddy.messages import SPEECH_INPUT_UNAVAILABLE
from dictation_buddy.models import AudioLanguage
from dictation_buddy.speech_input import FOCUS_OWNER, RECOGNITION_LANGUAGES, SpeechInputAdapter
from dictation_buddy.speech_output import Utterance


class TestLanguages:
    def test_rotation_order(self, speech_input):
        assert speech_input.language.code == "zh-HK"
        codes = [speech_input.cycle_language().code for _ in range(3)]
        assert codes == ["zh-CN", "en-US", "zh-HK"]

    def test_recognition_uses_current_language(self, speech_input, recognition_backend):
        speech_input.cycle_language()
        speech_input.start()
        assert recognition_backend.started[0].code == "zh-CN"
        assert recognition_backend.started[0].iso_code == "zh"

    def test_languages_table(self):
        assert [lang.short for lang in RECOGNITION_LANGUAGES] == ["粵", "普", "En"]


class TestListening:
    def test_results_replace_transcript(self, speech_input, recognition_backend):
        speech_input.start()
        recognition_backend.emit("你好")
        recognition_backend.emit("你好嗎")
        assert speech_input.transcript == "你好嗎"

    def test_multiple_results_join_top_alternatives(self, speech_input, recognition_backend):
        speech_input.start()
        recognition_backend.on_result([["我想", "我響"], ["問問題"]])
        assert speech_input.transcript == "我想問問題"

    def test_toggle(self, speech_input, recognition_backend, focus):
        assert speech_input.toggle() is True
        assert focus.holder == FOCUS_OWNER

        assert speech_input.toggle() is False
        assert recognition_backend.stops == 1
        assert focus.holder is None

    def test_start_twice_is_ignored(self, speech_input, recognition_backend):
        assert speech_input.start() is True
        assert speech_input.start() is False
        assert len(recognition_backend.started) == 1

    def test_end_of_recognition(self, speech_input, recognition_backend, focus):
        speech_input.start()
        recognition_backend.emit("好")
        recognition_backend.on_end()

        assert not speech_input.is_listening
        assert speech_input.transcript == "好"
        assert focus.holder is None

    def test_error_ends_silently(self, speech_input, recognition_backend, notices):
        speech_input.start()
        recognition_backend.on_error("no-speech")

        assert not speech_input.is_listening
        assert notices.messages == []

    def test_stale_session_results_ignored(self, speech_input, recognition_backend):
        speech_input.start()
        old_on_result = recognition_backend.on_result
        speech_input.stop()
        speech_input.start()

        old_on_result([["舊的"]])
        assert speech_input.transcript == ""

    def test_clear_transcript(self, speech_input, recognition_backend):
        speech_input.start()
        recognition_backend.emit("你好")
        speech_input.clear_transcript()
        assert speech_input.transcript == ""

    def test_final_result_after_clear_is_dropped(self, speech_input, recognition_backend):
        speech_input.start()
        recognition_backend.emit("你好")
        late_on_result = recognition_backend.on_result
        speech_input.stop()
        speech_input.clear_transcript()

        late_on_result([["你好嗎"]])
        assert speech_input.transcript == ""

    def test_active_session_keeps_updating_after_clear(self, speech_input, recognition_backend):
        speech_input.start()
        recognition_backend.emit("你好")
        speech_input.clear_transcript()
        recognition_backend.emit("再見")
        assert speech_input.transcript == "再見"
        assert speech_input.is_listening

    def test_listeners_notified(self, speech_input, recognition_backend):
        calls = []
        speech_input.subscribe(lambda: calls.append(speech_input.is_listening))
        speech_input.start()
        recognition_backend.emit("你好")
        speech_input.stop()
        assert calls == [True, True, False]


class TestUnavailable:
    def test_no_backend_notifies(self, focus, notices):
        adapter = SpeechInputAdapter(None, focus, notify=notices)
        assert adapter.start() is False
        assert notices.messages == [SPEECH_INPUT_UNAVAILABLE]
        assert not adapter.is_listening
        assert focus.holder is None

    def test_backend_start_failure(self, focus, notices):
        class BrokenBackend(FakeRecognitionBackend):
            def start(self, *args, **kwargs):
                raise OSError("device busy")

        adapter = SpeechInputAdapter(BrokenBackend(), focus, notify=notices)
        assert adapter.start() is False
        assert not adapter.is_listening
        assert focus.holder is None


class TestBargeIn:
    def test_listening_silences_speech(self, speech_input, speech_output, voice_backend):
        results = []
        speech_output.speak_sequence([Utterance("獅子")], AudioLanguage.CANTONESE, results.append)
        speech_input.start()

        assert voice_backend.cancels == 1
        assert results == [False]
        assert speech_input.is_listening

    def test_speech_stops_listening(self, speech_input, speech_output, recognition_backend, focus):
        speech_input.start()
        speech_output.speak_sequence([Utterance("獅子")], AudioLanguage.CANTONESE)

        assert not speech_input.is_listening
        assert recognition_backend.stops == 1
        assert focus.holder != FOCUS_OWNER
