"""
Unit tests for the shared audio focus token.
"""

from dictation_buddy.audio_focus import AudioFocus


class TestAudioFocus:
    def test_acquire_and_release(self):
        focus = AudioFocus()
        token = focus.acquire("speaker", on_lost=lambda: None)

        assert focus.holder == "speaker"
        assert focus.is_held(token)
        assert focus.release(token) is True
        assert focus.holder is None

    def test_new_holder_revokes_previous(self):
        focus = AudioFocus()
        lost = []
        first = focus.acquire("speaker", on_lost=lambda: lost.append("speaker"))
        second = focus.acquire("microphone", on_lost=lambda: lost.append("microphone"))

        assert lost == ["speaker"]
        assert not focus.is_held(first)
        assert focus.is_held(second)

    def test_stale_release_ignored(self):
        focus = AudioFocus()
        first = focus.acquire("speaker", on_lost=lambda: None)
        focus.acquire("microphone", on_lost=lambda: None)

        assert focus.release(first) is False
        assert focus.holder == "microphone"

    def test_on_lost_may_release_its_token(self):
        focus = AudioFocus()
        tokens = []
        tokens.append(focus.acquire("speaker", on_lost=lambda: focus.release(tokens[0])))
        focus.acquire("microphone", on_lost=lambda: None)

        assert focus.holder == "microphone"

    def test_released_holder_not_notified(self):
        focus = AudioFocus()
        lost = []
        token = focus.acquire("speaker", on_lost=lambda: lost.append(True))
        focus.release(token)
        focus.acquire("microphone", on_lost=lambda: None)

        assert lost == []
