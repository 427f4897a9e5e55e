"""
Unit tests for the OpenAI service client, with the SDK mocked out.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from dictation_buddy.client import ServiceClient
from dictation_buddy.config import Settings
from dictation_buddy.errors import DictationServiceError, MalformedResponse, ServiceUnavailable


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


@pytest.fixture
def openai_client():
    sdk = MagicMock()
    sdk.with_options.return_value = sdk
    return sdk


@pytest.fixture
def client(openai_client):
    return ServiceClient(Settings(openai_api_key="sk-test"), openai_client=openai_client)


class TestAvailability:
    def test_no_key_means_unavailable(self):
        client = ServiceClient(Settings())
        assert not client.is_available()
        with pytest.raises(ServiceUnavailable):
            client.complete_text([{"role": "user", "content": "hi"}])

    def test_errors_share_a_base(self):
        assert issubclass(ServiceUnavailable, DictationServiceError)
        assert issubclass(MalformedResponse, DictationServiceError)


class TestCompletions:
    def test_complete_json(self, client, openai_client):
        openai_client.chat.completions.create.return_value = completion('{"items": []}')
        assert client.complete_json([]) == {"items": []}

        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["model"] == "gpt-4o-mini"

    def test_complete_json_with_response_format(self, client, openai_client):
        fmt = {"type": "json_schema", "json_schema": {"name": "vocab_items", "schema": {"type": "object"}}}
        openai_client.chat.completions.create.return_value = completion('{"items": []}')
        client.complete_json([], response_format=fmt)
        assert openai_client.chat.completions.create.call_args.kwargs["response_format"] == fmt

    def test_complete_json_without_retries(self, client, openai_client):
        openai_client.chat.completions.create.return_value = completion("[]")
        client.complete_json([], allow_retries=False)
        openai_client.with_options.assert_called_once_with(max_retries=0)

    def test_invalid_json_raises(self, client, openai_client):
        openai_client.chat.completions.create.return_value = completion("not json")
        with pytest.raises(MalformedResponse):
            client.complete_json([])

    def test_complete_text_strips(self, client, openai_client):
        openai_client.chat.completions.create.return_value = completion("  加油！ \n")
        assert client.complete_text([]) == "加油！"

    def test_complete_text_none_content(self, client, openai_client):
        openai_client.chat.completions.create.return_value = completion(None)
        assert client.complete_text([]) == ""


class TestAudio:
    def test_synthesize_speech(self, client, openai_client):
        openai_client.audio.speech.create.return_value = SimpleNamespace(content=b"mp3")
        assert client.synthesize_speech("你好") == b"mp3"

        kwargs = openai_client.audio.speech.create.call_args.kwargs
        assert kwargs["voice"] == "nova"
        assert kwargs["input"] == "你好"

    def test_transcribe(self, client, openai_client):
        openai_client.audio.transcriptions.create.return_value = " 你好嗎 \n"
        assert client.transcribe(b"RIFF", language="zh") == "你好嗎"

        kwargs = openai_client.audio.transcriptions.create.call_args.kwargs
        assert kwargs["language"] == "zh"
        assert kwargs["file"][0] == "speech.wav"

    def test_transcribe_without_language_hint(self, client, openai_client):
        openai_client.audio.transcriptions.create.return_value = "hello"
        client.transcribe(b"RIFF")
        assert "language" not in openai_client.audio.transcriptions.create.call_args.kwargs
