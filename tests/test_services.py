# tests/test_services.py

import base64
from unittest.mock import MagicMock, patch

import pytest
import requests

from exceptions import ConfigurationError, UpstreamGenerationFailure
from services import GeminiClient, GeminiTTSClient, OllamaClient, make_text_generator


def mock_response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def text_payload(*texts):
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}, "finishReason": "STOP"}]}


@patch("services.requests.post")
def test_gemini_generates_text(mock_post):
    mock_post.return_value = mock_response(text_payload("Refined ", "prompt\n"))

    text = GeminiClient(api_key="key", model="gemini-test").generate_text("system", "user", what="prompt")

    assert text == "Refined prompt"
    url = mock_post.call_args.args[0]
    kwargs = mock_post.call_args.kwargs
    assert url.endswith("/gemini-test:generateContent")
    assert kwargs["headers"] == {"x-goog-api-key": "key"}
    assert kwargs["json"]["systemInstruction"]["parts"][0]["text"] == "system"
    assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "user"


@patch("services.requests.post")
def test_gemini_blocked_response_reports_reason(mock_post):
    mock_post.return_value = mock_response({"candidates": [{"finishReason": "SAFETY"}]})

    with pytest.raises(UpstreamGenerationFailure) as exc_info:
        GeminiClient(api_key="key").generate_text("system", "user", what="script")

    assert "Failed to generate script" in exc_info.value.message
    assert "SAFETY" in exc_info.value.message
    assert exc_info.value.details == "SAFETY"


@patch("services.requests.post")
def test_gemini_prompt_feedback_reason(mock_post):
    mock_post.return_value = mock_response({"promptFeedback": {"blockReason": "OTHER"}})

    with pytest.raises(UpstreamGenerationFailure) as exc_info:
        GeminiClient(api_key="key").generate_text("system", "user")

    assert exc_info.value.details == "OTHER"


@patch("services.requests.post")
def test_gemini_connection_error(mock_post):
    mock_post.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(UpstreamGenerationFailure) as exc_info:
        GeminiClient(api_key="key").generate_text("system", "user")

    assert "Could not connect" in exc_info.value.message


def test_gemini_requires_api_key():
    with pytest.raises(ConfigurationError):
        GeminiClient(api_key="")
    with pytest.raises(ConfigurationError):
        GeminiTTSClient(api_key="")


@patch("services.requests.post")
def test_tts_decodes_pcm_and_sample_rate(mock_post):
    pcm = b"\x01\x00\x02\x00"
    mock_post.return_value = mock_response({
        "candidates": [{"content": {"parts": [{"inlineData": {
            "mimeType": "audio/L16;codec=pcm;rate=16000",
            "data": base64.b64encode(pcm).decode(),
        }}]}}]
    })

    audio = GeminiTTSClient(api_key="key", voice="Puck").generate_audio("Hello there")

    assert audio.pcm == pcm
    assert audio.sample_rate == 16000
    config = mock_post.call_args.kwargs["json"]["generationConfig"]
    assert config["responseModalities"] == ["AUDIO"]
    assert config["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"] == "Puck"


@patch("services.requests.post")
def test_tts_rejects_unexpected_mime_type(mock_post):
    mock_post.return_value = mock_response({
        "candidates": [{"content": {"parts": [{"inlineData": {"mimeType": "audio/mpeg", "data": "AAAA"}}]}}]
    })

    with pytest.raises(UpstreamGenerationFailure):
        GeminiTTSClient(api_key="key").generate_audio("Hello there")


def test_tts_rejects_empty_script():
    with pytest.raises(UpstreamGenerationFailure):
        GeminiTTSClient(api_key="key").generate_audio("  ")


@patch("services.requests.post")
def test_ollama_generates_text(mock_post):
    mock_post.return_value = mock_response({"message": {"content": " class ManimScene(Scene): ... "}})

    text = OllamaClient(url="http://ollama/api/chat", model="codellama:7b").generate_text("system", "user")

    assert text == "class ManimScene(Scene): ..."
    payload = mock_post.call_args.kwargs["json"]
    assert payload["model"] == "codellama:7b"
    assert payload["stream"] is False
    assert [m["role"] for m in payload["messages"]] == ["system", "user"]


@patch("services.requests.post")
def test_ollama_empty_response(mock_post):
    mock_post.return_value = mock_response({"message": {"content": ""}})

    with pytest.raises(UpstreamGenerationFailure):
        OllamaClient().generate_text("system", "user")


def test_make_text_generator():
    assert isinstance(make_text_generator("ollama"), OllamaClient)
    assert isinstance(make_text_generator("gemini", api_key="key"), GeminiClient)
    with pytest.raises(ConfigurationError):
        make_text_generator("unknown", api_key="key")
