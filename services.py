"""
Service classes for talking to the generative models.
Contains the Gemini text/speech clients and the local Ollama client.
"""

import base64
import logging
from dataclasses import dataclass

import requests

from audio import sample_rate_from_mime
from config import (
    GEMINI_API_URL,
    GEMINI_API_KEY,
    GEMINI_API_KEY_TTS,
    GEMINI_TEXT_MODEL,
    GEMINI_TTS_MODEL,
    TTS_VOICE,
    TTS_INSTRUCTION,
    OLLAMA_API_URL,
    OLLAMA_MODEL,
    REQUEST_TIMEOUT,
    TEXT_PROVIDER,
)
from exceptions import ConfigurationError, UpstreamGenerationFailure


@dataclass
class GeneratedAudio:
    pcm: bytes
    sample_rate: int
    mime_type: str


def _post_json(url: str, payload: dict, headers: dict = None, service: str = "model") -> dict:
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
        return response.json()
    except requests.RequestException as e:
        raise UpstreamGenerationFailure(f"Could not connect to the {service}: {e}") from e
    except ValueError as e:
        raise UpstreamGenerationFailure(f"The {service} returned a malformed response.") from e


def _first_content(data: dict, what: str) -> list:
    """Returns the parts of the first candidate, or raises with the model's reason."""
    candidates = data.get("candidates") or []
    content = candidates[0].get("content") if candidates else None
    parts = (content or {}).get("parts") or []
    if not parts:
        reason = (
            (candidates[0].get("finishReason") if candidates else None)
            or (data.get("promptFeedback") or {}).get("blockReason")
            or "UNKNOWN"
        )
        logging.error(f"Gemini API returned no {what}. Finish Reason: {reason}")
        raise UpstreamGenerationFailure(
            f"Failed to generate {what}. The model response was empty or blocked (Reason: {reason}).",
            details=reason,
        )
    return parts


class GeminiClient:
    """Text generation through the Gemini REST API."""

    def __init__(self, api_key: str = GEMINI_API_KEY, model: str = GEMINI_TEXT_MODEL):
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY is not set in environment variables")
        self.api_key = api_key
        self.model = model

    def _url(self) -> str:
        return f"{GEMINI_API_URL}/{self.model}:generateContent"

    def generate_text(self, system_prompt: str, user_prompt: str, what: str = "content") -> str:
        logging.info(f"📝 Sending prompt to {self.model} ({len(user_prompt)} chars)")
        payload = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
        }
        data = _post_json(self._url(), payload, {"x-goog-api-key": self.api_key}, service="Gemini API")

        parts = _first_content(data, what)
        text = "".join(part.get("text", "") for part in parts).strip()
        if not text:
            raise UpstreamGenerationFailure(f"Failed to generate {what}. The model returned no text.")
        return text


class GeminiTTSClient(GeminiClient):
    """Speech synthesis through the Gemini TTS model."""

    def __init__(self, api_key: str = GEMINI_API_KEY_TTS, model: str = GEMINI_TTS_MODEL,
                 voice: str = TTS_VOICE):
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY_TTS is not set in environment variables")
        super().__init__(api_key, model)
        self.voice = voice

    def generate_audio(self, text: str) -> GeneratedAudio:
        if not text or not text.strip():
            raise UpstreamGenerationFailure("No script text provided.")

        logging.info(f"🔊 Calling Gemini TTS ({self.model}, voice {self.voice})...")
        payload = {
            "contents": [{"parts": [{"text": f"{TTS_INSTRUCTION}{text}"}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.voice}}
                },
            },
        }
        data = _post_json(self._url(), payload, {"x-goog-api-key": self.api_key}, service="Gemini TTS API")

        inline = _first_content(data, "audio")[0].get("inlineData") or {}
        mime_type = inline.get("mimeType") or ""
        encoded = inline.get("data")
        if not encoded or not mime_type.lower().startswith("audio/l16"):
            raise UpstreamGenerationFailure(
                "Failed to generate audio. API response was invalid.",
                details=f"mimeType={mime_type!r}",
            )

        sample_rate = sample_rate_from_mime(mime_type)
        logging.info(f"🔊 Received audio data at {sample_rate}Hz.")
        return GeneratedAudio(base64.b64decode(encoded), sample_rate, mime_type)


class OllamaClient:
    """Text generation through a local Ollama chat endpoint."""

    def __init__(self, url: str = OLLAMA_API_URL, model: str = OLLAMA_MODEL):
        self.url = url
        self.model = model

    def generate_text(self, system_prompt: str, user_prompt: str, what: str = "content") -> str:
        logging.info(f"📝 Sending prompt to {self.model}: '{user_prompt[:80]}'")
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "stream": False,
            "options": {"temperature": 0.2, "top_p": 0.95},
        }
        data = _post_json(self.url, payload, service="Ollama AI model")
        text = (data.get("message") or {}).get("content", "").strip()
        if not text:
            raise UpstreamGenerationFailure(f"Failed to generate {what}. Ollama returned an empty response.")
        return text


def make_text_generator(provider: str = TEXT_PROVIDER, api_key: str = GEMINI_API_KEY):
    if provider == "ollama":
        return OllamaClient()
    if provider == "gemini":
        return GeminiClient(api_key=api_key)
    raise ConfigurationError(f"Unknown TEXT_PROVIDER '{provider}'")
