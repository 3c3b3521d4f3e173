"""Audio container helpers for the TTS stage."""

import io
import re
import wave
from array import array
from typing import Optional, Sequence, Union

from config import DEFAULT_SAMPLE_RATE

CHANNELS = 1
SAMPLE_WIDTH = 2  # bytes, 16-bit


def pcm_to_wav(pcm: Union[bytes, Sequence[int]], sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """
    Wraps little-endian 16-bit mono PCM in a canonical 44-byte WAV header.
    `pcm` is either raw bytes or a sequence of signed sample values.
    """
    if isinstance(pcm, (bytes, bytearray, memoryview)):
        data = bytes(pcm)
        data = data[: len(data) - (len(data) % SAMPLE_WIDTH)]
    else:
        samples = array("h", pcm)
        if samples.itemsize != SAMPLE_WIDTH:
            raise ValueError("Platform short is not 16-bit")
        if array("h", [1]).tobytes() != b"\x01\x00":
            samples.byteswap()
        data = samples.tobytes()

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(CHANNELS)
        wav.setsampwidth(SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(data)
    return buffer.getvalue()


def sample_rate_from_mime(mime_type: Optional[str], default: int = DEFAULT_SAMPLE_RATE) -> int:
    """Gemini reports PCM audio as e.g. 'audio/L16;codec=pcm;rate=24000'."""
    match = re.search(r"rate=(\d+)", mime_type or "")
    return int(match.group(1)) if match else default
