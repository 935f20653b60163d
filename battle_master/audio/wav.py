"""Base64 PCM decoding and WAV container encoding."""

import base64
import binascii
import io
import re
import struct
import wave
from dataclasses import dataclass
from typing import Optional

from battle_master.llm.base import AudioDecodeFailure

DEFAULT_SAMPLE_RATE = 24000
NUM_CHANNELS = 1
SAMPLE_WIDTH = 2  # 16-bit signed PCM
WAV_HEADER_SIZE = 44

_RATE_PATTERN = re.compile(r"rate=(\d+)")


@dataclass(frozen=True)
class WavHeader:
    """Fields of a canonical 44-byte RIFF/WAVE header."""

    num_channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int
    data_size: int


@dataclass(frozen=True)
class AudioClip:
    """Decoded narration ready for playback."""

    wav_bytes: bytes
    sample_rate: int
    voice_name: Optional[str] = None

    @property
    def sample_count(self) -> int:
        return (len(self.wav_bytes) - WAV_HEADER_SIZE) // SAMPLE_WIDTH

    @property
    def duration_seconds(self) -> float:
        return self.sample_count / self.sample_rate if self.sample_rate else 0.0


def parse_sample_rate(mime_type: Optional[str], default: int = DEFAULT_SAMPLE_RATE) -> int:
    """Read ``rate=<n>`` from a mime type such as ``audio/L16;codec=pcm;rate=24000``."""
    if mime_type:
        match = _RATE_PATTERN.search(mime_type)
        if match:
            rate = int(match.group(1))
            if rate > 0:
                return rate
    return default


def decode_base64_pcm(data: str) -> bytes:
    """Decode a base64 payload of 16-bit little-endian mono samples.

    Raises:
        AudioDecodeFailure: Empty payload, invalid base64, or odd byte count
    """
    if not data:
        raise AudioDecodeFailure("Audio payload is empty")
    try:
        pcm = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioDecodeFailure(f"Audio payload is not valid base64: {e}") from e
    if not pcm:
        raise AudioDecodeFailure("Audio payload decoded to zero bytes")
    if len(pcm) % SAMPLE_WIDTH:
        raise AudioDecodeFailure(
            f"Audio payload length {len(pcm)} is not a whole number of 16-bit samples"
        )
    return pcm


def pcm_to_wav(pcm: bytes, sample_rate: int) -> bytes:
    """Wrap raw mono 16-bit PCM in a WAV container."""
    with io.BytesIO() as buffer:
        with wave.open(buffer, "wb") as wave_file:
            wave_file.setnchannels(NUM_CHANNELS)
            wave_file.setsampwidth(SAMPLE_WIDTH)
            wave_file.setframerate(sample_rate)
            wave_file.writeframes(pcm)
        return buffer.getvalue()


def decode_to_clip(
    data: str,
    mime_type: Optional[str],
    *,
    voice_name: Optional[str] = None,
    default_sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> AudioClip:
    """Turn an inline audio payload into a playable WAV clip."""
    sample_rate = parse_sample_rate(mime_type, default_sample_rate)
    pcm = decode_base64_pcm(data)
    return AudioClip(
        wav_bytes=pcm_to_wav(pcm, sample_rate),
        sample_rate=sample_rate,
        voice_name=voice_name,
    )


def read_wav_header(wav_bytes: bytes) -> WavHeader:
    """Parse the canonical header of a PCM WAV buffer.

    Raises:
        AudioDecodeFailure: Buffer too short or not RIFF/WAVE/fmt/data
    """
    if len(wav_bytes) < WAV_HEADER_SIZE:
        raise AudioDecodeFailure("WAV buffer shorter than a 44-byte header")

    riff, _, wave_id = struct.unpack_from("<4sI4s", wav_bytes, 0)
    fmt_id, fmt_size, audio_format, channels, rate, byte_rate, align, bits = struct.unpack_from(
        "<4sIHHIIHH", wav_bytes, 12
    )
    data_id, data_size = struct.unpack_from("<4sI", wav_bytes, 36)

    if (riff, wave_id, fmt_id, data_id) != (b"RIFF", b"WAVE", b"fmt ", b"data"):
        raise AudioDecodeFailure("Not a canonical RIFF/WAVE buffer")
    if fmt_size != 16 or audio_format != 1:
        raise AudioDecodeFailure("WAV buffer is not plain PCM")

    return WavHeader(
        num_channels=channels,
        sample_rate=rate,
        byte_rate=byte_rate,
        block_align=align,
        bits_per_sample=bits,
        data_size=data_size,
    )
