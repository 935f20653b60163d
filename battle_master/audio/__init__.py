"""Narration audio decoding and playback."""

from battle_master.audio.player import AudioPlayer, NullPlayer, PlaybackHandle, SounddevicePlayer
from battle_master.audio.wav import (
    DEFAULT_SAMPLE_RATE,
    AudioClip,
    WavHeader,
    decode_base64_pcm,
    decode_to_clip,
    parse_sample_rate,
    pcm_to_wav,
    read_wav_header,
)

__all__ = [
    "DEFAULT_SAMPLE_RATE",
    "AudioClip",
    "AudioPlayer",
    "NullPlayer",
    "PlaybackHandle",
    "SounddevicePlayer",
    "WavHeader",
    "decode_base64_pcm",
    "decode_to_clip",
    "parse_sample_rate",
    "pcm_to_wav",
    "read_wav_header",
]
