"""Pytest configuration and fixtures."""

import base64
import struct

import pytest
from unittest.mock import AsyncMock, MagicMock

from battle_master.audio import AudioPlayer, PlaybackHandle
from battle_master.config import Settings
from battle_master.encounter import EncounterRequestParams, EncounterSessionController
from battle_master.llm import Citation, GeminiClient, SpeechResult, TextResult
from battle_master.observability import ObservabilityLogger


@pytest.fixture(autouse=True)
def isolated_observability(tmp_path):
    """Route telemetry into a per-test directory."""
    ObservabilityLogger._instance = ObservabilityLogger(log_dir=tmp_path / "logs", enabled=True)
    yield ObservabilityLogger._instance
    ObservabilityLogger.reset_instance()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        api_key="test-key",
        auth_token=None,
        auth_secret="test-secret",
        observability_dir=tmp_path / "logs",
    )


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def pcm_samples(*samples: int) -> bytes:
    """Pack signed 16-bit little-endian mono samples."""
    return struct.pack(f"<{len(samples)}h", *samples)


def make_text_result(text: str, citations=()) -> TextResult:
    return TextResult(text=text, model="text-model", citations=list(citations))


def make_speech_result(
    pcm: bytes = b"\x01\x00\x02\x00\x03\x00",
    mime_type: str = "audio/L16;codec=pcm;rate=24000",
    voice_name: str = "Charon",
) -> SpeechResult:
    return SpeechResult(
        data=base64.b64encode(pcm).decode("ascii"),
        mime_type=mime_type,
        voice_name=voice_name,
        model="tts-model",
    )


@pytest.fixture
def text_result():
    """Factory for text results."""
    return make_text_result


@pytest.fixture
def speech_result():
    """Factory for speech results."""
    return make_speech_result


@pytest.fixture
def sample_citations():
    return [
        Citation(uri="https://example.com/goblin", title="Goblin"),
        Citation(uri="https://example.com/bugbear", title="Bugbear"),
    ]


# ---------------------------------------------------------------------------
# Client and player doubles
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_client():
    """Create a mock generateContent client."""
    client = MagicMock(spec=GeminiClient)
    client.generate_text = AsyncMock()
    client.synthesize_speech = AsyncMock()
    client.aclose = AsyncMock()
    return client


class FakeHandle(PlaybackHandle):
    """Playback that only ends when the test says so."""

    def __init__(self, on_finished):
        self.on_finished = on_finished
        self.stopped = False
        self._playing = True

    @property
    def is_playing(self) -> bool:
        return self._playing

    def stop(self) -> None:
        self.stopped = True
        self._playing = False

    def finish(self) -> None:
        self._playing = False
        self.on_finished()


class FakePlayer(AudioPlayer):
    """Records every clip it is asked to play."""

    def __init__(self):
        self.clips = []
        self.handles = []

    def play(self, clip, on_finished):
        handle = FakeHandle(on_finished)
        self.clips.append(clip)
        self.handles.append(handle)
        return handle


@pytest.fixture
def fake_player():
    return FakePlayer()


@pytest.fixture
def controller(mock_client, settings, fake_player):
    """Session controller backed by the mock client and fake player."""
    return EncounterSessionController(mock_client, settings=settings, player=fake_player)


@pytest.fixture
def default_params():
    return EncounterRequestParams()
