"""Playback handles for decoded narration clips."""

import asyncio
import io
import logging
import wave
from abc import ABC, abstractmethod
from typing import Callable, Optional

from battle_master.audio.wav import AudioClip
from battle_master.llm.base import AudioDecodeFailure

logger = logging.getLogger(__name__)

FinishedCallback = Callable[[], None]


class PlaybackHandle(ABC):
    """A clip that is (or was) playing."""

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        """Whether audio is still being rendered."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop playback. The finished callback is not invoked."""
        pass


class AudioPlayer(ABC):
    """Starts playback of WAV clips."""

    @abstractmethod
    def play(self, clip: AudioClip, on_finished: FinishedCallback) -> PlaybackHandle:
        """Begin playing ``clip``; call ``on_finished`` when it ends naturally.

        Must be called from a running event loop. ``on_finished`` is invoked
        on that loop.

        Raises:
            AudioDecodeFailure: The clip cannot be rendered
        """
        pass


# ── Null player ───────────────────────────────────────────────────────────────


class _ImmediateHandle(PlaybackHandle):
    def __init__(self, loop: asyncio.AbstractEventLoop, on_finished: FinishedCallback):
        self._playing = True
        self._on_finished = on_finished
        loop.call_soon(self._finish)

    def _finish(self) -> None:
        if self._playing:
            self._playing = False
            self._on_finished()

    @property
    def is_playing(self) -> bool:
        return self._playing

    def stop(self) -> None:
        self._playing = False


class NullPlayer(AudioPlayer):
    """Player that renders nothing and finishes on the next loop iteration.

    Used where the clip is delivered elsewhere (HTTP responses, saved files).
    """

    def play(self, clip: AudioClip, on_finished: FinishedCallback) -> PlaybackHandle:
        return _ImmediateHandle(asyncio.get_running_loop(), on_finished)


# ── Sound card player ─────────────────────────────────────────────────────────


class _DeviceHandle(PlaybackHandle):
    def __init__(self, sd, on_finished: FinishedCallback, duration: float):
        self._sd = sd
        self._on_finished = on_finished
        self._stopped = False
        self._task: Optional[asyncio.Task] = asyncio.get_running_loop().create_task(
            self._wait(duration)
        )

    async def _wait(self, duration: float) -> None:
        await asyncio.to_thread(self._sd.wait)
        if not self._stopped:
            logger.debug(f"Playback finished after {duration:.2f}s")
            self._on_finished()

    @property
    def is_playing(self) -> bool:
        return not self._stopped and self._task is not None and not self._task.done()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._sd.stop()
        if self._task is not None:
            self._task.cancel()


class SounddevicePlayer(AudioPlayer):
    """Play clips on the default output device via PortAudio."""

    def play(self, clip: AudioClip, on_finished: FinishedCallback) -> PlaybackHandle:
        # PortAudio is only loaded when something is actually played
        import numpy as np

        try:
            import sounddevice as sd
        except OSError as e:
            raise AudioDecodeFailure(f"Audio output unavailable: {e}") from e

        try:
            with wave.open(io.BytesIO(clip.wav_bytes)) as wf:
                sample_width = wf.getsampwidth()
                sample_rate = wf.getframerate()
                frames = wf.readframes(wf.getnframes())
        except (wave.Error, EOFError) as e:
            raise AudioDecodeFailure(f"Unable to read WAV clip: {e}") from e

        if sample_width != 2:
            raise AudioDecodeFailure("Only 16-bit PCM WAV clips are supported.")

        audio = np.frombuffer(frames, dtype=np.int16).astype(np.float32) / 32768.0
        try:
            sd.play(audio, samplerate=sample_rate)
        except (sd.PortAudioError, OSError) as e:
            raise AudioDecodeFailure(f"Audio output unavailable: {e}") from e
        return _DeviceHandle(sd, on_finished, clip.duration_seconds)
