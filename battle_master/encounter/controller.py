"""Encounter Session Controller: orchestrates generate, flesh-out and narrate.

The controller is the only writer of its :class:`EncounterSession`. Each
flow has its own in-flight flag; a second call of the same flow while one
is running is a no-op. Every flow clears its flag on success and on error,
so the session never stays in a loading phase.
"""
from __future__ import annotations

import logging
from typing import Optional

from battle_master.audio.player import AudioPlayer, NullPlayer, PlaybackHandle
from battle_master.audio.wav import AudioClip, decode_to_clip
from battle_master.config import Settings, get_settings
from battle_master.encounter.prompts import (
    FLESH_OUT_SEPARATOR,
    build_prompt,
    voice_for_style,
)
from battle_master.encounter.state import (
    EncounterRequestParams,
    EncounterSession,
    NarrationOutcome,
    RequestKind,
    SessionError,
    VoiceStyle,
)
from battle_master.llm.base import ErrorKind, LLMError, MalformedResponse
from battle_master.llm.gemini import GeminiClient
from battle_master.observability import EventType, get_observability_logger

logger = logging.getLogger(__name__)

GENERATION_FAILED_MESSAGE = (
    "AI failed to generate content. Please try again with a different prompt."
)
FLESH_OUT_FAILED_MESSAGE = "AI failed to flesh out the encounter. Please try again."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred during API communication."


class EncounterSessionController:
    """Finite-state owner of one encounter session."""

    def __init__(
        self,
        client: GeminiClient,
        *,
        settings: Optional[Settings] = None,
        player: Optional[AudioPlayer] = None,
        session_id: Optional[str] = None,
    ):
        self._client = client
        self._settings = settings or get_settings()
        self._player = player or NullPlayer()
        self.session_id = session_id

        self._session = EncounterSession()
        self._params: Optional[EncounterRequestParams] = None
        self._generation = 0

        self._playback: Optional[PlaybackHandle] = None
        self._narration_token: Optional[object] = None
        self._clip: Optional[AudioClip] = None

    # ──────────────────────────────────────────────────────────────────────
    # Read access
    # ──────────────────────────────────────────────────────────────────────

    @property
    def session(self) -> EncounterSession:
        return self._session

    @property
    def params(self) -> Optional[EncounterRequestParams]:
        return self._params

    @property
    def last_clip(self) -> Optional[AudioClip]:
        """Most recently decoded narration, kept after playback ends."""
        return self._clip

    def snapshot(self) -> EncounterSession:
        return self._session.model_copy(deep=True)

    # ──────────────────────────────────────────────────────────────────────
    # Generate
    # ──────────────────────────────────────────────────────────────────────

    async def generate(self, params: EncounterRequestParams) -> bool:
        """Design a new encounter from ``params``.

        Returns False without doing anything when a generation is in flight.
        """
        if self._session.generating:
            logger.debug("generate ignored: generation already in flight")
            return False

        # The old encounter's narration must not outlive it
        self.stop_narration()
        self._session.reset_for_generate()
        self._session.generating = True
        self._params = params
        self._generation += 1

        try:
            bundle = build_prompt(params, RequestKind.GENERATE)
            result = await self._client.generate_text(
                bundle.system_instruction,
                bundle.user_query,
                temperature=self._settings.generate_temperature,
                grounded=True,
                request_kind=RequestKind.GENERATE.value,
                session_id=self.session_id,
            )
        except MalformedResponse as e:
            logger.error(f"Generation returned no usable content: {e}")
            self._set_error(ErrorKind.GENERATION_FAILED, GENERATION_FAILED_MESSAGE, terminal=True)
        except LLMError as e:
            logger.error(f"Generation failed: {e}")
            self._set_error(e.kind, str(e) or UNEXPECTED_ERROR_MESSAGE, terminal=True)
        else:
            self._session.narrative_text = result.text
            self._session.citations = list(result.citations)
            logger.info(
                f"Generated encounter ({len(result.text)} chars, "
                f"{len(result.citations)} citations)"
            )
        finally:
            self._session.generating = False
            self._session.has_generated = True

        return True

    # ──────────────────────────────────────────────────────────────────────
    # Flesh out
    # ──────────────────────────────────────────────────────────────────────

    async def flesh_out(self) -> bool:
        """Append tactics, environment and treasure sections to the narrative.

        Returns False without doing anything when a flesh-out is in flight or
        there is no narrative yet.
        """
        if self._session.detail_loading:
            logger.debug("flesh_out ignored: already in flight")
            return False
        if not self._session.has_narrative:
            logger.debug("flesh_out ignored: no narrative")
            return False

        narrative = self._session.narrative_text
        generation = self._generation
        self._session.detail_loading = True
        self._session.last_error = None

        try:
            bundle = build_prompt(self._params, RequestKind.FLESH_OUT, narrative=narrative)
            result = await self._client.generate_text(
                bundle.system_instruction,
                bundle.user_query,
                temperature=self._settings.flesh_out_temperature,
                grounded=False,
                request_kind=RequestKind.FLESH_OUT.value,
                session_id=self.session_id,
            )
        except MalformedResponse as e:
            logger.error(f"Flesh-out returned no usable content: {e}")
            self._set_error(ErrorKind.MALFORMED_RESPONSE, FLESH_OUT_FAILED_MESSAGE, terminal=False)
        except LLMError as e:
            logger.error(f"Flesh-out failed: {e}")
            self._set_error(e.kind, str(e) or UNEXPECTED_ERROR_MESSAGE, terminal=False)
        else:
            if generation != self._generation:
                # A new encounter replaced the one these details were written for
                logger.info("Discarding flesh-out for a superseded encounter")
            else:
                self._session.narrative_text = f"{narrative}{FLESH_OUT_SEPARATOR}{result.text}"
        finally:
            self._session.detail_loading = False

        return True

    # ──────────────────────────────────────────────────────────────────────
    # Narrate
    # ──────────────────────────────────────────────────────────────────────

    async def narrate(self, voice_style: VoiceStyle) -> NarrationOutcome:
        """Speak the opening paragraph, or stop narration if already speaking.

        Returns what this call did. Only ``PLAYING`` means :attr:`last_clip`
        holds audio produced by this call.
        """
        if not self._session.has_narrative:
            logger.debug("narrate ignored: no narrative")
            return NarrationOutcome.SKIPPED
        if self._session.speaking:
            self.stop_narration()
            return NarrationOutcome.STOPPED

        style = VoiceStyle(voice_style)
        voice_name = voice_for_style(style)
        self._release_playback()

        token = object()
        self._narration_token = token
        self._session.speaking = True
        self._session.last_error = None

        try:
            bundle = build_prompt(
                self._params,
                RequestKind.NARRATE,
                narrative=self._session.narrative_text,
                voice_style=style,
            )
            speech = await self._client.synthesize_speech(
                bundle.user_query, voice_name, session_id=self.session_id
            )
            clip = decode_to_clip(
                speech.data,
                speech.mime_type,
                voice_name=voice_name,
                default_sample_rate=self._settings.default_sample_rate,
            )
        except LLMError as e:
            logger.error(f"Narration failed: {e}")
            if self._narration_token is not token:
                return NarrationOutcome.CANCELLED
            self._fail_narration(e.kind, str(e) or UNEXPECTED_ERROR_MESSAGE)
            return NarrationOutcome.FAILED

        self._clip = clip
        if self._narration_token is not token:
            logger.info("Narration stopped before audio arrived; not playing")
            return NarrationOutcome.CANCELLED

        try:
            self._playback = self._player.play(clip, lambda: self._on_playback_finished(token))
        except LLMError as e:
            logger.error(f"Playback failed: {e}")
            self._fail_narration(e.kind, str(e))
            return NarrationOutcome.FAILED
        except Exception as e:
            logger.exception(f"Audio player raised: {e}")
            self._fail_narration(ErrorKind.AUDIO_DECODE_FAILURE, f"Audio playback failed: {e}")
            return NarrationOutcome.FAILED

        logger.info(f"Narrating {clip.duration_seconds:.1f}s with voice {voice_name}")
        get_observability_logger().log_playback(
            EventType.PLAYBACK_START,
            voice_name=voice_name,
            sample_rate=clip.sample_rate,
            duration_seconds=clip.duration_seconds,
            session_id=self.session_id,
        )
        return NarrationOutcome.PLAYING

    def stop_narration(self) -> None:
        """Stop current playback (or a pending one) and return to Ready."""
        was_playing = self._playback is not None
        self._narration_token = None
        self._release_playback()
        self._session.speaking = False
        if was_playing:
            get_observability_logger().log_playback(
                EventType.PLAYBACK_STOPPED, session_id=self.session_id
            )

    def _on_playback_finished(self, token: object) -> None:
        if token is not self._narration_token:
            return
        self._narration_token = None
        self._playback = None
        self._session.speaking = False
        get_observability_logger().log_playback(
            EventType.PLAYBACK_FINISHED, session_id=self.session_id
        )

    def _release_playback(self) -> None:
        if self._playback is not None:
            self._playback.stop()
            self._playback = None

    # ──────────────────────────────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────────────────────────────

    def _set_error(self, kind: ErrorKind, message: str, *, terminal: bool) -> None:
        self._session.last_error = SessionError(kind=kind, message=message, terminal=terminal)

    def _fail_narration(self, kind: ErrorKind, message: str) -> None:
        self._narration_token = None
        self._playback = None
        self._session.speaking = False
        self._set_error(kind, message, terminal=False)

    async def aclose(self) -> None:
        """Stop playback and release the HTTP client."""
        self.stop_narration()
        await self._client.aclose()
