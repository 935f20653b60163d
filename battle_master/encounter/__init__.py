"""Encounter session: request parameters, prompts and the session controller."""

from battle_master.encounter.controller import EncounterSessionController
from battle_master.encounter.prompts import (
    FLESH_OUT_SEPARATOR,
    VOICE_NAMES,
    PromptBundle,
    build_prompt,
    first_paragraph,
    voice_for_style,
)
from battle_master.encounter.state import (
    Difficulty,
    EncounterRequestParams,
    EncounterSession,
    NarrationOutcome,
    RequestKind,
    SessionError,
    SessionPhase,
    VoiceStyle,
)

__all__ = [
    "Difficulty",
    "EncounterRequestParams",
    "EncounterSession",
    "EncounterSessionController",
    "FLESH_OUT_SEPARATOR",
    "NarrationOutcome",
    "PromptBundle",
    "RequestKind",
    "SessionError",
    "SessionPhase",
    "VOICE_NAMES",
    "VoiceStyle",
    "build_prompt",
    "first_paragraph",
    "voice_for_style",
]
