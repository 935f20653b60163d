"""Encounter State — request parameters and the live session model.

The session is owned by :class:`EncounterSessionController`; everything else
reads snapshots of it.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from battle_master.llm.base import Citation, ErrorKind


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"
    DEADLY = "Deadly"


class SessionPhase(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    READY = "ready"
    DETAIL_LOADING = "detail_loading"
    SPEAKING = "speaking"


class RequestKind(str, Enum):
    GENERATE = "generate"
    FLESH_OUT = "flesh_out"
    NARRATE = "narrate"


class VoiceStyle(str, Enum):
    DRAMATIC = "dramatic"
    MONOTONE = "monotone"


class NarrationOutcome(str, Enum):
    """What a single ``narrate`` call did."""

    PLAYING = "playing"  # this call's clip is now playing
    STOPPED = "stopped"  # toggled off a running narration
    CANCELLED = "cancelled"  # stopped before this call's audio arrived
    FAILED = "failed"  # last_error holds the reason
    SKIPPED = "skipped"  # no narrative to read


# ── Request parameters ────────────────────────────────────────────────────────


PARTY_SIZE_RANGE = (1, 12)
LEVEL_RANGE = (1, 20)
ENEMY_COUNT_RANGE = (1, 20)


def _clamp(value: Any, bounds: tuple[int, int]) -> int:
    """Coerce form input into ``bounds``; unparseable input becomes the minimum."""
    low, high = bounds
    try:
        number = int(value)
    except (TypeError, ValueError):
        number = low
    return max(low, min(high, number))


class EncounterRequestParams(BaseModel):
    """Form state captured at submit time."""

    model_config = ConfigDict(frozen=True)

    party_size: int = Field(4, ge=PARTY_SIZE_RANGE[0], le=PARTY_SIZE_RANGE[1])
    average_level: int = Field(5, ge=LEVEL_RANGE[0], le=LEVEL_RANGE[1])
    difficulty: Difficulty = Difficulty.MEDIUM
    terrain: str = Field("Forest Ruin", min_length=1)
    flavor: str = Field("A patrol guarding a magical artifact.", min_length=1)
    enemy_count: Optional[int] = Field(5, ge=ENEMY_COUNT_RANGE[0], le=ENEMY_COUNT_RANGE[1])

    @classmethod
    def clamped(
        cls,
        *,
        party_size: Any = 4,
        average_level: Any = 5,
        enemy_count: Any = 5,
        **fields: Any,
    ) -> "EncounterRequestParams":
        """Build params from raw form input, clamping numbers into range."""
        return cls(
            party_size=_clamp(party_size, PARTY_SIZE_RANGE),
            average_level=_clamp(average_level, LEVEL_RANGE),
            enemy_count=None if enemy_count is None else _clamp(enemy_count, ENEMY_COUNT_RANGE),
            **fields,
        )


# ── Session ───────────────────────────────────────────────────────────────────


class SessionError(BaseModel):
    """A user-visible failure of the most recent flow."""

    kind: ErrorKind
    message: str
    terminal: bool = True


class EncounterSession(BaseModel):
    """Complete encounter session — one per controller."""

    narrative_text: Optional[str] = None
    citations: list[Citation] = Field(default_factory=list)
    last_error: Optional[SessionError] = None

    generating: bool = False
    detail_loading: bool = False
    speaking: bool = False
    has_generated: bool = False

    @property
    def phase(self) -> SessionPhase:
        if self.generating:
            return SessionPhase.GENERATING
        if self.detail_loading:
            return SessionPhase.DETAIL_LOADING
        if self.speaking:
            return SessionPhase.SPEAKING
        if self.has_generated:
            return SessionPhase.READY
        return SessionPhase.IDLE

    @property
    def has_narrative(self) -> bool:
        return bool(self.narrative_text and self.narrative_text.strip())

    def reset_for_generate(self) -> None:
        """Clear the previous result before a new generation."""
        self.narrative_text = None
        self.citations = []
        self.last_error = None

    def to_public_dict(self) -> dict[str, Any]:
        """Serializable view including the derived phase."""
        data = self.model_dump(mode="json", exclude={"has_generated"})
        data["phase"] = self.phase.value
        return data
