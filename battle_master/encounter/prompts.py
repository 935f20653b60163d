"""Prompt construction for the three request kinds.

Every builder is a pure function of its inputs: the same params, narrative
and style always render the same system instruction and user query.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from battle_master.encounter.state import EncounterRequestParams, RequestKind, VoiceStyle

FLESH_OUT_SEPARATOR = "\n\n---\n\n"

VOICE_NAMES: dict[VoiceStyle, str] = {
    VoiceStyle.DRAMATIC: "Charon",
    VoiceStyle.MONOTONE: "Puck",
}

_STYLE_DIRECTIONS: dict[VoiceStyle, str] = {
    VoiceStyle.DRAMATIC: (
        "Read the following aloud as a dramatic fantasy storyteller: a deep, "
        "ominous voice with slow pacing and suspenseful pauses"
    ),
    VoiceStyle.MONOTONE: (
        "Read the following aloud quickly in a flat, monotone, matter-of-fact "
        "voice with no dramatic emphasis"
    ),
}

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n")


@dataclass(frozen=True)
class PromptBundle:
    system_instruction: str
    user_query: str


def voice_for_style(style: VoiceStyle) -> str:
    """Prebuilt voice id bound to a narration style."""
    return VOICE_NAMES[VoiceStyle(style)]


def first_paragraph(narrative: str) -> str:
    """Text of ``narrative`` up to its first blank line."""
    return _PARAGRAPH_BREAK.split(narrative.strip(), maxsplit=1)[0].strip()


# ── Generate ──────────────────────────────────────────────────────────────────


def _generate_prompt(params: EncounterRequestParams) -> PromptBundle:
    difficulty = params.difficulty.value
    count_rule = (
        " **The total quantity of all chosen monsters must equal the Desired "
        "Number of Enemies specified by the user.**"
        if params.enemy_count is not None
        else ""
    )

    system_instruction = (
        "You are an expert Dungeon Master (DM) and encounter designer for Dungeons & Dragons (D&D). "
        "Use the latest D&D 5th Edition rules and encounter building guidelines to accurately "
        "calculate and balance the combat difficulty.\n\n"
        "Task: Design a single combat encounter for the player party described below.\n"
        "1. Setting: Use the specified terrain.\n"
        f"2. Difficulty: Strictly adhere to the requested difficulty level ({difficulty}).\n"
        "3. Monster Selection: Select specific, named D&D monsters (e.g., Goblin, Bugbear, "
        "Fire Elemental) appropriate for the setting and the calculated Challenge Rating (CR) "
        f"budget. Do not invent new monsters.{count_rule}\n"
        "4. Output Format:\n"
        "   - Start with an engaging narrative hook describing the scene and the immediate threat.\n"
        "   - Follow with a structured list detailing the specific monsters. For each monster, include:\n"
        "     a. Monster Name and Quantity (bold the monster's name)\n"
        "     b. Challenge Rating (CR)\n"
        "     c. A concise Stat Block Summary listing key combat stats. Use a simple, un-emphasized "
        "bullet list for these stats to ensure clean formatting. Include: Armor Class (AC), "
        "Hit Points (HP), Speed, and its primary attack Action (Name, To Hit bonus, Damage, and "
        'effect). Example bullet point: "AC: 14 (Natural Armor), HP: 45 (6d8+18), Speed: 30 ft., '
        'Attack: Greatsword (+5 to hit, 1d10+3 slashing)"\n'
        "   - Conclude with a note on why the encounter is balanced for the party using CR/XP math "
        "(briefly mention the adjusted XP threshold vs. encounter XP budget, referencing D&D 5e "
        "encounter rules).\n\n"
        "The response must be in plain markdown text."
    )

    lines = [
        f"Generate a {difficulty} combat encounter for a party of {params.party_size} "
        f"adventurers, with an average character level of {params.average_level}.",
        f"- Terrain: {params.terrain}",
        f"- Flavor/Context: {params.flavor}",
    ]
    if params.enemy_count is not None:
        lines.append(f"- Desired Number of Enemies (Total Quantity): {params.enemy_count}")

    return PromptBundle(system_instruction=system_instruction, user_query="\n".join(lines))


# ── Flesh out ─────────────────────────────────────────────────────────────────


def _flesh_out_prompt(narrative: str, params: Optional[EncounterRequestParams]) -> PromptBundle:
    system_instruction = (
        "You are an expert Dungeon Master continuing an encounter you already designed. "
        "The existing encounter text is provided by the user. Do not repeat, rewrite or "
        "summarize it. Write only new material that will be appended after it.\n\n"
        "Produce exactly three markdown sections, in this order:\n"
        "## Tactics\n"
        "How the monsters fight round by round: opening moves, focus targets, use of "
        "terrain, and when they retreat or surrender.\n"
        "## Environment\n"
        "Interactive terrain features, hazards, cover and lighting, each with a short "
        "mechanical effect (DC, damage or condition).\n"
        "## Treasure\n"
        "Loot carried or guarded by the monsters, appropriate to the encounter's challenge, "
        "with at least one item tied to the narrative hook.\n\n"
        "The response must be in plain markdown text."
    )

    context = ""
    if params is not None:
        context = (
            f"Party: {params.party_size} adventurers, average level {params.average_level}. "
            f"Difficulty: {params.difficulty.value}. Terrain: {params.terrain}.\n\n"
        )

    user_query = (
        f"{context}"
        "Existing encounter:\n"
        "<<<\n"
        f"{narrative.strip()}\n"
        ">>>\n\n"
        "Write the Tactics, Environment and Treasure sections for this encounter."
    )
    return PromptBundle(system_instruction=system_instruction, user_query=user_query)


# ── Narrate ───────────────────────────────────────────────────────────────────


def _narrate_prompt(narrative: str, style: VoiceStyle) -> PromptBundle:
    direction = _STYLE_DIRECTIONS[style]
    opening = first_paragraph(narrative)
    if not opening:
        raise ValueError("Narrative has no opening paragraph to narrate")
    return PromptBundle(system_instruction=direction, user_query=f"{direction}:\n\n{opening}")


# ── Dispatcher ────────────────────────────────────────────────────────────────


def build_prompt(
    params: Optional[EncounterRequestParams],
    kind: RequestKind,
    *,
    narrative: Optional[str] = None,
    voice_style: Optional[VoiceStyle] = None,
) -> PromptBundle:
    """Render the system instruction and user query for ``kind``.

    Raises:
        ValueError: A prerequisite for ``kind`` is missing
    """
    kind = RequestKind(kind)

    if kind is RequestKind.GENERATE:
        if params is None:
            raise ValueError("generate prompt requires request params")
        return _generate_prompt(params)

    if not narrative or not narrative.strip():
        raise ValueError(f"{kind.value} prompt requires an existing narrative")

    if kind is RequestKind.FLESH_OUT:
        return _flesh_out_prompt(narrative, params)

    if voice_style is None:
        raise ValueError("narrate prompt requires a voice style")
    return _narrate_prompt(narrative, VoiceStyle(voice_style))
