"""Client for the Generative Language ``generateContent`` endpoint."""

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from battle_master.llm.base import (
    Citation,
    MalformedResponse,
    SpeechResult,
    TextResult,
)
from battle_master.llm.http import ResilientCaller
from battle_master.observability import get_observability_logger

logger = logging.getLogger(__name__)


# ── Response schema ───────────────────────────────────────────────────────────


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class InlineData(_Schema):
    data: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")


class Part(_Schema):
    text: Optional[str] = None
    inline_data: Optional[InlineData] = Field(default=None, alias="inlineData")


class Content(_Schema):
    parts: list[Part] = Field(default_factory=list)


class WebSource(_Schema):
    uri: Optional[str] = None
    title: Optional[str] = None


class GroundingAttribution(_Schema):
    web: Optional[WebSource] = None


class GroundingMetadata(_Schema):
    grounding_attributions: list[GroundingAttribution] = Field(
        default_factory=list, alias="groundingAttributions"
    )


class Candidate(_Schema):
    content: Optional[Content] = None
    grounding_metadata: Optional[GroundingMetadata] = Field(
        default=None, alias="groundingMetadata"
    )

    @property
    def first_part(self) -> Optional[Part]:
        if self.content and self.content.parts:
            return self.content.parts[0]
        return None


class GenerateContentResponse(_Schema):
    candidates: list[Candidate] = Field(default_factory=list)

    @property
    def first_candidate(self) -> Optional[Candidate]:
        return self.candidates[0] if self.candidates else None


def extract_citations(candidate: Candidate) -> list[Citation]:
    """Collect grounding attributions that carry both a uri and a title.

    Order is preserved and duplicates are kept.
    """
    metadata = candidate.grounding_metadata
    if metadata is None:
        return []
    citations = []
    for attribution in metadata.grounding_attributions:
        web = attribution.web
        if web and web.uri and web.title:
            citations.append(Citation(uri=web.uri, title=web.title))
    return citations


def _parse(payload: dict[str, Any]) -> GenerateContentResponse:
    try:
        return GenerateContentResponse.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Response doesn't match generateContent schema: {e}")
        raise MalformedResponse(f"Response doesn't match schema: {e}") from e


# ── Client ────────────────────────────────────────────────────────────────────


class GeminiClient:
    """Build generateContent requests and parse their responses."""

    def __init__(
        self,
        caller: ResilientCaller,
        *,
        api_key: str,
        base_url: str,
        text_model: str,
        tts_model: str,
    ):
        self._caller = caller
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self.text_model = text_model
        self.tts_model = tts_model

    def endpoint(self, model: str) -> str:
        """URL of ``generateContent`` for ``model``."""
        return f"{self._base_url}/models/{model}:generateContent?key={self._api_key}"

    @staticmethod
    def text_request_body(
        system_instruction: str,
        user_query: str,
        *,
        temperature: float,
        grounded: bool,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "contents": [{"parts": [{"text": user_query}]}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "generationConfig": {"temperature": temperature},
        }
        if grounded:
            body["tools"] = [{"google_search": {}}]
        return body

    @staticmethod
    def speech_request_body(text: str, voice_name: str) -> dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice_name}},
                },
            },
        }

    async def generate_text(
        self,
        system_instruction: str,
        user_query: str,
        *,
        temperature: float,
        grounded: bool = False,
        request_kind: str = "generate",
        session_id: Optional[str] = None,
    ) -> TextResult:
        """Call the text model and return the first candidate's text.

        Raises:
            CallError: Transport or HTTP failure from the caller
            MalformedResponse: No candidate text in the response
        """
        obs = get_observability_logger()
        body = self.text_request_body(
            system_instruction, user_query, temperature=temperature, grounded=grounded
        )

        with obs.llm_call(
            model=self.text_model,
            request_kind=request_kind,
            system_instruction=system_instruction,
            user_query=user_query,
            temperature=temperature,
            grounded=grounded,
            session_id=session_id,
        ) as event:
            payload = await self._caller.call(self.endpoint(self.text_model), body)
            response = _parse(payload)

            candidate = response.first_candidate
            part = candidate.first_part if candidate else None
            if candidate is None or part is None or not part.text:
                logger.error(f"API Error Response: {payload}")
                raise MalformedResponse("Response contained no candidate text")

            citations = extract_citations(candidate)
            event.response_content = part.text
            event.citations_count = len(citations)

        return TextResult(text=part.text, model=self.text_model, citations=citations)

    async def synthesize_speech(
        self, text: str, voice_name: str, *, session_id: Optional[str] = None
    ) -> SpeechResult:
        """Request AUDIO-only output from the TTS model.

        Raises:
            CallError: Transport or HTTP failure from the caller
            MalformedResponse: No inline audio data in the response
        """
        obs = get_observability_logger()
        body = self.speech_request_body(text, voice_name)

        with obs.llm_call(
            model=self.tts_model,
            request_kind="narrate",
            user_query=text,
            session_id=session_id,
        ) as event:
            payload = await self._caller.call(self.endpoint(self.tts_model), body)
            response = _parse(payload)

            candidate = response.first_candidate
            part = candidate.first_part if candidate else None
            inline = part.inline_data if part else None
            if inline is None or not inline.data:
                logger.error(f"Speech response carried no audio: {payload}")
                raise MalformedResponse("Response contained no audio data")

            event.metadata["voice_name"] = voice_name
            event.audio_bytes = len(inline.data)

        return SpeechResult(
            data=inline.data,
            mime_type=inline.mime_type or "",
            voice_name=voice_name,
            model=self.tts_model,
        )

    async def aclose(self) -> None:
        """Release the underlying HTTP transport."""
        await self._caller.aclose()
