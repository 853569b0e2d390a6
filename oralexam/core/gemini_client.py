"""
Gemini Client for OralExam Sim

Handles every call to the Gemini API:
- Exam paper generation (structured JSON)
- Picture-talk illustration
- Speech synthesis for prompts and passages
- Scoring of recorded responses

Talks to the REST endpoint `models/{model}:generateContent` over httpx.
"""

import base64
import io
import json
import logging
import wave
from typing import Any

import httpx
from pydantic import ValidationError

from oralexam.config.settings import get_settings
from oralexam.errors import PlanGenerationError, ScoringError
from oralexam.models.paper import ExamPaper
from oralexam.models.plan import SectionKind
from oralexam.models.response import AudioArtifact, ScoreRecord
from oralexam.prompts.generator import GeneratorPrompts
from oralexam.prompts.scorer import ScorerPrompts

logger = logging.getLogger(__name__)

# Gemini TTS returns raw 16-bit mono PCM
PCM_SAMPLE_WIDTH = 2
PCM_CHANNELS = 1

NO_AUDIO_FEEDBACK = "未检测到有效录音，本题不得分。"


def pcm_to_wav(pcm: bytes, sample_rate: int) -> bytes:
    """Wrap raw PCM in a WAV container so browsers can play it."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(PCM_CHANNELS)
        wav.setsampwidth(PCM_SAMPLE_WIDTH)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm)
    return buffer.getvalue()


def _clamp(value: Any, low: float, high: float | None = None) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        number = low
    number = max(low, number)
    if high is not None:
        number = min(high, number)
    return number


class GeminiClient:
    """
    Central Gemini API component.

    Model selection (all configurable):
    - paper_model: paper generation
    - image_model: comic illustration
    - tts_gemini_model: speech synthesis
    - scoring_model: response scoring (audio in, JSON out)
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        """Initialize the client from settings; pass `client` to override transport."""
        self.settings = get_settings()
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.gemini_base_url.rstrip("/"),
            headers={
                "x-goog-api-key": self.settings.gemini_api_key,
                "Content-Type": "application/json",
            },
            timeout=self.settings.request_timeout_seconds,
        )

        self.generator_prompts = GeneratorPrompts()
        self.scorer_prompts = ScorerPrompts()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    # =========================================================================
    # CORE API CALL
    # =========================================================================

    async def _generate_content(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Call generateContent on a model.

        Raises:
            httpx.HTTPError: On transport errors or non-2xx responses
        """
        response = await self.client.post(f"/models/{model}:generateContent", json=payload)
        response.raise_for_status()
        return response.json()

    def _parts(self, result: dict[str, Any]) -> list[dict[str, Any]]:
        candidates = result.get("candidates") or [{}]
        return (candidates[0].get("content") or {}).get("parts") or []

    def _extract_text(self, result: dict[str, Any]) -> str:
        """Concatenate the text parts of the first candidate."""
        return "".join(part.get("text", "") for part in self._parts(result))

    def _extract_inline_data(self, result: dict[str, Any]) -> dict[str, Any] | None:
        for part in self._parts(result):
            if "inlineData" in part:
                return part["inlineData"]
        return None

    def _parse_json(self, text: str) -> dict[str, Any]:
        """Parse a JSON object, tolerating surrounding prose or code fences."""
        json_start = text.find("{")
        json_end = text.rfind("}") + 1
        if json_start < 0 or json_end <= json_start:
            raise ValueError("No JSON object in model response")
        return json.loads(text[json_start:json_end])

    # =========================================================================
    # CONTENT GENERATION
    # =========================================================================

    async def generate_paper(self) -> ExamPaper:
        """
        Generate a complete exam paper.

        Raises:
            PlanGenerationError: If the request fails or the JSON is unusable
        """
        payload = {
            "systemInstruction": {"parts": [{"text": self.generator_prompts.SYSTEM_CONTEXT}]},
            "contents": [{
                "role": "user",
                "parts": [{"text": self.generator_prompts.generate_paper_prompt()}],
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": self.generator_prompts.paper_schema(),
            },
        }

        try:
            result = await self._generate_content(self.settings.paper_model, payload)
            data = self._parse_json(self._extract_text(result))
            paper = ExamPaper.model_validate(data)
        except httpx.HTTPError as e:
            logger.error(f"Paper generation request failed: {e}")
            raise PlanGenerationError(f"Paper generation request failed: {e}") from e
        except (ValueError, ValidationError) as e:
            logger.error(f"Paper generation returned unusable content: {e}")
            raise PlanGenerationError(f"Generated paper is invalid: {e}") from e

        logger.info(f"Generated paper {paper.id}")
        return paper

    async def generate_image(self, description: str) -> str | None:
        """
        Generate the picture-talk comic.

        Returns:
            A data URL, or None when no image could be produced
        """
        payload = {
            "contents": [{
                "role": "user",
                "parts": [{"text": self.generator_prompts.generate_image_prompt(description)}],
            }],
        }

        try:
            result = await self._generate_content(self.settings.image_model, payload)
        except httpx.HTTPError as e:
            logger.warning(f"Image generation failed, continuing without image: {e}")
            return None

        inline = self._extract_inline_data(result)
        if not inline:
            logger.warning("Image generation returned no image")
            return None
        return f"data:{inline.get('mimeType', 'image/png')};base64,{inline['data']}"

    # =========================================================================
    # SPEECH SYNTHESIS
    # =========================================================================

    async def synthesize_speech(self, text: str, voice: str) -> bytes:
        """
        Synthesize speech with Gemini TTS.

        Returns:
            WAV audio bytes

        Raises:
            httpx.HTTPError: On request failure
            ValueError: If the response carries no audio
        """
        payload = {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": voice}},
                },
            },
        }

        result = await self._generate_content(self.settings.tts_gemini_model, payload)
        inline = self._extract_inline_data(result)
        if not inline or not inline.get("data"):
            raise ValueError("TTS response contained no audio")

        pcm = base64.b64decode(inline["data"])
        return pcm_to_wav(pcm, self.settings.tts_rate)

    # =========================================================================
    # SCORING
    # =========================================================================

    async def score(
        self,
        artifact: AudioArtifact,
        reference_text: str,
        section_tag: SectionKind,
        context_text: str | None = None,
    ) -> ScoreRecord:
        """
        Score one recorded response.

        An empty recording is judged here as a zero score without a model
        call.

        Raises:
            ScoringError: If the request fails or the result can't be parsed
        """
        if artifact.is_empty:
            logger.info(f"Empty recording for {section_tag.value}, scoring as zero")
            return ScoreRecord(
                section_tag=section_tag,
                score=0,
                accuracy=0,
                pronunciation=0,
                fluency=0,
                feedback=NO_AUDIO_FEEDBACK,
            )

        prompt = self.scorer_prompts.generate_scoring_prompt(
            section_tag=section_tag,
            reference_text=reference_text,
            context_text=context_text,
        )
        payload = {
            "contents": [{
                "role": "user",
                "parts": [
                    {"inlineData": {
                        "mimeType": artifact.mime_type or "audio/webm",
                        "data": base64.b64encode(artifact.data).decode("utf-8"),
                    }},
                    {"text": prompt},
                ],
            }],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": self.scorer_prompts.score_schema(),
            },
        }

        try:
            result = await self._generate_content(self.settings.scoring_model, payload)
            data = self._parse_json(self._extract_text(result))
        except httpx.HTTPError as e:
            raise ScoringError(f"Scoring request failed: {e}") from e
        except ValueError as e:
            raise ScoringError(f"Failed to parse scoring response: {e}") from e

        return self._parse_score(data, section_tag)

    def _parse_score(self, data: dict[str, Any], section_tag: SectionKind) -> ScoreRecord:
        """Build a ScoreRecord, clamping ratings to 0-10."""
        if "score" not in data:
            raise ScoringError("Scoring response has no score")

        score = ScoreRecord(
            section_tag=section_tag,
            score=_clamp(data.get("score"), 0),
            accuracy=_clamp(data.get("accuracy"), 0, 10),
            pronunciation=_clamp(data.get("pronunciation"), 0, 10),
            fluency=_clamp(data.get("fluency"), 0, 10),
            feedback=str(data.get("feedback") or ""),
            transcription=str(data.get("transcription") or ""),
        )
        logger.info(f"Scored {section_tag.value}: {score.score}")
        return score
