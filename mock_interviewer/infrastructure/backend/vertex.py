"""
Turn exchange that calls Gemini on Vertex AI and Google Cloud Speech directly.
"""
import asyncio
import logging
from typing import Any, Dict, List, Sequence

from .base import AudioArtifact, BackendError, TurnExchange
from ..audio.speech.stt import recognize_google_sync, wav_to_pcm16
from ..llm import VertexRestClient
from ...config import CHAT_MAX_OUTPUT_TOKENS, CHAT_TEMPERATURE, LANGUAGE_CODE
from ...interview.models import Message, Role, SessionConfig
from ...interview.prompts import FALLBACK_REPLY, InterviewPrompts
from ...interview.schemas import FeedbackReport, parse_feedback_report

logger = logging.getLogger("backend_vertex")

# Vertex names the assistant side of a conversation "model"
_VERTEX_ROLES = {Role.USER: "user", Role.ASSISTANT: "model"}


def build_contents(message: str, history: Sequence[Message]) -> List[Dict[str, Any]]:
    """Prior history followed by the new utterance, in Vertex `contents` form."""
    contents = [
        {"role": _VERTEX_ROLES[m.role], "parts": [{"text": m.content}]}
        for m in history
    ]
    contents.append({"role": "user", "parts": [{"text": message}]})
    return contents


class VertexTurnExchange(TurnExchange):
    """Runs the interviewer without an intermediate server."""

    def __init__(self, llm_client: VertexRestClient, language_code: str = LANGUAGE_CODE):
        self.llm_client = llm_client
        self.language_code = language_code

    def _transcribe_sync(self, audio: AudioArtifact) -> str:
        try:
            pcm, sample_rate = wav_to_pcm16(audio.wav_bytes)
        except Exception as e:
            raise BackendError(f"Unreadable recording: {e}") from e
        try:
            return recognize_google_sync(pcm, sr_hz=sample_rate, language=self.language_code)
        except Exception as e:
            logger.error("Speech recognition failed: %s", e)
            raise BackendError(f"Speech recognition failed: {e}") from e

    def _chat_turn_sync(self, message: str, history: Sequence[Message],
                        context: SessionConfig) -> str:
        try:
            reply = self.llm_client.generate(
                build_contents(message, history),
                system_instruction=InterviewPrompts.system_instruction(context),
                temperature=CHAT_TEMPERATURE,
                max_output_tokens=CHAT_MAX_OUTPUT_TOKENS,
            )
        except Exception as e:
            logger.error("Chat turn failed: %s", e)
            raise BackendError(f"Chat turn failed: {e}") from e
        return reply.strip() or FALLBACK_REPLY

    def _feedback_sync(self, history: Sequence[Message], context: SessionConfig) -> FeedbackReport:
        prompt = InterviewPrompts.feedback_prompt(history, context)
        try:
            payload = self.llm_client.generate_json(prompt)
            return parse_feedback_report(payload)
        except Exception as e:
            logger.error("Feedback generation failed: %s", e)
            raise BackendError(f"Feedback generation failed: {e}") from e

    async def transcribe(self, audio: AudioArtifact) -> str:
        return await asyncio.to_thread(self._transcribe_sync, audio)

    async def chat_turn(self, message: str, history: Sequence[Message],
                        context: SessionConfig) -> str:
        return await asyncio.to_thread(self._chat_turn_sync, message, tuple(history), context)

    async def _generate_feedback(self, history: Sequence[Message],
                                 context: SessionConfig) -> FeedbackReport:
        return await asyncio.to_thread(self._feedback_sync, history, context)
