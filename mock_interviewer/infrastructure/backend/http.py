"""
REST client for the interview server.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

import requests

from .base import AudioArtifact, BackendError, TurnExchange
from ...config import API_BASE_URL, CHAT_PATH, FEEDBACK_PATH, HTTP_TIMEOUT, TRANSCRIBE_PATH
from ...interview.models import Message, SessionConfig
from ...interview.schemas import FeedbackReport, parse_feedback_report

logger = logging.getLogger("backend_http")


class HttpTurnExchange(TurnExchange):
    """Talks to the `/api/chat` routes of the interview server."""

    def __init__(self,
                 base_url: str = API_BASE_URL,
                 timeout: int = HTTP_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _post(self, path: str, **kwargs) -> Dict[str, Any]:
        """POST and decode the JSON body, mapping every failure to BackendError."""
        url = self._url(path)
        try:
            resp = self.session.post(url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise BackendError(f"Request to {url} failed: {e}") from e

        if resp.status_code >= 400:
            raise BackendError(f"Interview server error {resp.status_code}: {resp.text}")

        try:
            body = resp.json()
        except ValueError as e:
            raise BackendError(f"Interview server returned non-JSON body: {resp.text[:200]}") from e
        if not isinstance(body, dict):
            raise BackendError(f"Interview server returned unexpected payload: {body!r}")
        return body

    def _transcribe_sync(self, audio: AudioArtifact) -> str:
        logger.debug("Transcribing audio... %d bytes", len(audio.wav_bytes))
        body = self._post(
            TRANSCRIBE_PATH,
            files={"audio": (audio.filename, audio.wav_bytes, audio.mime_type)},
        )
        text = body.get("text")
        if text is None:
            return ""
        if not isinstance(text, str):
            raise BackendError(f"Transcription text is not a string: {text!r}")
        return text

    def _chat_turn_sync(self, message: str, history: Sequence[Message],
                        context: SessionConfig) -> str:
        payload = {
            "message": message,
            "history": [m.to_dict() for m in history],
            "context": context.to_context(),
        }
        logger.info("Sending chat turn with %d prior messages", len(history))
        body = self._post(CHAT_PATH, json=payload)
        reply = body.get("response")
        if not isinstance(reply, str) or not reply.strip():
            raise BackendError(f"Chat response missing reply text: {body!r}")
        return reply

    def _feedback_sync(self, history: Sequence[Message], context: SessionConfig) -> FeedbackReport:
        payload = {
            "history": [m.to_dict() for m in history],
            "context": context.to_context(),
        }
        body = self._post(FEEDBACK_PATH, json=payload)
        try:
            return parse_feedback_report(body)
        except ValueError as e:
            raise BackendError(str(e)) from e

    async def transcribe(self, audio: AudioArtifact) -> str:
        return await asyncio.to_thread(self._transcribe_sync, audio)

    async def chat_turn(self, message: str, history: Sequence[Message],
                        context: SessionConfig) -> str:
        return await asyncio.to_thread(self._chat_turn_sync, message, tuple(history), context)

    async def _generate_feedback(self, history: Sequence[Message],
                                 context: SessionConfig) -> FeedbackReport:
        return await asyncio.to_thread(self._feedback_sync, history, context)
