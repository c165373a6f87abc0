"""
Client-side contract for the three remote interview calls.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

from ...interview.models import Message, SessionConfig
from ...interview.schemas import FeedbackReport

logger = logging.getLogger("backend")

MIN_FEEDBACK_MESSAGES = 2


class BackendError(RuntimeError):
    """A remote call failed or returned something unusable."""


class FeedbackValidationError(ValueError):
    """Feedback was requested for a history too short to assess."""


@dataclass(frozen=True)
class AudioArtifact:
    """One finished recording, ready for transcription."""
    wav_bytes: bytes
    sample_rate: int
    channels: int = 1
    mime_type: str = "audio/wav"
    filename: str = "input.wav"


class TurnExchange(ABC):
    """
    One-shot request/response calls to the interview backend.

    The client owns the conversation: no call relies on server-side session
    state, so every call carries the history and the session config it needs.
    """

    @abstractmethod
    async def transcribe(self, audio: AudioArtifact) -> str:
        """Return the best-effort transcript of one recording (may be empty)."""

    @abstractmethod
    async def chat_turn(self, message: str, history: Sequence[Message],
                        context: SessionConfig) -> str:
        """
        Return the interviewer's reply to `message`.

        `history` is the dialogue *before* this utterance. The service adds
        `message` to the context itself, so it must not already be in `history`.
        """

    async def generate_feedback(self, history: Sequence[Message],
                                context: SessionConfig) -> FeedbackReport:
        """
        Score the whole interview.

        Raises:
            FeedbackValidationError: fewer than two messages, no request is made
            BackendError: remote failure or malformed report
        """
        if len(history) < MIN_FEEDBACK_MESSAGES:
            raise FeedbackValidationError(
                f"Feedback needs at least {MIN_FEEDBACK_MESSAGES} messages, got {len(history)}"
            )
        return await self._generate_feedback(tuple(history), context)

    @abstractmethod
    async def _generate_feedback(self, history: Sequence[Message],
                                 context: SessionConfig) -> FeedbackReport:
        """Backend-specific feedback call; history length is already validated."""
