"""Backend turn exchange: transcription, chat turns and feedback."""

from .base import (
    AudioArtifact, BackendError, FeedbackValidationError, TurnExchange,
    MIN_FEEDBACK_MESSAGES
)
from .http import HttpTurnExchange
from .vertex import VertexTurnExchange

__all__ = [
    "AudioArtifact", "BackendError", "FeedbackValidationError", "TurnExchange",
    "MIN_FEEDBACK_MESSAGES", "HttpTurnExchange", "VertexTurnExchange"
]
