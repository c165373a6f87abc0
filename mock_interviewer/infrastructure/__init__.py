"""Infrastructure components for the mock interview system.

This module contains the adapters the session controller drives: microphone
capture, speech output, and the backend turn exchange.
"""

from .audio import (
    AudioCapture, DiscreteRecorder, ContinuousRecognizer, SpeechOutput
)
from .backend import (
    TurnExchange, HttpTurnExchange, VertexTurnExchange, BackendError, FeedbackValidationError
)
from .llm import VertexRestClient

__all__ = [
    "AudioCapture", "DiscreteRecorder", "ContinuousRecognizer", "SpeechOutput",
    "TurnExchange", "HttpTurnExchange", "VertexTurnExchange",
    "BackendError", "FeedbackValidationError",
    "VertexRestClient"
]
