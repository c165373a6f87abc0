"""
Audio capture, processing and speech services.

- capture: discrete recording and continuous recognition strategies
- processing: format conversions and normalization
- speech: text-to-speech output and speech-to-text recognition
"""

from .capture import (
    AudioCapture, CaptureError, CaptureErrorKind, ListeningIntent,
    DiscreteRecorder, ContinuousRecognizer, RecognitionEngine
)
from .speech import SpeechOutput, VoiceCatalog, select_voice, recognize_google_sync

__all__ = [
    "AudioCapture", "CaptureError", "CaptureErrorKind", "ListeningIntent",
    "DiscreteRecorder", "ContinuousRecognizer", "RecognitionEngine",
    "SpeechOutput", "VoiceCatalog", "select_voice", "recognize_google_sync"
]
