"""Microphone capture strategies."""

from .base import AudioCapture, CaptureError, CaptureErrorKind, ListeningIntent, open_error_kind
from .recorder import DiscreteRecorder, SoundDeviceStreamFactory
from .recognizer import ContinuousRecognizer, RecognitionEngine


# Lazy import for the Google engine (avoid loading gRPC unless continuous mode is used)
def __getattr__(name):
    if name == "GoogleStreamingEngine":
        from .streaming import GoogleStreamingEngine
        return GoogleStreamingEngine
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "AudioCapture", "CaptureError", "CaptureErrorKind", "ListeningIntent", "open_error_kind",
    "DiscreteRecorder", "SoundDeviceStreamFactory",
    "ContinuousRecognizer", "RecognitionEngine", "GoogleStreamingEngine",
]
