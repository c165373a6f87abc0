"""Speech-to-text and text-to-speech modules."""

from .tts import (
    SpeechOutput, Voice, VoiceCatalog, GoogleSynthesizer, SoundDevicePlayer, select_voice
)
from .stt import recognize_google_sync, wav_to_pcm16

__all__ = [
    "SpeechOutput", "Voice", "VoiceCatalog", "GoogleSynthesizer", "SoundDevicePlayer",
    "select_voice", "recognize_google_sync", "wav_to_pcm16"
]
