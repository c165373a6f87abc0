"""
Speech-to-text functionality using Google Cloud Speech.
"""
import io
import logging
import wave

from google.cloud import speech
from ....config import LANGUAGE_CODE

logger = logging.getLogger("speech_stt")


def wav_to_pcm16(wav_bytes: bytes):
    """Return (pcm16 frames, sample rate) from a WAV container."""
    with wave.open(io.BytesIO(wav_bytes), "rb") as wf:
        if wf.getsampwidth() != 2:
            raise ValueError(f"Expected 16-bit WAV, got {wf.getsampwidth() * 8}-bit")
        return wf.readframes(wf.getnframes()), wf.getframerate()


def recognize_google_sync(pcm16_bytes: bytes,
                          sr_hz: int = 16000,
                          language: str = LANGUAGE_CODE) -> str:
    """
    Synchronous Google Cloud Speech-to-Text recognition.
    Returns transcribed text or empty string if no speech detected.
    API failures propagate to the caller.
    """
    client = speech.SpeechClient()
    audio = speech.RecognitionAudio(content=pcm16_bytes)
    config = speech.RecognitionConfig(
        encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
        sample_rate_hertz=sr_hz,
        language_code=language,
        enable_automatic_punctuation=True,
    )

    resp = client.recognize(config=config, audio=audio)
    texts = [r.alternatives[0].transcript for r in resp.results if r.alternatives]
    text = " ".join(texts).strip()
    logger.info("Speech recognition result: %s", text or "(empty)")
    return text
