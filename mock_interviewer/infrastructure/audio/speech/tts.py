"""
Text-to-speech output using Google Cloud TTS and sounddevice playback.
"""
import asyncio
import logging
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from ..processing import decode_wav, stereo_to_mono
from ....config import LANGUAGE_CODE, PREFERRED_VOICE_NAMES, SPEAKER_SAMPLE_RATE
from ....utils import with_suppressed_audio_warnings

logger = logging.getLogger("speech_tts")


class Voice(NamedTuple):
    name: str
    language_code: str


def select_voice(voices: Sequence[Voice],
                 hint: Optional[str] = None,
                 preferred: Sequence[str] = PREFERRED_VOICE_NAMES) -> Optional[Voice]:
    """
    Pick the voice for an utterance.

    Priority: the session's own voice, then a known good default, then the first
    voice listed. None means no voices are known yet and the engine default is used.
    """
    if not voices:
        return None
    by_name = {v.name: v for v in voices}
    if hint and hint in by_name:
        return by_name[hint]
    for name in preferred:
        if name in by_name:
            return by_name[name]
    return voices[0]


class GoogleSynthesizer:
    """Google Cloud Text-to-Speech, returning float samples ready to play."""

    def __init__(self, language_code: str = LANGUAGE_CODE, sample_rate: int = SPEAKER_SAMPLE_RATE):
        self.language_code = language_code
        self.sample_rate = sample_rate
        self._client = None

    @property
    def client(self):
        if self._client is None:
            from google.cloud import texttospeech
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    def list_voices(self) -> List[Voice]:
        response = self.client.list_voices(language_code=self.language_code)
        return [Voice(v.name, v.language_codes[0] if v.language_codes else self.language_code)
                for v in response.voices]

    def synthesize(self, text: str, voice: Optional[Voice] = None) -> Tuple[np.ndarray, int]:
        from google.cloud import texttospeech

        if voice is not None:
            voice_params = texttospeech.VoiceSelectionParams(language_code=voice.language_code, name=voice.name)
        else:
            voice_params = texttospeech.VoiceSelectionParams(language_code=self.language_code)

        response = self.client.synthesize_speech(
            input=texttospeech.SynthesisInput(text=text),
            voice=voice_params,
            audio_config=texttospeech.AudioConfig(
                audio_encoding=texttospeech.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sample_rate,
            ),
        )
        samples, sr = decode_wav(response.audio_content)
        return stereo_to_mono(samples), sr


class SoundDevicePlayer:
    """Blocking playback through the default output device."""

    @with_suppressed_audio_warnings
    def play(self, samples: np.ndarray, sample_rate: int) -> None:
        import sounddevice as sd
        sd.play(samples, samplerate=sample_rate)
        sd.wait()

    def stop(self) -> None:
        import sounddevice as sd
        sd.stop()


class VoiceCatalog:
    """
    Process-wide cache of the voices the TTS engine offers.

    Cold until `warm()` completes; cleared explicitly with `reset()` when a
    session ends.
    """

    _shared: Optional["VoiceCatalog"] = None

    def __init__(self, lister: Callable[[], List[Voice]]):
        self._lister = lister
        self._voices: Optional[List[Voice]] = None

    @classmethod
    def shared(cls, lister: Callable[[], List[Voice]]) -> "VoiceCatalog":
        if cls._shared is None:
            cls._shared = cls(lister)
        return cls._shared

    @classmethod
    def reset(cls) -> None:
        cls._shared = None

    @property
    def voices(self) -> List[Voice]:
        return list(self._voices or [])

    @property
    def is_warm(self) -> bool:
        return self._voices is not None

    async def warm(self) -> None:
        if self._voices is not None:
            return
        try:
            voices = await asyncio.to_thread(self._lister)
        except Exception as e:
            logger.warning(f"Could not list TTS voices, using engine default: {e}")
            return
        self._voices = list(voices)
        logger.info(f"Loaded {len(self._voices)} TTS voices")


class SpeechOutput:
    """
    One utterance at a time, last write wins.

    `speak()` returns immediately; `on_started` fires when audio begins and
    `on_finished` when it completes or fails. A cancelled utterance reports
    neither.
    """

    def __init__(self,
                 synthesizer=None,
                 player=None,
                 catalog: Optional[VoiceCatalog] = None,
                 enabled: bool = True):
        self.synthesizer = synthesizer or GoogleSynthesizer()
        self.player = player or SoundDevicePlayer()
        self.catalog = catalog or VoiceCatalog.shared(self.synthesizer.list_voices)
        self.enabled = enabled
        self._task: Optional[asyncio.Task] = None
        self._speaking = False
        self._on_started: Optional[Callable[[], None]] = None
        self._on_finished: Optional[Callable[[], None]] = None

    def bind(self, on_started: Callable[[], None], on_finished: Callable[[], None]) -> None:
        self._on_started = on_started
        self._on_finished = on_finished

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    def warm_up(self) -> None:
        """Start loading the voice list in the background."""
        if self.enabled and not self.catalog.is_warm:
            asyncio.get_running_loop().create_task(self.catalog.warm())

    def speak(self, text: str, voice_hint: Optional[str] = None) -> None:
        self.cancel()
        self._speaking = True
        self._task = asyncio.get_running_loop().create_task(self._run(text, voice_hint))

    async def _run(self, text: str, voice_hint: Optional[str]) -> None:
        try:
            if self.enabled and text.strip():
                voice = select_voice(self.catalog.voices, voice_hint)
                logger.debug("Speaking with voice %s", voice.name if voice else "(engine default)")
                samples, sr = await asyncio.to_thread(self.synthesizer.synthesize, text, voice)
                self._emit(self._on_started)
                await asyncio.to_thread(self.player.play, samples, sr)
            else:
                self._emit(self._on_started)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"TTS failed: {e}")

        self._speaking = False
        self._task = None
        self._emit(self._on_finished)

    def cancel(self) -> None:
        """Stop the current utterance, if any. Safe to call at any time."""
        task, self._task = self._task, None
        was_speaking = self._speaking
        self._speaking = False
        if task is not None and not task.done():
            task.cancel()
        if was_speaking and self.enabled:
            try:
                self.player.stop()
            except Exception as e:
                logger.warning(f"Error stopping playback: {e}")

    async def wait_idle(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _emit(self, handler: Optional[Callable[[], None]]) -> None:
        if handler is not None:
            handler()
