"""
Discrete capture: record until told to stop, then transcribe the whole clip.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

import numpy as np

from .base import AudioCapture, CaptureErrorKind, open_error_kind
from ..processing import encode_wav, prepare_for_stt
from ...backend.base import AudioArtifact
from ....config import (
    CHANNELS, FRAME_MS, REPLY_TIMEOUT_SECONDS, SAMPLE_RATE_CAPTURE, SAMPLE_RATE_TARGET, TARGET_RMS
)
from ....utils import with_suppressed_audio_warnings

logger = logging.getLogger("audio_capture")

Transcriber = Callable[[AudioArtifact], Awaitable[str]]
ChunkCallback = Callable[[np.ndarray], None]
StreamFactory = Callable[[ChunkCallback], Any]


class SoundDeviceStreamFactory:
    """Opens a sounddevice input stream that hands every block to a callback."""

    def __init__(self,
                 input_device: Optional[int] = None,
                 num_channels: int = CHANNELS,
                 sr_capture: int = SAMPLE_RATE_CAPTURE,
                 frame_ms: int = FRAME_MS):
        self.input_device = input_device
        self.num_channels = num_channels
        self.sr_capture = sr_capture
        self.frame_size = int(sr_capture * frame_ms / 1000)

    @with_suppressed_audio_warnings
    def __call__(self, on_chunk: ChunkCallback):
        import sounddevice as sd

        def _callback(indata, frames, time_info, status):
            if status:
                logger.debug("sounddevice status: %s", status)
            # PortAudio reuses the buffer after the callback returns
            on_chunk(indata.copy())

        logger.info(f"Opening microphone: device={self.input_device} channels={self.num_channels} "
                    f"rate={self.sr_capture} frame={self.frame_size}")
        return sd.InputStream(
            device=self.input_device,
            channels=self.num_channels,
            samplerate=self.sr_capture,
            blocksize=self.frame_size,
            dtype="float32",
            callback=_callback,
        )


class DiscreteRecorder(AudioCapture):
    """
    Push-to-talk recording.

    `begin()` opens the microphone and buffers blocks; `end()` releases it,
    assembles one WAV artifact and, when it is not empty, transcribes it in
    the background. A blank transcript is reported as NO_SPEECH.
    """

    def __init__(self,
                 transcribe: Transcriber,
                 stream_factory: Optional[StreamFactory] = None,
                 sr_capture: int = SAMPLE_RATE_CAPTURE,
                 sr_target: int = SAMPLE_RATE_TARGET,
                 target_rms: float = TARGET_RMS,
                 timeout: float = REPLY_TIMEOUT_SECONDS):
        super().__init__()
        self._transcribe = transcribe
        self._stream_factory = stream_factory or SoundDeviceStreamFactory(sr_capture=sr_capture)
        self.sr_capture = sr_capture
        self.sr_target = sr_target
        self.target_rms = target_rms
        self.timeout = timeout
        self._stream = None
        self._chunks: List[np.ndarray] = []
        self._transcription: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def is_active(self) -> bool:
        return self._stream is not None

    def _on_chunk(self, chunk: np.ndarray) -> None:
        self._chunks.append(chunk)

    @staticmethod
    def _close(stream) -> None:
        try:
            stream.stop()
            stream.close()
        except Exception as e:
            logger.warning(f"Error releasing microphone: {e}")

    def _release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        self._close(stream)
        logger.info("Microphone released")

    async def begin(self) -> bool:
        # Only one stream may hold the device
        self._release()
        self._chunks = []
        stream = None
        try:
            stream = await asyncio.to_thread(self._stream_factory, self._on_chunk)
            stream.start()
        except Exception as e:
            logger.error("Could not access microphone: %s", e)
            if stream is not None:
                self._close(stream)
            self.intent.clear()
            self._emit_error(open_error_kind(e), str(e))
            return False

        if not self.intent.asserted:
            # The user let go while the device was opening
            self._close(stream)
            return False

        if self._stream is not None:
            # An earlier begin() finished opening while this one was pending
            self._release()
            self._chunks = []
        self._stream = stream
        logger.info("Recording started")
        return True

    async def end(self) -> None:
        if self._stream is None:
            return
        self._release()

        chunks, self._chunks = self._chunks, []
        pcm16 = prepare_for_stt(chunks, self.sr_capture, self.sr_target, self.target_rms)
        if pcm16.size == 0:
            logger.info("No audio captured, discarding recording")
            return

        artifact = AudioArtifact(wav_bytes=encode_wav(pcm16, self.sr_target), sample_rate=self.sr_target)
        logger.info(f"Captured {pcm16.size / self.sr_target:.1f}s of audio, submitting for transcription")
        self._emit_pending()
        self._transcription = asyncio.create_task(self._run_transcription(artifact, self._generation))

    async def _run_transcription(self, artifact: AudioArtifact, generation: int) -> None:
        try:
            text = await asyncio.wait_for(self._transcribe(artifact), self.timeout)
        except asyncio.TimeoutError:
            if generation == self._generation:
                self._emit_error(CaptureErrorKind.TRANSCRIPTION_FAILED,
                                 f"Transcription timed out after {self.timeout:.0f}s")
            return
        except Exception as e:
            logger.error("Transcription failed: %s", e)
            if generation == self._generation:
                self._emit_error(CaptureErrorKind.TRANSCRIPTION_FAILED, str(e))
            return

        if generation != self._generation:
            logger.info("Dropping transcript from a discarded recording")
            return
        text = (text or "").strip()
        if text:
            self._emit_text(text)
        else:
            self._emit_error(CaptureErrorKind.NO_SPEECH, "No speech detected")

    def abort(self) -> None:
        self._generation += 1
        self._chunks = []
        self._release()

    async def wait_idle(self) -> None:
        task = self._transcription
        if task is not None and not task.done():
            await task
