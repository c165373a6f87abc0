"""
Google Cloud streaming recognition engine for continuous capture.
"""
import asyncio
import logging
import queue
import threading
from typing import Optional

from google.api_core import exceptions as gexc
from google.cloud import speech

from .base import CaptureError, CaptureErrorKind, open_error_kind
from .recognizer import RecognitionEngine
from .recorder import SoundDeviceStreamFactory
from ..processing import to_pcm16
from ....config import FRAME_MS, LANGUAGE_CODE, SAMPLE_RATE_TARGET

logger = logging.getLogger("speech_stream")

_SENTINEL = None


class GoogleStreamingEngine(RecognitionEngine):
    """
    One `streaming_recognize` call per segment.

    The microphone feeds a queue from the PortAudio thread; a worker thread
    drains it into the gRPC stream and posts results back to the event loop.
    `single_utterance` makes Google close the segment when the speaker pauses.
    """

    def __init__(self,
                 language_code: str = LANGUAGE_CODE,
                 sample_rate: int = SAMPLE_RATE_TARGET,
                 input_device: Optional[int] = None,
                 client: Optional[speech.SpeechClient] = None):
        super().__init__()
        self.language_code = language_code
        self.sample_rate = sample_rate
        self._stream_factory = SoundDeviceStreamFactory(
            input_device=input_device, num_channels=1, sr_capture=sample_rate, frame_ms=FRAME_MS
        )
        self._client = client
        self._mic = None
        self._audio: Optional[queue.Queue] = None
        self._worker: Optional[threading.Thread] = None
        self._segment = 0
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def client(self) -> speech.SpeechClient:
        if self._client is None:
            self._client = speech.SpeechClient()
        return self._client

    @property
    def is_running(self) -> bool:
        return self._mic is not None

    def _streaming_config(self) -> speech.StreamingRecognitionConfig:
        return speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sample_rate,
                language_code=self.language_code,
                enable_automatic_punctuation=True,
            ),
            interim_results=True,
            single_utterance=True,
        )

    def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._segment += 1
        segment = self._segment
        audio: queue.Queue = queue.Queue()

        def _on_chunk(chunk):
            audio.put(to_pcm16(chunk.reshape(-1)).tobytes())

        mic = None
        try:
            mic = self._stream_factory(_on_chunk)
            mic.start()
        except Exception as e:
            if mic is not None:
                mic.close()
            raise CaptureError(open_error_kind(e), f"Could not access microphone: {e}") from e

        self._mic = mic
        self._audio = audio
        self._worker = threading.Thread(
            target=self._run_segment, args=(segment, audio), name=f"recognition-{segment}", daemon=True
        )
        self._worker.start()

    def _close_mic(self) -> None:
        mic, self._mic = self._mic, None
        if mic is not None:
            try:
                mic.stop()
                mic.close()
            except Exception as e:
                logger.warning("Error releasing microphone: %s", e)
        if self._audio is not None:
            self._audio.put(_SENTINEL)
            self._audio = None

    def abort(self) -> None:
        # Bumping the segment silences every callback of the running worker
        self._segment += 1
        self._close_mic()

    def _post(self, segment: int, fn, *args) -> None:
        def _deliver():
            if segment == self._segment and fn is not None:
                fn(*args)
        self._loop.call_soon_threadsafe(_deliver)

    def _finish(self, segment: int) -> None:
        def _deliver():
            if segment != self._segment:
                return
            self._close_mic()
            if self._on_end is not None:
                self._on_end()
        self._loop.call_soon_threadsafe(_deliver)

    def _requests(self, audio: queue.Queue):
        while True:
            chunk = audio.get()
            if chunk is _SENTINEL:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _run_segment(self, segment: int, audio: queue.Queue) -> None:
        heard_final = False
        try:
            responses = self.client.streaming_recognize(self._streaming_config(), self._requests(audio))
            for response in responses:
                if segment != self._segment:
                    break
                for result in response.results:
                    if not result.alternatives:
                        continue
                    text = result.alternatives[0].transcript
                    heard_final = heard_final or result.is_final
                    self._post(segment, self._on_result, text, result.is_final)
            if not heard_final:
                self._post(segment, self._on_error, CaptureErrorKind.NO_SPEECH, "No speech detected")
        except (gexc.OutOfRange, gexc.DeadlineExceeded) as e:
            # Google closes silent streams with an audio timeout
            self._post(segment, self._on_error, CaptureErrorKind.NO_SPEECH, str(e))
        except gexc.GoogleAPICallError as e:
            logger.error("Streaming recognition failed: %s", e)
            self._post(segment, self._on_error, CaptureErrorKind.DEVICE, str(e))
        except Exception as e:
            logger.error("Recognition worker crashed: %s", e)
            self._post(segment, self._on_error, CaptureErrorKind.DEVICE, str(e))
        finally:
            self._finish(segment)
