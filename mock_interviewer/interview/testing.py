"""
Testing infrastructure with mock adapters for the interview session.
"""
import asyncio
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .models import Message, SessionConfig
from .schemas import FeedbackReport
from ..infrastructure.audio.capture.base import AudioCapture, CaptureError, CaptureErrorKind
from ..infrastructure.audio.capture.recognizer import RecognitionEngine
from ..infrastructure.audio.speech.tts import SpeechOutput, Voice
from ..infrastructure.backend.base import AudioArtifact, TurnExchange

Scripted = Union[str, Exception]


class MockTurnExchange(TurnExchange):
    """
    Scripted backend.

    Replies and transcripts are consumed in order; an Exception in either list
    is raised instead of returned. Set `gate` to an asyncio.Event to hold chat
    replies until the test releases them.
    """

    def __init__(self,
                 replies: Optional[List[Scripted]] = None,
                 transcripts: Optional[List[Scripted]] = None,
                 report: Optional[Union[FeedbackReport, Exception]] = None):
        self.replies = list(replies or [])
        self.transcripts = list(transcripts or [])
        self.report = report if report is not None else sample_feedback_report()
        self.gate: Optional[asyncio.Event] = None
        self.chat_calls: List[Dict[str, Any]] = []
        self.transcribe_calls: List[AudioArtifact] = []
        self.feedback_calls: List[Tuple[Message, ...]] = []

    async def transcribe(self, audio: AudioArtifact) -> str:
        self.transcribe_calls.append(audio)
        result = self.transcripts.pop(0) if self.transcripts else ""
        if isinstance(result, Exception):
            raise result
        return result

    async def chat_turn(self, message: str, history: Sequence[Message],
                        context: SessionConfig) -> str:
        self.chat_calls.append({"message": message, "history": tuple(history), "context": context})
        if self.gate is not None:
            await self.gate.wait()
        result = self.replies.pop(0) if self.replies else "Tell me more about that."
        if isinstance(result, Exception):
            raise result
        return result

    async def _generate_feedback(self, history: Sequence[Message],
                                 context: SessionConfig) -> FeedbackReport:
        self.feedback_calls.append(tuple(history))
        if isinstance(self.report, Exception):
            raise self.report
        return self.report


class MockSpeechOutput(SpeechOutput):
    """
    Speaker that never makes a sound.

    With `auto_finish` every utterance completes on the next loop iteration;
    otherwise the test calls `finish()`.
    """

    def __init__(self, auto_finish: bool = False):
        # Don't call super().__init__ to avoid creating a real TTS client
        self.auto_finish = auto_finish
        self.enabled = True
        self.spoken: List[Tuple[str, Optional[str]]] = []
        self.cancel_count = 0
        self.warmed = False
        self._speaking = False
        self._task = None
        self._pending: Optional[asyncio.Handle] = None
        self._on_started = None
        self._on_finished = None

    def warm_up(self) -> None:
        self.warmed = True

    def speak(self, text: str, voice_hint: Optional[str] = None) -> None:
        self.cancel()
        self.spoken.append((text, voice_hint))
        self._speaking = True
        self._emit(self._on_started)
        if self.auto_finish:
            self._pending = asyncio.get_running_loop().call_soon(self.finish)

    def finish(self) -> None:
        """Complete the current utterance."""
        self._pending = None
        if not self._speaking:
            return
        self._speaking = False
        self._emit(self._on_finished)

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        if self._speaking:
            self.cancel_count += 1
        self._speaking = False

    async def wait_idle(self) -> None:
        while self._pending is not None:
            await asyncio.sleep(0)

    @property
    def spoken_texts(self) -> List[str]:
        return [text for text, _ in self.spoken]


class MockAudioCapture(AudioCapture):
    """Microphone driven by the test through `say()`, `fail()` and `pending()`."""

    def __init__(self, grant: bool = True):
        super().__init__()
        self.grant = grant
        self._active = False
        self.begin_calls = 0
        self.end_calls = 0
        self.abort_calls = 0

    @property
    def is_active(self) -> bool:
        return self._active

    async def begin(self) -> bool:
        self.begin_calls += 1
        if not self.grant:
            self.intent.clear()
            self._emit_error(CaptureErrorKind.PERMISSION_DENIED, "Permission denied")
            return False
        self._active = True
        return True

    async def end(self) -> None:
        self.end_calls += 1
        self._active = False

    def abort(self) -> None:
        self.abort_calls += 1
        self._active = False

    def say(self, text: str) -> None:
        self._emit_text(text)

    def fail(self, kind: CaptureErrorKind, detail: str = "") -> None:
        self._emit_error(kind, detail)

    def pending(self) -> None:
        self._emit_pending()

    def interim(self, text: str) -> None:
        self._emit_interim(text)


class MockRecognitionEngine(RecognitionEngine):
    """Recognition engine whose segments are ended by the test."""

    def __init__(self, start_error: Optional[CaptureError] = None):
        super().__init__()
        self.start_error = start_error
        self._running = False
        self.start_calls = 0
        self.abort_calls = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error
        self._running = True

    def abort(self) -> None:
        self.abort_calls += 1
        self._running = False

    def result(self, text: str, is_final: bool = True) -> None:
        if self._running:
            self._on_result(text, is_final)

    def error(self, kind: CaptureErrorKind, detail: str = "") -> None:
        if self._running:
            self._on_error(kind, detail)

    def finish(self) -> None:
        """End the current segment the way the engine does on silence."""
        if self._running:
            self._running = False
            self._on_end()


class MockInputStream:
    """Stand-in for sounddevice.InputStream."""

    def __init__(self, on_chunk: Callable[[np.ndarray], None], start_error: Optional[Exception] = None):
        self.on_chunk = on_chunk
        self.start_error = start_error
        self.started = False
        self.closed = False

    def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def stop(self) -> None:
        self.started = False

    def close(self) -> None:
        self.closed = True

    def feed(self, samples: np.ndarray) -> None:
        self.on_chunk(np.asarray(samples, dtype=np.float32).reshape(-1, 1))


class MockStreamFactory:
    """
    Stream factory recording every stream it opens.

    `error` fails the open itself, `start_error` fails the `start()` of an opened stream.
    """

    def __init__(self, error: Optional[Exception] = None, start_error: Optional[Exception] = None):
        self.error = error
        self.start_error = start_error
        self.streams: List[MockInputStream] = []

    def __call__(self, on_chunk: Callable[[np.ndarray], None]) -> MockInputStream:
        if self.error is not None:
            raise self.error
        stream = MockInputStream(on_chunk, start_error=self.start_error)
        self.streams.append(stream)
        return stream

    @property
    def last(self) -> MockInputStream:
        return self.streams[-1]


class MockSynthesizer:
    """Returns a short silent clip for every request."""

    def __init__(self, voices: Optional[List[Voice]] = None, error: Optional[Exception] = None,
                 sample_rate: int = 24000):
        self.voices = list(voices or [])
        self.error = error
        self.sample_rate = sample_rate
        self.requests: List[Tuple[str, Optional[Voice]]] = []

    def list_voices(self) -> List[Voice]:
        return list(self.voices)

    def synthesize(self, text: str, voice: Optional[Voice] = None) -> Tuple[np.ndarray, int]:
        self.requests.append((text, voice))
        if self.error is not None:
            raise self.error
        return np.zeros(self.sample_rate // 10, dtype=np.float32), self.sample_rate


class MockPlayer:
    """Playback that optionally blocks until `stop()` or `release()`."""

    def __init__(self, block: bool = False):
        self.block = block
        self.played: List[int] = []
        self.stop_calls = 0
        self._done = threading.Event()

    def play(self, samples: np.ndarray, sample_rate: int) -> None:
        self.played.append(len(samples))
        if self.block:
            self._done.wait(timeout=5.0)
            self._done.clear()

    def stop(self) -> None:
        self.stop_calls += 1
        self._done.set()

    def release(self) -> None:
        self._done.set()


def sample_feedback_report(rating: int = 72) -> FeedbackReport:
    """A well-formed report for tests."""
    return FeedbackReport(
        rating=rating,
        summary="Solid fundamentals with room to go deeper on system design.",
        strengths=["Clear communication", "Good grasp of Python"],
        weaknesses=["Vague about scaling trade-offs"],
        improvements=["Practice designing for high load"],
    )


def create_mock_session(config: Optional[SessionConfig] = None, **kwargs) -> Dict[str, Any]:
    """Create a session wired to mock adapters. Extra kwargs go to InterviewSession."""
    from .session import InterviewSession

    capture = kwargs.pop("capture", None) or MockAudioCapture()
    speech = kwargs.pop("speech", None) or MockSpeechOutput()
    exchange = kwargs.pop("exchange", None) or MockTurnExchange()
    reports: List[Optional[FeedbackReport]] = []

    session = InterviewSession(
        config or SessionConfig(role="Backend Engineer", skills="Python, SQL"),
        capture=capture,
        speech=speech,
        exchange=exchange,
        on_feedback=reports.append,
        **kwargs
    )
    return {
        "session": session,
        "capture": capture,
        "speech": speech,
        "exchange": exchange,
        "reports": reports,
    }
