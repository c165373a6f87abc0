"""
Continuous capture: a recognition engine streams interim and final text.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .base import AudioCapture, CaptureError, CaptureErrorKind

logger = logging.getLogger("audio_capture")

ResultHandler = Callable[[str, bool], None]
EngineErrorHandler = Callable[[CaptureErrorKind, str], None]
EndHandler = Callable[[], None]


class RecognitionEngine(ABC):
    """
    A speech recognizer that ends on its own after each segment.

    Engines must call the attached handlers on the event loop thread, and must
    call `on_end` exactly once for every successful `start()`, including after
    errors. Handlers are not called after `abort()`.
    """

    def __init__(self):
        self._on_result: Optional[ResultHandler] = None
        self._on_error: Optional[EngineErrorHandler] = None
        self._on_end: Optional[EndHandler] = None

    def attach(self, on_result: ResultHandler, on_error: EngineErrorHandler, on_end: EndHandler) -> None:
        self._on_result = on_result
        self._on_error = on_error
        self._on_end = on_end

    @abstractmethod
    def start(self) -> None:
        """
        Start one recognition segment.

        Raises:
            CaptureError: the microphone could not be acquired
        """

    @abstractmethod
    def abort(self) -> None:
        """Stop immediately, release the microphone and drop pending results."""

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """True while a segment holds the microphone."""


class ContinuousRecognizer(AudioCapture):
    """
    Hands-free capture on top of a RecognitionEngine.

    Each time the engine finishes a segment it is restarted while the session's
    listening intent is still asserted. NO_SPEECH is swallowed (the restart
    follows); PERMISSION_DENIED clears the intent and is reported.
    """

    def __init__(self, engine: RecognitionEngine):
        super().__init__()
        self.engine = engine
        self.engine.attach(self._on_engine_result, self._on_engine_error, self._on_engine_end)
        self._running = False
        self._interim = ""
        self.restarts = 0

    @property
    def is_active(self) -> bool:
        return self._running and self.engine.is_running

    def _start_engine(self) -> bool:
        try:
            self.engine.start()
        except CaptureError as e:
            self._running = False
            self._fail(e.kind, str(e))
            return False
        return True

    async def begin(self) -> bool:
        if self.engine.is_running:
            self.engine.abort()
        self._interim = ""
        self._running = True
        started = self._start_engine()
        if started:
            logger.info("Continuous recognition started")
        return started

    async def end(self) -> None:
        if not self._running:
            return
        self._running = False
        self.engine.abort()
        logger.info("Continuous recognition stopped")

        # Whatever was heard so far still counts as the answer
        pending, self._interim = self._interim.strip(), ""
        if pending:
            self._emit_text(pending)

    def abort(self) -> None:
        self._running = False
        self._interim = ""
        if self.engine.is_running:
            self.engine.abort()

    def _fail(self, kind: CaptureErrorKind, detail: str) -> None:
        self.intent.clear()
        self._running = False
        if self.engine.is_running:
            self.engine.abort()
        self._emit_error(kind, detail)

    def _on_engine_result(self, text: str, is_final: bool) -> None:
        if not self._running:
            return
        if not is_final:
            self._interim = text
            self._emit_interim(text)
            return
        self._interim = ""
        text = text.strip()
        if text:
            self._emit_text(text)

    def _on_engine_error(self, kind: CaptureErrorKind, detail: str) -> None:
        if kind.is_transient:
            logger.debug("No speech in segment, waiting for restart")
            return
        logger.error("Recognition error: %s %s", kind.value, detail)
        self._fail(kind, detail)

    def _on_engine_end(self) -> None:
        if self._running and self.intent.asserted:
            self.restarts += 1
            logger.debug("Recognition segment ended, restarting (%d)", self.restarts)
            if self._start_engine():
                self._emit_restarted()
            return
        self._running = False
