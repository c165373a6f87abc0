"""
Common contract for microphone capture strategies.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger("audio_capture")


class CaptureErrorKind(str, Enum):
    """Classes of capture failure."""
    PERMISSION_DENIED = "permission_denied"
    NO_SPEECH = "no_speech"
    TRANSCRIPTION_FAILED = "transcription_failed"
    DEVICE = "device"

    @property
    def is_transient(self) -> bool:
        return self is CaptureErrorKind.NO_SPEECH


class CaptureError(RuntimeError):
    """Failure raised inside a capture strategy, tagged with its kind."""

    def __init__(self, kind: CaptureErrorKind, message: str = ""):
        super().__init__(message or kind.value)
        self.kind = kind


def open_error_kind(error: BaseException) -> CaptureErrorKind:
    """Classify a failure to open the microphone."""
    if isinstance(error, PermissionError) or "permission" in str(error).lower():
        return CaptureErrorKind.PERMISSION_DENIED
    return CaptureErrorKind.DEVICE


class ListeningIntent:
    """
    Whether the user currently wants the microphone on.

    Owned by the session; capture strategies only read it, except that a fatal
    permission error clears it.
    """

    def __init__(self):
        self._asserted = False

    def assert_(self) -> None:
        self._asserted = True

    def clear(self) -> None:
        self._asserted = False

    @property
    def asserted(self) -> bool:
        return self._asserted

    def __bool__(self) -> bool:
        return self._asserted


TextHandler = Callable[[str], None]
ErrorHandler = Callable[[CaptureErrorKind, str], None]
SignalHandler = Callable[[], None]


class AudioCapture(ABC):
    """
    Microphone capability shared by the discrete and continuous strategies.

    Results are reported through handlers installed with `bind()`:
    text (a finished utterance), error (kind and detail), pending (audio was
    handed to transcription), interim (partial recognition) and restarted.
    """

    def __init__(self):
        self.intent = ListeningIntent()
        self._on_text: Optional[TextHandler] = None
        self._on_error: Optional[ErrorHandler] = None
        self._on_pending: Optional[SignalHandler] = None
        self._on_interim: Optional[TextHandler] = None
        self._on_restarted: Optional[SignalHandler] = None

    def bind(self,
             intent: ListeningIntent,
             on_text: TextHandler,
             on_error: ErrorHandler,
             on_pending: Optional[SignalHandler] = None,
             on_interim: Optional[TextHandler] = None,
             on_restarted: Optional[SignalHandler] = None) -> None:
        self.intent = intent
        self._on_text = on_text
        self._on_error = on_error
        self._on_pending = on_pending
        self._on_interim = on_interim
        self._on_restarted = on_restarted

    @property
    @abstractmethod
    def is_active(self) -> bool:
        """True while the microphone is held."""

    @abstractmethod
    async def begin(self) -> bool:
        """Acquire the microphone and start capturing. Returns False on failure."""

    @abstractmethod
    async def end(self) -> None:
        """Stop capturing, release the microphone and deliver what was heard."""

    @abstractmethod
    def abort(self) -> None:
        """Release the microphone at once and drop every pending result."""

    async def wait_idle(self) -> None:
        """Wait for work started by `end()` (such as transcription) to settle."""

    def _emit_text(self, text: str) -> None:
        if self._on_text:
            self._on_text(text)

    def _emit_error(self, kind: CaptureErrorKind, detail: str = "") -> None:
        logger.info("Capture error: %s %s", kind.value, detail)
        if self._on_error:
            self._on_error(kind, detail)

    def _emit_pending(self) -> None:
        if self._on_pending:
            self._on_pending()

    def _emit_interim(self, text: str) -> None:
        if self._on_interim:
            self._on_interim(text)

    def _emit_restarted(self) -> None:
        if self._on_restarted:
            self._on_restarted()
