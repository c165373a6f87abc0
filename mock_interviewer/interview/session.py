"""
Voice turn-taking session controller.

Coordinates the microphone, the speaker and the backend for one mock interview.
All intents and adapter callbacks run on a single asyncio event loop; the
controller is the only writer of the session state and the dialogue history.
"""
import asyncio
import logging
import time
import uuid
from typing import Callable, Optional, Tuple

from .events import (
    SessionEventBus, EventLogger, SessionMetrics,
    SessionStartedEvent, StateChangedEvent, MessageAppendedEvent,
    InterimTranscriptEvent, CaptureRestartedEvent, ErrorOccurredEvent,
    SessionEndedEvent, FeedbackReadyEvent
)
from .history import DialogueHistory
from .models import Message, Role, SessionConfig
from .prompts import InterviewPrompts
from .schemas import FeedbackReport, SessionState
from ..config import FEEDBACK_TIMEOUT_SECONDS, REPLY_TIMEOUT_SECONDS
from ..infrastructure.audio.capture.base import AudioCapture, CaptureErrorKind, ListeningIntent
from ..infrastructure.audio.speech.tts import SpeechOutput, VoiceCatalog
from ..infrastructure.backend.base import FeedbackValidationError, TurnExchange

logger = logging.getLogger("session")

FeedbackHandler = Callable[[Optional[FeedbackReport]], None]

# States in which a finished utterance (spoken or typed) may start a turn
_ACCEPTS_UTTERANCE = (SessionState.AWAITING_CANDIDATE, SessionState.CAPTURING_AUDIO, SessionState.SPEAKING)


class InterviewSession:
    """
    State machine for one interview.

    Intents: `start()`, `toggle_mic()`, `submit_text()`, `end()`. Each returns
    whether it was accepted; rejected intents leave the session untouched.
    Failures the candidate should see are published as ErrorOccurred events.
    """

    def __init__(self,
                 config: SessionConfig,
                 capture: AudioCapture,
                 speech: SpeechOutput,
                 exchange: TurnExchange,
                 event_bus: Optional[SessionEventBus] = None,
                 reply_timeout: float = REPLY_TIMEOUT_SECONDS,
                 feedback_timeout: float = FEEDBACK_TIMEOUT_SECONDS,
                 on_feedback: Optional[FeedbackHandler] = None,
                 session_id: Optional[str] = None):
        self.session_id = session_id or f"session_{uuid.uuid4().hex[:12]}"
        self.config = config
        self.capture = capture
        self.speech = speech
        self.exchange = exchange
        self.reply_timeout = reply_timeout
        self.feedback_timeout = feedback_timeout
        self.on_feedback = on_feedback

        self.event_bus = event_bus or SessionEventBus()
        self.metrics = SessionMetrics()
        self.event_bus.subscribe_all(EventLogger().handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        self.history = DialogueHistory()
        self.intent = ListeningIntent()
        self._state = SessionState.NOT_STARTED
        self._awaiting_transcript = False
        self._turn_task: Optional[asyncio.Task] = None
        self._feedback_task: Optional[asyncio.Task] = None
        self._feedback_delivered = False

        self.capture.bind(
            self.intent,
            on_text=self._on_captured_text,
            on_error=self._on_capture_error,
            on_pending=self._on_capture_pending,
            on_interim=self._on_interim,
            on_restarted=self._on_capture_restarted,
        )
        self.speech.bind(on_started=self._on_speech_started, on_finished=self._on_speech_finished)

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self.history.snapshot()

    @property
    def is_listening(self) -> bool:
        return self.capture.is_active

    @property
    def is_speaking(self) -> bool:
        return self.speech.is_speaking

    def _set_state(self, new_state: SessionState) -> None:
        previous = self._state
        if previous is new_state:
            return
        self._state = new_state
        logger.debug("State %s -> %s", previous.value, new_state.value)
        self.event_bus.emit(StateChangedEvent(self.session_id, time.time(), previous.value, new_state.value))

    def _append(self, role: Role, content: str) -> Message:
        message = self.history.add(role, content)
        self.event_bus.emit(MessageAppendedEvent(
            self.session_id, time.time(), len(self.history) - 1, role.value, content
        ))
        return message

    def _report_error(self, component: str, error_type: str, message: str) -> None:
        logger.warning("%s error (%s): %s", component, error_type, message)
        self.event_bus.emit(ErrorOccurredEvent(self.session_id, time.time(), error_type, message, component))

    # ---------------------------------------------------------------- intents

    async def start(self) -> bool:
        """Greet the candidate. A second call is a no-op."""
        if self._state is not SessionState.NOT_STARTED:
            logger.info("start ignored, session already %s", self._state.value)
            return False

        self._set_state(SessionState.AWAITING_CANDIDATE)
        self.speech.warm_up()
        greeting = InterviewPrompts.greeting(self.config)
        self._append(Role.ASSISTANT, greeting)
        self.event_bus.emit(SessionStartedEvent(self.session_id, time.time(), self.config.role))
        self._speak(greeting)
        return True

    async def toggle_mic(self) -> bool:
        """Open the microphone when it is off, close it when it is on."""
        state = self._state
        if state in (SessionState.NOT_STARTED, SessionState.ENDED, SessionState.AWAITING_BACKEND_REPLY):
            logger.info("toggle-mic rejected in state %s", state.value)
            return False
        if state is SessionState.CAPTURING_AUDIO:
            await self._stop_listening()
            return True
        return await self._start_listening()

    async def submit_text(self, text: str) -> bool:
        """Answer by typing instead of speaking."""
        text = (text or "").strip()
        if not text:
            return False
        if self._state not in _ACCEPTS_UTTERANCE:
            logger.info("submit-text rejected in state %s", self._state.value)
            return False

        self._release_devices()
        self._begin_turn(text)
        return True

    async def end(self) -> Optional[FeedbackReport]:
        """
        Finish the interview and return the feedback report.

        Speech stops and the microphone is released before this returns
        control to the loop. The report (or None when it cannot be produced)
        is handed to `on_feedback` exactly once.
        """
        if self._state is SessionState.NOT_STARTED:
            logger.info("end ignored, session never started")
            return None
        if self._state is SessionState.ENDED:
            logger.info("end ignored, session already ended")
            return None

        self._release_devices()
        self._awaiting_transcript = False
        self._set_state(SessionState.ENDED)
        self.event_bus.emit(SessionEndedEvent(self.session_id, time.time(), len(self.history)))

        self._feedback_task = asyncio.get_running_loop().create_task(
            self._generate_feedback(self.history.snapshot())
        )
        return await self._feedback_task

    async def wait_idle(self) -> None:
        """Wait until no turn, transcription or utterance is in progress."""
        while True:
            task = self._turn_task
            if task is not None and not task.done():
                await task
                continue
            await self.capture.wait_idle()
            await self.speech.wait_idle()
            task = self._turn_task
            if task is None or task.done():
                return

    # ------------------------------------------------------------- internals

    def _release_devices(self) -> None:
        """Cancel speech and drop the microphone, including any pending capture."""
        self.intent.clear()
        if self.speech.is_speaking:
            self.speech.cancel()
        self.capture.abort()

    async def _start_listening(self) -> bool:
        # Never open the microphone while the speaker is playing
        if self.speech.is_speaking:
            self.speech.cancel()

        self.intent.assert_()
        self._set_state(SessionState.CAPTURING_AUDIO)
        started = await self.capture.begin()
        if not started and self._state is SessionState.CAPTURING_AUDIO:
            self.intent.clear()
            self._set_state(SessionState.AWAITING_CANDIDATE)
        return started

    async def _stop_listening(self) -> None:
        self.intent.clear()
        await self.capture.end()
        if self._state is SessionState.CAPTURING_AUDIO:
            # Nothing usable was recorded
            self._set_state(SessionState.AWAITING_CANDIDATE)

    def _speak(self, text: str) -> None:
        self._set_state(SessionState.SPEAKING)
        self.speech.speak(text, self.config.voice)

    def _begin_turn(self, text: str) -> None:
        # The utterance joins the history before any request is issued
        prior = self.history.snapshot()
        self._append(Role.USER, text)
        self._awaiting_transcript = False
        self._set_state(SessionState.AWAITING_BACKEND_REPLY)
        self._turn_task = asyncio.get_running_loop().create_task(self._run_turn(text, prior))

    async def _run_turn(self, text: str, prior: Tuple[Message, ...]) -> None:
        if self._state is not SessionState.AWAITING_BACKEND_REPLY:
            logger.info("Skipping chat turn, session is %s", self._state.value)
            return

        try:
            reply = await asyncio.wait_for(
                self.exchange.chat_turn(text, prior, self.config), self.reply_timeout
            )
        except asyncio.TimeoutError:
            if self._state is SessionState.AWAITING_BACKEND_REPLY:
                self._report_error("chat_turn", "TimeoutError", f"No reply within {self.reply_timeout:.0f}s")
                self._set_state(SessionState.AWAITING_CANDIDATE)
            return
        except Exception as e:
            logger.error("Chat turn failed: %s", e)
            if self._state is SessionState.AWAITING_BACKEND_REPLY:
                self._report_error("chat_turn", type(e).__name__, str(e))
                self._set_state(SessionState.AWAITING_CANDIDATE)
            return

        if self._state is not SessionState.AWAITING_BACKEND_REPLY:
            logger.info("Discarding reply that arrived in state %s", self._state.value)
            return

        self._append(Role.ASSISTANT, reply)
        self._speak(reply)

    async def _generate_feedback(self, history: Tuple[Message, ...]) -> Optional[FeedbackReport]:
        report: Optional[FeedbackReport] = None
        try:
            report = await asyncio.wait_for(
                self.exchange.generate_feedback(history, self.config), self.feedback_timeout
            )
        except FeedbackValidationError as e:
            self._report_error("feedback", "FeedbackValidationError", str(e))
        except asyncio.TimeoutError:
            self._report_error("feedback", "TimeoutError", f"No report within {self.feedback_timeout:.0f}s")
        except Exception as e:
            logger.error("Failed to generate feedback: %s", e)
            self._report_error("feedback", type(e).__name__, str(e))

        self._deliver_feedback(report)
        self._discard()
        return report

    def _deliver_feedback(self, report: Optional[FeedbackReport]) -> None:
        if self._feedback_delivered:
            return
        self._feedback_delivered = True
        self.event_bus.emit(FeedbackReadyEvent(
            self.session_id, time.time(), report.rating if report is not None else None
        ))
        if self.on_feedback is not None:
            try:
                self.on_feedback(report)
            except Exception as e:
                logger.error("Feedback handler failed: %s", e)

    def _discard(self) -> None:
        """Drop per-session resources once the report is out."""
        self._turn_task = None
        VoiceCatalog.reset()
        logger.info("Session %s discarded after %d messages", self.session_id, len(self.history))

    # -------------------------------------------------------- adapter events

    def _on_speech_started(self) -> None:
        logger.debug("Speech started")

    def _on_speech_finished(self) -> None:
        if self._state is SessionState.SPEAKING:
            self._set_state(SessionState.AWAITING_CANDIDATE)

    def _on_capture_pending(self) -> None:
        if self._state is SessionState.CAPTURING_AUDIO:
            self._awaiting_transcript = True
            self._set_state(SessionState.AWAITING_BACKEND_REPLY)

    def _on_captured_text(self, text: str) -> None:
        waiting_for_transcript = self._state is SessionState.AWAITING_BACKEND_REPLY and self._awaiting_transcript
        if self._state is not SessionState.CAPTURING_AUDIO and not waiting_for_transcript:
            logger.info("Dropping captured text in state %s", self._state.value)
            return

        # The reply will be spoken, so the microphone goes off now
        self.intent.clear()
        if self.capture.is_active:
            self.capture.abort()
        self._begin_turn(text)

    def _on_capture_error(self, kind: CaptureErrorKind, detail: str) -> None:
        if self._state is SessionState.ENDED:
            return
        waiting_for_transcript = self._state is SessionState.AWAITING_BACKEND_REPLY and self._awaiting_transcript

        if kind.is_transient:
            if waiting_for_transcript:
                # Blank recording: quietly hand the floor back to the candidate
                self._awaiting_transcript = False
                self._set_state(SessionState.AWAITING_CANDIDATE)
            return

        self._awaiting_transcript = False
        self.intent.clear()
        if self._state is SessionState.CAPTURING_AUDIO or waiting_for_transcript:
            self._set_state(SessionState.AWAITING_CANDIDATE)

        component = "transcribe" if kind is CaptureErrorKind.TRANSCRIPTION_FAILED else "audio_capture"
        self._report_error(component, kind.value, detail or kind.value)

    def _on_interim(self, text: str) -> None:
        self.event_bus.emit(InterimTranscriptEvent(self.session_id, time.time(), text))

    def _on_capture_restarted(self) -> None:
        restarts = getattr(self.capture, "restarts", 0)
        self.event_bus.emit(CaptureRestartedEvent(self.session_id, time.time(), restarts))
