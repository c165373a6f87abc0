"""
Event-driven notifications for the interview session.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of session events."""
    SESSION_STARTED = "session_started"
    STATE_CHANGED = "state_changed"
    MESSAGE_APPENDED = "message_appended"
    INTERIM_TRANSCRIPT = "interim_transcript"
    CAPTURE_RESTARTED = "capture_restarted"
    ERROR_OCCURRED = "error_occurred"
    SESSION_ENDED = "session_ended"
    FEEDBACK_READY = "feedback_ready"


@dataclass
class SessionEvent:
    """Base class for all session events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


class SessionStartedEvent(SessionEvent):
    """Event fired when the greeting has been issued."""
    def __init__(self, session_id: str, timestamp: float, role: str):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"role": role}
        )


class StateChangedEvent(SessionEvent):
    """Event fired on every state machine transition."""
    def __init__(self, session_id: str, timestamp: float, previous: str, current: str):
        super().__init__(
            event_type=EventType.STATE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"previous": previous, "current": current}
        )


class MessageAppendedEvent(SessionEvent):
    """Event fired when a message joins the dialogue history."""
    def __init__(self, session_id: str, timestamp: float, index: int, role: str, content: str):
        super().__init__(
            event_type=EventType.MESSAGE_APPENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"index": index, "role": role, "content": content}
        )


class InterimTranscriptEvent(SessionEvent):
    """Event fired for partial recognition results."""
    def __init__(self, session_id: str, timestamp: float, text: str):
        super().__init__(
            event_type=EventType.INTERIM_TRANSCRIPT,
            session_id=session_id,
            timestamp=timestamp,
            data={"text": text}
        )


class CaptureRestartedEvent(SessionEvent):
    """Event fired when continuous recognition starts a new segment."""
    def __init__(self, session_id: str, timestamp: float, restarts: int):
        super().__init__(
            event_type=EventType.CAPTURE_RESTARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"restarts": restarts}
        )


class ErrorOccurredEvent(SessionEvent):
    """Event fired when an error is surfaced to the caller."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


class SessionEndedEvent(SessionEvent):
    """Event fired when the session reaches its terminal state."""
    def __init__(self, session_id: str, timestamp: float, message_count: int):
        super().__init__(
            event_type=EventType.SESSION_ENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"message_count": message_count}
        )


class FeedbackReadyEvent(SessionEvent):
    """Event fired once the feedback call has settled."""
    def __init__(self, session_id: str, timestamp: float, rating: Optional[int]):
        super().__init__(
            event_type=EventType.FEEDBACK_READY,
            session_id=session_id,
            timestamp=timestamp,
            data={"rating": rating, "available": rating is not None}
        )


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """Event bus between the session controller and its observers."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from specific event type."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: SessionEvent) -> None:
        """
        Emit an event to all subscribers.

        Handler failures are logged and never reach the emitter.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.log_level = log_level

    def handle_event(self, event: SessionEvent) -> None:
        self.logger.log(self.log_level, f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class SessionMetrics:
    """Collects metrics from session events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: SessionEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.SESSION_STARTED:
            self.sessions_started += 1
        elif event.event_type == EventType.SESSION_ENDED:
            self.sessions_ended += 1
        elif event.event_type == EventType.MESSAGE_APPENDED:
            if event.data.get("role") == "user":
                self.candidate_messages += 1
            else:
                self.interviewer_messages += 1
        elif event.event_type == EventType.CAPTURE_RESTARTED:
            self.capture_restarts += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1
        elif event.event_type == EventType.FEEDBACK_READY:
            if event.data.get("available"):
                self.reports_delivered += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "sessions_started": self.sessions_started,
            "sessions_ended": self.sessions_ended,
            "candidate_messages": self.candidate_messages,
            "interviewer_messages": self.interviewer_messages,
            "capture_restarts": self.capture_restarts,
            "errors_occurred": self.errors_occurred,
            "reports_delivered": self.reports_delivered
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.sessions_started = 0
        self.sessions_ended = 0
        self.candidate_messages = 0
        self.interviewer_messages = 0
        self.capture_restarts = 0
        self.errors_occurred = 0
        self.reports_delivered = 0
