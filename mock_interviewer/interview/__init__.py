"""Interview session components.

This module contains the business logic for running a voice mock interview:
the session state machine, the dialogue history, prompts, and session events.
"""

# Data models
from .models import Role, Message, SessionConfig

# Structured schemas and state management
from .schemas import SessionState, FeedbackReport, parse_feedback_report

# Dialogue history
from .history import DialogueHistory

# Prompts
from .prompts import InterviewPrompts

# Event system
from .events import (
    SessionEventBus, EventLogger, SessionMetrics,
    EventType, SessionEvent, SessionStartedEvent, StateChangedEvent,
    MessageAppendedEvent, InterimTranscriptEvent, CaptureRestartedEvent,
    ErrorOccurredEvent, SessionEndedEvent, FeedbackReadyEvent
)

# Session controller
from .session import InterviewSession

__all__ = [
    # Session controller
    "InterviewSession",

    # Data models
    "Role", "Message", "SessionConfig",

    # Schemas and state
    "SessionState", "FeedbackReport", "parse_feedback_report",

    # History and prompts
    "DialogueHistory", "InterviewPrompts",

    # Events
    "SessionEventBus", "EventLogger", "SessionMetrics",
    "EventType", "SessionEvent", "SessionStartedEvent", "StateChangedEvent",
    "MessageAppendedEvent", "InterimTranscriptEvent", "CaptureRestartedEvent",
    "ErrorOccurredEvent", "SessionEndedEvent", "FeedbackReadyEvent",
]
