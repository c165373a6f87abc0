"""
Mock Interviewer: voice turn-taking interview sessions.

Runs a spoken mock interview against an LLM-backed interviewer, alternating
between listening to the candidate and speaking the interviewer's replies, and
produces a scored feedback report when the session ends.
"""

__version__ = "1.0.0"

# Main entry points (interview first: the infrastructure adapters depend on its models)
from .interview import InterviewSession, SessionConfig, SessionState, FeedbackReport
from .interview.models import Message, Role

__all__ = ["InterviewSession", "SessionConfig", "SessionState", "FeedbackReport", "Message", "Role"]
