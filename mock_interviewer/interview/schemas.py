"""
Session state and structured schemas for the interview system.
"""
import json
from enum import Enum
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field, ValidationError, field_validator


class SessionState(str, Enum):
    """What the session is doing right now."""
    NOT_STARTED = "not_started"
    AWAITING_CANDIDATE = "awaiting_candidate"
    CAPTURING_AUDIO = "capturing_audio"
    AWAITING_BACKEND_REPLY = "awaiting_backend_reply"
    SPEAKING = "speaking"
    ENDED = "ended"


class FeedbackReport(BaseModel):
    """Performance report produced once at the end of a session."""
    rating: int = Field(ge=0, le=100)
    summary: str
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @field_validator("strengths", "weaknesses", "improvements", mode="before")
    @classmethod
    def _single_item_as_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value

    @property
    def rating_label(self) -> str:
        """Rating band shown next to the score."""
        if self.rating >= 90:
            return "Excellent"
        if self.rating >= 80:
            return "Very Good"
        if self.rating >= 60:
            return "Good"
        if self.rating >= 40:
            return "Fair"
        return "Needs Improvement"


def parse_feedback_report(raw: Union[str, Dict[str, Any]]) -> FeedbackReport:
    """
    Parse a feedback payload into a report with robust error handling.

    Args:
        raw: Decoded JSON object or raw text that contains one

    Returns:
        FeedbackReport object

    Raises:
        ValueError: If the payload cannot be turned into a valid report
    """
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            # Models like to wrap JSON in prose or code fences
            start = raw.find("{")
            end = raw.rfind("}")
            if start == -1 or end <= start:
                raise ValueError(f"No JSON found in feedback response: {raw}")
            try:
                data = json.loads(raw[start:end + 1])
            except json.JSONDecodeError:
                raise ValueError(f"Could not extract valid JSON from feedback response: {raw}")
    else:
        data = raw

    if not isinstance(data, dict):
        raise ValueError(f"Feedback payload must be an object, got {type(data).__name__}")

    try:
        return FeedbackReport.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid feedback structure: {e}")
