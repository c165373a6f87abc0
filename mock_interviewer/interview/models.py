"""
Data models for the interview system.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..config import DEFAULT_ROLE


class Role(str, Enum):
    """Author of a message."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One entry of the dialogue history."""
    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class SessionConfig:
    """Interview context chosen before the session starts. Never mutated afterwards."""
    role: str = DEFAULT_ROLE
    skills: str = ""
    job_description: str = ""
    resume_text: str = ""
    voice: Optional[str] = None
    avatar: Optional[str] = None

    def __post_init__(self):
        # A blank role still needs something to greet the candidate with
        if not (self.role or "").strip():
            object.__setattr__(self, "role", DEFAULT_ROLE)
        else:
            object.__setattr__(self, "role", self.role.strip())

    def to_context(self) -> Dict[str, Any]:
        """Wire form sent with every backend call."""
        return {
            "role": self.role,
            "skills": self.skills,
            "jobDescription": self.job_description,
            "resumeText": self.resume_text,
            "selectedVoice": self.voice,
            "selectedAvatar": self.avatar,
        }
