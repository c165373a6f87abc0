"""
Mock Interviewer Configuration
==============================

This file contains ALL configuration for the mock interview system.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the interviewer
# =============================================================================

# Backend: "http" talks to the interview server, "vertex" calls Gemini directly
BACKEND = "http"
API_BASE_URL = "http://localhost:5000"

# Only needed for the vertex backend
GOOGLE_CLOUD_PROJECT = None
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Capture: "discrete" records until the mic is toggled off, "continuous" streams recognition
CAPTURE_MODE = "discrete"

# Interview settings
DEFAULT_ROLE = "Software Engineer"
REPLY_TIMEOUT_SECONDS = 30.0
FEEDBACK_TIMEOUT_SECONDS = 90.0

# Speech settings
ENABLE_TTS = True
TTS_VOICE = "en-US-Neural2-G"
LANGUAGE_CODE = "en-US"

# Logging
LOG_FILE = "./_interview/session.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Audio capture
SAMPLE_RATE_CAPTURE = 48000
SAMPLE_RATE_TARGET = 16000
CHANNELS = 1
FRAME_MS = 30
TARGET_RMS = 0.06

# Voices tried after the session's own voice, before falling back to the first one listed
PREFERRED_VOICE_NAMES = ("en-US-Neural2-G", "en-US-Neural2-F", "en-US-Wavenet-F")

# TTS technical
SPEAKER_SAMPLE_RATE = 24000

# Endpoints of the interview server
CHAT_PATH = "/api/chat"
TRANSCRIBE_PATH = "/api/chat/transcribe"
FEEDBACK_PATH = "/api/chat/feedback"
HTTP_TIMEOUT = 60

# LLM
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.5-flash-lite"
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 512
CHAT_MAX_OUTPUT_TOKENS = 150
CHAT_TEMPERATURE = 0.7

VALID_BACKENDS = ("http", "vertex")
VALID_CAPTURE_MODES = ("discrete", "continuous")


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    backend: str = BACKEND
    api_base_url: str = API_BASE_URL
    google_cloud_project: Optional[str] = GOOGLE_CLOUD_PROJECT
    google_application_credentials: Optional[str] = GOOGLE_APPLICATION_CREDENTIALS
    capture_mode: str = CAPTURE_MODE
    reply_timeout_seconds: float = REPLY_TIMEOUT_SECONDS
    enable_tts: bool = ENABLE_TTS
    tts_voice: str = TTS_VOICE
    language_code: str = LANGUAGE_CODE
    vertex_location: str = VERTEX_LOCATION
    model_name: str = MODEL_NAME
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    def validate(self) -> None:
        """Raise ValueError for settings the session cannot run with."""
        if self.backend not in VALID_BACKENDS:
            raise ValueError(f"Unknown backend '{self.backend}', expected one of {VALID_BACKENDS}")
        if self.capture_mode not in VALID_CAPTURE_MODES:
            raise ValueError(f"Unknown capture mode '{self.capture_mode}', expected one of {VALID_CAPTURE_MODES}")
        if self.backend == "vertex" and not self.google_cloud_project:
            raise ValueError("Please set GOOGLE_CLOUD_PROJECT to use the vertex backend")
        if self.reply_timeout_seconds <= 0:
            raise ValueError("Reply timeout must be positive")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'")


def get_config() -> Config:
    """Load configuration from the environment, falling back to the settings above."""
    config = Config(
        backend=(os.getenv("INTERVIEW_BACKEND") or BACKEND).strip().lower(),
        api_base_url=os.getenv("INTERVIEW_API_URL") or API_BASE_URL,
        google_cloud_project=os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT,
        google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS,
        capture_mode=(os.getenv("INTERVIEW_CAPTURE_MODE") or CAPTURE_MODE).strip().lower(),
        reply_timeout_seconds=_env_float("INTERVIEW_REPLY_TIMEOUT", REPLY_TIMEOUT_SECONDS),
        log_file=os.getenv("INTERVIEW_LOG_FILE") or LOG_FILE,
    )
    config.validate()
    return config
