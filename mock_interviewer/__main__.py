#!/usr/bin/env python3
"""
Main entry point for the mock interviewer.
Allows running the package with: python -m mock_interviewer
"""
import asyncio
import os
import sys
from typing import Optional

from .config import Config, get_config, DEFAULT_ROLE
from .interview import InterviewSession, SessionConfig, EventType, SessionEvent, FeedbackReport
from .infrastructure.audio.capture import ContinuousRecognizer, DiscreteRecorder
from .infrastructure.audio.speech import SpeechOutput
from .infrastructure.backend import HttpTurnExchange, TurnExchange, VertexTurnExchange
from .infrastructure.llm import VertexRestClient
from .utils import setup_logging

HELP_TEXT = "Type an answer and press Enter, /mic to toggle the microphone, /end to finish."


def load_resume(value: str) -> str:
    """`--resume` takes either a path to a text file or the resume text itself."""
    if value and os.path.isfile(value):
        with open(value, "r", encoding="utf-8") as f:
            return f.read().strip()
    return value.strip()


def build_exchange(config: Config) -> TurnExchange:
    """Create the backend selected in the configuration."""
    if config.backend == "vertex":
        llm_client = VertexRestClient(
            project=config.google_cloud_project,
            location=config.vertex_location,
            model=config.model_name,
            credentials_json=config.google_application_credentials,
        )
        return VertexTurnExchange(llm_client, language_code=config.language_code)
    return HttpTurnExchange(base_url=config.api_base_url)


def build_capture(config: Config, exchange: TurnExchange):
    """Create the microphone strategy selected in the configuration."""
    if config.capture_mode == "continuous":
        from .infrastructure.audio.capture.streaming import GoogleStreamingEngine
        return ContinuousRecognizer(GoogleStreamingEngine(language_code=config.language_code))
    return DiscreteRecorder(exchange.transcribe, timeout=config.reply_timeout_seconds)


def print_event(event: SessionEvent) -> None:
    """Console transcript of the session."""
    if event.event_type == EventType.MESSAGE_APPENDED:
        prefix = "🤖 Interviewer" if event.data["role"] == "assistant" else "👤 You"
        print(f"\n{prefix}: {event.data['content']}")
    elif event.event_type == EventType.INTERIM_TRANSCRIPT:
        print(f"   … {event.data['text']}")
    elif event.event_type == EventType.ERROR_OCCURRED:
        print(f"\n❌ {event.data['component']}: {event.data['error_message']}")
    elif event.event_type == EventType.STATE_CHANGED:
        current = event.data["current"]
        if current == "capturing_audio":
            print("🎙️  Listening... (/mic to stop)")
        elif current == "awaiting_backend_reply":
            print("🤔 Thinking...")


def print_report(report: Optional[FeedbackReport]) -> None:
    print("\n" + "=" * 50)
    if report is None:
        print("📋 No feedback available for this session")
        print("=" * 50)
        return
    print("🎯 INTERVIEW COMPLETE")
    print("=" * 50)
    print(f"🔢 Rating: {report.rating}/100 ({report.rating_label})")
    print(f"📝 Summary: {report.summary}")
    for title, items in (("Strengths", report.strengths),
                         ("Weaknesses", report.weaknesses),
                         ("Improvements", report.improvements)):
        if items:
            print(f"\n{title}:")
            for item in items:
                print(f"  • {item}")


async def run_console(session: InterviewSession, log_file: str) -> Optional[FeedbackReport]:
    """Drive a session from the keyboard until /end or end of input."""
    session.event_bus.subscribe_all(print_event)

    print(f"\n🎙️  Starting interview for: {session.config.role}")
    print(f"📝 Detailed logs: {log_file}")
    print(HELP_TEXT)
    print("=" * 50)
    await session.start()

    while True:
        try:
            line = await asyncio.to_thread(input, "")
        except EOFError:
            break
        command = line.strip()
        if not command:
            continue
        if command == "/end":
            break
        if command == "/mic":
            if not await session.toggle_mic():
                print(f"   (microphone unavailable while {session.state.value.replace('_', ' ')})")
            continue
        if not await session.submit_text(command):
            print("   (please wait for the interviewer)")

    print("\n📊 Generating feedback...")
    report = await session.end()
    print_report(report)
    print(f"📈 Session metrics: {session.metrics.get_metrics()}")
    return report


def main():
    """Command-line interface for the interview session."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    role, skills, job_description, resume_text, voice = DEFAULT_ROLE, "", "", "", None
    use_tts = config.enable_tts
    for arg in sys.argv[1:]:
        if arg.startswith("--role="):
            role = arg.split("=", 1)[1]
        elif arg.startswith("--skills="):
            skills = arg.split("=", 1)[1]
        elif arg.startswith("--job="):
            job_description = arg.split("=", 1)[1]
        elif arg.startswith("--resume="):
            resume_text = load_resume(arg.split("=", 1)[1])
        elif arg.startswith("--voice="):
            voice = arg.split("=", 1)[1] or None
        elif arg == "--continuous":
            config.capture_mode = "continuous"
        elif arg == "--discrete":
            config.capture_mode = "discrete"
        elif arg in ("--text", "--no-tts"):
            use_tts = False
        elif arg in ("--tts", "--speech"):
            use_tts = True
        else:
            print(f"❌ Unknown argument: {arg}")
            print("   Usage: python -m mock_interviewer [--role=...] [--skills=...] [--job=...] "
                  "[--resume=FILE|TEXT] [--voice=...] [--continuous|--discrete] [--text]")
            sys.exit(1)

    log_file = setup_logging(config.log_file, config.log_level)

    if use_tts:
        print("🔊 TTS Mode: the interviewer speaks its replies (default)")
        print("   (Use --text or --no-tts to disable speech)")
    else:
        print("📝 Text Mode: replies are displayed as text only")
    print(f"🎧 Capture Mode: {config.capture_mode}")

    exchange = build_exchange(config)
    session = InterviewSession(
        SessionConfig(role=role, skills=skills, job_description=job_description,
                      resume_text=resume_text, voice=voice or config.tts_voice),
        capture=build_capture(config, exchange),
        speech=SpeechOutput(enabled=use_tts),
        exchange=exchange,
        reply_timeout=config.reply_timeout_seconds,
    )

    try:
        asyncio.run(run_console(session, log_file))
    except KeyboardInterrupt:
        print("\n👋 Interview interrupted")


if __name__ == "__main__":
    main()
