import asyncio

import numpy as np
import pytest

from mock_interviewer.infrastructure.audio.capture import (
    CaptureErrorKind, ContinuousRecognizer, DiscreteRecorder
)
from mock_interviewer.infrastructure.audio.speech import VoiceCatalog
from mock_interviewer.infrastructure.backend import BackendError
from mock_interviewer.interview import EventType, InterviewSession, SessionState
from mock_interviewer.interview.models import Role, SessionConfig
from mock_interviewer.interview.testing import (
    MockAudioCapture, MockRecognitionEngine, MockSpeechOutput, MockStreamFactory,
    MockTurnExchange, create_mock_session, sample_feedback_report
)

GREETING = "Hello! I'm your AI Interviewer for the Backend Engineer position. Please introduce yourself."


def _events(session, event_type):
    received = []
    session.event_bus.subscribe(event_type, received.append)
    return received


async def _started(setup):
    session, speech = setup["session"], setup["speech"]
    await session.start()
    speech.finish()
    assert session.state is SessionState.AWAITING_CANDIDATE
    return session


@pytest.mark.asyncio
async def test_start_greets_candidate(mock_setup):
    session, speech = mock_setup["session"], mock_setup["speech"]
    assert session.state is SessionState.NOT_STARTED

    assert await session.start()

    assert session.state is SessionState.SPEAKING
    assert [m.content for m in session.messages] == [GREETING]
    assert session.messages[0].role is Role.ASSISTANT
    assert speech.spoken_texts == [GREETING]
    assert speech.warmed

    speech.finish()
    assert session.state is SessionState.AWAITING_CANDIDATE


@pytest.mark.asyncio
async def test_second_start_is_ignored(mock_setup):
    session = await _started(mock_setup)
    assert not await session.start()
    assert len(session.messages) == 1
    assert session.state is SessionState.AWAITING_CANDIDATE


@pytest.mark.asyncio
async def test_greeting_uses_default_role_when_blank():
    setup = create_mock_session(SessionConfig(role="  "))
    await setup["session"].start()
    assert setup["session"].messages[0].content == (
        "Hello! I'm your AI Interviewer for the Software Engineer position. Please introduce yourself."
    )


@pytest.mark.asyncio
async def test_typed_answer_round_trip(mock_setup):
    exchange = mock_setup["exchange"]
    exchange.replies = ["What does a Python decorator do?"]
    session = await _started(mock_setup)

    assert await session.submit_text("  I'm Sam, a backend developer.  ")
    assert session.state is SessionState.AWAITING_BACKEND_REPLY
    await session.wait_idle()

    assert session.state is SessionState.SPEAKING
    assert [(m.role, m.content) for m in session.messages] == [
        (Role.ASSISTANT, GREETING),
        (Role.USER, "I'm Sam, a backend developer."),
        (Role.ASSISTANT, "What does a Python decorator do?"),
    ]
    call = exchange.chat_calls[0]
    assert call["message"] == "I'm Sam, a backend developer."
    assert [m.content for m in call["history"]] == [GREETING]
    assert mock_setup["speech"].spoken_texts[-1] == "What does a Python decorator do?"


@pytest.mark.asyncio
async def test_history_alternates_after_each_turn(mock_setup):
    session, speech, exchange = mock_setup["session"], mock_setup["speech"], mock_setup["exchange"]
    await _started(mock_setup)

    for n in range(1, 4):
        assert await session.submit_text(f"answer {n}")
        await session.wait_idle()
        speech.finish()
        assert len(session.messages) == 2 * n + 1
        assert len(exchange.chat_calls[-1]["history"]) == 2 * n - 1

    roles = [m.role for m in session.messages]
    assert roles == [Role.ASSISTANT, Role.USER] * 3 + [Role.ASSISTANT]


@pytest.mark.asyncio
async def test_blank_text_is_rejected(mock_setup):
    session = await _started(mock_setup)
    assert not await session.submit_text("   ")
    assert session.state is SessionState.AWAITING_CANDIDATE
    assert mock_setup["exchange"].chat_calls == []


@pytest.mark.asyncio
async def test_intents_before_start_are_rejected(mock_setup):
    session = mock_setup["session"]
    assert not await session.toggle_mic()
    assert not await session.submit_text("hello")
    assert await session.end() is None
    assert session.state is SessionState.NOT_STARTED
    assert mock_setup["reports"] == []


@pytest.mark.asyncio
async def test_mic_interrupts_the_interviewer(mock_setup):
    session, speech, capture = mock_setup["session"], mock_setup["speech"], mock_setup["capture"]
    await session.start()
    assert session.is_speaking

    assert await session.toggle_mic()

    assert session.state is SessionState.CAPTURING_AUDIO
    assert session.is_listening
    assert not session.is_speaking
    assert speech.cancel_count == 1
    assert session.intent.asserted


@pytest.mark.asyncio
async def test_toggle_off_without_speech_returns_the_floor(mock_setup):
    session, capture = await _started(mock_setup), mock_setup["capture"]
    await session.toggle_mic()
    assert await session.toggle_mic()

    assert session.state is SessionState.AWAITING_CANDIDATE
    assert not session.intent.asserted
    assert capture.end_calls == 1
    assert len(session.messages) == 1


@pytest.mark.asyncio
async def test_spoken_answer_releases_the_mic(mock_setup):
    session, capture = await _started(mock_setup), mock_setup["capture"]
    await session.toggle_mic()

    capture.say("I mostly write Python services")

    assert session.state is SessionState.AWAITING_BACKEND_REPLY
    assert not session.is_listening
    assert not session.intent.asserted
    await session.wait_idle()
    assert session.messages[1].content == "I mostly write Python services"


@pytest.mark.asyncio
async def test_no_overlapping_turns_while_waiting_for_reply(mock_setup):
    session, exchange = await _started(mock_setup), mock_setup["exchange"]
    exchange.gate = asyncio.Event()
    await session.submit_text("first answer")
    assert [m.content for m in session.messages][1:] == ["first answer"]

    assert not await session.toggle_mic()
    assert not await session.submit_text("second answer")
    mock_setup["capture"].say("stray transcript")
    await asyncio.sleep(0)
    assert len(exchange.chat_calls) == 1
    assert len(session.messages) == 2

    exchange.gate.set()
    await session.wait_idle()
    assert [m.content for m in session.messages][1:] == ["first answer", "Tell me more about that."]


@pytest.mark.asyncio
async def test_text_while_speaking_preempts_speech(mock_setup):
    session, speech = mock_setup["session"], mock_setup["speech"]
    await session.start()

    assert await session.submit_text("Sorry to interrupt")

    assert speech.cancel_count == 1
    assert session.state is SessionState.AWAITING_BACKEND_REPLY
    await session.wait_idle()


@pytest.mark.asyncio
async def test_text_while_listening_drops_the_recording(mock_setup):
    session, capture = await _started(mock_setup), mock_setup["capture"]
    await session.toggle_mic()

    assert await session.submit_text("typed instead")

    assert capture.abort_calls == 1
    assert not session.is_listening
    assert not session.intent.asserted
    await session.wait_idle()


@pytest.mark.asyncio
async def test_captured_text_while_speaking_is_ignored(mock_setup):
    session, capture = mock_setup["session"], mock_setup["capture"]
    await session.start()
    capture.say("echo of the greeting")
    assert session.state is SessionState.SPEAKING
    assert len(session.messages) == 1


@pytest.mark.asyncio
async def test_chat_failure_keeps_user_message(mock_setup):
    session, exchange = await _started(mock_setup), mock_setup["exchange"]
    errors = _events(session, EventType.ERROR_OCCURRED)
    exchange.replies = [BackendError("Interview server error 500")]

    await session.submit_text("My answer")
    await session.wait_idle()

    assert session.state is SessionState.AWAITING_CANDIDATE
    assert [m.role for m in session.messages] == [Role.ASSISTANT, Role.USER]
    assert errors[0].data["component"] == "chat_turn"
    assert errors[0].data["error_type"] == "BackendError"
    assert await session.submit_text("Let me try again")


@pytest.mark.asyncio
async def test_reply_timeout_returns_the_floor():
    setup = create_mock_session(reply_timeout=0.05)
    session, exchange = await _started(setup), setup["exchange"]
    errors = _events(session, EventType.ERROR_OCCURRED)
    exchange.gate = asyncio.Event()

    await session.submit_text("Hello?")
    await session.wait_idle()

    assert session.state is SessionState.AWAITING_CANDIDATE
    assert errors[0].data["error_type"] == "TimeoutError"
    assert len(session.messages) == 2


@pytest.mark.asyncio
async def test_denied_microphone_is_reported():
    setup = create_mock_session(capture=MockAudioCapture(grant=False))
    session = await _started(setup)
    errors = _events(session, EventType.ERROR_OCCURRED)

    assert not await session.toggle_mic()

    assert session.state is SessionState.AWAITING_CANDIDATE
    assert not session.intent.asserted
    assert errors[0].data["error_type"] == "permission_denied"
    assert errors[0].data["component"] == "audio_capture"


def _tone(seconds=0.2, sr=48000):
    t = np.arange(int(seconds * sr)) / sr
    return 0.1 * np.sin(2 * np.pi * 220 * t)


def _recorder_setup(transcripts):
    exchange = MockTurnExchange(transcripts=transcripts, replies=["Which framework did you use?"])
    factory = MockStreamFactory()
    setup = create_mock_session(
        capture=DiscreteRecorder(exchange.transcribe, stream_factory=factory),
        exchange=exchange,
    )
    setup["factory"] = factory
    return setup


@pytest.mark.asyncio
async def test_recorded_answer_is_transcribed_and_answered():
    setup = _recorder_setup(["I built a REST API with Flask"])
    session, factory = await _started(setup), setup["factory"]

    await session.toggle_mic()
    assert session.is_listening
    factory.last.feed(_tone())
    await session.toggle_mic()

    assert not session.is_listening
    assert session.state is SessionState.AWAITING_BACKEND_REPLY
    await session.wait_idle()

    assert session.state is SessionState.SPEAKING
    assert [m.content for m in session.messages][1:] == [
        "I built a REST API with Flask", "Which framework did you use?"
    ]
    assert setup["exchange"].chat_calls[0]["message"] == "I built a REST API with Flask"


@pytest.mark.asyncio
async def test_silent_recording_returns_the_floor_quietly():
    setup = _recorder_setup([""])
    session, factory = await _started(setup), setup["factory"]
    errors = _events(session, EventType.ERROR_OCCURRED)

    await session.toggle_mic()
    factory.last.feed(_tone())
    await session.toggle_mic()
    await session.wait_idle()

    assert session.state is SessionState.AWAITING_CANDIDATE
    assert errors == []
    assert len(session.messages) == 1
    assert setup["exchange"].chat_calls == []


@pytest.mark.asyncio
async def test_empty_recording_is_not_sent():
    setup = _recorder_setup(["unused"])
    session = await _started(setup)

    await session.toggle_mic()
    await session.toggle_mic()
    await session.wait_idle()

    assert session.state is SessionState.AWAITING_CANDIDATE
    assert setup["exchange"].transcribe_calls == []


@pytest.mark.asyncio
async def test_transcription_failure_is_reported():
    setup = _recorder_setup([BackendError("speech service unavailable")])
    session, factory = await _started(setup), setup["factory"]
    errors = _events(session, EventType.ERROR_OCCURRED)

    await session.toggle_mic()
    factory.last.feed(_tone())
    await session.toggle_mic()
    await session.wait_idle()

    assert session.state is SessionState.AWAITING_CANDIDATE
    assert errors[0].data["component"] == "transcribe"
    assert len(session.messages) == 1


@pytest.mark.asyncio
async def test_continuous_capture_restarts_until_an_answer_arrives():
    engine = MockRecognitionEngine()
    setup = create_mock_session(capture=ContinuousRecognizer(engine))
    session = await _started(setup)
    restarts = _events(session, EventType.CAPTURE_RESTARTED)
    interim = _events(session, EventType.INTERIM_TRANSCRIPT)

    await session.toggle_mic()
    engine.error(CaptureErrorKind.NO_SPEECH)
    engine.finish()
    assert session.state is SessionState.CAPTURING_AUDIO
    assert restarts[0].data["restarts"] == 1

    engine.result("I like", is_final=False)
    engine.result("I like Rust", is_final=True)

    assert interim[0].data["text"] == "I like"
    assert not engine.is_running
    assert session.state is SessionState.AWAITING_BACKEND_REPLY
    await session.wait_idle()
    assert session.messages[1].content == "I like Rust"


@pytest.mark.asyncio
async def test_mic_and_speaker_never_overlap(mock_setup):
    session, capture, speech = mock_setup["session"], mock_setup["capture"], mock_setup["speech"]
    overlaps = []
    session.event_bus.subscribe_all(
        lambda event: overlaps.append(event) if capture.is_active and speech.is_speaking else None
    )

    await session.start()
    await session.toggle_mic()
    capture.say("first answer")
    await session.wait_idle()
    await session.toggle_mic()
    await session.submit_text("typed answer")
    await session.wait_idle()
    await session.end()

    assert overlaps == []


@pytest.mark.asyncio
async def test_feedback_after_interview(mock_setup):
    session, exchange = await _started(mock_setup), mock_setup["exchange"]
    exchange.report = sample_feedback_report(72)
    ready = _events(session, EventType.FEEDBACK_READY)

    await session.submit_text("I optimise SQL queries for a living")
    await session.wait_idle()
    report = await session.end()

    assert report.rating == 72
    assert report.rating_label == "Good"
    assert mock_setup["reports"] == [report]
    assert len(exchange.feedback_calls[0]) == 3
    assert ready[0].data == {"rating": 72, "available": True}
    assert session.state is SessionState.ENDED


@pytest.mark.asyncio
async def test_end_while_speaking_silences_everything(mock_setup):
    session, speech, capture = mock_setup["session"], mock_setup["speech"], mock_setup["capture"]
    await _started(mock_setup)
    await session.submit_text("answer")
    await session.wait_idle()
    assert session.is_speaking

    await session.end()

    assert not session.is_speaking
    assert not session.is_listening
    assert capture.abort_calls >= 1
    assert speech.cancel_count == 1


@pytest.mark.asyncio
async def test_end_is_delivered_once(mock_setup):
    session = await _started(mock_setup)
    await session.submit_text("answer")
    await session.wait_idle()

    first = await session.end()
    second = await session.end()

    assert first is not None
    assert second is None
    assert mock_setup["reports"] == [first]
    assert len(mock_setup["exchange"].feedback_calls) == 1


@pytest.mark.asyncio
async def test_greeting_only_has_no_feedback(mock_setup):
    session = await _started(mock_setup)
    errors = _events(session, EventType.ERROR_OCCURRED)

    assert await session.end() is None

    assert mock_setup["reports"] == [None]
    assert mock_setup["exchange"].feedback_calls == []
    assert errors[0].data["error_type"] == "FeedbackValidationError"


@pytest.mark.asyncio
async def test_feedback_failure_reports_none(mock_setup):
    session, exchange = await _started(mock_setup), mock_setup["exchange"]
    exchange.report = BackendError("Interview server error 502")
    await session.submit_text("answer")
    await session.wait_idle()

    assert await session.end() is None
    assert mock_setup["reports"] == [None]


@pytest.mark.asyncio
async def test_late_reply_after_end_is_discarded(mock_setup):
    session, exchange, speech = await _started(mock_setup), mock_setup["exchange"], mock_setup["speech"]
    exchange.gate = asyncio.Event()
    await session.submit_text("answer")
    turn = session._turn_task

    await session.end()
    exchange.gate.set()
    await turn

    assert session.state is SessionState.ENDED
    assert [m.role for m in session.messages] == [Role.ASSISTANT, Role.USER]
    assert speech.spoken_texts == [GREETING]


@pytest.mark.asyncio
async def test_intents_after_end_are_rejected(mock_setup):
    session, capture = await _started(mock_setup), mock_setup["capture"]
    await session.submit_text("answer")
    await session.wait_idle()
    await session.end()

    assert not await session.toggle_mic()
    assert not await session.submit_text("one more thing")
    capture.say("late transcript")
    capture.fail(CaptureErrorKind.DEVICE, "late error")
    assert session.state is SessionState.ENDED
    assert len(session.messages) == 3


@pytest.mark.asyncio
async def test_voice_catalog_released_at_end(mock_setup):
    catalog = VoiceCatalog.shared(lambda: [])
    session = await _started(mock_setup)
    await session.submit_text("answer")
    await session.wait_idle()
    await session.end()

    assert VoiceCatalog.shared(lambda: []) is not catalog


@pytest.mark.asyncio
async def test_session_passes_voice_hint():
    setup = create_mock_session(SessionConfig(role="QA", voice="en-US-Neural2-F"))
    await setup["session"].start()
    assert setup["speech"].spoken == [(
        "Hello! I'm your AI Interviewer for the QA position. Please introduce yourself.", "en-US-Neural2-F"
    )]


@pytest.mark.asyncio
async def test_speech_finishes_on_its_own_with_auto_finish():
    setup = create_mock_session(speech=MockSpeechOutput(auto_finish=True))
    session = setup["session"]
    await session.start()
    await session.wait_idle()
    assert session.state is SessionState.AWAITING_CANDIDATE


def test_each_session_has_its_own_id():
    a = create_mock_session()["session"]
    b = create_mock_session()["session"]
    assert isinstance(a, InterviewSession)
    assert a.session_id != b.session_id


@pytest.mark.asyncio
async def test_spoken_introduction_scenario(mock_setup):
    session, capture, speech, exchange = (
        mock_setup["session"], mock_setup["capture"], mock_setup["speech"], mock_setup["exchange"]
    )
    exchange.replies = ["Great, let's dig into React."]
    await session.start()

    await session.toggle_mic()
    capture.say("I have five years of experience")
    await session.wait_idle()

    assert [(m.role, m.content) for m in session.messages] == [
        (Role.ASSISTANT, GREETING),
        (Role.USER, "I have five years of experience"),
        (Role.ASSISTANT, "Great, let's dig into React."),
    ]
    assert speech.spoken_texts == [GREETING, "Great, let's dig into React."]
    assert session.state is SessionState.SPEAKING


@pytest.mark.asyncio
async def test_answer_is_in_history_before_submit_returns(mock_setup):
    session = await _started(mock_setup)
    appended = _events(session, EventType.MESSAGE_APPENDED)

    await session.submit_text("I have five years of experience")

    assert [m.role for m in session.messages] == [Role.ASSISTANT, Role.USER]
    assert appended[0].data["content"] == "I have five years of experience"
    await session.wait_idle()


@pytest.mark.asyncio
async def test_end_right_after_answer_scores_it_without_a_chat_turn(mock_setup):
    session, exchange = await _started(mock_setup), mock_setup["exchange"]
    await session.submit_text("I have five years of experience")
    turn = session._turn_task

    report = await session.end()
    await turn

    assert report is not None
    assert [m.content for m in exchange.feedback_calls[0]] == [GREETING, "I have five years of experience"]
    assert exchange.chat_calls == []
    assert len(session.messages) == 2
    assert session.state is SessionState.ENDED


@pytest.mark.asyncio
async def test_quick_mic_toggles_leave_one_microphone_open():
    setup = _recorder_setup(["unused"])
    session, factory = await _started(setup), setup["factory"]

    first = asyncio.create_task(session.toggle_mic())
    await asyncio.sleep(0)
    await session.toggle_mic()
    second = asyncio.create_task(session.toggle_mic())
    await asyncio.gather(first, second)

    open_streams = [s for s in factory.streams if not s.closed]
    assert len(open_streams) == 1
    assert session.state is SessionState.CAPTURING_AUDIO
    assert session.is_listening

    await session.end()
    assert all(s.closed for s in factory.streams)
