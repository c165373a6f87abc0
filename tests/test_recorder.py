import asyncio

import numpy as np
import pytest

from mock_interviewer.infrastructure.audio.capture import (
    CaptureErrorKind, DiscreteRecorder, ListeningIntent, open_error_kind
)
from mock_interviewer.infrastructure.audio.speech.stt import wav_to_pcm16
from mock_interviewer.infrastructure.backend import BackendError
from mock_interviewer.interview.testing import MockStreamFactory, MockTurnExchange


def _tone(seconds=0.1, sr=48000):
    t = np.arange(int(seconds * sr)) / sr
    return 0.1 * np.sin(2 * np.pi * 220 * t)


def _recorder(transcripts=None, factory=None, timeout=5.0):
    exchange = MockTurnExchange(transcripts=transcripts)
    factory = factory or MockStreamFactory()
    recorder = DiscreteRecorder(exchange.transcribe, stream_factory=factory, timeout=timeout)
    intent = ListeningIntent()
    events = {"text": [], "error": [], "pending": 0}

    def _on_pending():
        events["pending"] += 1

    recorder.bind(
        intent,
        on_text=events["text"].append,
        on_error=lambda kind, detail: events["error"].append(kind),
        on_pending=_on_pending,
    )
    return recorder, intent, factory, exchange, events


@pytest.mark.asyncio
async def test_recording_is_transcribed_after_release():
    recorder, intent, factory, exchange, events = _recorder(transcripts=["I have five years of Python"])
    intent.assert_()

    assert await recorder.begin()
    assert recorder.is_active
    factory.last.feed(_tone())
    await recorder.end()

    assert not recorder.is_active
    assert factory.last.closed
    assert events["pending"] == 1
    await recorder.wait_idle()
    assert events["text"] == ["I have five years of Python"]

    frames, sr = wav_to_pcm16(exchange.transcribe_calls[0].wav_bytes)
    assert sr == 16000
    assert len(frames) == 2 * 1600


@pytest.mark.asyncio
async def test_empty_recording_is_discarded():
    recorder, intent, factory, exchange, events = _recorder()
    intent.assert_()
    await recorder.begin()
    await recorder.end()
    await recorder.wait_idle()

    assert events == {"text": [], "error": [], "pending": 0}
    assert exchange.transcribe_calls == []


@pytest.mark.asyncio
async def test_blank_transcript_is_no_speech():
    recorder, intent, factory, _, events = _recorder(transcripts=["   "])
    intent.assert_()
    await recorder.begin()
    factory.last.feed(_tone())
    await recorder.end()
    await recorder.wait_idle()

    assert events["text"] == []
    assert events["error"] == [CaptureErrorKind.NO_SPEECH]


@pytest.mark.asyncio
async def test_transcription_failure_is_reported():
    recorder, intent, factory, _, events = _recorder(transcripts=[BackendError("server down")])
    intent.assert_()
    await recorder.begin()
    factory.last.feed(_tone())
    await recorder.end()
    await recorder.wait_idle()

    assert events["error"] == [CaptureErrorKind.TRANSCRIPTION_FAILED]


@pytest.mark.asyncio
async def test_transcription_timeout_is_reported():
    async def _slow(audio):
        await asyncio.sleep(1.0)
        return "too late"

    recorder = DiscreteRecorder(_slow, stream_factory=MockStreamFactory(), timeout=0.05)
    intent = ListeningIntent()
    errors = []
    recorder.bind(intent, on_text=lambda text: None, on_error=lambda kind, detail: errors.append(kind))
    intent.assert_()
    await recorder.begin()
    recorder._stream_factory.last.feed(_tone())
    await recorder.end()
    await recorder.wait_idle()

    assert errors == [CaptureErrorKind.TRANSCRIPTION_FAILED]


@pytest.mark.asyncio
async def test_abort_drops_pending_transcript():
    recorder, intent, factory, _, events = _recorder(transcripts=["never delivered"])
    intent.assert_()
    await recorder.begin()
    factory.last.feed(_tone())
    await recorder.end()
    recorder.abort()
    await recorder.wait_idle()

    assert events["text"] == []
    assert events["error"] == []


@pytest.mark.asyncio
async def test_denied_microphone_clears_intent():
    factory = MockStreamFactory(error=PermissionError("Microphone access denied"))
    recorder, intent, _, _, events = _recorder(factory=factory)
    intent.assert_()

    assert not await recorder.begin()
    assert not intent.asserted
    assert not recorder.is_active
    assert events["error"] == [CaptureErrorKind.PERMISSION_DENIED]


@pytest.mark.asyncio
async def test_stream_closed_when_intent_dropped_while_opening():
    recorder, intent, factory, _, _ = _recorder()

    assert not await recorder.begin()
    assert factory.last.closed
    assert not recorder.is_active


@pytest.mark.asyncio
async def test_begin_twice_keeps_one_stream_open():
    recorder, intent, factory, _, _ = _recorder()
    intent.assert_()
    await recorder.begin()
    await recorder.begin()

    assert len(factory.streams) == 2
    assert factory.streams[0].closed
    assert not factory.streams[1].closed


@pytest.mark.asyncio
async def test_overlapping_begins_keep_one_stream_open():
    recorder, intent, factory, _, _ = _recorder()
    intent.assert_()

    results = await asyncio.gather(recorder.begin(), recorder.begin())

    assert all(results)
    open_streams = [s for s in factory.streams if not s.closed]
    assert len(open_streams) == 1
    assert recorder._stream is open_streams[0]

    await recorder.end()
    assert all(s.closed for s in factory.streams)


@pytest.mark.asyncio
async def test_stream_closed_when_start_fails():
    factory = MockStreamFactory(start_error=RuntimeError("Invalid device"))
    recorder, intent, _, _, events = _recorder(factory=factory)
    intent.assert_()

    assert not await recorder.begin()
    assert factory.last.closed
    assert not recorder.is_active
    assert not intent.asserted
    assert events["error"] == [CaptureErrorKind.DEVICE]


@pytest.mark.parametrize("error, kind", [
    (PermissionError("denied"), CaptureErrorKind.PERMISSION_DENIED),
    (OSError("Permission denied by system"), CaptureErrorKind.PERMISSION_DENIED),
    (OSError("Error querying device -1"), CaptureErrorKind.DEVICE),
])
def test_open_error_kind(error, kind):
    assert open_error_kind(error) is kind
