import base64
import sys
import threading
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from studio.ai.client import GenerativeClient
from studio.ai.errors import AIBackendError
from studio.ai.live import LiveCallbacks, LiveSession


class FakeConnection:
    def __init__(self, events, gate=None):
        self.events = events
        self.gate = gate
        self.session_updates = []
        self.appended = []
        self.closed = False
        self.session = SimpleNamespace(update=lambda session: self.session_updates.append(session))
        self.input_audio_buffer = SimpleNamespace(append=lambda audio: self.appended.append(audio))

    def __iter__(self):
        if self.gate is not None:
            self.gate.wait(timeout=5)
        return iter(self.events)

    def close(self):
        self.closed = True


class FakeManager:
    def __init__(self, connection=None, error=None):
        self.connection = connection
        self.error = error

    def enter(self):
        if self.error:
            raise self.error
        return self.connection


def _event(kind, **fields):
    return SimpleNamespace(type=kind, **fields)


def _recording_callbacks(log):
    return LiveCallbacks(
        on_open=lambda: log.append(("open",)),
        on_audio=lambda chunk: log.append(("audio", chunk)),
        on_transcript=lambda event: log.append(("transcript", event.role, event.text)),
        on_turn_complete=lambda turn: log.append(("turn", turn.user, turn.model)),
        on_error=lambda error: log.append(("error", str(error))),
        on_close=lambda: log.append(("close",)),
    )


def test_events_become_callbacks_and_turns():
    audio = base64.b64encode(b"pcm").decode("ascii")
    connection = FakeConnection(
        [
            _event("conversation.item.input_audio_transcription.completed", transcript="Who is Kael?"),
            _event("response.audio_transcript.delta", delta="A detective"),
            _event("response.audio_transcript.delta", delta=" in the rain."),
            _event("response.audio.delta", delta=audio),
            _event("response.done"),
        ]
    )
    log = []
    session = LiveSession(FakeManager(connection), _recording_callbacks(log), instructions="Be brief.")

    session.start()
    session._reader.join(timeout=5)

    assert log[0] == ("open",)
    assert ("transcript", "user", "Who is Kael?") in log
    assert ("audio", b"pcm") in log
    assert ("turn", "Who is Kael?", "A detective in the rain.") in log
    assert log[-1] == ("close",)
    assert session.closed
    assert [(turn.user, turn.model) for turn in session.transcript] == [("Who is Kael?", "A detective in the rain.")]
    assert connection.session_updates[0]["instructions"] == "Be brief."


def test_send_audio_base64_encodes_pcm():
    gate = threading.Event()
    connection = FakeConnection([], gate=gate)
    session = LiveSession(FakeManager(connection), LiveCallbacks())
    session.start()

    session.send_audio(b"\x00\x01")

    assert connection.appended == [base64.b64encode(b"\x00\x01").decode("ascii")]
    gate.set()
    session.close()
    assert connection.closed
    with pytest.raises(AIBackendError):
        session.send_audio(b"\x00")


def test_close_is_idempotent_and_reports_close_once():
    gate = threading.Event()
    log = []
    session = LiveSession(FakeManager(FakeConnection([], gate=gate)), _recording_callbacks(log))
    session.start()
    gate.set()

    session.close()
    session.close()

    assert log.count(("close",)) == 1


def test_server_error_event_is_reported():
    error = SimpleNamespace(message="rate limited")
    log = []
    session = LiveSession(FakeManager(FakeConnection([_event("error", error=error)])), _recording_callbacks(log))

    session.start()
    session._reader.join(timeout=5)

    assert ("error", "rate limited") in log


def test_failed_connect_raises_backend_error():
    session = LiveSession(FakeManager(error=ConnectionError("refused")), LiveCallbacks())

    with pytest.raises(AIBackendError):
        session.start()


def test_failed_session_setup_closes_the_connection():
    connection = FakeConnection([])

    def reject(session):
        raise ValueError("unsupported session field")

    connection.session = SimpleNamespace(update=reject)
    session = LiveSession(FakeManager(connection), LiveCallbacks())

    with pytest.raises(AIBackendError):
        session.start()

    assert connection.closed is True
    assert session._reader is None


def test_client_opens_general_availability_sessions():
    gate = threading.Event()
    connection = FakeConnection([], gate=gate)
    connects = []

    def connect(model):
        connects.append(model)
        return FakeManager(connection)

    fake = SimpleNamespace(realtime=SimpleNamespace(connect=connect))
    client = GenerativeClient("sk-test", client=fake, live_model="live-model")

    session = client.open_live_session(LiveCallbacks(), instructions="Co-author")

    assert connects == ["live-model"]
    assert connection.session_updates[0]["type"] == "realtime"
    gate.set()
    session.close()
