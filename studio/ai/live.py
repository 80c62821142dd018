"""Live voice conversation over the OpenAI realtime API.

A :class:`LiveSession` owns one realtime connection. Microphone audio is
pushed with :meth:`LiveSession.send_audio` (16-bit PCM); a background reader
turns server events into callbacks: audio chunks to play, incremental
transcript text for both speakers, and a completed turn once the model has
finished answering. Capturing and playing audio is the caller's business.
"""
from __future__ import annotations

import base64
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from .errors import AIBackendError

LOGGER = logging.getLogger(__name__)

AUDIO_DELTA_EVENTS = {"response.audio.delta", "response.output_audio.delta"}
MODEL_TRANSCRIPT_EVENTS = {"response.audio_transcript.delta", "response.output_audio_transcript.delta"}
USER_TRANSCRIPT_EVENT = "conversation.item.input_audio_transcription.completed"
TURN_DONE_EVENT = "response.done"
ERROR_EVENT = "error"

TRANSCRIPTION_MODEL = "whisper-1"


@dataclass(frozen=True)
class TranscriptEvent:
    role: str
    text: str
    final: bool


@dataclass
class TranscriptTurn:
    user: str = ""
    model: str = ""


@dataclass
class LiveCallbacks:
    on_open: Optional[Callable[[], None]] = None
    on_audio: Optional[Callable[[bytes], None]] = None
    on_transcript: Optional[Callable[[TranscriptEvent], None]] = None
    on_turn_complete: Optional[Callable[[TranscriptTurn], None]] = None
    on_error: Optional[Callable[[AIBackendError], None]] = None
    on_close: Optional[Callable[[], None]] = None


@dataclass
class _TurnState:
    current: TranscriptTurn = field(default_factory=TranscriptTurn)
    history: List[TranscriptTurn] = field(default_factory=list)


class LiveSession:
    def __init__(
        self,
        manager: Any,
        callbacks: LiveCallbacks,
        *,
        instructions: Optional[str] = None,
        general_availability: bool = False,
    ) -> None:
        self._manager = manager
        self._callbacks = callbacks
        self._instructions = instructions
        self._general_availability = general_availability
        self._connection: Any = None
        self._reader: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._turns = _TurnState()
        self._closed = False
        self._finished = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def transcript(self) -> List[TranscriptTurn]:
        return list(self._turns.history)

    def start(self) -> None:
        try:
            self._connection = self._manager.enter()
            self._connection.session.update(session=self._session_config())
        except Exception as exc:
            LOGGER.warning("Live session failed to open: %s", exc)
            self._abandon_connection()
            raise AIBackendError(f"Live session failed to open: {exc}") from exc

        self._reader = threading.Thread(target=self._pump, name="live-session-reader", daemon=True)
        self._reader.start()
        self._emit(self._callbacks.on_open)

    def _abandon_connection(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            connection.close()
        except Exception as exc:
            LOGGER.info("Ignoring error while closing a half-open live session: %s", exc)

    def _session_config(self) -> dict:
        if self._general_availability:
            config: dict = {
                "type": "realtime",
                "audio": {"input": {"transcription": {"model": TRANSCRIPTION_MODEL}}},
            }
        else:
            config = {"input_audio_transcription": {"model": TRANSCRIPTION_MODEL}}
        if self._instructions:
            config["instructions"] = self._instructions
        return config

    def send_audio(self, pcm_chunk: bytes) -> None:
        if self._closed or self._connection is None:
            raise AIBackendError("Live session is closed.")
        if not pcm_chunk:
            return
        encoded = base64.b64encode(pcm_chunk).decode("ascii")
        try:
            self._connection.input_audio_buffer.append(audio=encoded)
        except Exception as exc:
            LOGGER.warning("Failed to stream audio to the live session: %s", exc)
            raise AIBackendError(f"Failed to stream audio: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._connection is not None:
            try:
                self._connection.close()
            except Exception as exc:  # pragma: no cover - transport teardown
                LOGGER.info("Ignoring error while closing live session: %s", exc)
        reader = self._reader
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=5)
        self._finish()

    def _pump(self) -> None:
        try:
            for event in self._connection:
                if self._closed:
                    break
                self._dispatch(event)
        except Exception as exc:
            if not self._closed:
                LOGGER.warning("Live session stream failed: %s", exc)
                self._emit(self._callbacks.on_error, AIBackendError(f"Live session stream failed: {exc}"))
        finally:
            self._finish()

    def _dispatch(self, event: Any) -> None:
        event_type = getattr(event, "type", None)

        if event_type in AUDIO_DELTA_EVENTS:
            delta = getattr(event, "delta", "") or ""
            if delta:
                self._emit(self._callbacks.on_audio, base64.b64decode(delta))
        elif event_type in MODEL_TRANSCRIPT_EVENTS:
            delta = getattr(event, "delta", "") or ""
            self._turns.current.model += delta
            self._emit(self._callbacks.on_transcript, TranscriptEvent(role="model", text=delta, final=False))
        elif event_type == USER_TRANSCRIPT_EVENT:
            text = getattr(event, "transcript", "") or ""
            self._turns.current.user += text
            self._emit(self._callbacks.on_transcript, TranscriptEvent(role="user", text=text, final=True))
        elif event_type == TURN_DONE_EVENT:
            turn = self._turns.current
            self._turns.history.append(turn)
            self._turns.current = TranscriptTurn()
            self._emit(self._callbacks.on_turn_complete, turn)
        elif event_type == ERROR_EVENT:
            error = getattr(event, "error", None)
            message = getattr(error, "message", None) or "Live session reported an error."
            self._emit(self._callbacks.on_error, AIBackendError(message))

    def _finish(self) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._closed = True
        self._emit(self._callbacks.on_close)

    @staticmethod
    def _emit(callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is not None:
            callback(*args)


__all__ = ["LiveCallbacks", "LiveSession", "TranscriptEvent", "TranscriptTurn"]
