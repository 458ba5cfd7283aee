"""
Client side of a realtime transcription session.

A session owns one relay connection and one audio capture. Audio blocks are encoded and sent
only while the connection is open; inbound transcript events are applied to a note sink in
arrival order. Errors are reported through a callback rather than raised.

Lifecycle::

  IDLE --connect()--> CONNECTING --handshake--> OPEN --disconnect() / close / error--> CLOSED

A closed session never reopens. Create a new one to reconnect.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Protocol

import numpy as np
from websockets.asyncio.client import ClientConnection
from websockets.asyncio.client import connect as websocket_connect
from websockets.exceptions import ConnectionClosed

from notescribe.client.audio import AudioCapture, BlockHandler
from notescribe.client.note import NoteSink
from notescribe.common import get_logger
from notescribe.errors import (
  MicrophoneAccessError,
  ParseError,
  RelayConnectionError,
  TranscriptionError,
  UpstreamTranscriptionError,
)
from notescribe.wire import (
  ConversationItemCreatedEvent,
  ErrorEvent,
  InputAudioBufferAppend,
  ResponseTranscriptDeltaEvent,
  TranscriptionCompletedEvent,
  TranscriptionDeltaEvent,
  deserialize_event,
  encode_pcm16,
  serialize_message,
)

GENERIC_UPSTREAM_ERROR = "Unknown transcription error"


class SessionState(Enum):
  IDLE = "idle"
  CONNECTING = "connecting"
  OPEN = "open"
  CLOSED = "closed"


class Capture(Protocol):
  def start(self) -> None: ...

  def stop(self) -> None: ...


type ErrorHandler = Callable[[TranscriptionError], None]
type CaptureFactory = Callable[[BlockHandler], Capture]
type Connector = Callable[[str], Awaitable[ClientConnection]]


class TranscriptionSession:
  """One logical dictation session against a notescribe relay."""

  def __init__(
    self,
    url: str,
    note: NoteSink,
    on_error: ErrorHandler,
    capture_factory: CaptureFactory = AudioCapture,
    connect: Connector = websocket_connect,
  ):
    """
    :param url: WebSocket URL of the relay endpoint.
    :param note: Sink receiving transcript text.
    :param on_error: Called with every surfaced error. Upstream errors leave the session open;
      connection and microphone errors arrive after the session has been torn down.
    :param capture_factory: Builds the audio capture given a per-block handler.
    :param connect: Opens the relay connection.
    """
    self.url = url
    self.note = note
    self.on_error = on_error
    self._capture_factory = capture_factory
    self._connect = connect

    self._state = SessionState.IDLE
    self._ws: ClientConnection | None = None
    self._capture: Capture | None = None
    self._loop: asyncio.AbstractEventLoop | None = None
    self._outbox: asyncio.Queue[str] | None = None
    self._background_tasks: set[asyncio.Task[Any]] = set()
    self._closed = asyncio.Event()
    self.logger = get_logger("client/session", url=url)

  @property
  def state(self) -> SessionState:
    return self._state

  def get_connection_state(self) -> bool:
    """Whether the session currently considers itself open."""
    return self._state is SessionState.OPEN

  async def connect(self) -> None:
    """
    Open the relay connection and start capturing audio.

    Failures are reported through ``on_error``; this coroutine does not raise for them.

    :raises RuntimeError: If the session has already been used.
    """
    if self._state is not SessionState.IDLE:
      raise RuntimeError(f"Session is {self._state.value}; create a new session to reconnect")

    self._state = SessionState.CONNECTING
    self._loop = asyncio.get_running_loop()
    self.logger.info("Connecting to relay")

    try:
      ws = await self._connect(self.url)
    except Exception as e:
      self.logger.exception("Failed to connect to relay")
      await self._fail(RelayConnectionError(f"Failed to connect: {e}"))
      return

    if self._state is not SessionState.CONNECTING:
      # disconnect() ran while the handshake was in flight
      await ws.close()
      return

    self._ws = ws
    self._outbox = asyncio.Queue()
    self._state = SessionState.OPEN
    self.logger.info("Connected to relay")

    self._spawn(self._receive_loop(ws))
    self._spawn(self._send_loop(ws, self._outbox))
    await self._start_capture()

  async def disconnect(self) -> None:
    """Stop capture, close the connection and drop all references. Idempotent."""
    if self._state is not SessionState.CLOSED:
      self.logger.info("Disconnecting from relay")
    await self._teardown()

  async def wait_closed(self) -> None:
    """Wait until the session has been torn down for any reason."""
    await self._closed.wait()

  async def __aenter__(self) -> "TranscriptionSession":
    await self.connect()
    return self

  async def __aexit__(self, *exc_info) -> None:
    await self.disconnect()

  def handle_message(self, message: str | bytes) -> None:
    """Apply one inbound relay message to the note, or report it as an error."""
    try:
      event = deserialize_event(message)
    except ParseError:
      self.logger.warning("Dropping unparseable message", exc_info=True)
      return

    match event:
      case TranscriptionCompletedEvent(transcript=text) if text:
        self.note.append_utterance(text)
      case ConversationItemCreatedEvent(transcript=text) if text:
        self.note.append_utterance(text)
      case TranscriptionDeltaEvent(delta=text) | ResponseTranscriptDeltaEvent(delta=text) if text:
        self.note.append_delta(text)
      case ErrorEvent():
        self._report(UpstreamTranscriptionError(event.error_message or GENERIC_UPSTREAM_ERROR))
      case _:
        self.logger.debug("Ignoring event", type=event.type)

  def handle_audio_block(self, samples: np.ndarray) -> None:
    """Encode one captured block and queue it for sending. Dropped unless the session is open."""
    if self._state is not SessionState.OPEN or self._outbox is None:
      return

    message = InputAudioBufferAppend(audio=encode_pcm16(samples))
    self._outbox.put_nowait(serialize_message(message))

  def _on_capture_block(self, samples: np.ndarray) -> None:
    """Capture-thread entry point; hops the block onto the session's event loop."""
    loop = self._loop
    if loop is None or loop.is_closed():
      return

    try:
      loop.call_soon_threadsafe(self.handle_audio_block, samples)
    except RuntimeError:
      # Loop closed between the check and the call; the block is dropped.
      pass

  async def _start_capture(self) -> None:
    capture = self._capture_factory(self._on_capture_block)
    try:
      capture.start()
    except MicrophoneAccessError as e:
      capture.stop()
      await self._fail(e)
      return

    self._capture = capture

  async def _send_loop(self, ws: ClientConnection, outbox: asyncio.Queue[str]) -> None:
    while True:
      message = await outbox.get()
      if self._state is not SessionState.OPEN:
        return

      try:
        await ws.send(message)
      except ConnectionClosed:
        # The receive loop observes the close and reports it.
        return
      except Exception:
        if self._state is SessionState.OPEN:
          self.logger.exception("Error sending to relay")
          await self._fail(RelayConnectionError("Failed to send audio"))
        return

  async def _receive_loop(self, ws: ClientConnection) -> None:
    try:
      async for message in ws:
        self.handle_message(message)
    except ConnectionClosed as e:
      if self._state is SessionState.OPEN:
        self.logger.warning("Relay connection lost", code=e.rcvd.code if e.rcvd else None)
        await self._fail(RelayConnectionError("Connection error"))
      return
    except Exception:
      if self._state is SessionState.OPEN:
        self.logger.exception("Error receiving from relay")
        await self._fail(RelayConnectionError("Connection error"))
      return

    if self._state is SessionState.OPEN:
      await self._fail(RelayConnectionError("Connection closed by relay"))

  def _spawn(self, coro) -> None:
    task = asyncio.create_task(coro)
    self._background_tasks.add(task)
    task.add_done_callback(self._background_tasks.discard)

  def _report(self, error: TranscriptionError) -> None:
    self.logger.error("Transcription session error", kind=type(error).__name__, error=str(error))
    self.on_error(error)

  async def _fail(self, error: TranscriptionError) -> None:
    self._report(error)
    await self._teardown()

  async def _teardown(self) -> None:
    self._state = SessionState.CLOSED

    capture, self._capture = self._capture, None
    if capture is not None:
      try:
        capture.stop()
      except Exception:
        self.logger.exception("Error stopping audio capture")

    ws, self._ws = self._ws, None
    self._outbox = None
    self._loop = None
    if ws is not None:
      await ws.close()

    current = asyncio.current_task()
    pending = [task for task in self._background_tasks if task is not current]
    for task in pending:
      task.cancel()
    if pending:
      await asyncio.gather(*pending, return_exceptions=True)

    self._closed.set()
