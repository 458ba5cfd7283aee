"""
Client ↔ provider bridge.

Each accepted client connection gets its own bridge, which opens its own upstream connection to
the transcription provider. Nothing is shared between bridges. Traffic flows through two pump
tasks:

  client  ──audio appends──▶  bridge  ──verbatim──▶  provider
  client  ◀──transcript events (verbatim)──  bridge  ◀──events──  provider

The provider's ``session.created`` triggers exactly one ``session.update`` carrying the
transcription-only configuration. When either leg closes the pairing ends; nothing reconnects.
"""

import asyncio
from collections.abc import Awaitable, Callable

from websockets.asyncio.client import ClientConnection
from websockets.asyncio.client import connect as websocket_connect
from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from notescribe.common import get_logger
from notescribe.errors import ParseError
from notescribe.relay.config import RelayConfig
from notescribe.relay.debug_audio import DebugAudioRecorder
from notescribe.wire import (
  FORWARDED_EVENT_TYPES,
  ErrorDetail,
  ErrorEvent,
  read_event_type,
  serialize_message,
)

type UpstreamConnector = Callable[..., Awaitable[ClientConnection]]

UPSTREAM_FAILURE_CLOSE_CODE = 1011
SESSION_CREATED = "session.created"


class RelayBridge:
  """Pairs one client connection with one upstream provider connection."""

  def __init__(
    self,
    client: ServerConnection,
    config: RelayConfig,
    connect_upstream: UpstreamConnector = websocket_connect,
    recorder: DebugAudioRecorder | None = None,
  ) -> None:
    """
    :param client: The accepted client connection.
    :param config: Relay configuration; must carry an upstream API key.
    :param connect_upstream: Opens the provider connection given a URI and handshake headers.
    :param recorder: Optional sink for a debug copy of the client's audio.
    """
    self.client = client
    self.config = config
    self.upstream: ClientConnection | None = None
    self.session_configured = False
    self._connect_upstream = connect_upstream
    self._recorder = recorder
    self._closed = False
    self.logger = get_logger("relay/bridge", websocket_id=str(client.id))

  async def run(self) -> None:
    """Bridge traffic until either leg closes, then close both."""
    self.logger.info("Opening upstream connection", model=self.config.upstream.model)
    try:
      self.upstream = await self._connect_upstream(
        self.config.upstream.uri,
        additional_headers=self.config.upstream.headers(),
      )
    except Exception:
      self.logger.exception("Failed to connect to transcription provider")
      await self._report_upstream_failure("Failed to connect to transcription provider")
      await self.close()
      return

    self.logger.info("Upstream connected")
    pumps = [
      asyncio.create_task(self._pump_client()),
      asyncio.create_task(self._pump_upstream(self.upstream)),
    ]
    try:
      done, _ = await asyncio.wait(pumps, return_when=asyncio.FIRST_COMPLETED)
      for task in done:
        task.result()
    finally:
      for task in pumps:
        if not task.done():
          task.cancel()
      await asyncio.gather(*pumps, return_exceptions=True)
      await self.close()

  async def close(self) -> None:
    """Close both legs. Idempotent."""
    if self._closed:
      return
    self._closed = True

    if self.upstream is not None:
      await self.upstream.close()
    await self.client.close()
    if self._recorder is not None:
      self._recorder.close()
    self.logger.info("Bridge closed", session_configured=self.session_configured)

  async def configure_session(self) -> None:
    """Send the session configuration upstream, once per pairing."""
    if self.session_configured:
      self.logger.warning("Ignoring repeated session.created")
      return
    if self.upstream is None:
      return

    self.session_configured = True
    message = self.config.session.to_message()
    await self.upstream.send(serialize_message(message))
    self.logger.info(
      "Session configured",
      transcription_model=message.session.input_audio_transcription.model,
      silence_duration_ms=message.session.turn_detection.silence_duration_ms,
    )

  async def handle_upstream_message(self, message: str | bytes) -> None:
    """
    Configure on ``session.created``; forward transcript events to the client verbatim.

    Only the ``type`` tag decides what happens. Payloads are interpreted by the client.
    """
    try:
      event_type = read_event_type(message)
    except ParseError:
      self.logger.warning("Dropping untagged upstream message", exc_info=True)
      return

    if event_type == SESSION_CREATED:
      await self.configure_session()
      return

    if event_type not in FORWARDED_EVENT_TYPES:
      self.logger.debug("Not forwarding upstream event", type=event_type)
      return

    if event_type == "error":
      self.logger.warning("Provider reported an error")
    else:
      self.logger.debug("Forwarding upstream event", type=event_type)
    await self._send_to_client(message)

  async def _pump_client(self) -> None:
    try:
      async for message in self.client:
        await self._forward_to_upstream(message)
    except ConnectionClosed as e:
      self.logger.debug("Client connection closed abnormally", error=str(e))
      return
    self.logger.info("Client disconnected")

  async def _pump_upstream(self, upstream: ClientConnection) -> None:
    try:
      async for message in upstream:
        await self.handle_upstream_message(message)
    except ConnectionClosed as e:
      self.logger.warning("Upstream connection lost", error=str(e))
      await self._report_upstream_failure("Transcription provider connection error")
      return
    self.logger.info("Upstream closed")

  async def _forward_to_upstream(self, message: str | bytes) -> None:
    upstream = self.upstream
    if upstream is None or upstream.state is not State.OPEN:
      return

    if self._recorder is not None:
      self._recorder.record(message)

    try:
      await upstream.send(message)
    except ConnectionClosed:
      self.logger.debug("Upstream closed while forwarding client message")

  async def _send_to_client(self, message: str | bytes) -> None:
    try:
      await self.client.send(message)
    except ConnectionClosed:
      self.logger.debug("Client closed while forwarding upstream event")

  async def _report_upstream_failure(self, reason: str) -> None:
    """Tell the client why the pairing is ending, then close the client leg."""
    error = ErrorEvent(type="error", error=ErrorDetail(message=reason, type="relay_error"))
    await self._send_to_client(serialize_message(error))
    await self.client.close(code=UPSTREAM_FAILURE_CLOSE_CODE, reason=reason)
