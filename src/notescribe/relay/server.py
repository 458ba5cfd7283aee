"""WebSocket server that accepts dictation clients and runs one bridge per connection."""

import asyncio
from http import HTTPStatus

from websockets.asyncio.client import connect as websocket_connect
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed, InvalidMessage
from websockets.http11 import Request, Response

from notescribe.common import get_logger
from notescribe.relay.bridge import RelayBridge, UpstreamConnector
from notescribe.relay.config import RelayConfig
from notescribe.relay.debug_audio import DebugAudioRecorder


class RelayServer:
  """Accepts client connections and runs one isolated bridge per connection."""

  def __init__(
    self, config: RelayConfig, connect_upstream: UpstreamConnector = websocket_connect
  ) -> None:
    if config.upstream.api_key is None:
      raise ValueError("RelayServer requires an upstream API key")

    self.config = config
    self.bridges: dict[ServerConnection, RelayBridge] = {}
    self._connect_upstream = connect_upstream
    self.logger = get_logger("relay/server")

  def process_request(self, connection: ServerConnection, request: Request) -> Response | None:
    """Answer health probes and reject unknown paths before the WebSocket handshake."""
    path = request.path.split("?", 1)[0]
    if path == self.config.health_path:
      return connection.respond(HTTPStatus.OK, "OK\n")
    if path != self.config.path:
      self.logger.debug("Rejecting request for unknown path", path=path)
      return connection.respond(HTTPStatus.NOT_FOUND, "Not Found\n")
    return None

  def create_bridge(self, websocket: ServerConnection) -> RelayBridge:
    recorder = None
    if self.config.debug_audio_path:
      recorder = DebugAudioRecorder(self.config.debug_audio_path, str(websocket.id)[:8])
    return RelayBridge(
      websocket, self.config, connect_upstream=self._connect_upstream, recorder=recorder
    )

  async def handle_connection(self, websocket: ServerConnection) -> None:
    """Run a bridge for one client, logging rather than propagating per-connection failures."""
    bridge = self.create_bridge(websocket)
    self.bridges[websocket] = bridge
    self.logger.info(
      "Client connected",
      address=websocket.remote_address,
      websocket_id=str(websocket.id),
      active=len(self.bridges),
    )

    try:
      await bridge.run()
    except (EOFError, InvalidMessage):
      self.logger.debug("Connection failed handshake", websocket_id=str(websocket.id))
    except ConnectionClosed as e:
      self.logger.debug("Connection closed", error=str(e), websocket_id=str(websocket.id))
    except Exception:
      self.logger.exception("Connection unexpected error", websocket_id=str(websocket.id))
    finally:
      self.bridges.pop(websocket, None)
      await bridge.close()
      self.logger.info(
        "Client disconnected", websocket_id=str(websocket.id), active=len(self.bridges)
      )

  async def run(self) -> None:
    self.config.pretty_print()
    self.logger.info(
      "Starting relay server", host=self.config.host, port=self.config.port, path=self.config.path
    )
    async with serve(
      self.handle_connection,
      self.config.host,
      self.config.port,
      process_request=self.process_request,
    ):
      await asyncio.Future()  # run forever
