"""Tests for the client ↔ provider bridge."""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError

from notescribe.relay.bridge import UPSTREAM_FAILURE_CLOSE_CODE, RelayBridge
from notescribe.relay.config import RelayConfig
from tests.mocks import FakeConnection, settle

SESSION_CREATED = '{"type": "session.created", "session": {"id": "sess_1"}}'
APPEND = '{"type": "input_audio_buffer.append", "audio": "AAABAA=="}'


class UpstreamConnector:
  """Hands out a prepared upstream connection and records how it was requested."""

  def __init__(self, upstream: FakeConnection | None = None, error: Exception | None = None):
    self.upstream = upstream
    self.error = error
    self.calls = []

  async def __call__(self, uri, **kwargs):
    self.calls.append((uri, kwargs))
    if self.error is not None:
      raise self.error
    return self.upstream


@pytest.fixture
def config():
  return RelayConfig().with_api_key("sk-test")


@pytest.fixture
def client():
  return FakeConnection()


@pytest.fixture
def upstream():
  return FakeConnection()


@pytest.fixture
def bridge(client, upstream, config):
  return RelayBridge(client, config, connect_upstream=UpstreamConnector(upstream))


async def start(bridge: RelayBridge) -> asyncio.Task:
  task = asyncio.create_task(bridge.run())
  await settle()
  return task


def sent_types(connection: FakeConnection) -> list[str]:
  return [json.loads(message)["type"] for message in connection.sent]


@pytest.mark.asyncio
class TestUpstreamConnection:
  """Test how the bridge opens the provider connection."""

  async def test_connects_with_credentials(self, client, upstream, config):
    connector = UpstreamConnector(upstream)
    bridge = RelayBridge(client, config, connect_upstream=connector)
    task = await start(bridge)

    uri, kwargs = connector.calls[0]
    assert uri == "wss://api.openai.com/v1/realtime?model=gpt-4o-realtime-preview-2024-12-17"
    assert kwargs["additional_headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["additional_headers"]["OpenAI-Beta"] == "realtime=v1"

    client.finish()
    await task

  async def test_connect_failure_reports_error_and_closes_client(self, client, config):
    connector = UpstreamConnector(error=OSError("unreachable"))
    bridge = RelayBridge(client, config, connect_upstream=connector)

    await bridge.run()

    assert sent_types(client) == ["error"]
    error = json.loads(client.sent[0])["error"]
    assert error["type"] == "relay_error"
    assert error["message"] == "Failed to connect to transcription provider"
    assert client.close_code == UPSTREAM_FAILURE_CLOSE_CODE


@pytest.mark.asyncio
class TestSessionConfiguration:
  """Test the one-time session configuration."""

  async def test_session_created_triggers_one_update(self, bridge, client, upstream):
    task = await start(bridge)

    upstream.feed(SESSION_CREATED)
    upstream.feed(SESSION_CREATED)
    await settle()

    assert sent_types(upstream) == ["session.update"]
    session = json.loads(upstream.sent[0])["session"]
    assert session["modalities"] == ["text"]
    assert session["input_audio_format"] == "pcm16"
    assert session["input_audio_transcription"] == {"model": "whisper-1"}
    assert session["turn_detection"]["silence_duration_ms"] == 700
    assert bridge.session_configured

    client.finish()
    await task

  async def test_session_created_is_not_forwarded(self, bridge, client, upstream):
    task = await start(bridge)

    upstream.feed(SESSION_CREATED)
    await settle()

    assert client.sent == []
    client.finish()
    await task


@pytest.mark.asyncio
class TestForwarding:
  """Test message forwarding in both directions."""

  async def test_transcript_events_forwarded_verbatim(self, bridge, client, upstream):
    task = await start(bridge)
    messages = [
      '{"type":"conversation.item.input_audio_transcription.delta","delta":"Hel","item_id":"i1"}',
      '{"type": "response.audio_transcript.delta",  "delta": "lo "}',
      '{"type": "conversation.item.input_audio_transcription.completed", "transcript": "Hello"}',
      '{"type": "conversation.item.created", "item": {"content": []}}',
      '{"type": "error", "error": {"message": "rate limited"}}',
    ]

    for message in messages:
      upstream.feed(message)
    await settle()

    assert client.sent == messages
    client.finish()
    await task

  async def test_malformed_payloads_forwarded_by_type(self, bridge, client, upstream):
    """Test that forwarding depends on the type tag only, not on payload shape."""
    task = await start(bridge)
    messages = [
      '{"type": "error", "error": "invalid_api_key"}',
      '{"type": "conversation.item.created", "item": {"content": null}}',
      '{"type": "conversation.item.input_audio_transcription.delta", "delta": 5}',
    ]

    for message in messages:
      upstream.feed(message)
    await settle()

    assert client.sent == messages
    client.finish()
    await task

  async def test_session_created_with_unexpected_payload_still_configures(
    self, bridge, client, upstream
  ):
    task = await start(bridge)

    upstream.feed('{"type": "session.created", "session": "opaque"}')
    await settle()

    assert sent_types(upstream) == ["session.update"]
    client.finish()
    await task

  async def test_other_events_are_not_forwarded(self, bridge, client, upstream):
    task = await start(bridge)

    upstream.feed('{"type": "input_audio_buffer.speech_started", "audio_start_ms": 0}')
    upstream.feed('{"type": "response.created"}')
    upstream.feed("not json at all")
    await settle()

    assert client.sent == []
    client.finish()
    await task

  async def test_client_audio_forwarded_upstream(self, bridge, client, upstream):
    task = await start(bridge)

    client.feed(APPEND)
    client.feed(APPEND)
    await settle()

    assert upstream.sent == [APPEND, APPEND]
    client.finish()
    await task


@pytest.mark.asyncio
class TestTeardown:
  """Test that either leg closing ends the pairing."""

  async def test_client_disconnect_closes_upstream(self, bridge, client, upstream):
    task = await start(bridge)

    client.finish()
    await task

    assert upstream.closed
    assert client.closed

  async def test_upstream_failure_notifies_client(self, bridge, client, upstream):
    task = await start(bridge)

    upstream.finish(ConnectionClosedError(None, None))
    await task

    assert sent_types(client) == ["error"]
    assert json.loads(client.sent[0])["error"]["message"] == (
      "Transcription provider connection error"
    )
    assert client.close_code == UPSTREAM_FAILURE_CLOSE_CODE

  async def test_upstream_clean_close_closes_client(self, bridge, client, upstream):
    task = await start(bridge)

    upstream.finish()
    await task

    assert client.closed
    assert client.sent == []

  async def test_close_is_idempotent(self, bridge, client, upstream):
    task = await start(bridge)
    client.finish()
    await task

    await bridge.close()
    assert client.closed and upstream.closed


@pytest.mark.asyncio
async def test_recorder_receives_client_audio(client, upstream, config):
  class Recorder:
    def __init__(self):
      self.messages = []
      self.closed = False

    def record(self, message):
      self.messages.append(message)

    def close(self):
      self.closed = True

  recorder = Recorder()
  bridge = RelayBridge(
    client, config, connect_upstream=UpstreamConnector(upstream), recorder=recorder
  )
  task = await start(bridge)

  client.feed(APPEND)
  await settle()
  client.finish()
  await task

  assert recorder.messages == [APPEND]
  assert recorder.closed
