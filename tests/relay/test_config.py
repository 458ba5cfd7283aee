"""Tests for the relay configuration module."""

from pathlib import Path

import pytest

from notescribe.relay.config import (
  DEFAULT_INSTRUCTIONS,
  RelayConfig,
  SessionConfig,
  UpstreamConfig,
  load_config_from_file,
)


@pytest.fixture
def fake_filesystem(fs):
  """Variable name 'fs' causes a pylint warning. Provide a longer name
  acceptable to pylint for use in tests.
  """
  yield fs


class TestUpstreamConfig:
  """Test UpstreamConfig validation and functionality."""

  def test_upstream_config_defaults(self):
    config = UpstreamConfig()

    assert config.url == "wss://api.openai.com/v1/realtime"
    assert config.model == "gpt-4o-realtime-preview-2024-12-17"
    assert config.api_key is None

  def test_uri_includes_model(self):
    config = UpstreamConfig(url="ws://localhost:8000/v1/realtime", model="test-model")
    assert config.uri == "ws://localhost:8000/v1/realtime?model=test-model"

  def test_url_must_be_websocket(self):
    with pytest.raises(ValueError, match="ws:// or wss://"):
      UpstreamConfig(url="https://api.openai.com/v1/realtime")

  def test_headers_carry_bearer_token(self):
    config = UpstreamConfig(api_key="sk-secret")
    assert config.headers() == {
      "Authorization": "Bearer sk-secret",
      "OpenAI-Beta": "realtime=v1",
    }

  def test_headers_require_api_key(self):
    with pytest.raises(ValueError, match="No upstream API key"):
      UpstreamConfig().headers()

  def test_api_key_is_masked_in_repr(self):
    config = UpstreamConfig(api_key="sk-secret")
    assert "sk-secret" not in repr(config)


class TestSessionConfig:
  """Test the session configuration message."""

  def test_defaults(self):
    config = SessionConfig()

    assert config.instructions == DEFAULT_INSTRUCTIONS
    assert config.transcription_model == "whisper-1"
    assert config.turn_detection.threshold == 0.5
    assert config.turn_detection.prefix_padding_ms == 300
    assert config.turn_detection.silence_duration_ms == 700

  def test_to_message(self):
    message = SessionConfig(transcription_model="custom-asr").to_message()

    assert message.type == "session.update"
    assert message.session.modalities == ["text"]
    assert message.session.input_audio_format == "pcm16"
    assert message.session.input_audio_transcription.model == "custom-asr"
    assert message.session.turn_detection.type == "server_vad"

  def test_threshold_validation(self):
    with pytest.raises(ValueError):
      SessionConfig(turn_detection={"threshold": 1.5})


class TestRelayConfig:
  """Test RelayConfig validation and functionality."""

  def test_relay_config_defaults(self):
    config = RelayConfig()

    assert config.host == "0.0.0.0"
    assert config.port == 9090
    assert config.path == "/realtime-transcribe"
    assert config.health_path == "/health"
    assert config.debug_audio_path is None

  def test_port_validation(self):
    with pytest.raises(ValueError):
      RelayConfig(port=0)
    with pytest.raises(ValueError):
      RelayConfig(port=70000)

  def test_path_validation(self):
    with pytest.raises(ValueError, match="must start with '/'"):
      RelayConfig(path="realtime")

  def test_with_api_key(self):
    config = RelayConfig().with_api_key("sk-secret")
    assert config.upstream.api_key.get_secret_value() == "sk-secret"

  def test_with_empty_api_key_keeps_config(self):
    config = RelayConfig()
    assert config.with_api_key(None) is config
    assert config.with_api_key("") is config

  def test_pretty_print(self):
    RelayConfig().with_api_key("sk-secret").pretty_print()


class TestLoadConfigFromFile:
  """Test loading configuration from YAML files."""

  def test_load_valid_config(self, fake_filesystem):
    config_content = """
port: 9191
path: /transcribe
debug_audio_path: /tmp/relay-audio
upstream:
  model: gpt-4o-mini-realtime-preview
session:
  transcription_model: gpt-4o-transcribe
  turn_detection:
    silence_duration_ms: 500
"""
    fake_filesystem.create_file("/config.yaml", contents=config_content)

    config = load_config_from_file(Path("/config.yaml"))

    assert config.port == 9191
    assert config.path == "/transcribe"
    assert config.debug_audio_path == "/tmp/relay-audio"
    assert config.upstream.model == "gpt-4o-mini-realtime-preview"
    assert config.session.transcription_model == "gpt-4o-transcribe"
    assert config.session.turn_detection.silence_duration_ms == 500
    assert config.session.turn_detection.threshold == 0.5

  def test_load_nonexistent_file(self, fake_filesystem):
    with pytest.raises(ValueError, match="Path does not point to a file"):
      load_config_from_file(Path("/nonexistent.yaml"))

  def test_load_empty_file(self, fake_filesystem):
    fake_filesystem.create_file("/empty.yaml", contents="")

    with pytest.raises(ValueError, match="Configuration file is empty"):
      load_config_from_file(Path("/empty.yaml"))

  def test_load_invalid_yaml(self, fake_filesystem):
    fake_filesystem.create_file("/invalid.yaml", contents="port: [unclosed")

    with pytest.raises(ValueError, match="Invalid YAML"):
      load_config_from_file(Path("/invalid.yaml"))

  def test_load_non_dict_yaml(self, fake_filesystem):
    fake_filesystem.create_file("/list.yaml", contents="- one\n- two\n")

    with pytest.raises(ValueError, match="must contain a YAML dictionary"):
      load_config_from_file(Path("/list.yaml"))

  def test_load_invalid_values(self, fake_filesystem):
    fake_filesystem.create_file("/bad.yaml", contents="port: -1\n")

    with pytest.raises(ValueError):
      load_config_from_file(Path("/bad.yaml"))
