"""Tests for dictation CLI argument parsing."""

import pytest

from notescribe.client.__main__ import DEFAULT_RELAY_URL, parse_audio_device, parse_relay_url


class TestParseRelayUrl:
  """Test relay URL validation."""

  @pytest.mark.parametrize(
    "value",
    [
      DEFAULT_RELAY_URL,
      "wss://relay.example.com/realtime-transcribe",
      "ws://10.0.0.5:9090/realtime-transcribe",
    ],
  )
  def test_valid_urls(self, value):
    assert parse_relay_url(value) == value

  def test_strips_whitespace(self):
    assert parse_relay_url("  ws://localhost:9090/x \n") == "ws://localhost:9090/x"

  @pytest.mark.parametrize(
    "value,message",
    [
      ("", "cannot be empty"),
      ("   ", "cannot be empty"),
      ("http://localhost:9090", "scheme must be ws or wss"),
      ("localhost:9090", "scheme must be ws or wss"),
      ("ws://", "missing hostname"),
      ("ws://localhost:70000/x", "port must be between 0 and 65535"),
    ],
  )
  def test_invalid_urls(self, value, message):
    with pytest.raises(ValueError, match=message):
      parse_relay_url(value)

  def test_rejects_non_string(self):
    with pytest.raises(ValueError, match="Relay must be a string"):
      parse_relay_url(["ws://a", "ws://b"])


class TestParseAudioDevice:
  def test_default_means_system_default(self):
    assert parse_audio_device("default") is None

  def test_numeric_selects_device_index(self):
    assert parse_audio_device("4") == 4

  def test_name_passes_through(self):
    assert parse_audio_device("USB Microphone") == "USB Microphone"
