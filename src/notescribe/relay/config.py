"""
Relay configuration.

Settings are loaded once at startup from an optional YAML file, overridden from the command line,
and completed with the provider credential from the environment.
"""

from urllib.parse import urlencode

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator, validate_call
from pydantic.types import FilePath

from notescribe.common import get_logger
from notescribe.wire import (
  InputAudioTranscription,
  SessionSettings,
  SessionUpdate,
  TurnDetection,
)

logger = get_logger("cfg")

DEFAULT_INSTRUCTIONS = (
  "You are a transcription assistant. Transcribe the user's speech accurately. "
  "Only transcribe, do not respond."
)


class UpstreamConfig(BaseModel):
  """Connection settings for the realtime transcription provider."""

  url: str = "wss://api.openai.com/v1/realtime"
  """Realtime WebSocket endpoint, without query string."""

  model: str = "gpt-4o-realtime-preview-2024-12-17"
  """Realtime model the session is opened against."""

  api_key: SecretStr | None = None
  """Provider credential. Never sent to clients; normally injected from the environment."""

  @field_validator("url")
  @classmethod
  def validate_url(cls, value: str) -> str:
    if not value.startswith(("ws://", "wss://")):
      raise ValueError(f"upstream url must use ws:// or wss://, got {value!r}")
    return value

  @property
  def uri(self) -> str:
    """The full upstream URI including the model selector."""
    return f"{self.url}?{urlencode({'model': self.model})}"

  def headers(self) -> dict[str, str]:
    """Handshake headers authenticating the relay to the provider."""
    if self.api_key is None:
      raise ValueError("No upstream API key configured")
    return {
      "Authorization": f"Bearer {self.api_key.get_secret_value()}",
      "OpenAI-Beta": "realtime=v1",
    }


class SessionConfig(BaseModel):
  """The transcription session the relay requests once the upstream session exists."""

  instructions: str = DEFAULT_INSTRUCTIONS
  """Directive keeping the model to transcription only."""

  transcription_model: str = "whisper-1"
  """Sub-model producing input audio transcripts."""

  input_audio_format: str = "pcm16"
  """Encoding of client audio frames."""

  turn_detection: TurnDetection = Field(default_factory=TurnDetection)
  """Voice activity detection settings that decide when an utterance is completed."""

  def to_message(self) -> SessionUpdate:
    return SessionUpdate(
      session=SessionSettings(
        modalities=["text"],
        instructions=self.instructions,
        input_audio_format=self.input_audio_format,
        input_audio_transcription=InputAudioTranscription(model=self.transcription_model),
        turn_detection=self.turn_detection,
      )
    )


class RelayConfig(BaseModel):
  """Top-level relay configuration. Built once at startup and passed to the server."""

  host: str = "0.0.0.0"
  """Interface to listen on."""

  port: int = Field(default=9090, gt=0, le=65535)
  """Port to listen on."""

  path: str = "/realtime-transcribe"
  """Request path clients connect to."""

  health_path: str = "/health"
  """Request path answered with a plain 200 for liveness probes."""

  debug_audio_path: str | None = None
  """When set, client audio is also written to ``<prefix>_<connection>_<timestamp>.wav``."""

  upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
  session: SessionConfig = Field(default_factory=SessionConfig)

  @field_validator("path", "health_path")
  @classmethod
  def validate_path(cls, value: str) -> str:
    if not value.startswith("/"):
      raise ValueError(f"paths must start with '/', got {value!r}")
    return value

  def with_api_key(self, api_key: str | None) -> "RelayConfig":
    """Return a copy carrying the given upstream credential (unchanged if ``api_key`` is empty)."""
    if not api_key:
      return self
    upstream = self.upstream.model_copy(update={"api_key": SecretStr(api_key)})
    return self.model_copy(update={"upstream": upstream})

  def pretty_print(self) -> None:
    """Log every effective setting at INFO level, with the credential masked."""
    logger.info("=" * 60)
    logger.info("NOTESCRIBE RELAY CONFIGURATION")
    logger.info("=" * 60)

    logger.info("LISTENER:")
    logger.info(f"  Address: {self.host}:{self.port}")
    logger.info(f"  Path: {self.path}")
    logger.info(f"  Health Path: {self.health_path}")
    logger.info(f"  Debug Audio: {self.debug_audio_path or 'disabled'}")

    logger.info("UPSTREAM:")
    logger.info(f"  URL: {self.upstream.url}")
    logger.info(f"  Model: {self.upstream.model}")
    logger.info(f"  API Key: {'set' if self.upstream.api_key else 'MISSING'}")

    logger.info("SESSION:")
    logger.info(f"  Transcription Model: {self.session.transcription_model}")
    logger.info(f"  Input Audio Format: {self.session.input_audio_format}")
    vad = self.session.turn_detection
    logger.info(f"  VAD Threshold: {vad.threshold}")
    logger.info(f"  VAD Prefix Padding: {vad.prefix_padding_ms}ms")
    logger.info(f"  VAD Silence Duration: {vad.silence_duration_ms}ms")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> RelayConfig:
  """Load and validate relay configuration from a YAML file."""

  logger.info("Loading relay configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)

  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except Exception as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  if config_data is None:
    raise ValueError("Configuration file is empty")

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  return RelayConfig.model_validate(config_data)
