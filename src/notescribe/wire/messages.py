"""
Wire protocol message types.

The relay speaks the realtime transcription provider's event protocol on both legs: the client
sends audio append events, the relay sends one session configuration upstream, and transcript
events flow back to the client unchanged. Every message is a JSON object tagged by ``type``.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WireModel(BaseModel):
  """Base for wire models. Unknown provider fields are kept rather than rejected."""

  model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------------------------
# Client → relay → upstream
# ---------------------------------------------------------------------------------------------


class InputAudioBufferAppend(WireModel):
  """One encoded audio block appended to the provider's input buffer."""

  type: Literal["input_audio_buffer.append"] = "input_audio_buffer.append"

  audio: str
  """Base64-encoded little-endian PCM16 mono samples."""


class InputAudioTranscription(WireModel):
  model: str
  """Identifier of the transcription sub-model, e.g. ``whisper-1``."""


class TurnDetection(WireModel):
  """Server-side voice activity detection used to segment speech into utterances."""

  type: Literal["server_vad"] = "server_vad"

  threshold: float = Field(default=0.5, ge=0.0, le=1.0)
  """Activation threshold; higher values require louder audio to count as speech."""

  prefix_padding_ms: int = Field(default=300, ge=0)
  """Audio retained from before detected speech starts."""

  silence_duration_ms: int = Field(default=700, gt=0)
  """Trailing silence after which an utterance is considered completed."""


class SessionSettings(WireModel):
  modalities: list[str]
  instructions: str
  input_audio_format: str
  input_audio_transcription: InputAudioTranscription
  turn_detection: TurnDetection


class SessionUpdate(WireModel):
  """The one-time configuration the relay sends once the upstream session exists."""

  type: Literal["session.update"] = "session.update"
  session: SessionSettings


# ---------------------------------------------------------------------------------------------
# Upstream → relay → client
# ---------------------------------------------------------------------------------------------


class SessionCreatedEvent(WireModel):
  """Upstream session is ready. Consumed by the relay, never forwarded."""

  type: Literal["session.created"]


class TranscriptionCompletedEvent(WireModel):
  """A finalized utterance."""

  type: Literal["conversation.item.input_audio_transcription.completed"]
  transcript: str = ""


class TranscriptionDeltaEvent(WireModel):
  """Incremental token(s) from the input audio stream."""

  type: Literal["conversation.item.input_audio_transcription.delta"]
  delta: str = ""


class ResponseTranscriptDeltaEvent(WireModel):
  """Incremental token(s) echoed through the response channel."""

  type: Literal["response.audio_transcript.delta"]
  delta: str = ""


class ContentPart(WireModel):
  type: str
  transcript: str | None = None


class ConversationItem(WireModel):
  content: list[ContentPart] = Field(default_factory=list)

  @field_validator("content", mode="before")
  @classmethod
  def null_content_is_empty(cls, value: Any) -> Any:
    return [] if value is None else value


class ConversationItemCreatedEvent(WireModel):
  """A conversation item, which may carry a transcript on an ``input_audio`` content part."""

  type: Literal["conversation.item.created"]
  item: ConversationItem | None = None

  @property
  def transcript(self) -> str | None:
    """Return the first non-empty ``input_audio`` transcript attached to the item."""
    if self.item is None:
      return None
    for part in self.item.content:
      if part.type == "input_audio" and part.transcript:
        return part.transcript
    return None


class ErrorDetail(WireModel):
  message: str | None = None
  type: str | None = None
  code: str | None = None

  @field_validator("message", "type", "code", mode="before")
  @classmethod
  def drop_non_string(cls, value: Any) -> str | None:
    return value if isinstance(value, str) else None


class ErrorEvent(WireModel):
  """An error reported by the provider, or by the relay on the provider's behalf."""

  type: Literal["error"]
  error: ErrorDetail | None = None
  message: str | None = None

  @field_validator("error", mode="before")
  @classmethod
  def drop_non_object_detail(cls, value: Any) -> Any:
    """Providers occasionally send ``error`` as a bare code string; keep the event, not the value."""
    return value if isinstance(value, (dict, ErrorDetail)) else None

  @field_validator("message", mode="before")
  @classmethod
  def drop_non_string_message(cls, value: Any) -> str | None:
    return value if isinstance(value, str) else None

  @property
  def error_message(self) -> str | None:
    if self.error is not None and self.error.message:
      return self.error.message
    return self.message or None


class UnknownEvent(WireModel):
  """Fallback for event types this codebase does not model."""

  type: str
  payload: dict = Field(default_factory=dict, exclude=True)


type TranscriptEvent = (
  TranscriptionCompletedEvent
  | TranscriptionDeltaEvent
  | ResponseTranscriptDeltaEvent
  | ConversationItemCreatedEvent
  | ErrorEvent
)

type ServerEvent = (
  TranscriptionCompletedEvent
  | TranscriptionDeltaEvent
  | ResponseTranscriptDeltaEvent
  | ConversationItemCreatedEvent
  | ErrorEvent
  | SessionCreatedEvent
)

type ClientMessage = InputAudioBufferAppend | SessionUpdate

FORWARDED_EVENT_TYPES: frozenset[str] = frozenset(
  {
    "conversation.item.input_audio_transcription.completed",
    "conversation.item.input_audio_transcription.delta",
    "response.audio_transcript.delta",
    "conversation.item.created",
    "error",
  }
)
"""Upstream event types the relay passes through to the client verbatim."""
