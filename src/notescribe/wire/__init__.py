"""
Notescribe wire protocol package.

Contains the message types, codec and audio encoding shared by the notescribe client and relay.
"""

from .codec import (
  deserialize_client_message,
  deserialize_event,
  read_event_type,
  serialize_message,
)
from .messages import (
  FORWARDED_EVENT_TYPES,
  ContentPart,
  ConversationItem,
  ConversationItemCreatedEvent,
  ErrorDetail,
  ErrorEvent,
  InputAudioBufferAppend,
  InputAudioTranscription,
  ResponseTranscriptDeltaEvent,
  SessionCreatedEvent,
  SessionSettings,
  SessionUpdate,
  TranscriptionCompletedEvent,
  TranscriptionDeltaEvent,
  TurnDetection,
  UnknownEvent,
)
from .pcm import PCM16_SAMPLE_RATE, decode_pcm16, encode_pcm16, quantize_pcm16

__all__ = [
  "FORWARDED_EVENT_TYPES",
  "PCM16_SAMPLE_RATE",
  "ContentPart",
  "ConversationItem",
  "ConversationItemCreatedEvent",
  "ErrorDetail",
  "ErrorEvent",
  "InputAudioBufferAppend",
  "InputAudioTranscription",
  "ResponseTranscriptDeltaEvent",
  "SessionCreatedEvent",
  "SessionSettings",
  "SessionUpdate",
  "TranscriptionCompletedEvent",
  "TranscriptionDeltaEvent",
  "TurnDetection",
  "UnknownEvent",
  "decode_pcm16",
  "deserialize_client_message",
  "deserialize_event",
  "encode_pcm16",
  "quantize_pcm16",
  "read_event_type",
  "serialize_message",
]
