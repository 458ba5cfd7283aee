"""
Message codec for wire protocol serialization and deserialization.

Events are decoded once at the connection boundary into the closed set of models in
:mod:`notescribe.wire.messages`. Unrecognised ``type`` tags decode to :class:`UnknownEvent`
instead of failing, so provider additions never break a session.
"""

import json
from typing import Annotated, Any, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from notescribe.errors import ParseError
from notescribe.wire.messages import (
  ConversationItemCreatedEvent,
  ErrorEvent,
  InputAudioBufferAppend,
  ResponseTranscriptDeltaEvent,
  SessionCreatedEvent,
  SessionUpdate,
  TranscriptionCompletedEvent,
  TranscriptionDeltaEvent,
  UnknownEvent,
)

_SERVER_EVENT_TYPES = (
  TranscriptionCompletedEvent,
  TranscriptionDeltaEvent,
  ResponseTranscriptDeltaEvent,
  ConversationItemCreatedEvent,
  ErrorEvent,
  SessionCreatedEvent,
)
_CLIENT_MESSAGE_TYPES = (InputAudioBufferAppend, SessionUpdate)

_server_event_adapter: TypeAdapter = TypeAdapter(
  Annotated[Union[_SERVER_EVENT_TYPES], Field(discriminator="type")]
)
_client_message_adapter: TypeAdapter = TypeAdapter(
  Annotated[Union[_CLIENT_MESSAGE_TYPES], Field(discriminator="type")]
)


def _known_tags(models: tuple[type[BaseModel], ...]) -> frozenset[str]:
  return frozenset(model.model_fields["type"].annotation.__args__[0] for model in models)


_SERVER_EVENT_TAGS = _known_tags(_SERVER_EVENT_TYPES)
_CLIENT_MESSAGE_TAGS = _known_tags(_CLIENT_MESSAGE_TYPES)


def serialize_message(message: BaseModel) -> str:
  """
  Serialize a wire protocol message to a JSON string.

  Fields left as ``None`` are omitted.
  """
  return message.model_dump_json(exclude_none=True)


def _load_tagged_object(raw: str | bytes) -> dict[str, Any]:
  if isinstance(raw, (bytes, bytearray, memoryview)):
    try:
      raw = bytes(raw).decode("utf-8")
    except UnicodeDecodeError as e:
      raise ParseError(f"Message is not valid UTF-8: {e}") from e

  try:
    data = json.loads(raw)
  except json.JSONDecodeError as e:
    raise ParseError(f"Message is not valid JSON: {e}") from e

  if not isinstance(data, dict):
    raise ParseError(f"Message must be a JSON object, got {type(data).__name__}")
  if not isinstance(data.get("type"), str):
    raise ParseError("Message is missing a string 'type' field")
  return data


def read_event_type(raw: str | bytes) -> str:
  """
  Read only the ``type`` tag of a message, without validating the rest of its payload.

  :raises ParseError: If the message is not a JSON object with a string ``type``.
  """
  return _load_tagged_object(raw)["type"]


def deserialize_event(raw: str | bytes) -> Any:
  """
  Deserialize an upstream/relay event.

  :param raw: The text (or UTF-8 bytes) of one WebSocket message.
  :returns: One of the server event models, or :class:`UnknownEvent` for unrecognised types.
  :raises ParseError: If the message is malformed or a known type fails validation.
  """
  data = _load_tagged_object(raw)
  if data["type"] not in _SERVER_EVENT_TAGS:
    return UnknownEvent(type=data["type"], payload=data)

  try:
    return _server_event_adapter.validate_python(data)
  except ValidationError as e:
    raise ParseError(f"Invalid {data['type']} event: {e}") from e


def deserialize_client_message(raw: str | bytes) -> InputAudioBufferAppend | SessionUpdate:
  """
  Deserialize a message sent by a client to the relay.

  :raises ParseError: If the message is malformed or of a type clients do not send.
  """
  data = _load_tagged_object(raw)
  if data["type"] not in _CLIENT_MESSAGE_TAGS:
    raise ParseError(f"Unexpected client message type: {data['type']}")

  try:
    return _client_message_adapter.validate_python(data)
  except ValidationError as e:
    raise ParseError(f"Invalid {data['type']} message: {e}") from e
