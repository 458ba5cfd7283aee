"""Exception types shared by the notescribe client, relay and wire codec."""


class TranscriptionError(Exception):
  """Base class for every error surfaced by a transcription session."""


class MicrophoneAccessError(TranscriptionError):
  """The audio input device was denied or could not be opened."""


class RelayConnectionError(TranscriptionError, ConnectionError):
  """The relay (or the provider behind it) could not be reached or dropped the connection."""


class UpstreamTranscriptionError(TranscriptionError):
  """The transcription provider reported an error event. Not fatal to the session."""


class ParseError(TranscriptionError, ValueError):
  """An inbound message was malformed or did not match its declared type."""
