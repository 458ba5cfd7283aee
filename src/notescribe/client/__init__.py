"""
Notescribe client library.

Captures microphone audio, streams it to a notescribe relay, and writes the returned transcript
into a note.
"""

from notescribe.client.audio import AudioCapture
from notescribe.client.note import NoteBuffer, NoteSink
from notescribe.client.session import SessionState, TranscriptionSession

__all__ = [
  "AudioCapture",
  "NoteBuffer",
  "NoteSink",
  "SessionState",
  "TranscriptionSession",
]
