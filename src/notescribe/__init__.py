"""
Notescribe: realtime dictation for notes.

Streams microphone audio through a relay to a realtime speech-transcription provider and
appends the transcript to a note as it arrives.
"""

__version__ = "0.1.0"
