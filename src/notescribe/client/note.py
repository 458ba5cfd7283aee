"""Append-only note content that transcript text is written into."""

import threading
from collections.abc import Callable
from typing import Protocol


class NoteSink(Protocol):
  """Where a transcription session writes transcript text."""

  def append_delta(self, text: str) -> None:
    """Append text exactly as given; the provider controls token spacing."""
    ...

  def append_utterance(self, text: str) -> None:
    """Append a finished utterance followed by a space, separated from prior content."""
    ...


class NoteBuffer:
  """
  Thread-safe in-memory note content.

  The whitespace check and the append happen under one lock, so concurrent appends never
  interleave a read-modify-write.
  """

  def __init__(self, content: str = "", on_change: Callable[[str], None] | None = None):
    self._content = content
    self._lock = threading.Lock()
    self.on_change = on_change

  @property
  def content(self) -> str:
    with self._lock:
      return self._content

  def append_delta(self, text: str) -> None:
    with self._lock:
      self._content += text
      content = self._content
    self._notify(content)

  def append_utterance(self, text: str) -> None:
    with self._lock:
      separator = " " if self._content and not self._content[-1].isspace() else ""
      self._content += f"{separator}{text} "
      content = self._content
    self._notify(content)

  def _notify(self, content: str) -> None:
    if self.on_change is not None:
      self.on_change(content)

  def __str__(self) -> str:
    return self.content
