"""
Debug capture of client audio passing through the relay.

Each bridge gets its own WAV file. Recording is best effort and never interferes with
forwarding: messages that are not decodable audio appends are skipped.
"""

import os
import time

from notescribe.common import get_logger
from notescribe.errors import ParseError
from notescribe.wire import (
  PCM16_SAMPLE_RATE,
  InputAudioBufferAppend,
  decode_pcm16,
  deserialize_client_message,
)


class DebugAudioRecorder:
  """Writes the audio of one client connection to a mono PCM16 WAV file."""

  def __init__(self, path_prefix: str, connection_name: str, sample_rate: int = PCM16_SAMPLE_RATE):
    self.filename = f"{path_prefix}_{connection_name}_{int(time.time())}.wav"
    self.sample_rate = sample_rate
    self.frames_written = 0
    self._file = None
    self.logger = get_logger("relay/debug", filename=self.filename)

  def record(self, message: str | bytes) -> None:
    """Append the audio carried by a client message, if it carries any."""
    try:
      parsed = deserialize_client_message(message)
      if not isinstance(parsed, InputAudioBufferAppend):
        return
      samples = decode_pcm16(parsed.audio)
    except ParseError as e:
      self.logger.debug("Skipping non-audio message", reason=str(e))
      return

    if self._file is None:
      self._open()

    try:
      self._file.write(samples)
      self.frames_written += len(samples)
    except Exception:
      self.logger.exception("Error writing debug audio")

  def _open(self) -> None:
    import soundfile as sf

    os.makedirs(os.path.dirname(self.filename) or ".", exist_ok=True)
    self._file = sf.SoundFile(
      self.filename,
      mode="w",
      samplerate=self.sample_rate,
      channels=1,
      format="WAV",
      subtype="PCM_16",
    )
    self.logger.info("Recording debug audio")

  def close(self) -> None:
    file, self._file = self._file, None
    if file is not None:
      file.close()
      self.logger.info("Debug audio saved", frames=self.frames_written)
