"""Command-line dictation client: stream the microphone to a relay and build a note."""

import asyncio
import signal
import sys
from functools import partial
from pathlib import Path
from typing import TypedDict
from urllib.parse import urlparse

from clypi import Command, arg

from notescribe.client.audio import AudioCapture
from notescribe.client.note import NoteBuffer
from notescribe.client.session import TranscriptionSession
from notescribe.common import get_logger, setup_logging_from_env
from notescribe.errors import TranscriptionError, UpstreamTranscriptionError

DEFAULT_RELAY_URL = "ws://localhost:9090/realtime-transcribe"


class AudioDevice(TypedDict):
  """Type definition for sounddevice query_devices() return value."""

  name: str
  hostapi: int
  max_input_channels: int
  max_output_channels: int
  default_low_input_latency: float
  default_high_input_latency: float
  default_samplerate: float


def parse_relay_url(value: str | list[str]) -> str:
  """Parse the relay argument, which must be a ws:// or wss:// URL with a host."""
  if not isinstance(value, str):
    raise ValueError("Relay must be a string")

  if not value.strip():
    raise ValueError("Invalid relay URL: cannot be empty")

  parsed = urlparse(value.strip())
  if parsed.scheme not in ("ws", "wss"):
    raise ValueError("Invalid relay URL: scheme must be ws or wss")

  if not parsed.hostname:
    raise ValueError("Invalid relay URL: missing hostname")

  try:
    parsed.port
  except ValueError:
    raise ValueError("Invalid relay URL: port must be between 0 and 65535")

  return value.strip()


def parse_audio_device(value: str) -> int | str | None:
  """Map the --audio-device argument onto a sounddevice device selector."""
  if value == "default":
    return None
  if value.isdigit():
    return int(value)
  return value


class ListDevices(Command):
  """List available audio input devices."""

  async def run(self) -> None:
    import sounddevice as sd

    all_devices = sd.query_devices()
    print("Audio Input Devices (for use with --audio-device):")
    print("=" * 55)

    default_input = sd.default.device[0] if isinstance(sd.default.device, tuple) else None

    found = False
    for device_id, device in enumerate(all_devices):
      device_typed: AudioDevice = device
      if device_typed["max_input_channels"] <= 0:
        continue

      found = True
      default_marker = " [DEFAULT INPUT]" if device_id == default_input else ""
      print(f"Device: {device_typed['name']}{default_marker}")
      print(f"  ID: {device_id}")
      print(f"  Input channels: {device_typed['max_input_channels']}")
      print(f"  Default sample rate: {device_typed['default_samplerate']:.0f}")
      print()

    if not found:
      print("No input devices found.")


class Dictate(Command):
  """Notescribe dictation - realtime speech transcription into a note.

  Connects to a notescribe relay, streams microphone audio to it, and appends
  transcript text to the note as it arrives. The finished note is printed, or
  written to --output, when the session ends (Ctrl+C).
  """

  subcommand: ListDevices | None

  relay: str = arg(default=DEFAULT_RELAY_URL, parser=parse_relay_url)
  audio_device: str = arg(default="default")
  output: str = arg(default="")

  def __init__(self, **kwargs):
    super().__init__(**kwargs)
    self.logger = get_logger("cli")
    self._echoed = 0

  async def run(self) -> None:
    note = NoteBuffer(on_change=self._echo)
    session = TranscriptionSession(
      url=self.relay,
      note=note,
      on_error=self._on_error,
      capture_factory=partial(AudioCapture, device=parse_audio_device(self.audio_device)),
    )

    stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
      loop.add_signal_handler(signum, stop_requested.set)

    await session.connect()
    if session.get_connection_state():
      print("[Recording...] (Press Ctrl+C to stop)", file=sys.stderr)

    stop_task = asyncio.create_task(stop_requested.wait())
    closed_task = asyncio.create_task(session.wait_closed())
    await asyncio.wait([stop_task, closed_task], return_when=asyncio.FIRST_COMPLETED)
    stop_task.cancel()
    closed_task.cancel()

    await session.disconnect()
    self._write_note(note.content)

  def _echo(self, content: str) -> None:
    sys.stderr.write(content[self._echoed :])
    sys.stderr.flush()
    self._echoed = len(content)

  def _on_error(self, error: TranscriptionError) -> None:
    prefix = "WARNING" if isinstance(error, UpstreamTranscriptionError) else "ERROR"
    print(f"\n[{prefix}]: {error}", file=sys.stderr)

  def _write_note(self, content: str) -> None:
    if self.output:
      Path(self.output).write_text(content, encoding="utf-8")
      self.logger.info("Note written", path=self.output, chars=len(content))
    else:
      print(content)


def main() -> None:
  """Main entry point for the notescribe command."""
  setup_logging_from_env()
  logger = get_logger("main")

  try:
    cli = Dictate.parse()
    cli.start()
  except KeyboardInterrupt:
    logger.info("Received interrupt signal, shutting down")
    sys.exit(0)
  except Exception:
    logger.exception("Fatal error")
    sys.exit(1)


if __name__ == "__main__":
  main()
