"""
Audio capture for notescribe client sessions.

Wraps a PortAudio input stream (via sounddevice) that delivers fixed-size mono float32 blocks at
the provider's expected sample rate. The stream's callback is the whole processing graph: there
is no output leg to keep alive, and stopping the stream is enough to stop block delivery.
PortAudio does not expose platform echo cancellation, noise suppression or automatic gain, so
none is requested.
"""

from collections.abc import Callable

import numpy as np

from notescribe.common import get_logger
from notescribe.errors import MicrophoneAccessError
from notescribe.wire.pcm import PCM16_SAMPLE_RATE

SAMPLE_RATE = PCM16_SAMPLE_RATE
CHANNELS = 1
DTYPE = "float32"
BLOCKSIZE = 4096

logger = get_logger("client/audio")

type BlockHandler = Callable[[np.ndarray], None]


class AudioCapture:
  """
  Captures microphone audio and hands each block to a handler.

  The handler is invoked on the PortAudio callback thread with a 1-D float32 array of
  ``BLOCKSIZE`` samples that it owns.
  """

  def __init__(self, on_block: BlockHandler, device: int | str | None = None):
    self.on_block = on_block
    self.device = device
    self.audio_stream = None

  def audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
    """Sounddevice audio callback."""
    if status:
      logger.warning("Audio input status", status=str(status))
    self.on_block(indata[:, 0].copy())

  def start(self) -> None:
    """
    Open the input device and begin delivering blocks.

    :raises MicrophoneAccessError: If the device is denied, missing, or PortAudio is unavailable.
    """
    if self.audio_stream is not None:
      return

    try:
      import sounddevice as sd

      stream = sd.InputStream(
        device=self.device,
        channels=CHANNELS,
        samplerate=SAMPLE_RATE,
        dtype=DTYPE,
        blocksize=BLOCKSIZE,
        latency="low",
        callback=self.audio_callback,
      )
    except Exception as e:
      raise MicrophoneAccessError(f"Failed to access microphone: {e}") from e

    try:
      stream.start()
    except Exception as e:
      stream.close()
      raise MicrophoneAccessError(f"Failed to start microphone: {e}") from e

    self.audio_stream = stream
    logger.info("Audio capture started", device=self.device, sample_rate=SAMPLE_RATE)

  def stop(self) -> None:
    """Stop delivering blocks and release the device. Safe to call repeatedly or before start."""
    stream, self.audio_stream = self.audio_stream, None
    if stream is None:
      return

    try:
      stream.stop()
    finally:
      stream.close()
    logger.info("Audio capture stopped")

  def is_recording(self) -> bool:
    """Check if currently recording."""
    return self.audio_stream is not None
