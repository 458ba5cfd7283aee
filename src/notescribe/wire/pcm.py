"""
PCM16 audio encoding for the wire.

Captured audio is float32 in [-1.0, 1.0]. On the wire it travels as little-endian signed 16-bit
integers, base64 encoded so it can ride inside a JSON text message.
"""

import base64
import binascii

import numpy as np

from notescribe.errors import ParseError

PCM16_DTYPE = np.dtype("<i2")

PCM16_SAMPLE_RATE = 24000
"""Sample rate of wire audio, as expected by the transcription provider."""

PCM16_POSITIVE_SCALE = 0x7FFF
"""Multiplier for samples >= 0; 1.0 maps to 32767."""

PCM16_NEGATIVE_SCALE = 0x8000
"""Multiplier for samples < 0; -1.0 maps to -32768."""

ENCODE_CHUNK_BYTES = 0x6000
"""Bytes base64-encoded per step. A multiple of 3, so chunk outputs concatenate without padding."""


def quantize_pcm16(samples: np.ndarray) -> np.ndarray:
  """
  Quantize float samples to PCM16.

  Samples are clamped to [-1, 1] and scaled asymmetrically so both rails are reachable.
  Scaled values are truncated toward zero. NaN quantizes to 0.

  :param samples: Float audio samples (any shape; flattened).
  :returns: A little-endian int16 array.
  """
  flat = np.nan_to_num(np.asarray(samples, dtype=np.float32).ravel(), nan=0.0)
  clipped = np.clip(flat, -1.0, 1.0)
  scaled = np.where(clipped < 0, clipped * PCM16_NEGATIVE_SCALE, clipped * PCM16_POSITIVE_SCALE)
  return np.trunc(scaled).astype(PCM16_DTYPE)


def encode_pcm16(samples: np.ndarray) -> str:
  """Quantize float samples to PCM16 and base64 encode the bytes."""
  payload = quantize_pcm16(samples).tobytes()
  return "".join(
    base64.b64encode(payload[offset : offset + ENCODE_CHUNK_BYTES]).decode("ascii")
    for offset in range(0, len(payload), ENCODE_CHUNK_BYTES)
  )


def decode_pcm16(encoded: str) -> np.ndarray:
  """
  Decode base64 PCM16 text back into int16 samples.

  :raises ParseError: If the text is not valid base64 or has an odd byte count.
  """
  try:
    payload = base64.b64decode(encoded, validate=True)
  except (binascii.Error, ValueError) as e:
    raise ParseError(f"Audio payload is not valid base64: {e}") from e

  if len(payload) % PCM16_DTYPE.itemsize:
    raise ParseError(f"Audio payload has an odd byte count ({len(payload)})")
  return np.frombuffer(payload, dtype=PCM16_DTYPE)
