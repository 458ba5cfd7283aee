"""
Notescribe relay.

Accepts dictation client connections and bridges each one to its own realtime transcription
provider connection, keeping the provider credential on the server.
"""

from notescribe.relay.bridge import RelayBridge
from notescribe.relay.config import RelayConfig, load_config_from_file
from notescribe.relay.server import RelayServer

__all__ = [
  "RelayBridge",
  "RelayConfig",
  "RelayServer",
  "load_config_from_file",
]
