"""Command-line entry point for the notescribe relay."""

import argparse
import asyncio
import os

from notescribe.common import get_logger, setup_logging
from notescribe.relay.config import RelayConfig, load_config_from_file


def get_env_or_default(env_var, default, var_type: type = str):
  """Get environment variable with type conversion and default fallback."""
  value = os.getenv(env_var)
  if value is None:
    return default

  if var_type is bool:
    return value.lower() in ("true", "1", "yes", "on")
  elif var_type is int:
    try:
      return int(value)
    except ValueError:
      return default
  else:
    return value


def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    description="Notescribe relay: bridges dictation clients to a realtime transcription provider"
  )
  parser.add_argument(
    "--host",
    type=str,
    default=get_env_or_default("NOTESCRIBE_HOST", None),
    help="Interface to listen on. Overrides the config file. (Env: NOTESCRIBE_HOST)",
  )
  parser.add_argument(
    "--port",
    "-p",
    type=int,
    default=get_env_or_default("NOTESCRIBE_PORT", None, int),
    help="WebSocket port to listen on. Overrides the config file. (Env: NOTESCRIBE_PORT)",
  )
  parser.add_argument(
    "--config",
    type=str,
    default=get_env_or_default("NOTESCRIBE_CONFIG", None),
    help="Path to an optional YAML configuration file. (Env: NOTESCRIBE_CONFIG)",
  )
  parser.add_argument(
    "--debug_audio_path",
    type=str,
    default=None,
    help="Path prefix for debug audio files. When set, audio received from clients is also "
    "saved as .wav files.",
  )
  parser.add_argument(
    "--json_logs",
    action="store_true",
    default=get_env_or_default("JSON_LOGS", False, bool),
    help="Output logs in JSON format. (Env: JSON_LOGS)",
  )
  parser.add_argument(
    "--correlation_id",
    type=str,
    default=get_env_or_default("CORRELATION_ID", None),
    help="Correlation ID for log tracing. (Env: CORRELATION_ID)",
  )
  return parser


def resolve_config(args: argparse.Namespace, api_key: str | None) -> RelayConfig:
  """Combine the config file, command-line overrides and the API key into one config."""
  config = load_config_from_file(args.config) if args.config else RelayConfig()

  overrides = {
    key: value
    for key, value in (
      ("host", args.host),
      ("port", args.port),
      ("debug_audio_path", args.debug_audio_path),
    )
    if value is not None
  }
  if overrides:
    config = RelayConfig.model_validate(config.model_dump() | overrides)

  return config.with_api_key(api_key)


async def main():
  parser = build_parser()
  args = parser.parse_args()

  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  setup_logging(level=log_level, json_output=args.json_logs, correlation_id=args.correlation_id)
  logger = get_logger("main")

  config = resolve_config(args, os.getenv("OPENAI_API_KEY"))
  if config.upstream.api_key is None:
    parser.error("An upstream API key is required. Set the OPENAI_API_KEY environment variable.")

  logger.info(
    "Starting Notescribe relay",
    port=config.port,
    config_path=args.config,
    debug_audio_enabled=bool(config.debug_audio_path),
  )

  from notescribe.relay.server import RelayServer

  server = RelayServer(config)
  await server.run()


def run() -> None:
  try:
    asyncio.run(main())
  except KeyboardInterrupt:
    pass


if __name__ == "__main__":
  run()
