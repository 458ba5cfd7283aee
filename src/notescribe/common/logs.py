"""Centralized structlog configuration shared by the notescribe client and relay."""

import logging
import os
import time
from typing import Any

import structlog
from structlog.dev import BRIGHT, DIM, RESET_ALL, Column, ConsoleRenderer, KeyValueColumnFormatter
from structlog.typing import EventDict, Processor, WrappedLogger

_PROGRAM_START_TIME = time.time()

# Libraries whose records are routed through our handler at WARNING and above
_QUIET_LIBRARIES = ["websockets", "asyncio"]


def hex_to_ansi_fg(hex_color: int) -> str:
  """Convert a 0xRRGGBB color to an ANSI 24-bit foreground escape code."""
  r = (hex_color >> 16) & 0xFF
  g = (hex_color >> 8) & 0xFF
  b = hex_color & 0xFF
  return f"\x1b[38;2;{r};{g};{b}m"


# level -> (label, label color, bracket color)
_LEVEL_STYLES: dict[str, tuple[str, int, int]] = {
  "debug": ("dbug", 0x908CAA, 0x827E99),
  "info": ("info", 0x9CCFD8, 0x8CBAC2),
  "warning": ("warn", 0xF6C177, 0xDDAE6B),
  "error": ("eror", 0xEB6F92, 0xD46483),
  "exception": ("exc!", 0xEB6F92, 0xD46483),
  "critical": ("crit", 0xEB6F92, 0xD46483),
}


def _relative_time_processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Stamp each event with the time elapsed since the process started (+MM:SS.mmm)."""
  elapsed = time.time() - _PROGRAM_START_TIME
  minutes, seconds = divmod(elapsed, 60)
  if minutes:
    event_dict["timestamp"] = f"+{int(minutes):02d}:{seconds:06.3f}"
  else:
    event_dict["timestamp"] = f"+{seconds:06.3f}"
  return event_dict


def _compact_level_processor(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
  """Replace the level name with a bracketed, colored 4-character label."""
  level = event_dict.get("level")
  if level in _LEVEL_STYLES:
    label, color, bracket = _LEVEL_STYLES[level]
    open_bracket = f"{hex_to_ansi_fg(bracket)}[{RESET_ALL}"
    close_bracket = f"{hex_to_ansi_fg(bracket)}]{RESET_ALL}"
    event_dict["level"] = f"{open_bracket}{hex_to_ansi_fg(color)}{label}{RESET_ALL}{close_bracket}"
  return event_dict


def _console_renderer() -> ConsoleRenderer:
  logger_name_formatter = KeyValueColumnFormatter(
    key_style=None,
    value_style=hex_to_ansi_fg(0x7D6B95),
    reset_style=RESET_ALL,
    value_repr=str,
    prefix="[",
    postfix="]",
  )

  return ConsoleRenderer(
    colors=True,
    columns=[
      Column(
        "",
        KeyValueColumnFormatter(
          key_style=hex_to_ansi_fg(0x6E6A86),
          value_style=hex_to_ansi_fg(0xF6C177),
          reset_style=RESET_ALL,
          value_repr=str,
        ),
      ),
      Column(
        "timestamp",
        KeyValueColumnFormatter(
          key_style=None, value_style=DIM, reset_style=RESET_ALL, value_repr=str
        ),
      ),
      Column(
        "level",
        KeyValueColumnFormatter(
          key_style=None, value_style="", reset_style=RESET_ALL, value_repr=str
        ),
      ),
      Column("logger_name", logger_name_formatter),
      Column("logger", logger_name_formatter),
      Column(
        "event",
        KeyValueColumnFormatter(
          key_style=None, value_style=BRIGHT, reset_style=RESET_ALL, value_repr=str, width=30
        ),
      ),
    ],
  )


def setup_logging(
  level: str = "INFO", json_output: bool = False, correlation_id: str | None = None
) -> None:
  """Configure structured logging for the application."""

  shared_processors: list[Processor] = [
    structlog.stdlib.filter_by_level,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.stdlib.ExtraAdder(),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
  ]

  if correlation_id:
    shared_processors.insert(0, structlog.contextvars.merge_contextvars)
    structlog.contextvars.bind_contextvars(correlation_id=correlation_id)

  log_renderer: Processor
  if json_output:
    shared_processors.append(structlog.processors.TimeStamper(fmt="iso"))
    log_renderer = structlog.processors.JSONRenderer()
  else:
    shared_processors += [_compact_level_processor, _relative_time_processor]
    log_renderer = _console_renderer()

  structlog.configure(
    processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
  )

  formatter = structlog.stdlib.ProcessorFormatter(
    foreign_pre_chain=shared_processors,
    processors=[
      structlog.stdlib.ProcessorFormatter.remove_processors_meta,
      log_renderer,
    ],
  )

  handler = logging.StreamHandler()
  handler.setFormatter(formatter)
  root_logger = logging.getLogger()
  root_logger.handlers.clear()
  root_logger.addHandler(handler)
  root_logger.setLevel(level)

  for liblog in [logging.getLogger(name) for name in _QUIET_LIBRARIES]:
    liblog.handlers.clear()
    liblog.setLevel(logging.WARNING)
    liblog.propagate = True


def get_logger(name: str | None = None, **initial_values: Any) -> structlog.stdlib.BoundLogger:
  """Get a structured logger instance."""
  return structlog.get_logger(name, **initial_values)


def setup_logging_from_env() -> None:
  """Setup logging using environment variables."""
  log_level = os.getenv("LOG_LEVEL", "INFO").upper()
  json_output = os.getenv("JSON_LOGS", "false").lower() in ("true", "1", "yes", "on")
  correlation_id = os.getenv("CORRELATION_ID")

  setup_logging(level=log_level, json_output=json_output, correlation_id=correlation_id)
