"""
Structured Logging and Stage Hooks

Configures structlog for the proof system:
- JSON output for services, console output for development
- Secret censoring (witness values never reach a log line)
- Stage transitions of proof generation and verification, reported to
  the logger and to caller-supplied hooks

The core stays free of I/O: it only emits events. Nothing is printed
unless the host application configures logging (setup_logging) or an
event reaches the stdlib last-resort handler (WARNING and above).
"""

from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional
import logging
import sys

import structlog
from structlog.types import Processor


LIBRARY = 'sigstark'

SENSITIVE_KEYS = {
    'witness',
    'private',
    'secret',
}

StageHook = Callable[[str, Dict[str, Any]], None]


def _add_library_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any],
) -> Dict[str, Any]:
    """Add library name to all log entries."""
    event_dict.setdefault('library', LIBRARY)
    return event_dict


def _censor_secrets(
    logger: logging.Logger,
    method_name: str,
    event_dict: Dict[str, Any],
) -> Dict[str, Any]:
    """Censor witness material in logs."""

    def censor_dict(d: Dict[str, Any]) -> Dict[str, Any]:
        result = {}
        for key, value in d.items():
            key_lower = key.lower()
            if any(s in key_lower for s in SENSITIVE_KEYS):
                result[key] = '***REDACTED***'
            elif isinstance(value, dict):
                result[key] = censor_dict(value)
            else:
                result[key] = value
        return result

    return censor_dict(event_dict)


def _shared_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt='iso', utc=True),
        _add_library_context,
        _censor_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(log_level: str = 'INFO', json_logs: bool = False) -> None:
    """
    Configure structlog for an application embedding the proof system.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Whether to output JSON format (True for services)
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level {log_level!r}")

    shared_processors = _shared_processors()

    if json_logs:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        shared_processors.append(structlog.dev.set_exc_info)
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    # Logs go to stderr; stdout is reserved for command output
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    library_logger = logging.getLogger(LIBRARY)
    library_logger.handlers.clear()
    library_logger.addHandler(handler)
    library_logger.setLevel(level)
    library_logger.propagate = False


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Wraps a stdlib logger and leaves the global structlog configuration to
    the host (or setup_logging), so stdlib levels decide what is emitted.

    Example:
        logger = get_logger(__name__)
        logger.info("proof_generated", proof_hash="0x…", layers=4)
    """
    return structlog.wrap_logger(
        logging.getLogger(name or LIBRARY),
        wrapper_class=structlog.stdlib.BoundLogger,
    )


class StageReporter:
    """
    Reports state-machine transitions of one generate/verify call.

    Every transition is logged at debug level and passed to each hook as
    (stage value, fields).
    """

    def __init__(self, logger, hooks: Iterable[StageHook] = (), **context: Any):
        self.logger = logger
        self.hooks = tuple(hooks)
        self.context = context
        self.history: List[str] = []

    def enter(self, stage: Enum, **fields: Any) -> None:
        self.history.append(stage.value)
        self.logger.debug('stage_transition', stage=stage.value, **self.context, **fields)
        for hook in self.hooks:
            hook(stage.value, dict(fields))
