from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from typing import Any, Dict

from operator_console.engine.config.redaction import safe_dict

logger = logging.getLogger(__name__)

# Conversation text, attachments and credentials never reach the log stream
_REDACTED_KEYS = ("text", "body", "message", "content", "prompt", "files", "attachments", "generated_text")


def safe_redact(event: Dict[str, Any]) -> Dict[str, Any]:
    redacted = safe_dict(event)
    for key in _REDACTED_KEYS:
        if key in redacted:
            redacted.pop(key)
    return redacted


def structured_log(event: Dict[str, Any]) -> None:
    try:
        safe_event = safe_redact(event)
        logger.info(json.dumps(safe_event, separators=(",", ":"), default=str))
    except Exception:
        # logging must never break a turn
        return


def build_logging_config(level: str = "INFO") -> Dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            }
        },
        "root": {
            "level": (level or "INFO").upper(),
            "handlers": ["console"],
        },
    }


def configure_logging(level: str | None = None) -> None:
    if level is None:
        from operator_console.engine.config import get_settings

        level = get_settings().log_level
    dictConfig(build_logging_config(level))


__all__ = ["structured_log", "safe_redact", "build_logging_config", "configure_logging"]
