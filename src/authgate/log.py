# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import re
import sys

_SENSITIVE = re.compile(
    r'(?i)\b(password|passwd|pwd|secret|token|session_id|sid)(\s*[=:]\s*)["\']?[^\s"\'&,]+["\']?'
)
_REDACTED = "[REDACTED]"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class RedactingFilter(logging.Filter):
    """Masks ``password=...`` style values in log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SENSITIVE.sub(lambda m: f"{m.group(1)}{m.group(2)}{_REDACTED}", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger("authgate")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not any(getattr(h, "_authgate", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RedactingFilter())
        handler._authgate = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
