"""One-line JSON log events."""

from __future__ import annotations

import json
import logging
from typing import Any


def dump_event_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"), default=str)


def log_event(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    if not logger.isEnabledFor(level):
        return
    logger.log(level, dump_event_json({"event": event, **fields}))
