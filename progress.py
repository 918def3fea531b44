"""Progress reporting for crawl runs.

Every message goes three ways: to the caller's :class:`logging.Logger`,
to a list of timestamped lines for display in the operator console, and
to a list of structured events the orchestrator can count or filter.
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List, Optional


class ProgressLog:
    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger("venue_crawler")
        self.lines: List[str] = []
        self.events: List[Dict[str, Any]] = []

    def emit(self, event: str, message: str, *, level: int = logging.INFO, **data: Any) -> None:
        now = datetime.datetime.now()
        self.lines.append(f"[{now.strftime('%H:%M:%S')}] {message}")
        record = {"time": now.isoformat(timespec="seconds"), "event": event, "message": message}
        record.update(data)
        self.events.append(record)
        self.logger.log(level, message)

    def debug(self, message: str, *args: Any) -> None:
        """Debug chatter only reaches the logger, never the operator log."""
        self.logger.debug(message, *args)

    def count(self, event: str) -> int:
        return sum(1 for e in self.events if e["event"] == event)
