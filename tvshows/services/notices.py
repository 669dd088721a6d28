"""Non-fatal user-facing notices (network retries, boundary navigation)."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime

logger = logging.getLogger(__name__)


class Notices:
    """Bounded history of lightweight notices, polled by the UI."""

    def __init__(self, maxlen: int = 50):
        self.history: deque[dict] = deque(maxlen=maxlen)

    def publish(self, kind: str, message: str) -> dict:
        notice = {
            "time": datetime.now().isoformat(),
            "kind": kind,
            "message": message,
        }
        self.history.append(notice)
        logger.info(f"Notice [{kind}]: {message}")
        return notice

    def recent(self, limit: int = 50) -> list[dict]:
        """Most recent notices, newest first."""
        return list(reversed(list(self.history)[-limit:]))
