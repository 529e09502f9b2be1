from __future__ import annotations

import json
import logging
import os
import time
from typing import Any, Dict

_log = logging.getLogger(__name__)


class RequestLog:
    """Append-only JSONL record of proxied completions, rotated by size."""

    def __init__(self, path: str, max_bytes: int = 25_000_000):
        self.path = path
        self.max_bytes = max_bytes
        # A bare filename has no parent to create.
        log_dir = os.path.dirname(path)
        if log_dir:
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError:
                _log.warning("[request-log] Cannot create %s", log_dir)

    def _rotate_if_needed(self):
        try:
            if (
                os.path.exists(self.path)
                and os.path.getsize(self.path) > self.max_bytes
            ):
                ts = time.strftime("%Y%m%d-%H%M%S")
                os.rename(self.path, f"{self.path}.{ts}")
        except OSError:
            _log.warning("[request-log] Rotation of %s failed", self.path)

    def log(self, record: Dict[str, Any]):
        self._rotate_if_needed()
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError:
            _log.warning("[request-log] Write to %s failed", self.path)

    def record_completion(
        self, endpoint: str, model: str, status: int, started_at: float
    ) -> None:
        self.log(
            {
                "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime()),
                "endpoint": endpoint,
                "model": model,
                "status": status,
                "duration_ms": round((time.time() - started_at) * 1000, 1),
            }
        )
