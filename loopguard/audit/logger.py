"""
Audit Logger — One JSON line per LoopGuard scan.

Each line holds the UTC time of the scan plus its ``AuditEntry``: the scan id,
how many PHP files were submitted, how many loop findings came out, how many
files could not be parsed, and the wall-clock duration.
"""

from __future__ import annotations

import json
import logging
import time
from collections import deque
from pathlib import Path

from loopguard.config import settings
from loopguard.models.scan_models import AuditEntry

logger = logging.getLogger("loopguard.audit")


class AuditLogger:
    """Appends scan summaries to the audit file when auditing is switched on."""

    def __init__(self, log_path: str | None = None, enabled: bool | None = None) -> None:
        self.log_path = Path(log_path or settings.audit_log_path)
        self.enabled = settings.audit_enabled if enabled is None else enabled

    def log(self, entry: AuditEntry) -> None:
        # A failed write never fails the scan that produced the entry
        if not self.enabled:
            return
        line = json.dumps(
            {"timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()), **entry.model_dump()}
        )
        try:
            with self.log_path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error(f"Audit entry for scan {entry.scan_id} not written: {e}")

    def read_recent(self, count: int = 50) -> list[dict]:
        """The last ``count`` scan records, oldest first. Unparseable lines are skipped."""
        if not self.log_path.exists():
            return []

        recent: deque[dict] = deque(maxlen=count)
        try:
            with self.log_path.open(encoding="utf-8") as f:
                for number, raw in enumerate(f, start=1):
                    if not raw.strip():
                        continue
                    try:
                        recent.append(json.loads(raw))
                    except json.JSONDecodeError:
                        logger.warning(f"{self.log_path}:{number} is not a JSON scan record")
        except OSError as e:
            logger.error(f"Cannot read audit log {self.log_path}: {e}")
            return []
        return list(recent)
