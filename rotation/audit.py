"""
rotation/audit.py - Structured audit trail for rotation operations.

One JSON object per line:
    {"timestamp": ..., "action": "rotation_staged", "actor": "rotation-agent",
     "resource": "rg/account", "result": "success", "metadata": {...}}

Events carry names (resources, slots, key kinds, step) and never secret values.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from rotation import config

log = logging.getLogger(__name__)

ACTOR = "rotation-agent"


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_event(action: str, resource: str, result: str, metadata: dict | None = None) -> dict:
    return {
        "timestamp": utcnow(),
        "action": action,
        "actor": ACTOR,
        "resource": resource,
        "result": result,
        "metadata": metadata or {},
    }


class AuditLog:
    """Appends audit events to a JSON-lines file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else config.AUDIT_LOG_PATH

    def write(self, event: dict[str, Any]) -> None:
        if "timestamp" not in event:
            event["timestamp"] = utcnow()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a") as f:
            f.write(json.dumps(event) + "\n")
        log.debug(f"Audit event {event['action']} ({event['result']}) for {event['resource']}")

    def read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        with open(self.path) as f:
            return [json.loads(line) for line in f if line.strip()]
