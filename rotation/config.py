"""
rotation/config.py - Environment settings and provider record loading.

Environment variables:
    AZURE_SUBSCRIPTION_ID
    AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET (service principal;
        DefaultAzureCredential is used when any is missing)
    ROTATION_AUDIT_LOG (default: audit/rotation-audit.log)
    ROTATION_VALID_PERIOD_HOURS (default: 24)
    ROTATION_LRO_TIMEOUT (default: 300 seconds)
"""
import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Any

AZURE_SUBSCRIPTION_ID = os.environ.get("AZURE_SUBSCRIPTION_ID", "")
AZURE_TENANT_ID = os.environ.get("AZURE_TENANT_ID", "")
AZURE_CLIENT_ID = os.environ.get("AZURE_CLIENT_ID", "")
AZURE_CLIENT_SECRET = os.environ.get("AZURE_CLIENT_SECRET", "")

AUDIT_LOG_PATH = Path(os.environ.get("ROTATION_AUDIT_LOG", "audit/rotation-audit.log"))
DEFAULT_VALID_PERIOD = timedelta(hours=float(os.environ.get("ROTATION_VALID_PERIOD_HOURS", "24")))
LRO_TIMEOUT = float(os.environ.get("ROTATION_LRO_TIMEOUT", "300"))


def load_provider_records(path: str | Path) -> list[dict[str, Any]]:
    """
    Read a JSON file of provider records.

    The file holds either a list of records or {"providers": [...]}. Every
    record needs a "type" naming a registered provider; the remaining keys
    are that provider's configuration.
    """
    with open(path) as f:
        data = json.load(f)
    records = data.get("providers", []) if isinstance(data, dict) else data
    if not isinstance(records, list):
        raise ValueError(f"{path}: expected a list of provider records")
    for i, record in enumerate(records):
        if not isinstance(record, dict) or "type" not in record:
            raise ValueError(f"{path}: record {i} has no 'type'")
    return records
