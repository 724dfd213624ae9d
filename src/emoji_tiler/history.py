"""
Last-used source record, used by the command line to prefill the next run.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

HISTORY_FILE = "history.json"
HISTORY_KEY = "emoji"


class HistoryStore:
    """JSON file holding `{"emoji": <last source locator>}`."""

    def __init__(self, data_dir: Path):
        self.path = data_dir / HISTORY_FILE

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable history file %s: %s", self.path, e)
            return None

        value = data.get(HISTORY_KEY) if isinstance(data, dict) else None
        return value if isinstance(value, str) and value else None

    def save(self, locator: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({HISTORY_KEY: locator}), encoding="utf-8")
