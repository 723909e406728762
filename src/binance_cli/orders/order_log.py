from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from binance_cli.common.json_safe import json_safe
from binance_cli.orders.responses import TradeResponse

logger = logging.getLogger(__name__)


class OrderLog:
    """Append-only JSON lines record of every order outcome."""

    def __init__(self, path: Path | str | None):
        self.path = Path(path) if path is not None else None

    @property
    def enabled(self) -> bool:
        return self.path is not None

    def record(self, response: TradeResponse, **context: Any) -> bool:
        """
        Best-effort append of ``response``; returns False when disabled or the write failed.
        """
        if self.path is None:
            return False
        entry = {
            "logged_at": datetime.now(timezone.utc).isoformat(),
            **json_safe({key: value for key, value in context.items() if value is not None}),
            **response.to_dict(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry, default=str) + "\n")
            return True
        except OSError:
            logger.exception("Order log write failed: %s", self.path)
            return False

    def entries(self) -> List[Dict[str, Any]]:
        """Read back every recorded entry; unreadable lines are skipped with a warning."""
        if self.path is None or not self.path.exists():
            return []
        entries: List[Dict[str, Any]] = []
        with self.path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Order log %s line %d is not JSON, skipping", self.path, lineno)
                    continue
                if isinstance(entry, dict):
                    entries.append(entry)
        return entries
