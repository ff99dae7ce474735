import threading
from typing import Any

from src.config.logger_config import logger


class LoggingBulkListener:
    """Reports asynchronous bulk outcomes to the log and keeps running totals."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.succeeded_items = 0
        self.failed_items = 0
        self.failed_requests = 0

    def on_response(self, result: dict[str, Any]) -> None:
        items = result.get("items", [])
        failed = []
        for item in items:
            action = item.get("index") or item.get("create") or item.get("update") or {}
            if action.get("error"):
                failed.append(action)
        with self._lock:
            self.succeeded_items += len(items) - len(failed)
            self.failed_items += len(failed)
        if failed:
            for action in failed:
                logger.error("Bulk item failed: id={}, error={}", action.get("_id"), action.get("error"))
        logger.info(
            "Bulk committed: items={}, failed={}, took_ms={}",
            len(items),
            len(failed),
            result.get("took"),
        )

    def on_failure(self, exc: Exception) -> None:
        with self._lock:
            self.failed_requests += 1
        logger.error("Bulk request failed with error type {}: {}", type(exc).__name__, exc)
