"""
Event helper functions for structured JSON logging.

This module provides consistent event emission and stage timing utilities
for the scraper's logging system.
"""

import logging
import time
from typing import Optional

logger = logging.getLogger("scraper.events")

def evt(event: str, level: int = logging.INFO, **fields) -> None:
    """
    Emit a structured event with consistent field naming.

    Args:
        event: The event type/name
        level: Log level for the event (INFO by default)
        **fields: Additional fields to include in the event

    Example:
        evt("scrape_received", url="https://www.youtube.com/watch?v=abc")
        evt("stage_result", stage="navigation", outcome="success", dur_ms=1250)
    """
    event_data = {"event": event}
    event_data.update(fields)

    logger.log(level, "", extra=event_data)

class StageTimer:
    """
    Context manager for automatic stage timing with structured logging.

    Emits stage_start event on entry and stage_result event on exit,
    with automatic duration calculation and exception handling.
    Works unchanged inside coroutines since it never awaits.

    Example:
        with StageTimer("navigation", wait_until="networkidle"):
            await page.goto(url)
    """

    def __init__(self, stage: str, **context_fields):
        self.stage = stage
        self.context_fields = context_fields
        self.start_time: Optional[float] = None
        self.duration_ms: int = 0

    def __enter__(self):
        self.start_time = time.time()
        evt("stage_start", stage=self.stage, **self.context_fields)
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self.start_time is not None:
            self.duration_ms = int((time.time() - self.start_time) * 1000)

        event_fields = {
            "stage": self.stage,
            "outcome": "success" if exc_type is None else "error",
            "dur_ms": self.duration_ms,
            **self.context_fields
        }

        if exc_type is not None:
            event_fields["detail"] = f"{exc_type.__name__}: {exc_value}"

        evt("stage_result", **event_fields)

        # Never suppress the exception
        return False

def scrape_received(url: str, **fields) -> None:
    """Emit scrape_received at the start of one acquisition."""
    evt("scrape_received", target_url=url, **fields)

def scrape_finished(duration_ms: int, transcript_length: int, outcome: str = "success", **fields) -> None:
    """
    Emit scrape_finished at the end of a successful acquisition.

    Example:
        scrape_finished(duration_ms=14500, transcript_length=5230, degraded=False)
    """
    evt("scrape_finished",
        dur_ms=duration_ms,
        transcript_length=transcript_length,
        outcome=outcome,
        **fields)

def scrape_failed(duration_ms: int, error_type: str, error_detail: str, **fields) -> None:
    """Emit scrape_failed for a pipeline that ended in a fatal error."""
    evt("scrape_failed",
        level=logging.WARNING,
        dur_ms=duration_ms,
        outcome="error",
        error_type=error_type,
        detail=error_detail,
        **fields)

def classify_error_type(exception: Exception) -> str:
    """
    Classify exception into error type for structured logging.

    Args:
        exception: The exception to classify

    Returns:
        Error type string for consistent categorization
    """
    declared = getattr(exception, "error_type", None)
    if declared:
        return declared

    exception_name = type(exception).__name__.lower()
    exception_str = str(exception).lower()

    if "timeout" in exception_name or "timeout" in exception_str:
        return "timeout_error"

    if any(term in exception_str for term in ["net::", "connection", "network", "dns", "ssl"]):
        return "network_error"

    if "target closed" in exception_str or "browser has been closed" in exception_str:
        return "engine_error"

    if "json" in exception_name or "json" in exception_str:
        return "parse_error"

    return "unknown_error"
