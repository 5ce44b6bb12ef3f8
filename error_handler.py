#!/usr/bin/env python3
"""
Error taxonomy and centralized error handling for the transcript scraper.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Tuple

from log_events import classify_error_type


class ScrapeError(Exception):
    """Base class for failures that end one acquisition."""

    error_type = "scrape_error"
    status_code = 500


class InputError(ScrapeError):
    """Request input is missing or invalid. Raised before any page exists."""

    error_type = "input_error"
    status_code = 400


class EngineNotInitializedError(ScrapeError):
    """The shared browser engine is not available."""

    error_type = "precondition_error"
    status_code = 500


class NavigationError(ScrapeError):
    """Navigation failed with both the strict and the relaxed wait condition."""

    error_type = "navigation_error"


class TranscriptPanelError(ScrapeError):
    """The transcript panel could not be opened after exhausting retries."""

    error_type = "fatal_ui_error"


class CaptureTimeoutError(ScrapeError):
    """No transcript response was observed within the capture window."""

    error_type = "capture_timeout"


class CaptureParseError(ScrapeError):
    """The transcript response body could not be parsed."""

    error_type = "capture_parse_error"


class ErrorHandler:
    """Centralized error handling with categorization and counts"""

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self.error_counts: Dict[str, int] = {}
        self.last_errors: Dict[str, Dict[str, Any]] = {}

    def handle_scrape_error(self, url: str, error: Exception,
                            duration_ms: int = None) -> Tuple[Dict[str, Any], int]:
        """Record a failed acquisition and build the failure payload and HTTP status"""
        error_key = classify_error_type(error)
        self.error_counts[error_key] = self.error_counts.get(error_key, 0) + 1
        self.last_errors[error_key] = {
            "error": str(error),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "target_url": url
        }

        status = error.status_code if isinstance(error, ScrapeError) else 500

        log = self.logger.warning if status < 500 else self.logger.error
        log(
            "scrape_error",
            extra={
                "event": "scrape_error",
                "error_type": error_key,
                "detail": str(error)[:200],
                "dur_ms": duration_ms,
                "error_count": self.error_counts[error_key],
            },
        )

        message = str(error) or type(error).__name__
        return {"success": False, "error": message}, status

    def get_error_stats(self) -> Dict[str, Any]:
        """Get error statistics for monitoring"""
        return {
            "error_counts": self.error_counts.copy(),
            "last_errors": {k: v.copy() for k, v in self.last_errors.items()},
            "total_errors": sum(self.error_counts.values())
        }

    def reset_error_stats(self):
        """Reset error statistics (for testing or periodic cleanup)"""
        self.error_counts.clear()
        self.last_errors.clear()


# Global error handler instance
global_error_handler = ErrorHandler()


def handle_scrape_error(url: str, error: Exception, duration_ms: int = None) -> Tuple[Dict[str, Any], int]:
    """Global function for handling acquisition errors"""
    return global_error_handler.handle_scrape_error(url, error, duration_ms)


def get_error_stats() -> Dict[str, Any]:
    """Get global error statistics"""
    return global_error_handler.get_error_stats()
