"""
Core logging infrastructure for the transcript scraper.

Provides minimal JSON logging with per-request context management,
rate limiting, and third-party library noise suppression.
"""

import contextvars
import json
import logging
import threading
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional, Set
from collections import defaultdict


# Per-task storage for request correlation. Pipeline runs share one event
# loop thread, so thread-local storage would leak context between them.
_scrape_ctx: contextvars.ContextVar[Optional[Dict[str, str]]] = contextvars.ContextVar(
    "scrape_ctx", default=None
)


def set_scrape_ctx(request_id: str = None, url: str = None):
    """
    Set context for request correlation.

    Args:
        request_id: Unique identifier of the scrape request
        url: Target page URL being processed
    """
    context = dict(_scrape_ctx.get() or {})

    if request_id is not None:
        context['request_id'] = request_id
    if url is not None:
        context['url'] = url

    _scrape_ctx.set(context)


def clear_scrape_ctx():
    """Clear request context."""
    _scrape_ctx.set(None)


def get_scrape_ctx() -> Dict[str, str]:
    """Get current request context."""
    return dict(_scrape_ctx.get() or {})


class JsonFormatter(logging.Formatter):
    """
    JSON formatter with standardized field order and context injection.

    Produces single-line JSON with stable schema:
    ts, lvl, request_id, url, stage, event, outcome, dur_ms, detail
    """

    _ORDERED_FIELDS = ('stage', 'event', 'outcome', 'dur_ms', 'detail')
    _OPTIONAL_FIELDS = ('attempt', 'state', 'error_type')

    _STANDARD_FIELDS = {
        'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
        'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
        'thread', 'threadName', 'processName', 'process', 'getMessage', 'exc_info',
        'exc_text', 'stack_info', 'taskName', 'ts', 'lvl', 'request_id', 'url',
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as single-line JSON."""
        try:
            dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
            timestamp = dt.strftime('%Y-%m-%dT%H:%M:%S') + f'.{int(dt.microsecond / 1000):03d}Z'

            log_data: Dict[str, Any] = {
                'ts': timestamp,
                'lvl': record.levelname
            }

            context = get_scrape_ctx()
            if 'request_id' in context:
                log_data['request_id'] = context['request_id']
            if 'url' in context:
                log_data['url'] = context['url']

            for field in self._ORDERED_FIELDS + self._OPTIONAL_FIELDS:
                if getattr(record, field, None) is not None:
                    log_data[field] = getattr(record, field)

            # Any other extra fields passed via logger.info(extra=...)
            skip = self._STANDARD_FIELDS.union(self._ORDERED_FIELDS, self._OPTIONAL_FIELDS)
            for attr_name, attr_value in vars(record).items():
                if attr_name.startswith('_') or attr_name in skip:
                    continue
                if attr_value is not None and not callable(attr_value):
                    log_data[attr_name] = attr_value

            if 'detail' not in log_data and record.getMessage():
                log_data['detail'] = record.getMessage()

            if record.exc_info and record.exc_info[0] is not None:
                log_data['exc_type'] = record.exc_info[0].__name__

            return json.dumps(log_data, separators=(',', ':'), ensure_ascii=False, default=str)

        except Exception:
            return json.dumps({
                'ts': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
                'lvl': record.levelname,
                'detail': str(record.msg),
            })


class RateLimitFilter(logging.Filter):
    """
    Rate limiting filter to prevent log spam.

    Limits messages to 5 per key per 60-second sliding window.
    Emits suppression markers when limits are exceeded.
    """

    def __init__(self, per_key: int = 5, window_sec: int = 60):
        super().__init__()
        self.per_key = per_key
        self.window_sec = window_sec
        self.counts: Dict[str, list] = defaultdict(list)
        self.suppressed: Set[str] = set()
        self._lock = threading.Lock()

    def _get_message_key(self, record: logging.LogRecord) -> str:
        """Key on level, event name and message template."""
        event = getattr(record, 'event', '') or ''
        message = record.getMessage()[:100]
        return f"{record.levelname}:{event}:{message}"

    def _cleanup_old_entries(self, key: str, now: float):
        """Remove entries outside the current window."""
        cutoff = now - self.window_sec
        self.counts[key] = [ts for ts in self.counts[key] if ts > cutoff]

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Filter log record based on rate limits.

        Returns:
            True if record should be logged, False otherwise
        """
        try:
            key = self._get_message_key(record)
            now = time.time()

            with self._lock:
                self._cleanup_old_entries(key, now)

                if len(self.counts[key]) < self.per_key:
                    self.counts[key].append(now)
                    self.suppressed.discard(key)
                    return True

                if key not in self.suppressed:
                    # First time over the limit in this window
                    self.suppressed.add(key)
                    record.msg = f"{record.getMessage()} [suppressed]"
                    record.args = ()
                    return True

                return False

        except Exception:
            return True


def configure_logging(log_level: str = "INFO", use_json: bool = True) -> logging.Logger:
    """
    Configure application logging with JSON formatting and noise suppression.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_json: Whether to use JSON formatting (True) or basic formatting (False)

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    handler = logging.StreamHandler()

    if use_json:
        formatter = JsonFormatter()
        handler.addFilter(RateLimitFilter())
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    _suppress_library_noise()

    return root_logger


def _suppress_library_noise():
    """Suppress verbose logging from third-party libraries."""
    library_levels = {
        'playwright': logging.WARNING,
        'asyncio': logging.WARNING,
        'urllib3': logging.WARNING,
        'werkzeug': logging.WARNING,
    }

    for library, level in library_levels.items():
        logging.getLogger(library).setLevel(level)


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (defaults to calling module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
