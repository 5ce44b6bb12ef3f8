#!/usr/bin/env python3
"""
Scraper Configuration Management

This module provides centralized configuration for the transcript scraper:
timeouts, fixed delays, retry bounds and traffic shaping. Settings are loaded
from environment variables with sensible defaults and validated on load.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Tuple

from logging_setup import get_logger

logger = get_logger(__name__)


@dataclass
class ScrapeConfig:
    """Configuration for one scraper process. Durations are in seconds."""

    # HTTP service
    host: str = "0.0.0.0"
    port: int = 3000

    # Browser engine
    headless: bool = True

    # Timeout settings
    navigation_timeout: float = 60.0
    capture_timeout: float = 60.0
    element_wait_timeout: float = 15.0
    metadata_timeout: float = 10.0
    request_timeout: float = 180.0

    # Fixed delays
    after_navigation_delay: float = 2.0
    after_click_delay: float = 1.0
    after_scroll_delay: float = 1.0

    # Retry settings
    transcript_max_attempts: int = 3

    # Traffic shaping
    extra_block_patterns: Tuple[str, ...] = field(default_factory=tuple)

    # Logging
    log_level: str = "INFO"
    use_json_logs: bool = True

    @classmethod
    def from_env(cls) -> 'ScrapeConfig':
        """Load configuration from environment variables with validation."""
        try:
            navigation_timeout = cls._parse_float_env("NAVIGATION_TIMEOUT", 60.0, min_val=5.0, max_val=300.0)

            config = cls(
                host=os.getenv("HOST", "0.0.0.0"),
                port=cls._parse_int_env("PORT", 3000, min_val=1, max_val=65535),

                headless=cls._parse_bool_env("HEADLESS", True),

                navigation_timeout=navigation_timeout,
                # The capture race is bounded by the navigation timeout unless overridden
                capture_timeout=cls._parse_float_env("CAPTURE_TIMEOUT", navigation_timeout, min_val=5.0, max_val=300.0),
                element_wait_timeout=cls._parse_float_env("ELEMENT_WAIT_TIMEOUT", 15.0, min_val=1.0, max_val=120.0),
                metadata_timeout=cls._parse_float_env("METADATA_TIMEOUT", 10.0, min_val=1.0, max_val=120.0),
                request_timeout=cls._parse_float_env("REQUEST_TIMEOUT", 180.0, min_val=30.0, max_val=900.0),

                after_navigation_delay=cls._parse_float_env("AFTER_NAVIGATION_DELAY", 2.0, min_val=0.0, max_val=30.0),
                after_click_delay=cls._parse_float_env("AFTER_CLICK_DELAY", 1.0, min_val=0.0, max_val=30.0),
                after_scroll_delay=cls._parse_float_env("AFTER_SCROLL_DELAY", 1.0, min_val=0.0, max_val=30.0),

                transcript_max_attempts=cls._parse_int_env("TRANSCRIPT_MAX_ATTEMPTS", 3, min_val=1, max_val=10),

                extra_block_patterns=cls._parse_list_env("EXTRA_BLOCK_PATTERNS"),

                log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
                use_json_logs=cls._parse_bool_env("USE_JSON_LOGS", True),
            )

            config._validate_config()
            config._log_config()

            return config

        except Exception as e:
            logger.error(f"Failed to load scrape configuration: {e}")
            logger.warning("Using default scrape configuration")
            return cls()

    @staticmethod
    def _parse_bool_env(env_var: str, default: bool) -> bool:
        """Parse boolean environment variable."""
        value = os.getenv(env_var, str(default).lower())
        return value.strip().lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _parse_int_env(env_var: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
        """Parse integer environment variable with bounds."""
        try:
            value = int(os.getenv(env_var, str(default)))
        except (ValueError, TypeError):
            logger.error(f"Invalid value for {env_var}: {os.getenv(env_var)}, using default {default}")
            return default

        if min_val is not None and value < min_val:
            logger.warning(f"{env_var}={value} is below minimum {min_val}, using {min_val}")
            return min_val

        if max_val is not None and value > max_val:
            logger.warning(f"{env_var}={value} is above maximum {max_val}, using {max_val}")
            return max_val

        return value

    @staticmethod
    def _parse_float_env(env_var: str, default: float, min_val: Optional[float] = None, max_val: Optional[float] = None) -> float:
        """Parse float environment variable with bounds."""
        try:
            value = float(os.getenv(env_var, str(default)))
        except (ValueError, TypeError):
            logger.error(f"Invalid value for {env_var}: {os.getenv(env_var)}, using default {default}")
            return default

        if min_val is not None and value < min_val:
            logger.warning(f"{env_var}={value} is below minimum {min_val}, using {min_val}")
            return min_val

        if max_val is not None and value > max_val:
            logger.warning(f"{env_var}={value} is above maximum {max_val}, using {max_val}")
            return max_val

        return value

    @staticmethod
    def _parse_list_env(env_var: str) -> Tuple[str, ...]:
        """Parse a comma-separated environment variable, dropping blanks."""
        raw = os.getenv(env_var, "")
        return tuple(item.strip() for item in raw.split(",") if item.strip())

    def _validate_config(self) -> None:
        """Log warnings for problematic combinations."""
        warnings = []

        if self.capture_timeout <= self.element_wait_timeout:
            warnings.append(
                f"Capture timeout ({self.capture_timeout}s) is not longer than element wait "
                f"({self.element_wait_timeout}s) - transcript capture will likely time out"
            )

        worst_case = self.navigation_timeout * 2 + self.capture_timeout
        if self.request_timeout < worst_case:
            warnings.append(
                f"Request timeout ({self.request_timeout}s) is shorter than the worst-case "
                f"pipeline duration ({worst_case}s)"
            )

        for warning in warnings:
            logger.warning(f"Configuration warning: {warning}")

    def _log_config(self) -> None:
        """Log current configuration for debugging deployment issues."""
        logger.info("Scrape configuration loaded:")
        logger.info(f"  Service: host={self.host}, port={self.port}, headless={self.headless}")
        logger.info(f"  Timeouts: navigation={self.navigation_timeout}s, capture={self.capture_timeout}s, "
                    f"element={self.element_wait_timeout}s, metadata={self.metadata_timeout}s")
        logger.info(f"  Delays: navigation={self.after_navigation_delay}s, click={self.after_click_delay}s, "
                    f"scroll={self.after_scroll_delay}s")
        logger.info(f"  Retries: transcript_button={self.transcript_max_attempts}")
        if self.extra_block_patterns:
            logger.info(f"  Extra block patterns: {len(self.extra_block_patterns)}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for serialization."""
        return {
            "service": {
                "host": self.host,
                "port": self.port,
                "headless": self.headless
            },
            "timeouts": {
                "navigation_timeout": self.navigation_timeout,
                "capture_timeout": self.capture_timeout,
                "element_wait_timeout": self.element_wait_timeout,
                "metadata_timeout": self.metadata_timeout,
                "request_timeout": self.request_timeout
            },
            "delays": {
                "after_navigation_delay": self.after_navigation_delay,
                "after_click_delay": self.after_click_delay,
                "after_scroll_delay": self.after_scroll_delay
            },
            "retries": {
                "transcript_max_attempts": self.transcript_max_attempts
            },
            "traffic": {
                "extra_block_patterns": list(self.extra_block_patterns)
            }
        }


# Global configuration instance
_scrape_config: Optional[ScrapeConfig] = None


def get_scrape_config() -> ScrapeConfig:
    """Get the global scrape configuration instance."""
    global _scrape_config
    if _scrape_config is None:
        _scrape_config = ScrapeConfig.from_env()
    return _scrape_config


def reload_scrape_config() -> ScrapeConfig:
    """Reload configuration from environment variables."""
    global _scrape_config
    _scrape_config = ScrapeConfig.from_env()
    return _scrape_config
