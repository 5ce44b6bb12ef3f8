#!/usr/bin/env python3
"""
Test scrape configuration loading and bounds
"""

import os
import sys
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from scrape_config import ScrapeConfig, get_scrape_config, reload_scrape_config


class TestScrapeConfigDefaults(unittest.TestCase):

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self):
        config = ScrapeConfig.from_env()

        self.assertEqual(config.port, 3000)
        self.assertTrue(config.headless)
        self.assertEqual(config.navigation_timeout, 60.0)
        self.assertEqual(config.capture_timeout, 60.0)
        self.assertEqual(config.element_wait_timeout, 15.0)
        self.assertEqual(config.metadata_timeout, 10.0)
        self.assertEqual(config.after_navigation_delay, 2.0)
        self.assertEqual(config.after_click_delay, 1.0)
        self.assertEqual(config.after_scroll_delay, 1.0)
        self.assertEqual(config.transcript_max_attempts, 3)
        self.assertEqual(config.extra_block_patterns, ())

    @patch.dict(os.environ, {"NAVIGATION_TIMEOUT": "90"}, clear=True)
    def test_capture_timeout_follows_navigation_timeout(self):
        config = ScrapeConfig.from_env()
        self.assertEqual(config.navigation_timeout, 90.0)
        self.assertEqual(config.capture_timeout, 90.0)

    @patch.dict(os.environ, {"NAVIGATION_TIMEOUT": "90", "CAPTURE_TIMEOUT": "45"}, clear=True)
    def test_capture_timeout_override(self):
        self.assertEqual(ScrapeConfig.from_env().capture_timeout, 45.0)


class TestScrapeConfigParsing(unittest.TestCase):

    @patch.dict(os.environ, {"PORT": "8080", "HEADLESS": "false", "TRANSCRIPT_MAX_ATTEMPTS": "5"}, clear=True)
    def test_overrides(self):
        config = ScrapeConfig.from_env()
        self.assertEqual(config.port, 8080)
        self.assertFalse(config.headless)
        self.assertEqual(config.transcript_max_attempts, 5)

    @patch.dict(os.environ, {"ELEMENT_WAIT_TIMEOUT": "0.1", "TRANSCRIPT_MAX_ATTEMPTS": "50"}, clear=True)
    def test_values_are_clamped(self):
        config = ScrapeConfig.from_env()
        self.assertEqual(config.element_wait_timeout, 1.0)
        self.assertEqual(config.transcript_max_attempts, 10)

    @patch.dict(os.environ, {"NAVIGATION_TIMEOUT": "soon", "PORT": "http"}, clear=True)
    def test_invalid_values_use_defaults(self):
        config = ScrapeConfig.from_env()
        self.assertEqual(config.navigation_timeout, 60.0)
        self.assertEqual(config.port, 3000)

    @patch.dict(os.environ, {"EXTRA_BLOCK_PATTERNS": " tracker.example , ,/beacon "}, clear=True)
    def test_extra_block_patterns(self):
        config = ScrapeConfig.from_env()
        self.assertEqual(config.extra_block_patterns, ("tracker.example", "/beacon"))

    def test_bool_parsing(self):
        for value, expected in (("1", True), ("yes", True), ("ON", True), ("0", False), ("no", False)):
            with patch.dict(os.environ, {"HEADLESS": value}):
                self.assertEqual(ScrapeConfig._parse_bool_env("HEADLESS", True), expected, value)


class TestScrapeConfigSerialization(unittest.TestCase):

    def test_to_dict_sections(self):
        data = ScrapeConfig().to_dict()
        self.assertEqual(set(data), {"service", "timeouts", "delays", "retries", "traffic"})
        self.assertEqual(data["timeouts"]["capture_timeout"], 60.0)
        self.assertEqual(data["retries"]["transcript_max_attempts"], 3)


class TestGlobalConfig(unittest.TestCase):

    @patch.dict(os.environ, {"METADATA_TIMEOUT": "20"}, clear=True)
    def test_reload_picks_up_environment(self):
        config = reload_scrape_config()
        self.assertEqual(config.metadata_timeout, 20.0)
        self.assertIs(get_scrape_config(), config)

    def tearDown(self):
        with patch.dict(os.environ, {}, clear=True):
            reload_scrape_config()


if __name__ == "__main__":
    unittest.main()
