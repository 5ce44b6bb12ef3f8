#!/usr/bin/env python3
"""
Unit tests for browser_engine.py lifecycle with a mocked Playwright driver.
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from browser_engine import BROWSER_ARGS, BrowserEngine
from error_handler import EngineNotInitializedError
from scrape_config import ScrapeConfig


def mock_playwright():
    browser = MagicMock()
    browser.is_connected.return_value = True
    browser.close = AsyncMock()
    browser.new_page = AsyncMock(return_value="page")

    driver = MagicMock()
    driver.chromium.launch = AsyncMock(return_value=browser)
    driver.stop = AsyncMock()

    factory = MagicMock()
    factory.return_value.start = AsyncMock(return_value=driver)
    return factory, driver, browser


class TestBrowserEngine(unittest.TestCase):

    def setUp(self):
        self.factory, self.driver, self.browser = mock_playwright()
        patcher = patch('browser_engine.async_playwright', self.factory)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.engine = BrowserEngine(ScrapeConfig(headless=True))
        self.addCleanup(self.engine.stop)

    def test_not_ready_before_start(self):
        self.assertFalse(self.engine.is_ready)

    def test_run_before_start_raises(self):
        async def work():
            return 1

        coro = work()
        with self.assertRaises(EngineNotInitializedError):
            self.engine.run(coro)
        # The coroutine was closed rather than leaked
        self.assertIsNone(coro.cr_frame)

    def test_new_page_before_start_raises(self):
        with self.assertRaises(EngineNotInitializedError):
            asyncio.run(self.engine.new_page())

    def test_start_launches_chromium_once(self):
        self.engine.start()
        self.engine.start()

        self.assertTrue(self.engine.is_ready)
        self.driver.chromium.launch.assert_awaited_once_with(headless=True, args=BROWSER_ARGS)

    def test_run_executes_on_engine_loop(self):
        self.engine.start()

        async def open_page():
            return await self.engine.new_page()

        self.assertEqual(self.engine.run(open_page(), timeout=5), "page")

    def test_run_timeout(self):
        self.engine.start()

        with self.assertRaises(TimeoutError):
            self.engine.run(asyncio.sleep(5), timeout=0.05)

    def test_stop_closes_browser_and_driver(self):
        self.engine.start()
        self.engine.stop()

        self.browser.close.assert_awaited_once()
        self.driver.stop.assert_awaited_once()
        self.assertFalse(self.engine.is_ready)

        # Idempotent
        self.engine.stop()

    def test_failed_launch_leaves_engine_stopped(self):
        self.driver.chromium.launch = AsyncMock(side_effect=Exception("Executable doesn't exist"))

        with self.assertRaises(Exception):
            self.engine.start()

        self.assertFalse(self.engine.is_ready)


if __name__ == "__main__":
    unittest.main(verbosity=2)
