"""
Process-wide browser engine.

One Chromium instance is launched at startup and shared by every request as a
page factory. Playwright's async API is bound to the event loop that started
it, so the engine owns a private loop running on a daemon thread and
synchronous callers submit coroutines to it through ``run()``.
"""

import asyncio
import concurrent.futures
import threading
from typing import Any, Coroutine, Optional

from playwright.async_api import Browser, Playwright, async_playwright

from error_handler import EngineNotInitializedError
from logging_setup import get_logger
from log_events import evt
from scrape_config import ScrapeConfig, get_scrape_config

logger = get_logger(__name__)

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]
STARTUP_TIMEOUT = 60  # seconds
SHUTDOWN_TIMEOUT = 30  # seconds


class BrowserEngine:
    """Lifecycle-scoped owner of the Playwright driver and the shared browser."""

    def __init__(self, config: Optional[ScrapeConfig] = None):
        self.config = config or get_scrape_config()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = threading.Lock()

    @property
    def is_ready(self) -> bool:
        return (
            self._browser is not None
            and self._browser.is_connected()
            and self._loop is not None
            and self._loop.is_running()
        )

    def start(self) -> None:
        """Start the engine loop and launch the browser. Idempotent."""
        with self._lock:
            if self._browser is not None:
                return

            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(
                target=self._run_loop, name="browser-engine", daemon=True
            )
            self._thread.start()

            future = asyncio.run_coroutine_threadsafe(self._launch(), self._loop)
            try:
                future.result(timeout=STARTUP_TIMEOUT)
            except Exception as e:
                logger.error(f"Failed to initialize browser: {type(e).__name__}: {e}")
                self._stop_loop()
                raise

        logger.info("Browser initialized successfully")
        evt("engine_started", headless=self.config.headless)

    def stop(self) -> None:
        """Close the browser, stop the driver and the loop. Idempotent."""
        with self._lock:
            if self._loop is None:
                return

            if self._loop.is_running():
                future = asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop)
                try:
                    future.result(timeout=SHUTDOWN_TIMEOUT)
                except Exception as e:
                    logger.warning(f"Browser shutdown incomplete: {type(e).__name__}: {e}")

            self._stop_loop()

        logger.info("Browser closed")
        evt("engine_stopped")

    async def new_page(self):
        """Create an isolated page (own browser context). Must run on the engine loop."""
        if self._browser is None or not self._browser.is_connected():
            raise EngineNotInitializedError("Browser not initialized")
        return await self._browser.new_page()

    def run(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        """
        Run ``coro`` on the engine loop and block for its result.

        The coroutine is cancelled if ``timeout`` elapses first.
        """
        if self._loop is None or not self._loop.is_running():
            coro.close()
            raise EngineNotInitializedError("Browser not initialized")

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise TimeoutError(f"Scrape did not finish within {timeout:g} seconds")

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    async def _launch(self) -> None:
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=BROWSER_ARGS,
        )

    async def _shutdown(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        finally:
            self._browser = None
            if self._playwright is not None:
                await self._playwright.stop()
                self._playwright = None

    def _stop_loop(self) -> None:
        loop, thread = self._loop, self._thread
        self._loop = None
        self._thread = None
        self._browser = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout=SHUTDOWN_TIMEOUT)
        loop.close()


# Global engine instance
_browser_engine: Optional[BrowserEngine] = None
_engine_lock = threading.Lock()


def get_browser_engine() -> BrowserEngine:
    """Get the process-wide engine (created lazily, started by the caller)."""
    global _browser_engine
    with _engine_lock:
        if _browser_engine is None:
            _browser_engine = BrowserEngine()
        return _browser_engine


def shutdown_browser_engine() -> None:
    """Stop the process-wide engine if it was started."""
    global _browser_engine
    with _engine_lock:
        engine, _browser_engine = _browser_engine, None
    if engine is not None:
        engine.stop()
