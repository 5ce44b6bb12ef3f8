"""
Unit tests for log_events.py event helper functions.

Tests the evt() function and StageTimer context manager for:
- Consistent event emission
- Duration accuracy
- Exception handling
- Error classification
"""

import unittest
import logging
import time
import json
from io import StringIO

# Add parent directory to path for imports
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import log_events
from error_handler import CaptureTimeoutError, InputError, TranscriptPanelError
from logging_setup import JsonFormatter, clear_scrape_ctx


class LogCaptureTestCase(unittest.TestCase):
    """Routes root logging into a buffer with the JSON formatter."""

    def setUp(self):
        clear_scrape_ctx()
        self.log_buffer = StringIO()
        self.handler = logging.StreamHandler(self.log_buffer)
        self.handler.setFormatter(JsonFormatter())

        self.logger = logging.getLogger()
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)
        self.logger.addHandler(self.handler)
        self.logger.setLevel(logging.INFO)

    def tearDown(self):
        self.logger.removeHandler(self.handler)
        self.handler.close()

    def records(self):
        return [json.loads(line) for line in self.log_buffer.getvalue().splitlines() if line.strip()]


class TestEvtFunction(LogCaptureTestCase):
    """Test the evt() function for consistent event emission."""

    def test_evt_basic_event_emission(self):
        log_events.evt("test_event", field1="value1", field2=42)

        record = self.records()[-1]
        self.assertEqual(record["event"], "test_event")
        self.assertEqual(record["field1"], "value1")
        self.assertEqual(record["field2"], 42)
        self.assertEqual(record["lvl"], "INFO")

    def test_evt_level(self):
        log_events.evt("something_odd", level=logging.WARNING)
        self.assertEqual(self.records()[-1]["lvl"], "WARNING")

    def test_evt_with_no_additional_fields(self):
        log_events.evt("simple_event")
        self.assertEqual(self.records()[-1]["event"], "simple_event")

    def test_scrape_lifecycle_events(self):
        log_events.scrape_received("https://www.youtube.com/watch?v=abc")
        log_events.scrape_finished(duration_ms=1200, transcript_length=42, degraded=False)
        log_events.scrape_failed(duration_ms=300, error_type="capture_timeout", error_detail="Timeout")

        received, finished, failed = self.records()
        self.assertEqual(received["target_url"], "https://www.youtube.com/watch?v=abc")
        self.assertEqual(finished["outcome"], "success")
        self.assertEqual(finished["dur_ms"], 1200)
        self.assertEqual(finished["transcript_length"], 42)
        self.assertEqual(failed["lvl"], "WARNING")
        self.assertEqual(failed["outcome"], "error")
        self.assertEqual(failed["error_type"], "capture_timeout")


class TestStageTimer(LogCaptureTestCase):
    """Test the StageTimer context manager."""

    def test_stage_timer_success_case(self):
        with log_events.StageTimer("navigation", wait_until="networkidle"):
            time.sleep(0.01)

        start, result = self.records()
        self.assertEqual(start["event"], "stage_start")
        self.assertEqual(result["event"], "stage_result")
        self.assertEqual(result["stage"], "navigation")
        self.assertEqual(result["outcome"], "success")
        self.assertEqual(result["wait_until"], "networkidle")

    def test_stage_timer_duration_accuracy(self):
        with log_events.StageTimer("duration_test") as timer:
            time.sleep(0.05)

        result = self.records()[-1]
        self.assertEqual(result["dur_ms"], timer.duration_ms)
        self.assertGreaterEqual(timer.duration_ms, 45)

    def test_stage_timer_exception_handling(self):
        with self.assertRaises(ValueError):
            with log_events.StageTimer("interaction", attempt=2):
                raise ValueError("Test error message")

        result = self.records()[-1]
        self.assertEqual(result["outcome"], "error")
        self.assertEqual(result["attempt"], 2)
        self.assertEqual(result["detail"], "ValueError: Test error message")

    def test_stage_timer_inside_coroutine(self):
        import asyncio

        async def stage():
            with log_events.StageTimer("capture"):
                await asyncio.sleep(0.01)

        asyncio.run(stage())
        self.assertEqual(self.records()[-1]["outcome"], "success")


class TestClassifyErrorType(unittest.TestCase):

    def test_declared_error_types_win(self):
        self.assertEqual(log_events.classify_error_type(InputError("x")), "input_error")
        self.assertEqual(log_events.classify_error_type(TranscriptPanelError("x")), "fatal_ui_error")
        self.assertEqual(log_events.classify_error_type(CaptureTimeoutError("Timeout")), "capture_timeout")

    def test_heuristics(self):
        self.assertEqual(log_events.classify_error_type(TimeoutError("Timeout 30000ms exceeded")),
                         "timeout_error")
        self.assertEqual(log_events.classify_error_type(Exception("net::ERR_CONNECTION_RESET")),
                         "network_error")
        self.assertEqual(log_events.classify_error_type(Exception("Target closed")), "engine_error")
        self.assertEqual(log_events.classify_error_type(Exception("something else")), "unknown_error")


if __name__ == '__main__':
    unittest.main()
