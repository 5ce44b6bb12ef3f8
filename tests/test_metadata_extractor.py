#!/usr/bin/env python3
"""
Unit tests for metadata_extractor.py fallback chain.
"""

import asyncio
import unittest
from unittest.mock import AsyncMock, patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from metadata_extractor import (
    METADATA_SELECTORS, VideoMetadata, extract_video_metadata, title_from_page_title
)
from scrape_config import ScrapeConfig

FIELDS = ("video_title", "channel_name", "channel_subscribers", "views", "post_date")


def fast_config():
    return ScrapeConfig(metadata_timeout=2, after_navigation_delay=0)


class TestVideoMetadata(unittest.TestCase):

    def test_defaults_are_empty_strings(self):
        metadata = VideoMetadata()
        for field in FIELDS:
            self.assertEqual(getattr(metadata, field), "")
        self.assertTrue(metadata.is_empty)

    def test_from_mapping_coerces_missing_and_none(self):
        metadata = VideoMetadata.from_mapping({"video_title": " Title ", "views": None, "unknown": "x"})
        self.assertEqual(metadata.video_title, "Title")
        self.assertEqual(metadata.views, "")
        self.assertEqual(metadata.channel_name, "")
        self.assertFalse(metadata.is_empty)

    def test_from_mapping_accepts_non_mapping(self):
        self.assertEqual(VideoMetadata.from_mapping(None), VideoMetadata())
        self.assertEqual(VideoMetadata.from_mapping(["a"]), VideoMetadata())

    def test_to_dict_has_service_field_names(self):
        self.assertEqual(tuple(VideoMetadata().to_dict().keys()), FIELDS)

    def test_title_from_page_title(self):
        self.assertEqual(title_from_page_title("My Video - YouTube"), "My Video")
        self.assertEqual(title_from_page_title("YouTube"), "YouTube")
        self.assertEqual(title_from_page_title(None), "")


@patch('metadata_extractor.evt')
class TestExtractVideoMetadata(unittest.TestCase):

    def test_reads_all_fields_in_one_pass(self, mock_evt):
        async def run_test():
            page = AsyncMock()
            page.evaluate = AsyncMock(return_value={
                "video_title": "Never Gonna Give You Up",
                "channel_name": "Rick Astley",
                "channel_subscribers": "4.2M subscribers",
                "views": "1,234,567 views",
                "post_date": "Oct 25, 2009",
            })

            metadata = await extract_video_metadata(page, fast_config())

            self.assertEqual(metadata.video_title, "Never Gonna Give You Up")
            self.assertEqual(metadata.channel_name, "Rick Astley")
            self.assertEqual(metadata.channel_subscribers, "4.2M subscribers")
            self.assertEqual(metadata.views, "1,234,567 views")
            self.assertEqual(metadata.post_date, "Oct 25, 2009")

            page.wait_for_selector.assert_awaited_once_with("#title", state="attached", timeout=2000)
            page.evaluate.assert_awaited_once()
            self.assertEqual(page.evaluate.await_args[0][1], METADATA_SELECTORS)
            page.title.assert_not_awaited()

        asyncio.run(run_test())

    def test_hidden_first_title_still_reads_dom(self, mock_evt):
        """Several #title ids exist on the watch page; the first may be hidden"""
        async def run_test():
            page = AsyncMock()
            page.evaluate = AsyncMock(return_value={"video_title": "T", "channel_name": "C"})

            async def wait_for_selector(selector, state="visible", **kwargs):
                if state == "visible":
                    raise TimeoutError("Timeout 2000ms exceeded")
                return AsyncMock()

            page.wait_for_selector = AsyncMock(side_effect=wait_for_selector)

            metadata = await extract_video_metadata(page, fast_config())

            self.assertEqual(metadata.channel_name, "C")
            page.title.assert_not_awaited()

        asyncio.run(run_test())

    def test_unmatched_selectors_default_to_empty(self, mock_evt):
        async def run_test():
            page = AsyncMock()
            page.evaluate = AsyncMock(return_value={field: "" for field in FIELDS})

            metadata = await extract_video_metadata(page, fast_config())

            self.assertEqual(metadata, VideoMetadata())

        asyncio.run(run_test())

    def test_falls_back_to_page_title(self, mock_evt):
        async def run_test():
            page = AsyncMock()
            page.wait_for_selector = AsyncMock(side_effect=TimeoutError("Timeout 10000ms exceeded"))
            page.title = AsyncMock(return_value="Some Talk - YouTube")

            metadata = await extract_video_metadata(page, fast_config())

            self.assertEqual(metadata, VideoMetadata(video_title="Some Talk"))
            page.evaluate.assert_not_awaited()

        asyncio.run(run_test())

    def test_evaluate_error_falls_back_to_page_title(self, mock_evt):
        async def run_test():
            page = AsyncMock()
            page.evaluate = AsyncMock(side_effect=Exception("Execution context was destroyed"))
            page.title = AsyncMock(return_value="Clip - YouTube")

            metadata = await extract_video_metadata(page, fast_config())

            self.assertEqual(metadata.video_title, "Clip")
            self.assertEqual(metadata.channel_name, "")

        asyncio.run(run_test())

    def test_never_raises_when_everything_fails(self, mock_evt):
        async def run_test():
            page = AsyncMock()
            page.wait_for_selector = AsyncMock(side_effect=Exception("Target closed"))
            page.title = AsyncMock(side_effect=Exception("Target closed"))

            metadata = await extract_video_metadata(page, fast_config())

            self.assertEqual(metadata, VideoMetadata.empty())
            events = [c[0][0] for c in mock_evt.call_args_list]
            self.assertIn("metadata_fallback_failed", events)

        asyncio.run(run_test())


if __name__ == "__main__":
    unittest.main(verbosity=2)
