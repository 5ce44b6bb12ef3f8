"""
Video metadata extraction from the rendered watch page.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

from logging_setup import get_logger
from log_events import evt

logger = get_logger(__name__)

TITLE_REGION_SELECTOR = "#title"
TITLE_SUFFIX = " - YouTube"

METADATA_SELECTORS = {
    "video_title": "h1.ytd-video-primary-info-renderer, #title h1",
    "channel_name": "#owner-name a, #channel-name a",
    "channel_subscribers": "#owner-sub-count",
    "views": "#count .view-count, #count span",
    "post_date": "#info-strings yt-formatted-string, #date yt-formatted-string",
}

# Reads every field in one round trip; unmatched selectors become ''
_READ_FIELDS_JS = """
(selectors) => {
    const getText = (selector) => document.querySelector(selector)?.textContent?.trim() || '';
    const result = {};
    for (const [field, selector] of Object.entries(selectors)) {
        result[field] = getText(selector);
    }
    return result;
}
"""


@dataclass
class VideoMetadata:
    """Flat metadata record. Every field is free text and defaults to ''."""

    video_title: str = ""
    channel_name: str = ""
    channel_subscribers: str = ""
    views: str = ""
    post_date: str = ""

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "VideoMetadata":
        if not isinstance(data, Mapping):
            data = {}
        values = {}
        for name in cls.__dataclass_fields__:
            value = data.get(name)
            values[name] = value.strip() if isinstance(value, str) else ""
        return cls(**values)

    @classmethod
    def empty(cls) -> "VideoMetadata":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not any(asdict(self).values())

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def title_from_page_title(page_title: Optional[str]) -> str:
    """Approximate the video title from the document title."""
    return (page_title or "").replace(TITLE_SUFFIX, "").strip()


async def extract_video_metadata(page, config) -> VideoMetadata:
    """
    Read title, channel, subscriber, view and date text from the current DOM.

    Falls back to the document title when the primary read fails, and to an
    all-empty record when that fails too. Never raises.
    """
    try:
        await page.wait_for_selector(
            TITLE_REGION_SELECTOR, state="attached", timeout=config.metadata_timeout * 1000
        )
        await page.wait_for_timeout(config.after_navigation_delay * 1000)

        raw = await page.evaluate(_READ_FIELDS_JS, METADATA_SELECTORS)
        metadata = VideoMetadata.from_mapping(raw)

        evt("metadata_extracted",
            source="dom",
            empty_fields=[k for k, v in metadata.to_dict().items() if not v])
        return metadata

    except Exception as e:
        logger.warning(f"metadata: primary extraction failed: {type(e).__name__}")
        evt("metadata_primary_failed",
            error_type=type(e).__name__,
            detail=str(e)[:100])

    try:
        page_title = await page.title()
        metadata = VideoMetadata(video_title=title_from_page_title(page_title))
        evt("metadata_extracted", source="page_title")
        return metadata

    except Exception as fallback_error:
        evt("metadata_fallback_failed",
            error_type=type(fallback_error).__name__,
            detail=str(fallback_error)[:100])
        return VideoMetadata.empty()
