"""
Transcript payload parsing.

The transcript panel is populated by a POST to the internal
``youtubei/v1/get_transcript`` endpoint. Its response is an undocumented JSON
shape; the types below describe the subset this module relies on, with every
level optional.

Path:
    actions[0].updateEngagementPanelAction.content.transcriptRenderer
    .content.transcriptSearchPanelRenderer.body
    .transcriptSegmentListRenderer.initialSegments
"""

from typing import Any, List, Optional, TypedDict

from logging_setup import get_logger
from log_events import evt

logger = get_logger(__name__)


class TextRun(TypedDict, total=False):
    text: str


class Snippet(TypedDict, total=False):
    runs: List[TextRun]


class TranscriptSegmentRenderer(TypedDict, total=False):
    snippet: Snippet
    startMs: str
    endMs: str


class Segment(TypedDict, total=False):
    transcriptSegmentRenderer: TranscriptSegmentRenderer


class TranscriptSegmentListRenderer(TypedDict, total=False):
    initialSegments: List[Segment]


class SearchPanelBody(TypedDict, total=False):
    transcriptSegmentListRenderer: TranscriptSegmentListRenderer


class TranscriptSearchPanelRenderer(TypedDict, total=False):
    body: SearchPanelBody


class TranscriptRendererContent(TypedDict, total=False):
    transcriptSearchPanelRenderer: TranscriptSearchPanelRenderer


class TranscriptRenderer(TypedDict, total=False):
    content: TranscriptRendererContent


class EngagementPanelContent(TypedDict, total=False):
    transcriptRenderer: TranscriptRenderer


class UpdateEngagementPanelAction(TypedDict, total=False):
    content: EngagementPanelContent


class PanelAction(TypedDict, total=False):
    updateEngagementPanelAction: UpdateEngagementPanelAction


class TranscriptPayload(TypedDict, total=False):
    actions: List[PanelAction]


SEGMENTS_PATH = (
    "updateEngagementPanelAction",
    "content",
    "transcriptRenderer",
    "content",
    "transcriptSearchPanelRenderer",
    "body",
    "transcriptSegmentListRenderer",
    "initialSegments",
)


def _get(node: Any, key: str) -> Any:
    return node.get(key) if isinstance(node, dict) else None


def find_initial_segments(payload: Any) -> Optional[List[Segment]]:
    """Resolve the segment list, or None if any level of the path is missing."""
    actions = _get(payload, "actions")
    if not isinstance(actions, list) or not actions:
        return None

    node = actions[0]
    for key in SEGMENTS_PATH:
        node = _get(node, key)
        if node is None:
            return None

    return node if isinstance(node, list) else None


def _segment_text(segment: Any) -> str:
    renderer = _get(segment, "transcriptSegmentRenderer")
    runs = _get(_get(renderer, "snippet"), "runs")
    if not isinstance(runs, list) or not runs:
        return ""
    text = _get(runs[0], "text")
    return text if isinstance(text, str) else ""


def extract_transcript_text(payload: Any) -> str:
    """
    Flatten a transcript payload into one line of text.

    Segments are joined with a single space, embedded newlines become spaces
    and the result is trimmed. A payload without the expected structure yields
    an empty string; this function never raises.
    """
    segments = find_initial_segments(payload)
    if not segments:
        evt("transcript_segments_missing",
            path_resolved=segments is not None)
        logger.warning("Could not find transcript segments in the expected JSON structure")
        return ""

    text = " ".join(_segment_text(segment) for segment in segments)
    return text.replace("\n", " ").strip()
