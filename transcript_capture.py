"""
Capture of the page's own get_transcript response.

The listener is armed before navigation so the response cannot be missed. The
first matching response and a hard timer race for one future: whichever
settles first wins, the other becomes a no-op, and the listener is removed on
either outcome.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from error_handler import CaptureParseError, CaptureTimeoutError
from logging_setup import get_logger
from log_events import evt
from metadata_extractor import VideoMetadata
from transcript_parser import extract_transcript_text

logger = get_logger(__name__)

TRANSCRIPT_API_URL = "https://www.youtube.com/youtubei/v1/get_transcript"
TRANSCRIPT_API_METHOD = "POST"

MetadataExtractor = Callable[..., Awaitable[VideoMetadata]]


@dataclass(frozen=True)
class CapturedTranscript:
    metadata: VideoMetadata
    transcript_text: str
    response_url: str


def is_transcript_response(response) -> bool:
    """True for the POST to the transcript endpoint."""
    try:
        return (
            TRANSCRIPT_API_URL in response.url
            and response.request.method == TRANSCRIPT_API_METHOD
        )
    except Exception:
        return False


class TranscriptCapture:
    """
    Single-resolution capture of one transcript response on one page.

    Usage:
        capture = TranscriptCapture(page, config, extract_video_metadata)
        capture.arm()                # before page.goto
        ...
        captured = await capture.wait()
        capture.detach()             # always, in a finally
    """

    def __init__(self, page, config, metadata_extractor: MetadataExtractor):
        self.page = page
        self.config = config
        self.metadata_extractor = metadata_extractor
        self.timeout = config.capture_timeout

        self.future: Optional[asyncio.Future] = None
        self.claimed = False
        self.listening = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._handler = self._on_response

    @property
    def done(self) -> bool:
        return self.future is not None and self.future.done()

    def arm(self) -> None:
        """Register the response listener and start the capture timer."""
        if self.future is not None:
            raise RuntimeError("TranscriptCapture can only be armed once")

        loop = asyncio.get_running_loop()
        self.future = loop.create_future()

        self.page.on("response", self._handler)
        self.listening = True
        self._timer = loop.call_later(self.timeout, self._on_timeout)

        evt("capture_armed", timeout_seconds=self.timeout)

    async def wait(self) -> CapturedTranscript:
        """Wait for the race to settle. Raises CaptureTimeoutError or CaptureParseError."""
        if self.future is None:
            raise RuntimeError("TranscriptCapture.wait() called before arm()")
        return await self.future

    def detach(self) -> None:
        """Remove the listener and timer; cancel the future if still pending."""
        self._cancel_timer()
        self._remove_listener()
        if self.future is None:
            return
        if not self.future.done():
            self.future.cancel()
        elif not self.future.cancelled():
            # Mark a timeout nobody awaited as retrieved
            self.future.exception()

    async def _on_response(self, response) -> None:
        if self.claimed or self.done or not is_transcript_response(response):
            return

        # Claim synchronously so a second matching response is ignored
        self.claimed = True
        logger.info("capture: target transcript network request intercepted")
        evt("capture_response_matched", response_url=response.url[:200])

        try:
            payload = await response.json()
        except Exception as e:
            self._reject(CaptureParseError(f"Failed to parse transcript response: {type(e).__name__}: {e}"))
            return

        try:
            metadata = await self.metadata_extractor(self.page, self.config)
            transcript_text = extract_transcript_text(payload)
        except Exception as e:
            self._reject(CaptureParseError(f"Failed to process transcript response: {type(e).__name__}: {e}"))
            return

        self._resolve(CapturedTranscript(
            metadata=metadata,
            transcript_text=transcript_text,
            response_url=response.url,
        ))

    def _on_timeout(self) -> None:
        self._timer = None
        if self.done:
            return

        self._remove_listener()
        evt("capture_timeout", timeout_seconds=self.timeout, claimed=self.claimed)
        self.future.set_exception(CaptureTimeoutError(
            f"Timeout: Transcript data not received within {self.timeout:g} seconds."
        ))

    def _resolve(self, captured: CapturedTranscript) -> None:
        if self.done:
            return
        self._cancel_timer()
        self._remove_listener()
        self.future.set_result(captured)
        evt("capture_resolved", transcript_length=len(captured.transcript_text))

    def _reject(self, error: Exception) -> None:
        if self.done:
            return
        self._cancel_timer()
        self._remove_listener()
        evt("capture_failed", error_type=type(error).__name__, detail=str(error)[:200])
        self.future.set_exception(error)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _remove_listener(self) -> None:
        if not self.listening:
            return
        self.listening = False
        try:
            self.page.remove_listener("response", self._handler)
        except Exception as e:
            logger.debug(f"capture: listener removal failed: {type(e).__name__}")
