"""
Transcript acquisition pipeline.

Drives one page through navigation, player wait, the interaction steps and
the transcript capture race, then assembles the result. Exactly one page is
created per run and it is closed on every exit path.

States: INIT -> NAVIGATING -> AWAITING_PLAYER -> INTERACTING -> CAPTURING
        -> ASSEMBLING -> DONE, with any fatal error ending in FAILED.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, Optional

from error_handler import EngineNotInitializedError, InputError, NavigationError, TranscriptPanelError
from interaction_sequencer import StepResult, expand_description, open_transcript_panel, wait_for_player
from logging_setup import get_logger, set_scrape_ctx
from log_events import StageTimer, classify_error_type, evt, scrape_failed, scrape_finished, scrape_received
from metadata_extractor import VideoMetadata, extract_video_metadata
from scrape_config import ScrapeConfig, get_scrape_config
from traffic_filter import TrafficPolicy, TrafficStats, install_traffic_filter
from transcript_capture import TranscriptCapture

logger = get_logger(__name__)

STRICT_WAIT_UNTIL = "networkidle"
RELAXED_WAIT_UNTIL = "domcontentloaded"


class PipelineState(Enum):
    INIT = "init"
    NAVIGATING = "navigating"
    AWAITING_PLAYER = "awaiting_player"
    INTERACTING = "interacting"
    CAPTURING = "capturing"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S') + f'.{int(moment.microsecond / 1000):03d}Z'


@dataclass
class AcquisitionResult:
    metadata: VideoMetadata
    transcript_text: str
    source_url: str
    captured_at: datetime

    @property
    def degraded(self) -> bool:
        return self.metadata.is_empty or not self.transcript_text

    def to_dict(self) -> Dict[str, Any]:
        """Flat service payload."""
        return {
            **self.metadata.to_dict(),
            "transcript_text": self.transcript_text,
            "url": self.source_url,
            "timestamp": format_timestamp(self.captured_at),
        }


class AcquisitionPipeline:
    """One acquisition run. Create a new instance per URL."""

    def __init__(self, engine, config: Optional[ScrapeConfig] = None, policy: Optional[TrafficPolicy] = None):
        self.engine = engine
        self.config = config or get_scrape_config()
        self.policy = policy or TrafficPolicy().with_patterns(self.config.extra_block_patterns)
        self.request_id = uuid.uuid4().hex[:12]
        self.state = PipelineState.INIT
        self.traffic: Optional[TrafficStats] = None

    def _transition(self, state: PipelineState) -> None:
        evt("pipeline_state", state=state.value, previous=self.state.value)
        self.state = state

    async def acquire(self, url: str) -> AcquisitionResult:
        """
        Run the pipeline for ``url``.

        Raises:
            InputError: url is missing or blank; no page is created
            EngineNotInitializedError: the shared engine is not started
            NavigationError, TranscriptPanelError, CaptureTimeoutError,
            CaptureParseError: fatal pipeline failures
        """
        url = url.strip() if isinstance(url, str) else ""
        if not url:
            raise InputError("URL is required in request body")
        if self.engine is None or not self.engine.is_ready:
            raise EngineNotInitializedError("Browser not initialized")

        set_scrape_ctx(request_id=self.request_id, url=url)
        scrape_received(url)
        start_time = time.time()

        page = None
        capture = None
        try:
            self._transition(PipelineState.NAVIGATING)
            page = await self.engine.new_page()
            self.traffic = await install_traffic_filter(page, self.policy)

            # Listener goes in before goto so the response cannot be missed
            capture = TranscriptCapture(page, self.config, extract_video_metadata)
            capture.arm()

            await self._navigate(page, url)
            self._raise_if_capture_lost(capture)

            self._transition(PipelineState.AWAITING_PLAYER)
            await page.wait_for_timeout(self.config.after_navigation_delay * 1000)
            player = await wait_for_player(page, self.config)
            if not player.ok:
                logger.warning("Video player not found, but continuing...")
                evt("pipeline_player_missing", detail=player.reason)
            self._raise_if_capture_lost(capture)

            self._transition(PipelineState.INTERACTING)
            with StageTimer("interaction"):
                # Not a prerequisite for the transcript control on known layouts
                expanded = await self._unless_capture_settled(
                    capture,
                    expand_description(page, self.config),
                    StepResult.succeeded_degraded("expand_description", reason="capture settled"),
                )
                if not expanded.ok:
                    logger.warning("Description panel not expanded, continuing to transcript button")

                opened = await self._unless_capture_settled(
                    capture,
                    open_transcript_panel(page, self.config),
                    StepResult.succeeded_degraded("open_transcript_panel", reason="capture settled", attempts=0),
                )
                if not opened.ok:
                    raise TranscriptPanelError(
                        f"Could not open transcript panel after {opened.attempts} attempts: {opened.reason}"
                    )

            self._transition(PipelineState.CAPTURING)
            with StageTimer("capture", timeout_seconds=self.config.capture_timeout):
                captured = await capture.wait()

            self._transition(PipelineState.ASSEMBLING)
            result = AcquisitionResult(
                metadata=captured.metadata,
                transcript_text=captured.transcript_text,
                source_url=page.url,
                captured_at=datetime.now(timezone.utc),
            )

            self._transition(PipelineState.DONE)
            scrape_finished(
                duration_ms=int((time.time() - start_time) * 1000),
                transcript_length=len(result.transcript_text),
                degraded=result.degraded,
                description_expanded=expanded.status.value,
                transcript_click=opened.status.value,
            )
            return result

        except Exception as e:
            self._transition(PipelineState.FAILED)
            scrape_failed(
                duration_ms=int((time.time() - start_time) * 1000),
                error_type=classify_error_type(e),
                error_detail=str(e)[:200],
            )
            raise

        finally:
            if capture is not None:
                capture.detach()
            if page is not None:
                await self._close_page(page)

    @staticmethod
    def _raise_if_capture_lost(capture: TranscriptCapture) -> None:
        """Stop early when the capture already timed out or failed."""
        if capture.done and capture.future.exception() is not None:
            raise capture.future.exception()

    async def _unless_capture_settled(self, capture: TranscriptCapture, step: Awaitable[StepResult],
                                      settled_result: StepResult) -> StepResult:
        """
        Run an interaction step, abandoning it once the capture race settles.

        A lost race re-raises the capture error. A won race returns
        ``settled_result`` in place of the step's own result.
        """
        task = asyncio.ensure_future(step)
        try:
            done, _ = await asyncio.wait({task, capture.future}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        evt("pipeline_step_abandoned", step=settled_result.step)

        capture.future.result()
        return settled_result

    async def _navigate(self, page, url: str) -> None:
        """Navigate with the strict wait condition, retrying once with the relaxed one."""
        timeout_ms = self.config.navigation_timeout * 1000

        try:
            with StageTimer("navigation", wait_until=STRICT_WAIT_UNTIL):
                await page.goto(url, wait_until=STRICT_WAIT_UNTIL, timeout=timeout_ms)
            return
        except Exception as e:
            logger.warning(f"Navigation error, retrying with {RELAXED_WAIT_UNTIL}: {type(e).__name__}")

        try:
            with StageTimer("navigation", wait_until=RELAXED_WAIT_UNTIL):
                await page.goto(url, wait_until=RELAXED_WAIT_UNTIL, timeout=timeout_ms)
        except Exception as e:
            raise NavigationError(f"Navigation to {url} failed: {type(e).__name__}: {e}") from e

    def _traffic_summary(self) -> Dict[str, Any]:
        if self.traffic is None:
            return {}
        return {
            "requests_allowed": self.traffic.allowed,
            "requests_blocked": self.traffic.blocked,
            "blocked_types": dict(self.traffic.blocked_types),
            "route_errors": self.traffic.errors,
        }

    async def _close_page(self, page) -> None:
        try:
            await page.close()
            evt("page_closed", **self._traffic_summary())
        except Exception as e:
            logger.warning(f"Failed to close page: {type(e).__name__}: {e}")
