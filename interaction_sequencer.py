"""
DOM interaction steps that make the watch page request its transcript.

Each step reports a tagged StepResult instead of raising; the acquisition
pipeline decides which failures are fatal.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import tenacity

from logging_setup import get_logger
from log_events import evt

logger = get_logger(__name__)

# Description panel expander, then a less specific variant of the same panel
MORE_ACTIONS = "#description-inline-expander > #expand"
MORE_ACTIONS_ALT = "#description-inline-expander"
TRANSCRIPT_BUTTON = 'button[aria-label="Show transcript"]'
ANY_BUTTON = "button"
VIDEO_PLAYER = "#movie_player"

_SCROLL_INTO_VIEW_JS = "btn => btn.scrollIntoView({behavior: 'smooth', block: 'center'})"
_SCRIPT_CLICK_JS = "btn => btn.click()"


class StepStatus(Enum):
    SUCCEEDED = "succeeded"
    SUCCEEDED_DEGRADED = "succeeded_degraded"
    FAILED = "failed"


@dataclass(frozen=True)
class StepResult:
    """Outcome of one interaction step."""

    step: str
    status: StepStatus
    reason: Optional[str] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.status is not StepStatus.FAILED

    @property
    def degraded(self) -> bool:
        return self.status is StepStatus.SUCCEEDED_DEGRADED

    @classmethod
    def succeeded(cls, step: str, attempts: int = 1) -> "StepResult":
        return cls(step, StepStatus.SUCCEEDED, attempts=attempts)

    @classmethod
    def succeeded_degraded(cls, step: str, reason: str, attempts: int = 1) -> "StepResult":
        return cls(step, StepStatus.SUCCEEDED_DEGRADED, reason=reason, attempts=attempts)

    @classmethod
    def failed(cls, step: str, reason: str, attempts: int = 1) -> "StepResult":
        return cls(step, StepStatus.FAILED, reason=reason, attempts=attempts)


class TranscriptButtonNotFound(LookupError):
    """The transcript control is not in the DOM (yet)."""


def _describe(error: BaseException) -> str:
    return f"{type(error).__name__}: {str(error)[:160]}"


async def _click_when_visible(page, selector: str, config) -> None:
    element = await page.wait_for_selector(
        selector, state="visible", timeout=config.element_wait_timeout * 1000
    )
    if element is None:
        raise LookupError(f"No element matches {selector}")
    await element.click()
    await page.wait_for_timeout(config.after_click_delay * 1000)


async def expand_description(page, config) -> StepResult:
    """
    Step A: expand the description panel.

    Tries the expand control first, then the panel container itself.
    """
    step = "expand_description"

    try:
        await _click_when_visible(page, MORE_ACTIONS, config)
        logger.info(f"interaction: expanded description via [{MORE_ACTIONS}]")
        evt("interaction_description_expanded", selector=MORE_ACTIONS)
        return StepResult.succeeded(step)
    except Exception as primary_error:
        evt("interaction_description_primary_failed",
            selector=MORE_ACTIONS,
            detail=_describe(primary_error))
        logger.warning("interaction: could not click expand control, trying alternative selector")

    try:
        await _click_when_visible(page, MORE_ACTIONS_ALT, config)
        logger.info(f"interaction: expanded description via [{MORE_ACTIONS_ALT}]")
        evt("interaction_description_expanded", selector=MORE_ACTIONS_ALT)
        return StepResult.succeeded_degraded(step, reason="alternate selector")
    except Exception as alt_error:
        evt("interaction_description_failed",
            selector=MORE_ACTIONS_ALT,
            detail=_describe(alt_error))
        return StepResult.failed(step, reason=_describe(alt_error))


async def _click_transcript_button(page, config) -> str:
    """One attempt at the transcript control. Returns the click method used."""
    # Existence only: the first button in the DOM is often a hidden one
    await page.wait_for_selector(ANY_BUTTON, state="attached", timeout=config.element_wait_timeout * 1000)
    await page.wait_for_timeout(config.after_click_delay * 1000)

    buttons = await page.query_selector_all(TRANSCRIPT_BUTTON)
    if not buttons:
        raise TranscriptButtonNotFound(f"No element matches {TRANSCRIPT_BUTTON}")

    button = buttons[0]
    await button.evaluate(_SCROLL_INTO_VIEW_JS)
    await page.wait_for_timeout(config.after_scroll_delay * 1000)

    try:
        await button.click(timeout=config.element_wait_timeout * 1000)
        return "direct"
    except Exception as click_error:
        evt("interaction_transcript_direct_click_failed", detail=_describe(click_error))
        await button.evaluate(_SCRIPT_CLICK_JS)
        return "script"


def _log_transcript_retry(retry_state: tenacity.RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.info(f"interaction: retry {retry_state.attempt_number} for finding transcript button")
    evt("interaction_transcript_retry",
        attempt=retry_state.attempt_number,
        detail=_describe(error) if error else None)


async def open_transcript_panel(page, config) -> StepResult:
    """
    Step B: click the transcript control so the page issues get_transcript.

    Bounded at ``config.transcript_max_attempts`` attempts with a fixed pause
    between them.
    """
    step = "open_transcript_panel"
    attempts = 0
    method = None

    retrying = tenacity.AsyncRetrying(
        stop=tenacity.stop_after_attempt(config.transcript_max_attempts),
        wait=tenacity.wait_fixed(config.after_click_delay),
        retry=tenacity.retry_if_exception_type(Exception),
        before_sleep=_log_transcript_retry,
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                method = await _click_transcript_button(page, config)
    except Exception as e:
        evt("interaction_transcript_exhausted",
            attempt=attempts,
            detail=_describe(e))
        return StepResult.failed(step, reason=_describe(e), attempts=attempts)

    logger.info(f"interaction: clicked transcript button ({method})")
    evt("interaction_transcript_clicked", method=method, attempt=attempts)

    if method == "script":
        return StepResult.succeeded_degraded(step, reason="script click", attempts=attempts)
    return StepResult.succeeded(step, attempts=attempts)


async def wait_for_player(page, config) -> StepResult:
    """Bounded wait for the video player region."""
    step = "wait_for_player"
    try:
        await page.wait_for_selector(VIDEO_PLAYER, state="attached", timeout=config.element_wait_timeout * 1000)
        return StepResult.succeeded(step)
    except Exception as e:
        return StepResult.failed(step, reason=_describe(e))
