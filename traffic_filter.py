"""
Sub-resource traffic shaping for scrape pages.

Images, fonts, media and known ad/tracking endpoints are aborted before they
are sent. Document and XHR requests always go through: they carry the page
itself and the internal API calls the transcript capture waits for.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

from logging_setup import get_logger
from log_events import evt

logger = get_logger(__name__)

ALWAYS_ALLOWED_TYPES = frozenset({"document", "xhr"})

DEFAULT_BLOCK_PATTERNS = frozenset({
    "googlevideo.com/videoplayback?expire=",
    # Image formats
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".webp",
    ".svg",
    ".ico",
    ".ytimg.com/vi",
    "s/gaming/emoji",
    "/yt3.ggpht.com/ytc",
    "data:image",
    # Fonts
    ".woff",
    ".woff2",
    ".ttf",
    ".otf",
    ".eot",
    # Media files
    ".mp4",
    ".mp3",
    ".webm",
    ".avi",
    # Ad, tracker and analytics domains/paths
    "doubleclick.net",
    "google-analytics.com",
    "googlesyndication.com",
    "googleadservices.com",
    "googletagmanager.com",
    "youtube.com/api/stats/",
    "youtube.com/csi",
    "youtube.com/ptracking",
    "sentry.io",
    "newrelic.com",
    "facebook.com",
    "facebook.net",
    "fbcdn.net",
    "twitter.com",
    "pbs.twimg.com",
    "criteo.com",
    "criteo.net",
    "adnxs.com",
    "taboola.com",
    "outbrain.com",
    "contextual.media.net",
    "smartadserver.com",
    "creativecdn.com",
    "asalemedia",
    "ubiconproject",
    "3lift",
    "am-cell",
    "opera",
    "ds.yahoo",
    # Other non-essential paths
    "/static/",
    "fragment/fly-out",
    # Documents
    ".pdf",
    ".xlsx",
    ".doc",
    ".docx",
    "ytimg.com/log_event",
})


@dataclass(frozen=True)
class TrafficPolicy:
    """Immutable allow/abort policy for outgoing sub-resource requests."""

    block_patterns: FrozenSet[str] = DEFAULT_BLOCK_PATTERNS
    always_allow_types: FrozenSet[str] = ALWAYS_ALLOWED_TYPES

    def should_block(self, url: str, resource_type: str) -> bool:
        """Return True when the request should be aborted."""
        if resource_type in self.always_allow_types:
            return False
        return any(pattern in url for pattern in self.block_patterns)

    def with_patterns(self, extra: Iterable[str]) -> "TrafficPolicy":
        """Return a new policy blocking ``extra`` patterns in addition to these."""
        extra = frozenset(p for p in extra if p)
        if not extra:
            return self
        return TrafficPolicy(
            block_patterns=self.block_patterns | extra,
            always_allow_types=self.always_allow_types,
        )


@dataclass
class TrafficStats:
    """Per-page counters, reported once the page is released."""

    allowed: int = 0
    blocked: int = 0
    errors: int = 0
    blocked_types: dict = field(default_factory=dict)

    def record_block(self, resource_type: str) -> None:
        self.blocked += 1
        self.blocked_types[resource_type] = self.blocked_types.get(resource_type, 0) + 1


async def install_traffic_filter(page, policy: TrafficPolicy = None) -> TrafficStats:
    """
    Register a route handler on ``page`` that applies ``policy`` to every request.

    Must be called before navigation. Returns the stats object the handler
    updates as requests flow.
    """
    policy = policy or TrafficPolicy()
    stats = TrafficStats()

    async def handle_route(route):
        request = route.request
        try:
            if policy.should_block(request.url, request.resource_type):
                stats.record_block(request.resource_type)
                await route.abort()
            else:
                stats.allowed += 1
                await route.continue_()
        except Exception as e:
            # A failed abort/continue must never fail the page load
            stats.errors += 1
            logger.debug(f"traffic_filter: route handling failed: {type(e).__name__}: {e}")

    await page.route("**/*", handle_route)

    evt("traffic_filter_installed", pattern_count=len(policy.block_patterns))
    return stats
