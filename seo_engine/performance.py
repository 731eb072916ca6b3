import base64
import logging
import re
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from typing import Callable, Optional

from .config import PerformanceConfig
from .models import Page, PerformanceMetrics, SEOIssue

logger = logging.getLogger(__name__)

# measure(url) -> PerformanceMetrics, supplied by whatever runs the lab test
Probe = Callable[[str], PerformanceMetrics]

_STATIC_ASSET_RE = re.compile(r"\.(css|js|png|jpg|jpeg|gif|webp|svg|ico)$", re.IGNORECASE)

STATIC_MAX_AGE = 31536000   # 1 year
HTML_MAX_AGE = 3600         # 1 hour


class PerformanceGate:
    """Pass/fail gate over externally measured Core Web Vitals."""

    def __init__(self, config: PerformanceConfig = None, probe: Optional[Probe] = None):
        self.config = config or PerformanceConfig()
        self.probe = probe

    def validate(self, metrics: PerformanceMetrics) -> bool:
        return (
            metrics.largest_contentful_paint <= self.config.lcp_ms
            and metrics.first_input_delay <= self.config.fid_ms
            and metrics.cumulative_layout_shift <= self.config.cls
        )

    def check(self, page: Page) -> Optional[PerformanceMetrics]:
        """Run the probe for *page*; None when no probe is configured."""
        if self.probe is None:
            return None
        return self.probe(page.url)

    def issues(self, page: Page, metrics: Optional[PerformanceMetrics]) -> list[SEOIssue]:
        if metrics is None:
            return [SEOIssue(page.url, "performance", "not_measured", "info",
                             "No performance probe result for this page")]

        found = []
        if metrics.largest_contentful_paint > self.config.lcp_ms:
            found.append(SEOIssue(
                page.url, "performance", "slow_loading", "warning",
                f"LCP {metrics.largest_contentful_paint:.0f}ms exceeds {self.config.lcp_ms:.0f}ms",
            ))
        if metrics.first_input_delay > self.config.fid_ms:
            found.append(SEOIssue(
                page.url, "performance", "slow_input", "warning",
                f"FID {metrics.first_input_delay:.0f}ms exceeds {self.config.fid_ms:.0f}ms",
            ))
        if metrics.cumulative_layout_shift > self.config.cls:
            found.append(SEOIssue(
                page.url, "performance", "layout_shift", "warning",
                f"CLS {metrics.cumulative_layout_shift:.2f} exceeds {self.config.cls}",
            ))
        return found

    def estimate_load_time(self, page: Page) -> float:
        """Rough load time in ms from page size and link count, floor 500ms."""
        estimate = 1000.0
        estimate += (page.word_count // 100) * 50
        estimate += (len(page.incoming_links) + len(page.outgoing_links)) * 10
        return max(500.0, estimate)

    def cache_headers(self, page: Page, now: datetime = None) -> dict[str, str]:
        if not self.config.cache_headers_enabled:
            return {}

        now = now or datetime.now(timezone.utc)
        if _STATIC_ASSET_RE.search(page.url):
            max_age = STATIC_MAX_AGE
            cache_control = f"public, max-age={max_age}, immutable"
        else:
            max_age = HTML_MAX_AGE
            cache_control = f"public, max-age={max_age}, must-revalidate"

        return {
            "Cache-Control": cache_control,
            "Expires": format_datetime(now + timedelta(seconds=max_age), usegmt=True),
            "ETag": f'"{self._etag(page)}"',
        }

    @staticmethod
    def _etag(page: Page) -> str:
        content = f"{page.title}{page.meta_description}{page.last_modified.isoformat()}"
        return base64.b64encode(content.encode("utf-8")).decode("ascii")[:16]
