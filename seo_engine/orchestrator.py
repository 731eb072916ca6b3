"""Batch orchestrator: one audit-and-repair pass over the whole corpus.

Per-page work (content analysis, metadata repair, link analysis, the
performance gate) runs on a thread pool where each task touches only its own
page. Once every task has finished, link repair and the corpus-wide checks
run serially on the settled corpus.
"""

import copy
import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union

from .config import EngineConfig
from .content import ContentValidator
from .exceptions import CorpusLoadError, DuplicatePageError
from .links import LinkGraph, LinkRepairResult
from .metadata import MetadataManager
from .models import (
    BulkUpdateResult,
    ContentAnalysis,
    LinkAnalysis,
    Page,
    PerformanceMetrics,
    SEOIssue,
)
from .performance import PerformanceGate
from .report import AuditReport, build_report, score_page
from .sitemap import SitemapGenerator

logger = logging.getLogger(__name__)

CIRCULAR_REFERENCE_ERROR = "circular reference detected"
CANCELLED_ERROR = "run cancelled before this page was processed"

PageLoader = Callable[[], list[Page]]
RedirectSource = Callable[[], dict[str, str]]


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass
class _PageOutcome:
    url: str
    analysis: Optional[ContentAnalysis] = None
    link_analysis: Optional[LinkAnalysis] = None
    metrics: Optional[PerformanceMetrics] = None
    issues: list[SEOIssue] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    error: Optional[str] = None
    skipped: bool = False


@dataclass
class AuditRun:
    result: BulkUpdateResult
    report: AuditReport
    issues: list[SEOIssue] = field(default_factory=list)
    analyses: dict[str, ContentAnalysis] = field(default_factory=dict)
    link_analyses: dict[str, LinkAnalysis] = field(default_factory=dict)
    metrics: dict[str, PerformanceMetrics] = field(default_factory=dict)
    orphan_pages: list[str] = field(default_factory=list)
    circular_references: list[str] = field(default_factory=list)
    duplicate_content: dict[str, list[str]] = field(default_factory=dict)
    created_links: int = 0
    redirects_rewritten: int = 0
    sitemap_xml: str = ""
    cancelled: bool = False


class BatchOrchestrator:
    def __init__(
        self,
        config: EngineConfig = None,
        content: ContentValidator = None,
        metadata: MetadataManager = None,
        links: LinkGraph = None,
        performance: PerformanceGate = None,
        sitemap: SitemapGenerator = None,
        redirect_source: Optional[RedirectSource] = None,
    ):
        self.config = config or EngineConfig()
        self.config.validate()

        self.content = content or ContentValidator(self.config.content)
        self.metadata = metadata or MetadataManager(self.config.metadata)
        self.links = links or LinkGraph(self.config.links)
        self.performance = performance or PerformanceGate(self.config.performance)
        self.sitemap = sitemap or SitemapGenerator(self.config.sitemap, site_name=self.config.metadata.site_name)
        self.redirect_source = redirect_source

        self.state = RunState.IDLE
        self._run_lock = threading.Lock()
        self._cancel = threading.Event()
        self._pages: list[Page] = []
        self._snapshot: Optional[list[Page]] = None

    # --- lifecycle ---

    def cancel(self) -> None:
        """Stop after the pages already in flight; unprocessed pages are failed."""
        self._cancel.set()

    def commit(self) -> None:
        """Accept the mutated corpus and drop the pre-run snapshot."""
        self._snapshot = None

    def rollback(self) -> list[Page]:
        """
        Restore every page of the last run to its pre-run state, in place,
        so callers holding the Page objects see the old values.
        """
        if self._snapshot is None:
            raise RuntimeError("no snapshot retained for rollback")

        previous = {page.url: page for page in self._snapshot}
        for page in self._pages:
            original = previous.get(page.url)
            if original is not None:
                vars(page).update(vars(original))
        self._snapshot = None
        self.state = RunState.ROLLED_BACK
        logger.info("Rolled back %d page(s)", len(self._pages))
        return self._pages

    @property
    def rollback_available(self) -> bool:
        return self._snapshot is not None

    # --- run ---

    def _load(self, source: Union[list[Page], PageLoader]) -> list[Page]:
        try:
            pages = source() if callable(source) else source
        except CorpusLoadError:
            raise
        except Exception as exc:
            raise CorpusLoadError(f"Failed to load pages: {exc}") from exc

        seen = set()
        for page in pages:
            if page.url in seen:
                raise DuplicatePageError(f"Duplicate page URL in corpus: {page.url}")
            seen.add(page.url)
        return list(pages)

    def run(self, source: Union[list[Page], PageLoader]) -> AuditRun:
        if not self._run_lock.acquire(blocking=False):
            raise RuntimeError("an audit run is already in progress")
        try:
            self._cancel.clear()
            self.state = RunState.RUNNING
            try:
                pages = self._load(source)
            except CorpusLoadError:
                self.state = RunState.FAILED
                raise

            self._pages = pages
            self._snapshot = copy.deepcopy(pages) if self.config.orchestrator.rollback_enabled else None

            audit = self._run(pages)
            self.state = RunState.FAILED if audit.cancelled else RunState.COMPLETED
            return audit
        except CorpusLoadError:
            raise
        except Exception:
            self.state = RunState.FAILED
            raise
        finally:
            self._run_lock.release()

    def _run(self, pages: list[Page]) -> AuditRun:
        operation_id = f"seo_audit_{uuid.uuid4().hex[:12]}"
        result = BulkUpdateResult(operation_id=operation_id)
        logger.info("Starting %s over %d page(s)", operation_id, len(pages))

        redirects_rewritten = 0
        if self.redirect_source is not None:
            redirects_rewritten = self.links.update_redirected_links(pages, self.redirect_source())

        # per-page phase
        known_urls = {page.url for page in pages}
        with ThreadPoolExecutor(max_workers=self.config.orchestrator.worker_count) as pool:
            outcomes = list(pool.map(lambda page: self._process_page(page, known_urls), pages))

        audit = AuditRun(result=result, report=None, redirects_rewritten=redirects_rewritten)
        mutated = redirects_rewritten > 0
        for outcome in outcomes:
            if outcome.skipped:
                result.mark_failed(outcome.url, CANCELLED_ERROR)
                audit.cancelled = True
                continue
            if outcome.error is not None:
                result.mark_failed(outcome.url, outcome.error)
            else:
                result.successful_pages.append(outcome.url)
            audit.issues.extend(outcome.issues)
            mutated = mutated or bool(outcome.changed)
            if outcome.analysis is not None:
                audit.analyses[outcome.url] = outcome.analysis
            if outcome.link_analysis is not None:
                audit.link_analyses[outcome.url] = outcome.link_analysis
            if outcome.metrics is not None:
                audit.metrics[outcome.url] = outcome.metrics

        if audit.cancelled:
            logger.warning("%s cancelled; skipping link repair and corpus checks", operation_id)
            repair = LinkRepairResult()
        else:
            # serial phase: cross-page mutations, then the corpus-wide gates
            repair = self.links.repair(pages)
            audit.created_links = len(repair.created_links)
            mutated = mutated or bool(repair.created_links)
            self._corpus_checks(pages, audit, repair)

        for page in pages:
            page.seo_score = score_page([i for i in audit.issues if i.page_url == page.url])

        audit.sitemap_xml = self.sitemap.generate_xml(pages)
        result.rollback_available = mutated and self._snapshot is not None
        audit.report = build_report(
            pages,
            audit.issues,
            result,
            circular_references=audit.circular_references,
            orphan_pages=audit.orphan_pages,
            duplicate_content=audit.duplicate_content,
            issue_limit=self.config.orchestrator.report_issue_limit,
        )

        logger.info(
            "%s finished: %d successful, %d failed, %d link(s) created",
            operation_id, len(result.successful_pages), len(result.failed_pages), audit.created_links,
        )
        return audit

    def _process_page(self, page: Page, known_urls: set[str]) -> _PageOutcome:
        if self._cancel.is_set():
            return _PageOutcome(url=page.url, skipped=True)

        outcome = _PageOutcome(url=page.url)
        try:
            outcome.analysis = self.content.analyze(page)
            outcome.issues.extend(self.content.issues(page, outcome.analysis))

            outcome.changed = self.metadata.apply(page)
            outcome.issues.extend(self.metadata.issues(page))

            outcome.link_analysis = self.links.analyze_links(page, known_urls)

            outcome.metrics = self.performance.check(page)
            outcome.issues.extend(self.performance.issues(page, outcome.metrics))
        except Exception as exc:
            logger.error("Processing failed for %s: %s", page.url, exc, exc_info=True)
            outcome.error = str(exc) or exc.__class__.__name__
        return outcome

    def _corpus_checks(self, pages: list[Page], audit: AuditRun, repair: LinkRepairResult) -> None:
        duplicates = self.content.detect_duplicate_content(pages)
        audit.duplicate_content = duplicates
        for urls in duplicates.values():
            for url in urls:
                others = ", ".join(u for u in urls if u != url)
                audit.issues.append(SEOIssue(url, "content", "duplicate_content", "warning",
                                             f"Same content as {others}"))
                if url in audit.analyses:
                    audit.analyses[url].duplicate_score = 1.0

        for field_name, groups in (
            ("H1", self.metadata.find_duplicate_h1s(pages)),
            ("title", self.metadata.find_duplicate_titles(pages)),
            ("meta description", self.metadata.find_duplicate_descriptions(pages)),
        ):
            for urls in groups.values():
                for url in urls:
                    audit.issues.append(SEOIssue(
                        url, "metadata", f"duplicate_{field_name.replace(' ', '_').lower()}", "warning",
                        f"Duplicate {field_name} shared with {len(urls) - 1} other page(s)",
                    ))

        audit.orphan_pages = self.links.identify_orphan_pages(pages)
        audit.circular_references = self.links.detect_circular_references(pages)
        audit.issues.extend(self.links.issues(pages, audit.orphan_pages, audit.circular_references, repair))

        orphans = set(audit.orphan_pages)
        known_urls = {page.url for page in pages}
        for page in pages:
            # link analyses are refreshed: repair changed the graph
            analysis = self.links.analyze_links(page, known_urls)
            analysis.is_orphan = page.url in orphans
            audit.link_analyses[page.url] = analysis

        # final gate: a page on a cycle fails even if everything else passed
        for url in audit.circular_references:
            if url in audit.result.successful_pages:
                audit.result.mark_failed(url, CIRCULAR_REFERENCE_ERROR)
