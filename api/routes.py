import logging

from fastapi import APIRouter, HTTPException
from starlette.concurrency import run_in_threadpool

from seo_engine.config import EngineConfig
from seo_engine.exceptions import ConfigError, CorpusLoadError, DuplicatePageError
from seo_engine.loader import load_pages_from_records, load_pages_from_urls
from seo_engine.orchestrator import AuditRun, BatchOrchestrator
from .cache import cache_key, get_cached, set_cached, is_cache_healthy
from .schemas import (
    AuditOptions,
    AuditRequest,
    AuditResponse,
    CrawlAuditRequest,
    HealthResponse,
    PageSchema,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def build_config(options: AuditOptions) -> EngineConfig:
    config = EngineConfig.from_env()
    if options.min_word_count is not None:
        config.content.min_word_count = options.min_word_count
    if options.min_outgoing_links is not None:
        config.links.min_outgoing_links = options.min_outgoing_links
    if options.max_outgoing_links is not None:
        config.links.max_outgoing_links = options.max_outgoing_links
    if options.max_orphan_parents is not None:
        config.links.max_orphan_parents = options.max_orphan_parents
    if options.avoid_circular_references is not None:
        config.links.avoid_circular_references = options.avoid_circular_references
    if options.base_url:
        config.sitemap.base_url = options.base_url
    config.validate()
    return config


def _to_response(audit: AuditRun, pages) -> AuditResponse:
    return AuditResponse(
        report=audit.report.to_dict(),
        successful_pages=audit.result.successful_pages,
        failed_pages=audit.result.failed_pages,
        issues=[vars(issue) for issue in audit.issues],
        pages=[PageSchema(**page.to_dict()) for page in pages],
        sitemap_xml=audit.sitemap_xml,
    )


def _run_audit(loader, options: AuditOptions) -> AuditResponse:
    try:
        config = build_config(options)
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    # the service hands back the repaired corpus; nothing to roll back to
    config.orchestrator.rollback_enabled = False
    pages = loader()
    audit = BatchOrchestrator(config).run(pages)
    return _to_response(audit, pages)


@router.post("/audit", response_model=AuditResponse, summary="Audit and repair a page corpus")
async def audit_pages(request: AuditRequest) -> AuditResponse:
    """
    Runs one batch audit over the supplied pages and returns the report
    together with the repaired pages and a sitemap.

    - Identical request bodies are served from the Redis cache.
    - Duplicate page URLs are rejected with 422.
    """
    key = cache_key(request.model_dump_json(), namespace="audit")
    cached = get_cached(key)
    if cached:
        logger.info("Cache hit for audit %s", key)
        return AuditResponse(**cached, cached=True)

    records = [page.model_dump() for page in request.pages]
    try:
        response = await run_in_threadpool(
            _run_audit, lambda: load_pages_from_records(records), request.options
        )
    except CorpusLoadError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    set_cached(key, response.model_dump(mode="json", exclude={"cached"}))
    return response


@router.post("/audit/crawl", response_model=AuditResponse, summary="Fetch live pages and audit them")
async def audit_urls(request: CrawlAuditRequest) -> AuditResponse:
    """
    Fetches every URL, audits the resulting corpus and returns the report.
    A URL that cannot be fetched fails the whole request with 502.
    """
    key = cache_key(request.model_dump_json(), namespace="crawl-audit")
    cached = get_cached(key)
    if cached:
        logger.info("Cache hit for crawl audit %s", key)
        return AuditResponse(**cached, cached=True)

    def loader():
        return load_pages_from_urls(request.urls, respect_robots=request.respect_robots)

    try:
        response = await run_in_threadpool(_run_audit, loader, request.options)
    except CorpusLoadError as exc:
        # network failure; don't cache
        status = 422 if isinstance(exc, DuplicatePageError) else 502
        raise HTTPException(status_code=status, detail=str(exc))

    set_cached(key, response.model_dump(mode="json", exclude={"cached"}))
    return response


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check() -> HealthResponse:
    cache_status = "connected" if is_cache_healthy() else "unavailable"
    return HealthResponse(status="ok", cache=cache_status)
