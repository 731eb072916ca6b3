from .config import EngineConfig
from .exceptions import ConfigError, CorpusLoadError, SEOEngineError
from .loader import load_pages_from_records, load_pages_from_urls
from .models import BulkUpdateResult, Link, Page, SEOIssue
from .orchestrator import AuditRun, BatchOrchestrator, RunState
from .report import AuditReport, render_text

__all__ = [
    "AuditReport",
    "AuditRun",
    "BatchOrchestrator",
    "BulkUpdateResult",
    "ConfigError",
    "CorpusLoadError",
    "EngineConfig",
    "Link",
    "Page",
    "RunState",
    "SEOEngineError",
    "SEOIssue",
    "load_pages_from_records",
    "load_pages_from_urls",
    "render_text",
]
