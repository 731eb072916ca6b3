"""Exceptions raised by the SEO engine.

Validators never raise; these cover configuration problems and failures to
load a corpus, which are the only errors fatal to a run.
"""


class SEOEngineError(Exception):
    """Base exception for seo_engine."""


class ConfigError(SEOEngineError):
    """Raised when engine configuration is invalid."""


class CorpusLoadError(SEOEngineError):
    """Raised when the page corpus cannot be loaded or is inconsistent."""


class DuplicatePageError(CorpusLoadError):
    """Raised when two pages in a corpus share a URL."""
