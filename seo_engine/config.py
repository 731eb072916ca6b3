"""Engine configuration: one dataclass per component plus the aggregate."""

import os
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import ConfigError


CHANGE_FREQUENCIES = ("always", "hourly", "daily", "weekly", "monthly", "yearly", "never")


@dataclass
class ContentValidatorConfig:
    min_word_count: int = 300
    density_min: float = 0.01              # 1%
    density_max: float = 0.03              # 3%
    heading_structure_required: bool = True
    location_info_required: bool = True

    def validate(self) -> list[str]:
        errors = []
        if self.min_word_count < 0:
            errors.append("min_word_count must be non-negative")
        if not 0 <= self.density_min <= 1:
            errors.append("density_min must be between 0 and 1")
        if self.density_max < self.density_min or self.density_max > 1:
            errors.append("density_max must be between density_min and 1")
        return errors


@dataclass
class MetadataConfig:
    meta_description_min_length: int = 150
    meta_description_max_length: int = 160
    h1_keyword_requirement: bool = True
    social_media_tags_required: bool = True
    site_name: str = "A1 Furniture Polish"
    twitter_handle: str = "@A1FurniturePolish"

    def validate(self) -> list[str]:
        errors = []
        if self.meta_description_min_length < 0:
            errors.append("meta_description_min_length must be non-negative")
        if self.meta_description_max_length < self.meta_description_min_length:
            errors.append("meta_description_max_length must be >= meta_description_min_length")
        # truncation reserves three characters for the ellipsis
        if self.meta_description_max_length < 4:
            errors.append("meta_description_max_length must be at least 4")
        return errors


@dataclass
class LinkGraphConfig:
    min_outgoing_links: int = 3
    max_outgoing_links: int = 10
    max_orphan_parents: int = 3
    avoid_circular_references: bool = True

    def validate(self) -> list[str]:
        errors = []
        if self.min_outgoing_links < 0:
            errors.append("min_outgoing_links must be non-negative")
        if self.max_outgoing_links < self.min_outgoing_links:
            errors.append("max_outgoing_links must be >= min_outgoing_links")
        if self.max_orphan_parents < 1:
            errors.append("max_orphan_parents must be at least 1")
        return errors


@dataclass
class PerformanceConfig:
    # Core Web Vitals thresholds
    lcp_ms: float = 2500
    fid_ms: float = 100
    cls: float = 0.1
    cache_headers_enabled: bool = True

    def validate(self) -> list[str]:
        errors = []
        if self.lcp_ms <= 0:
            errors.append("LCP threshold must be positive")
        if self.fid_ms <= 0:
            errors.append("FID threshold must be positive")
        if self.cls < 0:
            errors.append("CLS threshold must be non-negative")
        return errors


@dataclass
class SitemapConfig:
    base_url: str = "https://a1furniturepolish.com"
    include_last_modified: bool = True
    default_priority: float = 0.8
    default_change_freq: str = "weekly"
    structured_data_enabled: bool = True

    def validate(self) -> list[str]:
        errors = []
        if not 0 <= self.default_priority <= 1:
            errors.append("default_priority must be between 0 and 1")
        if self.default_change_freq not in CHANGE_FREQUENCIES:
            errors.append(f"default_change_freq must be one of {', '.join(CHANGE_FREQUENCIES)}")
        return errors


@dataclass
class OrchestratorConfig:
    max_workers: Optional[int] = None      # None -> os.cpu_count()
    rollback_enabled: bool = True
    report_issue_limit: int = 10

    def validate(self) -> list[str]:
        errors = []
        if self.max_workers is not None and self.max_workers < 1:
            errors.append("max_workers must be at least 1")
        if self.report_issue_limit < 0:
            errors.append("report_issue_limit must be non-negative")
        return errors

    @property
    def worker_count(self) -> int:
        return self.max_workers or os.cpu_count() or 1


@dataclass
class EngineConfig:
    content: ContentValidatorConfig = field(default_factory=ContentValidatorConfig)
    metadata: MetadataConfig = field(default_factory=MetadataConfig)
    links: LinkGraphConfig = field(default_factory=LinkGraphConfig)
    performance: PerformanceConfig = field(default_factory=PerformanceConfig)
    sitemap: SitemapConfig = field(default_factory=SitemapConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)

    def errors(self) -> list[str]:
        return (
            self.content.validate()
            + self.metadata.validate()
            + self.links.validate()
            + self.performance.validate()
            + self.sitemap.validate()
            + self.orchestrator.validate()
        )

    def validate(self) -> None:
        """Raise ConfigError listing every problem found."""
        errors = self.errors()
        if errors:
            raise ConfigError("; ".join(errors))

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Defaults overridden by SEO_* environment variables."""
        config = cls()
        try:
            config.content.min_word_count = int(os.getenv("SEO_MIN_WORD_COUNT", config.content.min_word_count))
            config.links.min_outgoing_links = int(os.getenv("SEO_MIN_OUTGOING_LINKS", config.links.min_outgoing_links))
            config.links.max_outgoing_links = int(os.getenv("SEO_MAX_OUTGOING_LINKS", config.links.max_outgoing_links))
            workers = os.getenv("SEO_MAX_WORKERS")
            if workers:
                config.orchestrator.max_workers = int(workers)
        except ValueError as exc:
            raise ConfigError(f"Invalid SEO_* environment value: {exc}") from exc
        config.sitemap.base_url = os.getenv("SEO_BASE_URL", config.sitemap.base_url)
        config.validate()
        return config
