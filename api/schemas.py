from datetime import datetime
from typing import Optional
from pydantic import BaseModel, field_validator


def _must_be_http(v: str) -> str:
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    return v


class LinkSchema(BaseModel):
    source_url: str = ""        # defaults to the owning page for outgoing links
    target_url: str
    anchor_text: str = ""
    link_type: str = "internal"
    is_nofollow: bool = False
    context: str = ""

    @field_validator("link_type")
    @classmethod
    def known_link_type(cls, v: str) -> str:
        if v not in ("internal", "external"):
            raise ValueError("link_type must be 'internal' or 'external'")
        return v


class OpenGraphSchema(BaseModel):
    title: str = ""
    description: str = ""
    image: str = ""
    url: str = ""
    type: str = "website"
    site_name: str = ""


class TwitterCardSchema(BaseModel):
    card: str = "summary_large_image"
    title: str = ""
    description: str = ""
    image: str = ""
    site: Optional[str] = None
    creator: Optional[str] = None


class PageSchema(BaseModel):
    url: str
    title: str = ""
    meta_description: str = ""
    h1: Optional[str] = None
    canonical_url: Optional[str] = None
    word_count: int = 0
    content: str = ""
    keywords: list[str] = []

    incoming_links: list[LinkSchema] = []
    outgoing_links: list[LinkSchema] = []

    open_graph: Optional[OpenGraphSchema] = None
    twitter_card: Optional[TwitterCardSchema] = None
    structured_data: dict = {}

    last_modified: Optional[datetime] = None
    seo_score: Optional[int] = None
    priority: Optional[float] = None
    change_freq: Optional[str] = None


class AuditOptions(BaseModel):
    """Per-request overrides on top of the SEO_* environment configuration."""
    min_word_count: Optional[int] = None
    min_outgoing_links: Optional[int] = None
    max_outgoing_links: Optional[int] = None
    max_orphan_parents: Optional[int] = None
    avoid_circular_references: Optional[bool] = None
    base_url: Optional[str] = None


class AuditRequest(BaseModel):
    pages: list[PageSchema]
    options: AuditOptions = AuditOptions()

    @field_validator("pages")
    @classmethod
    def pages_not_empty(cls, v: list[PageSchema]) -> list[PageSchema]:
        if not v:
            raise ValueError("at least one page is required")
        return v


class CrawlAuditRequest(BaseModel):
    urls: list[str]
    respect_robots: bool = True  # set False only for testing/demo purposes
    options: AuditOptions = AuditOptions()

    @field_validator("urls")
    @classmethod
    def urls_must_be_http(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("at least one URL is required")
        return [_must_be_http(url) for url in v]


class IssueSchema(BaseModel):
    page_url: str
    category: str
    issue_type: str
    severity: str
    description: str
    auto_fixable: bool = False


class CategorySummarySchema(BaseModel):
    passed: int
    failed: int
    total_issues: int
    issues: list[IssueSchema] = []


class AuditReportSchema(BaseModel):
    operation_id: str
    generated_at: str
    total_pages: int
    successful_pages: int
    failed_pages: int
    overall_score: int
    categories: dict[str, CategorySummarySchema]
    critical_issues: int = 0
    warning_issues: int = 0
    info_issues: int = 0
    circular_references: list[str] = []
    orphan_pages: list[str] = []
    duplicate_content: list[list[str]] = []
    errors: dict[str, str] = {}
    rollback_available: bool = False


class AuditResponse(BaseModel):
    report: AuditReportSchema
    successful_pages: list[str] = []
    failed_pages: list[str] = []
    issues: list[IssueSchema] = []
    pages: list[PageSchema] = []        # the corpus after repair
    sitemap_xml: str = ""
    cached: bool = False


class HealthResponse(BaseModel):
    status: str
    cache: str  # "connected" or "unavailable"


class ErrorResponse(BaseModel):
    detail: str
    code: str
