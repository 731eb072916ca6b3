from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional


LINK_INTERNAL = "internal"
LINK_EXTERNAL = "external"

# issue categories used by the report
CATEGORIES = ("linking", "metadata", "content", "performance")


@dataclass
class Link:
    source_url: str
    target_url: str
    anchor_text: str = ""
    link_type: str = LINK_INTERNAL          # internal | external
    is_nofollow: bool = False
    context: str = ""                       # why the link exists

    @property
    def is_internal(self) -> bool:
        return self.link_type == LINK_INTERNAL


@dataclass
class OpenGraphData:
    title: str = ""
    description: str = ""
    image: str = ""
    url: str = ""
    type: str = "website"
    site_name: str = ""


@dataclass
class TwitterCardData:
    card: str = "summary_large_image"       # summary | summary_large_image | app | player
    title: str = ""
    description: str = ""
    image: str = ""
    site: Optional[str] = None
    creator: Optional[str] = None


@dataclass
class Page:
    url: str                                # unique key within a corpus
    title: str = ""
    meta_description: str = ""
    h1: Optional[str] = None
    canonical_url: Optional[str] = None     # derived when absent
    word_count: int = 0

    # body markup / text; word_count is the fallback when this is empty
    content: str = ""
    # tracked keywords for density checks
    keywords: list[str] = field(default_factory=list)

    incoming_links: list[Link] = field(default_factory=list)
    outgoing_links: list[Link] = field(default_factory=list)

    open_graph: Optional[OpenGraphData] = None
    twitter_card: Optional[TwitterCardData] = None
    structured_data: dict = field(default_factory=dict)    # passed through untouched

    last_modified: datetime = field(default_factory=datetime.now)
    seo_score: Optional[int] = None         # advisory, written by the orchestrator

    # sitemap hints
    priority: Optional[float] = None
    change_freq: Optional[str] = None

    def internal_outgoing(self) -> list[Link]:
        return [link for link in self.outgoing_links if link.is_internal]

    def links_to(self, url: str) -> bool:
        return any(link.target_url == url for link in self.outgoing_links)

    def touch(self) -> None:
        self.last_modified = datetime.now()

    def to_dict(self) -> dict:
        data = asdict(self)
        data["last_modified"] = self.last_modified.isoformat()
        return data


@dataclass
class HeadingStructure:
    h1: list[str] = field(default_factory=list)
    h2: list[str] = field(default_factory=list)
    h3: list[str] = field(default_factory=list)
    h4: list[str] = field(default_factory=list)
    h5: list[str] = field(default_factory=list)
    h6: list[str] = field(default_factory=list)

    def level(self, n: int) -> list[str]:
        return getattr(self, f"h{n}")


@dataclass
class ContentAnalysis:
    word_count: int
    keyword_density: dict[str, float]
    heading_structure: HeadingStructure
    duplicate_score: float = 0.0            # filled in by the corpus-wide pass
    readability_score: int = 0
    topics: list[str] = field(default_factory=list)


@dataclass
class LinkAnalysis:
    url: str
    incoming_count: int = 0
    outgoing_count: int = 0
    internal_outgoing_count: int = 0
    anchor_text_distribution: dict[str, int] = field(default_factory=dict)
    broken_links: list[str] = field(default_factory=list)
    is_orphan: bool = False                 # only meaningful after the corpus pass


@dataclass
class PerformanceMetrics:
    # timings in milliseconds
    load_time: float
    first_contentful_paint: float
    largest_contentful_paint: float
    first_input_delay: float
    cumulative_layout_shift: float
    total_blocking_time: float


@dataclass
class SEOIssue:
    page_url: str
    category: str                           # linking | metadata | content | performance
    issue_type: str
    severity: str                           # critical | warning | info
    description: str
    auto_fixable: bool = False


@dataclass
class SitemapEntry:
    url: str
    last_modified: datetime
    change_freq: str
    priority: float


@dataclass
class BulkUpdateResult:
    operation_id: str
    successful_pages: list[str] = field(default_factory=list)
    failed_pages: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    rollback_available: bool = False

    def mark_failed(self, url: str, message: str) -> None:
        if url in self.successful_pages:
            self.successful_pages.remove(url)
        if url not in self.failed_pages:
            self.failed_pages.append(url)
        self.errors[url] = message

    def to_dict(self) -> dict:
        return asdict(self)
