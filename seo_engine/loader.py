"""Corpus loaders: fetch live pages over HTTP or build pages from plain records."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from urllib.parse import urlparse
from urllib.robotparser import RobotFileParser

import requests

from .exceptions import CorpusLoadError, DuplicatePageError
from .models import LINK_INTERNAL, Link, OpenGraphData, Page, TwitterCardData
from .parser import parse_page

logger = logging.getLogger(__name__)

USER_AGENT = "SEOIntegrityEngine/1.0 (+https://a1furniturepolish.com)"

DEFAULT_TIMEOUT = 15  # seconds
MAX_CONTENT_BYTES = 5 * 1024 * 1024  # 5 MB ceiling to avoid runaway pages
DEFAULT_WORKERS = 8


def _robots_url(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/robots.txt"


def is_fetch_allowed(url: str, user_agent: str = "*") -> bool:
    """Check robots.txt for the given URL. Returns True if fetching is allowed."""
    rp = RobotFileParser()
    rp.set_url(_robots_url(url))
    try:
        rp.read()
        return rp.can_fetch(user_agent, url)
    except Exception:
        # if robots.txt is unreachable, assume allowed
        return True


def fetch_html(url: str, respect_robots: bool = False) -> tuple[str, str]:
    """Fetch a page and return (html, final_url)."""
    if respect_robots and not is_fetch_allowed(url):
        raise PermissionError(f"robots.txt disallows fetching {url}")

    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }
    response = requests.get(url, headers=headers, timeout=DEFAULT_TIMEOUT, allow_redirects=True)
    response.raise_for_status()
    return response.text[:MAX_CONTENT_BYTES], response.url


def link_incoming(pages: list[Page]) -> list[Page]:
    """
    Mirror every internal outgoing link onto its target's incoming_links.
    The same Link object is shared by both ends. Already-present links are
    not added twice.
    """
    by_url = {page.url: page for page in pages}
    for page in pages:
        for link in page.outgoing_links:
            if link.link_type != LINK_INTERNAL or link.target_url == page.url:
                continue
            target = by_url.get(link.target_url)
            if target is None:
                continue
            if not any(
                existing.source_url == link.source_url and existing.target_url == link.target_url
                for existing in target.incoming_links
            ):
                target.incoming_links.append(link)
    return pages


def _check_unique(pages: list[Page]) -> None:
    seen = set()
    for page in pages:
        if page.url in seen:
            raise DuplicatePageError(f"Duplicate page URL in corpus: {page.url}")
        seen.add(page.url)


def load_pages_from_urls(
    urls: list[str],
    max_workers: int = DEFAULT_WORKERS,
    respect_robots: bool = False,
) -> list[Page]:
    """
    Fetch and parse every URL, then wire up incoming links across the set.
    Any fetch failure aborts the load: a partial corpus would report false
    orphans.
    """
    if len(set(urls)) != len(urls):
        raise DuplicatePageError("Duplicate URL in fetch list")

    def load_one(url: str) -> Page:
        try:
            html, final_url = fetch_html(url, respect_robots=respect_robots)
        except (requests.RequestException, PermissionError) as exc:
            raise CorpusLoadError(f"Failed to fetch {url}: {exc}") from exc
        if final_url != url:
            logger.info("%s redirected to %s", url, final_url)
        return parse_page(html, url)

    logger.info("Fetching %d page(s)", len(urls))
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        pages = list(pool.map(load_one, urls))

    return link_incoming(pages)


def _link_from_record(record: dict, default_source: str = "") -> Link:
    return Link(
        source_url=record.get("source_url") or default_source,
        target_url=record["target_url"],
        anchor_text=record.get("anchor_text", ""),
        link_type=record.get("link_type", LINK_INTERNAL),
        is_nofollow=bool(record.get("is_nofollow", False)),
        context=record.get("context", ""),
    )


def page_from_record(record: dict) -> Page:
    """Build a Page from a plain dict, as produced by Page.to_dict() or a JSON export."""
    try:
        url = record["url"]
        last_modified = record.get("last_modified")
        if isinstance(last_modified, str):
            last_modified = datetime.fromisoformat(last_modified)

        page = Page(
            url=url,
            title=record.get("title") or "",
            meta_description=record.get("meta_description") or "",
            h1=record.get("h1"),
            canonical_url=record.get("canonical_url"),
            word_count=int(record.get("word_count") or 0),
            content=record.get("content") or "",
            keywords=list(record.get("keywords") or []),
            outgoing_links=[_link_from_record(r, url) for r in record.get("outgoing_links") or []],
            incoming_links=[_link_from_record(r) for r in record.get("incoming_links") or []],
            structured_data=dict(record.get("structured_data") or {}),
            priority=record.get("priority"),
            change_freq=record.get("change_freq"),
        )
        if last_modified is not None:
            page.last_modified = last_modified
        if record.get("open_graph"):
            page.open_graph = OpenGraphData(**record["open_graph"])
        if record.get("twitter_card"):
            page.twitter_card = TwitterCardData(**record["twitter_card"])
    except (KeyError, TypeError, ValueError) as exc:
        raise CorpusLoadError(f"Invalid page record {record.get('url', '?')!r}: {exc}") from exc
    return page


def load_pages_from_records(records: list[dict], mirror_links: bool = True) -> list[Page]:
    """
    Pages from plain records. With mirror_links, an outgoing link whose
    target has no matching incoming entry gets one.
    """
    pages = [page_from_record(record) for record in records]
    _check_unique(pages)
    if mirror_links:
        link_incoming(pages)
    logger.info("Loaded %d page(s) from records", len(pages))
    return pages
