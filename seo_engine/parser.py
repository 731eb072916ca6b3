import re
import warnings
from typing import Optional
from urllib.parse import urljoin, urldefrag, urlparse

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning

from .models import LINK_EXTERNAL, LINK_INTERNAL, Link, OpenGraphData, Page, TwitterCardData

# plain-text page bodies are routinely fed through BeautifulSoup
warnings.filterwarnings("ignore", category=MarkupResemblesLocatorWarning)

_HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]

# markdown ATX headings, used when a body carries no HTML heading tags
_MD_HEADING_RE = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$", re.MULTILINE)


def _soup(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", "lxml")


def _get_meta(soup: BeautifulSoup, name: str = None, prop: str = None) -> Optional[str]:
    """Pull content from a <meta> tag by name or property attribute."""
    tag = None
    if name:
        tag = soup.find("meta", attrs={"name": name})
    if not tag and prop:
        tag = soup.find("meta", attrs={"property": prop})
    if tag:
        return (tag.get("content") or "").strip() or None
    return None


def _clean_text(raw: str) -> str:
    """Collapse whitespace and strip control characters from extracted text."""
    text = re.sub(r"[\r\n\t]+", " ", raw)
    text = re.sub(r" {2,}", " ", text)
    return text.strip()


def strip_markup(markup: str) -> str:
    """Return the visible text of an HTML/markdown body with whitespace collapsed."""
    if not markup or not markup.strip():
        return ""
    if "<" not in markup:
        return _clean_text(markup)
    soup = _soup(markup)
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return _clean_text(soup.get_text(separator=" "))


def extract_headings(markup: str) -> list[tuple[int, str]]:
    """
    Headings as (level, text) pairs in document order.
    HTML heading tags win; markdown '#' headings are used for bodies without any.
    """
    if not markup:
        return []

    headings = []
    if "<" in markup:
        soup = _soup(markup)
        for tag in soup.find_all(_HEADING_TAGS):
            text = _clean_text(tag.get_text())
            if text:
                headings.append((int(tag.name[1]), text))
    if headings:
        return headings

    for match in _MD_HEADING_RE.finditer(markup):
        headings.append((len(match.group(1)), match.group(2).strip()))
    return headings


def _extract_links(soup: BeautifulSoup, url: str) -> list[Link]:
    site = urlparse(url).netloc
    links = []
    for anchor in soup.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
            continue
        target, _ = urldefrag(urljoin(url, href))
        rel = anchor.get("rel") or []
        links.append(Link(
            source_url=url,
            target_url=target,
            anchor_text=_clean_text(anchor.get_text()),
            link_type=LINK_INTERNAL if urlparse(target).netloc == site else LINK_EXTERNAL,
            is_nofollow="nofollow" in rel,
            context="extracted from page markup",
        ))
    return links


def parse_page(html: str, url: str) -> Page:
    """
    Parse a fetched HTML document into a Page record.
    Only outgoing links are known from one document; incoming links are
    filled in by the loader once the whole corpus is available.
    """
    soup = _soup(html)

    title_tag = soup.find("title")
    title = _clean_text(title_tag.get_text()) if title_tag else ""
    description = _get_meta(soup, name="description") or ""
    keywords = _get_meta(soup, name="keywords")

    og_title = _get_meta(soup, prop="og:title")
    open_graph = None
    if og_title:
        open_graph = OpenGraphData(
            title=og_title,
            description=_get_meta(soup, prop="og:description") or "",
            image=_get_meta(soup, prop="og:image") or "",
            url=_get_meta(soup, prop="og:url") or url,
            type=_get_meta(soup, prop="og:type") or "website",
            site_name=_get_meta(soup, prop="og:site_name") or "",
        )

    twitter_title = _get_meta(soup, name="twitter:title")
    twitter_card = None
    if twitter_title:
        twitter_card = TwitterCardData(
            card=_get_meta(soup, name="twitter:card") or "summary_large_image",
            title=twitter_title,
            description=_get_meta(soup, name="twitter:description") or "",
            image=_get_meta(soup, name="twitter:image") or "",
            site=_get_meta(soup, name="twitter:site"),
            creator=_get_meta(soup, name="twitter:creator"),
        )

    canonical_tag = soup.find("link", rel="canonical")
    canonical_url = canonical_tag.get("href") if canonical_tag else None

    h1_tags = [_clean_text(h.get_text()) for h in soup.find_all("h1") if h.get_text(strip=True)]
    outgoing = _extract_links(soup, url)

    # body: drop chrome before measuring content
    for tag in soup(["script", "style", "nav", "footer", "header", "aside", "noscript"]):
        tag.decompose()
    body = soup.find("body")
    content = body.decode_contents() if body else str(soup)
    body_text = strip_markup(content)

    return Page(
        url=url,
        title=title,
        meta_description=description,
        h1=h1_tags[0] if h1_tags else None,
        canonical_url=canonical_url,
        word_count=len(body_text.split()),
        content=content,
        keywords=[k.strip() for k in keywords.split(",") if k.strip()] if keywords else [],
        outgoing_links=outgoing,
        open_graph=open_graph,
        twitter_card=twitter_card,
    )
