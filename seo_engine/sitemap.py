"""XML sitemap, robots.txt and JSON-LD structured data for the corpus."""

import logging
from urllib.parse import urlparse

from lxml import etree

from .config import CHANGE_FREQUENCIES, SitemapConfig
from .models import Page, SitemapEntry

logger = logging.getLogger(__name__)

SITEMAP_NS = "http://www.sitemaps.org/schemas/sitemap/0.9"

_BUSINESS = {
    "telephone": "+91-9819999999",
    "address": {
        "@type": "PostalAddress",
        "streetAddress": "Mumbai",
        "addressLocality": "Mumbai",
        "addressRegion": "Maharashtra",
        "postalCode": "400001",
        "addressCountry": "IN",
    },
    "geo": {"@type": "GeoCoordinates", "latitude": 19.0760, "longitude": 72.8777},
    "openingHours": "Mo-Su 09:00-18:00",
    "priceRange": "₹₹",
}

# URL fragment -> schema.org serviceType
_SERVICE_TYPES = [
    ("furniture-polish", "Furniture Polishing"),
    ("wood-polish", "Wood Polishing"),
    ("antique-restoration", "Antique Restoration"),
    ("sofa", "Sofa Services"),
    ("door-polish", "Door Polishing"),
    ("wardrobe-polish", "Wardrobe Polishing"),
    ("dining-table", "Dining Table Polishing"),
    ("bed-polish", "Bed Polishing"),
    ("cabinet-polish", "Cabinet Polishing"),
]


def _tag(name: str) -> str:
    return f"{{{SITEMAP_NS}}}{name}"


class SitemapGenerator:
    def __init__(self, config: SitemapConfig = None, site_name: str = "A1 Furniture Polish"):
        self.config = config or SitemapConfig()
        self.base_url = self.config.base_url.rstrip("/")
        self.site_name = site_name

    def _is_homepage(self, url: str) -> bool:
        return url in (self.base_url, f"{self.base_url}/", "/", "")

    def entry(self, page: Page) -> SitemapEntry:
        """Explicit page hints win; otherwise homepage > services > blog > default."""
        priority = page.priority
        if priority is None:
            if self._is_homepage(page.url):
                priority = 1.0
            elif "/services/" in page.url:
                priority = 0.9
            elif "/blog/" in page.url:
                priority = 0.7
            else:
                priority = self.config.default_priority

        change_freq = page.change_freq if page.change_freq in CHANGE_FREQUENCIES else None
        if change_freq is None:
            if "/blog/" in page.url:
                change_freq = "monthly"
            elif "/services/" in page.url:
                change_freq = "weekly"
            elif self._is_homepage(page.url):
                change_freq = "daily"
            else:
                change_freq = self.config.default_change_freq

        return SitemapEntry(
            url=page.url,
            last_modified=page.last_modified,
            change_freq=change_freq,
            priority=min(max(priority, 0.0), 1.0),
        )

    def entries(self, pages: list[Page]) -> list[SitemapEntry]:
        # highest priority first, then URL
        return sorted((self.entry(page) for page in pages), key=lambda e: (-e.priority, e.url))

    def generate_xml(self, pages: list[Page]) -> str:
        urlset = etree.Element(_tag("urlset"), nsmap={None: SITEMAP_NS})
        for entry in self.entries(pages):
            url = etree.SubElement(urlset, _tag("url"))
            etree.SubElement(url, _tag("loc")).text = entry.url
            if self.config.include_last_modified:
                etree.SubElement(url, _tag("lastmod")).text = entry.last_modified.isoformat()
            etree.SubElement(url, _tag("changefreq")).text = entry.change_freq
            etree.SubElement(url, _tag("priority")).text = f"{entry.priority:.1f}"

        xml = etree.tostring(urlset, xml_declaration=True, encoding="UTF-8", pretty_print=True)
        return xml.decode("utf-8")

    def validate_xml(self, sitemap_xml: str) -> bool:
        try:
            root = etree.fromstring(sitemap_xml.encode("utf-8"))
        except (etree.XMLSyntaxError, ValueError):
            return False
        if root.tag != _tag("urlset"):
            return False
        # every <url> needs a <loc>
        return all(url.find(_tag("loc")) is not None for url in root)

    def generate_robots_txt(self, sitemap_url: str, disallowed_paths: list[str] = None) -> str:
        lines = ["User-agent: *"]
        if disallowed_paths:
            lines.extend(f"Disallow: {path}" for path in disallowed_paths)
        else:
            lines.append("Allow: /")
        lines += ["", "# Sitemap", f"Sitemap: {sitemap_url}"]
        if not disallowed_paths:
            lines += [
                "", "# Favicon",
                "Allow: /favicon.ico",
                "Allow: /favicon-*.png",
                "Allow: /apple-touch-icon.png",
                "Allow: /android-chrome-*.png",
            ]
        return "\n".join(lines) + "\n"

    # --- structured data ---

    def _is_service_page(self, page: Page) -> bool:
        path = urlparse(page.url).path
        if "/services/" in path:
            return True
        return not self._is_homepage(page.url) and any(
            word in path for word in ("polish", "restoration", "repair")
        )

    @staticmethod
    def _service_type(url: str) -> str:
        path = urlparse(url).path or url
        for fragment, service_type in _SERVICE_TYPES:
            if fragment in path:
                return service_type
        return "Furniture Services"

    def generate_structured_data(self, page: Page) -> dict:
        if not self.config.structured_data_enabled:
            return {}

        business = {
            "@context": "https://schema.org",
            "@type": "LocalBusiness",
            "name": self.site_name,
            "description": page.meta_description or "Professional furniture polishing services in Mumbai",
            "url": page.url,
            **_BUSINESS,
        }

        if self._is_service_page(page):
            return {
                "@context": "https://schema.org",
                "@type": "Service",
                "name": page.title,
                "description": page.meta_description,
                "provider": business,
                "areaServed": {"@type": "City", "name": "Mumbai", "addressCountry": "IN"},
                "serviceType": self._service_type(page.url),
                "offers": {
                    "@type": "Offer",
                    "availability": "https://schema.org/InStock",
                    "priceRange": _BUSINESS["priceRange"],
                },
            }

        return {
            "@context": "https://schema.org",
            "@type": "WebPage",
            "name": page.title,
            "description": page.meta_description,
            "url": page.url,
            "mainEntity": business,
        }

    @staticmethod
    def validate_structured_data(data: dict) -> bool:
        return isinstance(data, dict) and "@context" in data and "@type" in data
