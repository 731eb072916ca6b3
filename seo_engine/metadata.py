import logging
from typing import Optional

from .classifier import detect_location, detect_service, social_image
from .config import MetadataConfig
from .keywords import tokenize
from .models import OpenGraphData, Page, SEOIssue, TwitterCardData

logger = logging.getLogger(__name__)

CALL_TO_ACTION = " Contact us for free consultation and quotes."
DEFAULT_KEYWORD = "furniture polish"
SITE_KEYWORDS = ["furniture polish", "furniture polishing", "Mumbai"]


def _normalize(value: str) -> str:
    return value.strip().lower()


def _duplicate_groups(pages: list[Page], attr: str) -> dict[str, list[str]]:
    """Normalised value -> URLs, for values shared by two or more pages."""
    seen: dict[str, list[str]] = {}
    for page in pages:
        value = getattr(page, attr)
        if not value or not value.strip():
            continue
        seen.setdefault(_normalize(value), []).append(page.url)
    return {value: urls for value, urls in seen.items() if len(urls) > 1}


class MetadataManager:
    def __init__(self, config: MetadataConfig = None):
        self.config = config or MetadataConfig()

    # --- H1 ---

    def generate_h1(self, page: Page, keywords: list[str]) -> str:
        if not keywords:
            return page.title

        primary = keywords[0]
        location = detect_location(page.url)
        service = detect_service(page.url)

        if location and service:
            return f"{primary} in {location} - {service}"
        if location:
            return f"{primary} in {location}"
        if service:
            return f"{primary} - {service}"
        return primary

    def validate_h1_uniqueness(self, pages: list[Page]) -> bool:
        return not self.find_duplicate_h1s(pages)

    def find_duplicate_h1s(self, pages: list[Page]) -> dict[str, list[str]]:
        return _duplicate_groups(pages, "h1")

    # --- meta description ---

    def generate_meta_description(self, page: Page, keywords: list[str]) -> str:
        min_length = self.config.meta_description_min_length
        max_length = self.config.meta_description_max_length

        location = detect_location(page.url)
        service = detect_service(page.url)
        primary = keywords[0] if keywords else DEFAULT_KEYWORD

        if location and service:
            description = (
                f"Professional {primary} services in {location}. Expert {service} with quality "
                f"results. Book online for best rates and quick service."
            )
        elif location:
            description = (
                f"Professional {primary} services in {location}. Quality furniture polishing "
                f"with expert results. Book online today."
            )
        elif service:
            description = (
                f"Expert {service} services. Professional {primary} with quality results and "
                f"competitive pricing. Book online now."
            )
        else:
            description = (
                f"Professional {primary} services with expert results. Quality furniture "
                f"polishing at competitive rates. Book online today."
            )

        while len(description) < min_length:
            description += CALL_TO_ACTION

        if len(description) > max_length:
            description = description[: max_length - 3].rstrip() + "..."
            # rstrip may have eaten into the minimum
            while len(description) < min_length:
                description = description[:-3] + "." + "..."
        return description

    def validate_meta_description_length(self, description: str) -> bool:
        return (
            self.config.meta_description_min_length
            <= len(description or "")
            <= self.config.meta_description_max_length
        )

    def validate_meta_uniqueness(self, pages: list[Page]) -> bool:
        return not self.find_duplicate_titles(pages) and not self.find_duplicate_descriptions(pages)

    def find_duplicate_titles(self, pages: list[Page]) -> dict[str, list[str]]:
        return _duplicate_groups(pages, "title")

    def find_duplicate_descriptions(self, pages: list[Page]) -> dict[str, list[str]]:
        return _duplicate_groups(pages, "meta_description")

    # --- social cards ---

    def _image_alt(self, location: Optional[str], service: Optional[str]) -> str:
        return f"{service or 'Furniture polishing'} in {location or 'Mumbai'}"

    def generate_open_graph_tags(self, page: Page) -> dict[str, str]:
        location = detect_location(page.url)
        service = detect_service(page.url)

        tags = {
            "og:title": page.title or page.h1 or self.config.site_name,
            "og:description": page.meta_description or "Professional furniture polishing services",
            "og:url": page.canonical_url or page.url,
            "og:type": "website",
            "og:site_name": self.config.site_name,
            "og:locale": "en_US",
            "og:image": social_image(service),
        }
        if location or service:
            tags["og:image:alt"] = self._image_alt(location, service)
            tags["og:image:width"] = "1200"
            tags["og:image:height"] = "630"
        return tags

    def generate_twitter_card_tags(self, page: Page) -> dict[str, str]:
        location = detect_location(page.url)
        service = detect_service(page.url)

        tags = {
            "twitter:card": "summary_large_image",
            "twitter:title": page.title or page.h1 or self.config.site_name,
            "twitter:description": page.meta_description or "Professional furniture polishing services",
            "twitter:site": self.config.twitter_handle,
            "twitter:creator": self.config.twitter_handle,
            "twitter:image": social_image(service),
        }
        if location or service:
            tags["twitter:image:alt"] = self._image_alt(location, service)
        return tags

    def to_open_graph(self, tags: dict[str, str]) -> OpenGraphData:
        return OpenGraphData(
            title=tags.get("og:title", ""),
            description=tags.get("og:description", ""),
            image=tags.get("og:image", ""),
            url=tags.get("og:url", ""),
            type=tags.get("og:type", "website"),
            site_name=tags.get("og:site_name", self.config.site_name),
        )

    def to_twitter_card(self, tags: dict[str, str]) -> TwitterCardData:
        return TwitterCardData(
            card=tags.get("twitter:card", "summary_large_image"),
            title=tags.get("twitter:title", ""),
            description=tags.get("twitter:description", ""),
            image=tags.get("twitter:image", ""),
            site=tags.get("twitter:site"),
            creator=tags.get("twitter:creator"),
        )

    # --- canonical ---

    def generate_canonical_tag(self, page: Page, duplicates: list[Page] = None) -> str:
        """The variant with the most words wins; ties go to the shortest URL."""
        if not duplicates:
            return page.url

        preferred = page
        for candidate in duplicates:
            if candidate.word_count > preferred.word_count:
                preferred = candidate
            elif candidate.word_count == preferred.word_count and len(candidate.url) < len(preferred.url):
                preferred = candidate
        return preferred.url

    # --- per-page application ---

    def page_keywords(self, page: Page) -> list[str]:
        keywords = []
        if page.title:
            keywords.extend(tokenize(page.title)[:5])
        location = detect_location(page.url)
        service = detect_service(page.url)
        if location:
            keywords.append(location)
        if service:
            keywords.append(service)
        keywords.extend(SITE_KEYWORDS)
        return list(dict.fromkeys(keywords))

    def apply(self, page: Page) -> list[str]:
        """
        Fill in or repair the page's metadata in place.
        Returns the names of the fields that changed.
        """
        changed = []
        keywords = self.page_keywords(page)

        if not page.h1 or not page.h1.strip():
            page.h1 = self.generate_h1(page, keywords)
            changed.append("h1")

        if not self.validate_meta_description_length(page.meta_description):
            page.meta_description = self.generate_meta_description(page, keywords)
            changed.append("meta_description")

        if self.config.social_media_tags_required:
            open_graph = self.to_open_graph(self.generate_open_graph_tags(page))
            twitter_card = self.to_twitter_card(self.generate_twitter_card_tags(page))
            if open_graph != page.open_graph:
                page.open_graph = open_graph
                changed.append("open_graph")
            if twitter_card != page.twitter_card:
                page.twitter_card = twitter_card
                changed.append("twitter_card")

        if not page.canonical_url:
            page.canonical_url = self.generate_canonical_tag(page)
            changed.append("canonical_url")

        if changed:
            page.touch()
            logger.debug("Updated %s on %s", ", ".join(changed), page.url)
        return changed

    def issues(self, page: Page) -> list[SEOIssue]:
        found = []
        if not page.title or not page.title.strip():
            found.append(SEOIssue(page.url, "metadata", "missing_title", "critical", "Page has no title"))
        if not page.h1 or not page.h1.strip():
            found.append(SEOIssue(page.url, "metadata", "missing_h1", "critical",
                                  "Page is missing an H1", auto_fixable=True))
        if not page.meta_description:
            found.append(SEOIssue(page.url, "metadata", "missing_meta", "critical",
                                  "Page is missing a meta description", auto_fixable=True))
        elif not self.validate_meta_description_length(page.meta_description):
            found.append(SEOIssue(
                page.url, "metadata", "meta_length", "warning",
                f"Meta description is {len(page.meta_description)} characters, should be "
                f"{self.config.meta_description_min_length}-{self.config.meta_description_max_length}",
                auto_fixable=True,
            ))
        if not page.canonical_url:
            found.append(SEOIssue(page.url, "metadata", "missing_canonical", "info",
                                  "Page is missing a canonical URL", auto_fixable=True))
        return found
