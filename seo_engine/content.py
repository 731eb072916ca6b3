"""Lexical content checks: word count, keyword density, heading hierarchy
and corpus-wide duplicate detection.

Every check is a pure function of the page text and never raises on
malformed input; failures come back as False or an empty result.
"""

import hashlib
import logging
import re

from .classifier import LOCATIONS, SERVICE_NAMES, format_location
from .config import ContentValidatorConfig
from .keywords import extract_topics, keyword_tokens
from .models import ContentAnalysis, HeadingStructure, Page, SEOIssue
from .parser import extract_headings, strip_markup

logger = logging.getLogger(__name__)

_LOCATION_TEMPLATES = [
    "Professional {service} services in {location} with expert technicians and quality materials.",
    "Get the best {service} in {location} with our experienced team and affordable pricing.",
    "{location} residents trust us for reliable {service} with guaranteed satisfaction.",
    "Quality {service} services available in {location} with same-day booking options.",
]

_SERVICE_TEMPLATES = [
    "Our {service} service includes comprehensive assessment, professional treatment, and quality assurance.",
    "Expert {service} with modern techniques and premium materials for lasting results.",
    "Professional {service} service with transparent pricing and customer satisfaction guarantee.",
    "Specialized {service} using industry-best practices and eco-friendly materials.",
]

# phrases that mark a page as talking about an actual service
SERVICE_PHRASES = [
    "furniture polish", "sofa repair", "chair repair", "table polish",
    "wardrobe polish", "bed polish", "cabinet polish", "wood polish",
] + [name.lower() for name in SERVICE_NAMES.values()]


def _pick(templates: list[str], *parts: str) -> str:
    # stable choice, so regenerating the same page yields the same text
    digest = hashlib.md5("|".join(parts).encode("utf-8")).hexdigest()
    return templates[int(digest, 16) % len(templates)]


def _phrase_pattern(keyword: str) -> re.Pattern:
    words = [re.escape(w) for w in keyword.lower().split()]
    return re.compile(r"(?<!\w)" + r"\s+".join(words) + r"(?!\w)")


def normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", strip_markup(text).lower()).strip()


def content_fingerprint(text: str) -> str:
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


def count_words(text: str) -> int:
    return len(strip_markup(text).split())


class ContentValidator:
    def __init__(self, config: ContentValidatorConfig = None):
        self.config = config or ContentValidatorConfig()

    # --- per page ---

    def tracked_keywords(self, page: Page) -> list[str]:
        """Explicit page keywords, else the content tokens of its title and H1."""
        if page.keywords:
            return list(page.keywords)
        return keyword_tokens(f"{page.title} {page.h1 or ''}")

    def word_count(self, page: Page) -> int:
        if page.content.strip():
            return count_words(page.content)
        return page.word_count

    def analyze(self, page: Page) -> ContentAnalysis:
        text = strip_markup(page.content)
        return ContentAnalysis(
            word_count=self.word_count(page),
            keyword_density=self.keyword_density(text, self.tracked_keywords(page)),
            heading_structure=self.extract_heading_structure(page.content),
            duplicate_score=0.0,
            readability_score=self.readability_score(text),
            topics=extract_topics(text),
        )

    def validate_word_count(self, text: str) -> bool:
        return count_words(text) >= self.config.min_word_count

    def keyword_density(self, text: str, keywords: list[str]) -> dict[str, float]:
        """Occurrences / total words per keyword, case-insensitive whole-word matching."""
        plain = strip_markup(text).lower()
        total_words = len(plain.split())
        if total_words == 0:
            return {}

        density = {}
        for keyword in keywords:
            if not keyword or not keyword.strip():
                continue
            occurrences = len(_phrase_pattern(keyword).findall(plain))
            density[keyword] = occurrences / total_words
        return density

    def validate_keyword_density(self, density: dict[str, float]) -> bool:
        # a tracked keyword that never appears (0%) fails too
        return all(
            self.config.density_min <= ratio <= self.config.density_max
            for ratio in density.values()
        )

    def extract_heading_structure(self, text: str) -> HeadingStructure:
        structure = HeadingStructure()
        for level, heading in extract_headings(text):
            structure.level(level).append(heading)
        return structure

    def validate_heading_structure(self, text: str) -> bool:
        if not self.config.heading_structure_required:
            return True

        structure = self.extract_heading_structure(text)
        if len(structure.h1) != 1:
            return False

        # a level-n heading needs at least one level n-1 heading somewhere
        for level in range(4, 7):
            if structure.level(level) and not structure.level(level - 1):
                return False
        return True

    def validate_location_content(self, page: Page) -> bool:
        if not self.config.location_info_required:
            return True
        text = normalize_text(page.content)
        return any(
            _phrase_pattern(format_location(slug)).search(text)
            for slug in LOCATIONS
        )

    def validate_service_content(self, page: Page) -> bool:
        text = normalize_text(page.content)
        return any(phrase in text for phrase in SERVICE_PHRASES)

    def readability_score(self, text: str) -> int:
        """Crude score preferring 10-25 words per sentence and 3-7 characters per word."""
        sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
        words = text.split()
        if not sentences or not words:
            return 0

        words_per_sentence = len(words) / len(sentences)
        chars_per_word = len(re.sub(r"\s+", "", text)) / len(words)

        score = 100
        if words_per_sentence > 25 or words_per_sentence < 10:
            score -= 20
        if chars_per_word > 7 or chars_per_word < 3:
            score -= 20
        return max(0, score)

    def issues(self, page: Page, analysis: ContentAnalysis) -> list[SEOIssue]:
        found = []

        def issue(issue_type, severity, description, auto_fixable=False):
            found.append(SEOIssue(page.url, "content", issue_type, severity, description, auto_fixable))

        if analysis.word_count < self.config.min_word_count:
            issue("low_word_count", "warning",
                  f"Page has {analysis.word_count} words, minimum {self.config.min_word_count}")
        if not self.validate_keyword_density(analysis.keyword_density):
            offenders = ", ".join(
                f"{kw} ({ratio:.1%})" for kw, ratio in analysis.keyword_density.items()
                if not self.config.density_min <= ratio <= self.config.density_max
            )
            issue("poor_keyword_density", "warning", f"Keyword density out of range: {offenders}")
        if page.content.strip() and not self.validate_heading_structure(page.content):
            issue("invalid_heading_structure", "warning",
                  f"Heading hierarchy invalid ({len(analysis.heading_structure.h1)} H1 tags)")
        if page.content.strip() and not self.validate_location_content(page):
            issue("missing_location_content", "info", "Page text names no served locality")
        if page.content.strip() and not self.validate_service_content(page):
            issue("missing_service_content", "info", "Page text names no service")
        return found

    # --- corpus wide ---

    def detect_duplicate_content(self, pages: list[Page]) -> dict[str, list[str]]:
        """
        Group pages whose normalised text hashes identically.
        Only groups with two or more members are returned; pages without
        any text are skipped rather than grouped together.
        """
        groups: dict[str, list[str]] = {}
        for page in pages:
            if not normalize_text(page.content):
                continue
            groups.setdefault(content_fingerprint(page.content), []).append(page.url)

        duplicates = {digest: urls for digest, urls in groups.items() if len(urls) > 1}
        if duplicates:
            logger.info("Found %d duplicate content group(s)", len(duplicates))
        return duplicates

    # --- generation ---

    def generate_location_content(self, location: str, service: str) -> str:
        return _pick(_LOCATION_TEMPLATES, location, service).format(location=location, service=service)

    def generate_service_content(self, service: str) -> str:
        return _pick(_SERVICE_TEMPLATES, service).format(service=service)
