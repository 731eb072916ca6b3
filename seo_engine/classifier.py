import re
from typing import Optional
from urllib.parse import urlparse

from .models import Page

# Fallbacks used when a page carries no locality / service signal.
# Link relevance treats every page as belonging somewhere.
DEFAULT_LOCATION = "Mumbai"
DEFAULT_CATEGORY = "general-polishing"

# --- signal tables ---

# localities served, ordered from most to least specific so that
# "navi-mumbai" wins over "mumbai"
LOCATIONS = [
    "navi-mumbai", "vile-parle", "mira-road",
    "andheri", "bandra", "goregaon", "powai", "santacruz", "jogeshwari",
    "malad", "kandivali", "borivali", "dahisar", "thane", "dadar", "juhu",
    "khar", "worli", "chembur", "ghatkopar", "mulund", "colaba",
    "mumbai",
]

# service slug fragments that appear in page URLs -> display name
SERVICE_NAMES: dict[str, str] = {
    "sofa":        "Sofa Polishing",
    "chair":       "Chair Polishing",
    "table":       "Table Polishing",
    "bed":         "Bed Polishing",
    "cabinet":     "Cabinet Polishing",
    "wardrobe":    "Wardrobe Polishing",
    "door":        "Door Polishing",
    "antique":     "Antique Restoration",
    "wooden":      "Wooden Furniture Polish",
    "metal":       "Metal Furniture Polish",
    "steel":       "Steel Furniture Polish",
    "pu":          "PU Furniture Polish",
    "polishing":   "Furniture Polishing",
    "polish":      "Furniture Polish",
    "repair":      "Furniture Repair",
    "restoration": "Furniture Restoration",
}

# URL shapes that carry a service slug, most specific first
_SERVICE_URL_PATTERNS = [
    re.compile(r"/(sofa|chair|table|bed|cabinet|wardrobe|door|antique)-"),
    re.compile(r"/(wooden|metal|steel|pu)-furniture"),
    re.compile(r"/furniture-(polishing|polish|repair|restoration)"),
]

# category signals for link relevance, most specific first
_CATEGORY_SIGNALS = [
    ("sofa", "sofa-polishing"),
    ("table", "table-polishing"),
    ("wardrobe", "wardrobe-polishing"),
    ("wood", "wood-polishing"),
    ("furniture", "furniture-polishing"),
]

_IMAGE_BASE = "/Luxe assets/optimized/"

# social card images keyed by a keyword found in the service name
SERVICE_IMAGES = [
    ("sofa", "Sofa And chair-640w.webp"),
    ("table", "Study-table-polish-640w.webp"),
    ("bed", "Bed-polish-640w.webp"),
    ("cabinet", "Cabinet-polish-640w.webp"),
    ("wardrobe", "Wardrobe-polish-640w.webp"),
    ("door", "Door-polish-640w.webp"),
    ("antique", "Antique Restoration-640w.webp"),
]
DEFAULT_IMAGE = "wooden furniture -640w.webp"


def _slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", (text or "").lower()).strip("-")


def _contains_slug(haystack: str, slug: str) -> bool:
    # whole-slug match, so "khar" does not fire inside "kharghar"
    return re.search(rf"(?<![a-z]){re.escape(slug)}(?![a-z])", haystack) is not None


def format_location(slug: str) -> str:
    return " ".join(word.capitalize() for word in slug.split("-"))


def detect_location(url: str, title: str = "") -> Optional[str]:
    """Locality named in the URL path (or, failing that, the title), else None."""
    path = urlparse(url).path.lower() or url.lower()
    for haystack in (path, _slugify(title)):
        if not haystack:
            continue
        for slug in LOCATIONS:
            if _contains_slug(haystack, slug):
                return format_location(slug)
    return None


def detect_service(url: str) -> Optional[str]:
    """Service display name derived from the URL path, else None."""
    path = urlparse(url).path.lower() or url.lower()
    for pattern in _SERVICE_URL_PATTERNS:
        match = pattern.search(path)
        if match:
            return SERVICE_NAMES.get(match.group(1), match.group(1))
    return None


def service_category(page: Page) -> str:
    """Coarse category used to judge whether two pages are related."""
    # path only: the site's own domain names a category
    url = (urlparse(page.url).path or page.url).lower()
    title = page.title.lower()
    for signal, category in _CATEGORY_SIGNALS:
        if signal in url or signal in title:
            return category
    return DEFAULT_CATEGORY


def page_location(page: Page) -> str:
    return detect_location(page.url, page.title) or DEFAULT_LOCATION


def social_image(service: Optional[str]) -> str:
    """Fixed lookup: first table keyword found in the service name, default image otherwise."""
    lowered = (service or "").lower()
    for keyword, image in SERVICE_IMAGES:
        if keyword in lowered:
            return f"{_IMAGE_BASE}{image}"
    return f"{_IMAGE_BASE}{DEFAULT_IMAGE}"
