import logging
import re

import nltk
from nltk.corpus import stopwords
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS, TfidfVectorizer

from .models import Page

logger = logging.getLogger(__name__)


def _load_stop_words() -> set[str]:
    # download once; no-op if already present
    try:
        nltk.data.find("corpora/stopwords")
    except LookupError:
        nltk.download("stopwords", quiet=True)
    try:
        return set(stopwords.words("english"))
    except LookupError:
        # offline and never downloaded: scikit-learn ships its own English list
        logger.warning("nltk stopwords unavailable, using scikit-learn's English stop words")
        return set(ENGLISH_STOP_WORDS)


_STOP_WORDS = _load_stop_words()

# marketing filler that carries no topical signal on service pages
_EXTRA_NOISE = {
    "best", "top", "professional", "expert", "quality", "services", "service",
    "online", "book", "call", "contact", "today", "near", "free", "quote",
    "click", "please", "read", "more", "also", "like", "get", "use", "new",
}


def tokenize(text: str, min_length: int = 3) -> list[str]:
    """Lowercase, strip punctuation, remove short and stop words. Order is kept."""
    tokens = re.findall(r"[a-z0-9]+", (text or "").lower())
    return [t for t in tokens if len(t) >= min_length and t not in _STOP_WORDS]


def keyword_tokens(text: str) -> list[str]:
    """Distinct content-bearing tokens of *text*, in first-seen order."""
    seen = {}
    for token in tokenize(text, min_length=4):
        if token not in _EXTRA_NOISE:
            seen.setdefault(token, None)
    return list(seen)


def page_keywords(page: Page) -> list[str]:
    """
    Keyword set used for relevance and anchor text: tokens from the title,
    H1 and meta description, in that priority order.
    """
    text = " ".join(part for part in (page.title, page.h1 or "", page.meta_description) if part)
    return keyword_tokens(text)


def extract_topics(text: str, top_n: int = 10) -> list[str]:
    """
    Run TF-IDF on a single document and return the top_n scoring terms.
    Scores reduce to dampened term frequency; ties fall back to alphabetical
    order so the output is stable.
    """
    if not text or not text.strip():
        return []

    tokens = [t for t in tokenize(text) if t not in _EXTRA_NOISE]
    if not tokens:
        return []

    try:
        vectorizer = TfidfVectorizer(
            ngram_range=(1, 2),        # single words + bigrams
            max_features=200,
            sublinear_tf=True,         # log(tf) dampens very high frequencies
        )
        tfidf_matrix = vectorizer.fit_transform([" ".join(tokens)])
        scores = zip(vectorizer.get_feature_names_out(), tfidf_matrix.toarray()[0])
        ranked = sorted(scores, key=lambda x: x[1], reverse=True)
        return [term for term, score in ranked[:top_n] if score > 0]
    except ValueError as exc:
        logger.warning("TF-IDF extraction failed: %s", exc)
        return []
