from seo_engine.keywords import extract_topics, keyword_tokens, page_keywords, tokenize
from seo_engine.models import Page


SAMPLE_TEXT = (
    "Sofa polishing restores the shine of wooden sofas. Our sofa polishing team in Andheri "
    "uses melamine and PU finishes. Melamine polish protects sofas from scratches, and "
    "regular sofa polishing keeps wooden furniture looking new."
)


# --- tokenize ---

def test_tokenize_lowercases_and_drops_stop_words():
    assert tokenize("The Sofa and THE Table") == ["sofa", "table"]


def test_tokenize_min_length():
    assert tokenize("pu bed sofa", min_length=4) == ["sofa"]


def test_tokenize_handles_none():
    assert tokenize(None) == []


# --- keyword_tokens ---

def test_keyword_tokens_dedup_in_order():
    assert keyword_tokens("Sofa polishing, sofa repair in Andheri") == ["sofa", "polishing", "repair", "andheri"]


def test_keyword_tokens_drop_marketing_noise():
    assert keyword_tokens("Best professional sofa services near Bandra") == ["sofa", "bandra"]


def test_page_keywords_use_title_h1_and_meta():
    page = Page(
        url="https://a1furniturepolish.com/x",
        title="Sofa Polishing",
        h1="Andheri Sofa Care",
        meta_description="Teak restoration",
    )
    assert page_keywords(page) == ["sofa", "polishing", "andheri", "care", "teak", "restoration"]


# --- topics ---

def test_topics_returned():
    topics = extract_topics(SAMPLE_TEXT)
    assert 0 < len(topics) <= 10


def test_topics_rank_repeated_terms_first():
    topics = extract_topics(SAMPLE_TEXT, top_n=3)
    assert "sofa polishing" in topics or "polishing" in topics


def test_topics_respect_top_n():
    assert len(extract_topics(SAMPLE_TEXT, top_n=2)) == 2


def test_topics_from_empty_text():
    assert extract_topics("") == []


def test_topics_from_stop_words_only():
    assert extract_topics("the and of to a") == []
