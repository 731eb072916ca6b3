import pytest
import requests
from datetime import datetime
from unittest.mock import MagicMock, patch

from seo_engine.exceptions import CorpusLoadError, DuplicatePageError
from seo_engine.loader import (
    link_incoming,
    load_pages_from_records,
    load_pages_from_urls,
    page_from_record,
)
from seo_engine.models import Link, Page

BASE = "https://a1furniturepolish.com"

HTML = {
    f"{BASE}/a": '<html><head><title>A</title></head><body><h1>A</h1><a href="/b">to b</a></body></html>',
    f"{BASE}/b": '<html><head><title>B</title></head><body><h1>B</h1><a href="/a">to a</a></body></html>',
}


def _response(url, **kwargs):
    response = MagicMock()
    response.text = HTML[url]
    response.url = url
    response.raise_for_status.return_value = None
    return response


# --- from urls ---

def test_load_pages_from_urls_links_both_ends():
    with patch("seo_engine.loader.requests.get", side_effect=_response) as mock_get:
        pages = load_pages_from_urls([f"{BASE}/a", f"{BASE}/b"])

    assert mock_get.call_count == 2
    a, b = pages
    assert a.title == "A"
    assert [link.target_url for link in a.outgoing_links] == [f"{BASE}/b"]
    assert b.incoming_links == [a.outgoing_links[0]]
    assert a.incoming_links == [b.outgoing_links[0]]


def test_fetch_sends_user_agent_and_timeout():
    with patch("seo_engine.loader.requests.get", side_effect=_response) as mock_get:
        load_pages_from_urls([f"{BASE}/a"])

    _, kwargs = mock_get.call_args
    assert "SEOIntegrityEngine" in kwargs["headers"]["User-Agent"]
    assert kwargs["timeout"] == 15


def test_fetch_failure_aborts_load():
    with patch("seo_engine.loader.requests.get", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(CorpusLoadError, match="refused"):
            load_pages_from_urls([f"{BASE}/a"])


def test_http_error_aborts_load():
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404 Client Error")
    with patch("seo_engine.loader.requests.get", return_value=response):
        with pytest.raises(CorpusLoadError, match="404"):
            load_pages_from_urls([f"{BASE}/missing"])


def test_robots_block_aborts_load():
    with patch("seo_engine.loader.is_fetch_allowed", return_value=False), \
         patch("seo_engine.loader.requests.get") as mock_get:
        with pytest.raises(CorpusLoadError, match="robots"):
            load_pages_from_urls([f"{BASE}/a"], respect_robots=True)
    mock_get.assert_not_called()


def test_duplicate_urls_rejected_before_fetching():
    with patch("seo_engine.loader.requests.get") as mock_get:
        with pytest.raises(DuplicatePageError):
            load_pages_from_urls([f"{BASE}/a", f"{BASE}/a"])
    mock_get.assert_not_called()


# --- from records ---

def test_record_round_trip_through_to_dict():
    page = Page(url=f"{BASE}/a", title="A", h1="A", keywords=["sofa"], last_modified=datetime(2024, 1, 2))
    page.outgoing_links.append(Link(page.url, f"{BASE}/b", "B"))

    rebuilt = page_from_record(page.to_dict())

    assert rebuilt == page


def test_record_defaults_outgoing_source_to_page():
    page = page_from_record({"url": f"{BASE}/a", "outgoing_links": [{"target_url": f"{BASE}/b"}]})
    assert page.outgoing_links[0].source_url == f"{BASE}/a"
    assert page.outgoing_links[0].link_type == "internal"


def test_record_with_social_cards():
    page = page_from_record({
        "url": f"{BASE}/a",
        "open_graph": {"title": "OG", "site_name": "A1"},
        "twitter_card": {"card": "summary", "title": "TW"},
    })
    assert page.open_graph.title == "OG"
    assert page.twitter_card.card == "summary"


def test_invalid_record_raises():
    with pytest.raises(CorpusLoadError):
        page_from_record({"title": "no url"})
    with pytest.raises(CorpusLoadError):
        page_from_record({"url": f"{BASE}/a", "last_modified": "yesterday"})


def test_records_are_mirrored():
    pages = load_pages_from_records([
        {"url": f"{BASE}/a", "outgoing_links": [{"target_url": f"{BASE}/b"}]},
        {"url": f"{BASE}/b"},
    ])
    assert len(pages[1].incoming_links) == 1
    assert pages[1].incoming_links[0] is pages[0].outgoing_links[0]


def test_records_with_duplicate_urls_rejected():
    with pytest.raises(DuplicatePageError):
        load_pages_from_records([{"url": f"{BASE}/a"}, {"url": f"{BASE}/a"}])


# --- link_incoming ---

def test_link_incoming_does_not_duplicate_existing_entries():
    a = Page(url=f"{BASE}/a")
    b = Page(url=f"{BASE}/b")
    link = Link(a.url, b.url)
    a.outgoing_links.append(link)
    b.incoming_links.append(Link(a.url, b.url))

    link_incoming([a, b])

    assert len(b.incoming_links) == 1


def test_link_incoming_ignores_external_and_self_links():
    a = Page(url=f"{BASE}/a")
    a.outgoing_links.append(Link(a.url, a.url))
    a.outgoing_links.append(Link(a.url, f"{BASE}/b", link_type="external"))
    b = Page(url=f"{BASE}/b")

    link_incoming([a, b])

    assert a.incoming_links == []
    assert b.incoming_links == []
