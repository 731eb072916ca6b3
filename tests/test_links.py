from seo_engine.config import LinkGraphConfig
from seo_engine.links import LinkGraph, build_adjacency
from seo_engine.loader import link_incoming
from seo_engine.models import LINK_EXTERNAL, Link, Page

BASE = "https://a1furniturepolish.com"

graph = LinkGraph()


def _url(path: str) -> str:
    return f"{BASE}{path}"


def _page(path: str, title: str = "", links_to: list[str] = ()) -> Page:
    page = Page(url=_url(path), title=title)
    for target in links_to:
        page.outgoing_links.append(Link(source_url=page.url, target_url=_url(target), anchor_text=target))
    return page


def _corpus(*pages: Page) -> list[Page]:
    return link_incoming(list(pages))


# --- analysis ---

def test_analyze_links_counts_and_anchor_histogram():
    a = _page("/a", links_to=["/c"])
    b = _page("/b", links_to=["/c"])
    c = _page("/c", links_to=["/missing"])
    c.outgoing_links.append(Link(c.url, "https://example.com", "external", link_type=LINK_EXTERNAL))
    b.outgoing_links[0].anchor_text = "/C "
    _corpus(a, b, c)

    analysis = graph.analyze_links(c, known_urls={a.url, b.url, c.url})

    assert analysis.incoming_count == 2
    assert analysis.outgoing_count == 2
    assert analysis.internal_outgoing_count == 1
    assert analysis.anchor_text_distribution == {"/c": 2}
    assert analysis.broken_links == [_url("/missing")]


def test_orphans_are_pages_nobody_links_to():
    pages = _corpus(_page("/a", links_to=["/b"]), _page("/b"), _page("/c", links_to=["/c"]))
    # a self-link does not rescue an orphan
    assert graph.identify_orphan_pages(pages) == [_url("/a"), _url("/c")]


def test_orphan_check_reads_incoming_links_too():
    a = _page("/a")
    b = _page("/b")
    b.incoming_links.append(Link(_url("/elsewhere"), b.url))
    assert graph.identify_orphan_pages([a, b]) == [a.url]


def test_find_broken_links_ignores_external_targets():
    a = _page("/a", links_to=["/gone"])
    a.outgoing_links.append(Link(a.url, "https://other.example/x", link_type=LINK_EXTERNAL))
    broken = graph.find_broken_links([a])
    assert [link.target_url for link in broken] == [_url("/gone")]


# --- cycles ---

def test_three_page_cycle_is_detected():
    pages = _corpus(
        _page("/a", links_to=["/b"]),
        _page("/b", links_to=["/c"]),
        _page("/c", links_to=["/a"]),
    )
    assert set(graph.detect_circular_references(pages)) == {_url("/a"), _url("/b"), _url("/c")}
    assert graph.validate_link_hierarchy(pages) is False


def test_pages_feeding_a_cycle_are_not_reported():
    pages = _corpus(
        _page("/entry", links_to=["/a"]),
        _page("/a", links_to=["/b"]),
        _page("/b", links_to=["/a"]),
        _page("/leaf"),
    )
    assert set(graph.detect_circular_references(pages)) == {_url("/a"), _url("/b")}


def test_dag_has_no_cycles():
    pages = _corpus(
        _page("/a", links_to=["/b", "/c"]),
        _page("/b", links_to=["/c"]),
        _page("/c"),
    )
    assert graph.detect_circular_references(pages) == []
    assert graph.validate_link_hierarchy(pages) is True


def test_long_chain_does_not_hit_recursion_limit():
    pages = [_page(f"/p{i}", links_to=[f"/p{i + 1}"]) for i in range(3000)]
    pages.append(_page("/p3000"))
    assert graph.detect_circular_references(pages) == []


def test_adjacency_skips_external_and_repeated_targets():
    a = _page("/a", links_to=["/b", "/b"])
    a.outgoing_links.append(Link(a.url, "https://other.example", link_type=LINK_EXTERNAL))
    assert build_adjacency([a]) == {a.url: [_url("/b")]}


# --- relevance and anchors ---

def test_relevance_weights_category_location_and_keywords():
    source = _page("/sofa-polishing-andheri", "Sofa Polishing Andheri")
    same_category = _page("/sofa-polishing-bandra", "Sofa Polishing Bandra")
    same_location = _page("/wardrobe-polishing-andheri", "Wardrobe Polishing Andheri")
    unrelated = _page("/table-polishing-bandra", "Table Polishing Bandra")

    assert graph.relevance(source, same_category) == 3 + 2     # category + sofa, polishing
    assert graph.relevance(source, same_location) == 2 + 2     # location + polishing, andheri
    assert graph.relevance(source, unrelated) == 1             # polishing


def test_anchor_text_prefers_shared_keyword_and_names_location():
    source = _page("/sofa-polishing-andheri", "Sofa Polishing Andheri")
    target = _page("/sofa-polishing-bandra", "Sofa Polishing Bandra")
    assert graph.generate_anchor_text(source, target) == "Sofa in Bandra"


def test_anchor_text_does_not_repeat_location():
    source = _page("/about", "About")
    target = _page("/bandra", "Bandra Furniture Care")
    assert graph.generate_anchor_text(source, target) == "Bandra"


# --- repair ---

def test_generate_outgoing_links_ranks_related_pages_without_mutating():
    source = _page("/sofa-polishing-andheri", "Sofa Polishing Andheri")
    pages = [
        source,
        _page("/table-polishing-bandra", "Table Polishing Bandra"),
        _page("/wardrobe-polishing-andheri", "Wardrobe Polishing Andheri"),
        _page("/sofa-polishing-bandra", "Sofa Polishing Bandra"),
    ]

    links = graph.generate_outgoing_links(source, 3, pages)

    assert [link.target_url for link in links] == [
        _url("/sofa-polishing-bandra"),
        _url("/wardrobe-polishing-andheri"),
    ]
    assert all(link.source_url == source.url for link in links)
    assert links[0].context == "Related sofa-polishing service"
    assert source.outgoing_links == []


def test_generate_outgoing_links_nothing_needed():
    source = _page("/a", links_to=["/b"])
    assert graph.generate_outgoing_links(source, 1, [source, _page("/b")]) == []


def test_generated_links_never_close_a_cycle():
    a = _page("/sofa-a", "Sofa A", links_to=["/sofa-b"])
    b = _page("/sofa-b", "Sofa B")
    links = graph.generate_outgoing_links(b, 1, _corpus(a, b))
    assert links == []


def test_cycles_allowed_when_avoidance_disabled():
    permissive = LinkGraph(LinkGraphConfig(min_outgoing_links=1, avoid_circular_references=False))
    a = _page("/sofa-a", "Sofa A", links_to=["/sofa-b"])
    b = _page("/sofa-b", "Sofa B")
    links = permissive.generate_outgoing_links(b, 1, _corpus(a, b))
    assert [link.target_url for link in links] == [a.url]


def test_repair_outgoing_links_records_both_ends():
    lg = LinkGraph(LinkGraphConfig(min_outgoing_links=1))
    a = _page("/sofa-a", "Sofa A")
    b = _page("/sofa-b", "Sofa B")
    pages = [a, b]

    result = lg.repair_outgoing_links(pages)

    assert len(result.created_links) == 1
    link = result.created_links[0]
    assert (link.source_url, link.target_url) == (a.url, b.url)
    assert link in a.outgoing_links
    assert link in b.incoming_links
    # b -> a would close a loop
    assert b.url in result.deficiencies
    assert lg.detect_circular_references(pages) == []


def test_fix_orphan_pages_links_from_related_parents():
    lg = LinkGraph(LinkGraphConfig(max_orphan_parents=2))
    pages = [
        _page("/sofa-polishing-andheri", "Sofa Polishing Andheri"),
        _page("/sofa-polishing-bandra", "Sofa Polishing Bandra"),
        _page("/sofa-polishing-powai", "Sofa Polishing Powai"),
        _page("/sofa-polishing-juhu", "Sofa Polishing Juhu"),
    ]
    orphan = pages[2]

    created = lg.fix_orphan_pages([orphan.url], pages)

    assert len(created) == 2
    assert len(orphan.incoming_links) == 2
    assert all(link.target_url == orphan.url for link in created)
    assert pages[0].links_to(orphan.url)
    assert orphan.url not in lg.identify_orphan_pages(pages)


def test_fix_orphan_pages_skips_unknown_urls():
    pages = [_page("/a", "A")]
    assert graph.fix_orphan_pages([_url("/nope")], pages) == []


def test_orphan_with_outgoing_links_still_gets_a_parent():
    orphan = _page("/sofa-polishing-andheri", "Sofa Polishing Andheri", links_to=["/sofa-polishing-bandra"])
    other = _page("/sofa-polishing-bandra", "Sofa Polishing Bandra")
    pages = _corpus(orphan, other)

    created = LinkGraph().fix_orphan_pages([orphan.url], pages)

    assert [(link.source_url, link.target_url) for link in created] == [(other.url, orphan.url)]
    assert orphan.incoming_links == created
    assert graph.identify_orphan_pages(pages) == []
    # the loop is left for the circular reference check to report
    assert set(graph.detect_circular_references(pages)) == {orphan.url, other.url}


def test_fix_orphan_pages_ignores_unrelated_pages():
    orphan = _page("/sofa-polishing-andheri", "Sofa Polishing Andheri")
    unrelated = _page("/table-polishing-bandra", "Table Polishing Bandra")
    assert graph.fix_orphan_pages([orphan.url], [orphan, unrelated]) == []
    assert orphan.incoming_links == []


def test_repair_fixes_orphans_before_outgoing_links():
    lg = LinkGraph(LinkGraphConfig(min_outgoing_links=1))
    root = _page("/sofa-root", "Sofa Root", links_to=["/sofa-mid"])
    mid = _page("/sofa-mid", "Sofa Mid", links_to=["/sofa-leaf"])
    leaf = _page("/sofa-leaf", "Sofa Leaf")
    pages = _corpus(root, mid, leaf)

    result = lg.repair(pages)

    assert result.orphans_fixed == [root.url]
    assert {link.source_url for link in root.incoming_links} == {mid.url, leaf.url}
    assert lg.identify_orphan_pages(pages) == []
    # leaf gained its outgoing link from orphan repair, so nothing is short
    assert len(result.created_links) == 2
    assert result.deficiencies == {}


# --- link_pages ---

def test_link_pages_records_both_ends():
    a = _page("/sofa-polishing-andheri", "Sofa Polishing Andheri")
    b = _page("/sofa-polishing-bandra", "Sofa Polishing Bandra")

    link = graph.link_pages(a, b, [a, b])

    assert (link.source_url, link.target_url) == (a.url, b.url)
    assert link.anchor_text == "Sofa in Bandra"
    assert a.outgoing_links == [link]
    assert b.incoming_links == [link]


def test_link_pages_skips_existing_and_self_links():
    a = _page("/a", "A", links_to=["/b"])
    b = _page("/b", "B")
    assert graph.link_pages(a, b, [a, b]) is None
    assert graph.link_pages(a, a, [a, b]) is None
    assert len(a.outgoing_links) == 1


# --- redirects ---

def test_redirect_moves_links_to_new_page():
    a = _page("/a", links_to=["/old"])
    old = _page("/old")
    new = _page("/new")
    pages = _corpus(a, old, new)

    rewritten = graph.update_redirected_links(pages, {_url("/old"): _url("/new")})

    assert rewritten == 1
    assert a.outgoing_links[0].target_url == new.url
    assert old.incoming_links == []
    assert new.incoming_links == [a.outgoing_links[0]]


def test_redirect_update_is_idempotent():
    pages = _corpus(_page("/a", links_to=["/old"]), _page("/old"), _page("/new"))
    redirects = {_url("/old"): _url("/new")}
    graph.update_redirected_links(pages, redirects)
    assert graph.update_redirected_links(pages, redirects) == 0


def test_redirect_chains_collapse_to_final_target():
    a = _page("/a", links_to=["/v1"])
    rewritten = graph.update_redirected_links([a], {_url("/v1"): _url("/v2"), _url("/v2"): _url("/v3")})
    assert rewritten == 1
    assert a.outgoing_links[0].target_url == _url("/v3")


def test_redirect_loops_are_left_alone():
    a = _page("/a", links_to=["/x"])
    assert graph.update_redirected_links([a], {_url("/x"): _url("/y"), _url("/y"): _url("/x")}) == 0
    assert a.outgoing_links[0].target_url == _url("/x")


# --- issues ---

def test_link_issues():
    lg = LinkGraph(LinkGraphConfig(min_outgoing_links=1, max_outgoing_links=1))
    pages = _corpus(
        _page("/a", links_to=["/b", "/gone"]),
        _page("/b"),
    )
    orphans = lg.identify_orphan_pages(pages)
    issues = lg.issues(pages, orphans, cycles=[])
    by_type = {(issue.page_url, issue.issue_type) for issue in issues}

    assert (_url("/a"), "orphan_page") in by_type
    assert (_url("/a"), "broken_link") in by_type
    assert (_url("/a"), "excessive_outgoing_links") in by_type
    assert (_url("/b"), "insufficient_outgoing_links") in by_type
