"""Internal link graph analysis and repair.

The corpus is treated as a digraph keyed by URL: every page maps to the
targets of its internal outgoing links. Orphan and cycle detection read that
adjacency map; the repair steps add edges to it as they mutate pages so later
decisions see earlier ones.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

from .classifier import detect_location, page_location, service_category
from .config import LinkGraphConfig
from .keywords import page_keywords
from .models import LINK_INTERNAL, Link, LinkAnalysis, Page, SEOIssue

logger = logging.getLogger(__name__)

# relevance weights
CATEGORY_WEIGHT = 3
LOCATION_WEIGHT = 2
KEYWORD_WEIGHT = 1


class _Profile(NamedTuple):
    category: str
    location: str
    keywords: list[str]


@dataclass
class LinkRepairResult:
    created_links: list[Link] = field(default_factory=list)
    # url -> why the page could not be brought up to target
    deficiencies: dict[str, str] = field(default_factory=dict)
    orphans_fixed: list[str] = field(default_factory=list)


def build_adjacency(pages: list[Page]) -> dict[str, list[str]]:
    """URL -> distinct internal targets, in link order."""
    adjacency = {}
    for page in pages:
        targets = adjacency.setdefault(page.url, [])
        for link in page.outgoing_links:
            if link.link_type == LINK_INTERNAL and link.target_url not in targets:
                targets.append(link.target_url)
    return adjacency


def _reaches(adjacency: dict[str, list[str]], start: str, goal: str) -> bool:
    """True if *goal* is reachable from *start* (a node reaches itself)."""
    if start == goal:
        return True
    seen = {start}
    queue = deque([start])
    while queue:
        for child in adjacency.get(queue.popleft(), ()):
            if child == goal:
                return True
            if child not in seen:
                seen.add(child)
                queue.append(child)
    return False


class LinkGraph:
    def __init__(self, config: LinkGraphConfig = None):
        self.config = config or LinkGraphConfig()

    # --- analysis ---

    def analyze_links(self, page: Page, known_urls: set[str] = None) -> LinkAnalysis:
        distribution: dict[str, int] = {}
        for link in page.incoming_links:
            anchor = link.anchor_text.lower().strip()
            distribution[anchor] = distribution.get(anchor, 0) + 1

        broken = []
        if known_urls is not None:
            broken = [
                link.target_url for link in page.outgoing_links
                if link.link_type == LINK_INTERNAL and link.target_url not in known_urls
            ]

        return LinkAnalysis(
            url=page.url,
            incoming_count=len(page.incoming_links),
            outgoing_count=len(page.outgoing_links),
            internal_outgoing_count=len(page.internal_outgoing()),
            anchor_text_distribution=distribution,
            broken_links=broken,
        )

    def identify_orphan_pages(self, pages: list[Page]) -> list[str]:
        """Pages that no internal link from another page points at."""
        targets = set()
        for page in pages:
            for link in page.outgoing_links + page.incoming_links:
                if link.link_type == LINK_INTERNAL and link.source_url != link.target_url:
                    targets.add(link.target_url)
        return [page.url for page in pages if page.url not in targets]

    def find_broken_links(self, pages: list[Page]) -> list[Link]:
        known = {page.url for page in pages}
        return [
            link for page in pages for link in page.outgoing_links
            if link.link_type == LINK_INTERNAL and link.target_url not in known
        ]

    def detect_circular_references(self, pages: list[Page]) -> list[str]:
        """
        Iterative depth-first search with a visited set and an on-stack set.
        A child found on the stack closes a cycle; every URL on the stack from
        that child down to the current node is reported. Each node is expanded
        once, so the walk is O(V + E).
        """
        adjacency = build_adjacency(pages)
        visited: set[str] = set()
        depth: dict[str, int] = {}        # on-stack nodes -> index in path
        path: list[str] = []
        cyclic: dict[str, None] = {}      # ordered set

        for root in adjacency:
            if root in visited:
                continue
            visited.add(root)
            depth[root] = 0
            path.append(root)
            stack = [(root, iter(adjacency.get(root, ())))]

            while stack:
                node, children = stack[-1]
                descended = False
                for child in children:
                    if child in depth:
                        for url in path[depth[child]:]:
                            cyclic.setdefault(url, None)
                    elif child not in visited:
                        visited.add(child)
                        depth[child] = len(path)
                        path.append(child)
                        stack.append((child, iter(adjacency.get(child, ()))))
                        descended = True
                        break
                if not descended:
                    stack.pop()
                    path.pop()
                    del depth[node]

        if cyclic:
            logger.info("Circular references through %d page(s)", len(cyclic))
        return list(cyclic)

    def validate_link_hierarchy(self, pages: list[Page]) -> bool:
        return not self.detect_circular_references(pages)

    # --- relevance ---

    def _profile(self, page: Page) -> _Profile:
        return _Profile(service_category(page), page_location(page), page_keywords(page))

    def _profiles(self, pages: list[Page]) -> dict[str, _Profile]:
        return {page.url: self._profile(page) for page in pages}

    @staticmethod
    def _related(a: _Profile, b: _Profile) -> bool:
        return a.category == b.category or a.location == b.location

    @staticmethod
    def _score(a: _Profile, b: _Profile) -> int:
        score = 0
        if a.category == b.category:
            score += CATEGORY_WEIGHT
        if a.location == b.location:
            score += LOCATION_WEIGHT
        score += KEYWORD_WEIGHT * len(set(a.keywords) & set(b.keywords))
        return score

    def relevance(self, source: Page, target: Page) -> int:
        return self._score(self._profile(source), self._profile(target))

    def _rank(self, anchor: _Profile, candidates: list[Page], profiles: dict[str, _Profile]) -> list[Page]:
        related = [c for c in candidates if self._related(anchor, profiles[c.url])]
        # sorted() is stable: equal scores keep corpus order
        return sorted(related, key=lambda c: self._score(anchor, profiles[c.url]), reverse=True)

    # --- anchor text ---

    def generate_anchor_text(self, source: Page, target: Page) -> str:
        target_keywords = page_keywords(target)
        source_keywords = set(page_keywords(source))

        common = [kw for kw in target_keywords if kw in source_keywords]
        if common:
            text = common[0]
        elif target_keywords:
            text = target_keywords[0]
        else:
            text = " ".join(target.title.split()[:3]) or target.url
        return self._format_anchor(text, target)

    @staticmethod
    def _format_anchor(text: str, target: Page) -> str:
        formatted = text[:1].upper() + text[1:]
        location = detect_location(target.url, target.title)
        if location and location.lower() not in formatted.lower():
            return f"{formatted} in {location}"
        return formatted

    def _context(self, source: _Profile, target: _Profile) -> str:
        if source.category == target.category:
            return f"Related {source.category} service"
        return "Additional service offering"

    def _new_link(self, source: Page, target: Page, profiles: dict[str, _Profile]) -> Link:
        return Link(
            source_url=source.url,
            target_url=target.url,
            anchor_text=self.generate_anchor_text(source, target),
            link_type=LINK_INTERNAL,
            is_nofollow=False,
            context=self._context(profiles[source.url], profiles[target.url]),
        )

    # --- repair ---

    def _select_targets(
        self,
        page: Page,
        needed: int,
        pages: list[Page],
        profiles: dict[str, _Profile],
        adjacency: dict[str, list[str]],
    ) -> list[Page]:
        linked = {link.target_url for link in page.outgoing_links}
        candidates = [c for c in pages if c.url != page.url and c.url not in linked]

        chosen = []
        for candidate in self._rank(profiles[page.url], candidates, profiles):
            if len(chosen) >= needed:
                break
            # page -> candidate closes a loop if candidate already reaches page
            if self.config.avoid_circular_references and _reaches(adjacency, candidate.url, page.url):
                continue
            chosen.append(candidate)
        return chosen

    def generate_outgoing_links(self, page: Page, target_count: int, pages: list[Page]) -> list[Link]:
        """
        New internal links that would bring *page* up to *target_count*
        internal outgoing links. The page itself is not modified.
        """
        needed = target_count - len(page.internal_outgoing())
        if needed <= 0:
            return []

        profiles = self._profiles(pages)
        if page.url not in profiles:
            profiles[page.url] = self._profile(page)
        adjacency = build_adjacency(pages)

        targets = self._select_targets(page, needed, pages, profiles, adjacency)
        return [self._new_link(page, target, profiles) for target in targets]

    def repair_outgoing_links(self, pages: list[Page], result: LinkRepairResult = None) -> LinkRepairResult:
        """
        Bring every page below min_outgoing_links up to it, in corpus order.
        Each new edge is recorded on both ends.
        """
        result = result or LinkRepairResult()
        target_count = min(self.config.min_outgoing_links, self.config.max_outgoing_links)
        by_url = {page.url: page for page in pages}
        profiles = self._profiles(pages)
        adjacency = build_adjacency(pages)

        for page in pages:
            needed = target_count - len(page.internal_outgoing())
            if needed <= 0:
                continue
            targets = self._select_targets(page, needed, pages, profiles, adjacency)
            for target in targets:
                link = self._new_link(page, target, profiles)
                self._connect(link, by_url, adjacency)
                result.created_links.append(link)
            if len(targets) < needed:
                result.deficiencies[page.url] = (
                    f"only {len(page.internal_outgoing())} of {target_count} outgoing links; "
                    f"no further related pages can be linked"
                )
                logger.info("Link repair short for %s: %s", page.url, result.deficiencies[page.url])
        return result

    def fix_orphan_pages(self, orphan_urls: list[str], pages: list[Page]) -> list[Link]:
        """
        Link up to max_orphan_parents related pages to each orphan.
        Mutates the parents' outgoing_links and the orphan's incoming_links.

        Every related parent is eligible, including one the orphan already
        reaches; a loop made here is reported by detect_circular_references.
        """
        by_url = {page.url: page for page in pages}
        profiles = self._profiles(pages)
        created = []

        for orphan_url in orphan_urls:
            orphan = by_url.get(orphan_url)
            if orphan is None:
                logger.warning("Orphan %s is not in the corpus, skipping", orphan_url)
                continue

            candidates = [
                p for p in pages
                if p.url != orphan.url and not p.links_to(orphan.url)
            ]
            parents = self._rank(profiles[orphan.url], candidates, profiles)[:self.config.max_orphan_parents]

            for parent in parents:
                link = self._new_link(parent, orphan, profiles)
                self._connect(link, by_url)
                created.append(link)
            if not parents:
                logger.info("No related parent page for orphan %s", orphan.url)

        return created

    def repair(self, pages: list[Page]) -> LinkRepairResult:
        """Orphan repair first, then outgoing-link repair on the updated graph."""
        result = LinkRepairResult()
        orphans = self.identify_orphan_pages(pages)
        if orphans:
            for link in self.fix_orphan_pages(orphans, pages):
                result.created_links.append(link)
                if link.target_url not in result.orphans_fixed:
                    result.orphans_fixed.append(link.target_url)
        return self.repair_outgoing_links(pages, result)

    def link_pages(self, source: Page, target: Page, pages: list[Page]) -> Optional[Link]:
        """
        Add one internal link source -> target with a generated anchor and
        record it on both ends. Returns None for a self-link or an edge that
        already exists.
        """
        if source.url == target.url or source.links_to(target.url):
            return None
        by_url = {page.url: page for page in pages}
        by_url.setdefault(source.url, source)
        by_url.setdefault(target.url, target)
        link = self._new_link(source, target, {page.url: self._profile(page) for page in (source, target)})
        self._connect(link, by_url)
        return link

    @staticmethod
    def _connect(link: Link, by_url: dict[str, Page], adjacency: dict[str, list[str]] = None) -> None:
        source = by_url[link.source_url]
        source.outgoing_links.append(link)
        source.touch()
        target = by_url.get(link.target_url)
        if target is not None:
            target.incoming_links.append(link)
            target.touch()
        if adjacency is not None:
            adjacency.setdefault(link.source_url, []).append(link.target_url)

    # --- redirects ---

    @staticmethod
    def _resolve_redirects(redirect_map: dict[str, str]) -> dict[str, str]:
        """Collapse chains to their final destination; loops are dropped."""
        resolved = {}
        for old in redirect_map:
            seen = {old}
            current = redirect_map[old]
            while current in redirect_map and current not in seen:
                seen.add(current)
                current = redirect_map[current]
            if current in seen:
                logger.warning("Redirect loop through %s, leaving its links untouched", old)
                continue
            if current != old:
                resolved[old] = current
        return resolved

    def update_redirected_links(self, pages: list[Page], redirect_map: dict[str, str]) -> int:
        """
        Point every edge whose target was redirected at the final destination.
        Returns the number of edges rewritten; applying the same map again
        rewrites nothing.
        """
        resolved = self._resolve_redirects(redirect_map)
        if not resolved:
            return 0

        rewritten = 0
        for page in pages:
            for link in page.outgoing_links + page.incoming_links:
                new_target = resolved.get(link.target_url)
                if new_target is not None:
                    link.target_url = new_target
                    rewritten += 1

        # incoming links follow their target to the page it now is
        by_url = {page.url: page for page in pages}
        for page in pages:
            moved = [link for link in page.incoming_links if link.target_url != page.url]
            for link in moved:
                destination = by_url.get(link.target_url)
                if destination is None:
                    continue
                page.incoming_links.remove(link)
                if link not in destination.incoming_links:
                    destination.incoming_links.append(link)

        if rewritten:
            logger.info("Rewrote %d redirected link(s)", rewritten)
        return rewritten

    # --- reporting ---

    def issues(
        self,
        pages: list[Page],
        orphans: list[str],
        cycles: list[str],
        repair: LinkRepairResult = None,
    ) -> list[SEOIssue]:
        found = []
        for url in orphans:
            found.append(SEOIssue(url, "linking", "orphan_page", "warning",
                                  "No internal page links here", auto_fixable=True))
        for link in self.find_broken_links(pages):
            found.append(SEOIssue(link.source_url, "linking", "broken_link", "critical",
                                  f"Internal link to {link.target_url} does not resolve"))
        for page in pages:
            count = len(page.internal_outgoing())
            if count < self.config.min_outgoing_links:
                found.append(SEOIssue(
                    page.url, "linking", "insufficient_outgoing_links", "warning",
                    f"{count} internal outgoing links, minimum {self.config.min_outgoing_links}",
                    auto_fixable=True,
                ))
            elif count > self.config.max_outgoing_links:
                found.append(SEOIssue(
                    page.url, "linking", "excessive_outgoing_links", "info",
                    f"{count} internal outgoing links, maximum {self.config.max_outgoing_links}",
                ))
        for url in cycles:
            found.append(SEOIssue(url, "linking", "circular_reference", "critical",
                                  "Page is part of a circular link chain"))
        if repair:
            for url, reason in repair.deficiencies.items():
                found.append(SEOIssue(url, "linking", "link_repair_deficiency", "info", reason))
        return found
