"""
Quick smoke run: python demo_audit.py
Audits a small in-memory corpus of service pages and prints the text report.
"""

import logging

from seo_engine import BatchOrchestrator, EngineConfig, load_pages_from_records, render_text

BASE = "https://a1furniturepolish.com"

SOFA_COPY = (
    "<h1>Sofa Polishing in Andheri</h1>"
    "<p>Our team offers sofa polishing in Andheri for teak, sheesham and rosewood frames. "
    "We clean, sand and refinish every piece at your home.</p>"
    "<h2>Why choose us</h2><p>Ten years of furniture polish work across Mumbai.</p>"
)

RECORDS = [
    {"url": f"{BASE}/", "title": "A1 Furniture Polish", "content": "<h1>Furniture polishing in Mumbai</h1>",
     "outgoing_links": [{"target_url": f"{BASE}/andheri/sofa-polishing", "anchor_text": "Sofa polishing"}]},
    {"url": f"{BASE}/andheri/sofa-polishing", "title": "Sofa Polishing Andheri", "content": SOFA_COPY,
     "outgoing_links": [{"target_url": f"{BASE}/bandra/sofa-polishing"}]},
    {"url": f"{BASE}/bandra/sofa-polishing", "title": "Sofa Polishing Bandra", "content": SOFA_COPY},
    {"url": f"{BASE}/andheri/table-polishing", "title": "Table Polishing Andheri",
     "content": "<h1>Table polishing</h1><p>Dining table polish in Andheri.</p>"},
    {"url": f"{BASE}/blog/caring-for-teak", "title": "Caring for Teak",
     "outgoing_links": [{"target_url": f"{BASE}/old-teak-guide"}]},
]


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    config = EngineConfig.from_env()
    config.links.min_outgoing_links = 1
    orchestrator = BatchOrchestrator(config)

    audit = orchestrator.run(lambda: load_pages_from_records(RECORDS))
    print(render_text(audit.report))
    print("-" * 80)
    print(audit.sitemap_xml)

    # the demo corpus is throwaway; undo the repairs
    if audit.result.rollback_available:
        orchestrator.rollback()


if __name__ == "__main__":
    main()
