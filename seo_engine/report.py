"""Scoring and the aggregated audit report."""

from dataclasses import asdict, dataclass, field
from datetime import datetime

from .models import CATEGORIES, BulkUpdateResult, Page, SEOIssue

SEVERITY_PENALTY = {"critical": 20, "warning": 10, "info": 5}

# severities that count against a page passing a category
FAILING_SEVERITIES = ("critical", "warning")


def score_page(issues: list[SEOIssue]) -> int:
    """100 minus a fixed penalty per issue, never below zero."""
    score = 100 - sum(SEVERITY_PENALTY.get(issue.severity, 0) for issue in issues)
    return max(0, score)


@dataclass
class CategorySummary:
    passed: int = 0
    failed: int = 0
    total_issues: int = 0
    issues: list[SEOIssue] = field(default_factory=list)    # first N only


@dataclass
class AuditReport:
    operation_id: str
    generated_at: datetime
    total_pages: int
    successful_pages: int
    failed_pages: int
    overall_score: int
    categories: dict[str, CategorySummary]
    critical_issues: int = 0
    warning_issues: int = 0
    info_issues: int = 0
    circular_references: list[str] = field(default_factory=list)
    orphan_pages: list[str] = field(default_factory=list)
    duplicate_content: list[list[str]] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    rollback_available: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["generated_at"] = self.generated_at.isoformat()
        return data


def build_report(
    pages: list[Page],
    issues: list[SEOIssue],
    result: BulkUpdateResult,
    circular_references: list[str] = None,
    orphan_pages: list[str] = None,
    duplicate_content: dict[str, list[str]] = None,
    issue_limit: int = 10,
) -> AuditReport:
    by_category: dict[str, list[SEOIssue]] = {category: [] for category in CATEGORIES}
    for issue in issues:
        by_category.setdefault(issue.category, []).append(issue)

    categories = {}
    for category, category_issues in by_category.items():
        failing = {i.page_url for i in category_issues if i.severity in FAILING_SEVERITIES}
        categories[category] = CategorySummary(
            passed=sum(1 for page in pages if page.url not in failing),
            failed=len(failing),
            total_issues=len(category_issues),
            issues=category_issues[:issue_limit],
        )

    scores = [page.seo_score for page in pages if page.seo_score is not None]
    overall = round(sum(scores) / len(scores)) if scores else 0

    return AuditReport(
        operation_id=result.operation_id,
        generated_at=datetime.now(),
        total_pages=len(pages),
        successful_pages=len(result.successful_pages),
        failed_pages=len(result.failed_pages),
        overall_score=overall,
        categories=categories,
        critical_issues=sum(1 for i in issues if i.severity == "critical"),
        warning_issues=sum(1 for i in issues if i.severity == "warning"),
        info_issues=sum(1 for i in issues if i.severity == "info"),
        circular_references=list(circular_references or []),
        orphan_pages=list(orphan_pages or []),
        duplicate_content=[urls for urls in (duplicate_content or {}).values()],
        errors=dict(result.errors),
        rollback_available=result.rollback_available,
    )


def render_text(report: AuditReport) -> str:
    lines = [
        f"SEO audit {report.operation_id}",
        f"Generated: {report.generated_at:%Y-%m-%d %H:%M:%S}",
        f"Pages: {report.total_pages} "
        f"({report.successful_pages} ok, {report.failed_pages} failed)",
        f"Overall score: {report.overall_score}/100",
        f"Issues: {report.critical_issues} critical, "
        f"{report.warning_issues} warning, {report.info_issues} info",
        "",
    ]

    for category, summary in report.categories.items():
        lines.append(
            f"[{category}] passed {summary.passed}, failed {summary.failed}, "
            f"{summary.total_issues} issue(s)"
        )
        for issue in summary.issues:
            lines.append(f"  - {issue.severity.upper()} {issue.page_url}: {issue.description}")
        hidden = summary.total_issues - len(summary.issues)
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")

    if report.circular_references:
        lines += ["", "Circular references:"]
        lines += [f"  - {url}" for url in report.circular_references]
    if report.duplicate_content:
        lines += ["", "Duplicate content groups:"]
        lines += [f"  - {', '.join(urls)}" for urls in report.duplicate_content]
    if report.errors:
        lines += ["", "Failed pages:"]
        lines += [f"  - {url}: {message}" for url, message in report.errors.items()]

    lines.append("")
    lines.append(f"Rollback available: {'yes' if report.rollback_available else 'no'}")
    return "\n".join(lines)
