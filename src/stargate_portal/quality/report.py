"""Markdown quality reports."""

from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..core.types import QualityAssessment, QualityCategory


def _status(score: float, threshold: float) -> str:
    return "PASS" if score >= threshold else "FAIL"


def generate_quality_report(
    assessment: QualityAssessment,
    threshold: float = 7.5,
    history: Optional[List[QualityAssessment]] = None,
    business_name: Optional[str] = None,
) -> str:
    """Render an assessment (and optionally the iteration history) as Markdown."""
    lines = ["# Quality Assessment Report", ""]
    if business_name:
        lines.append(f"**Website:** {business_name}  ")
    lines += [
        f"**Generated:** {datetime.now().isoformat(timespec='seconds')}",
        "",
        "## Overall Score",
        "",
        f"**Average:** {assessment.average_score:.1f}/10  ",
        f"**Verdict:** {assessment.verdict.value}  ",
        f"**Meets Thresholds:** {'Yes' if assessment.meets_thresholds else 'No'}  ",
        f"**Iteration:** {assessment.iteration}",
        "",
        "## Category Scores",
        "",
        "| Category | Score | Status |",
        "|----------|-------|--------|",
    ]
    for category in QualityCategory:
        score = getattr(assessment.scores, category.value)
        lines.append(f"| {category.label} | {score:.1f}/10 | {_status(score, threshold)} |")

    lines += ["", "## Issues Found", ""]
    if not assessment.issues:
        lines.append("No issues found!")
    for issue in assessment.issues:
        lines += [
            f"### {issue.category.label} - {issue.severity.value.upper()}",
            "",
            f"**Description:** {issue.description}  ",
        ]
        if issue.location:
            lines.append(f"**Location:** {issue.location}  ")
        lines += [f"**Suggestion:** {issue.suggestion}", ""]

    if history and len(history) > 1:
        lines += ["", "## Iterations", "", "| Iteration | Average | Verdict | Issues |", "|---|---|---|---|"]
        for past in history:
            lines.append(
                f"| {past.iteration} | {past.average_score:.2f} | {past.verdict.value} | {len(past.issues)} |"
            )

    lines += ["", "## Recommendations", ""]
    if assessment.meets_thresholds:
        lines.append("All quality thresholds met. Website is production-ready.")
    else:
        lines.append("Quality thresholds not met. Review the issues above and apply fixes.")

    lines += ["", "---", "*Generated by the Merlin quality assessment*", ""]
    return "\n".join(lines)


def write_quality_report(path: Path, assessment: QualityAssessment, **kwargs) -> Path:
    path = Path(path)
    path.write_text(generate_quality_report(assessment, **kwargs), encoding="utf-8")
    return path
