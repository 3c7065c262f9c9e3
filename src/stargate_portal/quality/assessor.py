"""Heuristic quality assessment of generated websites.

Six categories are scored from 0 to 10 by deducting points for failed
checks. Every failed check produces a coded :class:`QualityIssue` so the
pipeline can route it back to the phase that is able to fix it.
"""

import logging
import re
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..core.types import (
    IndustryProfile,
    QualityAssessment,
    QualityCategory,
    QualityIssue,
    QualityScores,
    Severity,
    Verdict,
)
from ..design.style_system import contrast_ratio, is_hex_color
from .analyzer import PageFacts, StyleFacts, parse_page, parse_styles

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERNS = ("lorem ipsum", "[your", "placeholder text", "tbd", "coming soon", "insert text")

CATEGORY_SUGGESTIONS = {
    QualityCategory.VISUAL_DESIGN: "Strengthen contrast, add responsive rules and use the full brand palette.",
    QualityCategory.UX_STRUCTURE: "Add clear navigation, a single H1 and at least four well-ordered sections.",
    QualityCategory.CONTENT_QUALITY: "Write unique, specific section copy and remove duplicate headings.",
    QualityCategory.CONVERSION_TRUST: "Add prominent calls to action, contact details, testimonials and trust signals.",
    QualityCategory.SEO_FOUNDATIONS: "Add a descriptive title, meta description, structured data and image alt text.",
    QualityCategory.CREATIVITY: "Introduce distinctive typography, gradients and motion that fit the brand.",
}

_SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.HIGH: 1, Severity.MEDIUM: 2, Severity.LOW: 3}

Check = Tuple[float, List[QualityIssue]]


def _issue(
    category: QualityCategory,
    severity: Severity,
    code: str,
    description: str,
    suggestion: str,
    location: Optional[str] = None,
) -> QualityIssue:
    return QualityIssue(
        category=category,
        severity=severity,
        code=code,
        description=description,
        suggestion=suggestion,
        location=location,
    )


def _clamp(score: float) -> float:
    return round(max(0.0, min(10.0, score)), 1)


def _mentions(text: str, phrase: str) -> bool:
    return re.search(rf"\b{re.escape(phrase.lower())}\b", text) is not None


def determine_verdict(scores: QualityScores, threshold: float = 7.5, world_class: float = 8.5) -> Verdict:
    """Overall verdict from the six category scores."""
    average = scores.average
    if average < 4:
        return Verdict.POOR
    if average < 6:
        return Verdict.OK
    if average < threshold or not scores.all_at_least(threshold):
        return Verdict.GOOD
    if average >= world_class and scores.all_at_least(world_class):
        return Verdict.WORLD_CLASS
    return Verdict.EXCELLENT


class QualityAssessor:
    """Scores a site and lists the issues that held each score back."""

    def __init__(self, threshold: float = 7.5, world_class_threshold: float = 8.5):
        self.threshold = threshold
        self.world_class_threshold = world_class_threshold

    # -- category checks -------------------------------------------------

    def _visual_design(self, page: PageFacts, styles: StyleFacts) -> Check:
        category = QualityCategory.VISUAL_DESIGN
        score, issues = 10.0, []

        if not styles.present:
            score -= 6
            issues.append(_issue(
                category, Severity.CRITICAL, "missing_css", "CSS file is missing",
                "Generate a stylesheet for the page", "styles.css",
            ))
            return score, issues

        text = styles.variable("--color-text")
        background = styles.variable("--color-background")
        primary = styles.variable("--color-primary")

        if not (text and background):
            score -= 1
            issues.append(_issue(
                category, Severity.LOW, "no_design_tokens", "No color design tokens defined",
                "Define --color-text and --color-background custom properties", ":root",
            ))
        elif is_hex_color(text) and is_hex_color(background):
            ratio = contrast_ratio(text, background)
            if ratio < 4.5:
                score -= 4 if ratio < 3 else 3
                issues.append(_issue(
                    category, Severity.HIGH, "low_contrast",
                    f"Body text contrast is {ratio:.1f}:1 (WCAG AA requires 4.5:1)",
                    "Use a text color that contrasts strongly with the background", ":root --color-text",
                ))
            if primary and is_hex_color(primary) and contrast_ratio(primary, background) < 3:
                score -= 1.5
                issues.append(_issue(
                    category, Severity.MEDIUM, "low_primary_contrast",
                    f"Primary color contrast is {contrast_ratio(primary, background):.1f}:1 against the background",
                    "Darken or lighten the primary color so links and accents stand out", ":root --color-primary",
                ))

        if not styles.has_media_queries:
            score -= 1.5
            issues.append(_issue(
                category, Severity.MEDIUM, "no_responsive_rules", "No responsive media queries found",
                "Add @media rules for tablet and mobile widths", "styles.css",
            ))
        if not styles.declares_fonts:
            score -= 1
            issues.append(_issue(
                category, Severity.LOW, "no_typography", "No font families declared",
                "Declare heading and body font stacks", "styles.css",
            ))
        if not page.images and "background-image" not in styles.css:
            score -= 1
            issues.append(_issue(
                category, Severity.LOW, "no_images", "The page has no imagery",
                "Add hero and section images",
            ))
        return score, issues

    def _ux_structure(self, page: PageFacts) -> Check:
        category = QualityCategory.UX_STRUCTURE
        score, issues = 10.0, []

        if not page.has_nav:
            score -= 2
            issues.append(_issue(
                category, Severity.HIGH, "missing_navigation", "No navigation bar found",
                "Add a navigation bar linking to the main sections", "<nav>",
            ))

        h1_count = len(page.headings_at(1))
        if h1_count == 0:
            score -= 2
            issues.append(_issue(
                category, Severity.HIGH, "missing_h1", "Page has no H1 heading",
                "Give the hero a single H1 headline", "hero",
            ))
        elif h1_count > 1:
            score -= 1
            issues.append(_issue(
                category, Severity.MEDIUM, "multiple_h1", f"Page has {h1_count} H1 headings",
                "Keep exactly one H1 and use H2 for sections",
            ))

        content_sections = [s for s in page.sections if s["tag"] == "section"]
        if len(content_sections) < 4:
            score -= 2
            issues.append(_issue(
                category, Severity.HIGH, "too_few_sections",
                f"Only {len(content_sections)} content sections",
                "Plan at least four sections (services, about, testimonials, contact)",
            ))

        if not page.has_footer:
            score -= 1.5
            issues.append(_issue(
                category, Severity.MEDIUM, "missing_footer", "No footer found",
                "Add a footer with contact details", "<footer>",
            ))

        if "viewport" not in page.meta:
            score -= 1.5
            issues.append(_issue(
                category, Severity.MEDIUM, "missing_viewport", "No viewport meta tag",
                "Add <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\">", "<head>",
            ))

        broken = sorted({
            link["href"][1:] for link in page.links
            if link["href"].startswith("#") and len(link["href"]) > 1 and link["href"][1:] not in page.ids
        })
        if broken:
            score -= min(3, len(broken))
            issues.append(_issue(
                category, Severity.MEDIUM, "broken_anchor",
                f"Navigation links point to missing sections: {', '.join(broken)}",
                "Make every in-page link target an existing section id", "<nav>",
            ))

        seen_h2 = False
        for level, _ in page.headings:
            if level == 2:
                seen_h2 = True
            elif level == 3 and not seen_h2:
                score -= 0.5
                issues.append(_issue(
                    category, Severity.LOW, "heading_hierarchy", "H3 heading appears before any H2",
                    "Keep the heading levels in order",
                ))
                break

        return score, issues

    def _content_quality(self, page: PageFacts, industry: Optional[IndustryProfile]) -> Check:
        category = QualityCategory.CONTENT_QUALITY
        score, issues = 10.0, []
        text = page.text.lower()

        counts = Counter(h.lower() for h in page.headings_at(2) if h)
        duplicates = sorted(h for h, n in counts.items() if n > 1)
        if duplicates:
            score -= 6
            issues.append(_issue(
                category, Severity.CRITICAL, "duplicate_headings", "Duplicate section headings detected",
                "Give every section a unique heading", ", ".join(duplicates),
            ))

        words = page.word_count
        if words < 150:
            score -= 4
            issues.append(_issue(
                category, Severity.HIGH, "thin_content", f"Only {words} words of copy",
                "Expand the about, services and testimonial copy",
            ))
        elif words < 300:
            score -= 2
            issues.append(_issue(
                category, Severity.MEDIUM, "thin_content", f"Only {words} words of copy",
                "Expand the about and services copy",
            ))

        found = [p for p in PLACEHOLDER_PATTERNS if p in text]
        if found:
            score -= 3
            issues.append(_issue(
                category, Severity.HIGH, "placeholder_text", f"Placeholder text found: {', '.join(found)}",
                "Replace placeholder copy with real content",
            ))

        if industry is not None:
            avoided = [w for w in industry.copy_guidelines.avoid_words if _mentions(text, w)]
            if avoided:
                score -= min(2.0, 0.5 * len(avoided))
                issues.append(_issue(
                    category, Severity.MEDIUM, "avoid_words",
                    f"Copy uses words that weaken the brand: {', '.join(avoided)}",
                    "Rephrase using the industry's power words",
                ))
            if industry.copy_guidelines.power_words and not any(
                _mentions(text, w) for w in industry.copy_guidelines.power_words
            ):
                score -= 1
                issues.append(_issue(
                    category, Severity.LOW, "no_power_words", "Copy uses none of the industry's power words",
                    f"Work in words such as {', '.join(industry.copy_guidelines.power_words[:3])}",
                ))

        return score, issues

    def _conversion_trust(self, page: PageFacts) -> Check:
        category = QualityCategory.CONVERSION_TRUST
        score, issues = 10.0, []

        ctas = len(page.cta_links) + page.buttons
        if ctas < 2:
            score -= 5 if ctas == 0 else 3
            issues.append(_issue(
                category, Severity.HIGH, "few_ctas", f"Only {ctas} call-to-action buttons",
                "Add primary and secondary calls to action in the hero and CTA sections",
            ))

        if not any(link["href"].startswith(("tel:", "mailto:")) for link in page.links):
            score -= 2
            issues.append(_issue(
                category, Severity.HIGH, "missing_contact_info", "No phone or email link",
                "Add clickable phone and email links", "footer",
            ))

        if not page.section_named("testimonial"):
            score -= 1.5
            issues.append(_issue(
                category, Severity.MEDIUM, "missing_testimonials", "No testimonials section",
                "Add customer testimonials",
            ))

        if not page.section_named("contact", "cta"):
            score -= 1.5
            issues.append(_issue(
                category, Severity.MEDIUM, "missing_contact_section", "No contact or call-to-action section",
                "Add a contact section near the end of the page",
            ))

        if not page.section_named("stats") and not re.search(r"\d+\s*(\+|%|years|clients)", page.text.lower()):
            score -= 1
            issues.append(_issue(
                category, Severity.LOW, "missing_trust_signals", "No trust signals (numbers, results, credentials)",
                "Add a stats bar or concrete results",
            ))

        return score, issues

    def _seo_foundations(self, page: PageFacts) -> Check:
        category = QualityCategory.SEO_FOUNDATIONS
        score, issues = 10.0, []

        if not page.title:
            score -= 3
            issues.append(_issue(
                category, Severity.CRITICAL, "missing_title", "Missing page title",
                "Add a <title> with the business name and tagline", "<head>",
            ))
        elif not 15 <= len(page.title) <= 70:
            score -= 1
            issues.append(_issue(
                category, Severity.MEDIUM, "title_length", f"Title is {len(page.title)} characters",
                "Keep the title between 15 and 70 characters", "<title>",
            ))

        description = page.meta.get("description", "")
        if not description:
            score -= 3
            issues.append(_issue(
                category, Severity.CRITICAL, "missing_meta_description", "Missing meta description",
                "Add a 50-160 character meta description", "<head>",
            ))
        elif not 50 <= len(description) <= 160:
            score -= 1
            issues.append(_issue(
                category, Severity.MEDIUM, "meta_description_length",
                f"Meta description is {len(description)} characters",
                "Keep the meta description between 50 and 160 characters", "<meta name=\"description\">",
            ))

        if not page.headings_at(1):
            score -= 2
            issues.append(_issue(
                category, Severity.CRITICAL, "missing_h1", "Missing H1 heading",
                "Add a single keyword-rich H1", "hero",
            ))

        if not page.json_ld:
            score -= 1.5
            issues.append(_issue(
                category, Severity.HIGH, "missing_structured_data", "No JSON-LD structured data",
                "Add LocalBusiness structured data", "<head>",
            ))

        if not page.lang:
            score -= 0.5
            issues.append(_issue(
                category, Severity.LOW, "missing_lang", "The html element has no lang attribute",
                "Set <html lang=\"en\">",
            ))

        if page.images:
            missing_alt = [img for img in page.images if not img["alt"].strip()]
            if missing_alt:
                share = len(missing_alt) / len(page.images)
                score -= round(2 * share, 1)
                issues.append(_issue(
                    category, Severity.HIGH if share > 0.5 else Severity.MEDIUM, "missing_alt_text",
                    f"{len(missing_alt)} of {len(page.images)} images have no alt text",
                    "Describe every image in its alt attribute",
                ))

        if "og:title" not in page.meta:
            score -= 0.5
            issues.append(_issue(
                category, Severity.LOW, "missing_open_graph", "No Open Graph tags",
                "Add og:title, og:description and og:image", "<head>",
            ))

        return score, issues

    def _creativity(self, page: PageFacts, styles: StyleFacts, industry: Optional[IndustryProfile]) -> Check:
        category = QualityCategory.CREATIVITY
        score, issues = 6.0, []

        if len(styles.colors) >= 4:
            score += 1
        else:
            issues.append(_issue(
                category, Severity.LOW, "flat_palette", f"Only {len(styles.colors)} distinct colors in use",
                "Use secondary and accent colors for depth", "styles.css",
            ))

        if any("fonts.googleapis.com" in href for href in page.stylesheets) or "@import" in styles.css:
            score += 1
        else:
            issues.append(_issue(
                category, Severity.LOW, "default_fonts", "Only system fonts are loaded",
                "Load the brand's web fonts", "<head>",
            ))

        if styles.has_gradients:
            score += 0.75
        if styles.has_motion:
            score += 0.75
        if not styles.has_gradients and not styles.has_motion:
            issues.append(_issue(
                category, Severity.LOW, "no_motion", "No gradients, transitions or animation",
                "Add hover transitions and a hero gradient overlay", "styles.css",
            ))

        if any(img["src"] for img in page.images) or "background-image" in styles.css:
            score += 0.5

        if industry is not None:
            text = page.text.lower()
            used = [w for w in industry.copy_guidelines.power_words if _mentions(text, w)]
            if len(used) >= 2:
                score += 0.5
            else:
                issues.append(_issue(
                    category, Severity.LOW, "few_power_words", "Copy rarely uses distinctive brand vocabulary",
                    f"Use words like {', '.join(industry.copy_guidelines.power_words[:3])}",
                ))
        else:
            score += 0.5

        return score, issues

    # -- public API ----------------------------------------------------------

    def _category_issues(self, scores: QualityScores) -> List[QualityIssue]:
        issues = []
        for category in QualityCategory:
            score = getattr(scores, category.value)
            if score < self.threshold:
                issues.append(_issue(
                    category,
                    Severity.CRITICAL if score < 4 else Severity.HIGH,
                    f"low_{category.value}",
                    f"{category.label} score is {score:.1f}/10 (below {self.threshold} threshold)",
                    CATEGORY_SUGGESTIONS[category],
                ))
        return issues

    def _build(self, scores: QualityScores, issues: List[QualityIssue], iteration: int, **metadata) -> QualityAssessment:
        issues = sorted(issues, key=lambda issue: _SEVERITY_ORDER[issue.severity])
        return QualityAssessment(
            scores=scores,
            average_score=round(scores.average, 2),
            verdict=determine_verdict(scores, self.threshold, self.world_class_threshold),
            issues=issues,
            meets_thresholds=scores.all_at_least(self.threshold),
            iteration=iteration,
            metadata=metadata,
        )

    def assess(
        self,
        html: str,
        css: str = "",
        industry: Optional[IndustryProfile] = None,
        iteration: int = 1,
    ) -> QualityAssessment:
        """Score a page given its HTML and external CSS."""
        page = parse_page(html)
        styles = parse_styles("\n".join(part for part in (css, page.inline_css) if part))

        checks: Dict[QualityCategory, Check] = {
            QualityCategory.VISUAL_DESIGN: self._visual_design(page, styles),
            QualityCategory.UX_STRUCTURE: self._ux_structure(page),
            QualityCategory.CONTENT_QUALITY: self._content_quality(page, industry),
            QualityCategory.CONVERSION_TRUST: self._conversion_trust(page),
            QualityCategory.SEO_FOUNDATIONS: self._seo_foundations(page),
            QualityCategory.CREATIVITY: self._creativity(page, styles, industry),
        }

        scores = QualityScores(**{category.value: _clamp(score) for category, (score, _) in checks.items()})
        issues = [issue for _, found in checks.values() for issue in found]
        issues.extend(self._category_issues(scores))

        assessment = self._build(scores, issues, iteration, word_count=page.word_count, method="heuristic")
        logger.info(
            f"Quality iteration {iteration}: average {assessment.average_score:.2f} "
            f"({assessment.verdict.value}), {len(assessment.issues)} issues"
        )
        return assessment

    def basic_assessment(self, html: str, css: str = "", iteration: int = 1) -> QualityAssessment:
        """Coarse fallback used when the detailed analysis cannot run."""
        h2s = [h.strip().lower() for h in re.findall(r"<h2[^>]*>(.*?)</h2>", html, re.IGNORECASE | re.DOTALL)]
        has_duplicates = len(h2s) != len(set(h2s))

        scores = QualityScores(
            visual_design=5.0,
            ux_structure=5.0,
            content_quality=2.0 if has_duplicates else 6.0,
            conversion_trust=4.0,
            seo_foundations=4.0,
            creativity=5.0,
        )
        issues = []
        if not css.strip() and "<style" not in html:
            issues.append(_issue(
                QualityCategory.VISUAL_DESIGN, Severity.CRITICAL, "missing_css", "CSS file is missing",
                "Generate a stylesheet for the page", "styles.css",
            ))
        if has_duplicates:
            issues.append(_issue(
                QualityCategory.CONTENT_QUALITY, Severity.CRITICAL, "duplicate_headings",
                "Duplicate section headings detected", "Give every section a unique heading",
            ))
        issues.extend(self._category_issues(scores))

        assessment = self._build(scores, issues, iteration, method="basic")
        # The coarse scores are never trusted as passing
        assessment.meets_thresholds = False
        return assessment

    def assess_files(
        self,
        output_dir: Path,
        industry: Optional[IndustryProfile] = None,
        iteration: int = 1,
    ) -> QualityAssessment:
        """Assess a generated site from its files on disk.

        Raises:
            FileNotFoundError: If ``index.html`` does not exist.
        """
        output_dir = Path(output_dir)
        html_path = output_dir / "index.html"
        css_path = output_dir / "styles.css"
        if not html_path.exists():
            raise FileNotFoundError(f"No index.html in {output_dir}")

        html = html_path.read_text(encoding="utf-8")
        css = css_path.read_text(encoding="utf-8") if css_path.exists() else ""

        try:
            assessment = self.assess(html, css, industry, iteration)
        except Exception as e:
            logger.warning(f"Detailed analysis failed, using basic assessment: {e}")
            assessment = self.basic_assessment(html, css, iteration)

        if not css_path.exists() and not any(issue.code == "missing_css" for issue in assessment.issues):
            assessment.issues.insert(0, _issue(
                QualityCategory.VISUAL_DESIGN, Severity.CRITICAL, "missing_css", "CSS file is missing",
                "Write styles.css next to index.html", "styles.css",
            ))
        return assessment
