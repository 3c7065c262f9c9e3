"""Industry DNA: detection, lookup and CSS variables."""

import hashlib
from functools import lru_cache
from typing import Dict, List, Optional

from ..core.types import IndustryProfile
from .loader import keyword_score, load_data_file

DEFAULT_INDUSTRY_ID = "business"

BORDER_RADIUS = {
    "none": "0",
    "small": "4px",
    "medium": "8px",
    "large": "16px",
}

SHADOWS = {
    "none": "none",
    "subtle": "0 2px 8px rgba(0,0,0,0.1)",
    "medium": "0 4px 16px rgba(0,0,0,0.15)",
    "dramatic": "0 8px 32px rgba(0,0,0,0.25)",
}


@lru_cache(maxsize=None)
def _profiles() -> Dict[str, IndustryProfile]:
    data = load_data_file("industries.yaml")
    return {entry["id"]: IndustryProfile(**entry) for entry in data["industries"]}


def default_tagline() -> str:
    return load_data_file("industries.yaml").get("default_tagline", "Excellence in Everything We Do")


def all_industries() -> List[IndustryProfile]:
    """All profiles in detection order."""
    return list(_profiles().values())


def get_industry(industry_id: Optional[str]) -> IndustryProfile:
    """Look up a profile, falling back to general business."""
    profiles = _profiles()
    return profiles.get(industry_id or "", profiles[DEFAULT_INDUSTRY_ID])


def has_industry(industry_id: str) -> bool:
    return industry_id in _profiles()


def list_industries() -> List[Dict[str, str]]:
    """Industries for selection UIs."""
    return [{"id": profile.id, "name": profile.name} for profile in all_industries()]


def score_industries(business_name: str, description: str) -> Dict[str, int]:
    """Keyword score of every industry for a business."""
    search_text = f"{business_name} {description}"
    return {profile.id: keyword_score(profile.keywords, search_text) for profile in all_industries()}


def detect_industry(business_name: str, description: str) -> IndustryProfile:
    """Detect the industry of a business from its name and description.

    The highest score wins; ties go to the profile listed first. With no
    keyword match at all the general business profile is returned.
    """
    best_id, best_score = None, 0
    for industry_id, score in score_industries(business_name, description).items():
        if score > best_score:
            best_id, best_score = industry_id, score
    return get_industry(best_id)


def resolve_industry(business_name: str, description: str, industry_id: Optional[str] = None) -> IndustryProfile:
    """Use the requested industry when known, otherwise detect it."""
    if industry_id and has_industry(industry_id):
        return get_industry(industry_id)
    return detect_industry(business_name, description)


def pick_tagline(profile: IndustryProfile, seed: str = "") -> str:
    """Pick one of the industry taglines, stable for a given seed."""
    if not profile.taglines:
        return default_tagline()
    digest = hashlib.sha256(seed.encode("utf-8")).hexdigest()
    return profile.taglines[int(digest, 16) % len(profile.taglines)]


def generate_css_variables(profile: IndustryProfile) -> str:
    """Render the industry design as a ``:root`` CSS variable block."""
    design = profile.design
    return "\n".join([
        ":root {",
        f"  --color-primary: {design.primary_color};",
        f"  --color-secondary: {design.secondary_color};",
        f"  --color-accent: {design.accent_color};",
        f"  --color-background: {design.background_color};",
        f"  --color-text: {design.text_color};",
        f"  --font-heading: {design.fonts.heading};",
        f"  --font-body: {design.fonts.body};",
        f"  --border-radius: {BORDER_RADIUS.get(design.border_radius, '16px')};",
        f"  --shadow: {SHADOWS.get(design.shadows, SHADOWS['dramatic'])};",
        "}",
    ])
