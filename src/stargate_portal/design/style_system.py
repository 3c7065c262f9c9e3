"""Style systems: palette and typography lookup plus color helpers."""

import re
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.types import IndustryProfile, StyleSystem
from .blueprints import industry_search_text
from .loader import keyword_score, load_data_file

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


class Palette(BaseModel):
    id: str
    name: str
    keywords: List[str] = Field(default_factory=list)
    color_scheme: str = "light"
    primary: str
    secondary: str
    accent: str
    background: str
    text: str


class Typography(BaseModel):
    id: str
    name: str
    keywords: List[str] = Field(default_factory=list)
    heading: str
    body: str


@lru_cache(maxsize=None)
def _palettes() -> Dict[str, Palette]:
    return {p["id"]: Palette(**p) for p in load_data_file("style_systems.yaml")["palettes"]}


@lru_cache(maxsize=None)
def _typography() -> Dict[str, Typography]:
    return {t["id"]: Typography(**t) for t in load_data_file("style_systems.yaml")["typography"]}


def list_palettes() -> List[Palette]:
    return list(_palettes().values())


def list_typography() -> List[Typography]:
    return list(_typography().values())


def get_palette(palette_id: str) -> Palette:
    return _palettes()[palette_id]


def _best_match(candidates, text: str, default_id: str, lookup):
    best, best_score = lookup[default_id], 0
    for candidate in candidates:
        score = keyword_score(candidate.keywords, text)
        if score > best_score:
            best, best_score = candidate, score
    return best


def select_palette(profile: IndustryProfile, exclude: Optional[List[str]] = None) -> Palette:
    """Best keyword-matching palette for an industry."""
    data = load_data_file("style_systems.yaml")
    exclude = exclude or []
    candidates = [p for p in list_palettes() if p.id not in exclude]
    default_id = data.get("default_palette", "slate-professional")
    if default_id in exclude and candidates:
        default_id = candidates[0].id
    return _best_match(candidates, industry_search_text(profile), default_id, _palettes())


def select_typography(profile: IndustryProfile) -> Typography:
    data = load_data_file("style_systems.yaml")
    return _best_match(
        list_typography(),
        industry_search_text(profile),
        data.get("default_typography", "modern-sans"),
        _typography(),
    )


def is_hex_color(value: str) -> bool:
    return bool(HEX_COLOR.match(value or ""))


def _channels(color: str) -> List[float]:
    color = color.lstrip("#")
    if len(color) == 3:
        color = "".join(ch * 2 for ch in color)
    return [int(color[i:i + 2], 16) / 255 for i in (0, 2, 4)]


def relative_luminance(color: str) -> float:
    """WCAG 2.x relative luminance of a hex color."""
    linear = [c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4 for c in _channels(color)]
    return 0.2126 * linear[0] + 0.7152 * linear[1] + 0.0722 * linear[2]


def contrast_ratio(first: str, second: str) -> float:
    """WCAG contrast ratio between two hex colors (1.0 to 21.0)."""
    lighter, darker = sorted((relative_luminance(first), relative_luminance(second)), reverse=True)
    return (lighter + 0.05) / (darker + 0.05)


def readable_text_color(background: str) -> str:
    """Near-black or white, whichever reads better on ``background``."""
    dark, light = "#111111", "#FFFFFF"
    return dark if contrast_ratio(dark, background) >= contrast_ratio(light, background) else light


def adjust_color(color: str, factor: float) -> str:
    """Lighten (factor > 0) or darken (factor < 0) a hex color."""
    channels = _channels(color)
    if factor >= 0:
        adjusted = [c + (1 - c) * factor for c in channels]
    else:
        adjusted = [c * (1 + factor) for c in channels]
    return "#" + "".join(f"{round(max(0.0, min(1.0, c)) * 255):02X}" for c in adjusted)


def ensure_contrast(color: str, background: str, minimum: float) -> str:
    """Shift ``color`` toward black or white until it meets ``minimum`` contrast."""
    if contrast_ratio(color, background) >= minimum:
        return color
    direction = -1 if relative_luminance(background) > 0.5 else 1
    candidate = color
    for step in range(1, 11):
        candidate = adjust_color(color, direction * step / 10)
        if contrast_ratio(candidate, background) >= minimum:
            return candidate
    return candidate


def build_style_system(
    profile: IndustryProfile,
    palette: Optional[Palette] = None,
    typography: Optional[Typography] = None,
) -> StyleSystem:
    """Resolve a style system from the industry design, optionally overridden."""
    design = profile.design
    style = StyleSystem(
        palette_id="industry",
        color_scheme=design.color_scheme,
        primary=design.primary_color,
        secondary=design.secondary_color,
        accent=design.accent_color,
        background=design.background_color,
        text=design.text_color,
        heading_font=design.fonts.heading,
        body_font=design.fonts.body,
        accent_font=design.fonts.accent,
        border_radius=design.border_radius,
        shadows=design.shadows,
        hero_style=design.hero_style,
    )
    updates = {}
    if palette is not None:
        updates.update(
            palette_id=palette.id,
            color_scheme=palette.color_scheme,
            primary=palette.primary,
            secondary=palette.secondary,
            accent=palette.accent,
            background=palette.background,
            text=palette.text,
        )
    if typography is not None:
        updates.update(heading_font=typography.heading, body_font=typography.body)
    return style.model_copy(update=updates) if updates else style


def font_families(style: StyleSystem) -> List[str]:
    """First family of each font stack, for the Google Fonts link."""
    families = []
    for stack in (style.heading_font, style.body_font, style.accent_font):
        if not stack:
            continue
        family = stack.split(",")[0].strip().strip("'\"")
        if family and family not in families:
            families.append(family)
    return families
