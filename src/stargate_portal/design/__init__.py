"""Design knowledge for StargatePortal.

Industry DNA profiles, page blueprints and style systems are packaged YAML
lookup tables, all selected by keyword matching against the industry.
"""

from .industries import (
    detect_industry,
    get_industry,
    resolve_industry,
    list_industries,
    all_industries,
    pick_tagline,
    default_tagline,
    generate_css_variables,
    score_industries,
)
from .blueprints import (
    Blueprint,
    SUPPORTED_SECTIONS,
    select_blueprint,
    get_blueprint,
    list_blueprints,
    normalize_layout,
    insert_section,
)
from .style_system import (
    Palette,
    Typography,
    select_palette,
    select_typography,
    list_palettes,
    build_style_system,
    contrast_ratio,
    readable_text_color,
    ensure_contrast,
)

__all__ = [
    "detect_industry",
    "get_industry",
    "resolve_industry",
    "list_industries",
    "all_industries",
    "pick_tagline",
    "default_tagline",
    "generate_css_variables",
    "score_industries",
    "Blueprint",
    "SUPPORTED_SECTIONS",
    "select_blueprint",
    "get_blueprint",
    "list_blueprints",
    "normalize_layout",
    "insert_section",
    "Palette",
    "Typography",
    "select_palette",
    "select_typography",
    "list_palettes",
    "build_style_system",
    "contrast_ratio",
    "readable_text_color",
    "ensure_contrast",
]
