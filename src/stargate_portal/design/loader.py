"""Loading and keyword matching for the packaged design data files."""

import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable

import yaml

DATA_DIRECTORY = Path(__file__).parent / "data"


@lru_cache(maxsize=None)
def load_data_file(name: str) -> Dict[str, Any]:
    """Load one of the YAML files shipped in ``design/data``."""
    path = DATA_DIRECTORY / name
    if not path.exists():
        raise FileNotFoundError(f"Design data file not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def keyword_score(keywords: Iterable[str], text: str) -> int:
    """Score ``text`` against keywords using whole-word matching.

    Each matching keyword adds its word count, so "law firm" outweighs
    "law". Word boundaries keep "tech" from matching "technology".
    """
    text = text.lower()
    score = 0
    for keyword in keywords:
        keyword = keyword.lower()
        if re.search(rf"\b{re.escape(keyword)}\b", text):
            score += len(keyword.split())
    return score
