"""Structural facts extracted from generated HTML and CSS."""

import json
import re
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Dict, List, Optional, Set, Tuple

_HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
_SKIP_TEXT_TAGS = {"script", "style", "noscript"}
_CSS_VARIABLE = re.compile(r"(--[\w-]+)\s*:\s*([^;}{]+)")
_HEX = re.compile(r"#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")


@dataclass
class PageFacts:
    """Everything the quality checks need to know about a page."""
    lang: Optional[str] = None
    title: str = ""
    meta: Dict[str, str] = field(default_factory=dict)
    json_ld: List[dict] = field(default_factory=list)
    headings: List[Tuple[int, str]] = field(default_factory=list)
    images: List[Dict[str, str]] = field(default_factory=list)
    links: List[Dict[str, str]] = field(default_factory=list)
    buttons: int = 0
    forms: int = 0
    ids: Set[str] = field(default_factory=set)
    sections: List[Dict[str, str]] = field(default_factory=list)
    has_nav: bool = False
    has_footer: bool = False
    stylesheets: List[str] = field(default_factory=list)
    inline_css: str = ""
    text: str = ""

    @property
    def word_count(self) -> int:
        return len(re.findall(r"[A-Za-z0-9'-]+", self.text))

    def headings_at(self, level: int) -> List[str]:
        return [text for lvl, text in self.headings if lvl == level]

    def section_named(self, *names: str) -> bool:
        for section in self.sections:
            marker = f"{section.get('id', '')} {section.get('class', '')}".lower()
            if any(name in marker for name in names):
                return True
        return False

    @property
    def cta_links(self) -> List[Dict[str, str]]:
        return [link for link in self.links if "btn" in link.get("class", "") or "cta" in link.get("class", "")]


class _PageParser(HTMLParser):
    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.facts = PageFacts()
        self._stack: List[str] = []
        self._heading: Optional[Tuple[int, List[str]]] = None
        self._in_title = False
        self._script_type: Optional[str] = None
        self._script_buffer: List[str] = []
        self._text: List[str] = []

    def handle_starttag(self, tag, attrs):
        attributes = {name: (value or "") for name, value in attrs}
        facts = self.facts

        if "id" in attributes:
            facts.ids.add(attributes["id"])

        if tag == "html":
            facts.lang = attributes.get("lang") or None
        elif tag == "title":
            self._in_title = True
        elif tag == "meta":
            key = attributes.get("name") or attributes.get("property")
            if key:
                facts.meta[key.lower()] = attributes.get("content", "")
        elif tag == "link" and "stylesheet" in attributes.get("rel", ""):
            facts.stylesheets.append(attributes.get("href", ""))
        elif tag in _HEADING_TAGS:
            self._heading = (int(tag[1]), [])
        elif tag == "img":
            facts.images.append({"src": attributes.get("src", ""), "alt": attributes.get("alt", "")})
        elif tag == "a":
            facts.links.append({"href": attributes.get("href", ""), "class": attributes.get("class", "")})
        elif tag == "button":
            facts.buttons += 1
        elif tag == "form":
            facts.forms += 1
        elif tag == "nav":
            facts.has_nav = True
        elif tag == "footer":
            facts.has_footer = True
            facts.sections.append({"tag": tag, "id": attributes.get("id", ""), "class": attributes.get("class", "")})
        elif tag == "section":
            facts.sections.append({"tag": tag, "id": attributes.get("id", ""), "class": attributes.get("class", "")})
        elif tag == "script":
            self._script_type = attributes.get("type", "text/javascript")
            self._script_buffer = []

        if tag not in ("meta", "link", "img", "br", "hr", "input"):
            self._stack.append(tag)

    def handle_endtag(self, tag):
        if tag == "title":
            self._in_title = False
        elif tag in _HEADING_TAGS and self._heading is not None:
            level, parts = self._heading
            self.facts.headings.append((level, " ".join("".join(parts).split())))
            self._heading = None
        elif tag == "script":
            if self._script_type == "application/ld+json":
                try:
                    self.facts.json_ld.append(json.loads("".join(self._script_buffer)))
                except ValueError:
                    pass
            self._script_type = None

        if tag in self._stack:
            while self._stack:
                if self._stack.pop() == tag:
                    break

    def handle_data(self, data):
        current = self._stack[-1] if self._stack else ""
        if current == "script":
            self._script_buffer.append(data)
            return
        if current == "style":
            self.facts.inline_css += data
            return
        if current in _SKIP_TEXT_TAGS:
            return
        if self._in_title:
            self.facts.title += data
            return
        if self._heading is not None:
            self._heading[1].append(data)
        self._text.append(data)

    def close(self):
        super().close()
        self.facts.title = " ".join(self.facts.title.split())
        self.facts.text = " ".join(" ".join(self._text).split())


def parse_page(html: str) -> PageFacts:
    """Parse generated HTML into :class:`PageFacts`."""
    parser = _PageParser()
    parser.feed(html)
    parser.close()
    return parser.facts


@dataclass
class StyleFacts:
    """Facts about the combined stylesheet of a page."""
    css: str
    variables: Dict[str, str] = field(default_factory=dict)
    colors: Set[str] = field(default_factory=set)

    @property
    def present(self) -> bool:
        return bool(self.css.strip())

    @property
    def has_media_queries(self) -> bool:
        return "@media" in self.css

    @property
    def declares_fonts(self) -> bool:
        return "font-family" in self.css

    @property
    def has_gradients(self) -> bool:
        return "gradient(" in self.css

    @property
    def has_motion(self) -> bool:
        return any(token in self.css for token in ("transition", "@keyframes", "animation", "transform"))

    def variable(self, name: str) -> Optional[str]:
        value = self.variables.get(name)
        return value.strip() if value else None


def parse_styles(css: str) -> StyleFacts:
    facts = StyleFacts(css=css or "")
    for name, value in _CSS_VARIABLE.findall(facts.css):
        facts.variables.setdefault(name, value.strip())
    facts.colors = {color.upper() for color in _HEX.findall(facts.css)}
    return facts
