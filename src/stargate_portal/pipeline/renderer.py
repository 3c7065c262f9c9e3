"""HTML and CSS rendering for generated sites."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from jinja2 import DictLoader, Environment, select_autoescape

from ..core.types import (
    BusinessBrief,
    GeneratedImage,
    GeneratedSite,
    LayoutPlan,
    SectionContent,
    SiteContent,
    StyleSystem,
)
from ..design.industries import BORDER_RADIUS, SHADOWS
from ..design.style_system import adjust_color, font_families, readable_text_color
from ..integrations.scripts import inject_scripts

logger = logging.getLogger(__name__)


PAGE_TEMPLATE = """<!DOCTYPE html>
<html lang="{{ lang }}">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{ title }}</title>
  <meta name="description" content="{{ content.meta_description }}">
{% if content.keywords %}
  <meta name="keywords" content="{{ content.keywords | join(', ') }}">
{% endif %}
  <meta property="og:title" content="{{ title }}">
  <meta property="og:description" content="{{ content.meta_description }}">
  <meta property="og:type" content="website">
{% if hero_image %}
  <meta property="og:image" content="{{ hero_image.url }}">
{% endif %}
{% if fonts_url %}
  <link rel="preconnect" href="https://fonts.googleapis.com">
  <link rel="stylesheet" href="{{ fonts_url }}">
{% endif %}
  <link rel="stylesheet" href="styles.css">
  <script type="application/ld+json">{{ structured_data | tojson }}</script>
</head>
<body class="industry-{{ industry_id }}">
  <header class="site-header">
    <nav class="nav container" aria-label="Main navigation">
      <a class="nav-logo" href="#hero">{{ content.business_name }}</a>
      <ul class="nav-links">
{% for section in nav_sections %}
        <li><a href="#{{ section.kind }}">{{ section.label }}</a></li>
{% endfor %}
      </ul>
      <a class="btn btn-primary nav-cta" href="#{{ cta_target }}">{{ content.cta_primary }}</a>
    </nav>
  </header>
  <main>
{% for section in sections %}
{% include "sections/" ~ section.kind ~ ".html" %}
{% endfor %}
  </main>
{% include "sections/footer.html" %}
  <script>
    document.querySelectorAll('a[href^="#"]').forEach(function (link) {
      link.addEventListener('click', function (event) {
        var target = document.querySelector(link.getAttribute('href'));
        if (target) { event.preventDefault(); target.scrollIntoView({behavior: 'smooth'}); }
      });
    });
  </script>
</body>
</html>
"""

SECTION_TEMPLATES = {
    "hero": """
    <section id="hero" class="hero hero--{{ hero_style }}">
{% if hero_image %}
      <img class="hero-image" src="{{ hero_image.url }}" alt="{{ hero_image.alt }}">
{% endif %}
      <div class="hero-overlay"></div>
      <div class="hero-content container">
        <h1>{{ content.tagline }}</h1>
        <p class="hero-lead">{{ section.content.body or content.description }}</p>
        <div class="hero-actions">
          <a class="btn btn-primary" href="#{{ cta_target }}">{{ content.cta_primary }}</a>
          <a class="btn btn-secondary" href="#{{ secondary_target }}">{{ content.cta_secondary }}</a>
        </div>
      </div>
    </section>
""",
    "stats": """
    <section id="stats" class="section section-stats">
      <div class="container">
        <h2>{{ section.heading }}</h2>
        <div class="stats-grid">
{% for item in section.content.items %}
          <div class="stat">
            <span class="stat-value">{{ item.value }}</span>
            <span class="stat-label">{{ item.label }}</span>
          </div>
{% endfor %}
        </div>
      </div>
    </section>
""",
    "services": """
    <section id="services" class="section section-services">
      <div class="container">
        <h2>{{ section.heading }}</h2>
{% if section.content.subheading %}
        <p class="section-lead">{{ section.content.subheading }}</p>
{% endif %}
{% if services_image %}
        <img class="section-image" src="{{ services_image.url }}" alt="{{ services_image.alt }}">
{% endif %}
        <div class="card-grid">
{% for item in section.content.items %}
          <article class="card">
            <h3>{{ item.name }}</h3>
            <p>{{ item.description }}</p>
          </article>
{% endfor %}
        </div>
      </div>
    </section>
""",
    "about": """
    <section id="about" class="section section-about">
      <div class="container split">
        <div>
          <h2>{{ section.heading }}</h2>
{% for paragraph in section.content.body.split("\\n\\n") if paragraph.strip() %}
          <p>{{ paragraph.strip() }}</p>
{% endfor %}
        </div>
{% if about_image %}
        <img class="section-image" src="{{ about_image.url }}" alt="{{ about_image.alt }}">
{% endif %}
      </div>
    </section>
""",
    "team": """
    <section id="team" class="section section-team">
      <div class="container">
        <h2>{{ section.heading }}</h2>
{% if team_image %}
        <img class="section-image" src="{{ team_image.url }}" alt="{{ team_image.alt }}">
{% endif %}
        <div class="card-grid">
{% for item in section.content.items %}
          <article class="card team-card">
            <h3>{{ item.name }}</h3>
{% if item.role %}
            <p class="team-role">{{ item.role }}</p>
{% endif %}
            <p>{{ item.description }}</p>
          </article>
{% endfor %}
        </div>
      </div>
    </section>
""",
    "gallery": """
    <section id="gallery" class="section section-gallery">
      <div class="container">
        <h2>{{ section.heading }}</h2>
        <div class="gallery-grid">
{% for item in section.content.items %}
          <figure class="gallery-item">
{% if item.image %}
            <img src="{{ item.image }}" alt="{{ item.caption }}">
{% endif %}
            <figcaption>{{ item.caption }}</figcaption>
          </figure>
{% endfor %}
        </div>
      </div>
    </section>
""",
    "process": """
    <section id="process" class="section section-process">
      <div class="container">
        <h2>{{ section.heading }}</h2>
        <ol class="process-steps">
{% for item in section.content.items %}
          <li class="process-step">
            <h3>{{ item.name }}</h3>
            <p>{{ item.description }}</p>
          </li>
{% endfor %}
        </ol>
      </div>
    </section>
""",
    "pricing": """
    <section id="pricing" class="section section-pricing">
      <div class="container">
        <h2>{{ section.heading }}</h2>
        <div class="card-grid">
{% for item in section.content.items %}
          <article class="card pricing-card">
            <h3>{{ item.name }}</h3>
{% if item.price %}
            <p class="price">{{ item.price }}</p>
{% endif %}
            <p>{{ item.description }}</p>
            <a class="btn btn-secondary" href="#{{ cta_target }}">{{ section.content.cta_text or content.cta_primary }}</a>
          </article>
{% endfor %}
        </div>
      </div>
    </section>
""",
    "testimonials": """
    <section id="testimonials" class="section section-testimonials">
      <div class="container">
        <h2>{{ section.heading }}</h2>
        <div class="card-grid">
{% for item in section.content.items %}
          <blockquote class="testimonial">
            <p>&ldquo;{{ item.quote }}&rdquo;</p>
            <cite>{{ item.author }}{% if item.role %}, {{ item.role }}{% endif %}</cite>
          </blockquote>
{% endfor %}
        </div>
      </div>
    </section>
""",
    "faq": """
    <section id="faq" class="section section-faq">
      <div class="container">
        <h2>{{ section.heading }}</h2>
{% for item in section.content.items %}
        <details class="faq-item">
          <summary>{{ item.question }}</summary>
          <p>{{ item.answer }}</p>
        </details>
{% endfor %}
      </div>
    </section>
""",
    "cta": """
    <section id="cta" class="section section-cta">
      <div class="container cta-box">
        <h2>{{ section.heading }}</h2>
        <p>{{ section.content.body }}</p>
        <a class="btn btn-accent" href="#{{ 'contact' if has_contact else 'footer' }}">{{ section.content.cta_text or content.cta_primary }}</a>
      </div>
    </section>
""",
    "contact": """
    <section id="contact" class="section section-contact">
      <div class="container split">
        <div>
          <h2>{{ section.heading }}</h2>
          <p>{{ section.content.body }}</p>
          <ul class="contact-details">
{% if brief.phone %}
            <li><a href="tel:{{ brief.phone | replace(' ', '') }}">{{ brief.phone }}</a></li>
{% endif %}
{% if brief.email %}
            <li><a href="mailto:{{ brief.email }}">{{ brief.email }}</a></li>
{% endif %}
{% if brief.location %}
            <li>{{ brief.location }}</li>
{% endif %}
          </ul>
        </div>
        <form class="contact-form" action="#" method="post">
          <label>Name <input type="text" name="name" required></label>
          <label>Email <input type="email" name="email" required></label>
          <label>Message <textarea name="message" rows="4"></textarea></label>
          <button class="btn btn-primary" type="submit">{{ section.content.cta_text or content.cta_primary }}</button>
        </form>
      </div>
    </section>
""",
    "footer": """
  <footer id="footer" class="site-footer">
    <div class="container footer-grid">
      <div>
        <p class="footer-brand">{{ content.business_name }}</p>
        <p>{{ content.tagline }}</p>
      </div>
      <ul class="footer-contact">
{% if brief.phone %}
        <li><a href="tel:{{ brief.phone | replace(' ', '') }}">{{ brief.phone }}</a></li>
{% endif %}
{% if brief.email %}
        <li><a href="mailto:{{ brief.email }}">{{ brief.email }}</a></li>
{% endif %}
{% if brief.location %}
        <li>{{ brief.location }}</li>
{% endif %}
      </ul>
      <p class="footer-copy">&copy; {{ year }} {{ content.business_name }}. All rights reserved.</p>
    </div>
  </footer>
""",
}

STYLESHEET_TEMPLATE = """:root {
  --color-primary: {{ style.primary }};
  --color-primary-dark: {{ primary_dark }};
  --color-secondary: {{ style.secondary }};
  --color-accent: {{ style.accent }};
  --color-background: {{ style.background }};
  --color-text: {{ style.text }};
  --color-on-primary: {{ on_primary }};
  --color-surface: {{ surface }};
  --font-heading: {{ style.heading_font }};
  --font-body: {{ style.body_font }};
  --border-radius: {{ radius }};
  --shadow: {{ shadow }};
  --transition: all 0.3s ease;
}

*, *::before, *::after { box-sizing: border-box; }

html { scroll-behavior: smooth; }

body {
  margin: 0;
  font-family: var(--font-body);
  color: var(--color-text);
  background: var(--color-background);
  line-height: 1.6;
}

h1, h2, h3 { font-family: var(--font-heading); line-height: 1.2; }
h2 { font-size: clamp(1.8rem, 3vw, 2.6rem); margin-bottom: 1.5rem; }
img { max-width: 100%; display: block; border-radius: var(--border-radius); }

.container { width: min(1140px, 92%); margin: 0 auto; }
.section { padding: 5rem 0; }
.section:nth-of-type(even) { background: var(--color-surface); }
.section-lead { font-size: 1.15rem; max-width: 60ch; }
.split { display: grid; grid-template-columns: 1fr 1fr; gap: 3rem; align-items: center; }

.site-header {
  position: sticky;
  top: 0;
  z-index: 10;
  background: var(--color-background);
  box-shadow: var(--shadow);
}
.nav { display: flex; align-items: center; justify-content: space-between; padding: 1rem 0; gap: 1.5rem; }
.nav-logo { font-family: var(--font-heading); font-weight: 700; font-size: 1.3rem; color: var(--color-primary); text-decoration: none; }
.nav-links { display: flex; gap: 1.25rem; list-style: none; margin: 0; padding: 0; }
.nav-links a { color: var(--color-text); text-decoration: none; transition: var(--transition); }
.nav-links a:hover { color: var(--color-primary); }

.btn {
  display: inline-block;
  padding: 0.85rem 1.8rem;
  border-radius: var(--border-radius);
  font-weight: 600;
  text-decoration: none;
  border: 2px solid transparent;
  cursor: pointer;
  transition: var(--transition);
}
.btn:hover { transform: translateY(-2px); box-shadow: var(--shadow); }
.btn-primary { background: var(--color-primary); color: var(--color-on-primary); }
.btn-primary:hover { background: var(--color-primary-dark); }
.btn-secondary { background: transparent; color: var(--color-primary); border-color: var(--color-primary); }
.btn-accent { background: var(--color-accent); color: {{ on_accent }}; }

.hero { position: relative; min-height: {{ '90vh' if style.hero_style == 'full-bleed' else '70vh' }}; display: flex; align-items: center; overflow: hidden; }
.hero-image { position: absolute; inset: 0; width: 100%; height: 100%; object-fit: cover; border-radius: 0; }
.hero-overlay {
  position: absolute;
  inset: 0;
  background: linear-gradient(135deg, {{ style.secondary }}E6 0%, {{ style.primary }}99 100%);
}
.hero-content { position: relative; color: #FFFFFF; padding: 6rem 0; animation: fade-up 0.8s ease-out both; }
.hero-content h1 { font-size: clamp(2.4rem, 6vw, 4.5rem); margin: 0 0 1rem; }
.hero-lead { font-size: 1.25rem; max-width: 55ch; }
.hero-actions { display: flex; gap: 1rem; flex-wrap: wrap; margin-top: 2rem; }
.hero .btn-secondary { color: #FFFFFF; border-color: #FFFFFF; }

.card-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(260px, 1fr)); gap: 2rem; }
.card {
  background: var(--color-background);
  padding: 2rem;
  border-radius: var(--border-radius);
  box-shadow: var(--shadow);
  border-top: 4px solid var(--color-accent);
  transition: var(--transition);
}
.card:hover { transform: translateY(-6px); }
.team-role { color: var(--color-primary); font-weight: 600; }
.section-image { margin-bottom: 2rem; }

.stats-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr)); gap: 2rem; text-align: center; }
.stat-value { display: block; font-family: var(--font-heading); font-size: 3rem; font-weight: 700; color: var(--color-primary); }
.stat-label { text-transform: uppercase; letter-spacing: 0.08em; font-size: 0.85rem; }

.gallery-grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(240px, 1fr)); gap: 1.5rem; }
.gallery-item { margin: 0; overflow: hidden; border-radius: var(--border-radius); }
.gallery-item img { transition: transform 0.5s ease; }
.gallery-item:hover img { transform: scale(1.05); }

.process-steps { counter-reset: step; list-style: none; padding: 0; display: grid; gap: 1.5rem; }
.process-step { padding-left: 3.5rem; position: relative; }
.process-step::before {
  counter-increment: step;
  content: counter(step);
  position: absolute;
  left: 0;
  top: 0;
  width: 2.5rem;
  height: 2.5rem;
  border-radius: 50%;
  display: grid;
  place-items: center;
  background: var(--color-primary);
  color: var(--color-on-primary);
}

.price { font-size: 1.6rem; font-weight: 700; color: var(--color-primary); }

.testimonial { margin: 0; padding: 2rem; background: var(--color-background); border-left: 4px solid var(--color-primary); border-radius: var(--border-radius); box-shadow: var(--shadow); }
.testimonial cite { display: block; margin-top: 1rem; font-style: normal; font-weight: 600; }

.faq-item { border-bottom: 1px solid {{ border }}; padding: 1rem 0; }
.faq-item summary { cursor: pointer; font-weight: 600; }

.section-cta { background: linear-gradient(120deg, {{ style.primary }} 0%, {{ style.secondary }} 100%); color: #FFFFFF; text-align: center; }
.cta-box p { max-width: 60ch; margin: 0 auto 2rem; }

.contact-details { list-style: none; padding: 0; }
.contact-details a { color: var(--color-primary); }
.contact-form { display: grid; gap: 1rem; }
.contact-form input, .contact-form textarea { width: 100%; padding: 0.75rem; border: 1px solid {{ border }}; border-radius: var(--border-radius); font: inherit; }

.site-footer { background: {{ style.secondary }}; color: {{ on_secondary }}; padding: 3rem 0; }
.site-footer a { color: inherit; }
.footer-grid { display: grid; grid-template-columns: 2fr 1fr; gap: 2rem; }
.footer-contact { list-style: none; padding: 0; }
.footer-brand { font-family: var(--font-heading); font-size: 1.4rem; font-weight: 700; }
.footer-copy { grid-column: 1 / -1; opacity: 0.8; font-size: 0.9rem; }

@keyframes fade-up {
  from { opacity: 0; transform: translateY(24px); }
  to { opacity: 1; transform: translateY(0); }
}

@media (max-width: 960px) {
  .split { grid-template-columns: 1fr; }
  .nav-links { display: none; }
}

@media (max-width: 600px) {
  .section { padding: 3.5rem 0; }
  .hero-actions { flex-direction: column; }
  .footer-grid { grid-template-columns: 1fr; }
}

@media (prefers-reduced-motion: reduce) {
  * { animation: none !important; transition: none !important; }
}
{% if extra_css %}

/* Custom */
{{ extra_css }}
{% endif %}
"""


class SiteRenderer:
    """Renders a generation context into ``index.html`` and ``styles.css``."""

    def __init__(self, lang: str = "en"):
        templates = {"page.html": PAGE_TEMPLATE, "styles.css": STYLESHEET_TEMPLATE}
        templates.update({f"sections/{kind}.html": source for kind, source in SECTION_TEMPLATES.items()})
        self.env = Environment(
            loader=DictLoader(templates),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.lang = lang

    @staticmethod
    def fonts_url(style: StyleSystem) -> Optional[str]:
        families = [f for f in font_families(style) if f.lower() not in ("serif", "sans-serif", "cursive", "monospace")]
        if not families:
            return None
        query = "&".join(f"family={f.replace(' ', '+')}:wght@400;600;700" for f in families)
        return f"https://fonts.googleapis.com/css2?{query}&display=swap"

    @staticmethod
    def structured_data(brief: BusinessBrief, content: SiteContent, image: Optional[GeneratedImage]) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "@context": "https://schema.org",
            "@type": "LocalBusiness",
            "name": content.business_name,
            "description": content.meta_description or content.description,
            "slogan": content.tagline,
        }
        if brief.phone:
            data["telephone"] = brief.phone
        if brief.email:
            data["email"] = brief.email
        if brief.location:
            data["address"] = {"@type": "PostalAddress", "addressLocality": brief.location}
        if image is not None:
            data["image"] = image.url
        if content.services:
            data["makesOffer"] = [
                {"@type": "Offer", "itemOffered": {"@type": "Service", "name": service.name}}
                for service in content.services
            ]
        return data

    def render_css(self, style: StyleSystem, extra_css: str = "") -> str:
        """Render the stylesheet for a style system."""
        template = self.env.get_template("styles.css")
        return template.render(
            style=style,
            radius=BORDER_RADIUS.get(style.border_radius, BORDER_RADIUS["medium"]),
            shadow=SHADOWS.get(style.shadows, SHADOWS["subtle"]),
            primary_dark=adjust_color(style.primary, -0.2),
            surface=adjust_color(style.background, -0.04 if style.color_scheme != "dark" else 0.06),
            border=adjust_color(style.background, -0.15 if style.color_scheme != "dark" else 0.2),
            on_primary=readable_text_color(style.primary),
            on_accent=readable_text_color(style.accent),
            on_secondary=readable_text_color(style.secondary),
            extra_css=extra_css.strip(),
        )

    def render_html(
        self,
        brief: BusinessBrief,
        layout: LayoutPlan,
        style: StyleSystem,
        content: SiteContent,
        images: List[GeneratedImage],
        industry_id: str = "business",
        scripts: Optional[Dict[str, str]] = None,
        year: Optional[int] = None,
    ) -> str:
        """Render the page markup for a planned layout."""
        image_map = {image.section: image for image in images}
        kinds = layout.kinds()
        contact_target = next((k for k in ("contact", "cta") if k in kinds), "footer")
        secondary_target = next((k for k in ("services", "about") if k in kinds), contact_target)

        sections = []
        for plan in layout.sections:
            if plan.kind == "footer":
                continue
            section_content = content.section(plan.kind)
            sections.append({
                "kind": plan.kind,
                "heading": (section_content.heading if section_content and section_content.heading else plan.heading),
                "content": section_content or SectionContent(kind=plan.kind, heading=plan.heading),
            })

        nav_sections = [
            {"kind": s["kind"], "label": _nav_label(s["kind"], s["heading"])}
            for s in sections if s["kind"] != "hero"
        ]

        title = content.seo_title or f"{content.business_name} | {content.tagline}"
        hero_image = image_map.get("hero")

        html = self.env.get_template("page.html").render(
            lang=self.lang,
            title=title,
            brief=brief,
            content=content,
            sections=sections,
            nav_sections=nav_sections,
            hero_style=style.hero_style,
            hero_image=hero_image,
            services_image=image_map.get("services"),
            about_image=image_map.get("about"),
            team_image=image_map.get("team"),
            fonts_url=self.fonts_url(style),
            structured_data=self.structured_data(brief, content, hero_image),
            cta_target=contact_target,
            secondary_target=secondary_target,
            has_contact="contact" in kinds,
            industry_id=industry_id,
            year=year or datetime.now().year,
        )
        if scripts:
            html = inject_scripts(html, scripts)
        return html

    def render(
        self,
        brief: BusinessBrief,
        layout: LayoutPlan,
        style: StyleSystem,
        content: SiteContent,
        images: List[GeneratedImage],
        industry_id: str = "business",
        scripts: Optional[Dict[str, str]] = None,
        extra_css: str = "",
    ) -> GeneratedSite:
        html = self.render_html(brief, layout, style, content, images, industry_id, scripts)
        css = self.render_css(style, extra_css)
        logger.debug(f"Rendered site for {content.business_name}: {len(html)} bytes HTML, {len(css)} bytes CSS")
        return GeneratedSite(html=html, css=css)


NAV_LABELS = {
    "stats": "Results",
    "services": "Services",
    "about": "About",
    "team": "Team",
    "gallery": "Gallery",
    "process": "Process",
    "pricing": "Pricing",
    "testimonials": "Reviews",
    "faq": "FAQ",
    "cta": "Get Started",
    "contact": "Contact",
}


def _nav_label(kind: str, heading: str) -> str:
    return NAV_LABELS.get(kind) or heading or kind.title()


