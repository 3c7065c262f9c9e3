"""Third-party integration snippets injected into generated sites.

Each integration is a small table entry: where the snippet goes (head or
body), which config keys it needs (with aliases) and a jinja2 template.
Config values are restricted to identifier-like strings before rendering
so a config can never break out of the surrounding script.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from jinja2 import Environment, StrictUndefined

logger = logging.getLogger(__name__)

_SAFE_VALUE = re.compile(r"^[A-Za-z0-9_.:/@-]{1,200}$")

_env = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=False)


@dataclass(frozen=True)
class IntegrationDefinition:
    id: str
    name: str
    category: str
    placement: str  # "head" or "body"
    template: str
    required: Tuple[Tuple[str, ...], ...] = ()
    optional: Dict[str, str] = field(default_factory=dict)


def _define(id, name, category, placement, template, required=(), optional=None) -> IntegrationDefinition:
    return IntegrationDefinition(
        id=id,
        name=name,
        category=category,
        placement=placement,
        template=template.strip(),
        required=tuple(tuple(keys) for keys in required),
        optional=optional or {},
    )


INTEGRATIONS: Dict[str, IntegrationDefinition] = {d.id: d for d in [
    _define(
        "google-analytics", "Google Analytics 4", "analytics", "head",
        """
<!-- Google Analytics (GA4) -->
<script async src="https://www.googletagmanager.com/gtag/js?id={{ measurementId }}"></script>
<script>
  window.dataLayer = window.dataLayer || [];
  function gtag(){dataLayer.push(arguments);}
  gtag('js', new Date());
  gtag('config', '{{ measurementId }}');
</script>
""",
        required=[("measurementId", "trackingId")],
    ),
    _define(
        "plausible", "Plausible Analytics", "analytics", "head",
        """
<!-- Plausible Analytics -->
<script defer data-domain="{{ domain }}" src="https://plausible.io/js/script.js"></script>
""",
        required=[("domain",)],
    ),
    _define(
        "fathom", "Fathom Analytics", "analytics", "head",
        """
<!-- Fathom Analytics -->
<script src="https://cdn.usefathom.com/script.js" data-site="{{ siteId }}" defer></script>
""",
        required=[("siteId",)],
    ),
    _define(
        "hotjar", "Hotjar", "analytics", "head",
        """
<!-- Hotjar -->
<script>
  (function(h,o,t,j,a,r){
    h.hj=h.hj||function(){(h.hj.q=h.hj.q||[]).push(arguments)};
    h._hjSettings={hjid:{{ siteId }},hjsv:6};
    a=o.getElementsByTagName('head')[0];
    r=o.createElement('script');r.async=1;
    r.src=t+h._hjSettings.hjid+j+h._hjSettings.hjsv;
    a.appendChild(r);
  })(window,document,'https://static.hotjar.com/c/hotjar-','.js?sv=');
</script>
""",
        required=[("siteId",)],
    ),
    _define(
        "posthog", "PostHog", "analytics", "head",
        """
<!-- PostHog -->
<script src="{{ host }}/static/array.js" async></script>
<script>
  window.posthog = window.posthog || [];
  window.addEventListener('load', function () {
    if (window.posthog.init) { window.posthog.init('{{ apiKey }}', {api_host: '{{ host }}'}); }
  });
</script>
""",
        required=[("apiKey",)],
        optional={"host": "https://app.posthog.com"},
    ),
    _define(
        "mixpanel", "Mixpanel", "analytics", "head",
        """
<!-- Mixpanel -->
<script src="https://cdn.mxpnl.com/libs/mixpanel-2-latest.min.js"></script>
<script>mixpanel.init('{{ token }}');</script>
""",
        required=[("projectToken", "token")],
    ),
    _define(
        "facebook-pixel", "Meta Pixel", "marketing", "head",
        """
<!-- Facebook Pixel -->
<script>
  !function(f,b,e,v,n,t,s)
  {if(f.fbq)return;n=f.fbq=function(){n.callMethod?
  n.callMethod.apply(n,arguments):n.queue.push(arguments)};
  if(!f._fbq)f._fbq=n;n.push=n;n.loaded=!0;n.version='2.0';
  n.queue=[];t=b.createElement(e);t.async=!0;
  t.src=v;s=b.getElementsByTagName(e)[0];
  s.parentNode.insertBefore(t,s)}(window, document,'script',
  'https://connect.facebook.net/en_US/fbevents.js');
  fbq('init', '{{ pixelId }}');
  fbq('track', 'PageView');
</script>
<noscript><img height="1" width="1" style="display:none" alt=""
  src="https://www.facebook.com/tr?id={{ pixelId }}&ev=PageView&noscript=1"/></noscript>
""",
        required=[("pixelId",)],
    ),
    _define(
        "cloudflare", "Cloudflare Web Analytics", "analytics", "head",
        """
<!-- Cloudflare Web Analytics -->
<script defer src='https://static.cloudflareinsights.com/beacon.min.js' data-cf-beacon='{"token": "{{ token }}"}'></script>
""",
        required=[("token",)],
    ),
    _define(
        "klaviyo", "Klaviyo", "email", "body",
        """
<!-- Klaviyo -->
<script async type="text/javascript" src="https://static.klaviyo.com/onsite/js/klaviyo.js?company_id={{ publicApiKey }}"></script>
""",
        required=[("publicApiKey",)],
    ),
    _define(
        "intercom", "Intercom", "support", "body",
        """
<!-- Intercom -->
<script>
  window.intercomSettings = {app_id: '{{ appId }}'};
</script>
<script async src="https://widget.intercom.io/widget/{{ appId }}"></script>
""",
        required=[("appId",)],
    ),
    _define(
        "zendesk", "Zendesk", "support", "body",
        """
<!-- Zendesk -->
<script id="ze-snippet" src="https://static.zdassets.com/ekr/snippet.js?key={{ accountId }}"></script>
""",
        required=[("accountId",)],
    ),
    _define(
        "crisp", "Crisp", "support", "body",
        """
<!-- Crisp -->
<script type="text/javascript">
  window.$crisp=[];window.CRISP_WEBSITE_ID="{{ websiteId }}";
  (function(){var d=document;var s=d.createElement("script");s.src="https://client.crisp.chat/l.js";s.async=1;d.getElementsByTagName("head")[0].appendChild(s);})();
</script>
""",
        required=[("websiteId",)],
    ),
    _define(
        "calendly", "Calendly", "forms", "body",
        """
<!-- Calendly -->
<div class="calendly-inline-widget" data-url="https://calendly.com/{{ username }}" style="min-width:320px;height:630px;"></div>
<script type="text/javascript" src="https://assets.calendly.com/assets/external/widget.js" async></script>
""",
        required=[("username",)],
    ),
    _define(
        "typeform", "Typeform", "forms", "body",
        """
<!-- Typeform -->
<div data-tf-live="{{ formId }}"></div>
<script src="https://embed.typeform.com/next/embed.js"></script>
""",
        required=[("formId",)],
    ),
    _define(
        "jotform", "JotForm", "forms", "body",
        """
<!-- JotForm -->
<script type="text/javascript" src="https://form.jotform.com/jsform/{{ formId }}"></script>
""",
        required=[("formId",)],
    ),
    _define(
        "tiktok", "TikTok Pixel", "marketing", "head",
        """
<!-- TikTok Pixel -->
<script src="https://analytics.tiktok.com/i18n/pixel/events.js?sdkid={{ pixelId }}&lib=ttq" async></script>
""",
        required=[("pixelId",)],
    ),
]}


def list_integrations(category: Optional[str] = None) -> List[Dict[str, Any]]:
    """Describe the available integrations, optionally for one category."""
    result = []
    for definition in INTEGRATIONS.values():
        if category and definition.category != category:
            continue
        result.append({
            "id": definition.id,
            "name": definition.name,
            "category": definition.category,
            "placement": definition.placement,
            "required": [list(keys) for keys in definition.required],
        })
    return result


def _resolve_config(definition: IntegrationDefinition, config: Dict[str, Any]) -> Optional[Dict[str, str]]:
    values: Dict[str, str] = {}
    for keys in definition.required:
        value = next((config.get(key) for key in keys if config.get(key)), None)
        if value is None:
            return None
        # Every alias renders under the primary key name and the last alias
        for key in {keys[0], keys[-1]}:
            values[key] = str(value)
    for key, default in definition.optional.items():
        values[key] = str(config.get(key) or default)

    for key, value in values.items():
        if not _SAFE_VALUE.match(value):
            logger.warning(f"Rejected unsafe value for {definition.id}.{key}")
            return None
    return values


def generate_script_for_integration(integration: Dict[str, Any]) -> Dict[str, str]:
    """Render the snippet for one configured integration.

    Args:
        integration: ``{"id": ..., "config": {...}}``.

    Returns:
        ``{"head": ...}`` or ``{"body": ...}``; an empty dict when the
        integration is unknown or required config is missing.
    """
    definition = INTEGRATIONS.get(integration.get("id") or "")
    if definition is None:
        return {}

    values = _resolve_config(definition, integration.get("config") or {})
    if values is None:
        return {}

    return {definition.placement: _env.from_string(definition.template).render(**values)}


def collect_scripts(integrations: Iterable[Dict[str, Any]]) -> Dict[str, str]:
    """Combine the snippets of several integrations by placement."""
    head: List[str] = []
    body: List[str] = []
    for integration in integrations:
        script = generate_script_for_integration(integration)
        if "head" in script:
            head.append(script["head"])
        if "body" in script:
            body.append(script["body"])

    combined = {}
    if head:
        combined["head"] = "\n".join(head)
    if body:
        combined["body"] = "\n".join(body)
    return combined


def inject_scripts(html: str, scripts: Dict[str, str]) -> str:
    """Insert snippets right before ``</head>`` and ``</body>``."""
    if scripts.get("head"):
        html = re.sub(r"</head>", lambda _: f"{scripts['head']}\n</head>", html, count=1, flags=re.IGNORECASE)
    if scripts.get("body"):
        html = re.sub(r"</body>", lambda _: f"{scripts['body']}\n</body>", html, count=1, flags=re.IGNORECASE)
    return html
