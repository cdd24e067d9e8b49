"""HTML rendering for the EyeCare Insights pages.

Pages are plain strings assembled from small helpers; every value that comes
from the user or the model goes through :func:`html.escape`.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence
from urllib.parse import urlencode

from agent.core import AGE_GROUPS
from agent.extractors import MythRecord, ResearchRecord
from cli.config import mask_api_key

NAV_LINKS = (
    ("/", "Home"),
    ("/qa", "Ask Questions"),
    ("/myths", "Myths & Facts"),
    ("/research", "Latest Research"),
    ("/age-groups", "Age-Specific Care"),
)

COMMON_QUESTIONS = (
    "What are the early signs of glaucoma?",
    "How often should I get my eyes checked?",
    "Can screen time damage my eyes?",
    "What foods are good for eye health?",
    "How can I prevent digital eye strain?",
    "What causes floaters in vision?",
)

FEATURES = (
    ("/qa", "Ask Questions", "Get expert answers to your eye health questions using advanced AI technology."),
    ("/myths", "Myths vs Facts", "Separate fact from fiction with evidence-based information about common eye health beliefs."),
    ("/research", "Latest Research", "Stay up to date with recent findings in eye health and vision science."),
    ("/age-groups", "Age-Specific Care", "Tailored eye health advice for every stage of life."),
)

DISCLAIMER = (
    "This information is for educational purposes only and should not replace professional "
    "medical advice. Always consult with qualified healthcare professionals for diagnosis and treatment."
)

_STYLE = """
body { font-family: system-ui, sans-serif; margin: 0; background: #f9fafb; color: #111827; }
nav { background: #1e3a8a; padding: 0.75rem 2rem; }
nav a { color: #e0e7ff; margin-right: 1.25rem; text-decoration: none; }
nav a.active { color: #fff; font-weight: 600; }
main { max-width: 60rem; margin: 0 auto; padding: 2rem; }
.card { background: #fff; border: 1px solid #e5e7eb; border-radius: 0.75rem; padding: 1.25rem; margin-bottom: 1rem; }
.disclaimer { background: #fffbeb; border-color: #fde68a; }
.error { background: #fef2f2; border-color: #fecaca; color: #991b1b; }
.myth { color: #b91c1c; } .fact { color: #15803d; }
.muted { color: #6b7280; font-size: 0.875rem; }
button[disabled] { opacity: 0.5; cursor: not-allowed; }
pre { white-space: pre-wrap; font-family: inherit; }
"""

# Disables the submit button of a form while its request is in flight.
_BUSY_SCRIPT = """
document.querySelectorAll("form[data-busy]").forEach(function (form) {
  form.addEventListener("submit", function () {
    var button = form.querySelector("button[type=submit]");
    if (button) { button.disabled = true; button.textContent = "Loading..."; }
  });
});
"""


@dataclass
class PageState:
    """What a content page shows after handling a request."""

    api_key: Optional[str] = None
    error: str = ""
    last_updated: Optional[datetime] = None
    question: str = ""
    answer: str = ""
    myths: List[MythRecord] = field(default_factory=list)
    research: List[ResearchRecord] = field(default_factory=list)
    selected_group: Optional[str] = None
    advice: str = ""

    @property
    def has_client(self) -> bool:
        return bool(self.api_key)


def _e(value: object) -> str:
    return html.escape(str(value), quote=True)


def layout(title: str, body: str, *, active: str = "/") -> str:
    links = "".join(
        f'<a href="{href}" class="active">{_e(label)}</a>' if href == active else f'<a href="{href}">{_e(label)}</a>'
        for href, label in NAV_LINKS
    )
    return (
        "<!doctype html>\n"
        '<html lang="en"><head><meta charset="utf-8">'
        f"<title>{_e(title)} | EyeCare Insights</title>"
        f"<style>{_STYLE}</style></head>"
        f"<body><nav>{links}</nav><main>{body}</main>"
        '<footer><main class="muted">EyeCare Insights. AI-Powered Eye Health Education.</main></footer>'
        f"<script>{_BUSY_SCRIPT}</script></body></html>"
    )


def disclaimer() -> str:
    return f'<div class="card disclaimer"><strong>Medical Disclaimer</strong><p>{_e(DISCLAIMER)}</p></div>'


def api_key_panel(api_key: Optional[str], *, next_path: str) -> str:
    if api_key:
        status = '<strong style="color:#15803d">Connected</strong>'
        current = f'<p class="muted">Stored key: {_e(mask_api_key(api_key))}</p>'
        clear = (
            '<form method="post" action="/settings/api-key/clear">'
            f'<input type="hidden" name="next" value="{_e(next_path)}">'
            '<button type="submit">Clear Key</button></form>'
        )
    else:
        status = "Not configured"
        current = ""
        clear = ""
    return (
        '<div class="card"><h3>API Key Configuration</h3>'
        "<p>Enter your personal Perplexity API key to use this service.</p>"
        '<p class="muted">Never share your API key with others or expose it in public repositories. '
        "The key is kept in this server's local configuration file.</p>"
        '<form method="post" action="/settings/api-key">'
        f'<input type="hidden" name="next" value="{_e(next_path)}">'
        '<label for="api-key">Perplexity API Key</label> '
        '<input id="api-key" name="api_key" type="password" '
        'placeholder="pplx-xxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx" size="50"> '
        '<button type="submit">Save</button></form>'
        f"{current}{clear}"
        '<p class="muted"><a href="https://docs.perplexity.ai/">Get your API key</a></p>'
        f"<p>Status: {status}</p></div>"
    )


def error_panel(message: str) -> str:
    if not message:
        return ""
    return f'<div class="card error">{_e(message)}</div>'


def _last_updated(state: PageState) -> str:
    if state.last_updated is None:
        return ""
    return f'<p class="muted">Last updated: {_e(state.last_updated.strftime("%c"))}</p>'


def render_home(api_key: Optional[str]) -> str:
    cards = "".join(
        f'<div class="card"><h3><a href="{href}">{_e(title)}</a></h3><p>{_e(text)}</p></div>'
        for href, title, text in FEATURES
    )
    status = "Connected" if api_key else "Not configured"
    body = (
        "<h1>EyeCare Insights</h1>"
        "<p>Accurate, evidence-based information about eye health and vision care, powered by AI.</p>"
        f"{disclaimer()}{cards}"
        f'<p class="muted">API key status: {status}</p>'
    )
    return layout("Home", body, active="/")


def render_qa(state: PageState) -> str:
    suggestions = "".join(
        f'<li><a href="/qa?{_e(urlencode({"question": q}))}">{_e(q)}</a></li>' for q in COMMON_QUESTIONS
    )
    disabled = "" if state.has_client else " disabled"
    hint = "" if state.has_client else '<p class="muted">Please configure your API key above to ask questions.</p>'
    answer = ""
    if state.answer:
        answer = f'<div class="card"><h3>Answer</h3><pre>{_e(state.answer)}</pre></div>'
    body = (
        "<h1>Ask Eye Health Questions</h1>"
        f"{disclaimer()}{api_key_panel(state.api_key, next_path='/qa')}"
        '<form method="post" action="/qa" data-busy class="card">'
        '<label for="question">Your question</label><br>'
        f'<textarea id="question" name="question" rows="3" cols="70">{_e(state.question)}</textarea><br>'
        f'<button type="submit"{disabled}>Ask Question</button>{hint}</form>'
        f"{error_panel(state.error)}{answer}"
        f'<div class="card"><h3>Common Questions</h3><ul>{suggestions}</ul></div>'
    )
    return layout("Ask Questions", body, active="/qa")


def _myth_card(item: MythRecord) -> str:
    fact = f'<p class="fact"><strong>Fact:</strong> {_e(item.fact)}</p>' if item.fact else ""
    explanation = item.explanation.strip()
    more = f"<p>{_e(explanation)}</p>" if explanation else ""
    return f'<div class="card"><p class="myth"><strong>Myth:</strong> {_e(item.myth)}</p>{fact}{more}</div>'


def render_myths(state: PageState) -> str:
    disabled = "" if state.has_client else " disabled"
    label = "Refresh Myths" if state.myths else "Load Myths"
    items = "".join(_myth_card(m) for m in state.myths)
    body = (
        "<h1>Eye Health Myths vs Facts</h1>"
        "<p>Separate fact from fiction with evidence-based information about common eye health beliefs.</p>"
        f"{disclaimer()}{api_key_panel(state.api_key, next_path='/myths')}"
        '<form method="post" action="/myths" data-busy>'
        f'<button type="submit"{disabled}>{label}</button></form>'
        f"{_last_updated(state)}{error_panel(state.error)}{items}"
    )
    return layout("Myths & Facts", body, active="/myths")


def _research_card(item: ResearchRecord) -> str:
    link = f'<p><a href="{_e(item.url)}" rel="noopener noreferrer">View source</a></p>' if item.url else ""
    return (
        f'<div class="card"><h3>{_e(item.title)}</h3>'
        f'<p class="muted">{_e(item.source)} · {_e(item.date)}</p>'
        f"<p>{_e(item.summary)}</p>{link}</div>"
    )


def render_research(state: PageState) -> str:
    disabled = "" if state.has_client else " disabled"
    label = "Refresh Research" if state.research else "Load Research"
    items = "".join(_research_card(r) for r in state.research)
    body = (
        "<h1>Latest Eye Health Research</h1>"
        f"{disclaimer()}{api_key_panel(state.api_key, next_path='/research')}"
        '<form method="post" action="/research" data-busy>'
        f'<button type="submit"{disabled}>{label}</button></form>'
        f"{_last_updated(state)}{error_panel(state.error)}{items}"
    )
    return layout("Latest Research", body, active="/research")


def _age_group_cards(state: PageState, groups: Sequence = AGE_GROUPS) -> str:
    disabled = "" if state.has_client else " disabled"
    cards = []
    for group in groups:
        selected = ' style="border-color:#2563eb"' if group.id == state.selected_group else ""
        cards.append(
            f'<form method="post" action="/age-groups/{_e(group.id)}" data-busy class="card"{selected}>'
            f"<h3>{_e(group.name)}</h3><p>{_e(group.description)}</p>"
            f'<button type="submit"{disabled}>Get Advice</button></form>'
        )
    return "".join(cards)


def render_age_groups(state: PageState) -> str:
    advice = ""
    if state.advice and state.selected_group:
        name = next((g.name for g in AGE_GROUPS if g.id == state.selected_group), state.selected_group)
        advice = f'<div class="card"><h3>Eye Care Advice: {_e(name)}</h3><pre>{_e(state.advice)}</pre></div>'
    hint = ""
    if not state.selected_group:
        hint = '<p class="muted">Select an age group above to get personalized eye care advice.</p>'
    body = (
        "<h1>Age-Specific Eye Care</h1>"
        "<p>Each age group has unique vision needs, risks, and preventive measures.</p>"
        f"{disclaimer()}{api_key_panel(state.api_key, next_path='/age-groups')}"
        f"{_age_group_cards(state)}{error_panel(state.error)}{advice}{hint}"
    )
    return layout("Age-Specific Care", body, active="/age-groups")
