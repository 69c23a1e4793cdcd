"""
Outreach template selection and rendering.

select_template() is a pure function of the audit scores and insight
availability. It returns one of three variants:

    HighScore   every category present and >= 80
    Simplified  at least one weak score, no insights to personalise with
    Generated   at least one weak score, insights available → LLM draft

The two local variants are rendered here; Generated is written by
siteops.services.openai_client using the fixed pieces defined below.
"""
import re
from dataclasses import dataclass
from html import escape, unescape
from typing import Dict, List, Optional, Union

from siteops.config import (
    AGENCY_NAME, AGENCY_URL, AGENCY_SIGNATURE_NAME, HIGH_SCORE_THRESHOLD,
)

HIGH_SCORE_SUBJECT = 'Reviewed your site — strong mobile results'
IMPROVEMENT_SUBJECT = 'A quick note after reviewing your homepage'

# category key → display name, in the order scores are listed in emails
CATEGORY_NAMES = {
    'performance': 'Performance',
    'seo': 'SEO',
    'accessibility': 'Accessibility',
    'best_practices': 'Best Practices',
}

# What a weak score means for a visitor, without jargon
CATEGORY_EXPLANATIONS = {
    'performance': (
        'A performance score in this range usually means the homepage takes a bit longer '
        'than expected to feel ready on mobile. Since the homepage is often a customer\'s '
        '<i>first impression</i>, that delay can cause people to lose interest before they '
        'understand what you offer.'
    ),
    'seo': (
        'An SEO score in this range usually means search engines have a harder time '
        'understanding what the homepage offers. That can make it tougher for the right '
        'people to find you, and the homepage is often where that <i>first impression</i> starts.'
    ),
    'accessibility': (
        'An accessibility score in this range usually means the homepage is harder for some '
        'visitors to read or use, especially on a phone. When a <i>first impression</i> feels '
        'awkward, people tend to leave before they understand what you offer.'
    ),
    'best_practices': (
        'A best practices score in this range usually means a few details on the homepage '
        'could make it feel less polished or trustworthy to visitors. Small rough edges on a '
        '<i>first impression</i> can cause people to leave early.'
    ),
}


@dataclass(frozen=True)
class LowestScore:
    category: str
    value: Optional[int]

    @property
    def name(self):
        return CATEGORY_NAMES[self.category]


@dataclass(frozen=True)
class HighScore:
    name = 'high_score'


@dataclass(frozen=True)
class Simplified:
    lowest: LowestScore
    name = 'simplified'


@dataclass(frozen=True)
class Generated:
    lowest: LowestScore
    insights: tuple
    name = 'generated'


TemplateChoice = Union[HighScore, Simplified, Generated]


def lowest_category(scores: Dict[str, Optional[int]]) -> LowestScore:
    """Lowest present score; ties keep the earlier category. All absent → performance."""
    present = [(key, scores.get(key)) for key in CATEGORY_NAMES if scores.get(key) is not None]
    if not present:
        return LowestScore('performance', None)
    key, value = min(present, key=lambda kv: kv[1])
    return LowestScore(key, value)


def all_scores_high(scores: Dict[str, Optional[int]]) -> bool:
    return all(
        scores.get(key) is not None and scores[key] >= HIGH_SCORE_THRESHOLD
        for key in CATEGORY_NAMES
    )


def select_template(scores: Dict[str, Optional[int]], insights: Optional[List[str]]) -> TemplateChoice:
    """Choose the outreach template for an audit. No side effects."""
    if all_scores_high(scores):
        return HighScore()
    lowest = lowest_category(scores)
    if not insights:
        return Simplified(lowest)
    return Generated(lowest, tuple(insights))


# ── Fixed pieces ─────────────────────────────────────────────────────────────

def signature_html():
    return (
        f'<p>Happy to chat,<br><b>{escape(AGENCY_SIGNATURE_NAME)}</b><br>'
        f'<a href="{AGENCY_URL}">{escape(AGENCY_NAME)}</a></p>'
    )


def unsubscribe_footer(unsubscribe_link, wording='improvement'):
    if wording == 'high_score':
        text = "If you'd rather not receive messages like this, you can opt out"
    else:
        text = "If this isn't relevant or you'd prefer not to receive notes like this, you can ask to be removed"
    return f'<p>—</p>\n\n<p>{text} <a href="{escape(unsubscribe_link)}">here</a>.</p>'


def score_lines(scores, keys=None):
    keys = keys or list(CATEGORY_NAMES)
    lines = [
        f'- <b>{CATEGORY_NAMES[key]}:</b> {scores[key]}'
        for key in keys if scores.get(key) is not None
    ]
    return '<br>'.join(lines)


def _company(company_name):
    return escape(company_name) if company_name else 'your business'


# ── Renderers ────────────────────────────────────────────────────────────────

def render_high_score(first_name, company_name, scores, unsubscribe_link):
    """Congratulatory note; no score is framed as a problem."""
    shown = score_lines(scores, keys=['performance', 'best_practices', 'seo'])
    body = f"""<p>Hi {escape(first_name)},</p>

<p>I took a few minutes to review {_company(company_name)}'s homepage using Google's PageSpeed Insights tool, which measures real-world performance for <b>mobile users on 4G connections</b>.</p>

<p>Your scores are strong:<br>{shown}</p>

<p>That tells me your homepage is making a solid first impression: content shows up quickly, works well on phones, and is easy for search engines to understand. From a technical standpoint, there's nothing urgent to fix.</p>

<p>At <b>{escape(AGENCY_NAME)}</b>, improving and stabilizing existing sites is part of what we do, but we're often brought in when teams want to <b>launch something new quickly</b>, like a landing page, a new idea, or a side project that's been sitting on the back burner.</p>

<p>If there's something you've been meaning to put in front of customers without a long build cycle, we'd be happy to help.</p>

{signature_html()}

{unsubscribe_footer(unsubscribe_link, wording='high_score')}"""
    return HIGH_SCORE_SUBJECT, body


def render_simplified(first_name, company_name, scores, lowest, unsubscribe_link):
    """Plain-language note naming only the weakest category."""
    body = f"""<p>Hi {escape(first_name)},</p>

<p>I took a few minutes to review {_company(company_name)}'s homepage using Google's PageSpeed Insights tool. It measures how sites perform for <b>mobile visitors on a typical 4G connection</b>, which is how most people see a homepage for the first time.</p>

<p>Here's what came back:<br>{score_lines(scores)}</p>

<p>{CATEGORY_EXPLANATIONS[lowest.category]}</p>

<p>The good news is this isn't a redesign problem. Homepages in this range are usually held back by a small number of things, and fixing them is a contained piece of work.</p>

<p>When we help with this at <b>{escape(AGENCY_NAME)}</b>, we focus on removing that early friction so the homepage feels fast and trustworthy from the first moment.</p>

<p>If it's useful, I'm happy to share what stood out most and what we'd prioritize first.</p>

{signature_html()}

{unsubscribe_footer(unsubscribe_link)}"""
    return IMPROVEMENT_SUBJECT, body


# ── LLM output hygiene ───────────────────────────────────────────────────────

ALLOWED_TAGS = {'p', 'b', 'a', 'br', 'i'}
_TAG_RE = re.compile(r'<(/?)\s*([a-zA-Z][a-zA-Z0-9]*)\b([^>]*)>')
_HREF_RE = re.compile(r'''(?<![\w-])href\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))''', re.IGNORECASE)


def _safe_href(attrs):
    match = _HREF_RE.search(attrs)
    if not match:
        return None
    href = unescape(next(g for g in match.groups() if g is not None)).strip()
    if not href.lower().startswith(('http://', 'https://')):
        return None
    return href


def restrict_html(body):
    """Keep only <p><b><a><br><i>, with no attributes except an http(s) href on <a>."""
    def rebuild(match):
        closing, tag, attrs = match.group(1), match.group(2).lower(), match.group(3)
        if tag not in ALLOWED_TAGS:
            return ''
        if closing:
            return f'</{tag}>'
        if tag == 'a':
            href = _safe_href(attrs)
            return f'<a href="{escape(href)}">' if href else '<a>'
        return f'<{tag}>'
    return _TAG_RE.sub(rebuild, body)


def ensure_footer(body, unsubscribe_link):
    """Generated drafts must carry the recipient's unsubscribe link."""
    if escape(unsubscribe_link) in body or unsubscribe_link in body:
        return body
    return f'{body}\n\n{unsubscribe_footer(unsubscribe_link)}'
