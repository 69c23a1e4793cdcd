"""
OpenAI helpers — audit insights and personalised outreach drafts.

Both calls route through the 'openai' circuit breaker. Model output is parsed
leniently: the first JSON array/object found in the reply is used, so stray
markdown fences do not break parsing.
"""
import json
import logging
import re
from typing import Any, Dict, List

from siteops.config import OPENAI_MODEL, AGENCY_NAME
from siteops.extensions import openai_client as client
from siteops.pipeline.templates import (
    CATEGORY_NAMES, IMPROVEMENT_SUBJECT, signature_html, unsubscribe_footer, score_lines,
)

logger = logging.getLogger('siteops.openai')

_ARRAY_RE = re.compile(r'\[.*\]', re.S)
_OBJECT_RE = re.compile(r'\{.*\}', re.S)


def _chat_completion(**kwargs):
    """Route chat completion through the OpenAI circuit breaker."""
    from siteops.services.circuit_breaker import get_breaker
    cb = get_breaker('openai')
    return cb.call(client.chat.completions.create, **kwargs)


def _message_content(response):
    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise ValueError('No content returned from OpenAI')
    return content


def _parse_json(content, pattern):
    match = pattern.search(content)
    return json.loads(match.group(0) if match else content)


def _fmt(value, suffix='', digits=None):
    if value is None:
        return 'N/A'
    if digits is not None:
        return f'{value:.{digits}f}{suffix}'
    return f'{value}{suffix}'


# ── Insights ─────────────────────────────────────────────────────────────────

def generate_audit_insights(scores: Dict[str, Any], vitals: Dict[str, Any]) -> List[str]:
    """Turn Lighthouse numbers into 2–3 one-sentence business-friendly insights."""
    prompt = f"""Convert these Lighthouse audit results into 2-3 business-friendly insights:

Performance score: {_fmt(scores.get('performance'))}/100
Accessibility score: {_fmt(scores.get('accessibility'))}/100
SEO score: {_fmt(scores.get('seo'))}/100
Best Practices score: {_fmt(scores.get('best_practices'))}/100

Core Web Vitals:
- Largest Contentful Paint (LCP): {_fmt(vitals.get('lcp'), 's', 2)}
- Cumulative Layout Shift (CLS): {_fmt(vitals.get('cls'))}
- Interaction to Next Paint (INP): {_fmt(vitals.get('inp'), 'ms', 0)}

Rules:
- Return exactly 2-3 insights
- Use plain, business-friendly language (no technical jargon)
- Frame as opportunities, not problems
- Each insight should be one sentence
- Focus on user experience and business impact

Return ONLY a JSON array of strings, like this:
["First insight here", "Second insight here", "Third insight here"]"""

    response = _chat_completion(
        model=OPENAI_MODEL,
        messages=[
            {"role": "system", "content": (
                "You convert technical website performance data into clear, "
                "business-friendly insights. Always return valid JSON arrays."
            )},
            {"role": "user", "content": prompt},
        ],
        temperature=0.7,
        max_tokens=300,
    )
    insights = _parse_json(_message_content(response), _ARRAY_RE)
    if not isinstance(insights, list) or not insights:
        raise ValueError('Invalid insights format')
    return [str(i).strip() for i in insights if str(i).strip()][:3]


# ── Outreach draft ───────────────────────────────────────────────────────────

_ADAPTIVE_GUIDANCE = {
    'performance': 'explain that the homepage takes a bit too long to feel ready on a phone, and that visitors may leave before it does',
    'seo': 'explain how search engines understand the homepage and how that affects people finding the business',
    'accessibility': 'explain how easy the homepage is for every visitor to read and use, and how that affects trust',
    'best_practices': 'explain that small rough edges make the homepage feel less polished and trustworthy',
}


def build_outreach_prompt(first_name, company_name, website_url, scores, lowest, insights, unsubscribe_link):
    """User prompt for the personalised improvement email."""
    insight_lines = '\n'.join(f'- {i}' for i in insights)
    return f"""You are writing on behalf of {AGENCY_NAME}, a calm, trust-focused digital studio that helps non-technical professionals quietly improve their websites. You write like a thoughtful human who noticed something worth sharing, never like marketing copy.

You ran Google's PageSpeed Insights on the recipient's homepage (mobile visitors on a typical 4G connection).

Recipient:
- first_name: {first_name}
- company_name: {company_name or 'their business'}
- website_url: {website_url or 'N/A'}
- performance_score: {_fmt(scores.get('performance'))}
- seo_score: {_fmt(scores.get('seo'))}
- accessibility_score: {_fmt(scores.get('accessibility'))}
- best_practices_score: {_fmt(scores.get('best_practices'))}
- lowest_score: {CATEGORY_NAMES[lowest.category]} ({_fmt(lowest.value)})

Observations from the audit:
{insight_lines}

Structure:
1. <p>Hi {first_name},</p>
2. One paragraph saying you reviewed {company_name or 'their'}'s homepage with PageSpeed Insights for mobile visitors.
3. <p>Here's what came back:<br>{score_lines(scores)}</p>
4. One paragraph about the lowest score: {_ADAPTIVE_GUIDANCE[lowest.category]}. If other scores are good, acknowledge what is working first.
5. One paragraph saying this isn't a redesign problem and fixes are contained.
6. One short offer to share what stood out most.
7. The signature, exactly: {signature_html()}
8. The footer, exactly: {unsubscribe_footer(unsubscribe_link)}

Language rules:
- NO technical jargon, tool names, frameworks or implementation details
- NO urgency, hype or sales pressure
- Describe causes conceptually ("large images", "too much loading up front")
- Say "homepage", not "website" or "site"
- Only use these HTML tags: <p>, <b>, <a>, <br>, <i>

Return ONLY valid JSON:
{{"subject": "{IMPROVEMENT_SUBJECT}", "body": "<html string>"}}

The subject MUST be exactly "{IMPROVEMENT_SUBJECT}"."""


def generate_outreach_email(prompt: str) -> Dict[str, str]:
    """Ask the model for {subject, body}. Raises ValueError on unusable output."""
    response = _chat_completion(
        model=OPENAI_MODEL,
        messages=[
            {"role": "system", "content": (
                f"You are a senior client-services writer for {AGENCY_NAME}. You write calm, "
                "factual, human emails in simple, non-technical language. You never use "
                "technical jargon, tool recommendations, or implementation details."
            )},
            {"role": "user", "content": prompt},
        ],
        temperature=0.8,
        max_tokens=600,
    )
    content = _message_content(response)
    try:
        data = _parse_json(content, _OBJECT_RE)
    except json.JSONDecodeError as e:
        logger.error("Unparseable email JSON from OpenAI: %s", content[:300])
        raise ValueError(f'Failed to parse email from OpenAI response: {e}') from e
    if not isinstance(data, dict) or not data.get('subject') or not data.get('body'):
        raise ValueError('Invalid email format: missing subject or body')
    return {'subject': data['subject'], 'body': data['body']}
