# conductor/agents/seo.py
"""On-page SEO score (0-100) for a drafted article."""

from __future__ import annotations

import re

from conductor.agents.compliance import strip_html


def score_seo(html: str, keyword: str, meta_title: str = "", meta_description: str = "",
              word_count: int = 0) -> int:
    text = strip_html(html)
    lowered = text.lower()
    kw = (keyword or "").lower().strip()
    title = meta_title or ""
    description = meta_description or ""
    total_words = len(text.split())

    score = 0
    if kw and kw in title.lower():
        score += 15
    if kw and kw in lowered[:500]:
        score += 10
    if kw and any(kw in h.lower() for h in re.findall(r"<h2[^>]*>(.*?)</h2>", html or "", re.I | re.S)):
        score += 5

    density = (lowered.count(kw) / total_words * 100) if kw and total_words else 0.0
    if 1 <= density <= 3:
        score += 15

    sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
    avg_sentence = total_words / len(sentences) if sentences else 0.0
    if 10 <= avg_sentence <= 20:
        score += 10

    if 50 <= len(title) <= 70:
        score += 10
    if 120 <= len(description) <= 160:
        score += 10
    if re.search(r"<a\s+[^>]*href", html or "", re.I):
        score += 10
    if re.search(r"<h[23][^>]*>", html or "", re.I):
        score += 10
    if word_count > 800:
        score += 5

    return min(score, 100)
