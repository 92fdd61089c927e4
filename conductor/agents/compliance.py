# conductor/agents/compliance.py
# Regulatory screen for patient-facing copy: fast regex rules, then an
# optional LLM review. `block` findings must be rewritten; `warn` findings
# are resolved by appending the rule's disclaimer.
from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional

from conductor.errors import ConductorError
from conductor.llms.base import LLMProvider
from conductor.logging import safe_extra
from conductor.models.content import ComplianceDetail, ComplianceResult

logger = logging.getLogger("conductor.agents.compliance")

LLM_REVIEW_CHARS = 3000
_PRICE_CONTEXT = re.compile(r"starting at|starts at|as low as|from|disclaimer|may vary|estimate", re.I)


def _price_lacks_context(text: str, match: re.Match) -> bool:
    surrounding = text[max(0, match.start() - 200): match.start() + 200]
    return not _PRICE_CONTEXT.search(surrounding)


class Rule:
    def __init__(self, name: str, severity: str, patterns: List[str], reason: str, *,
                 suggestion: Optional[str] = None, disclaimer: Optional[str] = None,
                 applies: Optional[Callable[[str, re.Match], bool]] = None):
        self.name = name
        self.severity = severity
        self.patterns = [re.compile(p, re.I) for p in patterns]
        self.reason = reason
        self.suggestion = suggestion
        self.disclaimer = disclaimer
        self.applies = applies

    def first_match(self, text: str) -> Optional[ComplianceDetail]:
        for pattern in self.patterns:
            m = pattern.search(text)
            if m is None or (self.applies is not None and not self.applies(text, m)):
                continue
            return ComplianceDetail(
                rule=self.name,
                severity=self.severity,
                phrase=m.group(0),
                reason=self.reason,
                suggestion=self.suggestion,
                disclaimer=self.disclaimer,
            )
        return None


RULES: List[Rule] = [
    Rule("guaranteed_results", "block",
         [r"\bguaranteed\b", r"\b100%\s+success\b", r"\bpermanent\s+solution\b"],
         "Do not guarantee outcomes",
         suggestion='Replace with qualified language like "may help" or "designed to"'),
    Rule("diagnosis", "block",
         [r"\byou have\b", r"\byou suffer from\b", r"\bthis means you need\b"],
         "Only a dentist can diagnose",
         suggestion='Use "may indicate" or "consult your dentist to determine"'),
    Rule("cure_language", "block",
         [r"\bcure\b", r"\bheal completely\b", r"\beliminate forever\b"],
         "Avoid absolute medical claims",
         suggestion='Use "may help improve" or "designed to address"'),
    Rule("price_without_context", "block", [r"\$\d+"],
         'Pricing must include "starting at" or disclaimer',
         suggestion='Add "starting at" before price or include a pricing disclaimer',
         applies=_price_lacks_context),
    Rule("before_after", "warn", [r"\bbefore and after\b", r"\bresults shown\b"],
         "Before/after claims need disclaimer",
         disclaimer="Individual results may vary."),
    Rule("insurance_claim", "warn", [r"\bcovered by insurance\b", r"\binsurance pays\b"],
         "Insurance claims need disclaimer",
         disclaimer="Contact your insurance provider to verify coverage."),
]


def strip_html(html: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"<[^>]*>", " ", html or "")).strip()


def regex_findings(text: str) -> List[ComplianceDetail]:
    """At most one finding per rule."""
    return [d for d in (rule.first_match(text) for rule in RULES) if d is not None]


def _dedupe(details: List[ComplianceDetail]) -> List[ComplianceDetail]:
    seen = set()
    out: List[ComplianceDetail] = []
    for d in details:
        key = (d.rule, d.phrase.lower())
        if key not in seen:
            seen.add(key)
            out.append(d)
    return out


def status_of(details: List[ComplianceDetail]) -> str:
    if any(d.severity == "block" for d in details):
        return "block"
    if details:
        return "warn"
    return "pass"


def _llm_findings(payload: Dict[str, Any]) -> List[ComplianceDetail]:
    out: List[ComplianceDetail] = []
    for issue in payload.get("issues") or []:
        if not isinstance(issue, dict):
            continue
        out.append(ComplianceDetail(
            rule=issue.get("rule") or "llm_check",
            severity="block" if issue.get("severity") == "block" else "warn",
            phrase=issue.get("phrase") or "",
            reason=issue.get("reason") or "Flagged by AI review",
            suggestion=issue.get("suggestion"),
        ))
    return out


async def check_compliance(html: str, vertical: str = "dental", llm: Optional[LLMProvider] = None) -> ComplianceResult:
    if not (html or "").strip():
        return ComplianceResult()

    text = strip_html(html)
    details = regex_findings(text)

    if llm is not None:
        messages = [
            {"role": "system", "content": (
                f"You are a {vertical} content compliance reviewer. Flag specific diagnoses, treatment "
                "recommendations, guaranteed outcomes, testimonials with health claims and unsupported "
                'comparative claims. Respond with JSON: {"issues": [{"rule": "...", "severity": "block|warn", '
                '"phrase": "exact text", "reason": "...", "suggestion": "..."}]}'
            )},
            {"role": "user", "content": f"Review this {vertical} content:\n\n{text[:LLM_REVIEW_CHARS]}"},
        ]
        try:
            details.extend(_llm_findings(await llm.chat_json(messages, max_tokens=1024)))
        except ConductorError as e:
            # The regex rules still apply when the model review is unavailable.
            logger.warning("compliance.llm_review_unavailable", extra=safe_extra({"error": str(e)}))

    details = _dedupe(details)
    return ComplianceResult(status=status_of(details), details=details)


def append_disclaimers(html: str, result: ComplianceResult) -> str:
    disclaimers = [d.disclaimer for d in result.details if d.disclaimer]
    if not disclaimers:
        return html
    tail = "\n".join(f'<p class="disclaimer"><em>{d}</em></p>' for d in dict.fromkeys(disclaimers))
    return f"{html}\n{tail}"
