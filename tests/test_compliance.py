import asyncio

import pytest

from conductor.agents.compliance import append_disclaimers, check_compliance, regex_findings, strip_html
from conductor.errors import ProviderError
from conductor.models.content import ComplianceDetail, ComplianceResult
from tests.fakes import FakeLLM


def _rules(text):
    return [(d.rule, d.severity) for d in regex_findings(text)]


def test_clean_copy_passes():
    result = asyncio.run(check_compliance("<h1>Implants</h1><p>Implants may help restore your smile.</p>"))
    assert result == ComplianceResult(status="pass", details=[])


def test_empty_html_passes_without_llm_review():
    llm = FakeLLM()
    assert asyncio.run(check_compliance("   ", llm=llm)).status == "pass"
    assert llm.calls == []


def test_strip_html_collapses_whitespace():
    assert strip_html("<p>one</p>\n\n<p>two  <b>three</b></p>") == "one two three"


@pytest.mark.parametrize("text, rule", [
    ("Results are guaranteed.", "guaranteed_results"),
    ("Enjoy 100% success with implants.", "guaranteed_results"),
    ("If you have bleeding gums, call us.", "diagnosis"),
    ("Whitening will cure stains.", "cure_language"),
    ("Implants cost $3000.", "price_without_context"),
])
def test_block_rules(text, rule):
    assert _rules(text) == [(rule, "block")]


def test_price_with_context_is_allowed():
    assert _rules("Implants starting at $3000 per tooth.") == []
    assert _rules("Implants cost $3000; actual fees may vary.") == []


def test_one_finding_per_rule():
    details = regex_findings("Guaranteed results. A permanent solution, guaranteed.")
    assert [(d.rule, d.phrase) for d in details] == [("guaranteed_results", "Guaranteed")]


def test_warn_rules_carry_disclaimers():
    result = asyncio.run(check_compliance("<p>See our before and after gallery. Most plans: covered by insurance.</p>"))
    assert result.status == "warn"
    assert [d.disclaimer for d in result.details] == [
        "Individual results may vary.",
        "Contact your insurance provider to verify coverage.",
    ]


def test_block_outranks_warn():
    result = asyncio.run(check_compliance("<p>Guaranteed whitening. Results shown are typical.</p>"))
    assert result.status == "block"
    assert [d.rule for d in result.blocking] == ["guaranteed_results"]


def test_llm_findings_are_merged_and_deduplicated():
    llm = FakeLLM({"issues": [
        {"rule": "guaranteed_results", "severity": "block", "phrase": "GUARANTEED"},
        {"rule": "testimonial", "severity": "minor", "phrase": "best dentist ever"},
        "not an issue",
    ]})
    result = asyncio.run(check_compliance("<p>Guaranteed care from the best dentist ever.</p>", llm=llm))

    assert [(d.rule, d.severity) for d in result.details] == [
        ("guaranteed_results", "block"), ("testimonial", "warn"),
    ]
    assert result.details[1].reason == "Flagged by AI review"
    assert "dental content compliance reviewer" in llm.calls[0][0]["content"]


def test_llm_review_failure_keeps_regex_findings():
    llm = FakeLLM(ProviderError("LLM returned invalid JSON"))
    result = asyncio.run(check_compliance("<p>Insurance pays for most cleanings.</p>", llm=llm))
    assert result.status == "warn"
    assert [d.rule for d in result.details] == ["insurance_claim"]


def test_disclaimers_are_appended_once():
    result = ComplianceResult(status="warn", details=[
        ComplianceDetail(rule="before_after", severity="warn", disclaimer="Individual results may vary."),
        ComplianceDetail(rule="llm_check", severity="warn", disclaimer="Individual results may vary."),
    ])
    html = append_disclaimers("<p>Body</p>", result)
    assert html.count("Individual results may vary.") == 1
    assert html.startswith("<p>Body</p>\n")
    assert append_disclaimers("<p>Body</p>", ComplianceResult()) == "<p>Body</p>"
