import asyncio

import pytest

from conductor.agents.drafting import LLMDraftingProvider, count_words
from conductor.errors import PersistenceError, ProviderError
from tests.fakes import FakeActionStore, FakeContentStore, FakeLLM, make_topic

BRIEF = {"suggested_title": "Dental Implants in Austin", "h2_sections": ["Cost", "Recovery"]}
ARTICLE = {
    "html": "<h1>Dental Implants</h1><p>Three short words.</p>",
    "markdown": "# Dental Implants\n\nThree short words.",
    "meta_title": "Implants | Bright Smiles",
    "meta_description": "What to expect.",
}


def test_count_words_ignores_markup():
    assert count_words("<p>one <b>two</b></p>  three") == 3
    assert count_words("") == 0


def test_draft_saves_piece_for_review(practice):
    llm = FakeLLM(BRIEF, ARTICLE)
    content = FakeContentStore()
    drafted = asyncio.run(
        LLMDraftingProvider(llm, content).draft(make_topic("implants austin"), practice, run_id="r-9")
    )

    assert drafted.content_id == "content-1"
    assert drafted.title == "Dental Implants in Austin"
    assert drafted.word_count == 6
    saved = content.saved[0]
    assert saved["client_id"] == "p-1"
    assert saved["org_id"] == "org-1"
    assert saved["target_keyword"] == "implants austin"
    assert saved["run_id"] == "r-9"
    assert saved["brief"] == BRIEF
    assert len(llm.calls) == 2


def test_empty_article_is_a_provider_error(practice):
    llm = FakeLLM(BRIEF, {"html": "  ", "markdown": ""})
    content = FakeContentStore()
    with pytest.raises(ProviderError, match="empty content"):
        asyncio.run(LLMDraftingProvider(llm, content).draft(make_topic("veneers"), practice))
    assert content.saved == []


BLOCKED = {
    "html": "<h2>Implants</h2><p>Our implants are guaranteed to last.</p>",
    "markdown": "",
    "meta_title": "Implants",
    "meta_description": "",
}
REWRITTEN = {"html": "<h2>Implants</h2><p>Our implants are designed to last.</p>", "markdown": ""}


def test_warn_findings_get_disclaimers(practice):
    article = dict(ARTICLE, html="<h1>Whitening</h1><p>See our before and after photos.</p>")
    content = FakeContentStore()
    drafted = asyncio.run(
        LLMDraftingProvider(FakeLLM(BRIEF, article), content).draft(make_topic("whitening"), practice)
    )

    assert drafted.compliance_status == "warn"
    saved = content.saved[0]
    assert saved["body_html"].endswith('<p class="disclaimer"><em>Individual results may vary.</em></p>')
    assert saved["compliance_details"][0]["rule"] == "before_after"


def test_blocked_draft_is_rewritten_and_rechecked(practice):
    llm = FakeLLM(BRIEF, BLOCKED, REWRITTEN)
    content, actions = FakeContentStore(), FakeActionStore()

    drafted = asyncio.run(
        LLMDraftingProvider(llm, content, actions=actions).draft(make_topic("implants"), practice, run_id="r-2")
    )

    assert len(llm.calls) == 3
    assert "guaranteed" in llm.calls[2][1]["content"]
    assert (drafted.compliance_status, drafted.rewrite_attempts) == ("pass", 1)
    assert content.saved[0]["body_html"] == REWRITTEN["html"]
    assert actions.actions[0]["severity"] == "info"
    assert drafted.queue_item_id == "action-1"


def test_rewrites_are_bounded_and_leftovers_flagged(practice):
    llm = FakeLLM(BRIEF, BLOCKED, BLOCKED, BLOCKED)
    content, actions = FakeContentStore(), FakeActionStore()

    drafted = asyncio.run(
        LLMDraftingProvider(llm, content, actions=actions, max_rewrites=2).draft(make_topic("implants"), practice)
    )

    assert len(llm.calls) == 4
    assert (drafted.compliance_status, drafted.rewrite_attempts) == ("block", 2)
    action = actions.actions[0]
    assert action["severity"] == "critical"
    assert action["action_type"] == "content_review"
    assert action["content_piece_id"] == drafted.content_id
    assert action["proposed_data"]["rewrite_attempts"] == 2
    assert content.saved[0]["compliance_status"] == "block"


def test_empty_rewrite_fails_the_topic(practice):
    llm = FakeLLM(BRIEF, BLOCKED, {"html": " "})
    content = FakeContentStore()
    with pytest.raises(ProviderError, match="rewrite returned empty content"):
        asyncio.run(LLMDraftingProvider(llm, content).draft(make_topic("implants"), practice))
    assert content.saved == []


def test_llm_review_runs_after_the_article(practice):
    llm = FakeLLM(BRIEF, ARTICLE, {"issues": []})
    drafted = asyncio.run(
        LLMDraftingProvider(llm, FakeContentStore(), llm_review=True).draft(make_topic("implants"), practice)
    )
    assert len(llm.calls) == 3
    assert "compliance reviewer" in llm.calls[2][0]["content"]
    assert drafted.compliance_status == "pass"


def test_seo_score_is_stored(practice):
    content = FakeContentStore()
    drafted = asyncio.run(
        LLMDraftingProvider(FakeLLM(BRIEF, ARTICLE), content).draft(make_topic("dental implants"), practice)
    )
    assert drafted.seo_score == content.saved[0]["seo_score"]
    assert drafted.seo_score > 0


def test_review_queue_failure_fails_the_topic(practice):
    actions = FakeActionStore(error=PersistenceError("agent_actions unavailable"))
    with pytest.raises(ProviderError, match="agent_actions unavailable"):
        asyncio.run(
            LLMDraftingProvider(FakeLLM(BRIEF, ARTICLE), FakeContentStore(), actions=actions)
            .draft(make_topic("implants"), practice)
        )
