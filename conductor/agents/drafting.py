# conductor/agents/drafting.py
# Drafting one topic as a LangGraph sub-graph:
#   generate_brief -> write_content -> check_compliance -> handle_compliance
#     -> (check_compliance again after a rewrite | score_seo) -> queue_for_review
# A `block` verdict is rewritten at most `max_rewrites` times; whatever remains
# is queued with critical severity for a human reviewer.

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Optional, TypedDict

from langgraph.graph import StateGraph, END

from conductor.agents.compliance import append_disclaimers, check_compliance
from conductor.agents.seo import score_seo
from conductor.db.actions import ActionStore
from conductor.db.content import ContentStore
from conductor.errors import ConductorError, ProviderError
from conductor.llms.base import LLMProvider
from conductor.logging import safe_extra
from conductor.models.content import ComplianceResult, DraftedContent
from conductor.models.practice import Practice
from conductor.models.topics import Topic

logger = logging.getLogger("conductor.agents.drafting")

MAX_REWRITES = 2

BRIEF_SYSTEM = (
    "You are an expert dental SEO content strategist. Generate a detailed content brief. "
    "Always respond with valid JSON."
)
WRITER_SYSTEM = (
    "You are an experienced dental content writer. Write patient-friendly, accurate, "
    "compliant blog content. Never promise outcomes or make unverifiable claims. "
    "Always respond with valid JSON."
)
REWRITE_SYSTEM = (
    "You are a dental content compliance editor. Rewrite ONLY the flagged sections while "
    "preserving the rest of the content. Respond with JSON containing html and markdown."
)


class DraftState(TypedDict, total=False):
    topic: Topic
    practice: Practice
    run_id: Optional[str]
    brief: Dict[str, Any]
    html: str
    markdown: str
    meta_title: str
    meta_description: str
    word_count: int
    compliance: Optional[ComplianceResult]
    rewrite_attempts: int
    seo_score: int
    content_id: str
    queue_item_id: Optional[str]
    error: Optional[str]


def count_words(text: str) -> int:
    return len([w for w in re.split(r"\s+", re.sub(r"<[^>]*>", " ", text or "")) if w])


def _brief_prompt(topic: Topic, practice: Practice) -> str:
    return (
        "Create a content brief for a dental practice blog post.\n\n"
        f"Practice profile:\n{practice.practice_profile.model_dump_json(indent=2)}\n\n"
        f'Target keyword: "{topic.target_keyword}"\n'
        f'Suggested title: "{topic.title}"\n'
        f'Angle: "{topic.angle}"\n'
        f"Supporting keywords: {json.dumps(topic.supporting_keywords)}\n\n"
        "Return JSON:\n"
        '{"suggested_title": "...", "h2_sections": ["..."], "target_word_count": 1200,'
        ' "internal_links": ["..."], "unique_angles": ["..."], "practice_hooks": ["..."]}'
    )


def _article_prompt(topic: Topic, practice: Practice, brief: Dict[str, Any]) -> str:
    profile = practice.practice_profile
    return (
        f"Write a blog post for {profile.practice_name or practice.name or 'our practice'}"
        f"{' in ' + profile.city if profile.city else ''}.\n"
        f"Doctors: {', '.join(profile.doctors) or 'n/a'}\n"
        f'Target keyword: "{topic.target_keyword}"\n\n'
        f"Brief:\n{json.dumps(brief, indent=2)}\n\n"
        "Use h1/h2/h3, p and ul/li tags, keep the keyword density near 2%, and end with a short FAQ.\n"
        "Return JSON:\n"
        '{"html": "<h1>...</h1>...", "markdown": "# ...", "meta_title": "50-70 chars",'
        ' "meta_description": "120-160 chars"}'
    )


def _rewrite_prompt(html: str, compliance: ComplianceResult) -> str:
    flagged = "\n".join(
        f'- "{d.phrase}" ({d.reason}){". Fix: " + d.suggestion if d.suggestion else ""}'
        for d in compliance.blocking
    )
    return (
        f"Rewrite the flagged sections in this dental content.\n\nCurrent HTML:\n{html}\n\n"
        f"Compliance issues to fix:\n{flagged}\n\n"
        'Return JSON: {"html": "...", "markdown": "..."}'
    )


class LLMDraftingProvider:
    """Brief, article, compliance screen and SEO score; the piece is stored and queued for review."""

    def __init__(
        self,
        llm: LLMProvider,
        content: ContentStore,
        *,
        actions: Optional[ActionStore] = None,
        llm_review: bool = False,
        max_rewrites: int = MAX_REWRITES,
    ):
        self._llm = llm
        self._content = content
        self._actions = actions
        self._review_llm = llm if llm_review else None
        self._max_rewrites = max_rewrites
        self._graph = self._build_graph()

    async def draft(self, topic: Topic, practice: Practice, *, run_id: Optional[str] = None) -> DraftedContent:
        result = await self._graph.ainvoke(
            {"topic": topic, "practice": practice, "run_id": run_id, "rewrite_attempts": 0}
        )
        if result.get("error"):
            raise ProviderError(result["error"])

        compliance = result.get("compliance") or ComplianceResult()
        return DraftedContent(
            content_id=result["content_id"],
            queue_item_id=result.get("queue_item_id"),
            title=result["brief"].get("suggested_title") or topic.title,
            word_count=result.get("word_count", 0),
            seo_score=result.get("seo_score", 0),
            compliance_status=compliance.status,
            rewrite_attempts=result.get("rewrite_attempts", 0),
        )

    # ---- graph -----------------------------------------------------------
    def _build_graph(self):
        sg = StateGraph(DraftState)
        sg.add_node("generate_brief", self._generate_brief)
        sg.add_node("write_content", self._write_content)
        sg.add_node("check_compliance", self._check_compliance)
        sg.add_node("handle_compliance", self._handle_compliance)
        sg.add_node("score_seo", self._score_seo)
        sg.add_node("queue_for_review", self._queue_for_review)

        sg.set_entry_point("generate_brief")
        sg.add_conditional_edges("generate_brief", _should_continue, {"next": "write_content", END: END})
        sg.add_conditional_edges("write_content", _should_continue, {"next": "check_compliance", END: END})
        sg.add_edge("check_compliance", "handle_compliance")
        sg.add_conditional_edges(
            "handle_compliance",
            _after_compliance,
            {"check_compliance": "check_compliance", "score_seo": "score_seo", END: END},
        )
        sg.add_edge("score_seo", "queue_for_review")
        sg.add_edge("queue_for_review", END)
        return sg.compile()

    # ---- nodes -----------------------------------------------------------
    async def _generate_brief(self, state: DraftState) -> Dict[str, Any]:
        try:
            brief = await self._llm.chat_json(
                [{"role": "system", "content": BRIEF_SYSTEM},
                 {"role": "user", "content": _brief_prompt(state["topic"], state["practice"])}],
                max_tokens=2048,
            )
        except ConductorError as e:
            return {"error": str(e)}
        return {"brief": brief}

    async def _write_content(self, state: DraftState) -> Dict[str, Any]:
        topic = state["topic"]
        try:
            article = await self._llm.chat_json(
                [{"role": "system", "content": WRITER_SYSTEM},
                 {"role": "user", "content": _article_prompt(topic, state["practice"], state["brief"])}],
                max_tokens=4096,
            )
        except ConductorError as e:
            return {"error": str(e)}

        html = article.get("html") or ""
        markdown = article.get("markdown") or ""
        if not (html.strip() or markdown.strip()):
            return {"error": f"drafting returned empty content for '{topic.target_keyword}'"}
        return {
            "html": html,
            "markdown": markdown,
            "meta_title": article.get("meta_title") or "",
            "meta_description": article.get("meta_description") or "",
            "word_count": count_words(markdown or html),
        }

    async def _check_compliance(self, state: DraftState) -> Dict[str, Any]:
        result = await check_compliance(state.get("html") or "", state["practice"].vertical, llm=self._review_llm)
        return {"compliance": result}

    async def _handle_compliance(self, state: DraftState) -> Dict[str, Any]:
        compliance = state["compliance"]
        if compliance.status == "warn":
            return {"html": append_disclaimers(state["html"], compliance)}
        if compliance.status != "block" or state["rewrite_attempts"] >= self._max_rewrites:
            return {"compliance": compliance}

        try:
            rewritten = await self._llm.chat_json(
                [{"role": "system", "content": REWRITE_SYSTEM},
                 {"role": "user", "content": _rewrite_prompt(state["html"], compliance)}],
                max_tokens=4096,
            )
        except ConductorError as e:
            return {"error": str(e)}

        html = rewritten.get("html") or ""
        if not html.strip():
            return {"error": f"compliance rewrite returned empty content for '{state['topic'].target_keyword}'"}
        markdown = rewritten.get("markdown") or ""
        logger.info(
            "drafting.compliance_rewrite",
            extra=safe_extra({
                "keyword": state["topic"].target_keyword,
                "attempt": state["rewrite_attempts"] + 1,
                "rules": [d.rule for d in compliance.blocking],
            }),
        )
        # A cleared verdict sends the rewrite back through the compliance check.
        return {
            "html": html,
            "markdown": markdown,
            "word_count": count_words(markdown or html),
            "rewrite_attempts": state["rewrite_attempts"] + 1,
            "compliance": None,
        }

    async def _score_seo(self, state: DraftState) -> Dict[str, Any]:
        return {
            "seo_score": score_seo(
                state["html"],
                state["topic"].target_keyword,
                state.get("meta_title") or "",
                state.get("meta_description") or "",
                state.get("word_count") or 0,
            )
        }

    async def _queue_for_review(self, state: DraftState) -> Dict[str, Any]:
        topic, practice = state["topic"], state["practice"]
        compliance = state["compliance"]
        title = state["brief"].get("suggested_title") or topic.title
        try:
            content_id = self._content.save_draft({
                "org_id": practice.org_id,
                "client_id": practice.id,
                "title": title,
                "body_html": state["html"],
                "body_markdown": state.get("markdown") or "",
                "content_type": "blog_post",
                "target_keyword": topic.target_keyword,
                "related_keywords": list(topic.supporting_keywords),
                "meta_title": state.get("meta_title") or None,
                "meta_description": state.get("meta_description") or None,
                "word_count": state.get("word_count") or 0,
                "seo_score": state["seo_score"],
                "compliance_status": compliance.status,
                "compliance_details": [d.model_dump() for d in compliance.details],
                "brief": state["brief"],
                "run_id": state.get("run_id"),
            })
            queue_item_id = None
            if self._actions is not None:
                queue_item_id = self._actions.record({
                    "org_id": practice.org_id,
                    "client_id": practice.id,
                    "agent": "ghostwriter",
                    "action_type": "content_review",
                    "autonomy_tier": 2,
                    "severity": "critical" if compliance.status == "block" else "info",
                    "description": f'New blog post: "{title}" targeting "{topic.target_keyword}"',
                    "proposed_data": {
                        "content_piece_id": content_id,
                        "seo_score": state["seo_score"],
                        "word_count": state.get("word_count") or 0,
                        "compliance_status": compliance.status,
                        "rewrite_attempts": state["rewrite_attempts"],
                    },
                    "content_piece_id": content_id,
                    "run_id": state.get("run_id"),
                })
        except ConductorError as e:
            return {"error": str(e)}

        logger.info(
            "drafting.queued",
            extra=safe_extra({
                "content_id": content_id,
                "keyword": topic.target_keyword,
                "seo_score": state["seo_score"],
                "compliance": compliance.status,
            }),
        )
        return {"content_id": content_id, "queue_item_id": queue_item_id}


def _should_continue(state: DraftState) -> str:
    return END if state.get("error") else "next"


def _after_compliance(state: DraftState) -> str:
    if state.get("error"):
        return END
    if state.get("compliance") is None:
        return "check_compliance"
    return "score_seo"
