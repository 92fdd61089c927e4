# conductor/agents/scholar.py
# Keyword/topic discovery as a LangGraph sub-graph:
#   fetch_search_data -> research_keywords -> analyze_competitors -> gap_analysis
#     -> prioritize -> save_results
# Any node that records `error` short-circuits to END.

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph, END

from conductor.clients.keyword_research import KeywordProvider
from conductor.clients.search_console import SearchConsoleProvider
from conductor.db.actions import ActionStore
from conductor.db.keywords import KeywordStore
from conductor.db.practices import PracticeStore
from conductor.errors import ConductorError, ProviderError
from conductor.llms.base import LLMProvider
from conductor.logging import safe_extra
from conductor.models.practice import KeywordData, Practice, SearchQuery
from conductor.models.state import PipelineState, ScholarOutput, Stage
from conductor.models.topics import Topic

logger = logging.getLogger("conductor.agents.scholar")

DEFAULT_SEED_TERMS = ["dentist", "dental implants", "teeth whitening", "emergency dentist"]
GAP_MIN_VOLUME = 50
GAP_MAX_DIFFICULTY = 60
GAP_LIMIT = 50
PRIORITIZED_LIMIT = 30

_FILLER = {"near", "me", "best", "cost", "in", "the", "for", "a", "of", "and", "to"}

SYSTEM_PROMPT = (
    "You are an expert dental SEO strategist. Analyze keyword data and prioritize "
    "opportunities for a dental practice. Always respond with valid JSON."
)


class ScholarState(TypedDict, total=False):
    practice: Practice
    run_id: str
    search_queries: List[SearchQuery]
    researched: List[KeywordData]
    competitor_keywords: List[KeywordData]
    gaps: List[KeywordData]
    prioritized: List[KeywordData]
    topics: List[Topic]
    saved_keywords: int
    error: Optional[str]


# ─────────────────────────────────────────────────────────────
# Pure helpers
# ─────────────────────────────────────────────────────────────
def generate_seed_keywords(practice: Practice) -> List[str]:
    profile = practice.practice_profile
    city = (profile.city or "").strip()
    seeds: List[str] = []

    for service in profile.services:
        seeds.append(f"{service} near me")
        if city:
            seeds.append(f"{service} {city}")
            seeds.append(f"best {service} {city}")
            seeds.append(f"{service} cost {city}")

    if not seeds and city:
        for term in DEFAULT_SEED_TERMS:
            seeds.append(f"{term} {city}")
            seeds.append(f"{term} near me")

    return seeds


def find_gaps(
    search_queries: List[SearchQuery],
    researched: List[KeywordData],
    competitor_keywords: List[KeywordData],
) -> List[KeywordData]:
    """Competitor keywords the practice neither ranks for nor already researched."""
    mine = {q.query.lower() for q in search_queries} | {k.keyword.lower() for k in researched}
    gaps: Dict[str, KeywordData] = {}
    for k in competitor_keywords:
        key = k.keyword.lower()
        if key in mine or k.search_volume <= GAP_MIN_VOLUME or k.difficulty >= GAP_MAX_DIFFICULTY:
            continue
        if key not in gaps or gaps[key].search_volume < k.search_volume:
            gaps[key] = k
    return sorted(gaps.values(), key=lambda k: k.search_volume, reverse=True)[:GAP_LIMIT]


def opportunity(k: KeywordData) -> float:
    return k.search_volume * (100 - min(max(k.difficulty, 0), 100)) / 100


def rank_keywords(keywords: List[KeywordData], limit: int = PRIORITIZED_LIMIT) -> List[KeywordData]:
    best: Dict[str, KeywordData] = {}
    for k in keywords:
        key = k.keyword.lower()
        if key not in best or opportunity(k) > opportunity(best[key]):
            best[key] = k
    ranked = sorted(best.values(), key=lambda k: (-opportunity(k), k.keyword.lower()))
    return ranked[:limit]


def _terms(keyword: str, city: str) -> set:
    city_terms = set(re.findall(r"[a-z0-9]+", city.lower()))
    return {t for t in re.findall(r"[a-z0-9]+", keyword.lower()) if t not in _FILLER and t not in city_terms}


def propose_topics(ranked: List[KeywordData], practice: Practice, limit: int) -> List[Topic]:
    city = practice.practice_profile.city or ""
    place = city or "your area"
    topics: List[Topic] = []
    for k in ranked[:limit]:
        terms = _terms(k.keyword, city)
        supporting = [
            o.keyword for o in ranked
            if o.keyword != k.keyword and terms & _terms(o.keyword, city)
        ][:5]
        subject = " ".join(sorted(terms, key=k.keyword.lower().find)) or k.keyword
        topics.append(Topic(
            title=f"{subject.title()} in {place}: What Patients Should Know",
            target_keyword=k.keyword,
            supporting_keywords=supporting,
            priority=round(opportunity(k), 2),
            angle=f"Local guide answering common {subject} questions",
            estimated_volume=k.search_volume,
        ))
    return topics


def _topics_from_llm(payload: Dict[str, Any], limit: int) -> List[Topic]:
    topics: List[Topic] = []
    raw = payload.get("content_topics") or payload.get("contentTopics") or []
    for i, t in enumerate(raw[:limit]):
        if not isinstance(t, dict):
            continue
        keyword = (t.get("keyword") or "").strip()
        title = (t.get("suggested_title") or t.get("suggestedTitle") or "").strip()
        if not keyword or not title:
            continue
        topics.append(Topic(
            title=title,
            target_keyword=keyword,
            supporting_keywords=[s for s in (t.get("supporting_keywords") or []) if isinstance(s, str)],
            priority=float(t.get("priority") or (limit - i)),
            angle=t.get("angle") or "",
            estimated_volume=int(t.get("estimated_volume") or t.get("estimatedVolume") or 0),
        ))
    return topics


def _keywords_from_llm(payload: Dict[str, Any], fallback: List[KeywordData]) -> List[KeywordData]:
    raw = payload.get("prioritized_keywords") or payload.get("prioritizedKeywords") or []
    out: List[KeywordData] = []
    for k in raw[:PRIORITIZED_LIMIT]:
        if not isinstance(k, dict) or not k.get("keyword"):
            continue
        out.append(KeywordData(
            keyword=k["keyword"],
            search_volume=int(k.get("search_volume") or k.get("searchVolume") or 0),
            difficulty=int(k.get("difficulty") or 0),
            source=k.get("source") or "research",
        ))
    return out or fallback


# ─────────────────────────────────────────────────────────────
# Stage handler
# ─────────────────────────────────────────────────────────────
class ScholarAgent:
    name = Stage.SCHOLAR

    def __init__(
        self,
        practices: PracticeStore,
        keywords: KeywordProvider,
        *,
        search_console: Optional[SearchConsoleProvider] = None,
        llm: Optional[LLMProvider] = None,
        topic_limit: int = 5,
        keyword_store: Optional[KeywordStore] = None,
        actions: Optional[ActionStore] = None,
    ):
        self._practices = practices
        self._keywords = keywords
        self._search_console = search_console
        self._llm = llm
        self._topic_limit = topic_limit
        self._keyword_store = keyword_store
        self._actions = actions
        self._graph = self._build_graph()

    async def run(self, state: PipelineState) -> ScholarOutput:
        practice = self._practices.get(state.practice_id)
        if practice is None:
            raise ProviderError("Client not found")

        result = await self._graph.ainvoke({"practice": practice, "run_id": state.run_id})
        if result.get("error"):
            raise ProviderError(result["error"])

        topics = result.get("topics") or []
        logger.info(
            "scholar.completed",
            extra=safe_extra({
                "run_id": state.run_id,
                "topics": len(topics),
                "gaps": len(result.get("gaps") or []),
                "saved_keywords": result.get("saved_keywords", 0),
            }),
        )
        return ScholarOutput(
            topics=topics,
            keywords_tracked=len(result.get("prioritized") or []),
            gap_keywords=len(result.get("gaps") or []),
        )

    # ---- graph -----------------------------------------------------------
    def _build_graph(self):
        sg = StateGraph(ScholarState)
        sg.add_node("fetch_search_data", self._fetch_search_data)
        sg.add_node("research_keywords", self._research_keywords)
        sg.add_node("analyze_competitors", self._analyze_competitors)
        sg.add_node("gap_analysis", self._gap_analysis)
        sg.add_node("prioritize", self._prioritize)
        sg.add_node("save_results", self._save_results)

        sg.set_entry_point("fetch_search_data")
        chain = ["fetch_search_data", "research_keywords", "analyze_competitors", "gap_analysis", "prioritize",
                 "save_results"]
        for src, dst in zip(chain, chain[1:]):
            sg.add_conditional_edges(src, _should_continue, {"next": dst, END: END})
        sg.add_edge("save_results", END)

        return sg.compile()

    # ---- nodes -----------------------------------------------------------
    async def _fetch_search_data(self, state: ScholarState) -> Dict[str, Any]:
        if self._search_console is None:
            return {"search_queries": []}
        try:
            queries = await self._search_console.top_queries(state["practice"])
        except ConductorError as e:
            return {"error": str(e)}
        return {"search_queries": queries}

    async def _research_keywords(self, state: ScholarState) -> Dict[str, Any]:
        seeds = generate_seed_keywords(state["practice"])
        if not seeds:
            return {"researched": []}
        try:
            return {"researched": await self._keywords.keyword_research(seeds)}
        except ConductorError as e:
            return {"error": str(e)}

    async def _analyze_competitors(self, state: ScholarState) -> Dict[str, Any]:
        found: List[KeywordData] = []
        try:
            for comp in state["practice"].competitors:
                found.extend(await self._keywords.competitor_keywords(comp.domain))
        except ConductorError as e:
            return {"error": str(e)}
        return {"competitor_keywords": found}

    async def _gap_analysis(self, state: ScholarState) -> Dict[str, Any]:
        return {
            "gaps": find_gaps(
                state.get("search_queries") or [],
                state.get("researched") or [],
                state.get("competitor_keywords") or [],
            )
        }

    async def _prioritize(self, state: ScholarState) -> Dict[str, Any]:
        practice = state["practice"]
        candidates = list(state.get("researched") or []) + list(state.get("gaps") or [])
        if not candidates:
            return {"prioritized": [], "topics": []}

        ranked = rank_keywords(candidates)
        if self._llm is None:
            return {"prioritized": ranked, "topics": propose_topics(ranked, practice, self._topic_limit)}

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": _prioritize_prompt(practice, state.get("search_queries") or [], ranked,
                                                           self._topic_limit)},
        ]
        try:
            payload = await self._llm.chat_json(messages, max_tokens=4096)
        except ConductorError as e:
            return {"error": str(e)}
        return {
            "prioritized": _keywords_from_llm(payload, ranked),
            "topics": _topics_from_llm(payload, self._topic_limit),
        }

    async def _save_results(self, state: ScholarState) -> Dict[str, Any]:
        practice = state["practice"]
        prioritized = state.get("prioritized") or []
        topics = state.get("topics") or []
        saved = 0
        try:
            if self._keyword_store is not None:
                saved = self._keyword_store.upsert_tracked(practice, prioritized)
            if self._actions is not None and topics:
                self._actions.record_many([
                    {
                        "org_id": practice.org_id,
                        "client_id": practice.id,
                        "agent": "scholar",
                        "action_type": "content_recommendation",
                        "autonomy_tier": 1,
                        "description": f"Content topic: {t.title} ({t.angle})" if t.angle else f"Content topic: {t.title}",
                        "proposed_data": {
                            "keyword": t.target_keyword,
                            "suggested_title": t.title,
                            "angle": t.angle,
                            "estimated_volume": t.estimated_volume,
                        },
                        "content_piece_id": None,
                        "run_id": state.get("run_id"),
                    }
                    for t in topics
                ])
        except ConductorError as e:
            return {"error": str(e)}
        return {"saved_keywords": saved}


def _should_continue(state: ScholarState) -> str:
    return END if state.get("error") else "next"


def _prioritize_prompt(practice: Practice, queries: List[SearchQuery], ranked: List[KeywordData],
                       topic_limit: int) -> str:
    return (
        f"Practice profile:\n{practice.practice_profile.model_dump_json(indent=2)}\n\n"
        f"Current search performance (top queries):\n"
        f"{json.dumps([q.model_dump() for q in queries[:20]], indent=2)}\n\n"
        f"Keyword opportunities ({len(ranked)} total):\n"
        f"{json.dumps([k.model_dump() for k in ranked], indent=2)}\n\n"
        "Tasks:\n"
        f"1. Rank the top {PRIORITIZED_LIMIT} keywords by priority. Consider search volume, difficulty "
        "(prefer <40), relevance to this practice's services, and local intent.\n"
        f"2. For the top {topic_limit} keywords, suggest a content topic (blog post title + brief angle).\n"
        "3. Return JSON with this exact structure:\n"
        '{"prioritized_keywords": [{"keyword": "...", "search_volume": 0, "difficulty": 0, "source": "research|gap"}],'
        ' "content_topics": [{"keyword": "...", "suggested_title": "...", "angle": "...", "estimated_volume": 0,'
        ' "supporting_keywords": ["..."], "priority": 0}]}'
    )
