# conductor/service.py
# The only place concrete clients are constructed; everything else receives them.
from __future__ import annotations

from typing import Optional

import pymongo

from conductor.agents.drafting import LLMDraftingProvider
from conductor.agents.finalize import FinalizeAgent
from conductor.agents.ghostwriter import GhostwriterAgent
from conductor.agents.health_check import HealthCheckAgent
from conductor.agents.scholar import ScholarAgent
from conductor.clients.google_tokens import GoogleTokenRefresher
from conductor.clients.keyword_research import KeywordResearchClient
from conductor.clients.search_console import SearchConsoleClient
from conductor.config import Settings, settings as default_settings
from conductor.db.actions import MongoActionStore
from conductor.db.content import MongoContentStore
from conductor.db.keywords import MongoKeywordStore
from conductor.db.practices import MongoPracticeStore
from conductor.db.runs import MongoRunStore
from conductor.infra.notify import FanoutNotifier, Notifier
from conductor.infra.rabbit import RabbitPublisher
from conductor.infra.webhook import WebhookNotifier
from conductor.llms.registry import get_provider
from conductor.pipeline.conductor import Conductor
from conductor.pipeline.engine import PipelineEngine


def get_db(cfg: Settings = default_settings):
    client = pymongo.MongoClient(cfg.MONGO_URI, tz_aware=True)
    return client[cfg.MONGO_DB]


def build_notifier(cfg: Settings = default_settings) -> Optional[Notifier]:
    sinks = []
    if cfg.RABBITMQ_URL:
        sinks.append(RabbitPublisher(cfg.RABBITMQ_URL, cfg.RABBITMQ_EXCHANGE, cfg.EVENTS_ORG))
    if cfg.WEBHOOK_URL:
        sinks.append(WebhookNotifier(cfg.WEBHOOK_URL, timeout=cfg.REQUEST_TIMEOUT_S))
    if not sinks:
        return None
    return sinks[0] if len(sinks) == 1 else FanoutNotifier(sinks)


class ConductorService:
    """Wired conductor plus the stores the CLI needs for scheduling and reaping."""

    def __init__(self, db=None, cfg: Settings = default_settings):
        if not cfg.OPENAI_API_KEY:
            raise ValueError("OPENAI_API_KEY is required for drafting")

        db = db if db is not None else get_db(cfg)
        self.settings = cfg
        self.runs = MongoRunStore(db)
        self.practices = MongoPracticeStore(db)
        self.keywords = MongoKeywordStore(db)
        content = MongoContentStore(db)
        actions = MongoActionStore(db)

        tokens = GoogleTokenRefresher(cfg.GOOGLE_TOKEN_URL, cfg.GOOGLE_CLIENT_ID, cfg.GOOGLE_CLIENT_SECRET,
                                      timeout=cfg.REQUEST_TIMEOUT_S) if cfg.GOOGLE_CLIENT_ID else None
        search_console = SearchConsoleClient(cfg.SEARCH_CONSOLE_URL, tokens=tokens,
                                             timeout=cfg.REQUEST_TIMEOUT_S) if tokens else None
        keywords = KeywordResearchClient(cfg.KEYWORD_API_URL, cfg.KEYWORD_API_KEY, timeout=cfg.REQUEST_TIMEOUT_S)
        llm = get_provider(cfg.MODEL_ID, api_key=cfg.OPENAI_API_KEY)
        self.notifier = build_notifier(cfg)
        drafting = LLMDraftingProvider(llm, content, actions=actions, llm_review=cfg.COMPLIANCE_LLM_REVIEW,
                                       max_rewrites=cfg.MAX_COMPLIANCE_REWRITES)

        engine = PipelineEngine(
            self.runs,
            [
                HealthCheckAgent(self.practices, tokens),
                ScholarAgent(self.practices, keywords, search_console=search_console, llm=llm,
                             topic_limit=cfg.SCHOLAR_TOPIC_LIMIT, keyword_store=self.keywords, actions=actions),
                GhostwriterAgent(self.practices, drafting,
                                 concurrency=cfg.DRAFT_CONCURRENCY, max_topics=cfg.MAX_DRAFTS_PER_RUN),
                FinalizeAgent(),
            ],
            notifier=self.notifier,
        )
        self.conductor = Conductor(self.runs, engine, graph_id=cfg.GRAPH_ID)

    def init_indexes(self) -> None:
        self.runs.init_indexes()
        self.keywords.init_indexes()

    async def aclose(self) -> None:
        sinks = self.notifier.sinks if isinstance(self.notifier, FanoutNotifier) else [self.notifier]
        for sink in sinks:
            if isinstance(sink, RabbitPublisher):
                await sink.close()
