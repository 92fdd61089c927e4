import asyncio
from collections import defaultdict
from unittest.mock import MagicMock

import pydantic
import pytest

from conductor.config import Settings
from conductor.infra.notify import FanoutNotifier
from conductor.infra.rabbit import RabbitPublisher
from conductor.infra.webhook import WebhookNotifier
from conductor.llms.openai_provider import OpenAIProvider
from conductor.llms.registry import get_provider
from conductor.logging import safe_extra
from conductor.pipeline.conductor import Conductor
from conductor.service import ConductorService, build_notifier


def _settings(**kw) -> Settings:
    return Settings(_env_file=None, **kw)


def test_defaults_cover_every_field():
    cfg = _settings()
    assert cfg.DRAFT_CONCURRENCY == 2
    assert cfg.MAX_DRAFTS_PER_RUN is None
    assert cfg.RABBITMQ_URL is None
    assert cfg.COMPLIANCE_LLM_REVIEW is True
    assert cfg.MAX_COMPLIANCE_REWRITES == 2


@pytest.mark.parametrize("field, value", [
    ("MONGO_URI", "localhost"),
    ("DRAFT_CONCURRENCY", 0),
    ("MAX_CONCURRENT_RUNS", -1),
    ("MAX_COMPLIANCE_REWRITES", -1),
])
def test_invalid_settings_are_rejected(field, value):
    with pytest.raises(pydantic.ValidationError):
        _settings(**{field: value})


def test_notifier_selection():
    assert build_notifier(_settings()) is None
    assert isinstance(build_notifier(_settings(WEBHOOK_URL="https://hooks.example")), WebhookNotifier)
    assert isinstance(build_notifier(_settings(RABBITMQ_URL="amqp://guest@localhost/")), RabbitPublisher)
    both = build_notifier(_settings(WEBHOOK_URL="https://hooks.example", RABBITMQ_URL="amqp://guest@localhost/"))
    assert isinstance(both, FanoutNotifier)


def test_service_requires_llm_key():
    with pytest.raises(ValueError, match="OPENAI_API_KEY"):
        ConductorService(db=MagicMock(), cfg=_settings())


def test_service_wires_conductor_from_settings():
    service = ConductorService(db=MagicMock(), cfg=_settings(OPENAI_API_KEY="sk-test", GOOGLE_CLIENT_ID="cid"))
    assert isinstance(service.conductor, Conductor)


def test_provider_registry_prefixes():
    assert get_provider("openai:gpt-4o", api_key="sk-test").model_id == "gpt-4o"
    assert isinstance(get_provider("gpt-4o-mini", api_key="sk-test"), OpenAIProvider)
    with pytest.raises(ValueError, match="Unknown model provider prefix"):
        get_provider("anthropic:claude", api_key="sk-test")


def test_safe_extra_renames_reserved_keys():
    assert safe_extra({"name": "x", "run_id": "r"}) == {"ctx_name": "x", "run_id": "r"}


def test_service_close_without_connection_is_safe():
    cfg = _settings(OPENAI_API_KEY="sk-test", RABBITMQ_URL="amqp://guest@localhost/", WEBHOOK_URL="https://h.example")
    service = ConductorService(db=MagicMock(), cfg=cfg)
    assert isinstance(service.notifier, FanoutNotifier)
    asyncio.run(service.aclose())


def test_service_creates_keyword_index():
    db = defaultdict(MagicMock)
    service = ConductorService(db=db, cfg=_settings(OPENAI_API_KEY="sk-test"))
    service.init_indexes()
    db["keywords"].create_index.assert_called_once()
    assert db["conductor_runs"].create_index.call_count == 3
