import asyncio

import httpx
import orjson
import pytest

from conductor.errors import ProviderError
from conductor.infra.notify import FanoutNotifier
from conductor.infra.rabbit import RabbitPublisher, routing_key
from conductor.infra.webhook import WebhookNotifier
from tests.fakes import RecordingNotifier


def test_routing_key_is_versioned():
    assert routing_key("pilot", "stage.completed") == "pilot.conductor.stage.completed.v1"
    assert routing_key("acme", "failed", version="v2") == "acme.conductor.failed.v2"


def test_fanout_delivers_to_healthy_sinks_then_raises():
    broken, healthy = RecordingNotifier(fail=True), RecordingNotifier()
    fanout = FanoutNotifier([broken, healthy])
    with pytest.raises(RuntimeError, match="broker down"):
        asyncio.run(fanout.publish("completed", {"run_id": "r-1"}))
    assert healthy.names() == ["completed"]


def test_fanout_logs_the_failing_sink(caplog):
    fanout = FanoutNotifier([RecordingNotifier(fail=True)])
    with caplog.at_level("ERROR", logger="conductor.infra.notify"), pytest.raises(RuntimeError):
        asyncio.run(fanout.publish("started", {"run_id": "r-1"}))
    record = caplog.records[-1]
    assert record.getMessage() == "notify.sink_failed"
    assert (record.event, record.sink) == ("started", "RecordingNotifier")


def test_webhook_posts_event_envelope(monkeypatch):
    seen = []
    real = httpx.AsyncClient

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    monkeypatch.setattr(httpx, "AsyncClient", lambda **kw: real(transport=httpx.MockTransport(handler), **kw))
    asyncio.run(WebhookNotifier("https://hooks.example/conductor").publish("failed", {"run_id": "r-1"}))

    assert orjson.loads(seen[0].content) == {"event": "failed", "payload": {"run_id": "r-1"}}


def test_webhook_failure_is_a_provider_error(monkeypatch):
    real = httpx.AsyncClient
    monkeypatch.setattr(
        httpx, "AsyncClient",
        lambda **kw: real(transport=httpx.MockTransport(lambda r: httpx.Response(503)), **kw),
    )
    with pytest.raises(ProviderError, match="webhook delivery of started"):
        asyncio.run(WebhookNotifier("https://hooks.example/conductor").publish("started", {}))


def test_rabbit_publish_tags_message_with_run():
    class _Exchange:
        def __init__(self):
            self.sent = []

        async def publish(self, message, routing_key):
            self.sent.append((message, routing_key))

    publisher = RabbitPublisher("amqp://guest@localhost/", "conductor.events", "acme")
    publisher._exchange = _Exchange()

    asyncio.run(publisher.publish("stage.completed", {"run_id": "r-1", "stage": "scholar"}))

    message, rk = publisher._exchange.sent[0]
    assert rk == "acme.conductor.stage.completed.v1"
    assert message.correlation_id == "r-1"
    assert message.type == "conductor.stage.completed"
    assert orjson.loads(message.body) == {"run_id": "r-1", "stage": "scholar"}
