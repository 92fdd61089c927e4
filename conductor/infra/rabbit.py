# conductor/infra/rabbit.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional
from uuid import uuid4

import aio_pika
import orjson
from aio_pika import ExchangeType, DeliveryMode

from conductor.config import settings
from conductor.logging import safe_extra

logger = logging.getLogger("conductor.infra.rabbit")


def routing_key(org: str, event: str, version: str = "v1") -> str:
    return f"{org}.conductor.{event}.{version}"


class RabbitPublisher:
    """
    Async publisher that emits versioned routing keys:
        <org>.conductor.<event>.<version>
    Reuses a robust connection + channel + exchange.
    """
    def __init__(self, url: Optional[str] = None, exchange_name: Optional[str] = None,
                 org: Optional[str] = None):
        self.url = url or settings.RABBITMQ_URL
        self.exchange_name = exchange_name or settings.RABBITMQ_EXCHANGE
        self.org = org or settings.EVENTS_ORG
        self._conn: Optional[aio_pika.abc.AbstractRobustConnection] = None
        self._channel: Optional[aio_pika.abc.AbstractChannel] = None
        self._exchange: Optional[aio_pika.abc.AbstractExchange] = None
        self._lock = asyncio.Lock()

    async def _ensure(self) -> None:
        if self._exchange:
            return
        async with self._lock:
            if self._exchange:
                return
            logger.info("conductor.rabbit_connecting", extra=safe_extra({"exchange": self.exchange_name}))
            self._conn = await aio_pika.connect_robust(self.url)
            self._channel = await self._conn.channel()
            self._exchange = await self._channel.declare_exchange(
                self.exchange_name, ExchangeType.TOPIC, durable=True
            )

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        """Publish a conductor event as persistent JSON."""
        await self._ensure()
        assert self._exchange is not None

        rk = routing_key(self.org, event)
        run_id = payload.get("run_id")
        msg = aio_pika.Message(
            body=orjson.dumps(payload),
            content_type="application/json",
            delivery_mode=DeliveryMode.PERSISTENT,
            message_id=str(uuid4()),
            correlation_id=run_id,
            type=f"conductor.{event}",
            headers={"stage": payload.get("stage")},
        )
        await self._exchange.publish(msg, routing_key=rk)
        logger.info("conductor.event_published", extra=safe_extra({"routing_key": rk, "run_id": run_id}))

    async def close(self) -> None:
        try:
            if self._channel and not self._channel.is_closed:
                await self._channel.close()
        finally:
            if self._conn and not self._conn.is_closed:
                await self._conn.close()
            self._exchange = None
