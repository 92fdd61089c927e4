# conductor/infra/notify.py
from __future__ import annotations

import logging
from typing import Any, Dict, Protocol, Sequence

from conductor.logging import safe_extra

log = logging.getLogger("conductor.infra.notify")


class Notifier(Protocol):
    async def publish(self, event: str, payload: Dict[str, Any]) -> None: ...


class FanoutNotifier:
    """Delivers every event to each sink; one sink failing does not block the rest."""

    def __init__(self, sinks: Sequence[Notifier]):
        self._sinks = list(sinks)

    @property
    def sinks(self):
        return list(self._sinks)

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        errors = []
        for sink in self._sinks:
            try:
                await sink.publish(event, payload)
            except Exception as e:
                log.exception("notify.sink_failed", extra=safe_extra({"event": event, "sink": type(sink).__name__}))
                errors.append(e)
        if errors:
            raise errors[0]
