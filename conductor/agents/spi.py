# conductor/agents/spi.py
from __future__ import annotations
from typing import Optional, Protocol

from pydantic import BaseModel

from conductor.models.practice import Practice
from conductor.models.state import PipelineState, Stage
from conductor.models.content import DraftedContent
from conductor.models.topics import Topic


class StageHandler(Protocol):
    """One pipeline stage. Reads prior outputs from state, returns its own; never persists runs."""
    name: Stage

    async def run(self, state: PipelineState) -> BaseModel: ...


class DraftingProvider(Protocol):
    async def draft(self, topic: Topic, practice: Practice, *, run_id: Optional[str] = None) -> DraftedContent: ...
