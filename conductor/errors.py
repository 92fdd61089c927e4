"""Error taxonomy shared by the store, the stage handlers and the engine."""

from __future__ import annotations


class ConductorError(Exception):
    """Base class for every failure the pipeline knows how to record."""


class ValidationError(ConductorError):
    """Bad caller input; raised by the facade before any run exists."""


class PersistenceError(ConductorError):
    """The run, practice or content store is unreachable or rejected a write."""


class ProviderError(ConductorError):
    """A research, drafting, LLM, OAuth or notification provider failed."""


class StateError(ConductorError):
    """An invalid pipeline transition was attempted."""
