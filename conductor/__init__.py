from conductor.pipeline.conductor import Conductor
from conductor.models.results import ConductorResult

__all__ = ["Conductor", "ConductorResult"]
