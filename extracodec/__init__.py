"""Build-time generator for router extra codec registries."""

from .aggregator import Aggregator
from .emitter import ArtifactWriteError, RegistryEmitter
from .orchestrator import GenerateOutcome, Orchestrator

__all__ = [
    "Aggregator",
    "ArtifactWriteError",
    "GenerateOutcome",
    "Orchestrator",
    "RegistryEmitter",
]
