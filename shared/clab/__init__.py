"""
clab - multi-perspective repository analysis.

Personas (architect, educator, ...) analyze a repository at file, directory
and module granularity. Every analysis is cached as a note keyed by
(persona, path, level) and reused while fresh, so repeated runs only pay for
what changed or expired.

Usage:
    from clab import AnalysisOrchestrator, LabConfig, OpenRouterClient, PersonaRegistry

    config = LabConfig.from_env()
    persona = PersonaRegistry.from_file(config.personas_file).get("architect")
    client = OpenRouterClient(config.api_key, default_model=config.model)
    result = AnalysisOrchestrator.from_config(config, persona, client).run()
"""

from .config import LabConfig
from .errors import ClabError, ConfigError, ExtractionError, ServiceError, StorageError
from .extraction import extract_json
from .keys import Level, PathKeyCodec
from .model import ModelResponse, ModelService, OpenRouterClient
from .notes import NoteKey, NoteRecord, NoteStore
from .orchestrator import AggregateResult, AnalysisOrchestrator, ItemResult, ItemStatus
from .personas import Persona, PersonaRegistry
from .staleness import StalenessPolicy
from .traversal import TraversalEngine, WorkItem


__all__ = [
    "AggregateResult",
    "AnalysisOrchestrator",
    "ClabError",
    "ConfigError",
    "ExtractionError",
    "ItemResult",
    "ItemStatus",
    "LabConfig",
    "Level",
    "ModelResponse",
    "ModelService",
    "NoteKey",
    "NoteRecord",
    "NoteStore",
    "OpenRouterClient",
    "PathKeyCodec",
    "Persona",
    "PersonaRegistry",
    "ServiceError",
    "StalenessPolicy",
    "StorageError",
    "TraversalEngine",
    "WorkItem",
    "extract_json",
]
