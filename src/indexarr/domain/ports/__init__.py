from .clock import Clock
from .definition_registry import DefinitionRegistryPort
from .source_search_engine import SourceSearchEnginePort

__all__ = [
    "Clock",
    "DefinitionRegistryPort",
    "SourceSearchEnginePort",
]
