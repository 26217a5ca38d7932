from .loader import (
    load_definition_data,
    load_definition_file,
    load_definition_text,
)
from .registry import DefinitionRegistry
from .validation import validate_definition

__all__ = [
    "DefinitionRegistry",
    "load_definition_data",
    "load_definition_file",
    "load_definition_text",
    "validate_definition",
]
