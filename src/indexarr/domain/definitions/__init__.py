from .definition import (
    ACCESS_TIERS,
    AUTH_METHODS,
    PROTOCOLS,
    SEARCH_MODES,
    AccessTier,
    AuthMethod,
    AuthRule,
    Capabilities,
    CategoryMapping,
    ErrorRule,
    FieldRule,
    FilterStep,
    LoginMethod,
    LoginRule,
    LoginTest,
    ResponseType,
    RowSelector,
    SearchMode,
    SearchPath,
    SearchRule,
    SettingField,
    SourceDefinition,
    SourceProtocol,
)
from .exceptions import (
    DefinitionError,
    DefinitionLoadError,
    DefinitionNotFoundError,
    DefinitionValidationError,
    DuplicateDefinitionError,
)
from .registered import PROVENANCES, DefinitionFilter, Provenance, RegisteredDefinition

__all__ = [
    "ACCESS_TIERS",
    "AUTH_METHODS",
    "PROTOCOLS",
    "PROVENANCES",
    "SEARCH_MODES",
    "AccessTier",
    "AuthMethod",
    "AuthRule",
    "Capabilities",
    "CategoryMapping",
    "DefinitionError",
    "DefinitionFilter",
    "DefinitionLoadError",
    "DefinitionNotFoundError",
    "DefinitionValidationError",
    "DuplicateDefinitionError",
    "ErrorRule",
    "FieldRule",
    "FilterStep",
    "LoginMethod",
    "LoginRule",
    "LoginTest",
    "Provenance",
    "RegisteredDefinition",
    "ResponseType",
    "RowSelector",
    "SearchMode",
    "SearchPath",
    "SearchRule",
    "SettingField",
    "SourceDefinition",
    "SourceProtocol",
]
