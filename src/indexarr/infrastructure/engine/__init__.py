from .definition_engine import DefinitionSearchEngine, parse_cookie_string
from .filters import FilterEngine
from .request_builder import RequestBuilder, SearchRequest, build_keywords
from .response_parser import ResponseParser
from .selectors import (
    Document,
    Row,
    SelectorEngine,
    detect_response_type,
    parse_document,
)
from .template import TemplateEngine, TemplateError

__all__ = [
    "DefinitionSearchEngine",
    "Document",
    "FilterEngine",
    "RequestBuilder",
    "ResponseParser",
    "Row",
    "SearchRequest",
    "SelectorEngine",
    "TemplateEngine",
    "TemplateError",
    "build_keywords",
    "detect_response_type",
    "parse_cookie_string",
    "parse_document",
]
