"""Semantic checks run when a definition is registered.

Problems found here do not prevent registration: the record carries the
messages (for UI diagnostics) and is excluded from dispatch.
"""

from __future__ import annotations

import re

from indexarr.domain.definitions import (
    ACCESS_TIERS,
    AUTH_METHODS,
    PROTOCOLS,
    SEARCH_MODES,
    SourceDefinition,
)
from indexarr.infrastructure.categories import SOURCE_SCHEMES
from indexarr.infrastructure.engine import FilterEngine, TemplateEngine, TemplateError

from .validation_schema import DEFINITION_ID_RE

_ID_RE = re.compile(DEFINITION_ID_RE)
_TEMPLATES = TemplateEngine()


def _check_template(template: str | None, where: str, errors: list[str]) -> None:
    try:
        _TEMPLATES.check(template or "")
    except TemplateError as e:
        errors.append(f"{where}: {e}")


def validate_definition(definition: SourceDefinition) -> list[str]:
    """Return human readable problems; empty when the definition is usable."""
    errors: list[str] = []

    if not definition.id:
        errors.append("missing id")
    elif not _ID_RE.match(definition.id):
        errors.append(
            f"invalid id {definition.id!r} (lower-case letters, digits, . _ -)"
        )
    if not definition.name:
        errors.append("missing name")
    if not definition.protocol:
        errors.append("missing protocol")
    elif definition.protocol not in PROTOCOLS:
        errors.append(
            f"invalid protocol {definition.protocol!r} "
            f"(expected one of {', '.join(sorted(PROTOCOLS))})"
        )
    if definition.access_tier not in ACCESS_TIERS:
        errors.append(f"invalid access tier {definition.access_tier!r}")
    if definition.auth.method not in AUTH_METHODS:
        errors.append(f"invalid auth method {definition.auth.method!r}")

    if not definition.links:
        errors.append("no links defined")
    else:
        for link in definition.links:
            if not link.startswith(("http://", "https://")):
                errors.append(f"link is not an http(s) URL: {link!r}")

    caps = definition.capabilities
    for mode in caps.modes:
        if mode not in SEARCH_MODES:
            errors.append(f"unknown search mode {mode!r} in caps")
    if "search" not in caps.modes:
        errors.append("caps must support the 'search' mode")
    if caps.category_scheme and caps.category_scheme not in SOURCE_SCHEMES:
        errors.append(f"unknown category scheme {caps.category_scheme!r}")

    if definition.access_tier != "public" and definition.login is None and (
        definition.auth.method in ("none", "form")
    ):
        errors.append(
            f"{definition.access_tier} definition needs a login rule or an auth method"
        )

    search = definition.search
    if search is not None:
        _check_template(search.rows.selector, "search.rows.selector", errors)
        for path in search.paths:
            _check_template(path.path, f"search path {path.path!r}", errors)
            for mode in path.modes:
                if mode not in SEARCH_MODES:
                    errors.append(f"search path {path.path!r}: unknown mode {mode!r}")
        for name, template in search.inputs.items():
            _check_template(template, f"search input {name!r}", errors)
        for name, rule in search.fields.items():
            _check_template(rule.text, f"field {name!r}", errors)
            for step in rule.filters:
                if not FilterEngine.has_filter(step.name):
                    errors.append(f"field {name!r}: unknown filter {step.name!r}")
        if "title" not in {n.lower() for n in search.fields}:
            errors.append("search.fields must define 'title'")

    return errors

