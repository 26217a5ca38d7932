"""Adapters to convert Pydantic validation models to domain models."""

from __future__ import annotations

from typing import Any

from indexarr.domain import definitions as domain
from indexarr.infrastructure.categories import get_category, resolve_category_id
from indexarr.infrastructure.definitions import validation_schema as infra


def _template(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_domain_filters(
    pydantic: list[infra.FilterModel],
) -> tuple[domain.FilterStep, ...]:
    return tuple(domain.FilterStep(name=f.name, args=f.args) for f in pydantic)


def to_domain_errors(
    pydantic: list[infra.ErrorModel],
) -> tuple[domain.ErrorRule, ...]:
    return tuple(
        domain.ErrorRule(
            selector=e.selector,
            message=e.message_text,
            message_selector=e.message_selector,
        )
        for e in pydantic
    )


def to_domain_setting(pydantic: infra.SettingModel) -> domain.SettingField:
    return domain.SettingField(
        name=pydantic.name,
        label=pydantic.label or pydantic.name,
        type=pydantic.type,  # type: ignore[arg-type]
        required=pydantic.required,
        default=pydantic.default,
        placeholder=pydantic.placeholder,
        help_text=pydantic.help_text,
        options=pydantic.options,
    )


def to_domain_capabilities(pydantic: infra.CapsModel) -> domain.Capabilities:
    """Convert caps; simple ``categories`` entries become mappings too."""
    mappings: list[domain.CategoryMapping] = []
    for m in pydantic.categorymappings:
        canonical = resolve_category_id(m.cat)
        if canonical is None:
            continue
        mappings.append(
            domain.CategoryMapping(
                source_id=m.id,
                canonical_id=canonical,
                description=m.desc,
                default=m.default,
            )
        )
    for source_id, name in pydantic.categories.items():
        canonical = resolve_category_id(name)
        if canonical is None:
            continue
        mappings.append(
            domain.CategoryMapping(
                source_id=source_id,
                canonical_id=canonical,
                description=get_category(canonical).name
                if get_category(canonical)
                else name,
            )
        )

    return domain.Capabilities(
        modes={mode: tuple(params) for mode, params in pydantic.modes.items()},
        category_mappings=tuple(mappings),
        category_scheme=pydantic.categoryscheme,
        supports_pagination=pydantic.allowpagination,
        supports_info_hash=pydantic.allowinfohash,
        limit_default=pydantic.limitsdefault,
        limit_max=pydantic.limitsmax,
    )


def to_domain_auth(pydantic: infra.AuthModel) -> domain.AuthRule:
    return domain.AuthRule(
        method=pydantic.method.strip().lower(),  # type: ignore[arg-type]
        params=dict(pydantic.params),
    )


def to_domain_login(pydantic: infra.LoginModel) -> domain.LoginRule:
    return domain.LoginRule(
        method=pydantic.method,  # type: ignore[arg-type]
        path=pydantic.path,
        inputs={k: _template(v) or "" for k, v in pydantic.inputs.items()},
        form_selector=pydantic.form,
        submit_path=pydantic.submitpath,
        error_rules=to_domain_errors(pydantic.error),
        test=domain.LoginTest(path=pydantic.test.path, selector=pydantic.test.selector)
        if pydantic.test
        else None,
    )


def to_domain_field(pydantic: infra.FieldModel) -> domain.FieldRule:
    return domain.FieldRule(
        selector=pydantic.selector,
        attribute=pydantic.attribute,
        text=_template(pydantic.text),
        filters=to_domain_filters(pydantic.filters),
        optional=pydantic.optional,
        default=_template(pydantic.default),
        remove=pydantic.remove,
    )


def to_domain_path(pydantic: infra.SearchPathModel) -> domain.SearchPath:
    return domain.SearchPath(
        path=pydantic.path,
        method=pydantic.method,  # type: ignore[arg-type]
        inputs={k: _template(v) or "" for k, v in pydantic.inputs.items()},
        inherit_inputs=pydantic.inheritinputs,
        categories=tuple(pydantic.categories),
        modes=tuple(pydantic.modes),
        response_type=pydantic.response.type  # type: ignore[arg-type]
        if pydantic.response
        else None,
    )


def to_domain_rows(pydantic: infra.RowsModel) -> domain.RowSelector:
    count = pydantic.count
    return domain.RowSelector(
        selector=pydantic.selector,
        after=pydantic.after,
        remove=pydantic.remove,
        multiple=pydantic.multiple,
        date_headers=to_domain_field(pydantic.dateheaders)
        if pydantic.dateheaders
        else None,
        count=count if isinstance(count, str) or count is None else count.selector,
    )


def to_domain_search(pydantic: infra.SearchModel) -> domain.SearchRule:
    paths = [to_domain_path(p) for p in pydantic.paths]
    if not paths and pydantic.path:
        # Legacy single ``path`` form.
        paths.append(domain.SearchPath(path=pydantic.path))

    return domain.SearchRule(
        paths=tuple(paths),
        rows=to_domain_rows(pydantic.rows),
        fields={name: to_domain_field(f) for name, f in pydantic.fields.items()},
        inputs={k: _template(v) or "" for k, v in pydantic.inputs.items()},
        headers={
            k: _template(v[0] if isinstance(v, list) and v else v) or ""
            for k, v in pydantic.headers.items()
        },
        keywords_filters=to_domain_filters(pydantic.keywordsfilters),
        allow_empty_inputs=pydantic.allowemptyinputs,
        error_rules=to_domain_errors(pydantic.error),
    )


def to_domain_definition(
    pydantic: infra.SourceDefinitionPydantic,
) -> domain.SourceDefinition:
    """Convert validated Pydantic model to pure domain model."""
    return domain.SourceDefinition(
        id=pydantic.id,
        name=pydantic.name,
        protocol=pydantic.protocol.lower(),
        access_tier=pydantic.type.lower(),
        links=tuple(pydantic.links),
        search=to_domain_search(pydantic.search),
        description=pydantic.description,
        language=pydantic.language,
        encoding=pydantic.encoding,
        legacy_links=tuple(pydantic.legacylinks),
        request_delay=pydantic.requestdelay,
        capabilities=to_domain_capabilities(pydantic.caps),
        settings=tuple(to_domain_setting(s) for s in pydantic.settings),
        auth=to_domain_auth(pydantic.auth),
        login=to_domain_login(pydantic.login) if pydantic.login else None,
        extra=dict(pydantic.model_extra or {}),
    )
