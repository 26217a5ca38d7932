"""Template engine for definition rule strings.

Two placeholder syntaxes are understood:

* ``${Config.apikey}`` - simple dotted lookup.
* The Go-template subset used by community indexer definitions::

      {{ .Keywords }}   {{ .Config.sitelink }}   {{ .Result.title }}
      {{ if .Query.IMDBID }}imdb{{ else if .Keywords }}q{{ else }}all{{ end }}
      {{ range .Categories }}&cat={{ . }}{{ end }}
      {{ join .Categories "," }}   {{ re_replace .Keywords "\\s+" "." }}
      {{ if and .Config.a (eq .Config.b "x") }}...{{ end }}

Missing values render as empty strings.  Templates are parsed once and
cached; evaluation is pure given the context.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

_ACTION_RE = re.compile(r"\{\{-?\s*(.*?)\s*-?\}\}", re.DOTALL)
_DOLLAR_RE = re.compile(r"\$\{\s*([\w.]+)\s*\}")
_TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"|`[^`]*`|\(|\)|[^\s()]+')
_ESCAPE_RE = re.compile(r"\\(.)")
_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"'}

Escape = Callable[[str], str]


class TemplateError(ValueError):
    """Malformed template (unbalanced if/range/end)."""


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass
class _Text:
    text: str


@dataclass
class _Action:
    expr: str


@dataclass
class _If:
    cond: str
    then: list[Any] = field(default_factory=list)
    otherwise: list[Any] = field(default_factory=list)


@dataclass
class _Range:
    expr: str
    body: list[Any] = field(default_factory=list)
    otherwise: list[Any] = field(default_factory=list)


def _tokenize(template: str) -> list[tuple[str, str]]:
    parts: list[tuple[str, str]] = []
    pos = 0
    for m in _ACTION_RE.finditer(template):
        if m.start() > pos:
            parts.append(("text", template[pos : m.start()]))
        parts.append(("action", m.group(1).strip()))
        pos = m.end()
    if pos < len(template):
        parts.append(("text", template[pos:]))
    return parts


def _parse(tokens: list[tuple[str, str]]) -> list[Any]:
    root: list[Any] = []
    # Stack of (node, active branch list, closes_on_end)
    stack: list[tuple[Any, list[Any], bool]] = []
    current = root

    for kind, value in tokens:
        if kind == "text":
            current.append(_Text(value))
            continue
        if value.startswith("/*") or not value:
            continue

        keyword, _, rest = value.partition(" ")
        if keyword == "if":
            node = _If(cond=rest.strip())
            current.append(node)
            stack.append((node, current, True))
            current = node.then
        elif keyword == "range":
            node = _Range(expr=rest.strip())
            current.append(node)
            stack.append((node, current, True))
            current = node.body
        elif keyword == "else":
            if not stack:
                raise TemplateError("'else' without 'if'")
            node, parent, _ = stack[-1]
            rest = rest.strip()
            if rest.startswith("if "):
                nested = _If(cond=rest[3:].strip())
                node.otherwise.append(nested)
                # Shares the outer 'end'.
                stack.append((nested, node.otherwise, False))
                current = nested.then
            else:
                current = node.otherwise
        elif keyword == "end":
            if not stack:
                raise TemplateError("'end' without 'if' or 'range'")
            while True:
                _, parent, closes = stack.pop()
                if closes:
                    break
            current = parent
        else:
            current.append(_Action(value))

    if stack:
        raise TemplateError("unterminated 'if' or 'range'")
    return root


@lru_cache(maxsize=1024)
def _compile(template: str) -> tuple[Any, ...]:
    return tuple(_parse(_tokenize(template)))


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------


def lookup(context: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path (``.Config.apikey`` or ``Config.apikey``)."""
    value: Any = context
    for part in path.strip(".").split("."):
        if not part:
            continue
        if isinstance(value, Mapping):
            value = value.get(part)
        elif isinstance(value, (list, tuple)) and part.isdigit():
            idx = int(part)
            value = value[idx] if idx < len(value) else None
        else:
            value = getattr(value, part, None)
        if value is None:
            return None
    return value


def truthy(value: Any) -> bool:
    if value is None or value is False:
        return False
    if isinstance(value, (str, list, tuple, dict, set, frozenset)):
        return len(value) > 0
    if isinstance(value, (int, float)):
        return value != 0
    return True


def render_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(render_value(v) for v in value)
    return str(value)


def _unquote(token: str) -> str:
    if token.startswith("`"):
        return token[1:-1]
    return _ESCAPE_RE.sub(
        lambda m: _ESCAPES.get(m.group(1), "\\" + m.group(1)), token[1:-1]
    )


def _split_args(tokens: list[str]) -> list[Any]:
    """Group parenthesized sub-expressions into nested lists."""
    out: list[Any] = []
    stack: list[list[Any]] = [out]
    for tok in tokens:
        if tok == "(":
            group: list[Any] = []
            stack[-1].append(group)
            stack.append(group)
        elif tok == ")":
            if len(stack) > 1:
                stack.pop()
        else:
            stack[-1].append(tok)
    return out


class TemplateEngine:
    """Expand placeholders against a context mapping."""

    def __init__(self) -> None:
        self._functions: dict[str, Callable[..., Any]] = {
            "and": lambda *a: next(
                (x for x in a if not truthy(x)), a[-1] if a else None
            ),
            "or": lambda *a: next((x for x in a if truthy(x)), a[-1] if a else None),
            "not": lambda a: not truthy(a),
            "eq": lambda a, *b: any(render_value(a) == render_value(x) for x in b),
            "ne": lambda a, b: render_value(a) != render_value(b),
            "len": lambda a: len(a) if a is not None else 0,
            "join": lambda items, sep="": sep.join(
                render_value(i) for i in items or ()
            ),
            "re_replace": lambda s, pat, repl: re.sub(
                pat, go_replacement(repl), render_value(s)
            ),
            "print": lambda *a: "".join(render_value(x) for x in a),
        }

    def expand(
        self,
        template: str,
        context: Mapping[str, Any],
        escape: Escape | None = None,
    ) -> str:
        """Render *template*; *escape* is applied to substituted values only."""
        if not template:
            return ""
        if "${" in template:
            template = _DOLLAR_RE.sub(
                lambda m: self._escaped(lookup(context, m.group(1)), escape),
                template,
            )
        if "{{" not in template:
            return template
        nodes = _compile(template)
        return self._render(nodes, context, context, escape)

    def check(self, template: str) -> None:
        """Parse *template* without rendering it.

        Raises:
            TemplateError: Unbalanced if/range/end.
        """
        if template and "{{" in template:
            _compile(template)

    # -- internals --------------------------------------------------------

    @staticmethod
    def _escaped(value: Any, escape: Escape | None) -> str:
        text = render_value(value)
        return escape(text) if escape else text

    def _render(
        self,
        nodes: tuple[Any, ...] | list[Any],
        context: Mapping[str, Any],
        dot: Any,
        escape: Escape | None,
    ) -> str:
        out: list[str] = []
        for node in nodes:
            if isinstance(node, _Text):
                out.append(node.text)
            elif isinstance(node, _Action):
                value = self.evaluate(node.expr, context, dot)
                out.append(self._escaped(value, escape))
            elif isinstance(node, _If):
                branch = (
                    node.then
                    if truthy(self.evaluate(node.cond, context, dot))
                    else node.otherwise
                )
                out.append(self._render(branch, context, dot, escape))
            elif isinstance(node, _Range):
                items = self.evaluate(node.expr, context, dot)
                if truthy(items):
                    for item in items:
                        out.append(self._render(node.body, context, item, escape))
                else:
                    out.append(self._render(node.otherwise, context, dot, escape))
        return "".join(out)

    def evaluate(self, expr: str, context: Mapping[str, Any], dot: Any = None) -> Any:
        """Evaluate a single pipeline-free expression."""
        args = _split_args(_TOKEN_RE.findall(expr))
        return self._eval_args(args, context, context if dot is None else dot)

    def _eval_args(self, args: list[Any], context: Mapping[str, Any], dot: Any) -> Any:
        if not args:
            return None
        head = args[0]
        if isinstance(head, str) and head in self._functions:
            values = [self._eval_term(a, context, dot) for a in args[1:]]
            try:
                return self._functions[head](*values)
            except (TypeError, re.error):
                return None
        return self._eval_term(head, context, dot)

    def _eval_term(self, term: Any, context: Mapping[str, Any], dot: Any) -> Any:
        if isinstance(term, list):
            return self._eval_args(term, context, dot)
        if term.startswith(('"', "`")):
            return _unquote(term)
        if term == ".":
            return dot
        if term.startswith("."):
            # Inside range, ".Field" refers to the current item first.
            if dot is not context and isinstance(dot, Mapping):
                value = lookup(dot, term)
                if value is not None:
                    return value
            return lookup(context, term)
        if term in ("true", "false"):
            return term == "true"
        if re.fullmatch(r"-?\d+", term):
            return int(term)
        return term


def go_replacement(repl: str) -> str:
    """Translate Go-style ``$1`` group references to Python's ``\\1``."""
    return re.sub(r"\$\{?(\d+)\}?", r"\\g<\1>", repl)
