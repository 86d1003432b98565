"""
Interpolation tokens and condition expressions.

A config string may contain `{{identifier.path}}` tokens. The identifier is
the name of an earlier node; the path walks into that node's output with
field (`.title`, `["content-type"]`) and index (`[0]`) segments:

    "Summarize: {{Scrape.markdown}}"
    "{{Search.web[0].title}}"
    "{{@node-3:Scrape.metadata.title}}"   # editor form, label after the colon

Templates are parsed into a small AST (literal text and Reference tokens)
so that a missing node (UnresolvedReference) and a missing path inside an
existing node (PathNotFound) are told apart structurally.

Rendering formats values as: strings verbatim, None as "", booleans as
true/false, numbers with str(), mappings and lists as JSON.

Condition nodes render their expression first and then evaluate the text
with a whitelisted AST evaluator (literals, true/false/null, comparisons,
and/or/not, arithmetic, `in`). Nothing is ever passed to eval().

Only the standard library is used here besides the error classes, which are
themselves standard-library only; exported programs embed this module.
"""

from __future__ import annotations

import ast
import json
import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Union

from pystepflow.core.errors import (
    ActionInvocationError,
    InvalidGraph,
    PathNotFound,
    UnresolvedReference,
)

TOKEN_PATTERN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)
_PATH_PATTERN = re.compile(
    r"""\.\s*(?P<field>[^.\[\]]+?)\s*(?=\.|\[|$)"""
    r"""|\[\s*(?P<index>\d+)\s*\]"""
    r"""|\[\s*(?P<quote>["'])(?P<key>.*?)(?P=quote)\s*\]"""
)


@dataclass(frozen=True)
class Field:
    name: str

    def __str__(self) -> str:
        return f".{self.name}"


@dataclass(frozen=True)
class Index:
    position: int

    def __str__(self) -> str:
        return f"[{self.position}]"


PathSegment = Union[Field, Index]


@dataclass(frozen=True)
class Reference:
    """One `{{...}}` token: a node name and a path into its output."""

    identifier: str
    path: tuple[PathSegment, ...] = ()
    token: str = ""

    @property
    def path_text(self) -> str:
        return "".join(str(segment) for segment in self.path).lstrip(".")


@dataclass(frozen=True)
class Template:
    parts: tuple[Union[str, Reference], ...]

    @property
    def references(self) -> tuple[Reference, ...]:
        return tuple(part for part in self.parts if isinstance(part, Reference))

    @property
    def is_literal(self) -> bool:
        return not self.references

    @property
    def single_reference(self) -> Reference | None:
        """The reference when the whole template is exactly one token."""
        if len(self.parts) == 1 and isinstance(self.parts[0], Reference):
            return self.parts[0]
        return None


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_reference(expression: str, token: str | None = None) -> Reference:
    """Parse the inside of a token, e.g. `Search.web[0].title`.

    Raises:
        InvalidGraph: If the token is empty or its path is malformed
    """
    token = token if token is not None else "{{" + expression + "}}"
    text = expression.strip()
    if text.startswith("@") and ":" in text:
        text = text.split(":", 1)[1].strip()

    split = len(text)
    for marker in (".", "["):
        position = text.find(marker)
        if position != -1:
            split = min(split, position)
    identifier = text[:split].strip()
    if not identifier:
        raise InvalidGraph(f"Malformed interpolation token {token!r}: missing node name")

    rest = text[split:].rstrip()
    path: list[PathSegment] = []
    position = 0
    while position < len(rest):
        match = _PATH_PATTERN.match(rest, position)
        if match is None or match.end() == position:
            raise InvalidGraph(f"Malformed interpolation token {token!r} at {rest[position:]!r}")
        if match.group("index") is not None:
            path.append(Index(int(match.group("index"))))
        elif match.group("quote") is not None:
            path.append(Field(match.group("key")))
        else:
            path.append(Field(match.group("field")))
        position = match.end()
    return Reference(identifier=identifier, path=tuple(path), token=token)


@lru_cache(maxsize=1024)
def parse_template(text: str) -> Template:
    """Split `text` into literal segments and references."""
    parts: list[Union[str, Reference]] = []
    last = 0
    for match in TOKEN_PATTERN.finditer(text):
        if match.start() > last:
            parts.append(text[last : match.start()])
        parts.append(parse_reference(match.group(1), match.group(0)))
        last = match.end()
    if last < len(text):
        parts.append(text[last:])
    return Template(tuple(parts))


def references(config: Any) -> list[str]:
    """Node names referenced anywhere in a config, in first-seen order."""
    seen: list[str] = []
    for text in _strings(config):
        for reference in parse_template(text).references:
            if reference.identifier not in seen:
                seen.append(reference.identifier)
    return seen


def _strings(value: Any):
    if isinstance(value, str):
        yield value
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from _strings(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _strings(item)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def resolve(reference: Reference, namespace: Mapping[str, Any]) -> Any:
    """Look a reference up in the namespace.

    Raises:
        UnresolvedReference: The node has no output in the namespace
        PathNotFound: The node exists but the path does not
    """
    if reference.identifier not in namespace:
        raise UnresolvedReference(reference.identifier, reference.token or None)

    current = namespace[reference.identifier]
    for segment in reference.path:
        if isinstance(segment, Index):
            if isinstance(current, (list, tuple)) and segment.position < len(current):
                current = current[segment.position]
                continue
        elif isinstance(current, Mapping):
            if segment.name in current:
                current = current[segment.name]
                continue
        elif isinstance(current, (list, tuple)) and segment.name.isdigit():
            if int(segment.name) < len(current):
                current = current[int(segment.name)]
                continue
        raise PathNotFound(reference.identifier, reference.path_text, reference.token or None)
    return current


def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def render(template: Union[str, Template], namespace: Mapping[str, Any]) -> str:
    """Substitute every token of `template` from `namespace`."""
    parsed = parse_template(template) if isinstance(template, str) else template
    chunks = []
    for part in parsed.parts:
        if isinstance(part, Reference):
            chunks.append(format_value(resolve(part, namespace)))
        else:
            chunks.append(part)
    return "".join(chunks)


def render_config(config: Any, namespace: Mapping[str, Any]) -> Any:
    """Render every string leaf of a (nested) config; other leaves pass through."""
    if isinstance(config, str):
        return render(config, namespace)
    if isinstance(config, Mapping):
        return {key: render_config(value, namespace) for key, value in config.items()}
    if isinstance(config, (list, tuple)):
        return [render_config(item, namespace) for item in config]
    return config


# ---------------------------------------------------------------------------
# Condition expressions
# ---------------------------------------------------------------------------

_CONSTANTS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": None,
    "True": True,
    "False": False,
    "None": None,
}

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
}

_COMPARE = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_MAX_INT_BITS = 256

_JS_OPERATORS = (("===", "=="), ("!==", "!="), ("&&", " and "), ("||", " or "))


def evaluate_condition(expression: Any) -> bool:
    """Evaluate a rendered condition to a boolean.

    Booleans pass through; the strings "true"/"false" are literals.
    JavaScript style `===`, `!==`, `&&` and `||` are accepted.

    Raises:
        ActionInvocationError: Empty, malformed or unsupported expression
    """
    if isinstance(expression, bool):
        return expression
    text = str(expression if expression is not None else "").strip()
    if not text:
        raise ActionInvocationError("Condition expression is empty")
    if text in ("true", "false"):
        return text == "true"

    for js, py in _JS_OPERATORS:
        text = text.replace(js, py)

    try:
        tree = ast.parse(text.strip(), mode="eval")
    except SyntaxError as e:
        raise ActionInvocationError(f"Invalid condition expression {expression!r}: {e.msg}") from None
    try:
        return bool(_evaluate(tree.body))
    except (TypeError, ZeroDivisionError) as e:
        raise ActionInvocationError(f"Cannot evaluate condition {expression!r}: {e}") from None


def _evaluate(node: ast.AST) -> Any:
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        if node.id in _CONSTANTS:
            return _CONSTANTS[node.id]
        raise ActionInvocationError(f"Unknown name in condition: {node.id!r}")
    if isinstance(node, ast.BoolOp):
        values = [_evaluate(value) for value in node.values]
        if isinstance(node.op, ast.And):
            return all(values)
        return any(values)
    if isinstance(node, ast.UnaryOp):
        operand = _evaluate(node.operand)
        if isinstance(node.op, ast.Not):
            return not operand
        if isinstance(node.op, ast.USub):
            return -_number(operand)
        if isinstance(node.op, ast.UAdd):
            return +_number(operand)
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        left, right = _number(_evaluate(node.left)), _number(_evaluate(node.right))
        return _BINARY[type(node.op)](left, right)
    if isinstance(node, ast.Compare):
        left = _evaluate(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = _evaluate(comparator)
            if not _COMPARE[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, (ast.List, ast.Tuple)):
        return [_evaluate(element) for element in node.elts]
    raise ActionInvocationError(f"Unsupported condition syntax: {type(node).__name__}")


def _number(value: Any) -> int | float:
    """Arithmetic operand check: numbers only, integers of bounded size."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ActionInvocationError(
            f"Arithmetic needs numbers, got {type(value).__name__} in condition"
        )
    if isinstance(value, int) and value.bit_length() > _MAX_INT_BITS:
        raise ActionInvocationError("Number too large in condition")
    return value
