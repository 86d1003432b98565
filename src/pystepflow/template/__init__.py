"""Variable interpolation engine and condition evaluator."""

from pystepflow.template.expressions import (
    Field,
    Index,
    Reference,
    Template,
    evaluate_condition,
    format_value,
    parse_reference,
    parse_template,
    references,
    render,
    render_config,
    resolve,
)

__all__ = [
    "Field",
    "Index",
    "Reference",
    "Template",
    "parse_reference",
    "parse_template",
    "references",
    "resolve",
    "render",
    "render_config",
    "format_value",
    "evaluate_condition",
]
