"""Variable binding validation at the pipeline boundary."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from draftsmith.errors import MissingRequiredVariable
from draftsmith.models import Template, VariableBindings


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def resolve_bindings(template: Template, bindings: Optional[Mapping[str, Any]]) -> VariableBindings:
    """Fill blank values from template defaults and enforce required variables.

    Bindings for names the template does not define are passed through; they
    still substitute if a prompt happens to reference them.
    """
    resolved: Dict[str, Any] = dict(bindings or {})
    missing: list[str] = []
    for definition in template.variables:
        value = resolved.get(definition.name)
        if _is_blank(value) and definition.default_value is not None:
            value = definition.default_value
            resolved[definition.name] = value
        if definition.required and _is_blank(value):
            missing.append(definition.name)
    if missing:
        raise MissingRequiredVariable(missing)
    return resolved
