"""Unit tests for variable binding validation."""

from __future__ import annotations

import pytest

from draftsmith.drafting.variables import resolve_bindings
from draftsmith.errors import MissingRequiredVariable
from draftsmith.models import VariableDefinition
from tests.fixtures.drafting import make_template


def test_defaults_fill_missing_values() -> None:
    bindings = resolve_bindings(make_template(), {"clientName": "Jane"})
    assert bindings == {"clientName": "Jane", "defendant": "the property owner"}


def test_defaults_fill_blank_values() -> None:
    bindings = resolve_bindings(make_template(), {"clientName": "Jane", "defendant": "  "})
    assert bindings["defendant"] == "the property owner"


def test_supplied_values_win() -> None:
    bindings = resolve_bindings(make_template(), {"clientName": "Jane", "defendant": "Acme"})
    assert bindings["defendant"] == "Acme"


def test_missing_required_names_every_variable() -> None:
    template = make_template(
        variables=[
            VariableDefinition(name="clientName", required=True),
            VariableDefinition(name="demandAmount", type="number", required=True),
            VariableDefinition(name="note"),
        ]
    )
    with pytest.raises(MissingRequiredVariable) as excinfo:
        resolve_bindings(template, {"clientName": ""})
    assert excinfo.value.names == ["clientName", "demandAmount"]
    assert "clientName, demandAmount" in excinfo.value.message


def test_required_with_default_is_satisfied() -> None:
    template = make_template(variables=[VariableDefinition(name="venue", required=True, default_value="Cook County")])
    assert resolve_bindings(template, None) == {"venue": "Cook County"}


def test_extra_bindings_pass_through() -> None:
    bindings = resolve_bindings(make_template(), {"clientName": "Jane", "extra": 3})
    assert bindings["extra"] == 3
