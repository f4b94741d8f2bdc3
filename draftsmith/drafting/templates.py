"""Template resolution and YAML seed loading."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from draftsmith.db.base import TemplateStore
from draftsmith.errors import InvalidTemplate
from draftsmith.models import Template


class TemplateResolver:
    """Loads templates from the store and validates their structure."""

    def __init__(self, store: TemplateStore):
        self.store = store

    async def resolve(self, template_id: str, *, require_active: bool = False) -> Template:
        data = await self.store.get_template_data(template_id)
        if data is None:
            raise InvalidTemplate(f"Template {template_id} not found")
        try:
            template = Template.model_validate(data)
        except ValidationError as exc:
            first = exc.errors()[0] if exc.errors() else {}
            where = ".".join(str(p) for p in first.get("loc", ()))
            raise InvalidTemplate(
                f"Template {template_id} is malformed: {where or 'root'}: {first.get('msg', exc)}"
            ) from exc
        if require_active and not template.is_active:
            raise InvalidTemplate(f"Template {template_id} is not active")
        return template


def load_template_file(path: str | Path) -> Template:
    """Read a template definition from YAML (used to seed the store)."""
    resolved = Path(path)
    if not resolved.exists():
        raise FileNotFoundError(f"Missing template file: {path}")
    with resolved.open("r", encoding="utf-8") as file_obj:
        loaded = yaml.safe_load(file_obj) or {}
    if not isinstance(loaded, dict):
        raise InvalidTemplate(f"Expected object at root of template file: {path}")
    loaded.setdefault("template_id", resolved.stem)
    try:
        return Template.model_validate(loaded)
    except ValidationError as exc:
        raise InvalidTemplate(f"Template file {path} is malformed: {exc}") from exc
