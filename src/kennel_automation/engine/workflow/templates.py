"""`{{Variable}}` placeholder rendering for message actions.

Variables come from the event's `context.data`. A placeholder is looked up
verbatim first (``{{FirstName}}`` -> ``data["FirstName"]``), then in
snake_case (``data["first_name"]``), then in camelCase (``data["firstName"]``).
Placeholders with no value are left as-is so a broken template is visible in
the sent message rather than silently blanked.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def _snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _camel(name: str) -> str:
    return name[:1].lower() + name[1:]


def lookup_variable(name: str, data: Mapping[str, Any]) -> Any | None:
    for key in (name, _snake(name), _camel(name)):
        if key in data and data[key] is not None:
            return data[key]
    return None


def render_template(template: str, data: Mapping[str, Any]) -> str:
    def _sub(match: re.Match[str]) -> str:
        value = lookup_variable(match.group(1), data)
        return match.group(0) if value is None else str(value)

    return _PLACEHOLDER.sub(_sub, template)
