"""Shared validation helpers for settings and request models."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

_CATEGORY_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]{0,49}$")


def normalize_category(value: str) -> str:
    """Lower-case and validate a category name.

    Raises ValueError for names that are empty, longer than 50 characters, or
    contain anything other than letters, digits, '-' and '_'.
    """
    category = value.strip().lower()
    if not _CATEGORY_PATTERN.match(category):
        raise ValueError(f"Invalid category name: {value!r}")
    return category


def parse_string_list(value: str | list[str]) -> list[str]:
    """Parse a non-empty string list from a JSON array string, a comma-separated string, or a list.

    Raises ValueError for empty values or malformed JSON.
    """
    if isinstance(value, list):
        if not value:
            raise ValueError("String list value must not be empty")
        return value

    stripped = value.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        result = parsed
    else:
        result = [item.strip() for item in stripped.split(",") if item.strip()]

    if not result:
        raise ValueError("String list value must not be empty")
    return result


class StringListEnvSettingsSource(EnvSettingsSource):
    """Env source that hands cors_origins to its validator as the raw string.

    pydantic-settings would otherwise try to JSON-decode list fields before
    validators run, rejecting the comma-separated form.
    """

    string_list_fields = frozenset({"cors_origins"})

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in self.string_list_fields and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
