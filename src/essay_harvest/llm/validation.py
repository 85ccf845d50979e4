"""Schema validation and light repair of LLM JSON output."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator, ValidationError as JSONSchemaValidationError, validators

from .models import ValidationResult

_FENCED_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OBJECT_RE = re.compile(r"(\{.*\}|\[.*\])", re.DOTALL)


def _extend_with_defaults(validator_cls):
    validate_properties = validator_cls.VALIDATORS["properties"]

    def _set_defaults(validator, properties, instance, schema):
        if isinstance(instance, dict):
            for property_name, subschema in properties.items():
                if "default" in subschema and property_name not in instance:
                    instance[property_name] = subschema["default"]
        yield from validate_properties(validator, properties, instance, schema)

    return validators.extend(validator_cls, {"properties": _set_defaults})


DefaultDraft7Validator = _extend_with_defaults(Draft7Validator)


class JSONValidator:
    """Validate provider output against a registered schema.

    Missing properties that declare a ``default`` are filled in. When the raw
    text is not valid JSON, the first fenced block or outermost object/array
    is tried once before giving up.
    """

    def __init__(self, *, schema_base_path: Path) -> None:
        self._schema_base_path = Path(schema_base_path)
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def validate(self, payload: str, schema_path: str) -> ValidationResult:
        schema = self._load_schema(schema_path)
        error: Optional[str] = None
        try:
            return ValidationResult(ok=True, parsed=self._check(payload, schema))
        except (json.JSONDecodeError, JSONSchemaValidationError) as exc:
            error = str(exc)
        repaired = self._repair_payload(payload)
        if repaired is not None and repaired != payload:
            try:
                return ValidationResult(ok=True, parsed=self._check(repaired, schema), repaired=True)
            except (json.JSONDecodeError, JSONSchemaValidationError) as exc:
                error = str(exc)
            return ValidationResult(ok=False, error=error, repaired=True)
        return ValidationResult(ok=False, error=error)

    def describe_schema(self, schema_path: str, *, max_keys: int = 6) -> str:
        """Compact summary used to constrain a retry prompt."""

        schema = self._load_schema(schema_path)
        title = schema.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()
        properties = schema.get("properties")
        if isinstance(properties, dict) and properties:
            keys = list(properties)
            preview = keys[:max_keys] + (["..."] if len(keys) > max_keys else [])
            return f"object with keys: {', '.join(preview)}"
        return Path(schema_path).name

    @staticmethod
    def _check(payload: str, schema: Dict[str, Any]) -> Any:
        parsed = json.loads(payload)
        DefaultDraft7Validator(schema).validate(parsed)
        return parsed

    @staticmethod
    def _repair_payload(payload: str) -> Optional[str]:
        candidate = (payload or "").strip()
        if not candidate:
            return None
        fenced = _FENCED_RE.search(candidate)
        if fenced:
            candidate = fenced.group(1).strip()
        match = _OBJECT_RE.search(candidate)
        return match.group(1) if match else None

    def _load_schema(self, schema_path: str) -> Dict[str, Any]:
        if schema_path in self._schemas:
            return self._schemas[schema_path]
        base = self._schema_base_path.resolve()
        path = (base / schema_path).resolve()
        if base not in path.parents:
            raise ValueError("Schema path escapes base directory")
        if not path.exists():
            raise FileNotFoundError(f"Schema not found: {path}")
        with path.open("r", encoding="utf-8") as handle:
            schema = json.load(handle)
        self._schemas[schema_path] = schema
        return schema


__all__ = ["JSONValidator"]
