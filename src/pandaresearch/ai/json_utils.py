"""JSON helpers for model output: fence stripping, repair, partial parsing, schema checks."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Mapping

from jiter import from_json
from json_repair import repair_json
from jsonschema import SchemaError
from jsonschema.validators import validator_for
from openai.lib._pydantic import to_strict_json_schema
from pydantic import BaseModel

from .errors import ObjectParseError

LOGGER = logging.getLogger(__name__)

MAX_SCHEMA_ERRORS = 25
_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(?P<body>[\s\S]*?)\s*```$")


def schema_to_json(schema: Any) -> dict[str, Any]:
    """Return ``schema`` as a JSON-schema dict.

    Accepts either a JSON-schema mapping or a pydantic model class.
    """

    if isinstance(schema, Mapping):
        return json.loads(json.dumps(dict(schema)))
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return schema.model_json_schema()
    raise TypeError(f"Unsupported schema type: {type(schema).__name__}")


def strict_json_schema(schema: Any) -> dict[str, Any] | None:
    """Return a variant of ``schema`` accepted by strict structured outputs.

    Strict mode needs ``additionalProperties: false`` on every object and every
    property listed in ``required``. Pydantic models go through the SDK's own
    conversion. Mapping schemas only gain the missing ``additionalProperties``
    flags; ``None`` is returned when one of their objects leaves properties
    optional or allows extra keys, since forcing those would change what the
    schema accepts.
    """

    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return to_strict_json_schema(schema)
    strict = schema_to_json(schema)
    return strict if _make_strict(strict) else None


def _make_strict(node: Any) -> bool:
    if isinstance(node, list):
        return all(_make_strict(item) for item in node)
    if not isinstance(node, dict):
        return True

    properties = node.get("properties")
    if node.get("type") == "object" or isinstance(properties, dict):
        if node.get("additionalProperties", False) is not False:
            return False
        if not isinstance(properties, dict):
            # Free-form objects cannot be expressed strictly.
            return "additionalProperties" in node
        if set(node.get("required") or ()) != set(properties):
            return False
        node["additionalProperties"] = False
        node["required"] = list(properties)

    children: list[Any] = []
    for key in ("properties", "$defs", "definitions"):
        if isinstance(node.get(key), dict):
            children.extend(node[key].values())
    for key in ("items", "anyOf", "allOf", "oneOf"):
        if key in node:
            children.append(node[key])
    return all(_make_strict(child) for child in children)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` or ``` ... ``` wrapper."""

    match = _CODE_FENCE_RE.match(text)
    return match.group("body") if match else text


def parse_model_json(text: str | None) -> Any:
    """Parse a complete model response into JSON, repairing common syntax defects."""

    stripped = strip_code_fence((text or "").strip())
    if not stripped:
        raise ObjectParseError(message="Error parsing response from provider: empty content", raw_text=text)
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        LOGGER.debug("Model JSON is malformed; attempting repair")
    try:
        repaired = repair_json(stripped)
        return json.loads(repaired)
    except (ValueError, TypeError) as exc:
        raise ObjectParseError(
            message=f"Error parsing response from provider: {exc}",
            raw_text=text,
        ) from exc


def parse_partial_json(text: str) -> Any:
    """Best-effort parse of an incomplete JSON document.

    Raises ``ValueError`` when the text is not a prefix of valid JSON.
    """

    return from_json((text or "{}").encode("utf-8"), partial_mode="trailing-strings")


def validate_against_schema(value: Any, schema: Mapping[str, Any]) -> list[str]:
    """Return human-readable schema violations for ``value`` (empty when valid)."""

    validator_cls = validator_for(schema)
    try:
        validator_cls.check_schema(schema)
    except SchemaError as exc:
        return [f"Invalid JSON schema: {exc.message}"]

    issues: list[str] = []
    for issue in validator_cls(schema).iter_errors(value):
        path = _format_schema_path(issue.absolute_path)
        message = issue.message
        if path:
            message = f"{path}: {message}"
        issues.append(message)
        if len(issues) >= MAX_SCHEMA_ERRORS:
            issues.append("Too many validation errors; stopping early.")
            break
    return issues


def _format_schema_path(path: Iterable[Any]) -> str:
    parts: list[str] = []
    for element in path:
        if isinstance(element, int):
            parts.append(f"[{element}]")
        else:
            if parts:
                parts.append(".")
            parts.append(str(element))
    return "".join(parts)


__all__ = [
    "schema_to_json",
    "strict_json_schema",
    "strip_code_fence",
    "parse_model_json",
    "parse_partial_json",
    "validate_against_schema",
]
