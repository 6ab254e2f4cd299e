"""JSON Schema validation for diagram and config documents."""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Iterable, List, Tuple

from jsonschema import Draft7Validator, ValidationError

from .resources import load_config_schema, load_diagram_schema


@lru_cache(maxsize=None)
def _diagram_validator() -> Draft7Validator:
    schema = load_diagram_schema()
    Draft7Validator.check_schema(schema)
    return Draft7Validator(schema)


@lru_cache(maxsize=None)
def _config_validator() -> Draft7Validator:
    schema = load_config_schema()
    Draft7Validator.check_schema(schema)
    return Draft7Validator(schema)


def _collect(validator: Draft7Validator, data: Any) -> List[ValidationError]:
    return sorted(validator.iter_errors(data), key=lambda err: [str(p) for p in err.absolute_path])


def validate_diagram(data: Any) -> Tuple[bool, List[str]]:
    """Validate a parsed diagram document.

    Returns:
        Tuple of (is_valid, list_of_error_messages)
    """
    errors = _collect(_diagram_validator(), data)
    return not errors, format_validation_errors(errors)


def validate_config(data: Any) -> Tuple[bool, List[str]]:
    errors = _collect(_config_validator(), data)
    return not errors, format_validation_errors(errors)


def format_validation_errors(errors: Iterable[ValidationError]) -> List[str]:
    """One ``<json-pointer>: <message>`` line per error; the document itself is ``root``."""
    lines: List[str] = []
    for err in errors:
        path = "".join(f"/{part}" for part in err.absolute_path) or "root"
        lines.append(f"{path}: {err.message}")
    return lines


__all__ = ["format_validation_errors", "validate_config", "validate_diagram"]
