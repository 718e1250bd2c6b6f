"""JSON Schema generation from the Pydantic payload models, and validation against it."""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import jsonschema

from echoes.models import ReportPayload

logger = logging.getLogger(__name__)

SCHEMA_ID = "https://errors-and-echoes.dev/schemas/report-payload.schema.json"


class PayloadValidationError:
    """A single schema violation in a payload."""

    def __init__(self, path: str, message: str, schema_path: str = ""):
        self.path = path
        self.message = message
        self.schema_path = schema_path

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


def _strip_nulls(schema: Any) -> Any:
    """Optional fields are omitted on the wire, never sent as null."""
    if isinstance(schema, dict):
        any_of = schema.get("anyOf")
        if isinstance(any_of, list):
            non_null = [s for s in any_of if s != {"type": "null"}]
            if len(non_null) == 1 and len(non_null) != len(any_of):
                merged = {k: v for k, v in schema.items() if k not in ("anyOf", "default")}
                merged.update(non_null[0])
                schema = merged
        return {k: _strip_nulls(v) for k, v in schema.items() if k != "default" or v is not None}
    if isinstance(schema, list):
        return [_strip_nulls(item) for item in schema]
    return schema


@lru_cache(maxsize=1)
def _cached_schema() -> str:
    schema = ReportPayload.model_json_schema(by_alias=True, mode="serialization")
    schema = _strip_nulls(schema)
    schema["$schema"] = "https://json-schema.org/draft/2020-12/schema"
    schema["$id"] = SCHEMA_ID
    return json.dumps(schema)


def generate_payload_schema() -> dict[str, Any]:
    """JSON Schema describing a report payload as sent on the wire."""
    return json.loads(_cached_schema())


def save_payload_schema(output_dir: Path) -> Path:
    """Write the payload schema to ``report-payload.schema.json`` in ``output_dir``."""
    output_dir.mkdir(parents=True, exist_ok=True)
    schema_file = output_dir / "report-payload.schema.json"
    with open(schema_file, "w", encoding="utf-8") as f:
        json.dump(generate_payload_schema(), f, indent=2, ensure_ascii=False)
    logger.debug(f"Saved schema: {schema_file}")
    return schema_file


def validate_payload(payload: dict[str, Any]) -> list[PayloadValidationError]:
    """Validate a wire payload. Returns an empty list when valid."""
    validator = jsonschema.Draft202012Validator(generate_payload_schema())
    errors = []
    for error in sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.path]):
        path = "/".join(str(p) for p in error.absolute_path) or "<root>"
        schema_path = "/".join(str(p) for p in error.absolute_schema_path)
        errors.append(PayloadValidationError(path, error.message, schema_path))
    return errors
