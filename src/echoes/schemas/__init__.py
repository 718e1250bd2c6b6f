"""JSON Schema for the report wire format."""

from .payload import PayloadValidationError, generate_payload_schema, save_payload_schema, validate_payload

__all__ = [
    "PayloadValidationError",
    "generate_payload_schema",
    "save_payload_schema",
    "validate_payload",
]
