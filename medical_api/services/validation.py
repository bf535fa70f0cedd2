"""
JSON Schema validation for records entering the record store.

All errors are collected rather than failing on the first one, and each
message is prefixed with the path of the offending key. Messages can quote
the rejected value, so they are meant for the operator loading data and are
never written to the audit trail.
"""

from typing import Any

import jsonschema

from medical_api.schemas.records import PATIENT_SCHEMA


def validate_against_schema(data: dict[str, Any], schema: dict[str, Any]) -> list[str]:
    """
    Validate a dict against a JSON schema.
    Returns a list of error messages (empty list = valid).
    """
    validator = jsonschema.Draft7Validator(schema)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    return [
        f"{'.'.join(str(p) for p in error.path)}: {error.message}" if error.path else error.message
        for error in errors
    ]


def validate_patient(data: dict[str, Any]) -> list[str]:
    return validate_against_schema(data, PATIENT_SCHEMA)
