"""
JSON schemas for patient records entering the record store.

Records are loaded by the seeding command (and by anything else that imports
patients) and validated here before they are encrypted and persisted. The
shape mirrors the disclosable field list; unknown keys are rejected so that
nothing outside the known field set can reach storage.
"""

PATIENT_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Patient record",
    "description": "Full patient record as held by the record store.",
    "type": "object",
    "required": ["first_name", "last_name", "date_of_birth"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "first_name": {"type": "string", "minLength": 1},
        "last_name": {"type": "string", "minLength": 1},
        "date_of_birth": {
            "type": "string",
            "pattern": "^\\d{4}-\\d{2}-\\d{2}$",
            "description": "ISO 8601 date (YYYY-MM-DD).",
        },
        "social_insurance_number": {
            "type": ["string", "null"],
            "pattern": "^\\d{3}-\\d{3}-\\d{3}$",
            "description": "Social Insurance Number (encrypted at rest).",
        },
        "health_card_number": {
            "type": ["string", "null"],
            "pattern": "^\\d{10}$",
            "description": "Personal Health Number (encrypted at rest).",
        },
        "address": {"type": ["string", "null"]},
        "city": {"type": ["string", "null"]},
        "province": {"type": ["string", "null"], "maxLength": 2},
        "postal_code": {"type": ["string", "null"]},
        "phone_number": {"type": ["string", "null"]},
        "email": {"type": ["string", "null"]},
        "medical_history": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "required": ["condition"],
                "properties": {
                    "condition": {"type": "string"},
                    "diagnosed_year": {"type": "integer"},
                },
            },
        },
        "medications": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "dosage": {"type": "string"},
                },
            },
        },
        "allergies": {"type": ["array", "null"], "items": {"type": "string"}},
        "insurance_info": {
            "type": ["object", "null"],
            "properties": {
                "provider": {"type": "string"},
                "policy_number": {"type": "string"},
            },
        },
        "emergency_contacts": {
            "type": ["array", "null"],
            "items": {
                "type": "object",
                "required": ["name"],
                "properties": {
                    "name": {"type": "string"},
                    "relationship": {"type": "string"},
                    "phone": {"type": "string"},
                },
            },
        },
    },
    "additionalProperties": False,
}

