"""
Seed the record store with fictional patients and consent grants.

Run:  python -m medical_api.seed

Every record is validated against PATIENT_SCHEMA before it is written. The
consent grants cover each verification outcome: active, expired, and
withdrawn. All data here is fictional.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from medical_api.models.database import Base, SessionLocal, engine
from medical_api.services.policy import Purpose
from medical_api.services.store import RecordStore
from medical_api.services.validation import validate_patient

logger = logging.getLogger(__name__)


PATIENTS: list[dict[str, Any]] = [
    {
        "first_name": "John",
        "last_name": "Doe",
        "date_of_birth": "1985-03-15",
        "social_insurance_number": "123-456-789",
        "health_card_number": "9876543210",
        "address": "123 Main Street",
        "city": "Vancouver",
        "province": "BC",
        "postal_code": "V6B 1A1",
        "phone_number": "604-555-0100",
        "email": "john.doe@example.com",
        "medical_history": [{"condition": "Hypertension", "diagnosed_year": 2020}],
        "medications": [{"name": "Lisinopril", "dosage": "10mg"}],
        "allergies": ["Penicillin"],
        "insurance_info": {"provider": "Pacific Blue Cross", "policy_number": "PBC-123456"},
        "emergency_contacts": [
            {"name": "Jane Doe", "relationship": "Spouse", "phone": "604-555-0101"}
        ],
    },
    {
        "first_name": "Maria",
        "last_name": "Garcia",
        "date_of_birth": "1992-07-22",
        "social_insurance_number": "987-654-321",
        "health_card_number": "1234567890",
        "address": "456 Oak Avenue",
        "city": "Victoria",
        "province": "BC",
        "postal_code": "V8W 2C3",
        "phone_number": "250-555-0200",
        "email": "maria.garcia@example.com",
        "medical_history": [],
        "medications": [],
        "allergies": ["Latex"],
        "insurance_info": {"provider": "Manulife", "policy_number": "MAN-789012"},
        "emergency_contacts": [],
    },
    {
        "first_name": "Robert",
        "last_name": "Chen",
        "date_of_birth": "1978-11-08",
        "social_insurance_number": "456-789-123",
        "health_card_number": "5678901234",
        "address": "789 Cedar Lane",
        "city": "Surrey",
        "province": "BC",
        "postal_code": "V3T 4K5",
        "phone_number": "604-555-0300",
        "email": "robert.chen@example.com",
        "medical_history": [
            {"condition": "Type 2 Diabetes", "diagnosed_year": 2018},
            {"condition": "Asthma", "diagnosed_year": 2005},
        ],
        "medications": [
            {"name": "Metformin", "dosage": "500mg"},
            {"name": "Albuterol", "dosage": "as needed"},
        ],
        "allergies": [],
        "insurance_info": {"provider": "Sun Life", "policy_number": "SL-345678"},
        "emergency_contacts": [
            {"name": "Lisa Chen", "relationship": "Wife", "phone": "604-555-0301"}
        ],
    },
]


def _utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def seed(store: RecordStore) -> dict[str, str]:
    """Load PATIENTS and their consents; returns ``{"<first_name>": patient_id}``."""
    ids: dict[str, str] = {}
    for record in PATIENTS:
        errors = validate_patient(record)
        if errors:
            raise ValueError(f"Invalid seed record: {errors}")
        ids[record["first_name"]] = store.add_patient(record)

    john, maria, robert = ids["John"], ids["Maria"], ids["Robert"]

    store.insert_consent(john, Purpose.TREATMENT, "John Doe", granted_at=_utc(2024, 1, 15))
    store.insert_consent(john, Purpose.BILLING, "John Doe", granted_at=_utc(2024, 1, 15))
    store.insert_consent(
        maria,
        Purpose.RESEARCH,
        "Maria Garcia",
        expires_at=_utc(2023, 12, 31),
        granted_at=_utc(2023, 1, 1),
    )
    referral = store.insert_consent(
        robert, Purpose.REFERRAL, "Robert Chen", granted_at=_utc(2024, 2, 1)
    )
    store.mark_consent_withdrawn(referral, _utc(2024, 3, 15))
    store.insert_consent(robert, Purpose.EMERGENCY, "Robert Chen", granted_at=_utc(2024, 1, 1))

    store.commit()
    return ids


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s | %(name)s | %(message)s")
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        ids = seed(RecordStore(db))
    finally:
        db.close()
    for patient_id in ids.values():
        logger.info("Seeded patient %s", patient_id)


if __name__ == "__main__":
    main()
