"""Tests for the access request pipeline and consent management."""

import json
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Text, inspect
from sqlalchemy.exc import OperationalError

from medical_api.errors import (
    AccessDenied,
    AuditWriteFailure,
    AuthorizationDenied,
    ConsentDenied,
    ConsentNotFound,
    StorageFailure,
    SubjectNotFound,
)
from medical_api.models.patient import AuditLog, ConsentRecord, Patient
from medical_api.services.access import Actor
from medical_api.services.audit import RequestMetadata
from medical_api.services.consent import REASON_EXPIRED, verify_consent
from medical_api.services.policy import Purpose, Role


def _audit_rows(db):
    return db.query(AuditLog).all()


def _forbid_consent_lookup(monkeypatch, store):
    def fail(*args, **kwargs):
        raise AssertionError("consent lookup should not happen")

    monkeypatch.setattr(store, "find_active_consent", fail)


# ---------------------------------------------------------------------------
# Denials
# ---------------------------------------------------------------------------

def test_billing_role_denied_treatment_without_consent_lookup(
    db, store, service, patients, billing_clerk, monkeypatch
):
    _forbid_consent_lookup(monkeypatch, store)

    with pytest.raises(AuthorizationDenied) as excinfo:
        service.request_access(patients["John"], Purpose.TREATMENT, billing_clerk)

    assert "role does not permit" in excinfo.value.reason
    rows = _audit_rows(db)
    assert len(rows) == 1
    assert rows[0].action == "ACCESS_DENIED"
    assert rows[0].fields_accessed == []
    assert rows[0].detail["stage"] == "denied_role"


def test_missing_consent_denied(db, service, patients, physician):
    with pytest.raises(ConsentDenied) as excinfo:
        service.request_access(patients["Maria"], Purpose.TREATMENT, physician)

    assert "No active consent" in excinfo.value.reason
    rows = _audit_rows(db)
    assert [r.action for r in rows] == ["ACCESS_DENIED"]
    assert rows[0].detail["stage"] == "denied_consent"


def test_expired_consent_denied(db, store, service, patients, nurse):
    store.insert_consent(
        patients["Maria"],
        Purpose.TREATMENT,
        "Maria Garcia",
        expires_at=datetime.now(timezone.utc) - timedelta(days=1),
    )
    store.commit()

    with pytest.raises(ConsentDenied) as excinfo:
        service.request_access(patients["Maria"], Purpose.TREATMENT, nurse)

    assert excinfo.value.reason.endswith(REASON_EXPIRED)
    assert len(_audit_rows(db)) == 1


def test_admin_research_on_expired_consent(db, store, service, patients, admin):
    assert verify_consent(store, patients["Maria"], Purpose.RESEARCH, admin.id).reason == REASON_EXPIRED

    with pytest.raises(AuthorizationDenied):
        service.request_access(patients["Maria"], Purpose.RESEARCH, admin)

    rows = _audit_rows(db)
    assert len(rows) == 1
    assert rows[0].action == "ACCESS_DENIED"
    assert rows[0].detail["stage"] == "denied_role"
    assert rows[0].purpose == "research"


def test_unknown_subject_is_audited(db, service, nurse):
    with pytest.raises(SubjectNotFound):
        service.request_access("no-such-patient", Purpose.EMERGENCY, nurse)

    rows = _audit_rows(db)
    assert len(rows) == 1
    assert rows[0].action == "ACCESS_DENIED"
    assert rows[0].resource_id == "no-such-patient"


# ---------------------------------------------------------------------------
# Successful access
# ---------------------------------------------------------------------------

def test_physician_treatment_access(db, service, patients, physician):
    metadata = RequestMetadata(ip_address="10.0.0.50", user_agent="pytest")
    grant = service.request_access(patients["John"], Purpose.TREATMENT, physician, metadata)

    assert set(grant.data.disclosed()) == {
        "id", "first_name", "last_name", "date_of_birth",
        "medical_history", "medications", "allergies", "health_card_number",
    }
    assert len(grant.accessed_fields) == 7
    assert grant.data.health_card_number == "9876543210"
    assert grant.consent.valid and grant.consent.consent_id

    rows = _audit_rows(db)
    assert len(rows) == 1
    assert rows[0].action == "PATIENT_ACCESS"
    assert rows[0].fields_accessed == list(grant.accessed_fields)
    assert rows[0].ip_address == "10.0.0.50"


def test_nurse_emergency_skips_consent(db, store, service, patients, nurse, monkeypatch):
    _forbid_consent_lookup(monkeypatch, store)

    grant = service.request_access(patients["Maria"], Purpose.EMERGENCY, nurse)
    disclosed = grant.data.disclosed()

    assert "medications" in disclosed
    assert {"emergency_contacts", "allergies", "first_name", "last_name", "date_of_birth"} <= set(disclosed)
    assert grant.consent.consent_id is None
    assert grant.consent.reason
    assert len(_audit_rows(db)) == 1


def test_audit_trail_never_holds_values(db, service, patients, physician, billing_clerk):
    service.request_access(patients["John"], Purpose.TREATMENT, physician)
    service.request_access(patients["John"], Purpose.EMERGENCY, physician)
    with pytest.raises(AccessDenied):
        service.request_access(patients["John"], Purpose.TREATMENT, billing_clerk)

    rows = _audit_rows(db)
    assert len(rows) == 3
    for row in rows:
        dumped = json.dumps(
            {
                "fields": row.fields_accessed,
                "detail": row.detail,
                "purpose": row.purpose,
                "resource": row.resource_id,
            }
        )
        for value in ("John", "123-456-789", "9876543210", "john.doe@example.com", "Lisinopril"):
            assert value not in dumped


def test_one_audit_entry_per_request(db, service, patients, physician, nurse, billing_clerk):
    calls = [
        (patients["John"], Purpose.TREATMENT, physician),
        (patients["John"], Purpose.BILLING, physician),
        (patients["Robert"], Purpose.REFERRAL, physician),
        (patients["Robert"], Purpose.EMERGENCY, nurse),
        (patients["John"], Purpose.BILLING, billing_clerk),
    ]
    for index, (subject_id, purpose, actor) in enumerate(calls, start=1):
        try:
            service.request_access(subject_id, purpose, actor)
        except AccessDenied:
            pass
        assert len(_audit_rows(db)) == index


def test_audit_write_failure_propagates(store, service, patients, physician, monkeypatch):
    def broken_append(entry):
        raise StorageFailure("append_audit failed")

    monkeypatch.setattr(store, "append_audit", broken_append)

    with pytest.raises(AuditWriteFailure):
        service.request_access(patients["John"], Purpose.TREATMENT, physician)


def test_commit_failure_is_an_audit_failure(db, service, patients, physician, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(AuditWriteFailure) as excinfo:
        service.request_access(patients["John"], Purpose.TREATMENT, physician)

    assert isinstance(excinfo.value.__cause__, StorageFailure)


def test_denial_commit_failure_is_an_audit_failure(db, service, patients, billing_clerk, monkeypatch):
    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(AuditWriteFailure):
        service.request_access(patients["John"], Purpose.TREATMENT, billing_clerk)


def test_long_caller_ids_are_audited_intact(db, service, patients):
    subject_id = "urn:example:patient:" + "x" * 280
    actor = Actor(id="sso|" + "y" * 296, role=Role.NURSE)

    with pytest.raises(SubjectNotFound):
        service.request_access(subject_id, Purpose.EMERGENCY, actor)

    row = _audit_rows(db)[0]
    assert row.resource_id == subject_id
    assert row.user_id == actor.id
    assert isinstance(AuditLog.__table__.c.resource_id.type, Text)
    assert isinstance(AuditLog.__table__.c.user_id.type, Text)


def test_patient_rows_carry_no_consent_relationship():
    assert list(inspect(Patient).relationships.keys()) == []
    assert list(inspect(ConsentRecord).relationships.keys()) == []


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

def test_summary_is_minimal_and_audited(db, service, patients):
    receptionist = Actor(id="front-desk", role=Role.RECEPTIONIST)
    summary = service.summarize(patients["Robert"], receptionist)

    assert summary.model_dump() == {
        "id": patients["Robert"],
        "initials": "RC",
        "date_of_birth": "1978-11-08",
    }
    row = _audit_rows(db)[0]
    assert row.resource_type == "patient_summary"
    assert row.purpose == "verification"
    assert row.fields_accessed == ["id", "initials", "date_of_birth"]


# ---------------------------------------------------------------------------
# Consent management
# ---------------------------------------------------------------------------

def test_grant_then_access(db, service, patients, physician):
    consent_id = service.grant_consent(
        patients["Maria"], Purpose.REFERRAL, "Maria Garcia", physician
    )

    grant = service.request_access(patients["Maria"], Purpose.REFERRAL, physician)
    assert grant.consent.consent_id == consent_id

    actions = [r.action for r in _audit_rows(db)]
    assert actions.count("CONSENT_GRANTED") == 1
    assert actions.count("PATIENT_ACCESS") == 1


def test_grant_for_unknown_subject(db, service, physician):
    with pytest.raises(SubjectNotFound):
        service.grant_consent("no-such-patient", Purpose.TREATMENT, "Nobody", physician)
    assert db.query(ConsentRecord).count() == 0


def test_withdraw_blocks_later_access(db, service, patients, physician):
    consent_id = service.request_access(
        patients["John"], Purpose.TREATMENT, physician
    ).consent.consent_id

    service.withdraw_consent(consent_id, physician, subject_id=patients["John"])

    row = db.get(ConsentRecord, consent_id)
    assert row.is_active is False
    assert row.withdrawn_at is not None
    with pytest.raises(ConsentDenied):
        service.request_access(patients["John"], Purpose.TREATMENT, physician)

    withdrawn = [r for r in _audit_rows(db) if r.action == "CONSENT_WITHDRAWN"]
    assert len(withdrawn) == 1
    assert withdrawn[0].purpose == "treatment"


def test_withdraw_unknown_consent(service, physician):
    with pytest.raises(ConsentNotFound):
        service.withdraw_consent("no-such-consent", physician)


def test_withdraw_consent_of_another_patient(service, patients, physician):
    consent_id = service.request_access(
        patients["John"], Purpose.TREATMENT, physician
    ).consent.consent_id

    with pytest.raises(ConsentNotFound):
        service.withdraw_consent(consent_id, physician, subject_id=patients["Maria"])


def test_repeat_withdrawal_keeps_first_timestamp(db, store, service, patients, physician):
    consent_id = service.grant_consent(patients["Maria"], Purpose.TREATMENT, "Maria Garcia", physician)
    service.withdraw_consent(consent_id, physician)
    first = store.get_consent(consent_id).withdrawn_at

    service.withdraw_consent(consent_id, physician)
    assert store.get_consent(consent_id).withdrawn_at == first
