# tests/conftest.py
from datetime import date, time, timedelta

import pytest

from hms import models
from hms.config import get_config_by_env
from hms.store import EntityStore


@pytest.fixture
def settings():
    return get_config_by_env("testing")


@pytest.fixture
def store(settings):
    store = EntityStore(settings=settings)
    yield store
    store.engine.dispose()


def make_patient(store, **overrides):
    row = {
        "first_name": "John",
        "last_name": "Doe",
        "date_of_birth": date(1985, 7, 19),
        "gender": "Male",
        "primary_phone": "555-123-4567",
        "email": "john.doe@email.com",
        "address": "123 Main St, Anytown, USA",
    }
    row.update(overrides)
    return store.insert(models.Patient, row)


def make_doctor(store, **overrides):
    row = {
        "first_name": "Alice",
        "last_name": "Williams",
        "license_number": "MD123456",
        "hire_date": date(2015, 6, 10),
        "email": "a.williams@hospital.com",
        "primary_phone": "555-555-1001",
    }
    row.update(overrides)
    return store.insert(models.Doctor, row)


def make_appointment(store, patient_id, doctor_id, **overrides):
    row = {
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "appointment_date": date.today() + timedelta(days=1),
        "appointment_time": time(10, 0),
        "status": "Scheduled",
        "reason_for_visit": "Routine heart checkup",
    }
    row.update(overrides)
    return store.insert(models.Appointment, row)


def make_medication(store, **overrides):
    row = {"name": "Atorvastatin 20mg", "description": "Tablet, 30 count bottle", "stock_quantity": 50}
    row.update(overrides)
    return store.insert(models.Medication, row)


def make_prescription(store, appointment_id, medication_id, **overrides):
    row = {
        "appointment_id": appointment_id,
        "medication_id": medication_id,
        "dosage": "20mg",
        "quantity_prescribed": 1,
        "instructions": "Take one tablet by mouth daily.",
    }
    row.update(overrides)
    return store.insert(models.Prescription, row)


def build_clinic(store):
    """One patient with two phones, a cardiologist, a visit tomorrow and its prescription."""
    ids = {}
    ids["cardiology"] = store.insert(models.Specialization, {"name": "Cardiology"})
    ids["patient"] = make_patient(store)
    ids["mobile"] = store.insert(models.PatientPhone, {
        "patient_id": ids["patient"], "phone_number": "555-123-4567", "phone_type": "Mobile",
    })
    ids["work"] = store.insert(models.PatientPhone, {
        "patient_id": ids["patient"], "phone_number": "555-888-9999", "phone_type": "Work",
    })
    ids["doctor"] = make_doctor(store, primary_specialization_id=ids["cardiology"])
    ids["doctor_cardiology"] = store.insert(models.DoctorSpecialization, {
        "doctor_id": ids["doctor"], "specialization_id": ids["cardiology"],
    })
    ids["appointment"] = make_appointment(store, ids["patient"], ids["doctor"])
    ids["medication"] = make_medication(store)
    ids["prescription"] = make_prescription(store, ids["appointment"], ids["medication"])
    return ids


@pytest.fixture
def clinic(store):
    return build_clinic(store)


@pytest.fixture
def clinic_factory():
    return build_clinic
