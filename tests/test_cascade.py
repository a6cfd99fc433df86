# tests/test_cascade.py
import threading
from datetime import date, time, timedelta

import pytest

from hms import models
from hms.errors import NotFound, RestrictedDeleteViolation, SchemaViolation
from hms.health import run_consistency_checks
from hms.relationships import Policy, RelationshipGraph
from hms.store import EntityStore

from conftest import make_appointment, make_doctor, make_medication, make_patient, make_prescription


def test_deleting_patient_removes_phones_appointments_and_prescriptions(store, clinic):
    report = store.delete(models.Patient, clinic["patient"])

    assert report.deleted == {
        "patients": 1, "patient_phones": 2, "appointments": 1, "prescriptions": 1,
    }
    assert report.nullified == {}
    assert store.count(models.Patient) == 0
    assert store.count(models.PatientPhone) == 0
    assert store.count(models.Appointment) == 0
    assert store.count(models.Prescription) == 0
    # unrelated rows survive
    assert store.count(models.Doctor) == 1
    assert store.count(models.Medication) == 1
    assert store.count(models.DoctorSpecialization) == 1
    assert run_consistency_checks(store).is_consistent


def test_deleting_specialization_nullifies_primary_and_drops_junction_rows(store, clinic):
    report = store.delete(models.Specialization, clinic["cardiology"])

    doctor = store.get(models.Doctor, clinic["doctor"])
    assert doctor["primary_specialization_id"] is None
    assert store.count(models.DoctorSpecialization) == 0
    assert report.deleted == {"specializations": 1, "doctor_specialization": 1}
    assert report.nullified == {"doctors": 1}
    assert store.count(models.Appointment) == 1


def test_primary_specialization_is_independent_of_junction_set(store, clinic):
    neurology = store.insert(models.Specialization, {"name": "Neurology"})
    store.update(models.Doctor, clinic["doctor"], {"primary_specialization_id": neurology})
    store.delete(models.Specialization, clinic["cardiology"])

    assert store.get(models.Doctor, clinic["doctor"])["primary_specialization_id"] == neurology
    assert store.find(models.DoctorSpecialization) == []


def test_deleting_doctor_cascades_to_appointments_and_junction(store, clinic):
    report = store.delete(models.Doctor, clinic["doctor"])

    assert report.deleted == {
        "doctors": 1, "doctor_specialization": 1, "appointments": 1, "prescriptions": 1,
    }
    assert store.count(models.Patient) == 1
    assert store.count(models.PatientPhone) == 2
    assert store.count(models.Specialization) == 1


def test_deleting_medication_cascades_to_its_prescriptions_only(store, clinic):
    store.delete(models.Medication, clinic["medication"])
    assert store.count(models.Prescription) == 0
    assert store.count(models.Appointment) == 1


def test_deleting_appointment_keeps_patient_and_doctor(store, clinic):
    report = store.delete(models.Appointment, clinic["appointment"])
    assert report.deleted == {"appointments": 1, "prescriptions": 1}
    assert store.count(models.Patient) == 1
    assert store.count(models.Doctor) == 1


def test_cascade_delete_is_idempotent(store, clinic):
    first = store.cascade_delete(models.Patient, clinic["patient"])
    second = store.cascade_delete(models.Patient, clinic["patient"])

    assert first.total_deleted == 5
    assert second.is_noop
    assert second.id == clinic["patient"]
    assert store.count(models.Doctor) == 1
    assert store.count(models.Medication) == 1


def test_strict_delete_of_removed_row_reports_not_found(store, clinic):
    store.delete(models.Patient, clinic["patient"])
    with pytest.raises(NotFound):
        store.delete(models.Patient, clinic["patient"])


def test_restrict_edge_blocks_delete_while_dependents_exist(settings, clinic_factory):
    graph = RelationshipGraph.from_models().with_policy(models.Prescription, "medication_id", Policy.restrict)
    store = EntityStore(settings=settings, graph=graph)
    ids = clinic_factory(store)

    with pytest.raises(RestrictedDeleteViolation) as exc_info:
        store.delete(models.Medication, ids["medication"])
    assert exc_info.value.entity_type == "medications"
    assert exc_info.value.id == ids["medication"]
    assert exc_info.value.blocking_dependents == (("prescriptions", ids["prescription"]),)
    assert store.count(models.Medication) == 1
    assert store.count(models.Prescription) == 1

    # once the dependent is gone the delete goes through
    store.delete(models.Prescription, ids["prescription"])
    store.delete(models.Medication, ids["medication"])
    assert store.count(models.Medication) == 0


def test_restrict_deep_in_the_subgraph_aborts_before_any_row_is_touched(settings, clinic_factory):
    graph = RelationshipGraph.from_models().with_policy(models.Prescription, "appointment_id", Policy.restrict)
    store = EntityStore(settings=settings, graph=graph)
    ids = clinic_factory(store)

    with pytest.raises(RestrictedDeleteViolation) as exc_info:
        store.delete(models.Patient, ids["patient"])
    assert exc_info.value.entity_type == "appointments"
    assert store.count(models.Patient) == 1
    assert store.count(models.PatientPhone) == 2
    assert store.count(models.Appointment) == 1


def test_failed_cascade_rolls_back_applied_steps(settings, clinic_factory):
    # Phones cannot lose their patient, so nullifying them fails after
    # the appointments have already been deleted in the same cascade.
    graph = RelationshipGraph.from_models().with_policy(models.PatientPhone, "patient_id", Policy.nullify)
    store = EntityStore(settings=settings, graph=graph)
    ids = clinic_factory(store)

    with pytest.raises(SchemaViolation) as exc_info:
        store.delete(models.Patient, ids["patient"])
    assert exc_info.value.field == "patient_id"
    assert store.count(models.Appointment) == 1
    assert store.count(models.Prescription) == 1
    assert store.count(models.PatientPhone) == 2
    assert len(store.indexes["appointment_patient_date"]) == 1
    assert run_consistency_checks(store).is_consistent


def test_overlapping_concurrent_deletes_both_succeed(store):
    patient_id = make_patient(store)
    doctor_id = make_doctor(store)
    medication_id = make_medication(store)
    for offset in range(5):
        appointment_id = make_appointment(
            store, patient_id, doctor_id,
            appointment_date=date.today() + timedelta(days=offset), appointment_time=time(9, 0),
        )
        make_prescription(store, appointment_id, medication_id)

    barrier = threading.Barrier(2)
    errors = []
    reports = []

    def delete(entity, key):
        barrier.wait()
        try:
            reports.append(store.cascade_delete(entity, key))
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)

    threads = [
        threading.Thread(target=delete, args=(models.Patient, patient_id)),
        threading.Thread(target=delete, args=(models.Doctor, doctor_id)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sum(report.deleted.get("appointments", 0) for report in reports) == 5
    assert store.count(models.Appointment) == 0
    assert store.count(models.Prescription) == 0
    assert store.count(models.Medication) == 1
    assert run_consistency_checks(store).is_consistent
