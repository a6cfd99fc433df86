# Loads the sample clinic data set into a store.
import logging
from datetime import date, time
from typing import Dict

from . import models
from .errors import UniquenessViolation

logger = logging.getLogger(__name__)

SPECIALIZATIONS = ["Cardiology", "Neurology", "Pediatrics", "Orthopedics", "Dermatology"]


def create_initial_data(store) -> Dict[str, int]:
    """Inserts the sample data set and returns the ids it was given, by label.

    Running it against a store that already holds the sample rows stops at the
    first duplicate and re-raises the UniquenessViolation.
    """
    ids: Dict[str, int] = {}
    try:
        for name in SPECIALIZATIONS:
            ids[name] = store.insert(models.Specialization, {"name": name})

        ids["john_doe"] = store.insert(models.Patient, {
            "first_name": "John", "last_name": "Doe",
            "date_of_birth": date(1985, 7, 19), "gender": models.Gender.male,
            "primary_phone": "555-123-4567", "email": "john.doe@email.com",
            "address": "123 Main St, Anytown, USA",
        })
        ids["jane_smith"] = store.insert(models.Patient, {
            "first_name": "Jane", "last_name": "Smith",
            "date_of_birth": date(1990, 4, 22), "gender": models.Gender.female,
            "primary_phone": "555-987-6543", "email": "jane.smith@email.com",
            "address": "456 Oak Ave, Somewhere, USA",
        })

        store.insert(models.PatientPhone, {
            "patient_id": ids["john_doe"], "phone_number": "555-123-4567", "phone_type": models.PhoneType.mobile,
        })
        store.insert(models.PatientPhone, {
            "patient_id": ids["john_doe"], "phone_number": "555-888-9999", "phone_type": models.PhoneType.work,
        })

        ids["dr_williams"] = store.insert(models.Doctor, {
            "first_name": "Alice", "last_name": "Williams", "license_number": "MD123456",
            "hire_date": date(2015, 6, 10), "email": "a.williams@hospital.com",
            "primary_phone": "555-555-1001", "primary_specialization_id": ids["Cardiology"],
        })
        ids["dr_chen"] = store.insert(models.Doctor, {
            "first_name": "Robert", "last_name": "Chen", "license_number": "MD654321",
            "hire_date": date(2018, 3, 15), "email": "r.chen@hospital.com",
            "primary_phone": "555-555-1002", "primary_specialization_id": ids["Neurology"],
        })
        for name in ("Neurology", "Pediatrics"):
            store.insert(models.DoctorSpecialization, {
                "doctor_id": ids["dr_chen"], "specialization_id": ids[name],
            })

        ids["checkup"] = store.insert(models.Appointment, {
            "patient_id": ids["john_doe"], "doctor_id": ids["dr_williams"],
            "appointment_date": date(2023, 10, 26), "appointment_time": time(10, 0),
            "status": models.AppointmentStatus.completed,
            "reason_for_visit": "Routine heart checkup and occasional chest pain.",
        })
        ids["headaches"] = store.insert(models.Appointment, {
            "patient_id": ids["jane_smith"], "doctor_id": ids["dr_chen"],
            "appointment_date": date(2023, 10, 27), "appointment_time": time(14, 30),
            "status": models.AppointmentStatus.scheduled,
            "reason_for_visit": "Persistent headaches and dizziness.",
        })

        ids["atorvastatin"] = store.insert(models.Medication, {
            "name": "Atorvastatin 20mg", "description": "Tablet, 30 count bottle", "stock_quantity": 50,
        })
        ids["sumatriptan"] = store.insert(models.Medication, {
            "name": "Sumatriptan 50mg", "description": "Tablet, 9 count package", "stock_quantity": 25,
        })

        ids["atorvastatin_rx"] = store.insert(models.Prescription, {
            "appointment_id": ids["checkup"], "medication_id": ids["atorvastatin"],
            "dosage": "20mg", "quantity_prescribed": 1,
            "instructions": "Take one tablet by mouth daily.",
        })
    except UniquenessViolation as e:
        logger.error(f"Sample data already present ({e}); stopped after {len(ids)} row(s).")
        raise

    logger.info(f"Sample data loaded: {len(ids)} labelled rows.")
    return ids
