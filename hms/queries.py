# hms/queries.py
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from .errors import SchemaViolation
from .models import Appointment, AppointmentStatus, Doctor, Medication, Patient, PatientPhone, Prescription
from .schemas import LowStockMedication, PatientPrescription, UpcomingAppointment
from .unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def _require_id(field: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaViolation(field, "expected an integer")
    return value


class QueryFacade:
    """Read-only reports joined across the model.

    Candidate rows come from the store's indexes; every method holds the
    store's read lock, so results reflect one committed state.
    """

    def __init__(self, store):
        self.store = store

    @property
    def indexes(self):
        return self.store.indexes

    def upcoming_appointments(self, doctor_id: int, today: Optional[date] = None) -> List[UpcomingAppointment]:
        """Scheduled appointments for a doctor from ``today`` on, by date then time."""
        doctor_id = _require_id("doctor_id", doctor_id)
        today = today or date.today()
        if isinstance(today, datetime):
            today = today.date()
        with self.store.read() as session:
            ordered_ids = [
                key[0] for _, key in self.indexes["appointment_doctor_date"].scan(prefix=(doctor_id,), lower=(today,))
            ]
            if not ordered_ids:
                return []
            stmt = (
                select(
                    Appointment.id,
                    Appointment.appointment_date,
                    Appointment.appointment_time,
                    Appointment.status,
                    Patient.id.label("patient_id"),
                    Patient.first_name,
                    Patient.last_name,
                    Patient.primary_phone,
                )
                .join(Patient, Appointment.patient_id == Patient.id)
                .where(
                    Appointment.id.in_(ordered_ids),
                    Appointment.status == AppointmentStatus.scheduled,
                )
            )
            rows = {row.id: row for row in session.execute(stmt)}

        return [
            UpcomingAppointment(
                appointment_id=row.id,
                appointment_date=row.appointment_date,
                appointment_time=row.appointment_time,
                status=row.status,
                patient_id=row.patient_id,
                patient_first_name=row.first_name,
                patient_last_name=row.last_name,
                primary_phone=row.primary_phone,
            )
            for row in (rows.get(appointment_id) for appointment_id in ordered_ids)
            if row is not None
        ]

    def prescriptions_for_patient(self, patient_id: int) -> List[PatientPrescription]:
        """Every prescription issued during the patient's appointments."""
        patient_id = _require_id("patient_id", patient_id)
        with self.store.read() as session:
            appointment_ids = [
                key[0] for _, key in self.indexes["appointment_patient_date"].scan(prefix=(patient_id,))
            ]
            if not appointment_ids:
                return []
            stmt = (
                select(
                    Prescription.id,
                    Prescription.appointment_id,
                    Prescription.dosage,
                    Prescription.instructions,
                    Patient.first_name,
                    Patient.last_name,
                    Medication.name.label("medication_name"),
                    Appointment.appointment_date,
                    Doctor.first_name.label("doctor_first_name"),
                    Doctor.last_name.label("doctor_last_name"),
                )
                .join(Appointment, Prescription.appointment_id == Appointment.id)
                .join(Patient, Appointment.patient_id == Patient.id)
                .join(Medication, Prescription.medication_id == Medication.id)
                .join(Doctor, Appointment.doctor_id == Doctor.id)
                .where(Prescription.appointment_id.in_(appointment_ids))
                .order_by(Prescription.id)
            )
            by_appointment: Dict[int, list] = {}
            for row in session.execute(stmt):
                by_appointment.setdefault(row.appointment_id, []).append(row)

        results = []
        for appointment_id in appointment_ids:
            for row in by_appointment.get(appointment_id, []):
                results.append(PatientPrescription(
                    prescription_id=row.id,
                    appointment_id=row.appointment_id,
                    first_name=row.first_name,
                    last_name=row.last_name,
                    medication_name=row.medication_name,
                    dosage=row.dosage,
                    instructions=row.instructions,
                    appointment_date=row.appointment_date,
                    prescribed_by=f"{row.doctor_first_name} {row.doctor_last_name}",
                ))
        return results

    def low_stock_medications(self, threshold: Optional[int] = None) -> List[LowStockMedication]:
        """Medications with stock below ``threshold``, lowest stock first."""
        if threshold is None:
            threshold = self.store.settings.low_stock_threshold
        with self.store.read() as session:
            ordered_ids = [key[0] for _, key in self.indexes["medication_stock"].scan_below((threshold,))]
            if not ordered_ids:
                return []
            stmt = select(Medication.id, Medication.name, Medication.stock_quantity).where(
                Medication.id.in_(ordered_ids)
            )
            rows = {row.id: row for row in session.execute(stmt)}

        logger.debug(f"{len(ordered_ids)} medication(s) below stock threshold {threshold}")
        return [
            LowStockMedication(
                medication_id=rows[medication_id].id,
                medication_name=rows[medication_id].name,
                stock_quantity=rows[medication_id].stock_quantity,
            )
            for medication_id in ordered_ids
        ]

    # --- lookups ---

    def find_patients_by_name(self, prefix: str) -> List[Dict[str, Any]]:
        """Patients whose last name starts with ``prefix``, in name order."""
        return self._rows_by_index(Patient, "patient_name", prefix)

    def find_doctors_by_name(self, prefix: str) -> List[Dict[str, Any]]:
        """Doctors whose last name starts with ``prefix``, in name order."""
        return self._rows_by_index(Doctor, "doctor_name", prefix)

    def find_patients_by_phone(self, phone_number: str) -> List[Dict[str, Any]]:
        """Patients listing ``phone_number`` among their phones."""
        with self.store.read() as session:
            work = UnitOfWork(session)
            phone_ids = [key for _, key in self.indexes["patient_phone_number"].scan(prefix=(phone_number,))]
            patient_ids = []
            for key in phone_ids:
                phone = work.fetch(PatientPhone, key)
                if phone["patient_id"] not in patient_ids:
                    patient_ids.append(phone["patient_id"])
            return [work.fetch(Patient, (patient_id,)) for patient_id in patient_ids]

    def _rows_by_index(self, model, index_name: str, prefix: str) -> List[Dict[str, Any]]:
        with self.store.read() as session:
            work = UnitOfWork(session)
            return [work.fetch(model, key) for _, key in self.indexes[index_name].scan_text_prefix(prefix)]
