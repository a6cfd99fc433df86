# hms/schemas.py
from datetime import datetime, date, time
from typing import List, Any

from pydantic import BaseModel, ConfigDict, Field

from .models import AppointmentStatus


# --- Base Schemas ---
class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# --- Report Schemas ---
class UpcomingAppointment(BaseSchema):
    appointment_id: int
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus
    patient_id: int
    patient_first_name: str
    patient_last_name: str
    primary_phone: str


class PatientPrescription(BaseSchema):
    prescription_id: int
    appointment_id: int
    first_name: str
    last_name: str
    medication_name: str
    dosage: str
    instructions: str
    appointment_date: date
    prescribed_by: str = Field(..., description="Prescribing doctor's full name")


class LowStockMedication(BaseSchema):
    medication_id: int
    medication_name: str
    stock_quantity: int


# --- Consistency Check Schemas ---
class ConsistencyIssue(BaseSchema):
    entity: str
    id: Any
    field: str
    issue: str


class ConsistencyReport(BaseSchema):
    checked_at: datetime
    dangling_references: List[ConsistencyIssue] = []
    range_violations: List[ConsistencyIssue] = []
    index_mismatches: List[str] = []

    @property
    def is_consistent(self) -> bool:
        return not (self.dangling_references or self.range_violations or self.index_mismatches)
