from .cascade import DeleteReport
from .errors import (
    DomainViolation,
    IntegrityViolation,
    NotFound,
    RangeViolation,
    ReferenceViolation,
    RestrictedDeleteViolation,
    SchemaViolation,
    StoreError,
    UniquenessViolation,
)
from .models import (
    Appointment,
    AppointmentStatus,
    Doctor,
    DoctorSpecialization,
    Gender,
    Medication,
    Patient,
    PatientPhone,
    PhoneType,
    Prescription,
    Specialization,
)
from .relationships import Edge, Policy, RelationshipGraph
from .store import EntityStore

__all__ = [
    "EntityStore", "DeleteReport", "RelationshipGraph", "Edge", "Policy",
    "Patient", "PatientPhone", "Specialization", "Doctor", "DoctorSpecialization",
    "Appointment", "Medication", "Prescription",
    "Gender", "PhoneType", "AppointmentStatus",
    "StoreError", "IntegrityViolation", "SchemaViolation", "DomainViolation",
    "RangeViolation", "UniquenessViolation", "ReferenceViolation",
    "RestrictedDeleteViolation", "NotFound",
]
