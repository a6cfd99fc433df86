# hms/models.py
from sqlalchemy import (
    Column, Integer, String, DateTime, Time, ForeignKey, Text, Date,
    Enum as SQLAlchemyEnum, Index, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .database import Base
import enum


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Gender(str, enum.Enum):
    male = "Male"
    female = "Female"
    other = "Other"

class PhoneType(str, enum.Enum):
    home = "Home"
    mobile = "Mobile"
    work = "Work"
    emergency = "Emergency"

class AppointmentStatus(str, enum.Enum):
    scheduled = "Scheduled"
    completed = "Completed"
    cancelled_by_patient = "Cancelled by Patient"
    cancelled_by_hospital = "Cancelled by Hospital"
    no_show = "No-Show"


# Patient Models
class Patient(Base):
    """Core patient demographic information"""
    __tablename__ = "patients"
    __table_args__ = (
        Index('idx_patient_name', 'last_name', 'first_name'),
        Index('idx_email', 'email'),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(SQLAlchemyEnum(Gender, name='gender', values_callable=_enum_values), nullable=False)
    primary_phone = Column(String(15), nullable=False)
    email = Column(String(100), unique=True, nullable=True)  # unique only when provided
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    phones = relationship("PatientPhone", back_populates="patient", passive_deletes="all")
    appointments = relationship("Appointment", back_populates="patient", passive_deletes="all")

class PatientPhone(Base):
    """Additional phone numbers for a patient (Many-to-one with Patient)."""
    __tablename__ = "patient_phones"
    __table_args__ = (
        UniqueConstraint('patient_id', 'phone_number', name='unique_patient_phone'),
        Index('idx_phone_number', 'phone_number'),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    phone_number = Column(String(15), nullable=False)
    phone_type = Column(
        SQLAlchemyEnum(PhoneType, name='phone_type', values_callable=_enum_values),
        nullable=False, default=PhoneType.mobile
    )

    patient = relationship("Patient", back_populates="phones")


# Clinician Models
class Specialization(Base):
    """Lookup table for medical specializations"""
    __tablename__ = "specializations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)

    primary_doctors = relationship("Doctor", back_populates="primary_specialization", passive_deletes="all")

class Doctor(Base):
    """Healthcare provider information"""
    __tablename__ = "doctors"
    __table_args__ = (
        Index('idx_doctor_name', 'last_name', 'first_name'),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    license_number = Column(String(50), nullable=False, unique=True)
    hire_date = Column(Date, nullable=False)
    email = Column(String(100), nullable=False, unique=True)
    primary_phone = Column(String(15), nullable=False)
    # Independent of the doctor_specialization set below
    primary_specialization_id = Column(
        Integer, ForeignKey("specializations.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    primary_specialization = relationship("Specialization", back_populates="primary_doctors")
    appointments = relationship("Appointment", back_populates="doctor", passive_deletes="all")
    specializations = relationship(
        "Specialization", secondary="doctor_specialization", viewonly=True
    )

class DoctorSpecialization(Base):
    """Many-to-many link between doctors and specializations, identified by the pair itself."""
    __tablename__ = "doctor_specialization"

    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), primary_key=True)
    specialization_id = Column(Integer, ForeignKey("specializations.id", ondelete="CASCADE"), primary_key=True)


# Scheduling Models
class Appointment(Base):
    """Patient-doctor appointment"""
    __tablename__ = "appointments"
    __table_args__ = (
        Index('idx_doctor_date', 'doctor_id', 'appointment_date'),
        Index('idx_patient_date', 'patient_id', 'appointment_date'),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(Time, nullable=False)
    status = Column(
        SQLAlchemyEnum(AppointmentStatus, name='appointment_status', values_callable=_enum_values),
        nullable=False, default=AppointmentStatus.scheduled
    )
    reason_for_visit = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    prescriptions = relationship("Prescription", back_populates="appointment", passive_deletes="all")


# Pharmacy Models
class Medication(Base):
    """Master inventory list of medications"""
    __tablename__ = "medications"
    __table_args__ = (
        CheckConstraint('stock_quantity >= 0', name='ck_medications_stock_quantity'),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False, unique=True)  # e.g. "Amoxicillin 500mg Tablet"
    description = Column(Text, nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0, info={"check": (">=", 0)})
    last_restocked_date = Column(Date, nullable=True)

    prescriptions = relationship("Prescription", back_populates="medication", passive_deletes="all")

class Prescription(Base):
    """Medication prescribed during a specific appointment"""
    __tablename__ = "prescriptions"
    __table_args__ = (
        UniqueConstraint('appointment_id', 'medication_id', name='unique_appointment_medication'),
        CheckConstraint('quantity_prescribed > 0', name='ck_prescriptions_quantity_prescribed'),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False)
    medication_id = Column(Integer, ForeignKey("medications.id", ondelete="CASCADE"), nullable=False)
    dosage = Column(String(100), nullable=False)  # e.g. "500mg"
    quantity_prescribed = Column(Integer, nullable=False, info={"check": (">", 0)})
    instructions = Column(Text, nullable=False)
    prescribed_date = Column(DateTime(timezone=True), server_default=func.now())

    appointment = relationship("Appointment", back_populates="prescriptions")
    medication = relationship("Medication", back_populates="prescriptions")


# Declaration order is the seeding order for the store
ENTITY_MODELS = (
    Patient,
    PatientPhone,
    Specialization,
    Doctor,
    DoctorSpecialization,
    Appointment,
    Medication,
    Prescription,
)
