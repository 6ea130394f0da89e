"""Domain models - the take-on sheet, its transition history, and the employee records it produces."""
from datetime import datetime
from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, ForeignKey, Enum as SQLEnum, JSON, event
)
from sqlalchemy.orm import relationship, Session
from takeon.database import Base
from takeon.models.enums import (
    TakeOnSheetStatus,
    EmploymentStatus,
    ContractType,
    DocumentCategory,
    DocumentAccessLevel,
)


class TakeOnSheet(Base):
    """
    Onboarding form for a new employee: Draft → Pending HR Review → Pending IT Setup → Complete.

    Invariants enforced by the service layer:
    - company_id never changes after creation
    - status only moves to its single successor, via StateMachine.transition
    - once Complete, only employee_id may still be written, and only once
    """
    __tablename__ = "take_on_sheets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(String, nullable=False, index=True)
    status = Column(SQLEnum(TakeOnSheetStatus), nullable=False, default=TakeOnSheetStatus.DRAFT)

    # Sections (camelCase keys inside, as captured by the forms)
    employment_info = Column(JSON, nullable=False, default=dict)
    personal_details = Column(JSON, nullable=False, default=dict)
    system_access = Column(JSON, nullable=False, default=dict)
    documents = Column(JSON, nullable=False, default=dict)  # TakeOnDocumentType value -> metadata

    # Audit fields
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_by = Column(String, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Links
    access_request_id = Column(String, nullable=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    status_history = relationship(
        "StatusChange",
        back_populates="take_on_sheet",
        order_by="StatusChange.id",
        cascade="all, delete-orphan"
    )


class StatusChange(Base):
    """
    One executed transition edge.

    Invariants:
    - Append-only: never updated or deleted once flushed
    - from_status → to_status is always a single forward step
    """
    __tablename__ = "status_changes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    take_on_sheet_id = Column(Integer, ForeignKey("take_on_sheets.id"), nullable=False, index=True)
    from_status = Column(SQLEnum(TakeOnSheetStatus), nullable=False)
    to_status = Column(SQLEnum(TakeOnSheetStatus), nullable=False)
    changed_by = Column(String, nullable=False)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    notes = Column(String, nullable=True)

    take_on_sheet = relationship("TakeOnSheet", back_populates="status_history")


@event.listens_for(Session, "before_flush")
def _reject_status_change_rewrites(session, flush_context, instances):
    """Refuse any flush that edits or removes recorded history."""
    for obj in session.deleted:
        if isinstance(obj, StatusChange):
            raise ValueError(
                f"IMMUTABILITY VIOLATION: status change {obj.id} cannot be deleted."
            )
    for obj in session.dirty:
        if isinstance(obj, StatusChange) and session.is_modified(obj, include_collections=False):
            raise ValueError(
                f"IMMUTABILITY VIOLATION: status change {obj.id} cannot be modified."
            )


class Employee(Base):
    """Permanent employee record, materialised once from a completed take-on sheet."""
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    company_id = Column(String, nullable=False, index=True)
    employee_number = Column(String, nullable=False)

    # Personal details
    title = Column(String, nullable=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    id_type = Column(String, nullable=False, default="sa_id")
    id_number = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    race = Column(String, nullable=True)
    residential_address = Column(JSON, nullable=True)
    postal_address = Column(JSON, nullable=True)  # None when same as residential

    # Employment details
    start_date = Column(DateTime, nullable=True)
    status = Column(SQLEnum(EmploymentStatus), nullable=False, default=EmploymentStatus.ACTIVE)
    contract_type = Column(SQLEnum(ContractType), nullable=False)
    job_title_id = Column(String, nullable=True)
    department_id = Column(String, nullable=True)
    manager_id = Column(String, nullable=True)

    # Payroll details
    pay_frequency = Column(String, nullable=False, default="monthly")
    salary_type = Column(String, nullable=False, default="monthly")
    basic_salary = Column(Float, nullable=True)
    currency = Column(String, nullable=False, default="ZAR")
    is_uif_applicable = Column(Boolean, nullable=False, default=True)

    is_active = Column(Boolean, nullable=False, default=True)
    take_on_sheet_id = Column(Integer, nullable=True)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    documents = relationship("EmployeeDocument", back_populates="employee", cascade="all, delete-orphan")
    history = relationship("EmploymentHistory", back_populates="employee", cascade="all, delete-orphan")


class EmployeeDocument(Base):
    """
    A document in an employee's permanent collection.

    For documents handed off from a take-on sheet, uploaded_by is the user who
    performed the transfer; the original uploader lives in notes.
    """
    __tablename__ = "employee_documents"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    company_id = Column(String, nullable=False, index=True)

    name = Column(String, nullable=False)
    category = Column(SQLEnum(DocumentCategory), nullable=False)
    access_level = Column(SQLEnum(DocumentAccessLevel), nullable=False, default=DocumentAccessLevel.HR)

    file_name = Column(String, nullable=False)
    file_type = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    storage_path = Column(String, nullable=False)

    is_verified = Column(Boolean, nullable=False, default=False)
    notes = Column(String, nullable=True)
    source_document_type = Column(String, nullable=True)

    uploaded_by = Column(String, nullable=False)
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    employee = relationship("Employee", back_populates="documents")


class EmploymentHistory(Base):
    """Employment events (hire, promotion, ...) for an employee."""
    __tablename__ = "employment_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    company_id = Column(String, nullable=False)
    change_type = Column(String, nullable=False)
    effective_date = Column(DateTime, nullable=True)
    reason = Column(String, nullable=True)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    employee = relationship("Employee", back_populates="history")
