"""
Conversion of a completed take-on sheet into a permanent Employee.

can_create_employee() is the advisory gate. EmployeeConversionService re-runs
it before doing anything irreversible; it never trusts an earlier check.
"""
import logging
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from takeon.models.audit import AuditEventType, record_event, record_refusal
from takeon.models.domain import Employee, EmploymentHistory, TakeOnSheet
from takeon.models.enums import ContractType, EmploymentStatus, EmploymentType, TakeOnSheetStatus
from takeon.services.document_handoff import transfer_documents
from takeon.services.errors import IncompleteTakeOnSheet, NotFound, PreconditionFailed

logger = logging.getLogger(__name__)


class CreationCheck(NamedTuple):
    can_create: bool
    reason: Optional[str] = None


CONTRACT_TYPE_BY_EMPLOYMENT_TYPE = {
    EmploymentType.PERMANENT: ContractType.PERMANENT,
    EmploymentType.FIXED: ContractType.FIXED_TERM,
    EmploymentType.PWE: ContractType.TEMPORARY,
}

# Take-on sheets capture the Employment Equity labels; employee records use the reporting set
RACE_BY_CLASSIFICATION = {
    "African": "african",
    "Asian": "asian",
    "Chinese": "asian",
    "Coloured": "coloured",
    "European": "white",
    "Indian": "indian",
}


def can_create_employee(sheet: TakeOnSheet) -> CreationCheck:
    """
    Read-only gate. Checks, in order, and returns the first failure:
    1. status is Complete
    2. no employee has been created yet
    3. first name and last name are present
    4. ID number is present
    5. employment type and start date can be carried onto the employee
    """
    if sheet.status != TakeOnSheetStatus.COMPLETE:
        return CreationCheck(False, "Take-on sheet must be completed before creating an employee.")

    if sheet.employee_id:
        return CreationCheck(
            False,
            f"An employee has already been created from this take-on sheet "
            f"(Employee ID: {sheet.employee_id})."
        )

    personal = sheet.personal_details or {}
    if not personal.get("firstName") or not personal.get("lastName"):
        return CreationCheck(False, "Employee first name and last name are required.")

    if not personal.get("idNumber"):
        return CreationCheck(False, "Employee ID number is required.")

    employment = sheet.employment_info or {}
    try:
        map_employment_type_to_contract_type(employment.get("employmentType"))
        _parse_date(employment.get("dateOfEmployment"))
    except PreconditionFailed as e:
        return CreationCheck(False, e.message)

    return CreationCheck(True)


def map_employment_type_to_contract_type(employment_type) -> ContractType:
    """A sheet with no employment type recorded is treated as permanent."""
    if employment_type is None or employment_type == "":
        return ContractType.PERMANENT
    try:
        return CONTRACT_TYPE_BY_EMPLOYMENT_TYPE[EmploymentType(employment_type)]
    except ValueError:
        raise PreconditionFailed(f"Unknown employment type: {employment_type!r}.")


def _parse_date(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise PreconditionFailed(
            f"Date of employment '{value}' is not a valid date. Use the YYYY-MM-DD format."
        )


class EmployeeConversionService:
    """Materialises Employee records from completed take-on sheets."""

    def __init__(self, db: Session):
        self.db = db

    def find_existing_employee(self, sheet: TakeOnSheet) -> Optional[Employee]:
        """An employee in the same company with the sheet's ID number, if any."""
        id_number = (sheet.personal_details or {}).get("idNumber")
        if not id_number:
            return None
        return self.db.query(Employee).filter(
            Employee.company_id == sheet.company_id,
            Employee.id_number == id_number
        ).first()

    def create_employee_from_take_on_sheet(self, sheet: TakeOnSheet, acting_user_id: str) -> Employee:
        """
        Create the Employee, its hire history row and its documents, then link the sheet.

        Refusal invariants:
        - a sheet that is not Complete raises IncompleteTakeOnSheet
        - any other failing gate check raises PreconditionFailed with the gate's reason
        - an existing employee with the same ID number is never duplicated
        """
        if sheet.status != TakeOnSheetStatus.COMPLETE:
            self._refuse(sheet, acting_user_id, AuditEventType.EMPLOYEE_CREATION_REFUSED, "incomplete")
            raise IncompleteTakeOnSheet(
                f"Cannot create employee from incomplete take-on sheet "
                f"(current status: '{sheet.status.value}')."
            )

        check = can_create_employee(sheet)
        if not check.can_create:
            self._refuse(sheet, acting_user_id, AuditEventType.EMPLOYEE_CREATION_REFUSED, check.reason)
            raise PreconditionFailed(check.reason)

        existing = self.find_existing_employee(sheet)
        if existing is not None:
            reason = (
                f"An employee with ID number {existing.id_number} already exists "
                f"(Employee ID: {existing.id}). Link the take-on sheet to that employee instead."
            )
            self._refuse(sheet, acting_user_id, AuditEventType.EMPLOYEE_CREATION_REFUSED, reason)
            raise PreconditionFailed(reason)

        try:
            employee = self._build_employee(sheet, acting_user_id)
        except PreconditionFailed as e:
            self._refuse(sheet, acting_user_id, AuditEventType.EMPLOYEE_CREATION_REFUSED, e.message)
            raise
        self.db.add(employee)
        self.db.flush()

        self.db.add(EmploymentHistory(
            employee_id=employee.id,
            company_id=sheet.company_id,
            change_type="hire",
            effective_date=employee.start_date,
            reason=f"New hire from take-on sheet {sheet.id}",
            created_by=acting_user_id
        ))

        document_ids = transfer_documents(self.db, sheet, employee.id, acting_user_id)

        sheet.employee_id = employee.id
        sheet.updated_by = acting_user_id
        sheet.updated_at = datetime.utcnow()

        record_event(
            self.db,
            AuditEventType.EMPLOYEE_CREATED,
            "Employee",
            employee.id,
            user_id=acting_user_id,
            company_id=sheet.company_id,
            payload={
                "take_on_sheet_id": sheet.id,
                "employee_number": employee.employee_number,
                "document_ids": document_ids
            }
        )
        self.db.commit()
        self.db.refresh(employee)

        logger.info(
            "Created employee %s (%s) from take-on sheet %s with %d documents",
            employee.id, employee.employee_number, sheet.id, len(document_ids)
        )
        return employee

    def link_to_employee(self, sheet: TakeOnSheet, employee_id: int, acting_user_id: str) -> TakeOnSheet:
        """
        Link a completed sheet to an employee created elsewhere.

        Invariant: employee_id is written at most once.
        """
        if sheet.status != TakeOnSheetStatus.COMPLETE:
            self._refuse(sheet, acting_user_id, AuditEventType.LINK_REFUSED, "incomplete")
            raise PreconditionFailed("Can only link employee to a completed take-on sheet.")

        if sheet.employee_id:
            self._refuse(sheet, acting_user_id, AuditEventType.LINK_REFUSED, "already_linked")
            raise PreconditionFailed(
                f"Take-on sheet is already linked to employee {sheet.employee_id}."
            )

        employee = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.company_id == sheet.company_id
        ).first()
        if employee is None:
            self._refuse(sheet, acting_user_id, AuditEventType.LINK_REFUSED, "employee_not_found")
            raise NotFound("Employee not found.")

        sheet.employee_id = employee.id
        sheet.updated_by = acting_user_id
        sheet.updated_at = datetime.utcnow()
        record_event(
            self.db,
            AuditEventType.EMPLOYEE_LINKED,
            "TakeOnSheet",
            sheet.id,
            user_id=acting_user_id,
            company_id=sheet.company_id,
            payload={"employee_id": employee.id}
        )
        self.db.commit()
        self.db.refresh(sheet)

        logger.info("Linked take-on sheet %s to employee %s", sheet.id, employee.id)
        return sheet

    def _next_employee_number(self, company_id: str) -> str:
        count = self.db.query(Employee).filter(Employee.company_id == company_id).count()
        return f"EMP{count + 1:04d}"

    def _build_employee(self, sheet: TakeOnSheet, acting_user_id: str) -> Employee:
        employment = sheet.employment_info or {}
        personal = sheet.personal_details or {}

        postal_address = None
        if not personal.get("postalSameAsPhysical", True):
            postal_address = dict(personal.get("postalAddress") or {})

        return Employee(
            company_id=sheet.company_id,
            employee_number=self._next_employee_number(sheet.company_id),
            title=personal.get("title"),
            first_name=personal["firstName"],
            last_name=personal["lastName"],
            id_type="sa_id",
            id_number=personal["idNumber"],
            phone=personal.get("contactNumber"),
            race=RACE_BY_CLASSIFICATION.get(personal.get("race")),
            residential_address=dict(personal.get("physicalAddress") or {}),
            postal_address=postal_address,
            start_date=_parse_date(employment.get("dateOfEmployment")),
            status=EmploymentStatus.ACTIVE,
            contract_type=map_employment_type_to_contract_type(employment.get("employmentType")),
            job_title_id=employment.get("jobTitleId"),
            department_id=employment.get("departmentId"),
            manager_id=employment.get("reportsTo"),
            pay_frequency="monthly",
            salary_type="monthly",
            basic_salary=employment.get("salary"),
            currency=employment.get("currency") or "ZAR",
            is_uif_applicable=True,
            is_active=True,
            take_on_sheet_id=sheet.id,
            created_by=acting_user_id
        )

    def _refuse(self, sheet: TakeOnSheet, acting_user_id: str, event_type: str, reason: str) -> None:
        sheet_id, company_id, status = sheet.id, sheet.company_id, sheet.status.value
        record_refusal(
            self.db,
            event_type,
            "TakeOnSheet",
            sheet_id,
            user_id=acting_user_id,
            company_id=company_id,
            payload={"status": status, "reason": reason}
        )
        logger.warning("Refused %s on take-on sheet %s: %s", event_type, sheet_id, reason)
