"""Pydantic schemas for request/response validation."""
from datetime import date, datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from takeon.models.enums import (
    TakeOnSheetStatus,
    TakeOnDocumentType,
    EmploymentType,
    ContractType,
    EmploymentStatus,
    Section,
)


# Section payloads - keys match what the forms store on the sheet
class Address(BaseModel):
    line1: str = ""
    line2: Optional[str] = None
    suburb: Optional[str] = None
    city: str = ""
    province: str = ""
    postalCode: str = ""
    country: str = "South Africa"


class EmploymentInfo(BaseModel):
    employmentType: Optional[EmploymentType] = None
    isContract: Optional[bool] = None
    contractPeriodMonths: Optional[int] = Field(None, ge=1)
    jobTitleId: Optional[str] = None
    departmentId: Optional[str] = None
    salary: Optional[float] = Field(None, ge=0)
    currency: Optional[str] = None
    dateOfEmployment: Optional[date] = None
    reportsTo: Optional[str] = None


class PersonalDetails(BaseModel):
    title: Optional[str] = Field(None, pattern=r"^(Mr|Mrs|Miss|Ms)$")
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    race: Optional[str] = Field(None, pattern=r"^(African|Asian|Coloured|Chinese|European|Indian)$")
    physicalAddress: Optional[Address] = None
    postalAddress: Optional[Address] = None
    postalSameAsPhysical: Optional[bool] = None
    idNumber: Optional[str] = None
    contactNumber: Optional[str] = None
    hasDisability: Optional[bool] = None
    disabilityDetails: Optional[str] = None
    employeeAcknowledgement: Optional[bool] = None


class SystemAccess(BaseModel):
    ess: Optional[bool] = None
    mss: Optional[bool] = None
    zoho: Optional[bool] = None
    lms: Optional[bool] = None
    sophos: Optional[bool] = None
    msOffice: Optional[bool] = None
    bizvoip: Optional[bool] = None
    email: Optional[bool] = None
    teams: Optional[bool] = None
    mimecast: Optional[bool] = None


# TakeOnSheet schemas
class TakeOnSheetCreate(BaseModel):
    employment_info: EmploymentInfo
    access_request_id: Optional[str] = None


class TakeOnSheetUpdate(BaseModel):
    employment_info: Optional[EmploymentInfo] = None
    personal_details: Optional[PersonalDetails] = None
    system_access: Optional[SystemAccess] = None


class StatusChangeResponse(BaseModel):
    from_status: TakeOnSheetStatus
    to_status: TakeOnSheetStatus
    changed_by: str
    changed_at: datetime
    notes: Optional[str]

    class Config:
        from_attributes = True


class TakeOnSheetResponse(BaseModel):
    id: int
    company_id: str
    status: TakeOnSheetStatus
    employment_info: dict
    personal_details: dict
    system_access: dict
    documents: dict
    status_history: List[StatusChangeResponse]
    created_by: str
    created_at: datetime
    updated_by: str
    updated_at: datetime
    access_request_id: Optional[str]
    employee_id: Optional[int]

    class Config:
        from_attributes = True


class StatusTransitionRequest(BaseModel):
    to_status: TakeOnSheetStatus
    notes: Optional[str] = Field(None, max_length=500)


class SheetPermissions(BaseModel):
    """What the caller may do with a sheet right now."""
    status: TakeOnSheetStatus
    editable_sections: List[Section]
    next_status: Optional[TakeOnSheetStatus]
    can_transition: bool


class EmployeeCreationCheck(BaseModel):
    can_create: bool
    reason: Optional[str] = None


class LinkEmployeeRequest(BaseModel):
    employee_id: int


# Documents
class TakeOnDocumentResponse(BaseModel):
    fileName: str
    storagePath: str
    uploadedAt: datetime
    uploadedBy: str
    fileSize: int
    mimeType: str


class DocumentCompleteness(BaseModel):
    is_complete: bool
    missing: List[TakeOnDocumentType]


# Employee
class EmployeeResponse(BaseModel):
    id: int
    company_id: str
    employee_number: str
    first_name: str
    last_name: str
    id_number: str
    status: EmploymentStatus
    contract_type: ContractType
    job_title_id: Optional[str]
    department_id: Optional[str]
    manager_id: Optional[str]
    basic_salary: Optional[float]
    start_date: Optional[datetime]
    take_on_sheet_id: Optional[int]
    created_by: str
    created_at: datetime

    class Config:
        from_attributes = True


# Error response
class RefusalResponse(BaseModel):
    """Response when an action is refused."""
    message: str


StatusCounts = Dict[TakeOnSheetStatus, int]
