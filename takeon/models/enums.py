"""Enums for the take-on workflow - these define the valid values for states, roles and taxonomies."""
from enum import Enum


class TakeOnSheetStatus(str, Enum):
    """
    The four workflow states, in their total order.

    Declaration order IS the workflow order; the state machine relies on it.
    """
    DRAFT = "draft"
    PENDING_HR_REVIEW = "pending_hr_review"
    PENDING_IT_SETUP = "pending_it_setup"
    COMPLETE = "complete"


class Role(str, Enum):
    """User roles. Owned by the identity provider and passed in on every call."""
    SYSTEM_ADMIN = "System Admin"
    HR_ADMIN = "HR Admin"
    HR_MANAGER = "HR Manager"
    PAYROLL_ADMIN = "Payroll Admin"
    PAYROLL_MANAGER = "Payroll Manager"
    FINANCE_APPROVER = "Finance Approver"
    FINANCE_READ_ONLY = "Finance Read-Only"
    LINE_MANAGER = "Line Manager"
    IR_OFFICER = "IR Officer"
    IR_MANAGER = "IR Manager"
    EMPLOYEE = "Employee"


class Section(str, Enum):
    """Coarse editable regions of a take-on sheet."""
    EMPLOYMENT = "employment"
    PERSONAL = "personal"
    DOCUMENTS = "documents"
    SYSTEM_ACCESS = "systemAccess"


class TakeOnDocumentType(str, Enum):
    """Documents required for payroll/HR. At most one of each per sheet."""
    SARS_LETTER = "sarsLetter"
    BANK_PROOF = "bankProof"
    CERTIFIED_ID = "certifiedId"
    SIGNED_CONTRACT = "signedContract"
    CV_QUALIFICATIONS = "cvQualifications"
    MARISIT = "marisit"
    EAA1_FORM = "eaa1Form"


DOCUMENT_TYPE_LABELS = {
    TakeOnDocumentType.SARS_LETTER: "SARS Letter",
    TakeOnDocumentType.BANK_PROOF: "Proof of Bank Account",
    TakeOnDocumentType.CERTIFIED_ID: "Certified ID Copy",
    TakeOnDocumentType.SIGNED_CONTRACT: "Signed Contract",
    TakeOnDocumentType.CV_QUALIFICATIONS: "CV and Qualifications",
    TakeOnDocumentType.MARISIT: "MARISIT",
    TakeOnDocumentType.EAA1_FORM: "EAA1 Form",
}


class EmploymentType(str, Enum):
    FIXED = "fixed"
    PWE = "pwe"
    PERMANENT = "permanent"


class ContractType(str, Enum):
    """Contract types on the permanent employee record."""
    PERMANENT = "permanent"
    FIXED_TERM = "fixed_term"
    PART_TIME = "part_time"
    TEMPORARY = "temporary"
    CONTRACTOR = "contractor"
    INTERN = "intern"


class EmploymentStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    ON_LEAVE = "on_leave"
    PROBATION = "probation"
    TERMINATED = "terminated"
    RESIGNED = "resigned"
    RETRENCHED = "retrenched"


class DocumentCategory(str, Enum):
    """Employee document taxonomy."""
    IDENTITY = "identity"
    CONTRACT = "contract"
    QUALIFICATION = "qualification"
    MEDICAL = "medical"
    BANK_PROOF = "bank_proof"
    TAX = "tax"
    WARNING = "warning"
    PERFORMANCE = "performance"
    TRAINING = "training"
    OTHER = "other"


class DocumentAccessLevel(str, Enum):
    EMPLOYEE = "employee"
    HR = "hr"
    PAYROLL = "payroll"
    IR = "ir"
    RESTRICTED = "restricted"
