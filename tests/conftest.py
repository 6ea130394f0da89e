"""Pytest configuration and shared fixtures."""
import os

# Keep takeon.main from creating a database file when the API tests import it
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from takeon.database import create_db_engine, init_db
from takeon.models.enums import Role, TakeOnSheetStatus
from takeon.services.workflow import WorkflowService

COMPANY_ID = "company-1"

EMPLOYMENT_INFO = {
    "employmentType": "permanent",
    "isContract": False,
    "jobTitleId": "job-1",
    "departmentId": "dept-1",
    "salary": 50000,
    "currency": "ZAR",
    "dateOfEmployment": "2024-01-15",
    "reportsTo": "manager-1",
}

PERSONAL_DETAILS = {
    "title": "Mr",
    "firstName": "John",
    "lastName": "Doe",
    "race": "African",
    "physicalAddress": {
        "line1": "123 Main Street",
        "city": "Johannesburg",
        "province": "Gauteng",
        "postalCode": "2000",
        "country": "South Africa",
    },
    "postalAddress": {
        "line1": "PO Box 456",
        "city": "Johannesburg",
        "province": "Gauteng",
        "postalCode": "2001",
        "country": "South Africa",
    },
    "postalSameAsPhysical": False,
    "idNumber": "9001015800087",
    "contactNumber": "0821234567",
    "hasDisability": False,
    "employeeAcknowledgement": True,
}


class InMemoryBlobStore:
    """Blob store double that keeps uploads in a dict."""

    def __init__(self):
        self.blobs = {}

    def upload(self, storage_path, content, content_type):
        self.blobs[storage_path] = (content, content_type)
        return storage_path

    def delete(self, storage_path):
        self.blobs.pop(storage_path, None)


@pytest.fixture
def engine():
    """Fresh in-memory database shared by every connection of one test."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture
def workflow(db_session, blob_store):
    return WorkflowService(db_session, blob_store)


@pytest.fixture
def draft_sheet(workflow):
    """A sheet just started by a line manager."""
    return workflow.create(
        COMPANY_ID,
        created_by="manager-1",
        role=Role.LINE_MANAGER,
        employment_info=EMPLOYMENT_INFO
    )


def advance_to(workflow, sheet, target):
    """Walk a sheet forward with roles that are allowed each step."""
    steps = [
        (TakeOnSheetStatus.PENDING_HR_REVIEW, "manager-1", Role.LINE_MANAGER),
        (TakeOnSheetStatus.PENDING_IT_SETUP, "hr-1", Role.HR_ADMIN),
        (TakeOnSheetStatus.COMPLETE, "it-1", Role.SYSTEM_ADMIN),
    ]
    for to_status, user_id, role in steps:
        if sheet.status == target:
            break
        sheet = workflow.transition_status(sheet.company_id, sheet.id, to_status, user_id, role)
    return sheet


@pytest.fixture
def complete_sheet(workflow, draft_sheet):
    """A sheet with personal details captured, walked all the way to Complete."""
    workflow.update(
        COMPANY_ID,
        draft_sheet.id,
        updated_by="employee-1",
        role=Role.EMPLOYEE,
        personal_details=PERSONAL_DETAILS
    )
    return advance_to(workflow, draft_sheet, TakeOnSheetStatus.COMPLETE)


def make_document(document_type, uploaded_by="user-1", uploaded_at="2024-01-15T10:30:00"):
    return {
        "fileName": f"{document_type}.pdf",
        "storagePath": f"tenants/{COMPANY_ID}/take-on-sheets/1/documents/{document_type}/{document_type}.pdf",
        "uploadedAt": uploaded_at,
        "uploadedBy": uploaded_by,
        "fileSize": 1024,
        "mimeType": "application/pdf",
    }
