"""API routes for the take-on sheet workflow."""
from fastapi import APIRouter, Depends, File, Header, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional

from takeon.database import get_db
from takeon.models.enums import Role, TakeOnDocumentType, TakeOnSheetStatus
from takeon.services.errors import (
    RefusalError,
    InvalidTransition,
    Unauthorized,
    PreconditionFailed,
    NotFound,
)
from takeon.services.permissions import editable_sections
from takeon.services.state_machine import can_transition_status, next_status
from takeon.services.workflow import WorkflowService
from takeon.storage import BlobStore, LocalBlobStore
from takeon.api.schemas import (
    TakeOnSheetCreate,
    TakeOnSheetUpdate,
    TakeOnSheetResponse,
    StatusTransitionRequest,
    SheetPermissions,
    EmployeeCreationCheck,
    EmployeeResponse,
    LinkEmployeeRequest,
    TakeOnDocumentResponse,
    DocumentCompleteness,
    RefusalResponse,
    StatusCounts,
)

router = APIRouter()

REFUSAL_STATUS_CODES = {
    InvalidTransition: status.HTTP_409_CONFLICT,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    PreconditionFailed: 422,
    NotFound: status.HTTP_404_NOT_FOUND,
}

REFUSAL_RESPONSES = {
    403: {"model": RefusalResponse, "description": "Refusal - role not permitted"},
    404: {"model": RefusalResponse, "description": "Take-on sheet not found"},
    409: {"model": RefusalResponse, "description": "Refusal - invalid status transition"},
    422: {"model": RefusalResponse, "description": "Refusal - precondition failed"},
}


def refusal_to_http(error: RefusalError) -> HTTPException:
    """Translate a service refusal into an HTTP error carrying its message."""
    code = status.HTTP_400_BAD_REQUEST
    for error_type, error_code in REFUSAL_STATUS_CODES.items():
        if isinstance(error, error_type):
            code = error_code
            break
    return HTTPException(status_code=code, detail={"message": error.message})


def get_blob_store() -> BlobStore:
    """Dependency for the blob store; overridden in tests."""
    return LocalBlobStore()


def get_workflow(db: Session = Depends(get_db), blob_store: BlobStore = Depends(get_blob_store)) -> WorkflowService:
    return WorkflowService(db, blob_store)


# Caller identity - authentication happens upstream, this service only reads it
def current_user_id(x_user_id: str = Header(..., min_length=1)) -> str:
    return x_user_id


def current_role(x_user_role: Role = Header(...)) -> Role:
    return x_user_role


# TakeOnSheet endpoints
@router.post(
    "/companies/{company_id}/take-on-sheets",
    response_model=TakeOnSheetResponse,
    status_code=status.HTTP_201_CREATED,
    responses=REFUSAL_RESPONSES
)
def create_take_on_sheet(
    company_id: str,
    sheet_data: TakeOnSheetCreate,
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    """Create a new take-on sheet in Draft state."""
    try:
        return workflow.create(
            company_id,
            created_by=user_id,
            role=role,
            employment_info=sheet_data.employment_info.model_dump(exclude_unset=True, mode="json"),
            access_request_id=sheet_data.access_request_id
        )
    except RefusalError as e:
        raise refusal_to_http(e)


@router.get("/companies/{company_id}/take-on-sheets", response_model=List[TakeOnSheetResponse])
def list_take_on_sheets(
    company_id: str,
    status: Optional[TakeOnSheetStatus] = None,
    created_by: Optional[str] = None,
    workflow: WorkflowService = Depends(get_workflow)
):
    """List a company's take-on sheets, newest first."""
    return workflow.list_for_company(company_id, status=status, created_by=created_by)


@router.get("/companies/{company_id}/take-on-sheets/counts", response_model=StatusCounts)
def count_take_on_sheets(company_id: str, workflow: WorkflowService = Depends(get_workflow)):
    """Number of take-on sheets in each status."""
    return workflow.counts_by_status(company_id)


@router.get(
    "/companies/{company_id}/take-on-sheets/{sheet_id}",
    response_model=TakeOnSheetResponse,
    responses=REFUSAL_RESPONSES
)
def get_take_on_sheet(company_id: str, sheet_id: int, workflow: WorkflowService = Depends(get_workflow)):
    try:
        return workflow.get(company_id, sheet_id)
    except RefusalError as e:
        raise refusal_to_http(e)


@router.patch(
    "/companies/{company_id}/take-on-sheets/{sheet_id}",
    response_model=TakeOnSheetResponse,
    responses=REFUSAL_RESPONSES
)
def update_take_on_sheet(
    company_id: str,
    sheet_id: int,
    update_data: TakeOnSheetUpdate,
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    """
    Update the supplied sections only.

    WILL REFUSE if the caller's role may not edit any supplied section at the current status.
    """
    sections = {
        name: getattr(update_data, name).model_dump(exclude_unset=True, mode="json")
        for name in ("employment_info", "personal_details", "system_access")
        if getattr(update_data, name) is not None
    }
    try:
        return workflow.update(company_id, sheet_id, updated_by=user_id, role=role, **sections)
    except RefusalError as e:
        raise refusal_to_http(e)


@router.delete(
    "/companies/{company_id}/take-on-sheets/{sheet_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=REFUSAL_RESPONSES
)
def delete_take_on_sheet(
    company_id: str,
    sheet_id: int,
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    """Delete a Draft take-on sheet."""
    try:
        workflow.delete(company_id, sheet_id, acting_user_id=user_id, role=role)
    except RefusalError as e:
        raise refusal_to_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/permissions",
    response_model=SheetPermissions,
    responses=REFUSAL_RESPONSES
)
def get_sheet_permissions(
    company_id: str,
    sheet_id: int,
    workflow: WorkflowService = Depends(get_workflow),
    role: Role = Depends(current_role)
):
    """Sections the caller may edit and whether they may advance the sheet."""
    try:
        sheet = workflow.get(company_id, sheet_id)
    except RefusalError as e:
        raise refusal_to_http(e)

    successor = next_status(sheet.status)
    return SheetPermissions(
        status=sheet.status,
        editable_sections=editable_sections(role, sheet.status),
        next_status=successor,
        can_transition=successor is not None and can_transition_status(role, sheet.status, successor)
    )


# Status transitions
@router.post(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/transitions",
    response_model=TakeOnSheetResponse,
    responses=REFUSAL_RESPONSES
)
def transition_take_on_sheet(
    company_id: str,
    sheet_id: int,
    transition: StatusTransitionRequest,
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    """
    Move a sheet to its next status.

    WILL REFUSE if:
    - to_status is not the single successor of the current status
    - the caller's role may not execute that step
    """
    try:
        return workflow.transition_status(
            company_id,
            sheet_id,
            transition.to_status,
            acting_user_id=user_id,
            role=role,
            notes=transition.notes
        )
    except RefusalError as e:
        raise refusal_to_http(e)


# Employee conversion
@router.get(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/employee-check",
    response_model=EmployeeCreationCheck,
    responses=REFUSAL_RESPONSES
)
def check_employee_creation(company_id: str, sheet_id: int, workflow: WorkflowService = Depends(get_workflow)):
    """Advisory check - does not create anything."""
    try:
        check = workflow.check_employee_creation(company_id, sheet_id)
    except RefusalError as e:
        raise refusal_to_http(e)
    return EmployeeCreationCheck(can_create=check.can_create, reason=check.reason)


@router.post(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/employee",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    responses=REFUSAL_RESPONSES
)
def create_employee(
    company_id: str,
    sheet_id: int,
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    """Create the permanent employee record from a Complete sheet."""
    try:
        return workflow.create_employee_from_take_on_sheet(company_id, sheet_id, acting_user_id=user_id, role=role)
    except RefusalError as e:
        raise refusal_to_http(e)


@router.post(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/link-employee",
    response_model=TakeOnSheetResponse,
    responses=REFUSAL_RESPONSES
)
def link_employee(
    company_id: str,
    sheet_id: int,
    link: LinkEmployeeRequest,
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    """Link a Complete sheet to an employee that already exists."""
    try:
        return workflow.link_to_employee(
            company_id, sheet_id, link.employee_id, acting_user_id=user_id, role=role
        )
    except RefusalError as e:
        raise refusal_to_http(e)


# Documents
@router.put(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/documents/{document_type}",
    response_model=TakeOnDocumentResponse,
    responses=REFUSAL_RESPONSES
)
def upload_document(
    company_id: str,
    sheet_id: int,
    document_type: TakeOnDocumentType,
    file: UploadFile = File(...),
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    """Attach (or replace) one document of the given type."""
    content = file.file.read()
    try:
        return workflow.upload_document(
            company_id,
            sheet_id,
            document_type,
            file_name=file.filename,
            content=content,
            mime_type=file.content_type,
            acting_user_id=user_id,
            role=role
        )
    except RefusalError as e:
        raise refusal_to_http(e)


@router.delete(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/documents/{document_type}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=REFUSAL_RESPONSES
)
def delete_document(
    company_id: str,
    sheet_id: int,
    document_type: TakeOnDocumentType,
    workflow: WorkflowService = Depends(get_workflow),
    user_id: str = Depends(current_user_id),
    role: Role = Depends(current_role)
):
    try:
        workflow.delete_document(company_id, sheet_id, document_type, acting_user_id=user_id, role=role)
    except RefusalError as e:
        raise refusal_to_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/companies/{company_id}/take-on-sheets/{sheet_id}/documents/completeness",
    response_model=DocumentCompleteness,
    responses=REFUSAL_RESPONSES
)
def get_document_completeness(company_id: str, sheet_id: int, workflow: WorkflowService = Depends(get_workflow)):
    """Which required documents are still missing."""
    try:
        is_complete, missing = workflow.document_completeness(company_id, sheet_id)
    except RefusalError as e:
        raise refusal_to_http(e)
    return DocumentCompleteness(is_complete=is_complete, missing=missing)
