"""
Handoff of take-on sheet attachments into an employee's permanent document collection.

One-directional copy: the source metadata stays on the sheet for audit and the
blob is shared by storage path, not duplicated.
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from takeon.models.audit import AuditEventType, record_event
from takeon.models.domain import EmployeeDocument, TakeOnSheet
from takeon.models.enums import (
    DOCUMENT_TYPE_LABELS,
    DocumentAccessLevel,
    DocumentCategory,
    TakeOnDocumentType,
)

logger = logging.getLogger(__name__)

# One entry per onboarding document type
DOCUMENT_CATEGORY_MAP = {
    TakeOnDocumentType.SARS_LETTER: DocumentCategory.TAX,
    TakeOnDocumentType.BANK_PROOF: DocumentCategory.BANK_PROOF,
    TakeOnDocumentType.CERTIFIED_ID: DocumentCategory.IDENTITY,
    TakeOnDocumentType.SIGNED_CONTRACT: DocumentCategory.CONTRACT,
    TakeOnDocumentType.CV_QUALIFICATIONS: DocumentCategory.QUALIFICATION,
    TakeOnDocumentType.MARISIT: DocumentCategory.OTHER,
    TakeOnDocumentType.EAA1_FORM: DocumentCategory.OTHER,
}

DOCUMENT_ACCESS_LEVEL_MAP = {
    DocumentCategory.TAX: DocumentAccessLevel.PAYROLL,
    DocumentCategory.BANK_PROOF: DocumentAccessLevel.PAYROLL,
}


def provenance_note(sheet: TakeOnSheet, document: dict) -> str:
    """Notes text that keeps the original uploader and upload time after the move."""
    return (
        f"Transferred from take-on sheet {sheet.id}. "
        f"Originally uploaded by {document.get('uploadedBy')} "
        f"on {document.get('uploadedAt')}."
    )


def transfer_documents(db: Session, sheet: TakeOnSheet, employee_id: int, acting_user_id: str) -> List[int]:
    """
    Create one EmployeeDocument per document present on the sheet.

    Returns the new document ids; their count equals the number of documents
    present. Flushes but does not commit - the caller owns the transaction.

    Not idempotent: calling it twice for the same employee creates duplicates.
    """
    present = sheet.documents or {}
    created: List[EmployeeDocument] = []

    for document_type in TakeOnDocumentType:
        document = present.get(document_type.value)
        if not document:
            continue

        category = DOCUMENT_CATEGORY_MAP[document_type]
        employee_document = EmployeeDocument(
            employee_id=employee_id,
            company_id=sheet.company_id,
            name=DOCUMENT_TYPE_LABELS[document_type],
            category=category,
            access_level=DOCUMENT_ACCESS_LEVEL_MAP.get(category, DocumentAccessLevel.HR),
            file_name=document["fileName"],
            file_type=document["mimeType"],
            file_size=document["fileSize"],
            storage_path=document["storagePath"],
            is_verified=False,
            notes=provenance_note(sheet, document),
            source_document_type=document_type.value,
            uploaded_by=acting_user_id
        )
        db.add(employee_document)
        created.append(employee_document)

    db.flush()
    document_ids = [employee_document.id for employee_document in created]

    if document_ids:
        record_event(
            db,
            AuditEventType.DOCUMENTS_TRANSFERRED,
            "Employee",
            employee_id,
            user_id=acting_user_id,
            company_id=sheet.company_id,
            payload={"take_on_sheet_id": sheet.id, "document_ids": document_ids}
        )
    logger.info(
        "Transferred %d documents from take-on sheet %s to employee %s",
        len(document_ids), sheet.id, employee_id
    )
    return document_ids
