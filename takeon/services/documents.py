"""Uploading and removing the documents attached to a take-on sheet."""
import logging
import os
from datetime import datetime
from typing import List, Tuple

from sqlalchemy.orm import Session

from takeon.config import ALLOWED_MIME_TYPES, MAX_UPLOAD_BYTES
from takeon.models.audit import AuditEventType, record_event, record_refusal
from takeon.models.domain import TakeOnSheet
from takeon.models.enums import Section, TakeOnDocumentType
from takeon.services.errors import NotFound, PreconditionFailed, RefusalError, Unauthorized
from takeon.services.permissions import can_edit_section, coerce
from takeon.storage import BlobStore

logger = logging.getLogger(__name__)


def storage_path_for(company_id: str, sheet_id: int, document_type: TakeOnDocumentType, file_name: str) -> str:
    """Tenant-scoped blob path for a take-on document."""
    return f"tenants/{company_id}/take-on-sheets/{sheet_id}/documents/{document_type.value}/{file_name}"


def validate_file_type(mime_type: str) -> None:
    if mime_type not in ALLOWED_MIME_TYPES:
        raise PreconditionFailed(
            f"Invalid file type: {mime_type}. Allowed types: PDF, JPEG, PNG"
        )


def validate_file_size(size: int, max_bytes: int = MAX_UPLOAD_BYTES) -> None:
    if size > max_bytes:
        max_mb = max_bytes / (1024 * 1024)
        file_mb = size / (1024 * 1024)
        raise PreconditionFailed(
            f"File size exceeds maximum limit of {max_mb:g}MB. Your file is {file_mb:.2f}MB."
        )


def check_completeness(sheet: TakeOnSheet) -> Tuple[bool, List[TakeOnDocumentType]]:
    """Which of the seven document types are still missing."""
    present = sheet.documents or {}
    missing = [document_type for document_type in TakeOnDocumentType if not present.get(document_type.value)]
    return not missing, missing


class TakeOnDocumentService:
    """Keeps sheet.documents and the blob store in step."""

    def __init__(self, db: Session, blob_store: BlobStore):
        self.db = db
        self.blob_store = blob_store

    @staticmethod
    def _document_type(value) -> TakeOnDocumentType:
        document_type = coerce(TakeOnDocumentType, value)
        if document_type is None:
            raise PreconditionFailed(f"Unknown document type: {value!r}.")
        return document_type

    def _require_documents_access(self, sheet: TakeOnSheet, role) -> None:
        if not can_edit_section(role, Section.DOCUMENTS, sheet.status):
            raise Unauthorized(
                f"Role '{getattr(role, 'value', role)}' may not edit documents "
                f"while the take-on sheet is '{sheet.status.value}'."
            )

    def upload(
        self,
        sheet: TakeOnSheet,
        document_type,
        file_name: str,
        content: bytes,
        mime_type: str,
        acting_user_id: str,
        role
    ) -> dict:
        """
        Store a document and record its metadata on the sheet.

        Replaces any document of the same type; the old blob is removed.
        """
        try:
            document_type = self._document_type(document_type)
            self._require_documents_access(sheet, role)
            validate_file_type(mime_type)
            validate_file_size(len(content))

            file_name = os.path.basename(file_name or "")
            if not file_name:
                raise PreconditionFailed("A file name is required.")
        except RefusalError as e:
            self._refuse(sheet, "upload", document_type, acting_user_id, role, e)
            raise

        storage_path = storage_path_for(sheet.company_id, sheet.id, document_type, file_name)
        self.blob_store.upload(storage_path, content, mime_type)

        previous = (sheet.documents or {}).get(document_type.value)
        if previous and previous.get("storagePath") != storage_path:
            self.blob_store.delete(previous["storagePath"])

        metadata = {
            "fileName": file_name,
            "storagePath": storage_path,
            "uploadedAt": datetime.utcnow().isoformat(),
            "uploadedBy": acting_user_id,
            "fileSize": len(content),
            "mimeType": mime_type,
        }
        sheet.documents = {**(sheet.documents or {}), document_type.value: metadata}
        sheet.updated_by = acting_user_id
        sheet.updated_at = datetime.utcnow()

        record_event(
            self.db,
            AuditEventType.DOCUMENT_UPLOADED,
            "TakeOnSheet",
            sheet.id,
            user_id=acting_user_id,
            company_id=sheet.company_id,
            payload={"document_type": document_type.value, "storage_path": storage_path}
        )
        self.db.commit()
        self.db.refresh(sheet)

        logger.info("Uploaded %s for take-on sheet %s", document_type.value, sheet.id)
        return metadata

    def delete(self, sheet: TakeOnSheet, document_type, acting_user_id: str, role) -> None:
        try:
            document_type = self._document_type(document_type)
            self._require_documents_access(sheet, role)

            documents = dict(sheet.documents or {})
            existing = documents.pop(document_type.value, None)
            if not existing:
                raise NotFound(f"Document type '{document_type.value}' not found on this sheet.")
        except RefusalError as e:
            self._refuse(sheet, "delete", document_type, acting_user_id, role, e)
            raise

        self.blob_store.delete(existing["storagePath"])

        sheet.documents = documents
        sheet.updated_by = acting_user_id
        sheet.updated_at = datetime.utcnow()
        record_event(
            self.db,
            AuditEventType.DOCUMENT_DELETED,
            "TakeOnSheet",
            sheet.id,
            user_id=acting_user_id,
            company_id=sheet.company_id,
            payload={"document_type": document_type.value, "storage_path": existing["storagePath"]}
        )
        self.db.commit()
        logger.info("Deleted %s from take-on sheet %s", document_type.value, sheet.id)

    def _refuse(self, sheet: TakeOnSheet, action: str, document_type, acting_user_id: str, role, error) -> None:
        """Audit a refused upload or delete; the sheet itself is left untouched."""
        sheet_id, company_id = sheet.id, sheet.company_id
        document_type = getattr(document_type, "value", document_type)
        record_refusal(
            self.db,
            AuditEventType.DOCUMENT_REFUSED,
            "TakeOnSheet",
            sheet_id,
            user_id=acting_user_id,
            company_id=company_id,
            payload={
                "action": action,
                "document_type": document_type,
                "role": getattr(role, "value", role),
                "reason": error.message
            }
        )
        logger.warning(
            "Refused %s of %s on take-on sheet %s by %s: %s",
            action, document_type, sheet_id, acting_user_id, error.message
        )
