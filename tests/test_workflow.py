"""
Tests for WorkflowService: creation, section updates, deletion and tenant-scoped reads.
"""
import pytest
from takeon.models.audit import AuditEvent, AuditEventType
from takeon.models.domain import TakeOnSheet
from takeon.models.enums import Role, TakeOnSheetStatus
from takeon.services.errors import NotFound, PreconditionFailed, Unauthorized
from takeon.services.workflow import SYSTEM_ACCESS_FLAGS, WorkflowService, merge_section

from conftest import COMPANY_ID, EMPLOYMENT_INFO, advance_to


class TestCreate:

    def test_defaults(self, draft_sheet):
        assert draft_sheet.company_id == COMPANY_ID
        assert draft_sheet.employment_info["employmentType"] == "permanent"
        assert draft_sheet.personal_details["firstName"] == ""
        assert draft_sheet.personal_details["postalSameAsPhysical"] is True
        assert draft_sheet.system_access == {flag: False for flag in SYSTEM_ACCESS_FLAGS}
        assert draft_sheet.documents == {}
        assert draft_sheet.created_by == "manager-1"
        assert draft_sheet.updated_by == "manager-1"

    def test_access_request_recorded(self, workflow):
        sheet = workflow.create(
            COMPANY_ID, "hr-1", Role.HR_ADMIN, EMPLOYMENT_INFO, access_request_id="req-7"
        )

        assert workflow.get_by_access_request(COMPANY_ID, "req-7").id == sheet.id
        assert workflow.get_by_access_request("company-2", "req-7") is None

    @pytest.mark.parametrize("role", [Role.EMPLOYEE, Role.PAYROLL_ADMIN, Role.FINANCE_READ_ONLY])
    def test_roles_without_employment_access_cannot_create(self, workflow, role):
        with pytest.raises(Unauthorized):
            workflow.create(COMPANY_ID, "someone", role, EMPLOYMENT_INFO)

    def test_creation_audited(self, draft_sheet, db_session):
        audit = db_session.query(AuditEvent).filter(
            AuditEvent.event_type == AuditEventType.TAKE_ON_SHEET_CREATED
        ).first()
        assert audit.entity_id == str(draft_sheet.id)
        assert audit.user_id == "manager-1"


class TestUpdate:
    """Only supplied sections change, and only when the role may edit each of them."""

    def test_partial_update_merges_section(self, workflow, draft_sheet):
        sheet = workflow.update(
            COMPANY_ID, draft_sheet.id, "employee-1", Role.EMPLOYEE,
            personal_details={"firstName": "Thandi"}
        )

        assert sheet.personal_details["firstName"] == "Thandi"
        assert sheet.personal_details["lastName"] == ""
        assert sheet.employment_info == draft_sheet.employment_info
        assert sheet.updated_by == "employee-1"

    def test_system_access_toggles(self, workflow, draft_sheet):
        sheet = workflow.update(
            COMPANY_ID, draft_sheet.id, "hr-1", Role.HR_ADMIN,
            system_access={"email": True, "teams": True}
        )

        assert sheet.system_access["email"] is True
        assert sheet.system_access["teams"] is True
        assert sheet.system_access["zoho"] is False

    def test_unknown_system_access_flag_refused(self, workflow, draft_sheet):
        with pytest.raises(PreconditionFailed):
            workflow.update(
                COMPANY_ID, draft_sheet.id, "hr-1", Role.HR_ADMIN, system_access={"slack": True}
            )

    def test_empty_update_refused(self, workflow, draft_sheet):
        with pytest.raises(PreconditionFailed):
            workflow.update(COMPANY_ID, draft_sheet.id, "hr-1", Role.HR_ADMIN)

    def test_one_refused_section_refuses_everything(self, workflow, draft_sheet, db_session):
        with pytest.raises(Unauthorized) as exc_info:
            workflow.update(
                COMPANY_ID, draft_sheet.id, "manager-1", Role.LINE_MANAGER,
                employment_info={"salary": 1},
                personal_details={"firstName": "Nope"}
            )

        assert "personal" in str(exc_info.value)
        db_session.refresh(draft_sheet)
        assert draft_sheet.employment_info["salary"] == 50000
        assert draft_sheet.personal_details["firstName"] == ""

    def test_refused_update_audited(self, workflow, draft_sheet, db_session):
        with pytest.raises(Unauthorized):
            workflow.update(
                COMPANY_ID, draft_sheet.id, "payroll-1", Role.PAYROLL_ADMIN,
                employment_info={"salary": 1}
            )

        audit = db_session.query(AuditEvent).filter(
            AuditEvent.event_type == AuditEventType.UPDATE_REFUSED
        ).first()
        assert audit.payload_json["sections"] == ["employment"]

    def test_line_manager_loses_employment_after_submission(self, workflow, draft_sheet):
        sheet = advance_to(workflow, draft_sheet, TakeOnSheetStatus.PENDING_HR_REVIEW)

        with pytest.raises(Unauthorized):
            workflow.update(
                COMPANY_ID, sheet.id, "manager-1", Role.LINE_MANAGER, employment_info={"salary": 1}
            )

    def test_hr_can_only_touch_access_during_it_setup(self, workflow, draft_sheet):
        sheet = advance_to(workflow, draft_sheet, TakeOnSheetStatus.PENDING_IT_SETUP)

        workflow.update(COMPANY_ID, sheet.id, "hr-1", Role.HR_ADMIN, system_access={"email": True})
        with pytest.raises(Unauthorized):
            workflow.update(COMPANY_ID, sheet.id, "hr-1", Role.HR_ADMIN, employment_info={"salary": 1})

    def test_complete_sheet_is_read_only(self, workflow, complete_sheet):
        with pytest.raises(Unauthorized):
            workflow.update(
                COMPANY_ID, complete_sheet.id, "admin-1", Role.SYSTEM_ADMIN, system_access={"email": True}
            )

    def test_update_audited(self, workflow, draft_sheet, db_session):
        workflow.update(
            COMPANY_ID, draft_sheet.id, "employee-1", Role.EMPLOYEE, personal_details={"firstName": "A"}
        )

        audit = db_session.query(AuditEvent).filter(
            AuditEvent.event_type == AuditEventType.TAKE_ON_SHEET_UPDATED
        ).first()
        assert audit.payload_json["sections"] == ["personal"]


class TestDelete:

    def test_draft_can_be_deleted(self, workflow, draft_sheet, db_session):
        sheet_id = draft_sheet.id
        workflow.delete(COMPANY_ID, sheet_id, "manager-1", Role.LINE_MANAGER)

        assert db_session.get(TakeOnSheet, sheet_id) is None

    def test_delete_removes_blobs(self, workflow, draft_sheet, blob_store):
        metadata = workflow.upload_document(
            COMPANY_ID, draft_sheet.id, "sarsLetter", "sars.pdf", b"%PDF", "application/pdf",
            "hr-1", Role.HR_ADMIN
        )

        workflow.delete(COMPANY_ID, draft_sheet.id, "hr-1", Role.HR_ADMIN)

        assert metadata["storagePath"] not in blob_store.blobs

    def test_submitted_sheet_cannot_be_deleted(self, workflow, draft_sheet):
        sheet = advance_to(workflow, draft_sheet, TakeOnSheetStatus.PENDING_HR_REVIEW)

        with pytest.raises(PreconditionFailed) as exc_info:
            workflow.delete(COMPANY_ID, sheet.id, "admin-1", Role.SYSTEM_ADMIN)

        assert "draft" in str(exc_info.value)


class TestTenantScoping:

    def test_other_company_sees_not_found(self, workflow, draft_sheet):
        with pytest.raises(NotFound):
            workflow.get("company-2", draft_sheet.id)

    def test_other_company_cannot_transition(self, workflow, draft_sheet):
        with pytest.raises(NotFound):
            workflow.transition_status(
                "company-2", draft_sheet.id, TakeOnSheetStatus.PENDING_HR_REVIEW, "manager-1", Role.LINE_MANAGER
            )

    def test_missing_sheet(self, workflow):
        with pytest.raises(NotFound):
            workflow.get(COMPANY_ID, 999)


class TestQueries:

    @pytest.fixture
    def sheets(self, workflow, draft_sheet):
        second = workflow.create(COMPANY_ID, "hr-1", Role.HR_ADMIN, EMPLOYMENT_INFO)
        advance_to(workflow, second, TakeOnSheetStatus.PENDING_HR_REVIEW)
        workflow.create("company-2", "hr-9", Role.HR_ADMIN, EMPLOYMENT_INFO)
        return draft_sheet, second

    def test_list_is_tenant_scoped_newest_first(self, workflow, sheets):
        first, second = sheets

        listed = workflow.list_for_company(COMPANY_ID)

        assert [sheet.id for sheet in listed] == [second.id, first.id]

    def test_list_by_status(self, workflow, sheets):
        first, second = sheets

        assert [s.id for s in workflow.list_by_status(COMPANY_ID, TakeOnSheetStatus.DRAFT)] == [first.id]
        assert [s.id for s in workflow.list_by_status(COMPANY_ID, "pending_hr_review")] == [second.id]

    def test_list_by_creator(self, workflow, sheets):
        first, _ = sheets

        assert [s.id for s in workflow.list_by_creator(COMPANY_ID, "manager-1")] == [first.id]

    def test_counts_by_status(self, workflow, sheets):
        counts = workflow.counts_by_status(COMPANY_ID)

        assert counts == {
            TakeOnSheetStatus.DRAFT: 1,
            TakeOnSheetStatus.PENDING_HR_REVIEW: 1,
            TakeOnSheetStatus.PENDING_IT_SETUP: 0,
            TakeOnSheetStatus.COMPLETE: 0,
        }


class TestWithoutBlobStore:

    def test_uploads_need_a_blob_store(self, db_session, draft_sheet):
        workflow = WorkflowService(db_session)

        with pytest.raises(PreconditionFailed):
            workflow.upload_document(
                COMPANY_ID, draft_sheet.id, "sarsLetter", "sars.pdf", b"%PDF", "application/pdf",
                "hr-1", Role.HR_ADMIN
            )


class TestRefusalsAudited:
    """Every refused mutation leaves an audit event."""

    def _refusals(self, db_session, event_type):
        return db_session.query(AuditEvent).filter(AuditEvent.event_type == event_type).all()

    def test_create_refusal_audited(self, workflow, db_session):
        with pytest.raises(Unauthorized):
            workflow.create(COMPANY_ID, "employee-1", Role.EMPLOYEE, EMPLOYMENT_INFO)

        [audit] = self._refusals(db_session, AuditEventType.CREATION_REFUSED)
        assert audit.user_id == "employee-1"
        assert audit.company_id == COMPANY_ID
        assert audit.payload_json["role"] == "Employee"
        assert db_session.query(TakeOnSheet).count() == 0

    def test_delete_of_submitted_sheet_audited(self, workflow, draft_sheet, db_session):
        sheet = advance_to(workflow, draft_sheet, TakeOnSheetStatus.PENDING_HR_REVIEW)

        with pytest.raises(PreconditionFailed):
            workflow.delete(COMPANY_ID, sheet.id, "admin-1", Role.SYSTEM_ADMIN)

        [audit] = self._refusals(db_session, AuditEventType.DELETION_REFUSED)
        assert audit.payload_json["reason"] == "not_draft"
        assert audit.payload_json["status"] == "pending_hr_review"

    def test_delete_by_role_without_access_audited(self, workflow, draft_sheet, db_session):
        with pytest.raises(Unauthorized):
            workflow.delete(COMPANY_ID, draft_sheet.id, "employee-1", Role.EMPLOYEE)

        [audit] = self._refusals(db_session, AuditEventType.DELETION_REFUSED)
        assert audit.payload_json["reason"] == "role_not_permitted"
        assert db_session.get(TakeOnSheet, draft_sheet.id) is not None

    def test_empty_update_audited(self, workflow, draft_sheet, db_session):
        with pytest.raises(PreconditionFailed):
            workflow.update(COMPANY_ID, draft_sheet.id, "hr-1", Role.HR_ADMIN)

        [audit] = self._refusals(db_session, AuditEventType.UPDATE_REFUSED)
        assert audit.payload_json["reason"] == "nothing_supplied"

    def test_update_refusal_does_not_commit_pending_edits(self, workflow, draft_sheet, db_session):
        draft_sheet.system_access = {**draft_sheet.system_access, "email": True}

        with pytest.raises(Unauthorized):
            workflow.update(
                COMPANY_ID, draft_sheet.id, "payroll-1", Role.PAYROLL_ADMIN, employment_info={"salary": 1}
            )

        db_session.refresh(draft_sheet)
        assert draft_sheet.system_access["email"] is False


class TestAddressMerge:
    """Nested address objects are merged, not replaced."""

    def test_partial_address_keeps_other_fields(self, workflow, draft_sheet):
        workflow.update(
            COMPANY_ID, draft_sheet.id, "employee-1", Role.EMPLOYEE,
            personal_details={"physicalAddress": {"line1": "1 Long Street", "postalCode": "8001"}}
        )

        sheet = workflow.update(
            COMPANY_ID, draft_sheet.id, "employee-1", Role.EMPLOYEE,
            personal_details={"physicalAddress": {"city": "Cape Town"}}
        )

        address = sheet.personal_details["physicalAddress"]
        assert address["city"] == "Cape Town"
        assert address["line1"] == "1 Long Street"
        assert address["postalCode"] == "8001"
        assert address["country"] == "South Africa"

    def test_merge_section(self):
        current = {"firstName": "A", "postalAddress": {"line1": "PO Box 1", "city": "X"}}

        merged = merge_section(current, {"firstName": "B", "postalAddress": {"city": "Y"}})

        assert merged == {"firstName": "B", "postalAddress": {"line1": "PO Box 1", "city": "Y"}}
        assert current["postalAddress"]["city"] == "X"
