"""
Authoritative permission tables for take-on sheets.

Two static tables, built once at import and read-only for the life of the
process:
- SECTION_EDIT_PERMISSIONS: role -> section -> statuses in which the role may write
- TRANSITION_PERMISSIONS: role -> transition edges the role may execute

Lookups fail closed: an unknown role, section or status is never editable.
"""
from types import MappingProxyType
from typing import FrozenSet, List, Mapping, Tuple

from takeon.models.enums import Role, Section, TakeOnSheetStatus

DRAFT = TakeOnSheetStatus.DRAFT
HR_REVIEW = TakeOnSheetStatus.PENDING_HR_REVIEW
IT_SETUP = TakeOnSheetStatus.PENDING_IT_SETUP
COMPLETE = TakeOnSheetStatus.COMPLETE

NONE: FrozenSet[TakeOnSheetStatus] = frozenset()
THROUGH_DRAFT = frozenset({DRAFT})
THROUGH_HR_REVIEW = frozenset({DRAFT, HR_REVIEW})
THROUGH_IT_SETUP = frozenset({DRAFT, HR_REVIEW, IT_SETUP})


def _sections(employment, personal, documents, system_access):
    return MappingProxyType({
        Section.EMPLOYMENT: employment,
        Section.PERSONAL: personal,
        Section.DOCUMENTS: documents,
        Section.SYSTEM_ACCESS: system_access,
    })


_HR_SECTIONS = _sections(THROUGH_HR_REVIEW, THROUGH_HR_REVIEW, THROUGH_IT_SETUP, THROUGH_IT_SETUP)
_PAYROLL_SECTIONS = _sections(NONE, NONE, THROUGH_HR_REVIEW, NONE)
_NO_SECTIONS = _sections(NONE, NONE, NONE, NONE)

SECTION_EDIT_PERMISSIONS: Mapping[Role, Mapping[Section, FrozenSet[TakeOnSheetStatus]]] = MappingProxyType({
    Role.SYSTEM_ADMIN: _sections(THROUGH_IT_SETUP, THROUGH_IT_SETUP, THROUGH_IT_SETUP, THROUGH_IT_SETUP),
    Role.HR_ADMIN: _HR_SECTIONS,
    Role.HR_MANAGER: _HR_SECTIONS,
    Role.LINE_MANAGER: _sections(THROUGH_DRAFT, NONE, NONE, NONE),
    Role.EMPLOYEE: _sections(NONE, THROUGH_HR_REVIEW, NONE, NONE),
    Role.PAYROLL_ADMIN: _PAYROLL_SECTIONS,
    Role.PAYROLL_MANAGER: _PAYROLL_SECTIONS,
    Role.FINANCE_APPROVER: _NO_SECTIONS,
    Role.FINANCE_READ_ONLY: _NO_SECTIONS,
    Role.IR_OFFICER: _NO_SECTIONS,
    Role.IR_MANAGER: _NO_SECTIONS,
})

Edge = Tuple[TakeOnSheetStatus, TakeOnSheetStatus]

ALL_FORWARD_EDGES: FrozenSet[Edge] = frozenset({
    (DRAFT, HR_REVIEW),
    (HR_REVIEW, IT_SETUP),
    (IT_SETUP, COMPLETE),
})

TRANSITION_PERMISSIONS: Mapping[Role, FrozenSet[Edge]] = MappingProxyType({
    Role.SYSTEM_ADMIN: ALL_FORWARD_EDGES,
    Role.HR_ADMIN: ALL_FORWARD_EDGES,
    Role.HR_MANAGER: ALL_FORWARD_EDGES,
    Role.LINE_MANAGER: frozenset({(DRAFT, HR_REVIEW)}),
})


def coerce(enum_cls, value):
    """Return the enum member for value, or None when it is not one."""
    try:
        return enum_cls(value)
    except ValueError:
        return None


def can_edit_section(role, section, status) -> bool:
    """
    Definitive section edit check.

    Accepts enum members or their string values. Never raises.
    """
    role = coerce(Role, role)
    section = coerce(Section, section)
    status = coerce(TakeOnSheetStatus, status)
    if role is None or section is None or status is None:
        return False
    if status == COMPLETE:
        return False
    return status in SECTION_EDIT_PERMISSIONS.get(role, _NO_SECTIONS).get(section, NONE)


def editable_sections(role, status) -> List[Section]:
    """Sections the role may write to at this status, in display order."""
    return [section for section in Section if can_edit_section(role, section, status)]


def role_may_execute(role, edge: Edge) -> bool:
    """Is this edge in the role's transition set? Says nothing about the total order."""
    role = coerce(Role, role)
    if role is None:
        return False
    return edge in TRANSITION_PERMISSIONS.get(role, frozenset())


# Roles that may turn a completed sheet into an employee, or link it to one
CONVERSION_ROLES: FrozenSet[Role] = frozenset({Role.SYSTEM_ADMIN, Role.HR_ADMIN, Role.HR_MANAGER})


def can_convert_to_employee(role) -> bool:
    return coerce(Role, role) in CONVERSION_ROLES
