# erps/services/lifecycle_rules.py
"""
Status enums and the single transition table for each lifecycle.
Every service asks assert_transition() before writing a new verification_status.
"""

from enum import Enum
from erps.utils.errors import InvalidStateError


class WarrantyStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    REJECTED = "REJECTED"
    PENDING_CUSTOMER_ACTIVATION = "PENDING_CUSTOMER_ACTIVATION"
    ACTIVE = "ACTIVE"
    LAPSED = "LAPSED"


class InspectionStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class Channel(str, Enum):
    """Who is allowed to drive an edge."""
    LIFECYCLE = "LIFECYCLE"          # submit / verify / accept / scheduler
    REINSTATEMENT = "REINSTATEMENT"
    OVERRIDE = "OVERRIDE"


class RecordType(str, Enum):
    WARRANTY = "WARRANTY"
    INSPECTION = "INSPECTION"
    USER = "USER"


class TokenPurpose(str, Enum):
    WARRANTY_VERIFICATION = "WARRANTY_VERIFICATION"
    INSPECTION_VERIFICATION = "INSPECTION_VERIFICATION"
    CUSTOMER_ACTIVATION = "CUSTOMER_ACTIVATION"


class UserRole(str, Enum):
    AGENT = "AGENT"
    INSTALLER = "INSTALLER"
    INSPECTOR = "INSPECTOR"
    ADMIN = "ADMIN"


W = WarrantyStatus
I = InspectionStatus

WARRANTY_TRANSITIONS = {
    (W.DRAFT, W.SUBMITTED): {Channel.LIFECYCLE},
    (W.SUBMITTED, W.REJECTED): {Channel.LIFECYCLE},
    (W.SUBMITTED, W.PENDING_CUSTOMER_ACTIVATION): {Channel.LIFECYCLE},
    (W.PENDING_CUSTOMER_ACTIVATION, W.ACTIVE): {Channel.LIFECYCLE},
    (W.ACTIVE, W.LAPSED): {Channel.LIFECYCLE},
    (W.LAPSED, W.ACTIVE): {Channel.REINSTATEMENT},
}

INSPECTION_TRANSITIONS = {
    (I.DRAFT, I.SUBMITTED): {Channel.LIFECYCLE},
    (I.SUBMITTED, I.VERIFIED): {Channel.LIFECYCLE},
    (I.SUBMITTED, I.REJECTED): {Channel.LIFECYCLE},
}

_TABLES = {
    RecordType.WARRANTY: (WarrantyStatus, WARRANTY_TRANSITIONS),
    RecordType.INSPECTION: (InspectionStatus, INSPECTION_TRANSITIONS),
}


def is_legal(record_type: RecordType, current: str, target: str, channel: Channel = Channel.LIFECYCLE) -> bool:
    enum_cls, table = _TABLES[record_type]
    current, target = enum_cls(current), enum_cls(target)

    if channel == Channel.OVERRIDE:
        if current == target or target.value == "DRAFT":
            return False
        # LAPSED -> ACTIVE is reinstatement-only, even for admins
        if record_type == RecordType.WARRANTY and (current, target) == (W.LAPSED, W.ACTIVE):
            return False
        # A VERIFIED inspection has already pushed the warranty due date forward
        if record_type == RecordType.INSPECTION and current == I.VERIFIED:
            return False
        return True

    return channel in table.get((current, target), set())


def assert_transition(record_type: RecordType, current: str, target: str, channel: Channel = Channel.LIFECYCLE):
    """Raise INVALID_STATE unless current -> target is a legal edge for this channel."""
    if not is_legal(record_type, current, target, channel):
        raise InvalidStateError(
            f"{record_type.value.title()} cannot move from {current} to {target}",
            [f"Current status is {current}"],
        )


def parse_status(record_type: RecordType, value: str):
    """Parse a caller-supplied status name; None if unknown."""
    enum_cls, _ = _TABLES[record_type]
    try:
        return enum_cls(value)
    except ValueError:
        return None
