"""
Workflow Enums

All enum types used throughout the consultation workflow.
Values must match exactly with the PostgreSQL enum types in schema.sql.
"""

from enum import Enum

# ════════════════════════════════════════════════════════════════════════════
# Consultation Request Enums
# ════════════════════════════════════════════════════════════════════════════


class RequestStatus(str, Enum):
    """Consultation request lifecycle status."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    PENDING_ADVISOR = "pending_advisor"  # Offered to ranked advisors, awaiting an accept
    ACCEPTED = "accepted"  # An advisor accepted; advisor_id is set
    PAYMENT_RESERVED = "payment_reserved"  # Order created, gateway reservation pending
    AWAITING_PAYMENT = "awaiting_payment"  # Legacy value, no transitions in or out
    PAID = "paid"  # Gateway confirmed the payment
    IN_PROGRESS = "in_progress"  # Session running
    COMPLETED = "completed"
    RELEASED = "released"  # Advisor share credited
    CLOSED = "closed"
    RATED = "rated"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


class AssignmentStatus(str, Enum):
    """Status of an offer of a request to one advisor."""

    OFFERED = "offered"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class Decision(str, Enum):
    """Advisor response to an offer."""

    ACCEPT = "accept"
    DECLINE = "decline"


# ════════════════════════════════════════════════════════════════════════════
# Payment Enums
# ════════════════════════════════════════════════════════════════════════════


class OrderStatus(str, Enum):
    """Order (payment ledger row) status."""

    PENDING = "pending"  # Reservation requested, gateway has not confirmed
    COMPLETED = "completed"  # Gateway confirmed, terminal success
    FAILED = "failed"
    CANCELLED = "cancelled"


# ════════════════════════════════════════════════════════════════════════════
# People Enums
# ════════════════════════════════════════════════════════════════════════════


class AdvisorStatus(str, Enum):
    """Advisor availability in the directory."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class Role(str, Enum):
    """Caller role forwarded by the auth layer."""

    USER = "user"
    ADVISOR = "advisor"
    ADMIN = "admin"
    SYSTEM = "system"  # Gateway callbacks and scheduled triggers


class UserTier(str, Enum):
    """Subscription tier; drives ranking priority and discount."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"
