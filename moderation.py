"""
Listing moderation.

A listing stores two flags, `approved` and `rejected`, plus `rejection_reason`.
Exactly one derived status holds at a time:

    approved=True                  -> "approved"
    rejected=True                  -> "rejected"
    approved=False, rejected=False -> "pending"

New listings start pending. Admins may move a listing to approved or rejected
from any state, including back and forth between the two; nothing moves a
listing back to pending.
"""
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from errors import InvalidStatus


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


TARGET_STATUSES = (ModerationStatus.APPROVED.value, ModerationStatus.REJECTED.value)

PENDING_FILTER = {"approved": False, "rejected": False}
APPROVED_FILTER = {"approved": True, "rejected": False}


def pending_fields() -> Dict[str, Any]:
    return {"approved": False, "rejected": False, "rejection_reason": ""}


def derive_status(listing: Mapping[str, Any]) -> ModerationStatus:
    if listing.get("approved"):
        return ModerationStatus.APPROVED
    if listing.get("rejected"):
        return ModerationStatus.REJECTED
    return ModerationStatus.PENDING


def transition(status: Any, reason: Optional[str] = None) -> Dict[str, Any]:
    """Field update moving a listing to `status` ("approved" or "rejected")."""
    if status not in TARGET_STATUSES:
        raise InvalidStatus()
    if status == ModerationStatus.APPROVED.value:
        return {"approved": True, "rejected": False, "rejection_reason": ""}
    return {"approved": False, "rejected": True, "rejection_reason": reason or ""}


def with_status(listing: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(listing)
    out["status"] = derive_status(listing).value
    out["reason"] = listing.get("rejection_reason") or ""
    return out
