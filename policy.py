"""Role-based authorization decisions."""
from enum import Enum
from typing import Optional

from errors import Forbidden, Unauthenticated
from security import Claims


class Action(str, Enum):
    # admin only
    LIST_USERS = "list_users"
    VIEW_USER = "view_user"
    UPDATE_USER = "update_user"
    BLOCK_USER = "block_user"
    UNBLOCK_USER = "unblock_user"
    DELETE_USER = "delete_user"
    MODERATE_LISTING = "moderate_listing"
    VIEW_PENDING = "view_pending"
    PATCH_STOCK = "patch_stock"
    # owner only
    DELETE_LISTING = "delete_listing"
    # any signed-in user
    CREATE_LISTING = "create_listing"
    SUBMIT_REVIEW = "submit_review"
    VIEW_PROFILE = "view_profile"
    UPDATE_PROFILE = "update_profile"
    # public
    BROWSE_LISTINGS = "browse_listings"
    VIEW_LISTING = "view_listing"
    VIEW_REVIEWS = "view_reviews"
    VIEW_RECOMMENDATIONS = "view_recommendations"
    VIEW_ORDER = "view_order"
    CREATE_ORDER = "create_order"


ADMIN_ONLY = frozenset({
    Action.LIST_USERS,
    Action.VIEW_USER,
    Action.UPDATE_USER,
    Action.BLOCK_USER,
    Action.UNBLOCK_USER,
    Action.DELETE_USER,
    Action.MODERATE_LISTING,
    Action.VIEW_PENDING,
    Action.PATCH_STOCK,
})
OWNER_ONLY = frozenset({Action.DELETE_LISTING})
AUTHENTICATED = frozenset({
    Action.CREATE_LISTING,
    Action.SUBMIT_REVIEW,
    Action.VIEW_PROFILE,
    Action.UPDATE_PROFILE,
})

FORBIDDEN_MESSAGES = {
    Action.DELETE_LISTING: "Not authorized to delete this product",
}


def requires_claims(action: Action) -> bool:
    return action in ADMIN_ONLY or action in OWNER_ONLY or action in AUTHENTICATED


def can_perform(claims: Optional[Claims], action: Action, resource_owner_id: Optional[str] = None) -> bool:
    if not requires_claims(action):
        return True
    if claims is None:
        return False
    if action in ADMIN_ONLY:
        return claims.role == "admin"
    if action in OWNER_ONLY:
        return resource_owner_id is not None and str(resource_owner_id) == claims.id
    return True


def authorize(claims: Optional[Claims], action: Action, resource_owner_id: Optional[str] = None) -> Optional[Claims]:
    if claims is None and requires_claims(action):
        raise Unauthenticated()
    if not can_perform(claims, action, resource_owner_id):
        raise Forbidden(FORBIDDEN_MESSAGES.get(action, "Admins only"))
    return claims
