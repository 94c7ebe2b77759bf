"""Order submission checks applied before an order is stored."""
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from database import is_object_id
from errors import ValidationFailed
from schemas import Order as OrderSchema

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
PHONE_RE = re.compile(r"^[\d+\-\s]{7,15}$")


class OrderLine(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[Any] = Field(None, alias="productId")
    quantity: Optional[Any] = 1


class OrderSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    products: Optional[List[OrderLine]] = None
    customer_name: Optional[str] = Field(None, alias="customerName")
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


def _quantity(value: Any) -> Optional[int]:
    if value is None:
        return 1
    if isinstance(value, bool):
        return None
    try:
        qty = int(value)
    except (TypeError, ValueError):
        return None
    if qty != value and str(qty) != str(value).strip():
        return None
    return qty if qty >= 1 else None


def validate_order(submission: OrderSubmission, user_id: Optional[str] = None) -> Dict[str, Any]:
    """Return the order document to store, or raise ValidationFailed."""
    fields = [submission.customer_name, submission.email, submission.phone, submission.address]
    if not submission.products or any(not (f or "").strip() for f in fields):
        raise ValidationFailed("Missing or invalid required fields")

    lines: List[Dict[str, Any]] = []
    for line in submission.products:
        qty = _quantity(line.quantity)
        if not is_object_id(line.product_id) or qty is None:
            raise ValidationFailed("Missing or invalid required fields")
        lines.append({"product_id": line.product_id, "quantity": qty})

    email = submission.email.strip().lower()
    if not EMAIL_RE.search(email):
        raise ValidationFailed("Invalid email format")
    phone = submission.phone.strip()
    if not PHONE_RE.match(phone):
        raise ValidationFailed("Invalid phone number format")

    return OrderSchema(
        user_id=user_id,
        products=lines,
        customer_name=submission.customer_name.strip(),
        email=email,
        phone=phone,
        address=submission.address.strip(),
    ).model_dump()
