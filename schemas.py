"""
Database Schemas for the Marketplace

MongoDB collections are defined below using Pydantic models. Each class name is
converted to lowercase for the collection name (User -> "user").

We will use these collections:
- user: accounts (admin, seller, buyer)
- product: seller listings with moderation flags and embedded reviews
- order: submitted orders, immutable once stored
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["admin", "seller", "buyer"]
Status = Literal["active", "blocked"]


class User(BaseModel):
    username: str = Field(..., min_length=1)
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of password")
    role: Role = Field("buyer")
    status: Status = Field("active")
    shop_name: str = Field("", description="Optional shop name for sellers")


class Review(BaseModel):
    user: str = Field(..., description="Reference to user _id (reviewer)")
    username: str = Field(..., description="Reviewer name at review time")
    comment: str = ""
    rating: int = Field(..., ge=1, le=5)
    created_at: datetime


class Product(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    image: str = Field("", description="Path under /uploads")
    description: Optional[str] = None
    stock: Optional[int] = None
    approved: bool = False
    rejected: bool = False
    rejection_reason: str = ""
    seller: str = Field(..., description="Reference to user _id (seller)")
    reviews: List[Review] = []


class OrderItem(BaseModel):
    product_id: str = Field(..., description="Reference to product _id")
    quantity: int = Field(1, ge=1)


class Order(BaseModel):
    user_id: Optional[str] = Field(None, description="Buyer _id when the submitter was signed in")
    products: List[OrderItem] = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    email: str
    phone: str
    address: str = Field(..., min_length=1)
