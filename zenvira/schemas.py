"""
Database Schemas for the Zenvira storefront

MongoDB collections are defined below using Pydantic models. Each class name is
converted to snake_case for the collection name (SellerApplication ->
"seller_application").

Collections:
- user: customers, sellers and admins
- session: issued sign-in sessions
- category: medicine categories (unique slug)
- medicine: products listed by sellers
- order: customer orders with embedded items
- review: one review per (user, medicine)
- seller_application: requests to become a seller

References between documents are stored as id strings.
"""

from datetime import datetime
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Role = Literal["customer", "seller", "admin"]
UserStatus = Literal["active", "inactive", "banned"]
MedicineStatus = Literal["active", "inactive"]
OrderStatus = Literal["placed", "confirmed", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid"]
PaymentMethod = Literal["cod"]
ApplicationStatus = Literal["pending", "approved", "rejected"]

ROLES = get_args(Role)
USER_STATUSES = get_args(UserStatus)
MEDICINE_STATUSES = get_args(MedicineStatus)
ORDER_STATUSES = get_args(OrderStatus)
PAYMENT_STATUSES = get_args(PaymentStatus)
PAYMENT_METHODS = get_args(PaymentMethod)
APPLICATION_STATUSES = get_args(ApplicationStatus)


class User(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of password")
    role: Role = Field("customer")
    status: UserStatus = Field("active")
    email_verified: bool = Field(False)
    image: Optional[str] = None


class Session(BaseModel):
    user_id: str
    expires_at: datetime = Field(..., description="Removed by a TTL index once passed")


class Category(BaseModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)


class Medicine(BaseModel):
    name: str
    slug: str
    price: float = Field(..., ge=0)
    stock: int = Field(..., ge=0)
    description: str
    manufacturer: str
    status: MedicineStatus = Field("active")
    category_id: str
    seller_id: str
    images: List[str] = Field(default_factory=list)


class OrderItem(BaseModel):
    medicine_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price at purchase time")


class Order(BaseModel):
    customer_id: str
    items: List[OrderItem]
    total: float = Field(..., ge=0)
    status: OrderStatus = Field("placed")
    payment_status: PaymentStatus = Field("pending")
    payment_method: PaymentMethod = Field("cod")
    shipping_name: str
    shipping_phone: str
    shipping_email: str
    address: str


class Review(BaseModel):
    user_id: str
    medicine_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class SellerApplication(BaseModel):
    user_id: str
    store_name: str
    phone: str
    address: str
    note: Optional[str] = None
    status: ApplicationStatus = Field("pending")


class Payload(BaseModel):
    """Request body base: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
