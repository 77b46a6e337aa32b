"""
Database Schemas for the Storefront

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.
"""
from datetime import datetime
from typing import List, Optional, Literal

from bson import ObjectId
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, EmailStr

Role = Literal["admin", "user"]
ROLES = ("admin", "user")

OrderStatus = Literal["pending", "confirmed", "shipped", "delivered", "cancelled"]
ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")


class PaymentInfo(BaseModel):
    card_name: Optional[str] = None
    card_number: Optional[str] = None
    expiry_date: Optional[str] = None
    cvv: Optional[str] = None


class Address(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    city: str
    state: str
    zipcode: str
    created_at: datetime


class User(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="bcrypt hash")
    role: Role = "user"
    profile_image: Optional[str] = None
    payment: Optional[PaymentInfo] = None
    addresses: List[dict] = []
    wishlist: List[str] = []
    orders: List[ObjectId] = []


class Review(BaseModel):
    """Parsed form of one serialized entry of ``Product.reviews``."""
    user_name: str = Field("Anonymous", validation_alias=AliasChoices("user_name", "userName"))
    rating: float = 0
    comment: str = ""
    date: Optional[str] = None
    verified: bool = False


class Product(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    rating: float = Field(0, ge=0, le=5)
    reviews: List[str] = []
    description: str = ""
    images: List[str] = []
    category: str
    stock: int = Field(0, ge=0)


class OrderItem(BaseModel):
    product_id: str
    name: Optional[str] = None
    quantity: int
    price: Optional[float] = None


class ShippingLocation(BaseModel):
    city: str
    state: str
    zipcode: str


class Order(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: List[OrderItem]
    shipping_location: ShippingLocation
    user: ObjectId
    status: OrderStatus = "pending"
    total_amount: float
    order_date: datetime
