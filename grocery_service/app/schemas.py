"""
Schemas for the grocery cart and order service

Pydantic models for catalog data, cart lines, addresses, the checkout
summary and orders. Persisted shapes mirror the tables in models.py and are
built from ORM rows with ``model_validate``.
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field


class AddressType(str, Enum):
    HOME = "HOME"
    OFFICE = "OFFICE"
    OTHER = "OTHER"


class OrderStatus(str, Enum):
    PLACED = "PLACED"
    CONFIRMED = "CONFIRMED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


# ---------- Catalog ----------

class Category(BaseModel):
    id: str
    name: str
    icon: str = Field("", description="Emoji or image url")
    is_active: bool = True


class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    price: float = Field(..., ge=0, description="Selling price per unit")
    original_price: Optional[float] = Field(None, ge=0, description="List price before discount")
    image_url: str = ""
    category: str = Field(..., description="Category id")
    unit: str = Field("piece", description="kg, piece, liter etc")
    in_stock: bool = True
    rating: float = Field(0.0, ge=0, le=5)
    discount: int = Field(0, ge=0, le=100, description="Discount percent")


class PaymentMethod(BaseModel):
    id: str
    name: str
    description: str
    icon: str = ""
    is_enabled: bool = True


# ---------- Cart ----------

class CartLine(BaseModel):
    product: Product
    quantity: int = Field(..., ge=1)
    added_at: datetime

    @computed_field
    @property
    def total_price(self) -> float:
        return self.product.price * self.quantity

    @computed_field
    @property
    def total_original_price(self) -> Optional[float]:
        if self.product.original_price is None:
            return None
        return self.product.original_price * self.quantity

    @computed_field
    @property
    def total_savings(self) -> float:
        if self.total_original_price is None:
            return 0.0
        return self.total_original_price - self.total_price


class CartSnapshot(BaseModel):
    lines: List[CartLine] = Field(default_factory=list)
    unique_item_count: int = 0
    total_quantity: int = 0
    total_price: float = 0.0
    total_savings: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.lines


# ---------- Addresses ----------

class AddressIn(BaseModel):
    """Address as submitted by the user. ``id`` replaces an existing address."""
    id: Optional[str] = None
    name: str
    phone: str
    address_line1: str
    address_line2: str = ""
    landmark: str = ""
    city: str
    state: str
    pincode: str
    address_type: AddressType = AddressType.HOME
    is_default: bool = False


class Address(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    name: str
    phone: str
    address_line1: str
    address_line2: str = ""
    landmark: str = ""
    city: str
    state: str
    pincode: str
    address_type: AddressType = AddressType.HOME
    is_default: bool = False
    created_at: datetime


# ---------- Checkout ----------

class CheckoutSummary(BaseModel):
    lines: List[CartLine] = Field(default_factory=list)
    addresses: List[Address] = Field(default_factory=list)
    selected_address: Optional[Address] = None
    payment_methods: List[PaymentMethod] = Field(default_factory=list)
    selected_payment_method: Optional[PaymentMethod] = None
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    platform_fee: float = 0.0
    discount: float = 0.0
    savings: float = 0.0
    order_notes: str = ""
    is_placing_order: bool = False

    @computed_field
    @property
    def total_amount(self) -> float:
        return round(self.subtotal + self.delivery_fee + self.platform_fee - self.discount, 2)

    @computed_field
    @property
    def missing_prerequisites(self) -> List[str]:
        missing = []
        if not self.lines:
            missing.append("empty cart")
        if self.selected_address is None:
            missing.append("no address selected")
        if self.selected_payment_method is None:
            missing.append("no payment method selected")
        if self.is_placing_order:
            missing.append("already placing order")
        return missing

    @computed_field
    @property
    def can_place_order(self) -> bool:
        return not self.missing_prerequisites


# ---------- Orders ----------

class OrderItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_id: str
    product_id: str
    product_name: str = Field(..., description="Product name when the order was placed")
    product_price: float = Field(..., description="Unit price when the order was placed")
    quantity: int
    total_price: float


class Order(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    order_date: datetime
    status: OrderStatus = OrderStatus.PLACED
    subtotal: float
    delivery_fee: float
    platform_fee: float = 0.0
    discount: float = 0.0
    total_amount: float
    delivery_address_id: str
    payment_method: str
    payment_status: PaymentStatus = PaymentStatus.PENDING
    estimated_delivery_date: Optional[datetime] = None
    actual_delivery_date: Optional[datetime] = None
    notes: str = ""


class OrderWithItems(BaseModel):
    order: Order
    items: List[OrderItem]


class OrderStats(BaseModel):
    total_orders: int
    total_spent: float
