from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from .database import Base  # Import the Base class from our database setup


# Defines the ORM model for a saved delivery address.
class Address(Base):
    __tablename__ = "addresses"

    id = Column(String, primary_key=True, index=True)  # Address identifier (uuid).
    user_id = Column(String, index=True, nullable=False)
    name = Column(String, nullable=False)  # Recipient name.
    phone = Column(String, nullable=False)
    address_line1 = Column(String, nullable=False)
    address_line2 = Column(String, default="")
    landmark = Column(String, default="")
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    pincode = Column(String, nullable=False)
    address_type = Column(String, default="HOME")  # HOME, OFFICE or OTHER.
    is_default = Column(Boolean, default=False, nullable=False)  # At most one per user.
    created_at = Column(DateTime, nullable=False)


# Defines the ORM model for a placed order.
class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, index=True)  # Business-level order reference.
    user_id = Column(String, index=True, nullable=False)
    order_date = Column(DateTime, nullable=False)
    status = Column(String, nullable=False)  # PLACED, CONFIRMED, SHIPPED, DELIVERED or CANCELLED.
    subtotal = Column(Float, nullable=False)
    delivery_fee = Column(Float, nullable=False)
    platform_fee = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    delivery_address_id = Column(String, nullable=False)
    payment_method = Column(String, nullable=False)  # Payment method id, e.g. "cod".
    payment_status = Column(String, nullable=False)  # PENDING, PAID or FAILED.
    estimated_delivery_date = Column(DateTime)
    actual_delivery_date = Column(DateTime)
    notes = Column(String, default="")


# Defines the ORM model for one line of an order.
# Name and price are copied from the catalog when the order is placed.
class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(String, primary_key=True)
    order_id = Column(String, index=True, nullable=False)  # Owning order (no FK constraint).
    product_id = Column(String, nullable=False)
    product_name = Column(String, nullable=False)
    product_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)  # product_price * quantity.
