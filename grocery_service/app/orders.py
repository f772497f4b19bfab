"""
Order ledger: turns a checkout summary into a stored order.

An order and its items are written in one transaction. Item names and
prices are copied from the catalog at placement time, so later catalog
changes never alter order history.

Status lifecycle: PLACED -> CONFIRMED -> SHIPPED -> DELIVERED. CANCELLED can
be reached from any of the first three. DELIVERED and CANCELLED are terminal.
"""
import uuid
from datetime import timedelta
from typing import List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import config, models
from .context import SessionContext
from .errors import NotFound, Result, StorageError, ValidationError
from .payments import payment_status_for
from .schemas import CheckoutSummary, Order, OrderItem, OrderStats, OrderStatus, OrderWithItems
from .streams import StateStream

logger = structlog.get_logger(__name__)

ALLOWED_TRANSITIONS = {
    OrderStatus.PLACED: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


class OrderLedger:
    def __init__(self, context: SessionContext, cart=None):
        self.context = context
        self.cart = cart
        self.history = StateStream([], name="orders.history")
        self.history.set(self.order_history())

    def new_order_id(self) -> str:
        millis = int(self.context.clock().timestamp() * 1000)
        return f"ORDER_{millis}_{uuid.uuid4().hex[:6].upper()}"

    def _read(self, what: str, fn):
        db: Session = self.context.db()
        try:
            return fn(db)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load {what}: {e}") from e
        finally:
            db.close()

    def _publish(self, routing_key: str, message: dict):
        try:
            self.context.producer.publish(routing_key, message)
        except Exception:
            # The order is already committed; a lost event must not undo it.
            logger.exception("event_publish_failed", routing_key=routing_key, order_id=message.get("order_id"))

    # ---------- Placement ----------

    def create_order(self, summary: CheckoutSummary) -> Result:
        """
        Persist ``summary`` as an order with one item per cart line.

        Returns the new order id. On success the cart is cleared; on any
        failure nothing is stored and the cart is left as it was.
        """
        if not summary.can_place_order:
            reason = "Cannot place order: " + ", ".join(summary.missing_prerequisites)
            logger.warning("create_order_rejected", reason=reason)
            return Result.failure(ValidationError(reason))

        now = self.context.clock()
        method_id = summary.selected_payment_method.id

        db: Session = self.context.db()
        try:
            order_id = self.new_order_id()
            while db.get(models.Order, order_id) is not None:
                order_id = self.new_order_id()

            order = models.Order(
                id=order_id,
                user_id=self.context.user_id,
                order_date=now,
                status=OrderStatus.PLACED.value,
                subtotal=summary.subtotal,
                delivery_fee=summary.delivery_fee,
                platform_fee=summary.platform_fee,
                discount=summary.discount,
                total_amount=summary.total_amount,
                delivery_address_id=summary.selected_address.id,
                payment_method=method_id,
                payment_status=payment_status_for(method_id).value,
                estimated_delivery_date=now + timedelta(hours=config.ESTIMATED_DELIVERY_HOURS),
                actual_delivery_date=None,
                notes=summary.order_notes,
            )
            items = [
                models.OrderItem(
                    id=f"{order_id}_{line.product.id}",
                    order_id=order_id,
                    product_id=line.product.id,
                    product_name=line.product.name,
                    product_price=line.product.price,
                    quantity=line.quantity,
                    total_price=round(line.product.price * line.quantity, 2),
                )
                for line in summary.lines
            ]
            db.add(order)
            db.add_all(items)
            db.flush()
            placed = OrderWithItems(
                order=Order.model_validate(order),
                items=[OrderItem.model_validate(item) for item in items],
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("create_order_failed", reason=str(e))
            return Result.failure(StorageError(f"Failed to place order: {e}"))
        finally:
            db.close()

        logger.info(
            "order_created",
            order_id=order_id,
            items=len(items),
            total_amount=placed.order.total_amount,
            payment_method=method_id,
        )
        if self.cart is not None:
            self.cart.clear()
        self.history.set(self.order_history())
        self._publish("order.created", {"order_id": order_id, **placed.model_dump(mode="json")})
        return Result.success(order_id)

    # ---------- Lifecycle ----------

    def update_status(self, order_id: str, new_status) -> Result:
        """Move an order along its lifecycle. Re-applying the current status is a no-op."""
        try:
            new_status = OrderStatus(new_status)
        except ValueError:
            return Result.failure(ValidationError(f"Unknown order status {new_status}"))

        db: Session = self.context.db()
        try:
            row = db.query(models.Order).filter(
                models.Order.id == order_id, models.Order.user_id == self.context.user_id
            ).first()
            if row is None:
                return Result.failure(NotFound(f"Order {order_id} not found"))

            previous = OrderStatus(row.status)
            if previous == new_status:
                return Result.success(Order.model_validate(row))
            if new_status not in ALLOWED_TRANSITIONS[previous]:
                reason = f"Cannot move order {order_id} from {previous.value} to {new_status.value}"
                logger.warning("order_status_rejected", order_id=order_id, reason=reason)
                return Result.failure(ValidationError(reason))

            row.status = new_status.value
            if new_status == OrderStatus.DELIVERED:
                row.actual_delivery_date = self.context.clock()
            db.flush()
            updated = Order.model_validate(row)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("order_status_failed", order_id=order_id, reason=str(e))
            return Result.failure(StorageError(f"Failed to update order {order_id}: {e}"))
        finally:
            db.close()

        logger.info("order_status_changed", order_id=order_id, previous=previous.value, status=new_status.value)
        self.history.set(self.order_history())
        self._publish("order.status_changed", {
            "order_id": order_id,
            "previous_status": previous.value,
            "status": new_status.value,
        })
        return Result.success(updated)

    # ---------- Queries ----------

    def get_order(self, order_id: str) -> Optional[Order]:
        def load(db: Session):
            row = db.query(models.Order).filter(
                models.Order.id == order_id, models.Order.user_id == self.context.user_id
            ).first()
            return Order.model_validate(row) if row else None

        return self._read("order", load)

    def get_order_items(self, order_id: str) -> List[OrderItem]:
        def load(db: Session):
            rows = db.query(models.OrderItem).filter(models.OrderItem.order_id == order_id).all()
            return [OrderItem.model_validate(row) for row in rows]

        return self._read("order items", load)

    def get_order_with_items(self, order_id: str) -> OrderWithItems:
        order = self.get_order(order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return OrderWithItems(order=order, items=self.get_order_items(order_id))

    def order_history(self) -> List[Order]:
        """All orders of the user, newest first."""
        def load(db: Session):
            rows = db.query(models.Order).filter(
                models.Order.user_id == self.context.user_id
            ).order_by(models.Order.order_date.desc()).all()
            return [Order.model_validate(row) for row in rows]

        return self._read("order history", load)

    # ---------- Statistics ----------

    def total_order_count(self) -> int:
        return self._read("order count", lambda db: db.query(func.count(models.Order.id)).filter(
            models.Order.user_id == self.context.user_id
        ).scalar())

    def total_spent(self) -> float:
        """Sum of order totals, cancelled orders excluded."""
        total = self._read("total spent", lambda db: db.query(func.sum(models.Order.total_amount)).filter(
            models.Order.user_id == self.context.user_id,
            models.Order.status != OrderStatus.CANCELLED.value,
        ).scalar())
        return round(total or 0.0, 2)

    def stats(self) -> OrderStats:
        return OrderStats(total_orders=self.total_order_count(), total_spent=self.total_spent())
