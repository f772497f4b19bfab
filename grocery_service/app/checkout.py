"""
Checkout bill computation.

``compute_summary`` is a pure function of the cart lines, the address list,
the selections and the discount. ``CheckoutAggregator`` keeps each input as
its own stream and republishes the summary whenever any of them changes.
"""
import threading
from typing import List, Optional

import structlog

from . import config
from .errors import NotFound, Result, ValidationError
from .schemas import Address, CartLine, CheckoutSummary, PaymentMethod
from .streams import StateStream, combine

logger = structlog.get_logger(__name__)


def delivery_fee_for(subtotal: float) -> float:
    """Free delivery strictly above the threshold."""
    if subtotal > config.FREE_DELIVERY_THRESHOLD:
        return 0.0
    return config.DELIVERY_FEE


def savings_for(lines: List[CartLine]) -> float:
    return round(sum(
        (line.product.original_price - line.product.price) * line.quantity
        for line in lines
        if line.product.original_price is not None and line.product.original_price > line.product.price
    ), 2)


def resolve_address(addresses: List[Address], selected_id: Optional[str]) -> Optional[Address]:
    """The selected address if it still exists, else the default, else the first."""
    if selected_id is not None:
        for address in addresses:
            if address.id == selected_id:
                return address
    for address in addresses:
        if address.is_default:
            return address
    return addresses[0] if addresses else None


def resolve_payment_method(methods: List[PaymentMethod], selected_id: Optional[str]) -> Optional[PaymentMethod]:
    wanted = selected_id or config.DEFAULT_PAYMENT_METHOD_ID
    return next((m for m in methods if m.id == wanted), None)


def compute_summary(
    lines: List[CartLine],
    addresses: List[Address],
    payment_methods: List[PaymentMethod],
    selected_address_id: Optional[str] = None,
    selected_payment_method_id: Optional[str] = None,
    discount: float = 0.0,
    order_notes: str = "",
    is_placing_order: bool = False,
) -> CheckoutSummary:
    subtotal = round(sum(line.total_price for line in lines), 2)
    delivery_fee = delivery_fee_for(subtotal)
    # The discount never takes the total below zero.
    discount = min(max(0.0, discount), round(subtotal + delivery_fee + config.PLATFORM_FEE, 2))
    return CheckoutSummary(
        lines=lines,
        addresses=addresses,
        selected_address=resolve_address(addresses, selected_address_id),
        payment_methods=payment_methods,
        selected_payment_method=resolve_payment_method(payment_methods, selected_payment_method_id),
        subtotal=subtotal,
        delivery_fee=delivery_fee,
        platform_fee=config.PLATFORM_FEE,
        discount=discount,
        savings=savings_for(lines),
        order_notes=order_notes,
        is_placing_order=is_placing_order,
    )


class CheckoutAggregator:
    def __init__(self, cart, address_book, payments, ledger, discount: float = 0.0):
        self.cart = cart
        self.address_book = address_book
        self.payments = payments
        self.ledger = ledger

        self.selected_address_id = StateStream(None, name="checkout.address")
        self.selected_payment_method_id = StateStream(None, name="checkout.payment_method")
        self.order_notes = StateStream("", name="checkout.notes")
        self.discount = StateStream(max(0.0, discount), name="checkout.discount")
        self.placing = StateStream(False, name="checkout.placing")
        self.placed_order_id = StateStream(None, name="checkout.placed_order_id")
        self._placement_lock = threading.Lock()

        self.summary = combine(
            [
                cart.state,
                address_book.addresses,
                self.selected_address_id,
                self.selected_payment_method_id,
                self.order_notes,
                self.discount,
                self.placing,
            ],
            self._compute,
            name="checkout.summary",
        )

    def _compute(self, cart_state, addresses, address_id, payment_id, notes, discount, placing):
        return compute_summary(
            lines=cart_state.lines,
            addresses=addresses,
            payment_methods=self.payments.all(),
            selected_address_id=address_id,
            selected_payment_method_id=payment_id,
            discount=discount,
            order_notes=notes,
            is_placing_order=placing,
        )

    # ---------- Selections ----------

    def select_address(self, address_id: str):
        if not any(a.id == address_id for a in self.address_book.addresses.value):
            raise NotFound(f"Address {address_id} not found")
        self.selected_address_id.set(address_id)

    def select_payment_method(self, method_id: str):
        if self.payments.get(method_id) is None:
            raise NotFound(f"Payment method {method_id} not found")
        self.selected_payment_method_id.set(method_id)

    def set_order_notes(self, notes: str):
        self.order_notes.set(notes or "")

    def set_discount(self, amount: float):
        self.discount.set(max(0.0, float(amount)))

    # ---------- Placement ----------

    def place_order(self) -> Result:
        """
        Commit the current summary through the ledger. Selections and the
        cart are left untouched on failure so the user can retry.
        """
        with self._placement_lock:
            summary: CheckoutSummary = self.summary.value
            if not summary.can_place_order:
                reason = "Cannot place order: " + ", ".join(summary.missing_prerequisites)
                logger.warning("place_order_rejected", reason=reason)
                return Result.failure(ValidationError(reason))
            self.placing.set(True)

        try:
            result = self.ledger.create_order(summary)
        finally:
            self.placing.set(False)

        if result.ok:
            self.placed_order_id.set(result.value)
        return result

    def reset_placed_order(self):
        self.placed_order_id.set(None)
