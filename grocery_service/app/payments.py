from typing import List, Optional

from .schemas import PaymentMethod, PaymentStatus

# Static, not stored per user.
PAYMENT_METHODS = [
    PaymentMethod(id="cod", name="Cash on Delivery",
                  description="Pay when your order arrives", icon="cash"),
    PaymentMethod(id="upi", name="UPI Payment",
                  description="Pay using Google Pay, PhonePe, Paytm", icon="upi"),
    PaymentMethod(id="card", name="Credit/Debit Card",
                  description="Visa, MasterCard, RuPay", icon="card"),
]


class PaymentMethodCatalog:
    def __init__(self, methods: List[PaymentMethod] = None):
        self._methods = list(PAYMENT_METHODS if methods is None else methods)

    def all(self) -> List[PaymentMethod]:
        return [m for m in self._methods if m.is_enabled]

    def get(self, method_id: str) -> Optional[PaymentMethod]:
        return next((m for m in self.all() if m.id == method_id), None)


def payment_status_for(method_id: str) -> PaymentStatus:
    # Cash is collected on delivery; other methods are settled up front.
    if method_id == "cod":
        return PaymentStatus.PENDING
    return PaymentStatus.PAID
