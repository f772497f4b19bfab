from .addresses import AddressBook
from .cart import CartStore
from .checkout import CheckoutAggregator
from .context import SessionContext
from .orders import OrderLedger
from .payments import PaymentMethodCatalog


class Shop:
    """Wires the cart, address book, checkout and ledger for one user session."""

    def __init__(self, context: SessionContext, catalog, payments: PaymentMethodCatalog = None, discount: float = 0.0):
        self.context = context
        self.catalog = catalog
        self.payments = payments or PaymentMethodCatalog()
        self.cart = CartStore(catalog, clock=context.clock)
        self.address_book = AddressBook(context)
        self.ledger = OrderLedger(context, cart=self.cart)
        self.checkout = CheckoutAggregator(self.cart, self.address_book, self.payments, self.ledger, discount)

    def close(self):
        self.cart.close()
        self.context.producer.close()
