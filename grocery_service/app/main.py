# In file: grocery_service/app/main.py

from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import config
from .catalog import make_catalog
from .consumers import start_consumer_thread
from .context import SessionContext
from .database import engine, make_session_factory
from .errors import ConstraintViolation, NotFound, Result, ShopError, StorageError, ValidationError
from .messaging.bus import make_producer
from .schemas import (
    Address, AddressIn, CartSnapshot, Category, CheckoutSummary, Order,
    OrderStats, OrderWithItems, PaymentMethod, Product,
)
from .shop import Shop

STATUS_CODES = {
    ValidationError: 400,
    NotFound: 404,
    ConstraintViolation: 409,
    StorageError: 500,
}


# --- Request Models ---
class CartItemRequest(BaseModel):
    """Adds units of a product to the cart."""
    product_id: str
    quantity: int = 1


class QuantityRequest(BaseModel):
    """Sets the quantity of a cart line; zero or less removes it."""
    quantity: int


class SelectAddressRequest(BaseModel):
    address_id: str


class SelectPaymentMethodRequest(BaseModel):
    payment_method_id: str


class NotesRequest(BaseModel):
    notes: str = ""


class DiscountRequest(BaseModel):
    amount: float = Field(0.0, ge=0)


class StatusRequest(BaseModel):
    status: str


def unwrap(result: Result):
    if result.ok:
        return result.value
    raise result.error


def get_shop(request: Request) -> Shop:
    return request.app.state.shop


def create_app(shop: Optional[Shop] = None) -> FastAPI:
    if shop is None:
        # Create database tables on startup if they don't exist.
        context = SessionContext(db=make_session_factory(engine), producer=make_producer())
        shop = Shop(context, make_catalog())

    app = FastAPI(title="Grocery Cart & Order Service")
    app.state.shop = shop

    @app.exception_handler(ShopError)
    def shop_error_handler(request: Request, exc: ShopError):
        return JSONResponse(status_code=STATUS_CODES.get(type(exc), 400), content={"detail": exc.reason})

    if config.START_CONSUMER:
        start_consumer_thread(shop.ledger)

    # --- Health ---
    @app.get("/")
    def root():
        """Health check endpoint."""
        return {"message": "Grocery service is running"}

    @app.get("/health")
    def health(shop: Shop = Depends(get_shop)):
        return {"status": "ok", "orders": shop.ledger.total_order_count()}

    # --- Catalog ---
    @app.get("/api/v1/categories", response_model=List[Category])
    def list_categories(shop: Shop = Depends(get_shop)):
        return shop.catalog.categories()

    @app.get("/api/v1/products", response_model=List[Product])
    def list_products(category: Optional[str] = None, q: Optional[str] = None, shop: Shop = Depends(get_shop)):
        return shop.catalog.find(category_id=category, query=q)

    @app.get("/api/v1/products/{product_id}", response_model=Product)
    def get_product(product_id: str, shop: Shop = Depends(get_shop)):
        product = shop.catalog.get_by_id(product_id)
        if product is None:
            raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
        return product

    # --- Cart ---
    @app.get("/api/v1/cart", response_model=CartSnapshot)
    def get_cart(shop: Shop = Depends(get_shop)):
        return shop.cart.state.value

    @app.post("/api/v1/cart/items", response_model=CartSnapshot)
    def add_to_cart(req: CartItemRequest, shop: Shop = Depends(get_shop)):
        if shop.catalog.get_by_id(req.product_id) is None:
            raise NotFound(f"Product {req.product_id} not found")
        shop.cart.add(req.product_id, req.quantity)
        return shop.cart.state.value

    @app.put("/api/v1/cart/items/{product_id}", response_model=CartSnapshot)
    def update_cart_item(product_id: str, req: QuantityRequest, shop: Shop = Depends(get_shop)):
        shop.cart.set_quantity(product_id, req.quantity)
        return shop.cart.state.value

    @app.delete("/api/v1/cart/items/{product_id}", response_model=CartSnapshot)
    def remove_cart_item(product_id: str, shop: Shop = Depends(get_shop)):
        shop.cart.remove(product_id)
        return shop.cart.state.value

    @app.delete("/api/v1/cart", response_model=CartSnapshot)
    def clear_cart(shop: Shop = Depends(get_shop)):
        shop.cart.clear()
        return shop.cart.state.value

    # --- Addresses ---
    @app.get("/api/v1/addresses", response_model=List[Address])
    def list_addresses(shop: Shop = Depends(get_shop)):
        return shop.address_book.list()

    @app.get("/api/v1/addresses/default", response_model=Optional[Address])
    def get_default_address(shop: Shop = Depends(get_shop)):
        return shop.address_book.get_default()

    @app.get("/api/v1/addresses/{address_id}", response_model=Address)
    def get_address(address_id: str, shop: Shop = Depends(get_shop)):
        return shop.address_book.get(address_id)

    @app.post("/api/v1/addresses", response_model=Address)
    def add_address(req: AddressIn, shop: Shop = Depends(get_shop)):
        return unwrap(shop.address_book.add(req))

    @app.put("/api/v1/addresses/{address_id}/default")
    def set_default_address(address_id: str, shop: Shop = Depends(get_shop)):
        unwrap(shop.address_book.set_default(address_id))
        return {"status": "ok", "default_address_id": address_id}

    @app.delete("/api/v1/addresses/{address_id}")
    def delete_address(address_id: str, shop: Shop = Depends(get_shop)):
        unwrap(shop.address_book.delete(address_id))
        return {"status": "deleted", "address_id": address_id}

    # --- Payment methods ---
    @app.get("/api/v1/payment-methods", response_model=List[PaymentMethod])
    def list_payment_methods(shop: Shop = Depends(get_shop)):
        return shop.payments.all()

    # --- Checkout ---
    @app.get("/api/v1/checkout", response_model=CheckoutSummary)
    def get_checkout(shop: Shop = Depends(get_shop)):
        return shop.checkout.summary.value

    @app.put("/api/v1/checkout/address", response_model=CheckoutSummary)
    def select_address(req: SelectAddressRequest, shop: Shop = Depends(get_shop)):
        shop.checkout.select_address(req.address_id)
        return shop.checkout.summary.value

    @app.put("/api/v1/checkout/payment-method", response_model=CheckoutSummary)
    def select_payment_method(req: SelectPaymentMethodRequest, shop: Shop = Depends(get_shop)):
        shop.checkout.select_payment_method(req.payment_method_id)
        return shop.checkout.summary.value

    @app.put("/api/v1/checkout/notes", response_model=CheckoutSummary)
    def set_notes(req: NotesRequest, shop: Shop = Depends(get_shop)):
        shop.checkout.set_order_notes(req.notes)
        return shop.checkout.summary.value

    @app.put("/api/v1/checkout/discount", response_model=CheckoutSummary)
    def set_discount(req: DiscountRequest, shop: Shop = Depends(get_shop)):
        shop.checkout.set_discount(req.amount)
        return shop.checkout.summary.value

    @app.post("/api/v1/checkout/place-order")
    def place_order(shop: Shop = Depends(get_shop)):
        """Creates an order from the current checkout and empties the cart."""
        order_id = unwrap(shop.checkout.place_order())
        return {"status": "placed", "order_id": order_id}

    # --- Orders ---
    @app.get("/api/v1/orders", response_model=List[Order])
    def list_orders(shop: Shop = Depends(get_shop)):
        return shop.ledger.order_history()

    @app.get("/api/v1/orders/stats", response_model=OrderStats)
    def order_stats(shop: Shop = Depends(get_shop)):
        return shop.ledger.stats()

    @app.get("/api/v1/orders/{order_id}", response_model=OrderWithItems)
    def get_order(order_id: str, shop: Shop = Depends(get_shop)):
        return shop.ledger.get_order_with_items(order_id)

    @app.put("/api/v1/orders/{order_id}/status", response_model=Order)
    def update_order_status(order_id: str, req: StatusRequest, shop: Shop = Depends(get_shop)):
        return unwrap(shop.ledger.update_status(order_id, req.status))

    return app


app = create_app()
