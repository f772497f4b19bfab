import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("RABBITMQ_HOST", None)
os.environ.pop("CATALOG_URL", None)
os.environ["START_CONSUMER"] = "0"

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402

from grocery_service.app.catalog import InMemoryCatalog  # noqa: E402
from grocery_service.app.context import SessionContext  # noqa: E402
from grocery_service.app.database import make_engine, make_session_factory  # noqa: E402
from grocery_service.app.schemas import AddressIn, Product  # noqa: E402
from grocery_service.app.shop import Shop  # noqa: E402


class TickingClock:
    """Returns a strictly increasing time on every call."""

    def __init__(self, start=datetime(2024, 1, 1, 9, 0, 0)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class RecordingProducer:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def publish(self, routing_key, message):
        if self.fail:
            raise ConnectionError("broker down")
        self.sent.append((routing_key, message))

    def close(self):
        pass


def make_address(name="John Doe", **overrides) -> AddressIn:
    data = dict(
        name=name,
        phone="+91 9876543210",
        address_line1="123, Green Avenue",
        address_line2="Near City Mall",
        landmark="Opposite to Metro Station",
        city="Mumbai",
        state="Maharashtra",
        pincode="400001",
    )
    data.update(overrides)
    return AddressIn(**data)


@pytest.fixture
def products():
    return [
        Product(id="banana", name="Banana", description="Robusta bananas", price=45.0,
                category="fruits", unit="dozen"),
        Product(id="rice", name="Basmati Rice", description="Long grain", price=600.0,
                original_price=720.0, category="staples", unit="5 kg", discount=17),
        Product(id="bread", name="Bread", description="Whole wheat loaf", price=40.0,
                original_price=45.0, category="dairy"),
        Product(id="atta", name="Atta", description="Stone ground flour", price=250.0,
                category="staples", in_stock=False),
    ]


@pytest.fixture
def catalog(products):
    return InMemoryCatalog(products)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def producer():
    return RecordingProducer()


@pytest.fixture
def session_factory():
    return make_session_factory(make_engine("sqlite://"))


@pytest.fixture
def context(session_factory, producer, clock):
    return SessionContext(db=session_factory, producer=producer, clock=clock)


@pytest.fixture
def shop(context, catalog):
    return Shop(context, catalog)
