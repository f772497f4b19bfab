import threading
import time
from unittest import mock

import pika
import pytest

from grocery_service.app.messaging.bus import RabbitMQProducer


@pytest.fixture
def blocking_connection():
    with mock.patch("grocery_service.app.messaging.bus.pika.BlockingConnection") as factory:
        factory.return_value.is_closed = False
        yield factory


def test_publish_reconnects_after_lost_stream(blocking_connection):
    channel = blocking_connection.return_value.channel.return_value
    channel.basic_publish.side_effect = [pika.exceptions.StreamLostError("idle timeout"), None]
    producer = RabbitMQProducer(host="broker", attempts=1)

    producer.publish("order.created", {"order_id": "ORDER_1_ABCDEF"})

    assert blocking_connection.call_count == 2
    assert channel.basic_publish.call_count == 2
    assert channel.basic_publish.call_args[1]["routing_key"] == "order.created"


def test_publish_failing_twice_raises(blocking_connection):
    channel = blocking_connection.return_value.channel.return_value
    channel.basic_publish.side_effect = pika.exceptions.StreamLostError("broker gone")
    producer = RabbitMQProducer(host="broker", attempts=1)

    with pytest.raises(pika.exceptions.AMQPError):
        producer.publish("order.created", {"order_id": "ORDER_1_ABCDEF"})


def test_concurrent_publishes_never_share_the_channel(blocking_connection):
    active = []
    overlaps = []

    def slow_publish(**kwargs):
        active.append(1)
        if len(active) > 1:
            overlaps.append(kwargs["routing_key"])
        time.sleep(0.01)
        active.pop()

    blocking_connection.return_value.channel.return_value.basic_publish.side_effect = slow_publish
    producer = RabbitMQProducer(host="broker", attempts=1)

    threads = [
        threading.Thread(target=producer.publish, args=("order.status_changed", {"order_id": str(n)}))
        for n in range(8)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == []
