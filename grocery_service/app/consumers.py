import json
import threading
import time

import pika
import structlog

from . import config
from .schemas import OrderStatus

logger = structlog.get_logger(__name__)

# Fulfillment events and the order status each one moves to.
ROUTING_KEY_STATUS = {
    "fulfillment.confirmed": OrderStatus.CONFIRMED,
    "fulfillment.shipped": OrderStatus.SHIPPED,
    "fulfillment.delivered": OrderStatus.DELIVERED,
    "fulfillment.cancelled": OrderStatus.CANCELLED,
}

QUEUE_NAME = "orders.fulfillment"


class FulfillmentConsumer:
    """Applies status changes published by the fulfillment process to the order ledger."""

    def __init__(self, ledger, host=None, exchange_name=None):
        self.ledger = ledger
        self.host = host or config.RABBITMQ_HOST or "rabbitmq"
        self.exchange_name = exchange_name or config.EVENTS_EXCHANGE
        self.connection = None
        self.channel = None

    def connect(self):
        """Connects to RabbitMQ and binds the fulfillment queue, retrying while the broker boots."""
        while True:
            try:
                credentials = pika.PlainCredentials('guest', 'guest')
                parameters = pika.ConnectionParameters(self.host, credentials=credentials, heartbeat=600)
                self.connection = pika.BlockingConnection(parameters)
                self.channel = self.connection.channel()

                self.channel.exchange_declare(exchange=self.exchange_name, exchange_type='topic', durable=True)
                self.channel.queue_declare(queue=QUEUE_NAME, durable=True)
                for routing_key in ROUTING_KEY_STATUS:
                    self.channel.queue_bind(exchange=self.exchange_name, queue=QUEUE_NAME, routing_key=routing_key)

                logger.info("consumer_connected", host=self.host, queue=QUEUE_NAME)
                break
            except pika.exceptions.AMQPConnectionError:
                logger.warning("rabbitmq_not_ready", host=self.host, retry_in=5)
                time.sleep(5)

    def handle(self, routing_key: str, body: bytes):
        """Apply one fulfillment event. Returns the ledger Result, or None if ignored."""
        status = ROUTING_KEY_STATUS.get(routing_key)
        if status is None:
            logger.warning("event_ignored", routing_key=routing_key)
            return None
        try:
            event = json.loads(body)
        except ValueError:
            logger.warning("event_malformed", routing_key=routing_key)
            return None
        order_id = event.get("order_id") if isinstance(event, dict) else None
        if not order_id:
            logger.warning("event_without_order_id", routing_key=routing_key)
            return None

        result = self.ledger.update_status(order_id, status)
        if result.ok:
            logger.info("fulfillment_applied", order_id=order_id, status=status.value)
        else:
            logger.warning("fulfillment_rejected", order_id=order_id, status=status.value, reason=result.reason)
        return result

    def callback(self, ch, method, properties, body):
        try:
            self.handle(method.routing_key, body)
        except Exception:
            # Keep consuming; the message is not redelivered.
            logger.exception("event_processing_failed", routing_key=method.routing_key)
        finally:
            # Acknowledge the message so RabbitMQ removes it from queue
            ch.basic_ack(delivery_tag=method.delivery_tag)

    def start_listening(self):
        """Starts the consuming loop."""
        if not self.connection:
            self.connect()
        self.channel.basic_consume(queue=QUEUE_NAME, on_message_callback=self.callback)
        logger.info("consumer_waiting", queue=QUEUE_NAME)
        self.channel.start_consuming()


def start_consumer_thread(ledger):
    """Helper to run the consumer in a background thread."""
    consumer = FulfillmentConsumer(ledger)
    thread = threading.Thread(target=consumer.start_listening, daemon=True)
    thread.start()
    return consumer
